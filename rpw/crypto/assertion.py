"""private_key_jwt client assertion issuance and verification."""

from datetime import UTC, datetime, timedelta

import jwt
import structlog
import uuid_utils

from rpw.core.errors import SigningError
from rpw.crypto.key_store import KeyStore
from rpw.crypto.types import AssertionClaims, SignedAssertion, SigningKey

# Fixed, not configurable: bounds the replay window of a leaked assertion.
ASSERTION_TTL_SECONDS = 120
CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"

log = structlog.get_logger(__name__)


def issue_assertion(
    issuer_id: str,
    audience: list[str],
    key: SigningKey,
    now: datetime | None = None,
) -> SignedAssertion:
    """Sign a short-lived client assertion for the token endpoint.

    ``iss`` and ``sub`` are both the relying-party id, ``aud`` carries every
    URL the IdP may check, and each call gets a fresh ``jti``. The key-id is
    set in the protected header so the IdP can pick the matching JWK.
    """
    issued_at = (now or datetime.now(UTC)).replace(microsecond=0)
    expires_at = issued_at + timedelta(seconds=ASSERTION_TTL_SECONDS)
    jti = str(uuid_utils.uuid4())
    payload = {
        "iss": issuer_id,
        "sub": issuer_id,
        "aud": audience,
        "iat": issued_at,
        "exp": expires_at,
        "jti": jti,
    }
    try:
        token = jwt.encode(
            payload,
            key.private_key,
            algorithm=key.algorithm,
            headers={"kid": key.kid},
        )
    except (jwt.PyJWTError, NotImplementedError, TypeError, ValueError) as exc:
        log.error(
            "assertion_signing_failed",
            algorithm=key.algorithm,
            kid=key.kid,
            error=type(exc).__name__,
        )
        raise SigningError("Client assertion could not be signed") from exc

    log.debug("assertion_issued", jti=jti, kid=key.kid, exp=expires_at.isoformat())
    return SignedAssertion(
        token=token,
        jti=jti,
        kid=key.kid,
        issued_at=issued_at,
        expires_at=expires_at,
    )


def verify_assertion(
    token: str, key_store: KeyStore, audience: str
) -> AssertionClaims:
    """Verify an assertion against the store, selecting the key by ``kid``."""
    header = jwt.get_unverified_header(token)
    key = key_store.key_by_kid(str(header.get("kid", "")))
    raw = jwt.decode(
        token,
        key.public_key,
        algorithms=[key.algorithm],
        audience=audience,
        options={"require": ["iss", "sub", "aud", "iat", "exp", "jti"]},
    )
    return AssertionClaims.model_validate(raw)
