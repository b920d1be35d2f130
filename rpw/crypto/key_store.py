"""In-memory store of the relying party's signing keys."""

from collections.abc import Iterable
from pathlib import Path

import structlog
from pydantic import ValidationError

from rpw.core.errors import ConfigError, KeyNotFound
from rpw.core.settings import RelaySettings
from rpw.crypto.keys import (
    SUPPORTED_ALGORITHMS,
    decrypt_private_key,
    load_signing_key,
    public_key_to_jwk_entry,
)
from rpw.crypto.types import JWKEntry, PublicKeySet, SigningKey

log = structlog.get_logger(__name__)


class KeyStore:
    """Signing keys keyed by algorithm, read-only after construction."""

    def __init__(
        self,
        keys: Iterable[SigningKey],
        extra_public_keys: Iterable[JWKEntry] = (),
    ) -> None:
        self._by_alg: dict[str, SigningKey] = {}
        for key in keys:
            if key.algorithm in self._by_alg:
                raise ConfigError(f"Duplicate signing key for {key.algorithm}")
            if any(k.kid == key.kid for k in self._by_alg.values()):
                raise ConfigError(f"Duplicate key-id {key.kid}")
            self._by_alg[key.algorithm] = key

        entries = [
            public_key_to_jwk_entry(self._by_alg[alg]) for alg in sorted(self._by_alg)
        ]
        loaded_kids = {e.kid for e in entries}
        entries.extend(e for e in extra_public_keys if e.kid not in loaded_kids)
        self._public_key_set = PublicKeySet(keys=entries)

    @classmethod
    def from_settings(cls, settings: RelaySettings) -> "KeyStore":
        """Load every configured private key; any failure is fatal."""
        signing_alg = settings.rp_client_assertion_signing_alg
        if signing_alg not in SUPPORTED_ALGORITHMS:
            raise ConfigError(f"Unsupported signing algorithm: {signing_alg}")

        keys = []
        for alg, (private_key, kid) in settings.get_key_sources().items():
            if settings.rp_key_encryption_key:
                private_key = decrypt_private_key(
                    private_key, settings.rp_key_encryption_key
                )
            key = load_signing_key(private_key, alg, kid)
            log.info("signing_key_loaded", algorithm=alg, kid=kid)
            keys.append(key)

        if not any(k.algorithm == signing_alg for k in keys):
            raise ConfigError(f"No signing key configured for {signing_alg}")

        extra: list[JWKEntry] = []
        if settings.rp_jwks_file:
            extra = _read_jwks_file(settings.rp_jwks_file).keys
        return cls(keys, extra)

    @property
    def algorithms(self) -> list[str]:
        return sorted(self._by_alg)

    def active_key(self, algorithm: str) -> SigningKey:
        """Return the signing key for ``algorithm``."""
        key = self._by_alg.get(algorithm)
        if key is None:
            raise KeyNotFound(f"No signing key for algorithm {algorithm}")
        return key

    def key_by_kid(self, kid: str) -> SigningKey:
        """Return the loaded signing key whose key-id is ``kid``."""
        for key in self._by_alg.values():
            if key.kid == kid:
                return key
        raise KeyNotFound(f"No signing key with kid {kid}")

    def public_key_set(self) -> PublicKeySet:
        return self._public_key_set


def _read_jwks_file(path: str) -> PublicKeySet:
    """Read additional public keys to publish, e.g. a retiring key."""
    try:
        raw = Path(path).read_text(encoding="utf-8")
        return PublicKeySet.model_validate_json(raw)
    except OSError as exc:
        raise ConfigError(f"JWKS file {path} could not be read") from exc
    except ValidationError as exc:
        raise ConfigError(f"JWKS file {path} is not a valid key set") from exc
