"""Token exchange: authenticate the caller, attach a client assertion, forward."""

import json
import secrets
import time

import httpx
import jwt
import structlog

from rpw.core.errors import (
    AuthFailed,
    BadRequest,
    ConfigError,
    InvalidUpstreamResponse,
    UnsupportedAlgorithm,
    Unauthorized,
    UpstreamError,
    UpstreamUnreachable,
)
from rpw.core.settings import RelaySettings
from rpw.crypto.assertion import CLIENT_ASSERTION_TYPE, issue_assertion
from rpw.crypto.key_store import KeyStore
from rpw.relay.types import TokenRequest, UpstreamResult

log = structlog.get_logger(__name__)


class TokenRelay:
    """Forwards authorization-code exchanges to the upstream token endpoint.

    One attempt per caller request, bounded by the client's timeout. Retry
    policy is left to the caller.
    """

    def __init__(
        self,
        settings: RelaySettings,
        key_store: KeyStore,
        client: httpx.AsyncClient,
    ) -> None:
        self._settings = settings
        self._key_store = key_store
        self._client = client
        self._accepted_algs = frozenset(settings.get_accepted_alg_list())
        if not self._accepted_algs:
            raise ConfigError("ACCEPTED_ID_TOKEN_ALGS must name at least one alg")

    def authenticate(self, request: TokenRequest) -> None:
        """Validate caller identity; the first failing check wins."""
        if not request.client_id:
            raise BadRequest("Missing client_id")

        expected_secret = self._settings.client_secret
        if request.client_secret and expected_secret:
            if not secrets.compare_digest(
                request.client_secret.encode(), expected_secret.encode()
            ):
                raise AuthFailed("Client authentication failed")

        if request.client_id != self._settings.rp_id:
            raise Unauthorized("Invalid request, client_id is incorrect")

    def build_upstream_form(
        self, request: TokenRequest, client_assertion: str
    ) -> dict[str, str]:
        """Compose the form body for the upstream authorization_code grant."""
        form = {
            "grant_type": "authorization_code",
            "client_id": self._settings.rp_id,
            "client_assertion_type": CLIENT_ASSERTION_TYPE,
            "client_assertion": client_assertion,
        }
        if request.code is not None:
            form["code"] = request.code
        if request.redirect_uri is not None:
            form["redirect_uri"] = request.redirect_uri
        if request.code_verifier:
            form["code_verifier"] = request.code_verifier
        return form

    async def exchange(self, request: TokenRequest) -> UpstreamResult:
        """Perform the upstream exchange and vet the issued ID token."""
        self.authenticate(request)

        key = self._key_store.active_key(
            self._settings.rp_client_assertion_signing_alg
        )
        assertion = issue_assertion(
            self._settings.rp_id,
            self._settings.get_assertion_audience(),
            key,
        )
        form = self.build_upstream_form(request, assertion.token)

        url = self._settings.idp_token_url
        started = time.perf_counter()
        try:
            response = await self._client.post(
                url, data=form, headers={"Accept": "application/json"}
            )
        except httpx.TimeoutException as exc:
            log.warning("upstream_timeout", url=url, error=str(exc))
            raise UpstreamUnreachable("Upstream token endpoint timed out") from exc
        except httpx.RequestError as exc:
            log.warning("upstream_unreachable", url=url, error=str(exc))
            raise UpstreamUnreachable("Upstream token endpoint unreachable") from exc

        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        log.info(
            "upstream_exchange",
            status_code=response.status_code,
            elapsed_ms=elapsed_ms,
            jti=assertion.jti,
        )
        content_type = response.headers.get("content-type")
        if not response.is_success:
            log.debug("upstream_error_body", body=response.text)
            raise UpstreamError(response.status_code, response.content, content_type)

        alg = _id_token_alg(response.content)
        if alg not in self._accepted_algs:
            log.warning("unsupported_id_token_alg", alg=alg)
            raise UnsupportedAlgorithm(f"Unsupported signing algorithm: {alg}")

        return UpstreamResult(
            status_code=200, body=response.content, content_type=content_type
        )


def _id_token_alg(body: bytes) -> str:
    """Read the ``alg`` header of the ``id_token`` in a token response."""
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise InvalidUpstreamResponse("Upstream response is not JSON") from exc
    id_token = payload.get("id_token") if isinstance(payload, dict) else None
    if not isinstance(id_token, str):
        raise InvalidUpstreamResponse("Upstream response has no id_token")
    try:
        header = jwt.get_unverified_header(id_token)
    except jwt.PyJWTError as exc:
        raise InvalidUpstreamResponse("Upstream id_token is malformed") from exc
    return str(header.get("alg", ""))
