"""Error taxonomy for the token relay and its HTTP rendering."""

from fastapi import Request
from starlette.responses import JSONResponse, Response

HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_SERVER_ERROR = 500


class ConfigError(Exception):
    """Unrecoverable configuration or key-loading failure at startup."""


class RelayError(Exception):
    """Per-request failure mapped to an HTTP status and a caller-safe message."""

    status_code = HTTP_SERVER_ERROR
    error = "server_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class KeyNotFound(RelayError):
    """No signing key is loaded for the requested algorithm or kid."""


class BadRequest(RelayError):
    status_code = HTTP_BAD_REQUEST
    error = "invalid_request"


class AuthFailed(RelayError):
    """Supplied client_secret does not match the configured shared secret."""

    status_code = HTTP_BAD_REQUEST
    error = "invalid_client"


class Unauthorized(RelayError):
    """client_id is not the configured relying party."""

    status_code = HTTP_UNAUTHORIZED
    error = "unauthorized_client"


class SigningError(RelayError):
    """The client assertion could not be signed."""


class UpstreamUnreachable(RelayError):
    error = "temporarily_unavailable"


class UnsupportedAlgorithm(RelayError):
    """Issued ID token is signed with an algorithm outside the accepted set."""


class InvalidUpstreamResponse(RelayError):
    """Upstream answered 2xx without a decodable id_token."""


class UpstreamError(RelayError):
    """Upstream answered non-2xx; status and body are relayed verbatim."""

    def __init__(self, status_code: int, body: bytes, content_type: str | None) -> None:
        super().__init__(f"Upstream token endpoint returned {status_code}")
        self.status_code = status_code
        self.body = body
        self.content_type = content_type


async def relay_error_handler(_request: Request, exc: Exception) -> Response:
    """Render a RelayError as an OAuth-style error response."""
    assert isinstance(exc, RelayError)
    if isinstance(exc, UpstreamError):
        return Response(
            content=exc.body,
            status_code=exc.status_code,
            media_type=exc.content_type,
        )
    return JSONResponse(
        {"error": exc.error, "error_description": exc.message},
        status_code=exc.status_code,
    )
