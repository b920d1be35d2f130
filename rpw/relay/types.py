"""Type definitions for token relay operations."""

from pydantic import BaseModel, ConfigDict


class TokenRequest(BaseModel):
    """Inbound authorization-code token request from the relying application."""

    model_config = ConfigDict(extra="ignore")

    client_id: str | None = None
    code: str | None = None
    redirect_uri: str | None = None
    code_verifier: str | None = None
    client_secret: str | None = None


class UpstreamResult(BaseModel):
    """Successful upstream token response, relayed verbatim."""

    status_code: int
    body: bytes
    content_type: str | None = None
