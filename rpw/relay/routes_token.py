"""Token endpoint forwarding authorization-code exchanges upstream."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from starlette.responses import Response

from rpw.api.deps import get_token_relay
from rpw.core.errors import BadRequest
from rpw.core.logging import redact_fields
from rpw.relay.token_relay import TokenRelay
from rpw.relay.types import TokenRequest

router = APIRouter()

log = structlog.get_logger(__name__)


async def _read_fields(request: Request) -> dict[str, object]:
    """Read a form or JSON body, depending on the declared content type."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as exc:
            raise BadRequest("Malformed JSON body") from exc
        if not isinstance(body, dict):
            raise BadRequest("Request body must be a JSON object")
        return body
    form = await request.form()
    return {k: v for k, v in form.items() if isinstance(v, str)}


@router.post("/token", response_model=None)
async def token_endpoint(
    request: Request,
    relay: Annotated[TokenRelay, Depends(get_token_relay)],
) -> Response:
    """POST /token -- exchange an authorization code via the upstream IdP."""
    fields = await _read_fields(request)
    log.debug("token_request", fields=redact_fields(fields))
    if not fields.get("client_id"):
        raise BadRequest("Missing client_id")
    try:
        token_request = TokenRequest.model_validate(fields)
    except ValidationError as exc:
        raise BadRequest("Malformed token request") from exc

    result = await relay.exchange(token_request)
    return Response(
        content=result.body,
        status_code=result.status_code,
        media_type=result.content_type,
    )
