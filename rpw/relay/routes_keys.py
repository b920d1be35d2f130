"""Public JWKS endpoint for the identity provider."""

from typing import Annotated

from fastapi import APIRouter, Depends, Header
from starlette.responses import Response

from rpw.api.deps import get_key_publisher
from rpw.relay.jwks import KeyPublisher

router = APIRouter()

HTTP_NOT_MODIFIED = 304


@router.get("/.well-known/keys", response_model=None)
async def keys(
    publisher: Annotated[KeyPublisher, Depends(get_key_publisher)],
    if_none_match: Annotated[str | None, Header()] = None,
) -> Response:
    """JSON Web Key Set with ETag-based conditional responses."""
    if publisher.is_not_modified(if_none_match):
        return Response(
            status_code=HTTP_NOT_MODIFIED,
            headers={"ETag": publisher.validator},
        )
    return Response(
        content=publisher.body,
        media_type="application/json",
        headers={
            "Cache-Control": publisher.cache_control,
            "ETag": publisher.validator,
        },
    )
