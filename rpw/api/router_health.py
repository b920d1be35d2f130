"""Liveness check."""

from typing import Annotated

from fastapi import APIRouter, Depends

from rpw.api.deps import get_key_store, get_settings
from rpw.core.settings import RelaySettings
from rpw.crypto.key_store import KeyStore

router = APIRouter()


@router.get("/healthz")
async def healthz(
    settings: Annotated[RelaySettings, Depends(get_settings)],
    key_store: Annotated[KeyStore, Depends(get_key_store)],
) -> dict[str, object]:
    """Report liveness, the relying-party id and the loaded algorithms."""
    return {
        "status": "ok",
        "rp_id": settings.rp_id,
        "signing_algorithms": key_store.algorithms,
    }
