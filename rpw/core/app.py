"""FastAPI application factory for the relying-party token wrapper."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI

from rpw.api.router_health import router as health_router
from rpw.core.errors import RelayError, relay_error_handler
from rpw.core.logging import configure_logging
from rpw.core.settings import RelaySettings, load_settings
from rpw.crypto.key_store import KeyStore
from rpw.relay.jwks import KeyPublisher
from rpw.relay.routes_keys import router as keys_router
from rpw.relay.routes_token import router as token_router
from rpw.relay.token_relay import TokenRelay

log = structlog.get_logger(__name__)


def create_app(
    settings: RelaySettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Settings and keys are loaded here, once; a ``ConfigError`` propagates so
    the process fails to start. ``transport`` replaces the network transport
    of the upstream client (tests pass an ``httpx.MockTransport``).
    """
    settings = settings or load_settings()
    configure_logging(debug=settings.debug, log_format=settings.log_format)

    key_store = KeyStore.from_settings(settings)
    http_client = httpx.AsyncClient(
        timeout=settings.upstream_timeout,
        transport=transport,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        log.info(
            "relay_started",
            rp_id=settings.rp_id,
            token_url=settings.idp_token_url,
            signing_alg=settings.rp_client_assertion_signing_alg,
        )
        yield
        await http_client.aclose()

    app = FastAPI(
        title="RP Token Wrapper",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.key_store = key_store
    app.state.token_relay = TokenRelay(settings, key_store, http_client)
    app.state.key_publisher = KeyPublisher(
        key_store.public_key_set(), settings.jwks_max_age
    )

    app.add_exception_handler(RelayError, relay_error_handler)

    app.include_router(token_router)
    app.include_router(keys_router)
    app.include_router(health_router)

    return app
