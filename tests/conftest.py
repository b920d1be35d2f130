"""Shared test fixtures for the token wrapper."""

import json
from base64 import urlsafe_b64encode
from collections.abc import AsyncIterator

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from rpw.core.app import create_app
from rpw.core.settings import RelaySettings, load_settings
from rpw.crypto.key_store import KeyStore
from rpw.crypto.keys import generate_private_key_pem

RP_ID = "rp1"
RP_KID = "rp1-rs256-2024"
IDP_DOMAIN = "idp.example.com"
TOKEN_URL = f"https://{IDP_DOMAIN}/oauth/token"


def _b64(data: dict[str, object]) -> str:
    raw = json.dumps(data).encode()
    return urlsafe_b64encode(raw).rstrip(b"=").decode()


def make_id_token(alg: str = "RS256") -> str:
    """Build a compact JWS whose header declares ``alg``; never verified."""
    header = _b64({"alg": alg, "typ": "JWT", "kid": "idp-key"})
    payload = _b64({"iss": f"https://{IDP_DOMAIN}/", "sub": "user-1", "aud": RP_ID})
    return f"{header}.{payload}.c2lnbmF0dXJl"


class StubIdP:
    """Upstream token endpoint stand-in for ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.content_type = "application/json"
        self.body = json.dumps(
            {
                "access_token": "at-123",
                "token_type": "Bearer",
                "expires_in": 86400,
                "id_token": make_id_token("RS256"),
            }
        ).encode()
        self.error: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(
            self.status_code,
            content=self.body,
            headers={"content-type": self.content_type},
        )

    @property
    def last_form(self) -> dict[str, str]:
        """Decoded form body of the most recent upstream request."""
        pairs = httpx.QueryParams(self.requests[-1].content.decode())
        return dict(pairs)


@pytest.fixture(scope="session")
def rsa_private_pem() -> str:
    """One RSA-2048 key per test session; generation is slow."""
    return generate_private_key_pem("RS256")


@pytest.fixture(autouse=True)
def _set_env(monkeypatch: pytest.MonkeyPatch, rsa_private_pem: str) -> None:
    """Set environment variables for test settings."""
    for name in ("RP_CLIENT_SECRET", "A0_CLIENT_SECRET", "RP_JWKS_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("RP_ID", RP_ID)
    monkeypatch.setenv("IDP_DOMAIN", IDP_DOMAIN)
    monkeypatch.setenv("RP_PRIVATE_KEY_RS256", rsa_private_pem)
    monkeypatch.setenv("RP_KID_RS256", RP_KID)
    monkeypatch.setenv("RP_CLIENT_ASSERTION_SIGNING_ALG", "RS256")
    monkeypatch.setenv("DEBUG", "false")


@pytest.fixture
def settings() -> RelaySettings:
    return load_settings()


@pytest.fixture
def key_store(settings: RelaySettings) -> KeyStore:
    return KeyStore.from_settings(settings)


@pytest.fixture
def stub_idp() -> StubIdP:
    return StubIdP()


async def _client_for(
    settings: RelaySettings, stub_idp: StubIdP
) -> AsyncIterator[AsyncClient]:
    app = create_app(settings, transport=httpx.MockTransport(stub_idp.handler))
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def client(
    settings: RelaySettings, stub_idp: StubIdP
) -> AsyncIterator[AsyncClient]:
    """httpx client for the app, with the upstream IdP stubbed."""
    async for ac in _client_for(settings, stub_idp):
        yield ac


@pytest.fixture
async def secret_client(
    settings: RelaySettings, stub_idp: StubIdP
) -> AsyncIterator[AsyncClient]:
    """As ``client``, with an inbound shared secret configured."""
    configured = settings.model_copy(update={"client_secret": "s3cret"})
    async for ac in _client_for(configured, stub_idp):
        yield ac
