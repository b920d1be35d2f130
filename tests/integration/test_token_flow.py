"""Integration test: token exchange against a stub IdP that checks assertions."""

import json
from collections.abc import AsyncIterator

import httpx
import jwt
import pytest
from httpx import ASGITransport, AsyncClient
from jwt import PyJWKSet

from rpw.core.app import create_app
from rpw.core.errors import ConfigError
from rpw.core.settings import load_settings

from conftest import RP_ID, TOKEN_URL, make_id_token

HTTP_OK = 200
HTTP_NOT_MODIFIED = 304

UPSTREAM_BODY = json.dumps(
    {
        "access_token": "at-flow",
        "token_type": "Bearer",
        "expires_in": 86400,
        "id_token": make_id_token("RS256"),
    }
).encode()


class VerifyingIdP:
    """Accepts a code only with an assertion that verifies against the JWKS."""

    def __init__(self) -> None:
        self.jwks: dict[str, object] | None = None
        self.seen_jti: set[str] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        form = dict(httpx.QueryParams(request.content.decode()))
        if self.jwks is None or form.get("code") != "abc":
            return httpx.Response(400, json={"error": "invalid_grant"})
        token = form["client_assertion"]
        kid = jwt.get_unverified_header(token)["kid"]
        key = PyJWKSet.from_dict(self.jwks)[kid]
        try:
            claims = jwt.decode(
                token, key.key, algorithms=["RS256"], audience=TOKEN_URL
            )
        except jwt.PyJWTError:
            return httpx.Response(401, json={"error": "invalid_client"})
        if claims["jti"] in self.seen_jti or claims["iss"] != RP_ID:
            return httpx.Response(401, json={"error": "invalid_client"})
        self.seen_jti.add(claims["jti"])
        return httpx.Response(
            200, content=UPSTREAM_BODY, headers={"content-type": "application/json"}
        )


@pytest.fixture
def idp() -> VerifyingIdP:
    return VerifyingIdP()


@pytest.fixture
async def flow_client(idp: VerifyingIdP) -> AsyncIterator[AsyncClient]:
    app = create_app(transport=httpx.MockTransport(idp.handler))
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.integration
class TestTokenFlow:
    """End-to-end: publish keys, then exchange a code through the wrapper."""

    async def test_full_flow(self, flow_client: AsyncClient, idp: VerifyingIdP) -> None:
        # IdP fetches and caches the relying party's JWKS
        resp = await flow_client.get("/.well-known/keys")
        assert resp.status_code == HTTP_OK
        idp.jwks = resp.json()
        etag = resp.headers["etag"]

        resp = await flow_client.post(
            "/token",
            data={"client_id": "rp1", "code": "abc", "redirect_uri": "https://cb"},
        )
        assert resp.status_code == HTTP_OK
        assert resp.content == UPSTREAM_BODY

        # A second exchange carries a new assertion the IdP has not seen
        resp = await flow_client.post(
            "/token",
            json={"client_id": "rp1", "code": "abc", "redirect_uri": "https://cb"},
        )
        assert resp.status_code == HTTP_OK
        assert len(idp.seen_jti) == 2

        # Revalidating the JWKS is answered from cache
        resp = await flow_client.get(
            "/.well-known/keys", headers={"If-None-Match": etag}
        )
        assert resp.status_code == HTTP_NOT_MODIFIED

    async def test_upstream_rejection_relayed(self, flow_client: AsyncClient) -> None:
        resp = await flow_client.post(
            "/token",
            data={"client_id": "rp1", "code": "wrong", "redirect_uri": "https://cb"},
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "invalid_grant"}

    async def test_replicas_share_validator(self, flow_client: AsyncClient) -> None:
        replica = create_app()
        transport = ASGITransport(app=replica)
        async with AsyncClient(transport=transport, base_url="http://test") as other:
            a = await flow_client.get("/.well-known/keys")
            b = await other.get("/.well-known/keys")
        assert a.headers["etag"] == b.headers["etag"]


@pytest.mark.integration
def test_missing_configuration_fails_startup(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("RP_PRIVATE_KEY_RS256")
    with pytest.raises(ConfigError, match="No signing key configured for RS256"):
        create_app(load_settings())
