"""Type definitions for signing keys, JWKS and client assertions."""

from datetime import datetime

from cryptography.hazmat.primitives.asymmetric.ec import (
    EllipticCurvePrivateKey,
    EllipticCurvePublicKey,
)
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey
from pydantic import BaseModel, ConfigDict, Field


class SigningKey(BaseModel):
    """A loaded private signing key with its algorithm and key-id."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    algorithm: str
    kid: str
    private_key: RSAPrivateKey | EllipticCurvePrivateKey = Field(repr=False)
    public_key: RSAPublicKey | EllipticCurvePublicKey = Field(repr=False)


class JWKEntry(BaseModel):
    """Single public JWK entry (RSA or EC) in a JWKS response."""

    model_config = ConfigDict(extra="allow")

    kty: str
    use: str = "sig"
    alg: str | None = None
    kid: str
    n: str | None = None
    e: str | None = None
    crv: str | None = None
    x: str | None = None
    y: str | None = None


class PublicKeySet(BaseModel):
    """JSON Web Key Set published for the identity provider."""

    keys: list[JWKEntry]


class SignedAssertion(BaseModel):
    """A signed private_key_jwt client assertion and its identifying claims."""

    token: str = Field(repr=False)
    jti: str
    kid: str
    issued_at: datetime
    expires_at: datetime


class AssertionClaims(BaseModel):
    """Decoded and verified client assertion claims."""

    model_config = ConfigDict(extra="allow")

    iss: str
    sub: str
    aud: list[str]
    iat: int
    exp: int
    jti: str
