"""Private key parsing, generation, encryption and JWK conversion."""

import base64

from cryptography.exceptions import UnsupportedAlgorithm as CryptoUnsupported
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.asymmetric.ec import (
    EllipticCurvePrivateKey,
    EllipticCurvePublicKey,
)
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey

from rpw.core.errors import ConfigError
from rpw.crypto.types import JWKEntry, SigningKey

RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537

RSA_ALGORITHMS = frozenset({"RS256", "PS256"})
EC_ALGORITHMS = {"ES256": ("P-256", ec.SECP256R1)}
SUPPORTED_ALGORITHMS = RSA_ALGORITHMS | frozenset(EC_ALGORITHMS)


def generate_private_key_pem(algorithm: str = "RS256") -> str:
    """Generate a PKCS8 PEM private key suitable for ``algorithm``."""
    private_key: RSAPrivateKey | EllipticCurvePrivateKey
    if algorithm in RSA_ALGORITHMS:
        private_key = rsa.generate_private_key(
            public_exponent=RSA_PUBLIC_EXPONENT,
            key_size=RSA_KEY_SIZE,
        )
    elif algorithm in EC_ALGORITHMS:
        private_key = ec.generate_private_key(EC_ALGORITHMS[algorithm][1]())
    else:
        raise ConfigError(f"Unsupported signing algorithm: {algorithm}")
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


def encrypt_private_key(private_pem: str, fernet_key: str) -> str:
    """Encrypt a PEM private key with Fernet for at-rest storage."""
    cipher = Fernet(fernet_key.encode())
    return cipher.encrypt(private_pem.encode()).decode()


def decrypt_private_key(encrypted: str, fernet_key: str) -> str:
    """Decrypt a Fernet-encrypted PEM private key."""
    cipher = Fernet(fernet_key.encode())
    try:
        return cipher.decrypt(encrypted.encode()).decode()
    except InvalidToken as exc:
        raise ConfigError("Private key could not be decrypted") from exc


def _normalise_pem(raw: str) -> str:
    """Undo ``\\n`` escaping commonly used for PEM blobs in env files."""
    return raw.strip().replace("\\r\\n", "\n").replace("\\n", "\n")


def load_signing_key(private_pem: str, algorithm: str, kid: str) -> SigningKey:
    """Parse a PKCS8 PEM private key and check it fits ``algorithm``."""
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise ConfigError(f"Unsupported signing algorithm: {algorithm}")
    if not kid:
        raise ConfigError(f"Missing key-id for {algorithm} signing key")
    try:
        loaded = serialization.load_pem_private_key(
            _normalise_pem(private_pem).encode(), password=None
        )
    except (ValueError, TypeError, CryptoUnsupported) as exc:
        raise ConfigError(f"{algorithm} private key could not be parsed") from exc

    if algorithm in RSA_ALGORITHMS:
        if not isinstance(loaded, RSAPrivateKey):
            raise ConfigError(f"{algorithm} requires an RSA private key")
        if loaded.key_size < RSA_KEY_SIZE:
            raise ConfigError(f"{algorithm} key must be at least {RSA_KEY_SIZE} bits")
        return SigningKey(
            algorithm=algorithm,
            kid=kid,
            private_key=loaded,
            public_key=loaded.public_key(),
        )

    curve_cls = EC_ALGORITHMS[algorithm][1]
    if not isinstance(loaded, EllipticCurvePrivateKey) or not isinstance(
        loaded.curve, curve_cls
    ):
        raise ConfigError(f"{algorithm} requires an EC {curve_cls.name} private key")
    return SigningKey(
        algorithm=algorithm,
        kid=kid,
        private_key=loaded,
        public_key=loaded.public_key(),
    )


def _int_to_base64url(value: int, length: int | None = None) -> str:
    """Encode an integer as base64url without padding."""
    byte_length = length or (value.bit_length() + 7) // 8
    raw = value.to_bytes(byte_length, byteorder="big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def public_key_to_jwk_entry(key: SigningKey) -> JWKEntry:
    """Convert the public half of a signing key to JWK format."""
    public = key.public_key
    if isinstance(public, RSAPublicKey):
        numbers = public.public_numbers()
        return JWKEntry(
            kty="RSA",
            alg=key.algorithm,
            kid=key.kid,
            n=_int_to_base64url(numbers.n),
            e=_int_to_base64url(numbers.e),
        )
    assert isinstance(public, EllipticCurvePublicKey)
    crv = EC_ALGORITHMS[key.algorithm][0]
    size = (public.curve.key_size + 7) // 8
    ec_numbers = public.public_numbers()
    return JWKEntry(
        kty="EC",
        alg=key.algorithm,
        kid=key.kid,
        crv=crv,
        x=_int_to_base64url(ec_numbers.x, size),
        y=_int_to_base64url(ec_numbers.y, size),
    )
