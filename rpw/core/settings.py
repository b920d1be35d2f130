"""Application settings loaded from environment variables."""

from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from rpw.core.errors import ConfigError

DEFAULT_SIGNING_ALG = "RS256"
DEFAULT_TOKEN_ENDPOINT = "/oauth/token"
UPSTREAM_TIMEOUT_DEFAULT = 10.0
JWKS_MAX_AGE_DEFAULT = 3600


class RelaySettings(BaseSettings):
    """Relying-party identity, signing keys and upstream IdP settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    rp_id: str
    client_secret: str = Field(
        default="",
        validation_alias=AliasChoices("rp_client_secret", "a0_client_secret"),
    )

    rp_private_key_rs256: str = ""
    rp_kid_rs256: str = ""
    rp_private_key_ps256: str = ""
    rp_kid_ps256: str = ""
    rp_private_key_es256: str = ""
    rp_kid_es256: str = ""
    rp_key_encryption_key: str = ""
    rp_jwks_file: str = ""
    rp_client_assertion_signing_alg: str = DEFAULT_SIGNING_ALG

    idp_domain: str
    idp_token_endpoint: str = DEFAULT_TOKEN_ENDPOINT
    accepted_id_token_algs: str = "RS256"
    upstream_timeout: float = UPSTREAM_TIMEOUT_DEFAULT

    jwks_max_age: int = JWKS_MAX_AGE_DEFAULT
    debug: bool = False
    log_format: str = "json"

    @property
    def idp_base_url(self) -> str:
        """Base URL of the identity provider, with trailing slash."""
        return f"https://{self.idp_domain.strip('/')}/"

    @property
    def idp_token_url(self) -> str:
        """Absolute URL of the upstream token endpoint."""
        path = self.idp_token_endpoint
        if not path.startswith("/"):
            path = f"/{path}"
        return f"https://{self.idp_domain.strip('/')}{path}"

    def get_assertion_audience(self) -> list[str]:
        """Audience claim for client assertions: IdP base and token URL."""
        return [self.idp_base_url, self.idp_token_url]

    def get_accepted_alg_list(self) -> list[str]:
        """Parse comma-separated accepted ID token algorithms."""
        return [
            a.strip() for a in self.accepted_id_token_algs.split(",") if a.strip()
        ]

    def get_key_sources(self) -> dict[str, tuple[str, str]]:
        """Return configured ``{algorithm: (private_key, kid)}`` pairs."""
        candidates = {
            "RS256": (self.rp_private_key_rs256, self.rp_kid_rs256),
            "PS256": (self.rp_private_key_ps256, self.rp_kid_ps256),
            "ES256": (self.rp_private_key_es256, self.rp_kid_es256),
        }
        return {alg: pair for alg, pair in candidates.items() if pair[0]}


def load_settings() -> RelaySettings:
    """Read settings once at startup; missing required values are fatal."""
    try:
        return RelaySettings()  # type: ignore[call-arg]
    except ValidationError as exc:
        missing = sorted(
            str(err["loc"][0]).upper() for err in exc.errors() if err["loc"]
        )
        raise ConfigError(f"Invalid configuration: {', '.join(missing)}") from exc
