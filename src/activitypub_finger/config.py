"""Configuration for the ActivityPub-to-Finger gateway."""

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .activitypub_types import is_valid_address


class FingerConfig(BaseSettings):
    """Finger (TCP) server settings."""

    model_config = SettingsConfigDict(
        env_prefix="FINGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    host: str = Field(
        default="0.0.0.0",
        description="Host address for the Finger server"
    )
    # Finger is port 79, which needs root; bind 7900 and map it instead
    port: int = Field(
        default=7900,
        ge=1,
        le=65535,
        description="Port for the Finger server"
    )
    default_address: str = Field(
        default="@BoD@mastodon.social",
        validation_alias=AliasChoices("FINGER_DEFAULT_ADDRESS", "DEFAULT_ADDRESS"),
        description="Address queried when the request line is empty"
    )
    default_address_alias: str = Field(
        default="BoD",
        validation_alias=AliasChoices("FINGER_DEFAULT_ADDRESS_ALIAS", "DEFAULT_ADDRESS_ALIAS"),
        description="Name that also selects the default address (case-insensitive)"
    )
    post_limit: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Number of posts shown per request"
    )
    wrap_width: int = Field(
        default=72,
        ge=1,
        description="Column width of the text response"
    )

    @field_validator("default_address")
    @classmethod
    def validate_default_address(cls, v: str) -> str:
        """Ensure the default address has the @user@host form."""
        if not is_valid_address(v):
            raise ValueError(f"Invalid default address: {v}")
        return v


class HttpConfig(BaseSettings):
    """Public HTTP server settings (actor document and WebFinger)."""

    model_config = SettingsConfigDict(
        env_prefix="PUBLIC_HTTP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    server_name: str = Field(
        ...,
        description="Public host name of this server (e.g., finger.example.com)"
    )
    host: str = Field(
        default="0.0.0.0",
        description="Host address for the HTTP server"
    )
    port: int = Field(
        default=8042,
        ge=1,
        le=65535,
        description="Port for the HTTP server"
    )

    @field_validator("server_name")
    @classmethod
    def validate_server_name(cls, v: str) -> str:
        """Strip scheme and trailing slash if given."""
        v = v.strip()
        for prefix in ("https://", "http://"):
            v = v.removeprefix(prefix)
        v = v.rstrip("/")
        if not v:
            raise ValueError("Public server name is required")
        return v

    @property
    def base_url(self) -> str:
        """Public URL of this server (HTTPS is required for federation)."""
        return f"https://{self.server_name}"


class IdentityConfig(BaseSettings):
    """Identity key settings."""

    model_config = SettingsConfigDict(
        env_prefix="IDENTITY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    private_key_path: str = Field(
        default="activitypub_finger_identity.pem",
        description="Path to RSA private key for HTTP signatures. Generated if missing."
    )
    user_name: str = Field(
        default="",
        description="Local account name (derived from the public key if empty)"
    )


class ClientConfig(BaseSettings):
    """Outbound ActivityPub client settings."""

    model_config = SettingsConfigDict(
        env_prefix="AP_CLIENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Connect, socket and request timeout for each outbound call"
    )
    user_agent: str = Field(
        default="ActivityPubFinger/1.0",
        description="User-Agent header for outbound requests"
    )


class GatewayConfig(BaseSettings):
    """Main gateway configuration combining all settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Sub-configs
    finger: FingerConfig = Field(default_factory=FingerConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)

    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @classmethod
    def from_yaml(cls, path: str) -> "GatewayConfig":
        """Load configuration from YAML file."""
        import yaml
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})


def load_config() -> GatewayConfig:
    """Load configuration from environment and .env file."""
    return GatewayConfig()
