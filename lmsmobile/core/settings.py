"""Application settings loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

HTTP_TIMEOUT_DEFAULT = 30.0
HTTP_TIMEOUT_MIN = 1.0
HTTP_TIMEOUT_MAX = 60.0
JWKS_CACHE_TTL_DEFAULT = 3600
DB_POOL_SIZE_DEFAULT = 5
DB_MAX_OVERFLOW_DEFAULT = 10
DB_PORT_DEFAULT = 5432


class DatabaseSettings(BaseSettings):
    """PostgreSQL connection settings for the verification audit log."""

    model_config = SettingsConfigDict(env_prefix="LMS_MOBILE_DB_")

    host: str = "localhost"
    port: int = DB_PORT_DEFAULT
    user: str = "lmsmobile"
    password: str = "lmsmobile"
    database: str = "lmsmobile"
    pool_size: int = DB_POOL_SIZE_DEFAULT
    max_overflow: int = DB_MAX_OVERFLOW_DEFAULT

    @property
    def async_url(self) -> str:
        """Build async PostgreSQL connection URL."""
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class VerificationSettings(BaseSettings):
    """Provider credentials and verification behaviour."""

    model_config = SettingsConfigDict(env_prefix="LMS_MOBILE_")

    # In-app purchases
    apple_shared_secret: str = ""
    apple_sandbox: bool = False
    google_service_account: str = ""

    # Push notifications
    firebase_project_id: str = ""
    firebase_service_account: str = ""

    # Social login
    social_enabled: bool = False
    apple_client_id: str = ""
    google_client_id: str = ""
    facebook_app_id: str = ""
    facebook_app_secret: str = ""

    # Transport and caching
    http_timeout: float = Field(
        default=HTTP_TIMEOUT_DEFAULT, ge=HTTP_TIMEOUT_MIN, le=HTTP_TIMEOUT_MAX
    )
    jwks_cache_ttl: int = Field(default=JWKS_CACHE_TTL_DEFAULT, ge=0)
    access_token_cache: bool = False

    # Secrets at rest, admin access and audit
    secrets_encryption_key: str = ""
    admin_token: str = ""
    audit_persist: bool = False
    log_level: str = "INFO"

    def enabled_social_providers(self) -> list[str]:
        """Providers the mobile client may offer on the login screen."""
        providers = []
        if self.facebook_app_id:
            providers.append("facebook")
        if self.google_client_id:
            providers.append("google")
        providers.append("apple")
        return providers
