"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"
    VERSION: str = "1.00.00"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 8

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Frontend (OAuth callbacks redirect here)
    FRONTEND_URL: str = "http://localhost:3000"

    # Token Encryption (for storing OAuth tokens)
    TOKEN_ENCRYPTION_KEY: str = ""

    # Google Calendar OAuth
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/api/admin/google/callback"
    CALENDAR_TIMEZONE: str = "Europe/Paris"

    # Microsoft OneDrive OAuth
    # 'consumers' for personal accounts, 'organizations' for work/school, or a tenant ID
    MICROSOFT_CLIENT_ID: str = ""
    MICROSOFT_CLIENT_SECRET: str = ""
    MICROSOFT_TENANT_ID: str = "consumers"
    MICROSOFT_REDIRECT_URI: str = "http://localhost:8000/api/admin/microsoft/callback"
    ONEDRIVE_ROOT_FOLDER: str = "Portail Cabinet"

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = 30.0
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_INITIAL_DELAY_SECONDS: float = 1.0
    RETRY_MAX_DELAY_SECONDS: float = 30.0

    # Integrations
    TOKEN_REFRESH_MARGIN_SECONDS: int = 300
    HEALTH_CACHE_SECONDS: int = 30

    # Worker
    WORKER_POLL_INTERVAL_SECONDS: int = 10
    WORKER_BATCH_SIZE: int = 10

    # Rate limiting
    RATE_LIMIT_LOGIN: str = "10/minute"
    RATE_LIMIT_SEARCH: str = "30/minute"

    # Two-factor
    TOTP_ISSUER: str = "Cabinet Avocats"

    # Error tracking
    SENTRY_DSN: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Current secret first, previous one accepted during rotation."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies everywhere except local development."""
        return self.ENV != "dev"

    @property
    def google_configured(self) -> bool:
        return bool(self.GOOGLE_CLIENT_ID and self.GOOGLE_CLIENT_SECRET)

    @property
    def microsoft_configured(self) -> bool:
        return bool(self.MICROSOFT_CLIENT_ID and self.MICROSOFT_CLIENT_SECRET)

    @property
    def microsoft_authorize_url(self) -> str:
        return f"https://login.microsoftonline.com/{self.MICROSOFT_TENANT_ID}/oauth2/v2.0/authorize"

    @property
    def microsoft_token_url(self) -> str:
        return f"https://login.microsoftonline.com/{self.MICROSOFT_TENANT_ID}/oauth2/v2.0/token"


settings = Settings()
