"""Configuration settings for ArguFight."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "ArguFight"
    port: int = 8787
    log_level: str = "INFO"
    timezone: str = "UTC"  # Timezone for timestamps (e.g., "America/New_York", "Europe/London")

    # Database
    database_url: str = "sqlite+aiosqlite:////data/argufight.db"

    # Admin settings store
    settings_cache_ttl: int = 300  # Feature flag propagation window (5 minutes)
    strict_setting_keys: bool = False  # Reject keys missing from the registry

    # User auth (JWT)
    jwt_secret_key: str = "CHANGE-ME-IN-PRODUCTION"
    jwt_access_token_expire_minutes: int = 24 * 60
    jwt_cookie_secure: bool = False

    # CORS settings
    cors_origins: str = '["https://www.argufight.com", "http://localhost:3000"]'

    # Integration endpoints used by the admin "test connection" buttons
    integration_timeout: float = 10.0
    deepseek_api_base: str = "https://api.deepseek.com"
    resend_api_base: str = "https://api.resend.com"
    stripe_api_base: str = "https://api.stripe.com"
    google_oauth_token_url: str = "https://oauth2.googleapis.com/token"
    google_analytics_api_base: str = "https://analyticsdata.googleapis.com/v1beta"


settings = Settings()
