from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database (":memory:" keeps the store process-local)
    db_path: str = ":memory:"

    # Session cookies
    session_secret: str = "change-me"

    # Notion OAuth application
    notion_client_id: str = ""
    notion_client_secret: str = ""
    notion_redirect_uri: str = "http://0.0.0.0:5000/auth/external/callback"
    notion_api_url: str = "https://api.notion.com/v1"
    notion_version: str = "2022-06-28"

    # Sync simulation timings (seconds)
    sync_completion_delay: float = 2.0
    sync_timeout: float = 30.0
    sync_cleanup_delay: float = 0.5
    sync_total_records: int = 100

    # Rate limiting, per client per window
    rate_limit_window_seconds: int = 15 * 60
    rate_limit_auth: int = 5
    rate_limit_oauth_callback: int = 10
    rate_limit_auth_api: int = 100
    rate_limit_read: int = 100
    rate_limit_write: int = 50
    rate_limit_sync: int = 10

    # List query bounds
    default_query_limit: int = 100
    max_query_limit: int = 1000

    # Optional settings
    seed_sample_data: bool = False
    debug: bool = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
