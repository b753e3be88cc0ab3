"""Configuration from environment (no hardcoded secrets)."""

from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Gateway settings from env."""

    model_config = SettingsConfigDict(env_prefix="FILEGATE_", extra="ignore")

    # Metadata store
    db_path: Path = Path("/data/filegate.db")

    # Blob store: objects live under storage_base_path and are served at public_base_url/blobs/...
    storage_base_path: Path = Path("/data/blobs")
    public_base_url: str = "http://localhost:8080"

    # Session grants for gallery / share passwords
    session_secret: str = ""
    session_algorithm: str = "HS256"
    share_session_days: int = 7
    environment: str = "development"

    # Sharing-button settings cache
    settings_cache_ttl_seconds: int = 300

    # Upstream fetches (blob store, image proxy)
    upstream_timeout_seconds: float = 30.0
    proxy_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    )

    # Uploads (100 MB default, same as the dashboard limit)
    max_upload_bytes: int = 100 * 1024 * 1024

    # Redirect bare /<folderId>/<fileName> links to /api/direct/...
    legacy_direct_redirect: bool = True

    rate_limit_enabled: bool = True

    # CORS: comma-separated string so pydantic-settings does not try to JSON-decode it
    cors_origins: str = "http://localhost:3000"

    @property
    def cors_origins_list(self) -> List[str]:
        """CORS origins as a list (split on comma)."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        """True when cookies must be marked secure."""
        return self.environment.strip().lower() == "production"

    # Logging (empty log_file = stderr only; level DEBUG|INFO|WARNING|ERROR)
    log_level: str = "INFO"
    log_file: str = ""


def get_settings() -> Settings:
    """Return application settings."""
    return Settings()
