"""SUPAWATCH — Central Configuration via Pydantic Settings."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Provider ──
    provider_domain: str = "supabase.co"
    management_base_url: str = "https://api.supabase.com"
    users_table: str = "auth.users"
    metrics_principal: str = "service_role"

    # Percent gauges read from the privileged metrics endpoint.
    # Unset gauges report 0 until a real exposition parser is wired in.
    metrics_cpu_gauge: Optional[str] = None
    metrics_memory_gauge: Optional[str] = None
    metrics_disk_gauge: Optional[str] = None

    # ── Storage ──
    database_url: str = ""
    storage_encryption_key: str = ""

    # ── Upstream HTTP ──
    http_timeout_seconds: float = 15.0
    source_timeout_seconds: float = 20.0
    max_retries: int = 3
    retry_base_delay: float = 1.0  # seconds

    # ── Dashboard ──
    activity_limit: int = 10
    active_window_hours: int = 24

    # ── App ──
    log_level: str = "INFO"

    @property
    def effective_database_url(self) -> str:
        """Return the configured URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        return "sqlite:///./supawatch.db"

    @property
    def effective_activity_limit(self) -> int:
        """Recent-activity window, never more than 10 rows."""
        return max(0, min(self.activity_limit, 10))

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
