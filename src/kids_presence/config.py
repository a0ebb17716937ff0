"""Application configuration."""

import os
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    staff_token: str
    scan_marker: str = "IBI_KIDS"
    timezone: str = "UTC"
    session_name_prefix: str = "Sessão Geral"
    realtime_channel: str = "kids_presence_realtime"
    reconcile_delay_seconds: float = 1.2
    failure_reconcile_delay_seconds: float = 0.5
    feed_refresh_delay_seconds: float = 0.8
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def zone(self) -> ZoneInfo:
        """Timezone used to decide what "today" means for sessions."""
        return ZoneInfo(self.timezone)
