# netwatch/config.py
# ------------------------------------------------------------
# Central configuration using pydantic-settings.
#
# All values can be overridden via environment variables.
# Domain objects receive these values explicitly at wiring time
# (see services.py); nothing else imports the singleton.
# ------------------------------------------------------------

from pydantic_settings import BaseSettings
from typing import List, Literal, Optional


class Settings(BaseSettings):
    """
    Runtime configuration for the backend.
    """

    # --------------------------------------------------------
    # Admin settings (cache reset)
    # --------------------------------------------------------
    admin_cooldown_sec: int = 300   # 5 minutes

    # --------------------------------------------------------
    # Infrastructure
    # --------------------------------------------------------
    redis_url: str = "redis://localhost:6379/0"
    store_backend: Literal["redis", "memory"] = "redis"
    log_level: str = "INFO"

    # --------------------------------------------------------
    # CORS / Frontend integration
    # --------------------------------------------------------
    api_cors_origins: str = (
        "http://localhost:5173,"
        "http://localhost:3000"
    )

    # --------------------------------------------------------
    # Tracked country + provider endpoints
    # --------------------------------------------------------
    country_code: str = "IR"

    ooni_base_url: str = "https://api.ooni.io/api/v1"
    ioda_base_url: str = "https://api.ioda.inetintel.cc.gatech.edu/v2"
    cloudflare_base_url: str = "https://api.cloudflare.com/client/v4/radar"
    cloudflare_api_token: Optional[str] = None
    ripe_base_url: str = "https://atlas.ripe.net/api/v2"

    # Upper bound for a single provider call (seconds)
    source_timeout_sec: float = 10.0

    # --------------------------------------------------------
    # Measurement windows
    # --------------------------------------------------------
    measurement_window_hours: int = 24
    measurement_limit: int = 200

    # --------------------------------------------------------
    # Cache expiries (seconds)
    # --------------------------------------------------------
    dashboard_cache_sec: int = 300
    source_cache_sec: int = 600
    timeline_cache_sec: int = 1800

    # --------------------------------------------------------
    # Alerts
    # --------------------------------------------------------
    alert_window_hours: int = 24
    alert_limit: int = 20
    alert_capacity: int = 50

    # --------------------------------------------------------
    # Telemetry
    # --------------------------------------------------------
    telemetry_capacity: int = 100
    telemetry_endpoint: Optional[str] = None

    # --------------------------------------------------------
    # Background refresh
    # --------------------------------------------------------
    refresh_enabled: bool = True
    refresh_interval_sec: int = 300

    # --------------------------------------------------------
    # Helpers
    # --------------------------------------------------------
    def cors_list(self) -> List[str]:
        """
        Parse comma-separated CORS origins into a clean list.
        """
        return [
            x.strip()
            for x in self.api_cors_origins.split(",")
            if x.strip()
        ]


# Singleton settings object
settings = Settings()
