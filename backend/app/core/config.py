import json
import logging
from pathlib import Path

from pydantic_settings import BaseSettings

# Application version - single source of truth
APP_VERSION = "0.3.1"

# Base directory for path calculations
_base_dir = Path(__file__).resolve().parent.parent.parent.parent

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    app_name: str = "Printer Board"
    debug: bool = False  # Default to production mode
    environment: str = "development"  # "production" hides error details

    # Paths
    base_dir: Path = _base_dir
    log_dir: Path = base_dir / "logs"
    database_url: str = f"sqlite+aiosqlite:///{_base_dir / 'printers.db'}"

    # Logging
    log_level: str = "INFO"  # Override with LOG_LEVEL env var or DEBUG=true
    log_to_file: bool = False  # Set to true to enable file logging

    # API
    api_prefix: str = "/api/v1"
    frontend_url: str = "http://localhost:5173"
    admin_api_key: str | None = None  # Sent by clients as X-API-Key

    # Rate limiting
    rate_limit_enabled: bool = True
    default_rate_limit: str = "120/minute"
    live_rate_limit: str = "20 per 30 seconds"

    # Ultimaker Digital Factory (cloud path)
    ultimaker_client_id: str | None = None
    ultimaker_client_secret: str | None = None
    ultimaker_api_base: str = "https://api.ultimaker.com"
    ultimaker_scope: str = "um.df.organization.printers.read"
    ultimaker_cloud_timeout: float = 10.0

    # Direct device path: JSON object mapping printer_key -> host/IP
    printer_ips: str = "{}"
    device_timeout: float = 5.0

    # Live status cache
    live_cache_ttl: float = 30.0
    token_refresh_margin: float = 30.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cloud_configured(self) -> bool:
        """Cloud credentials present selects the Digital Factory source."""
        return bool(self.ultimaker_client_id and self.ultimaker_client_secret)

    def device_addresses(self) -> dict[str, str]:
        """Parse PRINTER_IPS into a key -> address mapping.

        Invalid JSON is logged and treated as an empty mapping so the service
        still starts; every live lookup then reports key_not_configured.
        """
        try:
            data = json.loads(self.printer_ips or "{}")
        except json.JSONDecodeError:
            logger.warning("PRINTER_IPS is not valid JSON - live device data unavailable")
            return {}
        if not isinstance(data, dict):
            logger.warning("PRINTER_IPS must be a JSON object - live device data unavailable")
            return {}
        return {str(key): str(value) for key, value in data.items() if value}


settings = Settings()

if settings.log_to_file:
    settings.log_dir.mkdir(exist_ok=True)
