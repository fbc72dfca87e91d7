"""Application configuration using Pydantic Settings."""

from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings

# Resolve config: prefer system config (installed), fall back to repo .env (dev)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_SYSTEM_CONF = Path("/etc/canary-wx/canary-wx.conf")
_ENV_FILE = _SYSTEM_CONF if _SYSTEM_CONF.exists() else _PROJECT_ROOT / ".env"
_DEFAULT_CATALOG = Path(__file__).resolve().parent / "data" / "stations.json"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    # AEMET OpenData (primary live source, historical import)
    aemet_api_key: str = ""
    aemet_base_url: str = "https://opendata.aemet.es/opendata/api"

    # Open-Meteo (fallback live source, air quality)
    open_meteo_base_url: str = "https://api.open-meteo.com/v1"
    air_quality_base_url: str = "https://air-quality-api.open-meteo.com/v1"

    # Per-request timeout for every upstream call (seconds)
    request_timeout: float = 10.0

    # Local time zone used for the day/night switch
    timezone: str = "Atlantic/Canary"

    # Live weather caches
    rate_limit_ttl_sec: int = 15 * 60
    offline_cache_ttl_sec: int = 24 * 60 * 60

    # Serve canned snapshots instead of calling any source (UI development)
    mock_weather: bool = False

    # Station catalog (empty = packaged data/stations.json)
    catalog_path: str = ""

    # Database
    db_path: str = "canary_wx.db"

    # Historical import
    import_dir: str = "import"
    import_start_year: int = 2016
    import_end_year: int = 2026
    import_period_delay_sec: float = 10.0
    import_retry_delay_sec: float = 30.0
    import_max_retries: int = 3
    import_station_delay_sec: float = 60.0
    upload_batch_size: int = 500

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Make db_path and import_dir absolute: relative to /var/lib/canary-wx if installed, else project root."""
        base = Path("/var/lib/canary-wx") if _ENV_FILE == _SYSTEM_CONF else _PROJECT_ROOT
        for field_name in ("db_path", "import_dir"):
            p = Path(getattr(self, field_name))
            if not p.is_absolute():
                setattr(self, field_name, str(base / p))
        return self

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.db_path}"

    @property
    def catalog_file(self) -> Path:
        return Path(self.catalog_path) if self.catalog_path else _DEFAULT_CATALOG

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = {"env_prefix": "CANARY_WX_", "env_file": str(_ENV_FILE)}


settings = Settings()
