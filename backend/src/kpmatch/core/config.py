import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Project Paths
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = Path(
        os.getenv("KPMATCH_DATA_DIR", str(BASE_DIR.parent / "data"))
    )

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_RETENTION: str = "10 days"
    LOG_ROTATION: str = "10 MB"
    UNRESOLVED_LOG_NAME: str = "unresolved.log"

    @property
    def LOG_DIR(self) -> Path:
        return self.DATA_DIR / "logs"

    # Catalog (Kinopoisk)
    KP_API_URL: str = "https://kinopoiskapiunofficial.tech/api"
    KP_API_KEY: str = ""
    KP_WEB_DOMAIN: str = "www.kinopoisk.ru"
    KP_RATE_LIMIT_DELAY: float = 0.2  # Seconds between catalog requests
    HTTP_TIMEOUT: float = 30.0

    # Resolution
    RESOLVE_MAX_WORKERS: int = 5
    YEAR_PROXIMITY: int = 2  # Phase B rejects |delta year| >= this
    DETAILS_SELECTOR: str = "table#details"
    # Off: yearless search hits are accepted on year proximity alone (more recall).
    # On: they must also pass the similarity filter (fewer false positives).
    STRICT_FALLBACK: bool = False


settings = Settings()

# Ensure data directory exists
settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
