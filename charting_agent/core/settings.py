# charting_agent/core/settings.py
from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(val: Optional[str], default: List[str] | None = None) -> List[str]:
    if not val:
        return list(default or [])
    return [p.strip() for p in val.split(",") if p.strip()]


class Settings(BaseSettings):
    # --- App ---
    APP_NAME: str = "Charting Agent"
    APP_DESCRIPTION: str = (
        "Analyzes CSV data to suggest chart types and renders bar, line and pie charts as PNG images."
    )
    APP_ENV: str = "development"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"
    # None -> JSON logs everywhere except development
    LOG_JSON: Optional[bool] = None
    LOG_FILE: Optional[str] = None

    # --- HTTP ---
    API_PREFIX: str = "/api"
    PUBLIC_URL: str = "http://localhost:8000"
    # comma separated, "*" allows any origin
    ALLOWED_ORIGINS: str = "*"

    # --- CSV ---
    # None -> sniff among , ; tab |
    CSV_DELIMITER: Optional[str] = None

    # --- Chart canvas ---
    CHART_WIDTH: int = 800
    CHART_HEIGHT: int = 600
    CHART_DPI: int = 100
    CHART_STYLE: str = "whitegrid"
    CHART_FONT_PATH: Optional[str] = None
    CHART_FONT_FAMILY: str = "Noto Sans"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("API_PREFIX")
    @classmethod
    def _normalize_prefix(cls, v: str) -> str:
        v = (v or "").strip().rstrip("/")
        if v and not v.startswith("/"):
            v = "/" + v
        return v

    @field_validator("CSV_DELIMITER")
    @classmethod
    def _check_delimiter(cls, v: Optional[str]) -> Optional[str]:
        if v in (None, ""):
            return None
        if v in ("\\t", "tab"):
            return "\t"
        if len(v) != 1:
            raise ValueError("CSV_DELIMITER must be a single character")
        return v

    @property
    def allowed_origins(self) -> List[str]:
        return _split_csv(self.ALLOWED_ORIGINS, default=["*"])

    @property
    def json_logs(self) -> bool:
        if self.LOG_JSON is None:
            return self.APP_ENV.lower() != "development"
        return self.LOG_JSON


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor."""
    return Settings()
