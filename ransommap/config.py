from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    shodan_api_key: str | None = None
    search_query: str = "has_screenshot:true encrypted bitcoin"
    result_limit: int = Field(default=100, ge=1)
    page_size: int = Field(default=100, ge=1)
    request_timeout_seconds: float = 20.0
    min_request_interval_seconds: float = 1.0
    output_csv: Path = Path("ransomware_hosts.csv")
    output_html: Path = Path("ransomware_map.html")
    log_level: str = "INFO"
    log_json: bool = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
