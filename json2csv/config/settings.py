# Configuration management

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict  # type: ignore
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # Data directory (host contract: config.json, in/, out/tables/)
    data_dir: str = Field(default="/data", validation_alias="KBC_DATADIR")

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Observability
    metrics_enabled: bool = True
    metrics_textfile: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
