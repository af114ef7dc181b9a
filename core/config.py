"""
Loader configuration using Pydantic Settings
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, Optional


DEFAULT_SHARDS = {
    "idfa": "127.0.0.1:33013",
    "gaid": "127.0.0.1:33014",
    "adid": "127.0.0.1:33015",
    "dvid": "127.0.0.1:33016",
}


class Settings(BaseSettings):
    """Loader settings with environment variable support"""

    # Input
    PATTERN: str = "./[!.]*.tsv.gz"

    # Shards: device type -> host:port
    SHARDS: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_SHARDS))

    # Writer pool
    WORKERS: int = Field(4, ge=1)
    TIMEOUT_MS: int = Field(500, ge=1)
    RETRY: int = Field(5, ge=1)
    RETRY_DELAY: float = Field(3.0, ge=0)
    DRY_RUN: bool = False

    # Pipeline
    QUEUE_SIZE: int = Field(1024, ge=1)
    ERROR_RATE_THRESHOLD: float = Field(0.01, gt=0, le=1)

    # Logging
    LOG_FILE: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    @property
    def timeout_seconds(self) -> float:
        return self.TIMEOUT_MS / 1000
