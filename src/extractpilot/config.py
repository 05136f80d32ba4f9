"""
ExtractPilot Settings

Runtime settings read from environment variables.

    EP_MAX_RECORD_LENGTH   Maximum total output line length (default 32000)
    EP_ERROR_THRESHOLD     Default batch error threshold, 0 = unlimited
    EP_VALIDATION_WORKERS  Worker count for multi-record validation
    EP_LOG_LEVEL           Log level for the extractpilot logger
    EP_DOCS_ENABLED        Expose OpenAPI docs on the HTTP surface
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


DEFAULT_MAX_RECORD_LENGTH = 32000


@dataclass(frozen=True)
class Settings:
    """Immutable runtime settings."""
    max_record_length: int = DEFAULT_MAX_RECORD_LENGTH
    error_threshold: int = 0
    validation_workers: int = 1
    log_level: str = "INFO"
    docs_enabled: bool = True

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from EP_* environment variables."""
        return cls(
            max_record_length=int(os.getenv("EP_MAX_RECORD_LENGTH", str(DEFAULT_MAX_RECORD_LENGTH))),
            error_threshold=int(os.getenv("EP_ERROR_THRESHOLD", "0")),
            validation_workers=max(1, int(os.getenv("EP_VALIDATION_WORKERS", "1"))),
            log_level=os.getenv("EP_LOG_LEVEL", "INFO").upper(),
            docs_enabled=os.getenv("EP_DOCS_ENABLED", "true").lower() == "true",
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read once."""
    return Settings.from_env()
