"""Runtime settings.

Two surfaces only: environment variables (REGSERIALIZER_*) and CLI flags,
which take precedence.
"""

from enum import Enum
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from regserializer.kernel.entry import EntryFormat

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ErrorPolicy(str, Enum):
    """What to do with a record that fails to serialize."""

    FAIL = "fail"
    SKIP = "skip"


class Settings(BaseSettings):
    """Serializer settings."""

    log_level: str = "WARNING"
    on_error: ErrorPolicy = ErrorPolicy.FAIL
    entry_format: EntryFormat = EntryFormat.PLAIN
    timestamp: Optional[str] = None

    model_config = SettingsConfigDict(env_prefix="REGSERIALIZER_")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}, got '{v}'")
        return level

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.endswith("Z"):
            raise ValueError(f"timestamp must be ISO 8601 UTC ending in 'Z', got '{v}'")
        return v
