"""Logging configuration."""

import logging

from pydantic import BaseModel, Field, field_validator

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class LogConf(BaseModel):
    """Configuration for the process logger."""

    level: str = Field(
        default="INFO",
        description="Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    format: str = Field(
        default=DEFAULT_LOG_FORMAT,
        description="Format string passed to logging.basicConfig",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    def apply(self) -> None:
        """Configure the root logger."""
        logging.basicConfig(level=self.level, format=self.format, force=True)
