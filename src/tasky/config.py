"""Configuration models for tasky."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


class StoreConfig(BaseModel):
    """Configuration for the task store backend."""

    type: Literal["file", "http"] = "file"
    path: str = ".tasky/tasks.json"
    # HTTP-specific options
    api_url: str | None = None
    token: str | None = None


class LoggingConfig(BaseModel):
    """Configuration for log output."""

    level: str = "WARNING"
    file: str | None = ".tasky/tasky.log"


class TaskyConfig(BaseModel):
    """Main configuration for tasky."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    default_list: str | None = None

    @classmethod
    def load(cls, path: Path | None = None) -> TaskyConfig:
        """Load configuration from file or return defaults."""
        if path is None:
            path = CONFIG_FILE

        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        return cls.model_validate(data)

    def save(self, path: Path | None = None) -> None:
        """Save configuration to file."""
        if path is None:
            path = CONFIG_FILE

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(self.model_dump(exclude_none=True), f, indent=2)


# Default config directory
TASKY_DIR = Path(".tasky")
CONFIG_FILE = TASKY_DIR / "config.json"
STORE_FILE = TASKY_DIR / "tasks.json"
