"""Store adapters for tasky."""

from __future__ import annotations

from pathlib import Path

from tasky.config import StoreConfig
from tasky.stores.file_store import FileTaskStore
from tasky.stores.http_store import HttpTaskStore

__all__ = ["FileTaskStore", "HttpTaskStore", "create_store"]


def create_store(config: StoreConfig) -> FileTaskStore | HttpTaskStore:
    """Build the store named by the configuration."""
    if config.type == "file":
        return FileTaskStore(Path(config.path))
    elif config.type == "http":
        if not config.api_url:
            raise ValueError("store.api_url is required for the http store")
        return HttpTaskStore(config.api_url, token=config.token)
    else:
        raise ValueError(f"Unknown store type: {config.type}")
