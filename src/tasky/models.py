"""Task records for tasky.

Field names are snake_case in Python; the wire format shared with the hosted
API uses the camelCase aliases (``isImportant``, ``createdAt``, ``listId``).
Both spellings are accepted on input.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_LIST = "default"


class Task(BaseModel):
    """A task record as held by the repository."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    text: str
    description: str = ""
    important: bool = Field(default=False, alias="isImportant")
    completed: bool = False
    list_id: str = Field(default=DEFAULT_LIST, alias="listId")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="createdAt"
    )
    position: int | None = None
    """Index in the last persisted ordering; None means never ordered."""

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("list_id", mode="before")
    @classmethod
    def _default_list(cls, value: Any) -> Any:
        return value or DEFAULT_LIST

    def to_wire(self) -> dict[str, Any]:
        """Serialise using the camelCase wire names, omitting an unset position."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class TaskDraft(BaseModel):
    """Payload for creating a task (no id or timestamp yet)."""

    model_config = ConfigDict(populate_by_name=True)

    text: str
    description: str = ""
    important: bool = Field(default=False, alias="isImportant")
    completed: bool = False
    list_id: str = Field(default=DEFAULT_LIST, alias="listId")
    position: int | None = 0

    @field_validator("text")
    @classmethod
    def _text_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("text is required")
        return value

    @field_validator("description")
    @classmethod
    def _strip_description(cls, value: str) -> str:
        return value.strip()

    @field_validator("list_id", mode="before")
    @classmethod
    def _default_list(cls, value: Any) -> Any:
        return value or DEFAULT_LIST

    def to_wire(self) -> dict[str, Any]:
        """Serialise using the camelCase wire names."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
