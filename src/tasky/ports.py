"""Interfaces the ordering engine depends on.

The engine talks to storage through these Protocols so the JSON file store,
the REST client and test fakes are interchangeable.
"""

from __future__ import annotations

from typing import Any, Protocol

from tasky.models import Task, TaskDraft


class TaskRepository(Protocol):
    """Durable CRUD for task records."""

    async def fetch(self, list_id: str | None = None, date: str | None = None) -> list[Task]: ...

    async def create(self, draft: TaskDraft) -> Task: ...

    async def update(self, task_id: str, **fields: Any) -> Task: ...

    async def delete(self, task_id: str) -> None: ...


class PositionStore(Protocol):
    """Bulk position writes.

    On success ``position[task_ids[i]] == i`` for every i, applied as one
    unit from the caller's point of view.
    """

    async def bulk_set_positions(self, task_ids: list[str]) -> None: ...
