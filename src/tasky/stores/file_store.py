"""JSON file task store.

Tasks live in a single JSON document using the same camelCase record shape
as the hosted API:

    {
        "tasks": [
            {"id": "...", "text": "...", "isImportant": false, "completed": false,
             "listId": "default", "createdAt": "...", "position": 0}
        ],
        "lastUpdated": "..."
    }

Every write replaces the whole document through a temporary sibling file,
so a bulk position update is applied completely or not at all.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import date as date_type
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from tasky.config import STORE_FILE
from tasky.errors import LoadError, PersistenceError, TaskNotFoundError
from tasky.models import Task, TaskDraft

logger = logging.getLogger(__name__)

# Fields a caller may change through update(); identity and timestamp are fixed.
UPDATABLE_FIELDS = frozenset({"text", "description", "important", "completed", "list_id", "position"})


class FileTaskStore:
    """Task repository and position store backed by one JSON file."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else STORE_FILE

    async def close(self) -> None:
        """Compatibility hook for shutdown (no open handles to close)."""
        return

    # ---- document helpers ----

    def _read(self) -> list[Task]:
        if not self.path.exists():
            return []

        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise LoadError(f"Cannot read {self.path}: {exc}") from exc

        # Support a bare list as well as the wrapped document
        items = data if isinstance(data, list) else data.get("tasks") or data.get("todos") or []

        try:
            return [Task.model_validate(item) for item in items]
        except ValidationError as exc:
            raise LoadError(f"Malformed task record in {self.path}: {exc}") from exc

    def _write(self, tasks: list[Task]) -> None:
        document = {
            "tasks": [task.to_wire() for task in tasks],
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
        }
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w") as f:
                json.dump(document, f, indent=2)
            tmp_path.replace(self.path)
        except OSError as exc:
            raise PersistenceError(f"Cannot write {self.path}: {exc}") from exc

    def _read_for_write(self) -> list[Task]:
        try:
            return self._read()
        except LoadError as exc:
            raise PersistenceError(str(exc)) from exc

    # ---- TaskRepository ----

    async def fetch(self, list_id: str | None = None, date: str | None = None) -> list[Task]:
        """Return tasks newest first, optionally filtered by list and creation day."""
        tasks = self._read()

        if list_id:
            tasks = [t for t in tasks if t.list_id == list_id]

        if date:
            try:
                day = date_type.fromisoformat(date)
            except ValueError as exc:
                raise LoadError(f"Invalid date filter: {date}") from exc
            tasks = [t for t in tasks if t.created_at.date() == day]

        tasks.sort(key=lambda t: t.created_at, reverse=True)
        return tasks

    async def create(self, draft: TaskDraft) -> Task:
        """Store a new task, assigning its id and creation time."""
        tasks = self._read_for_write()
        task = Task(
            id=uuid.uuid4().hex,
            text=draft.text,
            description=draft.description,
            important=draft.important,
            completed=draft.completed,
            list_id=draft.list_id,
            created_at=datetime.now(timezone.utc),
            position=draft.position,
        )
        tasks.insert(0, task)
        self._write(tasks)
        logger.debug("Task created id=%s list=%s", task.id, task.list_id)
        return task

    async def update(self, task_id: str, **fields: Any) -> Task:
        """Apply a partial update and return the stored task."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise PersistenceError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        tasks = self._read_for_write()
        for index, task in enumerate(tasks):
            if task.id == task_id:
                try:
                    updated = Task.model_validate({**task.model_dump(), **fields})
                except ValidationError as exc:
                    raise PersistenceError(f"Invalid update for {task_id}: {exc}") from exc
                tasks[index] = updated
                self._write(tasks)
                return updated

        raise TaskNotFoundError(task_id)

    async def delete(self, task_id: str) -> None:
        """Remove a task."""
        tasks = self._read_for_write()
        remaining = [t for t in tasks if t.id != task_id]
        if len(remaining) == len(tasks):
            raise TaskNotFoundError(task_id)
        self._write(remaining)

    # ---- PositionStore ----

    async def bulk_set_positions(self, task_ids: list[str]) -> None:
        """Set ``position = index`` for each id in one write."""
        if not task_ids:
            raise PersistenceError("Invalid task IDs: empty list")

        tasks = self._read_for_write()
        index_by_id = {task_id: index for index, task_id in enumerate(task_ids)}
        known = {t.id for t in tasks}
        missing = [task_id for task_id in task_ids if task_id not in known]
        if missing:
            raise PersistenceError(f"Invalid task IDs: {', '.join(missing)}")

        self._write(
            [
                t.model_copy(update={"position": index_by_id[t.id]}) if t.id in index_by_id else t
                for t in tasks
            ]
        )
        logger.debug("Positions set for %d tasks", len(task_ids))
