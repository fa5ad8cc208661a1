"""Shared fixtures for tasky tests."""

from __future__ import annotations

import itertools
import json
import logging
import os
from collections.abc import Callable, Generator, Iterable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from tasky.errors import LoadError, PersistenceError, TaskNotFoundError
from tasky.models import Task, TaskDraft
from tasky.stores.file_store import FileTaskStore

BASE_TIME = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)

TaskFactory = Callable[..., Task]


class InMemoryStore:
    """In-memory task repository and position store.

    Keeps every call for assertions and fails on demand, so engine tests are
    purely about ordering, optimism and reconciliation.
    """

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self.tasks: dict[str, Task] = {t.id: t.model_copy() for t in tasks}
        self.reorder_calls: list[list[str]] = []
        self.update_calls: list[tuple[str, dict[str, Any]]] = []
        self.delete_calls: list[str] = []
        self.fail_fetch = False
        self.fail_create = False
        self.fail_update = False
        self.fail_delete = False
        self.fail_reorder = False
        self._ids = itertools.count(1)

    async def fetch(self, list_id: str | None = None, date: str | None = None) -> list[Task]:
        if self.fail_fetch:
            raise LoadError("repository unreachable")
        tasks = [t.model_copy() for t in self.tasks.values()]
        if list_id:
            tasks = [t for t in tasks if t.list_id == list_id]
        return tasks

    async def create(self, draft: TaskDraft) -> Task:
        if self.fail_create:
            raise PersistenceError("create rejected")
        task = Task(
            id=f"new-{next(self._ids)}",
            text=draft.text,
            description=draft.description,
            important=draft.important,
            completed=draft.completed,
            list_id=draft.list_id,
            created_at=BASE_TIME + timedelta(days=1),
            position=draft.position,
        )
        self.tasks[task.id] = task
        return task.model_copy()

    async def update(self, task_id: str, **fields: Any) -> Task:
        self.update_calls.append((task_id, fields))
        if self.fail_update:
            raise PersistenceError("update rejected")
        if task_id not in self.tasks:
            raise TaskNotFoundError(task_id)
        self.tasks[task_id] = self.tasks[task_id].model_copy(update=fields)
        return self.tasks[task_id].model_copy()

    async def delete(self, task_id: str) -> None:
        self.delete_calls.append(task_id)
        if self.fail_delete:
            raise PersistenceError("delete rejected")
        if self.tasks.pop(task_id, None) is None:
            raise TaskNotFoundError(task_id)

    async def bulk_set_positions(self, task_ids: list[str]) -> None:
        self.reorder_calls.append(list(task_ids))
        if self.fail_reorder:
            raise PersistenceError("reorder rejected")
        for index, task_id in enumerate(task_ids):
            self.tasks[task_id] = self.tasks[task_id].model_copy(update={"position": index})

    def positions(self) -> dict[str, int | None]:
        return {task_id: task.position for task_id, task in self.tasks.items()}


@pytest.fixture
def temp_project(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary project directory and change to it."""
    original_dir = os.getcwd()
    os.chdir(tmp_path)
    try:
        yield tmp_path
    finally:
        os.chdir(original_dir)


@pytest.fixture
def temp_tasky_dir(temp_project: Path) -> Path:
    """Create a temporary .tasky directory."""
    tasky_dir = temp_project / ".tasky"
    tasky_dir.mkdir()
    return tasky_dir


@pytest.fixture
def make_task() -> TaskFactory:
    """Factory for tasks with sensible defaults.

    ``age`` is in minutes before BASE_TIME, so larger ages are older tasks.
    """

    def _make(
        task_id: str,
        position: int | None = None,
        *,
        important: bool = False,
        completed: bool = False,
        age: int = 0,
        list_id: str = "default",
        text: str | None = None,
    ) -> Task:
        return Task(
            id=task_id,
            text=text or f"Task {task_id}",
            important=important,
            completed=completed,
            list_id=list_id,
            created_at=BASE_TIME - timedelta(minutes=age),
            position=position,
        )

    return _make


@pytest.fixture
def memory_store() -> Callable[..., InMemoryStore]:
    """Factory for in-memory stores."""
    return InMemoryStore


@pytest.fixture
def file_store(tmp_path: Path) -> FileTaskStore:
    """A file store in a fresh temporary directory."""
    return FileTaskStore(tmp_path / ".tasky" / "tasks.json")


@pytest.fixture
def sample_store_data() -> dict:
    """Sample store document in wire format."""
    return {
        "tasks": [
            {
                "id": "a1",
                "text": "Write report",
                "description": "Quarterly numbers",
                "isImportant": True,
                "completed": False,
                "listId": "work",
                "createdAt": "2025-01-10T09:00:00+00:00",
                "position": 0,
            },
            {
                "id": "b2",
                "text": "Buy milk",
                "description": "",
                "isImportant": False,
                "completed": False,
                "listId": "default",
                "createdAt": "2025-01-11T09:00:00+00:00",
                "position": 1,
            },
            {
                "id": "c3",
                "text": "Call plumber",
                "description": "",
                "isImportant": False,
                "completed": True,
                "listId": "default",
                "createdAt": "2025-01-09T09:00:00+00:00",
                "position": 2,
            },
        ],
        "lastUpdated": "2025-01-11T09:00:00+00:00",
    }


@pytest.fixture
def sample_store_file(temp_tasky_dir: Path, sample_store_data: dict) -> Path:
    """Write the sample store document to .tasky/tasks.json."""
    store_path = temp_tasky_dir / "tasks.json"
    with open(store_path, "w") as f:
        json.dump(sample_store_data, f)
    return store_path


@pytest.fixture
def restore_root_logger() -> Generator[None, None, None]:
    """Put the root logger back the way pytest configured it."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
