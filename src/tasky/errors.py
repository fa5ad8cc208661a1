"""Exceptions raised by tasky stores and the ordering engine."""

from __future__ import annotations


class TaskyError(Exception):
    """Base class for all tasky errors."""


class LoadError(TaskyError):
    """Fetching tasks from the repository failed."""


class PersistenceError(TaskyError):
    """A write to the repository or position store was rejected."""


class TaskNotFoundError(PersistenceError):
    """The referenced task does not exist in the store."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id
