"""Group partitioning for ordered task lists.

A task's group is never stored. It is derived from its ``important`` and
``completed`` flags every time the list is partitioned, so toggling a flag
moves the task between groups without any reorder.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from tasky.models import Task


class TaskGroup(Enum):
    """Display groups, in rendering order."""

    IMPORTANT = "important"
    REGULAR = "regular"
    COMPLETED = "completed"


@dataclass
class TaskGroups:
    """The three ordered sub-sequences of a task list."""

    important: list[Task] = field(default_factory=list)
    regular: list[Task] = field(default_factory=list)
    completed: list[Task] = field(default_factory=list)

    def merged(self) -> list[Task]:
        """Concatenate important ++ regular ++ completed."""
        return [*self.important, *self.regular, *self.completed]

    def get(self, group: TaskGroup) -> list[Task]:
        """Return the sub-list for a group."""
        if group is TaskGroup.IMPORTANT:
            return self.important
        elif group is TaskGroup.REGULAR:
            return self.regular
        else:
            return self.completed

    def __len__(self) -> int:
        return len(self.important) + len(self.regular) + len(self.completed)


def group_of(task: Task) -> TaskGroup:
    """Derive the display group of a task from its flags."""
    if task.completed:
        return TaskGroup.COMPLETED
    if task.important:
        return TaskGroup.IMPORTANT
    return TaskGroup.REGULAR


def same_group(a: Task, b: Task) -> bool:
    """Check whether two tasks may be reordered relative to each other.

    Both flags must match. Two completed tasks with different ``important``
    flags render in the same group but are not swap partners.
    """
    return a.important == b.important and a.completed == b.completed


def partition(tasks: Iterable[Task]) -> TaskGroups:
    """Split tasks into important, regular and completed, preserving order."""
    groups = TaskGroups()
    for task in tasks:
        groups.get(group_of(task)).append(task)
    return groups


def merge(important: list[Task], regular: list[Task], completed: list[Task]) -> list[Task]:
    """Inverse of :func:`partition` for already-partitioned inputs."""
    return TaskGroups(list(important), list(regular), list(completed)).merged()
