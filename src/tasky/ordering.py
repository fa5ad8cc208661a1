"""Task ordering engine.

The engine keeps the locally authoritative ordered view of a task list and
applies user gestures to it in two phases:

1. The view is updated synchronously, so the caller can re-render at once.
2. The matching store call runs as an ``asyncio.Task`` on the running loop.

Reorders (insert, move, drag) persist the full identity list through the
position store. If that write fails the engine reloads from the repository,
throwing away the optimistic order. Flag edits and deletes go straight to
the repository and are not rolled back on failure; the error is reported
through :attr:`OrderingEngine.status` instead.

Nothing is serialised: a second gesture builds on the first one's view and
schedules its own write, and whichever write lands last wins.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine, Iterable
from dataclasses import replace
from enum import Enum
from typing import Any

from tasky.errors import PersistenceError
from tasky.models import Task, TaskDraft
from tasky.partition import TaskGroups, group_of, partition, same_group
from tasky.ports import PositionStore, TaskRepository

logger = logging.getLogger(__name__)

LOAD_FAILED = "Failed to fetch tasks"
ADD_FAILED = "Failed to add task"
UPDATE_FAILED = "Failed to update task"
DELETE_FAILED = "Failed to delete task"
REORDER_FAILED = "Failed to reorder tasks"


class EngineStatus(Enum):
    """Status signal for the presentation layer."""

    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"


class Direction(Enum):
    """Single-step move direction."""

    UP = "up"
    DOWN = "down"


Listener = Callable[["OrderingEngine"], None]


def sort_for_display(tasks: Iterable[Task]) -> list[Task]:
    """Order freshly fetched tasks.

    Positioned tasks come first by ascending position. Tasks without a
    position follow. Ties in either case go to the newest task.
    """
    ordered = sorted(tasks, key=lambda t: t.created_at, reverse=True)
    ordered.sort(key=lambda t: (t.position is None, t.position or 0))
    return ordered


def assign_positions(tasks: Iterable[Task]) -> list[Task]:
    """Return copies of tasks with positions 0..N-1 in list order."""
    return [
        task if task.position == index else task.model_copy(update={"position": index})
        for index, task in enumerate(tasks)
    ]


class OrderingEngine:
    """Client-held ordered view of tasks with optimistic reordering."""

    def __init__(
        self,
        repository: TaskRepository,
        position_store: PositionStore | None = None,
    ) -> None:
        self._repository = repository
        # Stores that implement both ports are the common case.
        self._positions: PositionStore = (
            position_store if position_store is not None else repository  # type: ignore[assignment]
        )
        self._tasks: list[Task] = []
        self._filters: dict[str, str | None] = {"list_id": None, "date": None}
        self._pending: set[asyncio.Task[None]] = set()
        self._listeners: list[Listener] = []
        self.status = EngineStatus.IDLE
        self.error: str | None = None

    # ---- view ----

    @property
    def tasks(self) -> list[Task]:
        """The ordered view (a copy)."""
        return list(self._tasks)

    @property
    def groups(self) -> TaskGroups:
        """The ordered view partitioned for rendering."""
        return partition(self._tasks)

    @property
    def busy(self) -> bool:
        """True while any persistence call is still in flight."""
        return bool(self._pending)

    def get(self, task_id: str) -> Task | None:
        """Get a task in the view by ID."""
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def index_of(self, task_id: str) -> int:
        """Index of a task in the view, or -1."""
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        return -1

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(engine)`` on every view or status change.

        Returns a function that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear_error(self) -> None:
        """Dismiss the current error notice."""
        if self.status is EngineStatus.ERROR:
            self.status = EngineStatus.IDLE
            self.error = None
            self._notify()

    # ---- loading ----

    async def load(self, list_id: str | None = None, date: str | None = None) -> list[Task]:
        """Fetch tasks and rebuild the ordered view.

        The filters are remembered and reused when a failed reorder forces
        a reload. On failure the previous view is left as it was.
        """
        self._filters = {"list_id": list_id, "date": date}
        self.status = EngineStatus.LOADING
        self.error = None
        self._notify()

        try:
            fetched = await self._repository.fetch(list_id=list_id, date=date)
        except Exception as exc:
            logger.warning("%s: %s", LOAD_FAILED, exc)
            self._fail(LOAD_FAILED)
            return self.tasks

        self._tasks = sort_for_display(fetched)
        self.status = EngineStatus.IDLE
        logger.debug("Loaded %d tasks list_id=%s date=%s", len(self._tasks), list_id, date)
        self._notify()
        return self.tasks

    # ---- reordering gestures ----

    async def insert(self, draft: TaskDraft) -> Task:
        """Create a task and place it at the head of the view.

        The record is created first since the view needs its identity.
        A failed create leaves the view untouched and raises
        :class:`PersistenceError`.
        """
        try:
            created = await self._repository.create(draft)
        except Exception as exc:
            logger.warning("%s: %s", ADD_FAILED, exc)
            self._fail(ADD_FAILED)
            raise PersistenceError(ADD_FAILED) from exc

        self._apply([created, *(t for t in self._tasks if t.id != created.id)])
        logger.info("Inserted task %s at head of %d tasks", created.id, len(self._tasks))
        self._schedule_reorder()
        return self._tasks[0]

    def move(self, task_id: str, direction: Direction | str) -> asyncio.Task[None] | None:
        """Swap a task with its nearest same-group neighbour.

        Tasks of other groups in between are skipped. Returns the
        persistence task, or None when nothing moved.
        """
        direction = Direction(direction)
        index = self.index_of(task_id)
        if index < 0:
            logger.debug("Move ignored, unknown task %s", task_id)
            return None

        task = self._tasks[index]
        step = -1 if direction is Direction.UP else 1
        other = index + step
        while 0 <= other < len(self._tasks) and not same_group(task, self._tasks[other]):
            other += step

        if not 0 <= other < len(self._tasks):
            logger.debug("Move %s ignored, already at group boundary", direction.value)
            return None

        order = list(self._tasks)
        order[index], order[other] = order[other], order[index]
        self._apply(order)
        logger.info("Moved task %s %s past %s", task_id, direction.value, order[index].id)
        return self._schedule_reorder()

    def drag_move(self, source_id: str, target_id: str) -> asyncio.Task[None] | None:
        """Drop ``source_id`` onto ``target_id`` within their shared group.

        The source is taken out of its group and reinserted at the target's
        index. Drops across groups are ignored.
        """
        if source_id == target_id:
            return None

        source = self.get(source_id)
        target = self.get(target_id)
        if source is None or target is None:
            logger.debug("Drop ignored, unknown task %s -> %s", source_id, target_id)
            return None
        if not same_group(source, target):
            logger.debug("Drop ignored, %s and %s are in different groups", source_id, target_id)
            return None

        group = group_of(source)
        groups = partition(self._tasks)
        members = [t for t in groups.get(group) if t.id != source_id]
        target_index = next(i for i, t in enumerate(members) if t.id == target_id)
        members.insert(target_index, source)

        self._apply(replace(groups, **{group.value: members}).merged())
        logger.info("Dragged task %s before %s in %s", source_id, target_id, group.value)
        return self._schedule_reorder()

    # ---- record gestures ----

    def toggle_important(self, task_id: str) -> asyncio.Task[None] | None:
        """Flip the important flag; the task changes group on next render."""
        return self._toggle(task_id, "important")

    def toggle_completed(self, task_id: str) -> asyncio.Task[None] | None:
        """Flip the completed flag; the task changes group on next render."""
        return self._toggle(task_id, "completed")

    def edit(
        self,
        task_id: str,
        *,
        text: str | None = None,
        description: str | None = None,
        important: bool | None = None,
    ) -> asyncio.Task[None] | None:
        """Update a task's text, description or important flag."""
        fields: dict[str, Any] = {}
        if text is not None:
            text = text.strip()
            if not text:
                raise ValueError("text is required")
            fields["text"] = text
        if description is not None:
            fields["description"] = description.strip()
        if important is not None:
            fields["important"] = important

        task = self.get(task_id)
        if task is None or not fields:
            return None

        self._replace(task.model_copy(update=fields))
        return self._spawn(self._persist_update(task_id, fields))

    def delete(self, task_id: str) -> asyncio.Task[None] | None:
        """Remove a task from the view and the repository.

        Remaining positions are not renumbered; the next reorder closes the gap.
        """
        if self.get(task_id) is None:
            return None

        self._tasks = [t for t in self._tasks if t.id != task_id]
        self._notify()
        return self._spawn(self._persist_delete(task_id))

    async def drain(self) -> None:
        """Wait until every in-flight persistence call has finished."""
        while self._pending:
            await asyncio.gather(*self._pending)

    # ---- internals ----

    def _toggle(self, task_id: str, flag: str) -> asyncio.Task[None] | None:
        task = self.get(task_id)
        if task is None:
            return None

        value = not getattr(task, flag)
        self._replace(task.model_copy(update={flag: value}))
        logger.info("Task %s %s=%s", task_id, flag, value)
        return self._spawn(self._persist_update(task_id, {flag: value}))

    def _apply(self, order: list[Task]) -> None:
        self._tasks = assign_positions(order)
        self._notify()

    def _replace(self, updated: Task) -> None:
        self._tasks = [updated if t.id == updated.id else t for t in self._tasks]
        self._notify()

    def _schedule_reorder(self) -> asyncio.Task[None]:
        return self._spawn(self._persist_order([t.id for t in self._tasks]))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _persist_order(self, task_ids: list[str]) -> None:
        try:
            await self._positions.bulk_set_positions(task_ids)
        except Exception as exc:
            logger.warning("%s, reloading from repository: %s", REORDER_FAILED, exc)
            await self.load(**self._filters)
            self._fail(REORDER_FAILED)
            return
        logger.debug("Persisted order of %d tasks", len(task_ids))

    async def _persist_update(self, task_id: str, fields: dict[str, Any]) -> None:
        try:
            await self._repository.update(task_id, **fields)
        except Exception as exc:
            logger.warning("%s %s: %s", UPDATE_FAILED, task_id, exc)
            self._fail(UPDATE_FAILED)

    async def _persist_delete(self, task_id: str) -> None:
        try:
            await self._repository.delete(task_id)
        except Exception as exc:
            logger.warning("%s %s: %s", DELETE_FAILED, task_id, exc)
            self._fail(DELETE_FAILED)

    def _fail(self, message: str) -> None:
        self.status = EngineStatus.ERROR
        self.error = message
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
