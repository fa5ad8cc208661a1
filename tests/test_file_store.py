"""Tests for tasky.stores.file_store module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tasky.errors import LoadError, PersistenceError, TaskNotFoundError
from tasky.models import TaskDraft
from tasky.stores.file_store import FileTaskStore


def _ids(tasks: list) -> list[str]:
    return [t.id for t in tasks]


def _stored_positions(path: Path) -> dict[str, int | None]:
    with open(path) as f:
        data = json.load(f)
    return {item["id"]: item.get("position") for item in data["tasks"]}


class TestFetch:
    """Tests for FileTaskStore.fetch."""

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, file_store: FileTaskStore) -> None:
        """Test a store without a file has no tasks."""
        assert await file_store.fetch() == []

    @pytest.mark.asyncio
    async def test_newest_first(self, sample_store_file: Path) -> None:
        """Test tasks come back by creation time, newest first."""
        tasks = await FileTaskStore(sample_store_file).fetch()
        assert _ids(tasks) == ["b2", "a1", "c3"]
        assert tasks[1].important is True
        assert tasks[1].description == "Quarterly numbers"

    @pytest.mark.asyncio
    async def test_list_filter(self, sample_store_file: Path) -> None:
        """Test filtering by list id."""
        tasks = await FileTaskStore(sample_store_file).fetch(list_id="work")
        assert _ids(tasks) == ["a1"]

    @pytest.mark.asyncio
    async def test_date_filter(self, sample_store_file: Path) -> None:
        """Test filtering by creation day."""
        tasks = await FileTaskStore(sample_store_file).fetch(date="2025-01-09")
        assert _ids(tasks) == ["c3"]

    @pytest.mark.asyncio
    async def test_invalid_date_filter(self, sample_store_file: Path) -> None:
        """Test an unparseable date raises LoadError."""
        with pytest.raises(LoadError):
            await FileTaskStore(sample_store_file).fetch(date="last tuesday")

    @pytest.mark.asyncio
    async def test_bare_list_document(self, temp_tasky_dir: Path) -> None:
        """Test a plain JSON array of records is accepted."""
        path = temp_tasky_dir / "tasks.json"
        path.write_text(json.dumps([{"id": "x", "text": "Plain", "createdAt": "2025-01-01T00:00:00Z"}]))

        tasks = await FileTaskStore(path).fetch()

        assert _ids(tasks) == ["x"]
        assert tasks[0].position is None

    @pytest.mark.asyncio
    async def test_invalid_json(self, temp_tasky_dir: Path) -> None:
        """Test a corrupt file raises LoadError."""
        path = temp_tasky_dir / "tasks.json"
        path.write_text("{not json")

        with pytest.raises(LoadError):
            await FileTaskStore(path).fetch()

    @pytest.mark.asyncio
    async def test_malformed_record(self, temp_tasky_dir: Path) -> None:
        """Test a record without required fields raises LoadError."""
        path = temp_tasky_dir / "tasks.json"
        path.write_text(json.dumps({"tasks": [{"text": "no id"}]}))

        with pytest.raises(LoadError):
            await FileTaskStore(path).fetch()


class TestCreate:
    """Tests for FileTaskStore.create."""

    @pytest.mark.asyncio
    async def test_assigns_identity(self, file_store: FileTaskStore) -> None:
        """Test create assigns an id and timestamp and writes the file."""
        task = await file_store.create(TaskDraft(text="Write report", important=True))

        assert task.id
        assert task.created_at.tzinfo is not None
        assert task.position == 0
        assert file_store.path.exists()
        assert _ids(await file_store.fetch()) == [task.id]

    @pytest.mark.asyncio
    async def test_written_in_wire_format(self, file_store: FileTaskStore) -> None:
        """Test records on disk use the API field names."""
        task = await file_store.create(TaskDraft(text="x", important=True, list_id="work"))

        with open(file_store.path) as f:
            data = json.load(f)

        record = data["tasks"][0]
        assert record["id"] == task.id
        assert record["isImportant"] is True
        assert record["listId"] == "work"
        assert "lastUpdated" in data
        assert not file_store.path.with_name("tasks.json.tmp").exists()

    @pytest.mark.asyncio
    async def test_corrupt_file_not_overwritten(self, temp_tasky_dir: Path) -> None:
        """Test writes refuse to replace an unreadable document."""
        path = temp_tasky_dir / "tasks.json"
        path.write_text("{not json")

        with pytest.raises(PersistenceError):
            await FileTaskStore(path).create(TaskDraft(text="x"))

        assert path.read_text() == "{not json"


class TestUpdate:
    """Tests for FileTaskStore.update."""

    @pytest.mark.asyncio
    async def test_partial_update(self, sample_store_file: Path) -> None:
        """Test only the given fields change."""
        store = FileTaskStore(sample_store_file)

        updated = await store.update("b2", completed=True, text="Buy oat milk")

        assert updated.completed is True
        assert updated.text == "Buy oat milk"
        assert updated.position == 1
        fetched = {t.id: t for t in await store.fetch()}
        assert fetched["b2"].completed is True
        assert fetched["a1"].text == "Write report"

    @pytest.mark.asyncio
    async def test_unknown_task(self, sample_store_file: Path) -> None:
        """Test updating a missing id raises TaskNotFoundError."""
        with pytest.raises(TaskNotFoundError) as exc_info:
            await FileTaskStore(sample_store_file).update("zzz", completed=True)
        assert exc_info.value.task_id == "zzz"

    @pytest.mark.asyncio
    async def test_unknown_field(self, sample_store_file: Path) -> None:
        """Test identity fields cannot be changed."""
        with pytest.raises(PersistenceError):
            await FileTaskStore(sample_store_file).update("b2", id="other")


class TestDelete:
    """Tests for FileTaskStore.delete."""

    @pytest.mark.asyncio
    async def test_delete_keeps_other_positions(self, sample_store_file: Path) -> None:
        """Test the remaining tasks are not renumbered."""
        store = FileTaskStore(sample_store_file)

        await store.delete("b2")

        assert _stored_positions(sample_store_file) == {"a1": 0, "c3": 2}

    @pytest.mark.asyncio
    async def test_unknown_task(self, sample_store_file: Path) -> None:
        """Test deleting a missing id raises TaskNotFoundError."""
        with pytest.raises(TaskNotFoundError):
            await FileTaskStore(sample_store_file).delete("zzz")


class TestBulkSetPositions:
    """Tests for FileTaskStore.bulk_set_positions."""

    @pytest.mark.asyncio
    async def test_positions_follow_list_order(self, sample_store_file: Path) -> None:
        """Test position equals index for every id."""
        store = FileTaskStore(sample_store_file)

        await store.bulk_set_positions(["c3", "a1", "b2"])

        assert _stored_positions(sample_store_file) == {"a1": 1, "b2": 2, "c3": 0}

    @pytest.mark.asyncio
    async def test_subset_leaves_others(self, sample_store_file: Path) -> None:
        """Test ids not in the list keep their positions."""
        await FileTaskStore(sample_store_file).bulk_set_positions(["c3", "b2"])
        assert _stored_positions(sample_store_file) == {"a1": 0, "b2": 1, "c3": 0}

    @pytest.mark.asyncio
    async def test_empty_list_rejected(self, sample_store_file: Path) -> None:
        """Test an empty order is rejected."""
        with pytest.raises(PersistenceError, match="empty"):
            await FileTaskStore(sample_store_file).bulk_set_positions([])

    @pytest.mark.asyncio
    async def test_unknown_id_writes_nothing(self, sample_store_file: Path) -> None:
        """Test one bad id rejects the whole update."""
        before = sample_store_file.read_text()

        with pytest.raises(PersistenceError, match="zzz"):
            await FileTaskStore(sample_store_file).bulk_set_positions(["c3", "zzz", "a1"])

        assert sample_store_file.read_text() == before
