"""Tests for InMemoryDBClient implementation."""

import pytest

from src.core.db_client import DatabaseError, DuplicateRecordError, RecordNotFoundError


@pytest.mark.unit
class TestInMemoryDBClient:
    """Test suite for InMemoryDBClient."""

    async def test_create_record(self, in_memory_db):
        """Test creating a record."""
        record = await in_memory_db.create_record(collection="tasks", data={"title": "Journal", "word_count": 300})

        assert record["id"] is not None
        assert record["title"] == "Journal"
        assert "created" in record
        assert "updated" in record

    async def test_create_record_invalid_data(self, in_memory_db):
        """Test creating a record with invalid data raises error."""
        with pytest.raises(DatabaseError, match="Data must be a dictionary"):
            await in_memory_db.create_record(collection="tasks", data="invalid")

    async def test_returned_records_are_copies(self, in_memory_db):
        """Test that mutating a returned record does not touch the stored one."""
        created = await in_memory_db.create_record(collection="tasks", data={"title": "Journal"})
        created["title"] = "Changed"

        stored = await in_memory_db.get_record(collection="tasks", record_id=created["id"])
        assert stored["title"] == "Journal"

    async def test_update_and_delete(self, in_memory_db):
        """Test updating then deleting a record."""
        created = await in_memory_db.create_record(collection="tasks", data={"title": "Original"})
        updated = await in_memory_db.update_record(
            collection="tasks", record_id=created["id"], data={"title": "Updated"}
        )
        await in_memory_db.delete_record(collection="tasks", record_id=created["id"])

        assert updated["title"] == "Updated"
        with pytest.raises(RecordNotFoundError, match="Record not found"):
            await in_memory_db.get_record(collection="tasks", record_id=created["id"])

    async def test_fail_writes(self, in_memory_db):
        """Test the switch that simulates an unavailable database."""
        in_memory_db.fail_writes = True

        with pytest.raises(DatabaseError, match="database is locked"):
            await in_memory_db.create_record(collection="tasks", data={"title": "Journal"})

    async def test_unique_day_per_task(self, in_memory_db):
        """Test that a task cannot have two milestones for the same day."""
        await in_memory_db.create_record(collection="daily_milestones", data={"task_id": "1", "day_number": 1})

        with pytest.raises(DuplicateRecordError):
            await in_memory_db.create_record(collection="daily_milestones", data={"task_id": "1", "day_number": 1})

    async def test_create_records_is_all_or_nothing(self, in_memory_db):
        """Test that a batch with a duplicate leaves nothing behind."""
        items = [{"task_id": "1", "day_number": 1}, {"task_id": "1", "day_number": 2}, {"task_id": "1", "day_number": 1}]

        with pytest.raises(DuplicateRecordError):
            await in_memory_db.create_records(collection="daily_milestones", items=items)

        assert await in_memory_db.list_records(collection="daily_milestones") == []

    async def test_only_one_open_refund_request_per_milestone(self, in_memory_db):
        """Test the partial unique index on open refund requests."""
        first = await in_memory_db.create_record(
            collection="refund_requests", data={"milestone_id": "7", "status": "awaiting_review"}
        )
        with pytest.raises(DuplicateRecordError):
            await in_memory_db.create_record(
                collection="refund_requests", data={"milestone_id": "7", "status": "approved"}
            )

        await in_memory_db.update_record(collection="refund_requests", record_id=first["id"], data={"status": "rejected"})
        second = await in_memory_db.create_record(
            collection="refund_requests", data={"milestone_id": "7", "status": "awaiting_review"}
        )
        assert second["id"] != first["id"]

    async def test_evaluation_records_are_append_only(self, in_memory_db):
        """Test that audit entries cannot be rewritten."""
        record = await in_memory_db.create_record(collection="evaluation_records", data={"verdict": "target_met"})

        with pytest.raises(DatabaseError, match="append-only"):
            await in_memory_db.update_record(
                collection="evaluation_records", record_id=record["id"], data={"verdict": "target_not_met"}
            )


@pytest.mark.unit
class TestInMemoryFilters:
    """Test suite for filter and sort handling."""

    @pytest.fixture
    async def days(self, in_memory_db):
        """Three milestones across two tasks."""
        for task_id, day_number, closed in (("1", 1, True), ("1", 2, False), ("2", 1, False)):
            await in_memory_db.create_record(
                collection="daily_milestones",
                data={
                    "task_id": task_id,
                    "day_number": day_number,
                    "is_closed": closed,
                    "target_date": f"2026-03-{9 + day_number:02d}",
                },
            )
        return in_memory_db

    async def test_equality_coerces_to_stored_type(self, days):
        """Test that numeric and boolean literals match stored ints and bools."""
        open_days = await days.list_records(collection="daily_milestones", filter_query='is_closed = "false"')
        day_two = await days.list_records(collection="daily_milestones", filter_query='day_number = "2"')

        assert len(open_days) == 2
        assert [d["task_id"] for d in day_two] == ["1"]

    async def test_and_with_or_group(self, days):
        """Test a parenthesized OR group combined with AND."""
        results = await days.list_records(
            collection="daily_milestones",
            filter_query='day_number = "1" && (task_id = "1" || task_id = "2")',
        )

        assert len(results) == 2

    async def test_range_comparison(self, days):
        """Test comparisons on ISO date strings."""
        results = await days.list_records(collection="daily_milestones", filter_query='target_date < "2026-03-11"')

        assert {r["day_number"] for r in results} == {1}

    async def test_invalid_filter_raises(self, days):
        """Test that an unparseable filter is a database error."""
        with pytest.raises(DatabaseError, match="Invalid filter syntax"):
            await days.list_records(collection="daily_milestones", filter_query="day_number 1")

    async def test_sort_descending_then_id(self, days):
        """Test multi-field sort with id as the final tiebreak."""
        results = await days.list_records(collection="daily_milestones", sort="-day_number")

        assert [(r["task_id"], r["day_number"]) for r in results] == [("1", 2), ("1", 1), ("2", 1)]

    async def test_pagination(self, days):
        """Test page and per_page slicing."""
        page_two = await days.list_records(collection="daily_milestones", page=2, per_page=2)

        assert len(page_two) == 1

    async def test_get_first_record(self, days):
        """Test that get_first_record returns None when nothing matches."""
        assert await days.get_first_record(collection="daily_milestones", filter_query='task_id = "9"') is None
