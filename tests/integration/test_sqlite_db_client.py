"""Integration tests for SQLiteDBClient against a real database file."""

import pytest

from src.core.db_client import DatabaseError, DuplicateRecordError, RecordNotFoundError, parse_filter


def _milestone(task_id: str, day_number: int, **overrides):
    data = {
        "task_id": task_id,
        "user_id": "user1",
        "day_number": day_number,
        "target_date": f"2026-03-{9 + day_number:02d}",
        "required_words": 100,
        "status": "pending",
        "evaluation_status": "pending",
        "refund_status": "pending",
        "is_closed": False,
    }
    data.update(overrides)
    return data


@pytest.mark.integration
class TestParseFilter:
    """Tests for the filter to SQL translation."""

    def test_values_bound_as_parameters(self):
        where, params = parse_filter('task_id = "7" && (status = "approved" || status = "awaiting_review")')

        assert where == "task_id = ? AND (status = ? OR status = ?)"
        assert params == [7, "approved", "awaiting_review"]

    def test_booleans_and_like(self):
        where, params = parse_filter('is_closed = "false" && title ~ "50%"')

        assert where == "is_closed = ? AND title LIKE ? ESCAPE '\\'"
        assert params == [False, "%50\\%%"]

    def test_invalid_syntax(self):
        with pytest.raises(ValueError, match="Invalid filter syntax"):
            parse_filter("status approved")


@pytest.mark.integration
class TestSQLiteDBClient:
    """Tests for CRUD, constraints and decoding."""

    async def test_create_and_get(self, sqlite_db):
        record = await sqlite_db.create_record(collection="daily_milestones", data=_milestone("1", 1))

        fetched = await sqlite_db.get_record(collection="daily_milestones", record_id=record["id"])
        assert isinstance(fetched["id"], str)
        assert fetched["is_closed"] is False
        assert fetched["created"].endswith("Z")

    async def test_missing_and_non_numeric_ids(self, sqlite_db):
        with pytest.raises(RecordNotFoundError):
            await sqlite_db.get_record(collection="tasks", record_id="999")
        with pytest.raises(RecordNotFoundError):
            await sqlite_db.get_record(collection="tasks", record_id="abc")

    async def test_unique_day_per_task(self, sqlite_db):
        await sqlite_db.create_record(collection="daily_milestones", data=_milestone("1", 1))

        with pytest.raises(DuplicateRecordError):
            await sqlite_db.create_record(collection="daily_milestones", data=_milestone("1", 1))

    async def test_batch_insert_rolls_back(self, sqlite_db):
        with pytest.raises(DuplicateRecordError):
            await sqlite_db.create_records(
                collection="daily_milestones", items=[_milestone("1", 1), _milestone("1", 2), _milestone("1", 1)]
            )

        assert await sqlite_db.list_records(collection="daily_milestones") == []

    async def test_check_constraint_is_database_error(self, sqlite_db):
        with pytest.raises(DatabaseError):
            await sqlite_db.create_record(collection="daily_milestones", data=_milestone("1", 1, status="bogus"))

    async def test_open_refund_request_unique_per_milestone(self, sqlite_db):
        request = {"task_id": "1", "milestone_id": "5", "user_id": "user1", "amount": 30, "status": "awaiting_review"}
        first = await sqlite_db.create_record(collection="refund_requests", data=request)

        with pytest.raises(DuplicateRecordError):
            await sqlite_db.create_record(collection="refund_requests", data={**request, "status": "approved"})

        await sqlite_db.update_record(collection="refund_requests", record_id=first["id"], data={"status": "rejected"})
        second = await sqlite_db.create_record(collection="refund_requests", data=request)
        assert second["id"] != first["id"]

    async def test_evaluation_records_append_only(self, sqlite_db):
        record = await sqlite_db.create_record(
            collection="evaluation_records",
            data={
                "task_id": "1",
                "user_id": "user1",
                "evaluation_date": "2026-03-10",
                "content_analyzed": "rain falls",
                "word_count_actual": 2,
                "violations": [],
                "rule_violations": [],
                "quality_checks": {"hasSpam": False},
                "verdict": "target_not_met",
                "reasoning": "Too short.",
                "flagged_issues": ["short"],
            },
        )

        assert record["quality_checks"] == {"hasSpam": False}
        assert record["flagged_issues"] == ["short"]
        with pytest.raises(DatabaseError, match="append-only"):
            await sqlite_db.update_record(
                collection="evaluation_records", record_id=record["id"], data={"verdict": "target_met"}
            )

    async def test_filters_match_text_ids_and_booleans(self, sqlite_db):
        await sqlite_db.create_records(
            collection="daily_milestones",
            items=[_milestone("1", 1, is_closed=True), _milestone("1", 2), _milestone("12", 1)],
        )

        task_one = await sqlite_db.list_records(collection="daily_milestones", filter_query='task_id = "1"')
        open_days = await sqlite_db.list_records(
            collection="daily_milestones", filter_query='is_closed = "false" && target_date < "2026-03-11"'
        )

        assert [m["day_number"] for m in task_one] == [1, 2]
        assert [(m["task_id"], m["day_number"]) for m in open_days] == [("12", 1)]

    async def test_sort_and_pagination(self, sqlite_db):
        await sqlite_db.create_records(
            collection="daily_milestones", items=[_milestone("1", n) for n in (1, 2, 3)]
        )

        newest_day_first = await sqlite_db.list_records(collection="daily_milestones", sort="-day_number", per_page=2)
        second_page = await sqlite_db.list_records(
            collection="daily_milestones", sort="-day_number", per_page=2, page=2
        )

        assert [m["day_number"] for m in newest_day_first] == [3, 2]
        assert [m["day_number"] for m in second_page] == [1]

    async def test_invalid_collection_name(self, sqlite_db):
        with pytest.raises(ValueError, match="Invalid collection name"):
            await sqlite_db.list_records(collection="tasks; DROP TABLE tasks")

    async def test_schema_sync_is_idempotent(self, sqlite_db):
        await sqlite_db.create_record(collection="daily_milestones", data=_milestone("1", 1))

        await sqlite_db.init_db()

        assert len(await sqlite_db.list_records(collection="daily_milestones")) == 1
