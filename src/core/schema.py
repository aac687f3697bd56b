"""SQLite schema management (code-first approach)."""

import logging
from typing import Any

import aiosqlite


logger = logging.getLogger(__name__)


# Central list of all collections in the schema, in dependency order
COLLECTIONS = [
    "tasks",
    "daily_milestones",
    "daily_contents",
    "evaluation_records",
    "refund_requests",
    "refund_history",
    "refund_ledgers",
]

# Columns stored as JSON text and decoded on read
JSON_FIELDS: dict[str, set[str]] = {
    "daily_milestones": {"rule_compliance"},
    "evaluation_records": {"violations", "rule_violations", "quality_checks", "flagged_issues", "content_metrics"},
}

# Columns stored as INTEGER 0/1 and decoded to bool on read
BOOLEAN_FIELDS: dict[str, set[str]] = {
    "daily_milestones": {"flagged_for_review", "is_closed", "validation_passed"},
    "evaluation_records": {"used_fallback", "flagged_for_review"},
}

_TIMESTAMPS = [
    ("created", "TEXT NOT NULL"),
    ("updated", "TEXT NOT NULL"),
]


def _get_collection_schema(*, collection_name: str) -> dict[str, Any]:
    """Get the expected schema for a collection.

    Each schema lists its columns (the integer primary key and timestamps are
    added for every collection) and the indexes that enforce its invariants.
    """
    schemas: dict[str, dict[str, Any]] = {
        "tasks": {
            "fields": [
                ("user_id", "TEXT NOT NULL"),
                ("title", "TEXT NOT NULL"),
                ("word_count", "INTEGER NOT NULL CHECK (word_count > 0)"),
                ("duration_days", "INTEGER NOT NULL CHECK (duration_days > 0)"),
                ("deposit_amount", "INTEGER NOT NULL CHECK (deposit_amount >= 0)"),
                ("status", "TEXT NOT NULL CHECK (status IN ('pending', 'active', 'completed', 'cancelled'))"),
                ("start_date", "TEXT"),
            ],
            "indexes": ["CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks (user_id)"],
        },
        "daily_milestones": {
            "fields": [
                ("task_id", "TEXT NOT NULL"),
                ("user_id", "TEXT NOT NULL"),
                ("day_number", "INTEGER NOT NULL CHECK (day_number > 0)"),
                ("target_date", "TEXT NOT NULL"),
                ("required_words", "INTEGER NOT NULL"),
                ("words_carried_forward", "INTEGER NOT NULL DEFAULT 0"),
                ("words_written", "INTEGER NOT NULL DEFAULT 0"),
                ("status", "TEXT NOT NULL CHECK (status IN ('pending', 'completed'))"),
                (
                    "evaluation_status",
                    "TEXT NOT NULL CHECK (evaluation_status IN ('pending', 'target_met', 'target_not_met'))",
                ),
                ("content_quality_score", "INTEGER CHECK (content_quality_score BETWEEN 0 AND 100)"),
                ("ai_feedback", "TEXT"),
                ("rule_compliance", "TEXT"),
                ("words_deficit", "INTEGER NOT NULL DEFAULT 0"),
                ("next_day_target", "INTEGER NOT NULL DEFAULT 0"),
                ("flagged_for_review", "INTEGER NOT NULL DEFAULT 0"),
                ("refund_amount", "INTEGER NOT NULL DEFAULT 0"),
                (
                    "refund_status",
                    "TEXT NOT NULL CHECK (refund_status IN ('pending', 'eligible', 'approved', 'completed'))",
                ),
                ("is_closed", "INTEGER NOT NULL DEFAULT 0"),
                ("validation_passed", "INTEGER NOT NULL DEFAULT 0"),
                ("evaluated_at", "TEXT"),
            ],
            "indexes": [
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_milestone_task_day ON daily_milestones (task_id, day_number)",
                "CREATE INDEX IF NOT EXISTS idx_milestone_target_date ON daily_milestones (target_date)",
            ],
        },
        "daily_contents": {
            "fields": [
                ("task_id", "TEXT NOT NULL"),
                ("user_id", "TEXT NOT NULL"),
                ("day_number", "INTEGER NOT NULL"),
                ("content", "TEXT NOT NULL"),
                ("word_count", "INTEGER NOT NULL DEFAULT 0"),
            ],
            "indexes": [
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_content_task_day ON daily_contents (task_id, day_number)",
            ],
        },
        "evaluation_records": {
            "fields": [
                ("task_id", "TEXT NOT NULL"),
                ("user_id", "TEXT NOT NULL"),
                ("milestone_id", "TEXT"),
                ("evaluation_date", "TEXT NOT NULL"),
                ("content_analyzed", "TEXT NOT NULL"),
                ("word_count_actual", "INTEGER NOT NULL"),
                ("word_count_target", "INTEGER NOT NULL"),
                ("violations", "TEXT NOT NULL"),
                ("rule_violations", "TEXT NOT NULL"),
                ("quality_checks", "TEXT"),
                ("verdict", "TEXT NOT NULL"),
                ("reasoning", "TEXT NOT NULL"),
                ("flagged_issues", "TEXT NOT NULL"),
                ("quality_score", "INTEGER"),
                ("flagged_for_review", "INTEGER NOT NULL DEFAULT 0"),
                ("used_fallback", "INTEGER NOT NULL DEFAULT 0"),
                ("content_metrics", "TEXT"),
            ],
            "indexes": [
                "CREATE INDEX IF NOT EXISTS idx_evaluation_task ON evaluation_records (task_id)",
                # Append-only audit log
                "CREATE TRIGGER IF NOT EXISTS trg_evaluation_records_immutable "
                "BEFORE UPDATE ON evaluation_records "
                "BEGIN SELECT RAISE(ABORT, 'evaluation_records are append-only'); END",
            ],
        },
        "refund_requests": {
            "fields": [
                ("task_id", "TEXT NOT NULL"),
                ("milestone_id", "TEXT NOT NULL"),
                ("user_id", "TEXT NOT NULL"),
                ("amount", "INTEGER NOT NULL CHECK (amount > 0)"),
                (
                    "status",
                    "TEXT NOT NULL CHECK (status IN ('awaiting_review', 'approved', 'completed', 'rejected'))",
                ),
                ("admin_notes", "TEXT"),
                ("processed_by", "TEXT"),
                ("processed_at", "TEXT"),
            ],
            "indexes": [
                # One outstanding claim per milestone
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_refund_open_per_milestone ON refund_requests (milestone_id) "
                "WHERE status IN ('awaiting_review', 'approved')",
                "CREATE INDEX IF NOT EXISTS idx_refund_status ON refund_requests (status)",
            ],
        },
        "refund_history": {
            "fields": [
                ("refund_request_id", "TEXT NOT NULL"),
                ("user_id", "TEXT NOT NULL"),
                ("task_id", "TEXT NOT NULL"),
                ("milestone_id", "TEXT NOT NULL"),
                ("day_number", "INTEGER NOT NULL"),
                ("amount", "INTEGER NOT NULL"),
                ("processed_by", "TEXT"),
            ],
            "indexes": [
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_history_request ON refund_history (refund_request_id)",
            ],
        },
        "refund_ledgers": {
            "fields": [
                ("user_id", "TEXT NOT NULL"),
                ("total_refund_earned", "INTEGER NOT NULL DEFAULT 0"),
            ],
            "indexes": ["CREATE UNIQUE INDEX IF NOT EXISTS idx_ledger_user ON refund_ledgers (user_id)"],
        },
    }

    if collection_name not in schemas:
        msg = f"Unknown collection: {collection_name}"
        raise ValueError(msg)
    return schemas[collection_name]


def _build_create_table(*, collection_name: str, schema: dict[str, Any]) -> str:
    """Render the CREATE TABLE statement for a collection."""
    columns = ["id INTEGER PRIMARY KEY AUTOINCREMENT"]
    columns.extend(f"{name} {definition}" for name, definition in [*schema["fields"], *_TIMESTAMPS])
    return f"CREATE TABLE IF NOT EXISTS {collection_name} ({', '.join(columns)})"


async def sync_schema(conn: aiosqlite.Connection) -> None:
    """Create every collection and index that does not exist yet (idempotent)."""
    logger.info("Starting SQLite schema sync...")

    for collection_name in COLLECTIONS:
        schema = _get_collection_schema(collection_name=collection_name)
        await conn.execute(_build_create_table(collection_name=collection_name, schema=schema))
        for index_sql in schema["indexes"]:
            await conn.execute(index_sql)
        logger.info("Collection %s schema is up to date", collection_name)

    await conn.commit()
    logger.info("SQLite schema sync complete")
