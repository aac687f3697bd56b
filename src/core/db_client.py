"""SQLite database client wrapper with CRUD operations."""

import asyncio
import json
import logging
import re
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, Protocol

import aiosqlite

from src.core.config import settings
from src.core.errors import DatabaseError, DuplicateRecordError, RecordNotFoundError
from src.core.schema import BOOLEAN_FIELDS, JSON_FIELDS, sync_schema


logger = logging.getLogger(__name__)

__all__ = [
    "DBClient",
    "DatabaseError",
    "DuplicateRecordError",
    "RecordNotFoundError",
    "SQLiteDBClient",
    "parse_filter",
    "sanitize_param",
]


class DBClient(Protocol):
    """Record store used by every service.

    Records are plain dicts keyed by column name; every record carries string
    ``id``, ``created`` and ``updated`` fields. Filters use the
    ``field = "value" && other != "value"`` syntax understood by ``parse_filter``.
    """

    async def create_record(self, *, collection: str, data: dict[str, Any]) -> dict[str, Any]: ...

    async def create_records(self, *, collection: str, items: list[dict[str, Any]]) -> list[dict[str, Any]]: ...

    async def get_record(self, *, collection: str, record_id: str) -> dict[str, Any]: ...

    async def update_record(self, *, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]: ...

    async def delete_record(self, *, collection: str, record_id: str) -> None: ...

    async def list_records(
        self,
        *,
        collection: str,
        page: int = 1,
        per_page: int = 50,
        filter_query: str = "",
        sort: str = "",
    ) -> list[dict[str, Any]]: ...

    async def get_first_record(self, *, collection: str, filter_query: str) -> dict[str, Any] | None: ...


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def _parse_value(value: str, *, is_like: bool = False) -> str | int | float | bool | None:
    """Parse a string value to the appropriate Python type for SQLite."""
    if is_like:
        escaped = value.replace("%", "\\%").replace("_", "\\_")
        return f"%{escaped}%"

    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).isdigit():
        return float(value)

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
        "~": "LIKE",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


def _parse_single_comparison(comparison: str) -> tuple[str, str | int | float | bool | None]:
    """Parse a single comparison expression into a SQL condition and parameter."""
    match = re.match(
        r"""(\w+)\s*(!=|>=|<=|=|>|<|~)\s*(['"])([^'"]*)\3""",
        comparison,
    )
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)
    raw_value = match.group(4)

    sql_op = _get_sql_operator(op)
    is_like = sql_op == "LIKE"
    value = _parse_value(raw_value, is_like=is_like)
    if is_like:
        return f"{field} LIKE ? ESCAPE '\\'", value

    return f"{field} {sql_op} ?", value


def _parse_or_group(or_group: str) -> tuple[str, list[str | int | float | bool | None]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]
    or_parts = [p.strip() for p in inner.split("||")]
    or_conditions = []
    or_params = []

    for part in or_parts:
        cond, value = _parse_single_comparison(part)
        or_conditions.append(cond)
        or_params.append(value)

    return f"({' OR '.join(or_conditions)})", or_params


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query by && while preserving parenthesized groups."""
    parts = []
    current = ""
    paren_depth = 0

    for char in filter_query:
        if char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1

        current += char

        if paren_depth == 0 and current.endswith("&&"):
            parts.append(current[:-2].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | bool | None]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    parts = _split_and_conditions(filter_query)
    conditions = []
    params = []

    for raw_part in parts:
        part = raw_part.strip()

        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
            conditions.append(cond)
            params.extend(cond_params)
        else:
            cond, value = _parse_single_comparison(part)
            conditions.append(cond)
            params.append(value)

    return " AND ".join(conditions), params


def _parse_sort(sort: str) -> str:
    """Translate a ``-field`` / ``field`` sort expression into a safe ORDER BY clause."""
    if not sort:
        return "id ASC"

    clauses = []
    for raw_part in sort.split(","):
        part = raw_part.strip()
        direction = "DESC" if part.startswith("-") else "ASC"
        field = part.lstrip("+-")
        if not re.match(r"^[A-Za-z_][A-Za-z0-9_]*$", field):
            logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
            return "id ASC"
        clauses.append(f"{field} {direction}")
    clauses.append("id ASC")
    return ", ".join(clauses)


def _encode_value(value: Any) -> Any:
    """Convert a Python value into something SQLite can store."""
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def _decode_record(collection: str, record: dict[str, Any]) -> dict[str, Any]:
    """Convert a raw row into the record shape services expect."""
    json_fields = JSON_FIELDS.get(collection, set())
    bool_fields = BOOLEAN_FIELDS.get(collection, set())

    decoded = record.copy()
    for key, value in decoded.items():
        if isinstance(value, int) and (key == "id" or key.endswith("_id")):
            decoded[key] = str(value)
        elif key in json_fields and isinstance(value, str):
            decoded[key] = json.loads(value)
        elif key in bool_fields and value is not None:
            decoded[key] = bool(value)
    return decoded


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


class SQLiteDBClient:
    """``DBClient`` backed by a single aiosqlite connection."""

    def __init__(self, db_path: str | None = None) -> None:
        self.db_path = get_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or lazily open the connection."""
        if self._conn is not None:
            return self._conn

        async with self._lock:
            if self._conn is None:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = await aiosqlite.connect(str(self.db_path))
                await conn.execute("PRAGMA foreign_keys = ON")
                await conn.execute("PRAGMA journal_mode = WAL")
                self._conn = conn
                logger.info("Created new SQLite connection", extra={"db_path": str(self.db_path)})
        return self._conn

    async def init_db(self) -> None:
        """Create the schema if needed."""
        conn = await self._get_connection()
        await sync_schema(conn)

    async def close(self) -> None:
        """Close the connection if open."""
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None
        logger.info("Closed SQLite connection", extra={"db_path": str(self.db_path)})

    async def _insert(self, conn: aiosqlite.Connection, collection: str, data: dict[str, Any]) -> int:
        now = now_iso()
        row = {**data, "created": now, "updated": now}
        columns = list(row.keys())
        placeholders = ", ".join("?" for _ in columns)
        query = f"INSERT INTO {collection} ({', '.join(columns)}) VALUES ({placeholders})"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, [_encode_value(row[key]) for key in columns])
        if cursor.lastrowid is None:
            msg = f"Insert into {collection} returned no row id"
            raise DatabaseError(msg)
        return cursor.lastrowid

    async def create_record(self, *, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a new record and return it with its assigned id."""
        _validate_collection_name(collection)
        conn = await self._get_connection()
        try:
            record_id = await self._insert(conn, collection, data)
            await conn.commit()
        except aiosqlite.IntegrityError as e:
            await conn.rollback()
            if "UNIQUE constraint failed" in str(e):
                msg = f"Duplicate record in {collection}: {e}"
                raise DuplicateRecordError(msg) from e
            logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
            msg = f"Failed to create record in {collection}: {e}"
            raise DatabaseError(msg) from e
        except aiosqlite.Error as e:
            logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
            msg = f"Failed to create record in {collection}: {e}"
            raise DatabaseError(msg) from e

        logger.info("Created record", extra={"collection": collection, "record_id": record_id})
        return await self.get_record(collection=collection, record_id=str(record_id))

    async def create_records(self, *, collection: str, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert several records in one transaction (all or nothing)."""
        _validate_collection_name(collection)
        conn = await self._get_connection()
        record_ids = []
        try:
            for data in items:
                record_ids.append(await self._insert(conn, collection, data))
            await conn.commit()
        except aiosqlite.IntegrityError as e:
            await conn.rollback()
            msg = f"Duplicate record in {collection}: {e}"
            raise DuplicateRecordError(msg) from e
        except aiosqlite.Error as e:
            await conn.rollback()
            logger.error("create_records_failed", extra={"collection": collection, "error": str(e)})
            msg = f"Failed to create records in {collection}: {e}"
            raise DatabaseError(msg) from e

        logger.info("Created records", extra={"collection": collection, "count": len(record_ids)})
        return [await self.get_record(collection=collection, record_id=str(record_id)) for record_id in record_ids]

    async def get_record(self, *, collection: str, record_id: str) -> dict[str, Any]:
        """Fetch a single record by ID, raising RecordNotFoundError if not found."""
        _validate_collection_name(collection)
        if not str(record_id).isdigit():
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        conn = await self._get_connection()
        try:
            query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
            cursor = await conn.execute(query, (int(record_id),))
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
            msg = f"Failed to get record from {collection}: {e}"
            raise DatabaseError(msg) from e

        if row is None:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        columns = [description[0] for description in cursor.description]
        return _decode_record(collection, dict(zip(columns, row, strict=True)))

    async def update_record(self, *, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Update a record by ID and return the updated record."""
        if not data:
            msg = "Empty update payload"
            raise ValueError(msg)

        _validate_collection_name(collection)
        # Raises RecordNotFoundError before touching anything
        await self.get_record(collection=collection, record_id=record_id)

        conn = await self._get_connection()
        row = {**data, "updated": now_iso()}
        set_clause = ", ".join(f"{key} = ?" for key in row)
        values = [_encode_value(val) for val in row.values()]
        values.append(int(record_id))

        try:
            query = f"UPDATE {collection} SET {set_clause} WHERE id = ?"  # noqa: S608 - collection is validated
            await conn.execute(query, values)
            await conn.commit()
        except aiosqlite.IntegrityError as e:
            await conn.rollback()
            if "UNIQUE constraint failed" in str(e):
                msg = f"Duplicate record in {collection}: {e}"
                raise DuplicateRecordError(msg) from e
            msg = f"Failed to update record in {collection}: {e}"
            raise DatabaseError(msg) from e
        except aiosqlite.Error as e:
            logger.error(
                "update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)}
            )
            msg = f"Failed to update record in {collection}: {e}"
            raise DatabaseError(msg) from e

        logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
        return await self.get_record(collection=collection, record_id=record_id)

    async def delete_record(self, *, collection: str, record_id: str) -> None:
        """Delete a record by ID, raising RecordNotFoundError if not found."""
        _validate_collection_name(collection)
        await self.get_record(collection=collection, record_id=record_id)

        conn = await self._get_connection()
        try:
            query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
            await conn.execute(query, (int(record_id),))
            await conn.commit()
        except aiosqlite.Error as e:
            msg = f"Failed to delete record from {collection}: {e}"
            raise DatabaseError(msg) from e

        logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})

    async def list_records(
        self,
        *,
        collection: str,
        page: int = 1,
        per_page: int = 50,
        filter_query: str = "",
        sort: str = "",
    ) -> list[dict[str, Any]]:
        """List records with optional filtering, sorting, and pagination."""
        _validate_collection_name(collection)
        where_clause, params = parse_filter(filter_query)
        where_sql = f"WHERE {where_clause}" if where_clause else ""
        offset = (page - 1) * per_page

        conn = await self._get_connection()
        try:
            query = f"SELECT * FROM {collection} {where_sql} ORDER BY {_parse_sort(sort)} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
            cursor = await conn.execute(query, [*params, per_page, offset])
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
            msg = f"Failed to list records from {collection}: {e}"
            raise DatabaseError(msg) from e

        columns = [description[0] for description in cursor.description]
        return [_decode_record(collection, dict(zip(columns, row, strict=True))) for row in rows]

    async def get_first_record(self, *, collection: str, filter_query: str) -> dict[str, Any] | None:
        """Return the first matching record, or None."""
        records = await self.list_records(collection=collection, filter_query=filter_query, per_page=1)
        return records[0] if records else None
