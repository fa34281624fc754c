"""SQLite audit trail for campaign lifecycle events.

The ``audit_log`` table lives in the campaign database file (its own
connection) and is indexed for the three lookups operators run most:
by campaign, by creator, and by time.  Every query is parameterized.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from resonance.audit.models import AuditEntry
from resonance.store.schema import open_database

AUDIT_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

_COLUMNS = (
    "timestamp",
    "event_type",
    "campaign_id",
    "creator_address",
    "post_id",
    "campaign_status",
    "tx_ref",
    "metadata",
)

# Query keyword -> SQL predicate
_FILTERS = {
    "campaign_id": "campaign_id = ?",
    "creator_address": "creator_address = ?",
    "event_type": "event_type = ?",
    "from_date": "timestamp >= ?",
    "to_date": "timestamp <= ?",
}


def init_audit_table(conn: sqlite3.Connection) -> None:
    """Create the audit_log table and its indexes if they do not exist."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL,
            event_type TEXT NOT NULL,
            campaign_id TEXT,
            creator_address TEXT,
            post_id TEXT,
            campaign_status TEXT,
            tx_ref TEXT,
            metadata TEXT
        )
    """)
    for name, column in (
        ("idx_audit_campaign", "campaign_id"),
        ("idx_audit_creator", "creator_address"),
        ("idx_audit_timestamp", "timestamp"),
    ):
        conn.execute(f"CREATE INDEX IF NOT EXISTS {name} ON audit_log ({column})")
    conn.commit()


def init_audit_db(db_path: Path) -> sqlite3.Connection:
    """Open *db_path* in WAL mode and make sure the audit table exists."""
    conn = open_database(db_path)
    init_audit_table(conn)
    return conn


def insert_audit_entry(conn: sqlite3.Connection, entry: AuditEntry) -> int:
    """Append *entry* to the audit log, stamped with the current UTC time.

    Returns:
        The row ID of the inserted entry.
    """
    row: dict[str, Any] = entry.model_dump(mode="json")
    row["timestamp"] = datetime.now(tz=UTC).strftime(AUDIT_TIMESTAMP_FORMAT)
    if row["metadata"] is not None:
        row["metadata"] = json.dumps(row["metadata"])

    placeholders = ", ".join("?" for _ in _COLUMNS)
    cursor = conn.execute(
        f"INSERT INTO audit_log ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
        [row[c] for c in _COLUMNS],
    )
    conn.commit()
    return cursor.lastrowid or 0


def query_audit_trail(
    conn: sqlite3.Connection,
    *,
    campaign_id: str | None = None,
    creator_address: str | None = None,
    from_date: str | None = None,
    to_date: str | None = None,
    event_type: str | None = None,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Return audit entries matching every given filter, newest first.

    Args:
        conn: An open database connection.
        campaign_id: Exact campaign id.
        creator_address: Exact creator address.
        from_date: ISO 8601 lower bound on the timestamp (inclusive).
        to_date: ISO 8601 upper bound on the timestamp (inclusive).
        event_type: Exact event type value.
        limit: Maximum number of rows.

    Returns:
        One dict per row, with ``metadata`` decoded from JSON.
    """
    given = {
        "campaign_id": campaign_id,
        "creator_address": creator_address,
        "event_type": event_type,
        "from_date": from_date,
        "to_date": to_date,
    }
    active = {key: value for key, value in given.items() if value is not None}

    sql = "SELECT * FROM audit_log"
    if active:
        sql += " WHERE " + " AND ".join(_FILTERS[key] for key in active)
    sql += " ORDER BY timestamp DESC, id DESC LIMIT ?"

    cursor = conn.execute(sql, [*active.values(), limit])
    names = [d[0] for d in cursor.description]
    results: list[dict[str, Any]] = []
    for values in cursor.fetchall():
        record = dict(zip(names, values, strict=True))
        if record["metadata"] is not None:
            record["metadata"] = json.loads(record["metadata"])
        results.append(record)
    return results


def close_audit_db(conn: sqlite3.Connection) -> None:
    conn.close()
