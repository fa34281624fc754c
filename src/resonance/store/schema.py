"""SQLite schema for campaign store persistence.

Each table keeps the full pydantic model as JSON alongside the columns that
are filtered or constrained on.  The ``UNIQUE (campaign_id, unique_hash)``
constraint backs the no-duplicate-submission invariant at the storage level.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path


def open_database(db_path: Path | str) -> sqlite3.Connection:
    """Open a SQLite connection with WAL mode and foreign keys enabled.

    Args:
        db_path: Path to the database file, or ``":memory:"``.

    Returns:
        An open connection usable from worker threads.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_campaign_tables(conn: sqlite3.Connection) -> None:
    """Create the campaign store tables if they do not already exist.

    Args:
        conn: An open sqlite3.Connection (WAL mode recommended).
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS campaigns (
            campaign_id TEXT PRIMARY KEY,
            status TEXT NOT NULL,
            deadline TEXT NOT NULL,
            campaign_json TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_campaigns_status ON campaigns (status)")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS participants (
            campaign_id TEXT NOT NULL REFERENCES campaigns (campaign_id),
            creator_address TEXT NOT NULL,
            participant_json TEXT NOT NULL,
            PRIMARY KEY (campaign_id, creator_address)
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_participants_creator ON participants (creator_address)"
    )

    conn.execute("""
        CREATE TABLE IF NOT EXISTS submissions (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            campaign_id TEXT NOT NULL REFERENCES campaigns (campaign_id),
            creator_address TEXT NOT NULL,
            unique_hash TEXT NOT NULL,
            submission_json TEXT NOT NULL,
            UNIQUE (campaign_id, unique_hash)
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS payout_receipts (
            campaign_id TEXT PRIMARY KEY REFERENCES campaigns (campaign_id),
            tx_ref TEXT NOT NULL,
            receipt_json TEXT NOT NULL
        )
    """)

    conn.commit()
