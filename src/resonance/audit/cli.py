"""Command-line queries over the campaign audit trail.

Examples::

    resonance-audit --campaign c1 --last 7d
    resonance-audit --creator 0xabc --event-type settlement --format json
"""

from __future__ import annotations

import argparse
import contextlib
import json
import re
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from resonance.audit.models import EventType
from resonance.audit.store import (
    AUDIT_TIMESTAMP_FORMAT,
    init_audit_db,
    query_audit_trail,
)

_DURATION = re.compile(r"(\d+)([dh])")
_UNITS = {"d": "days", "h": "hours"}

# (header, row key, column width)
TABLE_COLUMNS: list[tuple[str, str, int]] = [
    ("Timestamp", "timestamp", 20),
    ("Event", "event_type", 20),
    ("Campaign", "campaign_id", 15),
    ("Creator", "creator_address", 20),
    ("Status", "campaign_status", 10),
    ("TxRef", "tx_ref", 16),
]


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for audit trail queries."""
    parser = argparse.ArgumentParser(
        prog="resonance-audit", description="Query the campaign audit trail"
    )
    filters = parser.add_argument_group("filters")
    filters.add_argument("--creator", help="creator address")
    filters.add_argument("--campaign", help="campaign id")
    filters.add_argument("--from-date", help="entries on or after this date (YYYY-MM-DD)")
    filters.add_argument("--to-date", help="entries on or before this date (YYYY-MM-DD)")
    filters.add_argument("--event-type", choices=[e.value for e in EventType])
    filters.add_argument("--last", help="only the last N days or hours, e.g. 7d or 24h")

    parser.add_argument(
        "--format", dest="output_format", choices=["table", "json"], default="table"
    )
    parser.add_argument("--limit", type=int, default=50, help="maximum rows (default: 50)")
    parser.add_argument("--db", default="data/resonance.db", help="database file")
    return parser


def parse_last_duration(last: str, now: datetime | None = None) -> str:
    """Turn ``7d`` / ``24h`` into the ISO 8601 timestamp that long before *now*.

    Raises:
        ValueError: If *last* is not a count followed by ``d`` or ``h``.
    """
    match = _DURATION.fullmatch(last or "")
    if match is None:
        msg = f"Unrecognized duration format: {last!r}. Use 'd' for days or 'h' for hours."
        raise ValueError(msg)
    delta = timedelta(**{_UNITS[match.group(2)]: int(match.group(1))})
    return ((now or datetime.now(tz=UTC)) - delta).strftime(AUDIT_TIMESTAMP_FORMAT)


def _cell(value: Any, width: int) -> str:
    text = "" if value is None else str(value)
    if len(text) > width:
        text = text[: width - 3] + "..."
    return text.ljust(width)


def format_table(results: list[dict[str, Any]]) -> str:
    """Render rows as a fixed-width table with a header and rule."""
    if not results:
        return "No results found."
    header = "  ".join(_cell(title, width) for title, _, width in TABLE_COLUMNS)
    body = [
        "  ".join(_cell(row.get(key), width) for _, key, width in TABLE_COLUMNS)
        for row in results
    ]
    return "\n".join([header, "-" * len(header), *body])


def format_json(results: list[dict[str, Any]]) -> str:
    return json.dumps(results, indent=2)


def main(argv: list[str] | None = None) -> None:
    """Entry point for ``resonance-audit``."""
    args = build_parser().parse_args(argv)
    from_date = parse_last_duration(args.last) if args.last else args.from_date

    db_path = Path(args.db)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with contextlib.closing(init_audit_db(db_path)) as conn:
        results = query_audit_trail(
            conn,
            creator_address=args.creator,
            campaign_id=args.campaign,
            from_date=from_date,
            to_date=args.to_date,
            event_type=args.event_type,
            limit=args.limit,
        )
    render = format_json if args.output_format == "json" else format_table
    print(render(results))


if __name__ == "__main__":
    main()
