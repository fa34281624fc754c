"""Audit trail: models, storage, logger, and CLI for campaign event tracking."""

from resonance.audit.cli import build_parser
from resonance.audit.logger import AuditLogger
from resonance.audit.models import AuditEntry, EventType
from resonance.audit.store import (
    close_audit_db,
    init_audit_db,
    init_audit_table,
    insert_audit_entry,
    query_audit_trail,
)

__all__ = [
    "AuditEntry",
    "AuditLogger",
    "EventType",
    "build_parser",
    "close_audit_db",
    "init_audit_db",
    "init_audit_table",
    "insert_audit_entry",
    "query_audit_trail",
]
