"""Audit trail: append-only log of security-relevant actions."""

import logging

from sqlalchemy.orm import Session

from portal.models.audit_log import AuditAction, AuditLogEntry

logger = logging.getLogger("ivory_portal")

AUDIT_QUERY_LIMIT = 100


class AuditTrail:
    """Appends and reads audit log entries. Never updates or deletes them."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        action: AuditAction,
        actor_id: int | None,
        resource_type: str | None = None,
        resource_id: int | str | None = None,
        detail: str | None = None,
    ) -> AuditLogEntry:
        """Stage an audit entry in the current transaction. The caller commits."""
        entry = AuditLogEntry(
            action=action.value,
            actor_id=actor_id,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            detail=detail,
        )
        self.db.add(entry)
        logger.info("AUDIT %s actor=%s %s:%s %s", action.value, actor_id, resource_type, resource_id, detail or "")
        return entry

    def latest(self, limit: int = AUDIT_QUERY_LIMIT) -> list[AuditLogEntry]:
        """Most recent entries, newest first."""
        limit = max(1, min(limit, AUDIT_QUERY_LIMIT))
        return (
            self.db.query(AuditLogEntry)
            .order_by(AuditLogEntry.created_at.desc(), AuditLogEntry.id.desc())
            .limit(limit)
            .all()
        )
