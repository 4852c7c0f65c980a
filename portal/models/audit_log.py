"""Audit log model."""

import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from portal.database import Base


class AuditAction(str, enum.Enum):
    """Closed set of audited actions."""

    FILE_UPLOADED = "FILE_UPLOADED"
    FILE_DELETED = "FILE_DELETED"
    USER_DELETED = "USER_DELETED"
    USER_PROMOTED = "USER_PROMOTED"
    USER_DEMOTED = "USER_DEMOTED"
    EMAIL_VERIFIED = "EMAIL_VERIFIED"
    PASSWORD_RESET_REQUESTED = "PASSWORD_RESET_REQUESTED"
    PASSWORD_RESET_COMPLETED = "PASSWORD_RESET_COMPLETED"


class AuditLogEntry(Base):
    """Append-only record of a security-relevant or administrative action."""

    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(String(64), nullable=False, index=True)
    # No foreign key: entries outlive the accounts they mention.
    actor_id = Column(Integer, nullable=True, index=True)
    resource_type = Column(String(64), nullable=True)
    resource_id = Column(String(64), nullable=True)
    detail = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
