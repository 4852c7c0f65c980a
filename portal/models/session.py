"""Server-side login session model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from portal.database import Base


class PortalSession(Base):
    """Opaque session id bound to an authenticated account."""

    __tablename__ = "portal_session"

    id = Column(String(64), primary_key=True)
    account_id = Column(Integer, ForeignKey("account.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
