"""Uploaded file metadata model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from portal.database import Base


class FileRecord(Base):
    """File uploaded by an admin and downloadable by any signed-in account."""

    __tablename__ = "file_record"

    id = Column(Integer, primary_key=True, autoincrement=True)
    original_filename = Column(String(512), nullable=False)
    stored_filename = Column(String(512), nullable=False, unique=True)
    mime_type = Column(String(128), nullable=True)
    file_size_bytes = Column(Integer, nullable=False)
    uploaded_by = Column(Integer, ForeignKey("account.id", ondelete="SET NULL"), nullable=True, index=True)
    uploaded_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
