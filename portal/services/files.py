"""File service for admin uploads, client downloads and file metadata."""

import os
import re
import uuid
from pathlib import Path

from fastapi import UploadFile
from sqlalchemy.orm import Session

from portal.config import get_settings
from portal.errors import NotFoundError, ValidationError
from portal.models.audit_log import AuditAction
from portal.models.file_record import FileRecord
from portal.services.audit import AuditTrail

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.\-_]")


def safe_filename(name: str) -> str:
    """Replace characters that are unsafe in a stored file name or a header."""
    cleaned = _UNSAFE_CHARS.sub("_", Path(name).name)
    return cleaned or "file"


class FileService:
    """Handles file storage on disk plus the metadata rows.

    Admin checks happen in the routes through ``require_admin``; this service
    only records who did what.
    """

    def __init__(self, db: Session, upload_dir: str | None = None, max_upload_size_mb: int | None = None) -> None:
        settings = get_settings()
        self.db = db
        self.audit = AuditTrail(db)
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIR)
        self.max_upload_size_mb = max_upload_size_mb or settings.MAX_UPLOAD_SIZE_MB

    def path_for(self, record: FileRecord) -> Path:
        return self.upload_dir / record.stored_filename

    async def store_file(self, upload: UploadFile) -> tuple[str, int]:
        """Stream uploaded file to disk with size limit. Returns (stored_filename, file_size_bytes).

        Raises ValidationError if the file is empty or exceeds the max upload size.
        """
        max_bytes = self.max_upload_size_mb * 1024 * 1024
        stored_filename = f"{uuid.uuid4().hex}-{safe_filename(upload.filename or 'file')}"
        self.upload_dir.mkdir(parents=True, exist_ok=True)

        file_path = self.upload_dir / stored_filename
        file_size = 0
        chunk_size = 1024 * 64  # 64KB chunks

        try:
            with open(file_path, "wb") as f:
                while True:
                    chunk = await upload.read(chunk_size)
                    if not chunk:
                        break
                    file_size += len(chunk)
                    if file_size > max_bytes:
                        raise ValidationError(
                            f"File too large ({file_size // (1024 * 1024)}MB). Maximum: {self.max_upload_size_mb}MB"
                        )
                    f.write(chunk)
            if file_size == 0:
                raise ValidationError("No file uploaded")
        except ValidationError:
            if file_path.exists():
                os.remove(file_path)
            raise

        return stored_filename, file_size

    def create_file_record(
        self,
        uploaded_by: int,
        original_filename: str,
        stored_filename: str,
        file_size_bytes: int,
        mime_type: str | None,
    ) -> FileRecord:
        """Create a file record and its FILE_UPLOADED audit entry."""
        record = FileRecord(
            original_filename=original_filename,
            stored_filename=stored_filename,
            file_size_bytes=file_size_bytes,
            mime_type=mime_type,
            uploaded_by=uploaded_by,
        )
        self.db.add(record)
        self.db.flush()
        self.audit.record(
            AuditAction.FILE_UPLOADED,
            actor_id=uploaded_by,
            resource_type="file",
            resource_id=record.id,
            detail=original_filename,
        )
        self.db.commit()
        self.db.refresh(record)
        return record

    def list_files(self) -> list[FileRecord]:
        """All files, newest first."""
        return self.db.query(FileRecord).order_by(FileRecord.uploaded_at.desc(), FileRecord.id.desc()).all()

    def get_file(self, file_id: int) -> FileRecord:
        record = self.db.get(FileRecord, file_id)
        if record is None or not self.path_for(record).exists():
            raise NotFoundError("File not found")
        return record

    def delete_file(self, file_id: int, deleted_by: int) -> None:
        """Delete a file record, its file on disk, and record FILE_DELETED."""
        record = self.db.get(FileRecord, file_id)
        if record is None:
            raise NotFoundError("File not found")
        file_path = self.path_for(record)
        self.audit.record(
            AuditAction.FILE_DELETED,
            actor_id=deleted_by,
            resource_type="file",
            resource_id=record.id,
            detail=record.original_filename,
        )
        self.db.delete(record)
        self.db.commit()
        if file_path.exists():
            os.remove(file_path)
