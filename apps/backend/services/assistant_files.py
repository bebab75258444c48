"""Файлы базы знаний ассистента: проверка, загрузка на платформу, учёт в БД."""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from apps.backend.clients import vapi
from apps.backend.config import get_settings
from apps.backend.models.assistant import Assistant, AssistantFile

logger = logging.getLogger(__name__)

ALLOWED_FILE_TYPES = (
    "text/plain",
    "text/markdown",
    "application/pdf",
    "text/csv",
    "application/json",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)
RECENT_FILES_LIMIT = 3


class FileValidationError(Exception):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def validate_upload(content_type: str | None, size: int) -> None:
    if content_type not in ALLOWED_FILE_TYPES:
        raise FileValidationError(
            "unsupported_file_type",
            f"File type {content_type} not supported. Allowed types: {', '.join(ALLOWED_FILE_TYPES)}",
        )
    max_bytes = get_settings().file_upload_max_bytes
    if size > max_bytes:
        raise FileValidationError(
            "file_too_large",
            f"File size must be less than {max_bytes // (1024 * 1024)}MB",
        )


def upload_assistant_file(
    db: Session,
    user_id: str,
    assistant: Assistant,
    filename: str,
    content_type: str,
    content: bytes,
) -> dict:
    validate_upload(content_type, len(content))
    data = vapi.upload_file(filename, content, content_type)
    processed = data.get("status") == "done"
    rec = AssistantFile(
        assistant_id=assistant.id,
        user_id=user_id,
        filename=filename,
        file_type=content_type,
        file_size=len(content),
        storage_path=data.get("id"),
        processed=processed,
    )
    db.add(rec)
    db.commit()
    db.refresh(rec)
    logger.info("assistant_file_uploaded id=%s assistant_id=%s vapi_file_id=%s", rec.id, assistant.id, rec.storage_path)
    return {
        "id": rec.id,
        "vapiFileId": data.get("id"),
        "filename": filename,
        "fileType": content_type,
        "fileSize": len(content),
        "status": data.get("status"),
        "processed": processed,
    }


def _compact(f: dict) -> dict:
    return {
        "id": f.get("id"),
        "name": f.get("name") or "Unknown",
        "originalName": f.get("originalName") or f.get("name"),
        "status": f.get("status") or "unknown",
        "bytes": f.get("bytes") or 0,
        "createdAt": f.get("createdAt"),
        "url": f.get("url"),
        "parsedTextUrl": f.get("parsedTextUrl"),
    }


def list_vapi_files() -> dict:
    files = vapi.list_files()
    return {
        "success": True,
        "files": files,
        "recentFiles": [_compact(f) for f in files[:RECENT_FILES_LIMIT] if isinstance(f, dict)],
        "count": len(files),
        "lastUpdated": datetime.utcnow().isoformat(),
    }
