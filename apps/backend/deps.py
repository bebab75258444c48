"""Зависимости FastAPI."""
from typing import Generator

from fastapi import HTTPException
from sqlalchemy.orm import Session

from apps.backend.database import get_session_factory
from apps.backend.models.assistant import Assistant
from apps.backend.services.assistants import get_owned_assistant


def get_db() -> Generator[Session, None, None]:
    factory = get_session_factory()
    sess = factory()
    try:
        yield sess
    finally:
        sess.close()


def require_owned_assistant(
    db: Session,
    user_id: str,
    assistant_id: str | None,
    *,
    status_code: int = 404,
) -> Assistant:
    """Ассистент пользователя или HTTPException (404 по умолчанию, 403 где так заведено)."""
    if not assistant_id:
        raise HTTPException(status_code=400, detail="Assistant ID is required")
    assistant = get_owned_assistant(db, user_id, assistant_id)
    if not assistant:
        raise HTTPException(status_code=status_code, detail="Assistant not found or access denied")
    return assistant
