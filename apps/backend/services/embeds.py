"""Embed mappings: публичный embed_id для виджета -> ассистент."""
from __future__ import annotations

import logging
import secrets

from sqlalchemy import select
from sqlalchemy.orm import Session

from apps.backend.models.assistant import Assistant
from apps.backend.models.embed import EmbedMapping

logger = logging.getLogger(__name__)


def embed_to_dict(m: EmbedMapping) -> dict:
    return {
        "id": m.id,
        "embed_id": m.embed_id,
        "vapi_assistant_id": m.vapi_assistant_id,
        "assistant_id": m.assistant_id,
        "name": m.name,
        "is_active": bool(m.is_active),
        "created_at": m.created_at.isoformat() if m.created_at else None,
    }


def list_embed_mappings(db: Session, user_id: str) -> list[dict]:
    rows = db.execute(
        select(EmbedMapping)
        .where(EmbedMapping.user_id == user_id, EmbedMapping.is_active.is_(True))
        .order_by(EmbedMapping.created_at.desc(), EmbedMapping.id.desc())
    ).scalars().all()
    return [embed_to_dict(m) for m in rows]


def create_embed_mapping(
    db: Session,
    user_id: str,
    assistant: Assistant,
    name: str | None = None,
    domain_whitelist: list[str] | None = None,
) -> EmbedMapping:
    m = EmbedMapping(
        user_id=user_id,
        assistant_id=assistant.id,
        vapi_assistant_id=assistant.vapi_assistant_id,
        embed_id=secrets.token_urlsafe(12),
        api_key=secrets.token_hex(24),
        name=name or assistant.name,
        domain_whitelist=domain_whitelist or None,
        is_active=True,
    )
    db.add(m)
    db.commit()
    db.refresh(m)
    logger.info("embed_mapping_created embed_id=%s assistant_id=%s", m.embed_id, assistant.id)
    return m
