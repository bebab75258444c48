"""Ассистенты: создание на голосовой платформе, хранение, синхронизация, тулы."""
from __future__ import annotations

import base64
import binascii
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from apps.backend.clients import vapi
from apps.backend.clients.errors import ExternalServiceError
from apps.backend.config import get_settings
from apps.backend.models.assistant import (
    Assistant,
    DEFAULT_SYSTEM_PROMPT,
    DEFAULT_VOICE_ID,
    DEFAULT_WELCOME_MESSAGE,
)
from apps.backend.services.vapi_tools import (
    build_navigation_tools,
    build_page_analyzer_tool,
    build_query_tool,
    is_voice_navigation,
)

logger = logging.getLogger(__name__)

DEFAULT_ASSISTANT_NAME = "Voice Assistant"
CONNECTION_TEST_ID = "test-connection"
ASSISTANT_FIELDS = (
    "vapi_assistant_id",
    "name",
    "welcome_message",
    "system_prompt",
    "language",
    "voice_id",
    "position",
    "theme",
    "status",
)


def _model_block(system_prompt: str, tool_ids: list[str] | None = None) -> dict:
    s = get_settings()
    model = {
        "provider": s.vapi_model_provider,
        "model": s.vapi_model,
        "messages": [{"role": "system", "content": system_prompt}],
    }
    if tool_ids is not None:
        model["toolIds"] = list(tool_ids)
    return model


def build_assistant_payload(name: str, system_prompt: str, voice: str, welcome_message: str) -> dict:
    return {
        "name": name,
        "model": _model_block(system_prompt),
        "voice": {"provider": "vapi", "voiceId": voice},
        "firstMessage": welcome_message,
        # шумоподавление на клиенте ломает web-звонки в части браузеров
        "backgroundSpeechDenoisingPlan": {"smartDenoisingPlan": {"enabled": False}},
    }


def _upload_inline_files(files: list[dict]) -> list[str]:
    file_ids: list[str] = []
    for f in files:
        name = f.get("name") or "file"
        try:
            content = base64.b64decode(f.get("content") or "", validate=True)
        except (binascii.Error, ValueError):
            logger.warning("assistant_file_bad_base64 name=%s", name)
            continue
        try:
            data = vapi.upload_file(name, content, f.get("type") or "application/octet-stream")
        except ExternalServiceError as e:
            if e.code == vapi.VAPI_ERR_NOT_CONFIGURED:
                raise
            logger.warning("assistant_file_upload_failed name=%s err=%s", name, e.detail)
            continue
        if data.get("id"):
            file_ids.append(str(data["id"]))
    return file_ids


def _create_tool_id(payload: dict, label: str) -> str | None:
    try:
        data = vapi.create_tool(payload)
    except ExternalServiceError as e:
        if e.code == vapi.VAPI_ERR_NOT_CONFIGURED:
            raise
        logger.warning("assistant_tool_create_failed tool=%s err=%s", label, e.detail)
        return None
    tool_id = data.get("id")
    return str(tool_id) if tool_id else None


def create_vapi_assistant(
    name: str | None,
    system_prompt: str | None,
    *,
    welcome_message: str | None = None,
    voice: str | None = None,
    template: str | None = None,
    files: list[dict] | None = None,
) -> dict:
    """Create an assistant on the voice platform with its knowledge and navigation tools.

    Per-file and per-tool failures are logged and skipped; only the
    assistant creation itself is fatal. Tools are attached afterwards with
    a PATCH of `model.toolIds`.
    """
    name = name or DEFAULT_ASSISTANT_NAME
    system_prompt = system_prompt or DEFAULT_SYSTEM_PROMPT
    files = files or []
    tool_ids: list[str] = []

    if files:
        file_ids = _upload_inline_files(files)
        logger.info("assistant_files_uploaded count=%s of=%s", len(file_ids), len(files))
        if file_ids:
            tool_id = _create_tool_id(build_query_tool(name, file_ids), "query")
            if tool_id:
                tool_ids.append(tool_id)

    if is_voice_navigation(template, system_prompt):
        for tool in build_navigation_tools():
            tool_id = _create_tool_id(tool, tool["function"]["name"])
            if tool_id:
                tool_ids.append(tool_id)

    payload = build_assistant_payload(
        name,
        system_prompt,
        voice or "Elliot",
        welcome_message or DEFAULT_WELCOME_MESSAGE,
    )
    created = vapi.create_assistant(payload)
    vapi_id = created.get("id")
    logger.info("vapi_assistant_created id=%s tools=%s", vapi_id, len(tool_ids))

    if tool_ids and vapi_id:
        try:
            vapi.update_assistant(vapi_id, {"model": _model_block(system_prompt, tool_ids)})
        except ExternalServiceError as e:
            # ассистент уже создан, ошибку привязки тулов не пробрасываем
            logger.warning("assistant_tools_attach_failed id=%s err=%s", vapi_id, e.detail)

    return {
        "success": True,
        "vapiAssistantId": vapi_id,
        "assistant": created,
        "filesUploaded": len(files),
        "toolsCreated": len(tool_ids),
    }


def assistant_to_dict(a: Assistant, embed_id: str | None = None) -> dict:
    return {
        "id": a.id,
        "user_id": a.user_id,
        "vapi_assistant_id": a.vapi_assistant_id,
        "name": a.name,
        "welcome_message": a.welcome_message,
        "system_prompt": a.system_prompt,
        "language": a.language,
        "voice_id": a.voice_id,
        "position": a.position,
        "theme": a.theme,
        "status": a.status,
        "created_at": a.created_at.isoformat() if a.created_at else None,
        "updated_at": a.updated_at.isoformat() if a.updated_at else None,
        "embed_id": embed_id,
    }


def save_assistant(db: Session, user_id: str, data: dict) -> Assistant:
    values = {k: data[k] for k in ASSISTANT_FIELDS if data.get(k) is not None}
    a = Assistant(user_id=user_id, **values)
    db.add(a)
    db.commit()
    db.refresh(a)
    logger.info("assistant_saved id=%s user_id=%s", a.id, user_id)
    return a


def list_assistants(db: Session, user_id: str) -> list[dict]:
    rows = db.execute(
        select(Assistant)
        .where(Assistant.user_id == user_id)
        .order_by(Assistant.created_at.desc())
    ).scalars().all()
    out = []
    for a in rows:
        embed_id = a.embed_mappings[0].embed_id if a.embed_mappings else None
        out.append(assistant_to_dict(a, embed_id))
    return out


def get_assistant_status(db: Session, assistant_id: str) -> dict | None:
    a = db.get(Assistant, assistant_id)
    if not a:
        return None
    return {
        "success": True,
        "uuid": a.id,
        "name": a.name,
        "status": a.status,
        "vapiAssistantId": a.vapi_assistant_id,
        "language": a.language,
        "position": a.position,
        "theme": a.theme,
    }


def get_owned_assistant(db: Session, user_id: str, assistant_id: str) -> Assistant | None:
    return db.execute(
        select(Assistant).where(Assistant.id == assistant_id, Assistant.user_id == user_id)
    ).scalars().first()


def check_vapi_assistant(assistant_id: str) -> dict:
    """Проверка ассистента на платформе; `test-connection` только показывает маску ключа."""
    key_info = vapi.key_info()
    if assistant_id == CONNECTION_TEST_ID:
        return {
            "assistantId": assistant_id,
            "exists": False,
            "status": 200,
            "statusText": "Connection Test",
            "keyInfo": key_info,
            "connectionTest": True,
        }
    probe = vapi.probe_assistant(assistant_id)
    result = {
        "assistantId": assistant_id,
        "exists": probe["ok"],
        "status": probe["status"],
        "statusText": probe["status_text"],
        "keyInfo": key_info,
    }
    if probe["ok"]:
        data = probe.get("data") or {}
        result["name"] = data.get("name")
        result["voice"] = data.get("voice")
        result["model"] = data.get("model")
    else:
        result["error"] = probe.get("error")
    return result


def _system_prompt_of(remote: dict) -> str:
    messages = (remote.get("model") or {}).get("messages") or []
    for m in messages:
        if isinstance(m, dict) and m.get("role") == "system" and m.get("content"):
            return m["content"]
    return DEFAULT_SYSTEM_PROMPT


def sync_vapi_assistants(db: Session, user_id: str) -> dict:
    remote = vapi.list_assistants()
    known = set(
        db.execute(select(Assistant.vapi_assistant_id).where(Assistant.vapi_assistant_id.is_not(None))).scalars().all()
    )
    imported = 0
    for item in remote:
        vapi_id = item.get("id") if isinstance(item, dict) else None
        if not vapi_id or vapi_id in known:
            continue
        db.add(
            Assistant(
                user_id=user_id,
                vapi_assistant_id=vapi_id,
                name=item.get("name") or DEFAULT_ASSISTANT_NAME,
                welcome_message=item.get("firstMessage") or DEFAULT_WELCOME_MESSAGE,
                system_prompt=_system_prompt_of(item),
                language="en",
                voice_id=(item.get("voice") or {}).get("voiceId") or DEFAULT_VOICE_ID,
                position="right",
                theme="light",
                status="active",
            )
        )
        known.add(vapi_id)
        imported += 1
    if imported:
        db.commit()
    logger.info("vapi_assistants_synced user_id=%s imported=%s scanned=%s", user_id, imported, len(remote))
    return {"success": True, "imported": imported, "scanned": len(remote)}


def cleanup_assistant_tools(assistant: Assistant) -> dict:
    """Drop tool ids that no longer exist on the platform from the assistant model."""
    remote = vapi.get_assistant(assistant.vapi_assistant_id)
    model = remote.get("model") or {}
    current = model.get("toolIds") or remote.get("tools") or []
    valid: list[str] = []
    invalid: list[str] = []
    for tool_id in current:
        (valid if vapi.tool_exists(tool_id) else invalid).append(tool_id)
    if invalid:
        vapi.update_assistant(assistant.vapi_assistant_id, {"model": {**model, "toolIds": valid}})
        logger.info("assistant_tools_cleaned id=%s removed=%s", assistant.vapi_assistant_id, len(invalid))
    return {
        "success": True,
        "validToolIds": valid,
        "invalidToolIds": invalid,
        "cleanupPerformed": bool(invalid),
        "message": (
            f"Cleaned up {len(invalid)} invalid tools" if invalid else "No cleanup needed - all tools are valid"
        ),
    }


def add_page_analyzer_tool(assistant: Assistant, description: str | None = None) -> dict:
    tool = vapi.create_tool(build_page_analyzer_tool(description=description))
    tool_id = tool.get("id")
    if not tool_id:
        raise vapi.VapiError(vapi.VAPI_ERR_NO_ID, "VAPI create tool error: no tool id returned")
    remote = vapi.get_assistant(assistant.vapi_assistant_id)
    model = remote.get("model") or {}
    tool_ids = [*(model.get("toolIds") or []), tool_id]
    vapi.update_assistant(assistant.vapi_assistant_id, {"model": {**model, "toolIds": tool_ids}})
    logger.info("page_analyzer_tool_added assistant=%s tool_id=%s", assistant.vapi_assistant_id, tool_id)
    return {
        "success": True,
        "toolId": tool_id,
        "toolName": (tool.get("function") or {}).get("name"),
        "message": "Page analyzer tool created and added to assistant successfully",
    }
