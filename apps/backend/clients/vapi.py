"""Клиент REST API голосовой платформы (Vapi). Ключ в логах только маской."""
from __future__ import annotations

import logging

import httpx

from apps.backend.clients.errors import ExternalServiceError, short_text
from apps.backend.config import get_settings

logger = logging.getLogger(__name__)

VAPI_ERR_NOT_CONFIGURED = "vapi_not_configured"
VAPI_ERR_HTTP = "vapi_http_error"
VAPI_ERR_UNREACHABLE = "vapi_unreachable"
VAPI_ERR_NO_ID = "vapi_no_id"


class VapiError(ExternalServiceError):
    service = "vapi"


def mask_key(key: str | None) -> str:
    k = (key or "").strip()
    if not k:
        return "Not configured"
    if len(k) <= 12:
        return "***"
    return f"{k[:8]}...{k[-4:]}"


def key_info() -> dict:
    return {"privateKeyPrefix": mask_key(get_settings().vapi_private_key)}


def _client() -> httpx.Client:
    s = get_settings()
    if not s.vapi_private_key:
        raise VapiError(VAPI_ERR_NOT_CONFIGURED, "VAPI_PRIVATE_KEY not configured")
    return httpx.Client(
        base_url=s.vapi_api_base.rstrip("/"),
        headers={"Authorization": f"Bearer {s.vapi_private_key}"},
        timeout=s.vapi_timeout_seconds,
    )


def _request(method: str, path: str, **kwargs) -> httpx.Response:
    try:
        with _client() as c:
            return c.request(method, path, **kwargs)
    except httpx.RequestError as e:
        logger.warning("vapi_request_failed method=%s path=%s err=%s", method, path, short_text(str(e)))
        raise VapiError(VAPI_ERR_UNREACHABLE, f"Voice platform unreachable: {short_text(str(e))}", status_code=502)


def _json_or_raise(r: httpx.Response, what: str):
    if r.status_code >= 400:
        body = short_text(r.text)
        logger.warning("vapi_http_error what=%s status=%s body=%s", what, r.status_code, body)
        raise VapiError(
            VAPI_ERR_HTTP,
            f"VAPI {what} error: {r.status_code} - {body}",
            upstream_status=r.status_code,
        )
    return r.json() if r.content else {}


def create_assistant(payload: dict) -> dict:
    r = _request("POST", "/assistant", json=payload)
    return _json_or_raise(r, "create assistant")


def get_assistant(assistant_id: str) -> dict:
    r = _request("GET", f"/assistant/{assistant_id}")
    return _json_or_raise(r, "get assistant")


def probe_assistant(assistant_id: str) -> dict:
    """GET без исключения на 4xx: {status, status_text, data | error}."""
    r = _request("GET", f"/assistant/{assistant_id}")
    out: dict = {"status": r.status_code, "status_text": r.reason_phrase, "ok": r.status_code < 400}
    if out["ok"]:
        out["data"] = r.json() if r.content else {}
    else:
        out["error"] = short_text(r.text, 500)
    return out


def list_assistants() -> list[dict]:
    r = _request("GET", "/assistant")
    data = _json_or_raise(r, "list assistants")
    if isinstance(data, dict):
        data = data.get("items") or []
    return data if isinstance(data, list) else []


def update_assistant(assistant_id: str, payload: dict) -> dict:
    r = _request("PATCH", f"/assistant/{assistant_id}", json=payload)
    return _json_or_raise(r, "update assistant")


def upload_file(filename: str, content: bytes, content_type: str) -> dict:
    r = _request("POST", "/file", files={"file": (filename, content, content_type)})
    return _json_or_raise(r, "file upload")


def list_files() -> list[dict]:
    r = _request("GET", "/file")
    data = _json_or_raise(r, "list files")
    return data if isinstance(data, list) else []


def create_tool(payload: dict) -> dict:
    r = _request("POST", "/tool", json=payload)
    return _json_or_raise(r, "create tool")


def tool_exists(tool_id: str) -> bool:
    """Только 404 значит "тула нет"; 5xx и сетевые ошибки -> VapiError."""
    r = _request("GET", f"/tool/{tool_id}")
    if r.status_code == 404:
        return False
    if r.status_code >= 400:
        _json_or_raise(r, "get tool")
    return True


def start_web_call(assistant_id: str) -> dict:
    r = _request("POST", "/call/web", json={"assistantId": assistant_id})
    return _json_or_raise(r, "start call")


def end_call(call_id: str) -> dict:
    r = _request("PATCH", f"/call/{call_id}", json={"status": "ended"})
    return _json_or_raise(r, "end call")
