"""Unified API error envelope (compatible with legacy clients)."""
from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


def error_envelope(
    *,
    code: str,
    message: str,
    trace_id: str,
    detail: str | None = None,
    legacy_error: bool = True,
) -> dict:
    out = {
        "success": False,
        "code": code,
        "message": message,
        "trace_id": trace_id,
    }
    if detail:
        out["detail"] = detail
    # Backward compatibility: existing clients read `error`.
    if legacy_error:
        out["error"] = code
    return out


def request_trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "") or ""


def error_response(
    request: Request,
    code: str,
    message: str,
    status_code: int,
    detail: str | None = None,
) -> JSONResponse:
    trace_id = request_trace_id(request)
    resp = JSONResponse(
        error_envelope(code=code, message=message, trace_id=trace_id, detail=detail),
        status_code=status_code,
    )
    if trace_id:
        resp.headers["X-Trace-Id"] = trace_id
    return resp
