"""Звонки: старт/стоп web-звонка, события звонков с платформы, дневная аналитика."""
from __future__ import annotations

import json
import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from apps.backend.clients import vapi
from apps.backend.models.assistant import Assistant
from apps.backend.models.call import CallLog, CallAnalytics

logger = logging.getLogger(__name__)

CALL_ACTIONS = ("start", "stop")
FAILED_END_REASONS = frozenset({
    "assistant-error",
    "pipeline-error-voice-provider-playht-audio-too-short",
})


class CallError(Exception):
    def __init__(self, code: str, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code


def handle_call_action(action: str | None, assistant_id: str | None, call_id: str | None = None) -> dict:
    if not assistant_id:
        raise CallError("missing_assistant_id", "Assistant ID is required")
    if action == "start":
        return vapi.start_web_call(assistant_id)
    if action == "stop":
        if not call_id:
            raise CallError("missing_call_id", "Call ID is required for stop action")
        return vapi.end_call(call_id)
    raise CallError("invalid_action", 'Invalid action. Use "start" or "stop"')


def parse_ts(value) -> datetime | None:
    """ISO-8601 (с `Z` или смещением) -> naive UTC."""
    if not value or not isinstance(value, str):
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        logger.warning("call_bad_timestamp value=%s", value[:64])
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _call_metadata(call: dict) -> dict:
    return {
        "orgId": call.get("orgId"),
        "createdAt": call.get("createdAt"),
        "updatedAt": call.get("updatedAt"),
    }


def upsert_call_log(db: Session, assistant: Assistant, call: dict, values: dict) -> CallLog:
    log = db.execute(select(CallLog).where(CallLog.vapi_call_id == call["id"])).scalars().first()
    if log is None:
        log = CallLog(vapi_call_id=call["id"])
    log.user_id = assistant.user_id
    log.assistant_id = assistant.id
    log.vapi_assistant_id = (call.get("assistant") or {}).get("id")
    log.call_type = call.get("type") or log.call_type or "webCall"
    log.status = call.get("status") or log.status or "queued"
    log.metadata_json = _call_metadata(call)
    for key, value in values.items():
        setattr(log, key, value)
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def handle_call_start(db: Session, assistant: Assistant, call: dict) -> CallLog:
    return upsert_call_log(db, assistant, call, {
        "started_at": parse_ts(call.get("startedAt")) or datetime.utcnow(),
        "phone_number": call.get("phoneNumber"),
    })


def handle_call_end(db: Session, assistant: Assistant, call: dict) -> CallLog:
    started = parse_ts(call.get("startedAt"))
    ended = parse_ts(call.get("endedAt"))
    duration = int((ended - started).total_seconds()) if started and ended else None
    log = upsert_call_log(db, assistant, call, {
        "started_at": started,
        "ended_at": ended or datetime.utcnow(),
        "duration_seconds": duration,
        "ended_reason": call.get("endedReason"),
        "phone_number": call.get("phoneNumber"),
        "recording_url": call.get("recordingUrl"),
        "transcript": call.get("transcript"),
        "messages": call.get("messages"),
        "costs": call.get("costs"),
        "analysis": call.get("analysis"),
    })
    try:
        update_daily_analytics(db, assistant.user_id, (log.started_at or log.ended_at).date())
    except Exception:
        db.rollback()
        logger.exception("call_analytics_update_failed user_id=%s", assistant.user_id)
    return log


def handle_call_update(db: Session, assistant: Assistant, call: dict) -> CallLog | None:
    log = db.execute(
        select(CallLog).where(CallLog.vapi_call_id == call["id"], CallLog.user_id == assistant.user_id)
    ).scalars().first()
    if log is None:
        return None
    log.status = call.get("status") or log.status
    log.messages = call.get("messages")
    log.transcript = call.get("transcript")
    log.metadata_json = _call_metadata(call)
    db.add(log)
    db.commit()
    return log


def is_successful_call(log: CallLog) -> bool:
    return log.status == "ended" and log.ended_reason not in FAILED_END_REASONS


def call_cost(log: CallLog) -> float:
    total = 0.0
    for item in log.costs or []:
        if isinstance(item, dict):
            total += float(item.get("cost") or 0)
    return total


def update_daily_analytics(db: Session, user_id: str, day: date | None = None) -> CallAnalytics | None:
    """Пересчитать агрегат по всем ассистентам пользователя за день."""
    day = day or datetime.utcnow().date()
    start = datetime(day.year, day.month, day.day)
    end = start + timedelta(days=1)
    calls = db.execute(
        select(CallLog).where(
            CallLog.user_id == user_id,
            CallLog.started_at >= start,
            CallLog.started_at < end,
        )
    ).scalars().all()
    if not calls:
        return None

    total = len(calls)
    successful = sum(1 for c in calls if is_successful_call(c))
    duration = sum(c.duration_seconds or 0 for c in calls)

    row = db.execute(
        select(CallAnalytics).where(
            CallAnalytics.user_id == user_id,
            CallAnalytics.assistant_id.is_(None),
            CallAnalytics.date == day,
        )
    ).scalars().first()
    if row is None:
        row = CallAnalytics(user_id=user_id, assistant_id=None, date=day)
    row.total_calls = total
    row.successful_calls = successful
    row.failed_calls = total - successful
    row.total_duration_seconds = duration
    row.total_cost = sum(call_cost(c) for c in calls)
    row.average_duration_seconds = duration / total
    row.success_rate = successful / total * 100
    db.add(row)
    db.commit()
    logger.info("call_analytics_updated user_id=%s date=%s total=%s", user_id, day, total)
    return row


ANALYTICS_TIMEFRAMES = {"24h": 1, "7d": 7, "30d": 30, "90d": 90}
DEFAULT_TIMEFRAME = "7d"
TOP_ASSISTANTS_LIMIT = 5


def get_call_analytics(db: Session, user_id: str, timeframe: str | None = None, today: date | None = None) -> dict:
    """Дневные агрегаты пользователя и итоги за окно `timeframe` (24h/7d/30d/90d)."""
    if timeframe not in ANALYTICS_TIMEFRAMES:
        timeframe = DEFAULT_TIMEFRAME
    today = today or datetime.utcnow().date()
    start_day = today - timedelta(days=ANALYTICS_TIMEFRAMES[timeframe])
    rows = db.execute(
        select(CallAnalytics)
        .where(
            CallAnalytics.user_id == user_id,
            CallAnalytics.assistant_id.is_(None),
            CallAnalytics.date >= start_day,
            CallAnalytics.date <= today,
        )
        .order_by(CallAnalytics.date.asc())
    ).scalars().all()

    total = sum(r.total_calls for r in rows)
    successful = sum(r.successful_calls for r in rows)
    duration = sum(r.total_duration_seconds for r in rows)
    cost = sum(r.total_cost for r in rows)

    window_start = datetime(start_day.year, start_day.month, start_day.day)
    window_end = datetime(today.year, today.month, today.day) + timedelta(days=1)
    in_window = (
        CallLog.user_id == user_id,
        CallLog.started_at >= window_start,
        CallLog.started_at < window_end,
    )
    by_status = db.execute(
        select(CallLog.status, func.count(CallLog.id)).where(*in_window).group_by(CallLog.status)
    ).all()
    top = db.execute(
        select(Assistant.id, Assistant.name, func.count(CallLog.id).label("calls"))
        .join(CallLog, CallLog.assistant_id == Assistant.id)
        .where(*in_window)
        .group_by(Assistant.id, Assistant.name)
        .order_by(func.count(CallLog.id).desc())
        .limit(TOP_ASSISTANTS_LIMIT)
    ).all()

    return {
        "success": True,
        "timeframe": timeframe,
        "data": {
            "totalCalls": total,
            "successfulCalls": successful,
            "failedCalls": total - successful,
            "totalDuration": duration,
            "averageDuration": round(duration / total) if total else 0,
            "totalCost": round(cost, 4),
            "failureRate": round((total - successful) / total * 100, 2) if total else 0,
            "dailyStats": [
                {
                    "date": r.date.isoformat(),
                    "calls": r.total_calls,
                    "duration": r.total_duration_seconds,
                    "cost": round(r.total_cost, 4),
                    "successRate": round(r.success_rate, 2),
                }
                for r in rows
            ],
            "topAssistants": [{"id": a_id, "name": name, "calls": calls} for a_id, name, calls in top],
            "callsByStatus": {status: count for status, count in by_status},
        },
    }


def _function_call_of(message: dict) -> dict | None:
    if message.get("functionCall"):
        return message["functionCall"]
    tool_calls = message.get("toolCalls") or []
    if not tool_calls:
        return None
    fn = tool_calls[0].get("function") or {}
    args = fn.get("arguments")
    if isinstance(args, str):
        try:
            args = json.loads(args)
        except ValueError:
            args = {}
    return {"name": fn.get("name"), "parameters": args or {}}


_FUNCTION_ACTIONS = {
    "scroll_page": "scroll",
    "click_element": "click",
    "fill_field": "fill",
    "toggle_element": "toggle",
}


def function_call_result(message: dict, user_id: str) -> dict | None:
    """Ответ платформе на вызов навигационного тула (команда исполняется в браузере)."""
    fc = _function_call_of(message)
    if not fc:
        return None
    action = _FUNCTION_ACTIONS.get(fc.get("name"))
    if not action:
        return {"error": f"Unknown function: {fc.get('name')}"}
    command = {"userId": user_id, "action": action, "timestamp": datetime.utcnow().isoformat()}
    command.update(fc.get("parameters") or {})
    return {"result": f"Executed {action} command successfully", "command": command}


def find_assistant_by_vapi_id(db: Session, vapi_assistant_id: str | None) -> Assistant | None:
    if not vapi_assistant_id:
        return None
    return db.execute(
        select(Assistant).where(Assistant.vapi_assistant_id == vapi_assistant_id)
    ).scalars().first()


def process_call_webhook(db: Session, payload: dict) -> dict:
    """Разбор события платформы. CallError -> 400/404 в роутере."""
    call = payload.get("call") if isinstance(payload.get("call"), dict) else None
    message = payload.get("message") if isinstance(payload.get("message"), dict) else None

    if message:
        vapi_id = (payload.get("assistant") or {}).get("id") or ((call or {}).get("assistant") or {}).get("id")
        assistant = find_assistant_by_vapi_id(db, vapi_id)
        if assistant is not None:
            result = function_call_result(message, assistant.user_id)
            if result:
                return result

    if not call or not call.get("id"):
        raise CallError("missing_call", "No call data in payload")

    assistant = find_assistant_by_vapi_id(db, (call.get("assistant") or {}).get("id"))
    if assistant is None:
        raise CallError("assistant_not_found", "Assistant not found", status_code=404)

    event = payload.get("type")
    if event == "call-start":
        handle_call_start(db, assistant, call)
    elif event == "call-end":
        handle_call_end(db, assistant, call)
    elif event == "call-update":
        handle_call_update(db, assistant, call)
    else:
        logger.info("call_webhook_ignored type=%s", event)
    return {"success": True}
