"""Payloads of tools created on the voice platform."""
from __future__ import annotations

import re

from apps.backend.config import get_settings

NAVIGATION_TOOL_NAMES = ("scroll_page", "click_element", "fill_field", "toggle_element")
PAGE_ANALYZER_TOOL_NAME = "analyze_page_context"
DEFAULT_PAGE_ANALYZER_DESCRIPTION = (
    "Analyzes the current webpage structure and content for better voice navigation"
)

_SESSION_ID_PROP = {
    "type": "string",
    "description": "Unique session identifier for isolation - REQUIRED",
}


def tool_server_url() -> str:
    """URL, на который платформа отправляет вызовы function-тулов."""
    s = get_settings()
    if s.vapi_tool_server_url:
        return s.vapi_tool_server_url
    base = (s.public_base_url or "").rstrip("/")
    return f"{base}/v1/calls/webhook"


def kb_slug(name: str) -> str:
    return re.sub(r"\s+", "-", (name or "").strip().lower()) or "assistant"


def build_query_tool(assistant_name: str, file_ids: list[str]) -> dict:
    return {
        "type": "query",
        "queryKnowledgeBase": {
            "topK": 10,
            "fileIds": list(file_ids),
            "enabled": True,
        },
        "knowledgeBases": [
            {
                "provider": "google",
                "name": f"{kb_slug(assistant_name)}-kb",
                "description": (
                    f"Knowledge base for {assistant_name} - contains information and "
                    "documents to help answer user queries accurately"
                ),
                "fileIds": list(file_ids),
            }
        ],
    }


def _function_tool(name: str, description: str, properties: dict, required: list[str], server_url: str) -> dict:
    return {
        "type": "function",
        "async": False,
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": {"sessionId": dict(_SESSION_ID_PROP), **properties},
                "required": ["sessionId", *required],
            },
        },
        "server": {"url": server_url},
    }


def build_navigation_tools(server_url: str | None = None) -> list[dict]:
    url = server_url or tool_server_url()
    return [
        _function_tool(
            "scroll_page",
            "Scroll the page in the specified direction",
            {
                "direction": {
                    "type": "string",
                    "enum": ["up", "down", "top", "bottom"],
                    "description": "Direction to scroll the page",
                }
            },
            ["direction"],
            url,
        ),
        _function_tool(
            "click_element",
            "Click a button, link, or interactive element on the page",
            {"selector": {"type": "string", "description": "CSS selector for the element to click"}},
            ["selector"],
            url,
        ),
        _function_tool(
            "fill_field",
            "Fill an input field with the specified value",
            {
                "selector": {"type": "string", "description": "CSS selector for the input field"},
                "value": {"type": "string", "description": "Value to fill in the field"},
            },
            ["selector", "value"],
            url,
        ),
        _function_tool(
            "toggle_element",
            "Toggle a checkbox, switch, or similar UI control",
            {"selector": {"type": "string", "description": "CSS selector for the element to toggle"}},
            ["selector"],
            url,
        ),
    ]


def _array_of(props: dict) -> dict:
    return {"type": "array", "items": {"type": "object", "properties": props}}


def build_page_analyzer_tool(server_url: str | None = None, description: str | None = None) -> dict:
    s = {"type": "string"}
    page_data = {
        "type": "object",
        "description": "Complete page analysis data including DOM structure, content, and interactive elements",
        "properties": {
            "pageTitle": s,
            "pageURL": s,
            "headings": _array_of({"level": {"type": "number"}, "text": s}),
            "navigation": _array_of({"text": s, "href": s}),
            "interactiveElements": _array_of({"type": s, "text": s, "id": s, "selector": s}),
            "forms": _array_of({"id": s, "inputs": _array_of({"type": s, "name": s, "label": s})}),
            "contentSections": _array_of({"heading": s, "content": s}),
            "pageType": s,
            "keyContent": s,
        },
    }
    return {
        "type": "function",
        "function": {
            "name": PAGE_ANALYZER_TOOL_NAME,
            "description": description or DEFAULT_PAGE_ANALYZER_DESCRIPTION,
            "parameters": {
                "type": "object",
                "properties": {"pageData": page_data},
                "required": ["pageData"],
            },
        },
        "server": {"url": server_url or tool_server_url()},
    }


def is_voice_navigation(template: str | None, prompt: str | None) -> bool:
    p = prompt or ""
    return template == "voice-navigation" or "scroll_page" in p or "click_element" in p
