"""Ошибки внешних сервисов (без секретов в тексте)."""
from __future__ import annotations


class ExternalServiceError(Exception):
    """Non-2xx ответ, сетевой сбой или отсутствие конфигурации внешнего API."""

    service = "external"

    def __init__(
        self,
        code: str,
        detail: str = "",
        *,
        status_code: int = 500,
        upstream_status: int | None = None,
    ) -> None:
        super().__init__(detail or code)
        self.code = code
        self.detail = detail or code
        self.status_code = status_code
        self.upstream_status = upstream_status


def short_text(text: str | None, limit: int = 200) -> str:
    return (text or "").strip()[:limit]
