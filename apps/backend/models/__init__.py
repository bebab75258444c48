"""Модели SQLAlchemy."""
from apps.backend.models.assistant import Assistant, AssistantFile
from apps.backend.models.embed import EmbedMapping
from apps.backend.models.scrape import ScrapedWebsite
from apps.backend.models.call import CallLog, CallAnalytics

__all__ = [
    "Assistant",
    "AssistantFile",
    "EmbedMapping",
    "ScrapedWebsite",
    "CallLog",
    "CallAnalytics",
]
