from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class TraceStatus(str, Enum):
    MAPPED = "mapped"
    SCRAPED = "scraped"
    ERROR = "error"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TraceTiming(_CamelModel):
    discovered_at: str
    scraped_at: str | None = None
    completed_at: str | None = None


class ContentStats(_CamelModel):
    raw_content_length: int = 0
    processed_content_length: int = 0
    tokens_used: int = 0


class URLTrace(_CamelModel):
    """Audit record of one URL's journey through an extraction request."""

    url: str
    status: TraceStatus = TraceStatus.MAPPED
    timing: TraceTiming
    relevance_score: float | None = None
    used_in_completion: bool | None = None
    warning: str | None = None
    error: str | None = None
    content_stats: ContentStats | None = None
