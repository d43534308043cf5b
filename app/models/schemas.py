from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.config import settings
from app.models.trace import URLTrace


def _normalize_request_url(value: str) -> str:
    url = value.strip()
    if not url:
        raise ValueError("URL must not be empty")
    if "://" not in url:
        url = f"http://{url}"
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"URL must use http or https: {value}")
    host = parsed.hostname or ""
    if "." not in host and host != "localhost":
        raise ValueError(f"URL must have a valid top-level domain or be a valid path: {value}")
    return url


# --- Requests ---


class ExtractRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    urls: list[str] = Field(min_length=1)
    prompt: str | None = None
    extraction_schema: dict[str, Any] | None = Field(default=None, alias="schema")
    system_prompt: str | None = None
    allow_external_links: bool = False
    include_subdomains: bool = True
    limit: int | None = Field(default=None, gt=0)
    timeout: int | None = Field(default=None, ge=0)
    origin: str = "api"

    @field_validator("urls")
    @classmethod
    def _validate_urls(cls, urls: list[str]) -> list[str]:
        if len(urls) > settings.extract_max_urls:
            raise ValueError(f"At most {settings.extract_max_urls} URLs are allowed per request")
        return [_normalize_request_url(url) for url in urls]

    @model_validator(mode="after")
    def _require_prompt_or_schema(self) -> "ExtractRequest":
        if not (self.prompt or self.extraction_schema):
            raise ValueError("Either prompt or schema is required")
        return self


# --- Responses ---


class ExtractResponse(BaseModel):
    success: bool
    data: Any | None = None
    scrape_id: str
    warning: str | None = None
    error: str | None = None
    url_trace: list[URLTrace] = Field(default_factory=list, serialization_alias="urlTrace")

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
