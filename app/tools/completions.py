"""LLM-backed query rephrasing and structured extraction."""

from __future__ import annotations

import json
import time
from typing import Any, Callable

from app.config import settings
from app.extract.interfaces import CompletionResult
from app.llm_client import client as llm_client
from app.llm_client import get_model, get_rephrase_model, temperature_for_model
from app.services import logger as log_service
from app.services.prompt_store import render_prompt

TRIMMED_WARNING = "Page was trimmed to fit the maximum token limit defined by the LLM model."


def prepare_schema(schema: dict[str, Any] | None) -> tuple[dict[str, Any] | None, bool]:
    """Return a root-object schema and whether the result must be unwrapped from ``items``."""
    if schema is None:
        return None, False
    if schema.get("type") == "object":
        return schema, False
    wrapped = {
        "type": "object",
        "properties": {"items": schema},
        "required": ["items"],
        "additionalProperties": False,
    }
    return wrapped, True


def trim_context(context: str, max_chars: int) -> tuple[str, str | None]:
    if max_chars <= 0 or len(context) <= max_chars:
        return context, None
    return context[:max_chars], TRIMMED_WARNING


def parse_json_payload(text: str | None) -> Any:
    if not text:
        return None
    # Tolerates code fences and chatter around the object.
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end < start:
        raise ValueError("Completion did not contain a JSON object")
    return json.loads(text[start : end + 1])


class LLMCompleter:
    def __init__(
        self,
        client_factory: Callable[[], Any] = llm_client,
        *,
        model: str | None = None,
        max_context_chars: int | None = None,
    ):
        self._client_factory = client_factory
        self.model = model or get_model()
        self.max_context_chars = (
            max_context_chars if max_context_chars is not None else settings.extract_max_context_chars
        )

    async def rephrase(self, prompt: str, url: str) -> str | None:
        model = get_rephrase_model()
        started = time.monotonic()
        response = await self._client_factory().chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": render_prompt("extract.rephrase_query", prompt=prompt, url=url)}],
            max_tokens=200,
            temperature=temperature_for_model(model),
        )
        self._log(model, "rephrase", response, started)
        text = (response.choices[0].message.content or "").strip().strip('"')
        return text or None

    async def extract(
        self,
        *,
        system_prompt: str,
        prompt: str | None,
        schema: dict[str, Any] | None,
        context: str,
    ) -> CompletionResult:
        context, warning = trim_context(context, self.max_context_chars)
        root_schema, unwrap = prepare_schema(schema)

        system = system_prompt
        if root_schema is None:
            system = f"{system_prompt}\n{render_prompt('extract.no_schema_instruction')}"
            response_format: dict[str, Any] = {"type": "json_object"}
        else:
            response_format = {
                "type": "json_schema",
                "json_schema": {"name": "extraction", "schema": root_schema, "strict": False},
            }

        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": context},
            {"role": "user", "content": render_prompt("extract.user_message", prompt=prompt or "")},
        ]

        started = time.monotonic()
        try:
            response = await self._client_factory().chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature_for_model(self.model),
                response_format=response_format,
            )
        except Exception as exc:
            log_service.log_llm_call(
                model=self.model,
                caller="extract",
                duration_ms=int((time.monotonic() - started) * 1000),
                status="error",
                error=str(exc),
            )
            raise
        tokens = self._log(self.model, "extract", response, started)

        data = parse_json_payload(response.choices[0].message.content)
        if unwrap and isinstance(data, dict):
            data = data.get("items")
        return CompletionResult(data=data, warning=warning, tokens_used=tokens)

    @staticmethod
    def _log(model: str, caller: str, response: Any, started: float) -> int:
        usage = getattr(response, "usage", None)
        tokens = int(getattr(usage, "total_tokens", 0) or 0)
        log_service.log_llm_call(
            model=model,
            caller=caller,
            total_tokens=tokens,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return tokens
