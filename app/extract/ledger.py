from __future__ import annotations

import threading
from datetime import datetime, timezone

from app.models.trace import ContentStats, TraceStatus, TraceTiming, URLTrace


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TraceLedger:
    """Per-request store of URL traces, keyed by URL.

    Resolver and dispatcher tasks update it concurrently, so every read and
    write goes through the lock. Traces handed out by ``snapshot`` are copies.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._traces: dict[str, URLTrace] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._traces)

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._traces

    def record(self, url: str, *, used_in_completion: bool | None = None) -> bool:
        """Add a ``mapped`` trace for ``url``; returns False if one already exists."""
        with self._lock:
            if url in self._traces:
                return False
            self._traces[url] = URLTrace(
                url=url,
                status=TraceStatus.MAPPED,
                timing=TraceTiming(discovered_at=_now_iso()),
                used_in_completion=used_in_completion,
            )
            return True

    def get(self, url: str) -> URLTrace | None:
        with self._lock:
            trace = self._traces.get(url)
            return trace.model_copy(deep=True) if trace else None

    def mark_used(self, url: str, used: bool = True) -> None:
        with self._lock:
            trace = self._traces.get(url)
            if trace is None:
                return
            if used and trace.status == TraceStatus.ERROR:
                return
            trace.used_in_completion = used

    def set_warning(self, url: str, warning: str, *, used_in_completion: bool | None = None) -> None:
        with self._lock:
            trace = self._traces.get(url)
            if trace is None:
                return
            trace.warning = warning
            if used_in_completion is not None:
                trace.used_in_completion = used_in_completion

    def set_relevance(self, url: str, score: float) -> None:
        with self._lock:
            trace = self._traces.get(url)
            if trace is not None:
                trace.relevance_score = score

    def mark_error(self, url: str, message: str) -> None:
        with self._lock:
            trace = self._traces.get(url)
            if trace is None:
                return
            trace.status = TraceStatus.ERROR
            trace.error = message
            trace.used_in_completion = False

    def mark_scraped(self, url: str) -> None:
        with self._lock:
            trace = self._traces.get(url)
            if trace is None or trace.status == TraceStatus.ERROR:
                return
            trace.status = TraceStatus.SCRAPED
            if trace.timing.scraped_at is None:
                trace.timing.scraped_at = _now_iso()

    def mark_completed(self, url: str, content_length: int) -> None:
        with self._lock:
            trace = self._traces.get(url)
            if trace is None:
                return
            if trace.timing.completed_at is None:
                trace.timing.completed_at = _now_iso()
            trace.content_stats = ContentStats(
                raw_content_length=content_length,
                processed_content_length=content_length,
                tokens_used=0,
            )

    def set_tokens_used(self, url: str, tokens: int) -> None:
        with self._lock:
            trace = self._traces.get(url)
            if trace is not None and trace.content_stats is not None:
                trace.content_stats.tokens_used = tokens

    def snapshot(self) -> list[URLTrace]:
        with self._lock:
            return [trace.model_copy(deep=True) for trace in self._traces.values()]
