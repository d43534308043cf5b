"""Parallel fetch of resolved URLs through the scrape job queue."""

from __future__ import annotations

import asyncio
import math
from uuid import uuid4

from loguru import logger

from app.extract.errors import UpstreamBatchError
from app.extract.interfaces import AuthContext, FetchedDocument, JobQueue, PriorityPolicy, ScrapeJob
from app.extract.ledger import TraceLedger

TIMEOUT_SCALE = 0.7
DEFAULT_FETCH_TIMEOUT_MS = 30000
BASE_PRIORITY = 10


def effective_timeout_ms(request_timeout_ms: int | None, default_ms: int = DEFAULT_FETCH_TIMEOUT_MS) -> int:
    """Scale the request timeout for a single fetch; a zero result falls back to ``default_ms``."""
    return math.floor((request_timeout_ms or 0) * TIMEOUT_SCALE) or default_ms


class FetchDispatcher:
    def __init__(
        self,
        queue: JobQueue,
        priority: PriorityPolicy,
        *,
        default_timeout_ms: int = DEFAULT_FETCH_TIMEOUT_MS,
        base_priority: int = BASE_PRIORITY,
    ):
        self.queue = queue
        self.priority = priority
        self.default_timeout_ms = default_timeout_ms
        self.base_priority = base_priority

    async def dispatch(
        self,
        urls: list[str],
        *,
        auth: AuthContext,
        ledger: TraceLedger,
        timeout_ms: int | None = None,
        origin: str = "api",
    ) -> list[FetchedDocument]:
        """Fetch every URL; returns the documents that succeeded in completion order.

        Per-URL failures are recorded on the ledger. An ``UpstreamBatchError``
        from any fetch is raised once every fetch has settled.
        """
        completed: list[FetchedDocument] = []
        timeout = effective_timeout_ms(timeout_ms, self.default_timeout_ms)

        async def fetch(url: str) -> None:
            doc = await self._fetch_one(url, auth=auth, ledger=ledger, timeout=timeout, origin=origin)
            if doc is not None:
                completed.append(doc)

        results = await asyncio.gather(*(fetch(url) for url in urls), return_exceptions=True)

        upstream: UpstreamBatchError | None = None
        for item in results:
            if isinstance(item, UpstreamBatchError):
                upstream = upstream or item
            elif isinstance(item, BaseException):
                raise item
        if upstream is not None:
            raise upstream
        return completed

    async def _fetch_one(
        self,
        url: str,
        *,
        auth: AuthContext,
        ledger: TraceLedger,
        timeout: int,
        origin: str,
    ) -> FetchedDocument | None:
        ledger.mark_scraped(url)
        job_id = str(uuid4())

        try:
            priority = await self.priority.compute_priority(auth.plan, auth.team_id, self.base_priority)
            await self.queue.add_job(
                ScrapeJob(url=url, team_id=auth.team_id, plan=auth.plan, origin=origin),
                job_id,
                priority,
            )
            doc = await self.queue.wait_for_job(job_id, timeout)
        except UpstreamBatchError:
            raise
        except Exception as exc:
            logger.error(f"Error fetching {url}: {exc}")
            ledger.mark_error(url, str(exc))
            return None
        finally:
            await self._release(job_id)

        ledger.mark_completed(url, len(doc.content or ""))
        # Every fetched document goes into the completion context.
        ledger.mark_used(url)
        return doc

    async def _release(self, job_id: str) -> None:
        try:
            await self.queue.remove(job_id)
        except Exception as exc:
            logger.warning(f"Failed to release job {job_id}: {exc}")
