"""In-process priority queue for scrape jobs."""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from typing import Awaitable, Callable

from loguru import logger

from app.config import settings
from app.extract.errors import JobFailedError, JobTimeoutError, QueueUnavailableError
from app.extract.interfaces import FetchedDocument, ScrapeJob
from app.tools.job_priority import JobPriorityTracker

FetchFn = Callable[[ScrapeJob], Awaitable[FetchedDocument]]


@dataclass(slots=True)
class _JobState:
    job: ScrapeJob
    future: asyncio.Future
    task: asyncio.Task | None = None


class ScrapeQueue:
    """Runs scrape jobs on a fixed pool of workers, lowest priority number first.

    Removing a job that is still running cancels its fetch.
    """

    def __init__(
        self,
        fetch: FetchFn,
        *,
        workers: int | None = None,
        priority_tracker: JobPriorityTracker | None = None,
    ):
        self._fetch = fetch
        self.worker_count = max(int(workers or settings.scrape_queue_workers), 1)
        self.priority_tracker = priority_tracker
        self._queue: asyncio.PriorityQueue[tuple[int, int, str]] | None = None
        self._jobs: dict[str, _JobState] = {}
        self._workers: list[asyncio.Task] = []
        self._seq = itertools.count()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def __len__(self) -> int:
        return len(self._jobs)

    async def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.PriorityQueue()
        self._workers = [
            asyncio.create_task(self._worker(), name=f"scrape-worker-{i}")
            for i in range(self.worker_count)
        ]
        logger.info(f"Scrape queue started with {self.worker_count} workers")

    async def close(self) -> None:
        workers, self._workers = self._workers, []
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        for job_id in list(self._jobs):
            await self.remove(job_id)
        self._queue = None
        logger.info("Scrape queue stopped")

    async def add_job(self, job: ScrapeJob, job_id: str, priority: int) -> None:
        if not self.running or self._queue is None:
            raise QueueUnavailableError()
        self._jobs[job_id] = _JobState(job=job, future=asyncio.get_running_loop().create_future())
        if self.priority_tracker is not None:
            await self.priority_tracker.add_job(job.team_id, job_id)
        await self._queue.put((priority, next(self._seq), job_id))

    async def wait_for_job(self, job_id: str, timeout_ms: int) -> FetchedDocument:
        if not self.running:
            raise QueueUnavailableError()
        state = self._jobs.get(job_id)
        if state is None:
            raise JobFailedError(f"Job {job_id} not found")
        try:
            return await asyncio.wait_for(asyncio.shield(state.future), timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise JobTimeoutError(job_id, timeout_ms) from None
        except asyncio.CancelledError:
            # Only the job was cancelled (remove or close); the waiter itself was not.
            if not state.future.cancelled():
                raise
            if not self.running:
                raise QueueUnavailableError() from None
            raise JobFailedError(f"Job {job_id} was removed") from None

    async def remove(self, job_id: str) -> None:
        state = self._jobs.pop(job_id, None)
        if state is None:
            return
        if state.task is not None and not state.task.done():
            state.task.cancel()
        if state.future.done():
            if not state.future.cancelled():
                # Mark a result nobody waited for as retrieved.
                state.future.exception()
        else:
            state.future.cancel()
        if self.priority_tracker is not None:
            await self.priority_tracker.remove_job(state.job.team_id, job_id)

    async def _worker(self) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            _, _, job_id = await queue.get()
            try:
                state = self._jobs.get(job_id)
                if state is None or state.future.done():
                    continue
                state.task = asyncio.create_task(self._fetch(state.job))
                await asyncio.wait({state.task})
                if state.future.done() or state.task.cancelled():
                    continue
                exc = state.task.exception()
                if exc is not None:
                    state.future.set_exception(JobFailedError(str(exc) or type(exc).__name__))
                else:
                    state.future.set_result(state.task.result())
            finally:
                queue.task_done()
