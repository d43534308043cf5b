from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PlanBucket:
    limit: int
    modifier: float


PLAN_BUCKETS = {
    "free": PlanBucket(limit=25, modifier=0.5),
    "hobby": PlanBucket(limit=50, modifier=0.3),
    "standard": PlanBucket(limit=100, modifier=0.2),
    "growth": PlanBucket(limit=200, modifier=0.1),
    "scale": PlanBucket(limit=400, modifier=0.1),
}
DEFAULT_BUCKET = PLAN_BUCKETS["free"]


class JobPriorityTracker:
    """Tracks active jobs per team; teams over their plan bucket get a worse priority.

    Lower numbers run first.
    """

    def __init__(self, buckets: dict[str, PlanBucket] | None = None):
        self.buckets = buckets or PLAN_BUCKETS
        self._active: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()

    async def add_job(self, team_id: str, job_id: str) -> None:
        async with self._lock:
            self._active.setdefault(team_id, set()).add(job_id)

    async def remove_job(self, team_id: str, job_id: str) -> None:
        async with self._lock:
            jobs = self._active.get(team_id)
            if jobs is None:
                return
            jobs.discard(job_id)
            if not jobs:
                del self._active[team_id]

    def active_jobs(self, team_id: str) -> int:
        return len(self._active.get(team_id, ()))

    async def compute_priority(self, plan: str, team_id: str, base_priority: int) -> int:
        bucket = self.buckets.get((plan or "").lower(), DEFAULT_BUCKET)
        async with self._lock:
            active = len(self._active.get(team_id, ()))
        if active <= bucket.limit:
            return base_priority
        return math.ceil(base_priority + math.ceil((active - bucket.limit) * bucket.modifier))
