from __future__ import annotations

from dataclasses import asdict

from app.extract.interfaces import JobRecord
from app.services import database as db
from app.services import logger as log_service


class JobLog:
    async def log_job(self, record: JobRecord) -> None:
        payload = asdict(record)
        log_service.log_event(
            event_type="job_completed",
            message=record.message,
            job_id=record.job_id,
            team_id=record.team_id,
            mode=record.mode,
            num_tokens=record.num_tokens,
            time_taken=record.time_taken,
        )
        if db.db_available():
            await db.insert_job_log(payload)
