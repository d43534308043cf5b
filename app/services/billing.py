from __future__ import annotations

from loguru import logger

from app.services import database as db


class CreditBilling:
    """Credit ledger backed by Postgres; a no-op apart from logging without DATABASE_URL."""

    async def bill_team(self, team_id: str, sub_id: str | None, credits: int) -> None:
        if not db.db_available():
            logger.info(f"Billing skipped (no database): team={team_id} credits={credits}")
            return
        await db.deduct_credits(team_id, sub_id, credits)
        logger.info(f"Billed team {team_id} for {credits} credits")
