"""PostgreSQL database service using asyncpg."""

from __future__ import annotations

import json
from typing import Any

import asyncpg

from app.config import settings


# Connection pool
_pool: asyncpg.Pool | None = None


def db_available() -> bool:
    """Check if database is configured."""
    return bool(settings.database_url)


async def _get_pool() -> asyncpg.Pool:
    """Get or create the database connection pool."""
    global _pool
    if not db_available():
        raise RuntimeError("Database not configured. Set DATABASE_URL in .env")
    if _pool is None:
        _pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=1,
            max_size=10,
        )
    return _pool


async def close_pool() -> None:
    """Close the database connection pool."""
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


# --- API keys ---

async def get_api_key_auth(api_key: str) -> dict[str, Any] | None:
    """Resolve an API key to its team, plan and subscription."""
    pool = await _get_pool()
    async with pool.acquire() as conn:
        result = await conn.fetchrow(
            """
            SELECT team_id, plan, sub_id
            FROM api_keys
            WHERE key = $1 AND revoked_at IS NULL
            """,
            api_key,
        )
        return dict(result) if result else None


# --- Credits ---

async def deduct_credits(team_id: str, sub_id: str | None, credits: int) -> None:
    """Append a credit usage row for a team."""
    pool = await _get_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            """
            INSERT INTO credit_usage (team_id, subscription_id, credits_used)
            VALUES ($1, $2, $3)
            """,
            team_id,
            sub_id,
            credits,
        )


# --- Job log ---

async def insert_job_log(record: dict[str, Any]) -> None:
    """Persist one finished job."""
    pool = await _get_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            """
            INSERT INTO job_logs (
                job_id, success, message, num_docs, docs, time_taken,
                team_id, mode, url, scrape_options, origin, num_tokens
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
            """,
            record["job_id"],
            record["success"],
            record["message"],
            record["num_docs"],
            json.dumps(record["docs"]),
            record["time_taken"],
            record["team_id"],
            record["mode"],
            record["url"],
            json.dumps(record["scrape_options"]),
            record["origin"],
            record["num_tokens"],
        )
