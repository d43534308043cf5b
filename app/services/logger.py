"""Centralized logging service using loguru.

Pipeline code binds ``scrape_id`` on its logger; records carrying one are
also written to a JSON-lines trail so a single extract request can be
followed end to end.
"""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

from app.config import settings

LOG_DIR = Path("logs")
LOG_DIR.mkdir(exist_ok=True)


def _has_scrape_id(record) -> bool:
    return "scrape_id" in record["extra"]


logger.remove()

logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.app_log_level.upper(),
    colorize=True,
)

logger.add(
    LOG_DIR / "urlsift_{time:YYYY-MM-DD}.log",
    format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
    level="DEBUG",
    rotation="00:00",
    retention="7 days",
    compression="zip",
)

# One JSON object per line, only for records bound to an extract request
logger.add(
    LOG_DIR / "extract_trail_{time:YYYY-MM-DD}.jsonl",
    level="INFO",
    serialize=True,
    filter=_has_scrape_id,
    rotation="00:00",
    retention="7 days",
)

for logger_name in (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "httpx",
    "httpcore",
    "openai._base_client",
    "sentence_transformers",
    "trafilatura",
    "asyncpg",
):
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_llm_call(
    model: str,
    caller: str,
    total_tokens: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """Log an LLM API call (rephrase or extract)."""
    bound = logger.bind(model=model, caller=caller)
    if error:
        bound.error(f"LLM_CALL_FAILED: {caller} on {model} after {duration_ms}ms: {error}")
        return
    bound.info(
        f"LLM_CALL: {caller} on {model} status={status} "
        f"tokens={total_tokens} duration_ms={duration_ms}"
    )


def log_extract_step(
    scrape_id: str,
    stage: str,
    status: str,
    data: Optional[dict] = None,
) -> None:
    """Log one stage (resolve, fetch, extract) of an extraction request."""
    logger.bind(scrape_id=scrape_id, stage=stage, status=status, **(data or {})).info(
        f"EXTRACT_STEP: {stage} {status} {data or {}}"
    )


def log_event(
    event_type: str,
    message: str,
    **kwargs,
) -> None:
    event_data = {
        "timestamp": _now(),
        "event_type": event_type,
        "message": message,
        **kwargs,
    }
    logger.info(f"EVENT: {event_data}")
