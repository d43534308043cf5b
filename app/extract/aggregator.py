from __future__ import annotations

import json
import time

from loguru import logger

from app.extract.interfaces import (
    AuthContext,
    CompletionResult,
    Completer,
    CreditLedger,
    FetchedDocument,
    JobLogger,
    JobRecord,
)
from app.extract.ledger import TraceLedger
from app.models.schemas import ExtractRequest
from app.services.prompt_store import render_prompt
from app.services.side_effects import BackgroundDispatcher

CREDITS_PER_LINK = 5
METADATA_FIELDS = ("title", "description", "sourceURL", "url")


def build_document(doc: FetchedDocument) -> str:
    """Render one document for the completion context: content, then a metadata block."""
    metadata = {key: doc.metadata[key] for key in METADATA_FIELDS if doc.metadata.get(key)}
    return f"{doc.content}\n- - - - - Page metadata - - - - -\n{json.dumps(metadata, ensure_ascii=False)}"


def build_system_prompt(system_prompt: str | None, links: list[str]) -> str:
    prefix = f"{system_prompt}\n" if system_prompt else ""
    return prefix + render_prompt("extract.system_instruction", urls=", ".join(links))


def attribute_tokens(docs: list[FetchedDocument], total_tokens: int) -> dict[str, int]:
    """Split ``total_tokens`` across documents by content length.

    Floor division; the remainder is dropped. Documents without a
    ``sourceURL`` still count towards the total length but get nothing.
    """
    if not total_tokens:
        return {}
    total_length = sum(len(doc.content or "") for doc in docs)
    if total_length <= 0:
        return {}

    attributed: dict[str, int] = {}
    for doc in docs:
        source_url = doc.source_url
        if source_url is None:
            continue
        share = total_tokens * len(doc.content or "") // total_length
        attributed[source_url] = attributed.get(source_url, 0) + share
    return attributed


class ExtractionAggregator:
    def __init__(
        self,
        completer: Completer,
        credit_ledger: CreditLedger,
        job_logger: JobLogger,
        background: BackgroundDispatcher,
        *,
        credits_per_link: int = CREDITS_PER_LINK,
    ):
        self.completer = completer
        self.credit_ledger = credit_ledger
        self.job_logger = job_logger
        self.background = background
        self.credits_per_link = credits_per_link

    async def aggregate(
        self,
        docs: list[FetchedDocument],
        *,
        request: ExtractRequest,
        links: list[str],
        ledger: TraceLedger,
    ) -> CompletionResult:
        context = "\n".join(build_document(doc) for doc in docs)
        completion = await self.completer.extract(
            system_prompt=build_system_prompt(request.system_prompt, links),
            prompt=request.prompt,
            schema=request.extraction_schema,
            context=context,
        )

        for url, tokens in attribute_tokens(docs, completion.tokens_used).items():
            ledger.set_tokens_used(url, tokens)
        return completion

    def settle(
        self,
        *,
        scrape_id: str,
        request: ExtractRequest,
        auth: AuthContext,
        links: list[str],
        completion: CompletionResult,
        started: float,
    ) -> None:
        """Queue billing and the job-log record without waiting for either."""
        credits = len(links) * self.credits_per_link
        self.background.dispatch(
            self.credit_ledger.bill_team(auth.team_id, auth.sub_id, credits),
            description=f"bill team {auth.team_id} for {credits} credits",
        )

        record = JobRecord(
            job_id=scrape_id,
            success=True,
            message="Extract completed",
            num_docs=1,
            docs=completion.data,
            time_taken=round(time.monotonic() - started, 3),
            team_id=auth.team_id,
            mode="extract",
            url=", ".join(request.urls),
            scrape_options=request.model_dump(mode="json", by_alias=True, exclude_none=True),
            origin=request.origin or "api",
            num_tokens=completion.tokens_used or 0,
        )
        self.background.dispatch(
            self.job_logger.log_job(record),
            description=f"log extract job {scrape_id}",
        )
        logger.debug(f"Queued billing and job log for {scrape_id}")
