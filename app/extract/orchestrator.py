"""Extraction pipeline: resolve → filter → fetch → extract → respond."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from uuid import uuid4

from loguru import logger

from app.extract.aggregator import ExtractionAggregator
from app.extract.dispatcher import FetchDispatcher
from app.extract.errors import NoLinksError, UpstreamBatchError
from app.extract.interfaces import AuthContext
from app.extract.ledger import TraceLedger
from app.extract.resolver import URLResolver
from app.models.schemas import ExtractRequest, ExtractResponse
from app.services import logger as log_service
from app.tools import web_utils

EXTRACTION_FAILED_STATUS = 500


@dataclass(slots=True)
class ExtractOutcome:
    status_code: int
    response: ExtractResponse


class ExtractionPipeline:
    def __init__(
        self,
        resolver: URLResolver,
        dispatcher: FetchDispatcher,
        aggregator: ExtractionAggregator,
    ):
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.aggregator = aggregator

    async def run(self, request: ExtractRequest, auth: AuthContext) -> ExtractOutcome:
        scrape_id = str(uuid4())
        ledger = TraceLedger()
        started = time.monotonic()
        log = logger.bind(scrape_id=scrape_id, team_id=auth.team_id)

        log.info(f"Extract started for {len(request.urls)} urls")
        try:
            links = await self._resolve_all(request, auth, ledger)
            log_service.log_extract_step(scrape_id, "resolve", "completed", {"links": len(links)})
            if not links:
                raise NoLinksError()

            docs = await self.dispatcher.dispatch(
                links,
                auth=auth,
                ledger=ledger,
                timeout_ms=request.timeout,
                origin=request.origin,
            )
            log_service.log_extract_step(
                scrape_id, "fetch", "completed", {"documents": len(docs), "links": len(links)}
            )
        except NoLinksError as exc:
            log.warning("No links survived resolution")
            return self._failure(scrape_id, exc.status_code, exc.message, ledger)
        except UpstreamBatchError as exc:
            log.error(f"Fetch stage failed: {exc.message}")
            return self._failure(scrape_id, exc.status_code, exc.message, ledger)

        try:
            completion = await self.aggregator.aggregate(
                docs, request=request, links=links, ledger=ledger
            )
        except Exception as exc:
            log.error(f"Extraction failed: {exc}")
            log_service.log_extract_step(scrape_id, "extract", "failed", {"error": str(exc)})
            return self._failure(
                scrape_id, EXTRACTION_FAILED_STATUS, f"Extraction failed: {exc}", ledger
            )
        log_service.log_extract_step(
            scrape_id, "extract", "completed", {"tokens_used": completion.tokens_used}
        )
        self.aggregator.settle(
            scrape_id=scrape_id,
            request=request,
            auth=auth,
            links=links,
            completion=completion,
            started=started,
        )

        data = completion.data if completion.data is not None else {}
        return ExtractOutcome(
            status_code=200,
            response=ExtractResponse(
                success=True,
                data=data,
                scrape_id=scrape_id,
                warning=completion.warning,
                url_trace=ledger.snapshot(),
            ),
        )

    async def _resolve_all(
        self,
        request: ExtractRequest,
        auth: AuthContext,
        ledger: TraceLedger,
    ) -> list[str]:
        results = await asyncio.gather(
            *(self.resolver.resolve(url, request, auth, ledger) for url in request.urls),
            return_exceptions=True,
        )
        flattened: list[str] = []
        for url, item in zip(request.urls, results):
            if isinstance(item, Exception):
                # resolve() records its own failures; this only covers bugs in it.
                logger.error(f"Unexpected resolver failure for {url}: {item}")
                ledger.mark_error(url, str(item))
                continue
            if isinstance(item, BaseException):
                raise item
            flattened.extend(u for u in item if u)

        unique = web_utils.remove_duplicate_urls(flattened)
        kept = set(unique)
        for url in flattened:
            if url not in kept:
                ledger.set_warning(url, "Duplicate of another resolved URL", used_in_completion=False)
        return unique

    @staticmethod
    def _failure(scrape_id: str, status_code: int, message: str, ledger: TraceLedger) -> ExtractOutcome:
        return ExtractOutcome(
            status_code=status_code,
            response=ExtractResponse(
                success=False,
                scrape_id=scrape_id,
                error=message,
                url_trace=ledger.snapshot(),
            ),
        )
