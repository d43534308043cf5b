"""Wires the pipeline to the default collaborators and owns their lifecycle."""

from __future__ import annotations

from app.config import settings
from app.extract.aggregator import ExtractionAggregator
from app.extract.dispatcher import FetchDispatcher
from app.extract.orchestrator import ExtractionPipeline
from app.extract.relevance import RelevanceFilter
from app.extract.resolver import URLResolver
from app.services import database as db
from app.services.billing import CreditBilling
from app.services.job_log import JobLog
from app.services.side_effects import background
from app.tools.blocklist import DomainBlocklist
from app.tools.completions import LLMCompleter
from app.tools.job_priority import JobPriorityTracker
from app.tools.page_fetcher import PageFetcher
from app.tools.ranker import EmbeddingRanker
from app.tools.scrape_queue import ScrapeQueue
from app.tools.site_mapper import SiteMapper


class ExtractRuntime:
    def __init__(self) -> None:
        self.priority = JobPriorityTracker()
        self.fetcher = PageFetcher()
        self.queue = ScrapeQueue(self.fetcher.fetch, priority_tracker=self.priority)
        blocklist = DomainBlocklist()
        completer = LLMCompleter()

        self.pipeline = ExtractionPipeline(
            resolver=URLResolver(
                discovery=SiteMapper(),
                completer=completer,
                relevance=RelevanceFilter(EmbeddingRanker(), blocklist),
                blocklist=blocklist,
            ),
            dispatcher=FetchDispatcher(
                self.queue,
                self.priority,
                default_timeout_ms=settings.extract_default_timeout_ms,
                base_priority=settings.extract_base_priority,
            ),
            aggregator=ExtractionAggregator(
                completer,
                CreditBilling(),
                JobLog(),
                background,
                credits_per_link=settings.extract_credits_per_link,
            ),
        )

    async def start(self) -> None:
        await self.queue.start()

    async def close(self) -> None:
        await background.drain()
        await self.queue.close()
        await db.close_pool()
