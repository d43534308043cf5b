from __future__ import annotations

import pytest

from app.extract.aggregator import ExtractionAggregator
from app.extract.dispatcher import FetchDispatcher
from app.extract.errors import JobFailedError
from app.extract.interfaces import (
    AuthContext,
    CompletionResult,
    DiscoveryResult,
    FetchedDocument,
    ScoredLink,
)
from app.extract.orchestrator import ExtractionPipeline
from app.extract.relevance import RelevanceFilter
from app.extract.resolver import URLResolver
from app.services.side_effects import BackgroundDispatcher
from app.tools.blocklist import DomainBlocklist


class FakeScorer:
    def __init__(self, scores: dict[str, float] | None = None, default: float = 0.0):
        self.scores = scores or {}
        self.default = default
        self.queries: list[str] = []

    async def score(self, query, texts, links):
        self.queries.append(query)
        scored = [
            ScoredLink(
                link=link,
                link_with_context=text,
                score=self.scores.get(link, self.default),
                original_index=i,
            )
            for i, (link, text) in enumerate(zip(links, texts))
        ]
        return sorted(scored, key=lambda item: item.score, reverse=True)


class FakeDiscovery:
    def __init__(self, result: DiscoveryResult | None = None, error: Exception | None = None):
        self.result = result or DiscoveryResult()
        self.error = error
        self.calls: list[tuple[str, str | None]] = []

    async def discover(self, base_url, *, query, options):
        self.calls.append((base_url, query))
        if self.error is not None:
            raise self.error
        return self.result


class FakeCompleter:
    def __init__(self, data=None, tokens: int = 0, rephrased: str | None = None, rephrase_error=None):
        self.data = data if data is not None else {"answer": 42}
        self.tokens = tokens
        self.rephrased = rephrased
        self.rephrase_error = rephrase_error
        self.extract_calls: list[dict] = []

    async def rephrase(self, prompt, url):
        if self.rephrase_error is not None:
            raise self.rephrase_error
        return self.rephrased

    async def extract(self, *, system_prompt, prompt, schema, context):
        self.extract_calls.append(
            {"system_prompt": system_prompt, "prompt": prompt, "schema": schema, "context": context}
        )
        return CompletionResult(data=self.data, tokens_used=self.tokens)


class FakeQueue:
    """Job queue whose outcome per URL is a document, an exception, or missing (failed)."""

    def __init__(self, outcomes: dict[str, object] | None = None, add_error: Exception | None = None):
        self.outcomes = outcomes or {}
        self.add_error = add_error
        self.jobs: dict[str, str] = {}
        self.removed: list[str] = []
        self.timeouts: list[int] = []

    async def add_job(self, job, job_id, priority):
        if self.add_error is not None:
            raise self.add_error
        self.jobs[job_id] = job.url

    async def wait_for_job(self, job_id, timeout_ms):
        self.timeouts.append(timeout_ms)
        url = self.jobs[job_id]
        outcome = self.outcomes.get(url)
        if outcome is None:
            outcome = FetchedDocument(content=f"content of {url}", metadata={"sourceURL": url})
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def remove(self, job_id):
        self.removed.append(job_id)


class FakePriority:
    async def compute_priority(self, plan, team_id, base_priority):
        return base_priority


class RecordingBilling:
    def __init__(self):
        self.calls: list[tuple[str, str | None, int]] = []

    async def bill_team(self, team_id, sub_id, credits):
        self.calls.append((team_id, sub_id, credits))


class RecordingJobLog:
    def __init__(self):
        self.records = []

    async def log_job(self, record):
        self.records.append(record)


def failed(message: str = "boom") -> JobFailedError:
    return JobFailedError(message)


@pytest.fixture
def auth():
    return AuthContext(team_id="team-1", plan="free")


@pytest.fixture
def blocklist():
    return DomainBlocklist()


@pytest.fixture
def build_pipeline(blocklist):
    """Assemble a pipeline from fakes; returns (pipeline, parts)."""

    def _build(
        *,
        discovery: FakeDiscovery | None = None,
        scorer: FakeScorer | None = None,
        queue: FakeQueue | None = None,
        completer: FakeCompleter | None = None,
    ):
        parts = {
            "discovery": discovery or FakeDiscovery(),
            "scorer": scorer or FakeScorer(),
            "queue": queue or FakeQueue(),
            "completer": completer or FakeCompleter(),
            "billing": RecordingBilling(),
            "job_log": RecordingJobLog(),
            "background": BackgroundDispatcher(),
        }
        pipeline = ExtractionPipeline(
            resolver=URLResolver(
                parts["discovery"],
                parts["completer"],
                RelevanceFilter(parts["scorer"], blocklist),
                blocklist,
            ),
            dispatcher=FetchDispatcher(parts["queue"], FakePriority()),
            aggregator=ExtractionAggregator(
                parts["completer"],
                parts["billing"],
                parts["job_log"],
                parts["background"],
            ),
        )
        return pipeline, parts

    return _build
