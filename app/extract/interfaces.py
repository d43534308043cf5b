from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(slots=True)
class CandidateLink:
    url: str
    title: str = ""
    description: str = ""

    def context(self) -> str:
        return f"url: {self.url}, title: {self.title}, description: {self.description}"


@dataclass(slots=True)
class ScoredLink:
    link: str
    link_with_context: str
    score: float
    original_index: int


@dataclass(slots=True)
class DiscoveryOptions:
    team_id: str
    plan: str
    allow_external_links: bool = False
    include_subdomains: bool = True
    limit: int | None = None
    origin: str = "api"


@dataclass(slots=True)
class DiscoveryResult:
    candidate_links: list[CandidateLink] = field(default_factory=list)
    raw_links: list[str] = field(default_factory=list)


@dataclass(slots=True)
class FetchedDocument:
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def source_url(self) -> str | None:
        value = self.metadata.get("sourceURL")
        return value if isinstance(value, str) and value else None


@dataclass(slots=True)
class ScrapeJob:
    url: str
    team_id: str
    plan: str
    origin: str = "api"
    mode: str = "single_urls"
    scrape_options: dict[str, Any] = field(default_factory=dict)
    is_scrape: bool = True


@dataclass(slots=True)
class CompletionResult:
    data: Any
    warning: str | None = None
    tokens_used: int = 0


@dataclass(slots=True)
class JobRecord:
    job_id: str
    success: bool
    message: str
    num_docs: int
    docs: Any
    time_taken: float
    team_id: str
    mode: str
    url: str
    scrape_options: dict[str, Any]
    origin: str
    num_tokens: int = 0


@dataclass(slots=True)
class AuthContext:
    team_id: str
    plan: str
    sub_id: str | None = None


class Discovery(Protocol):
    async def discover(
        self,
        base_url: str,
        *,
        query: str | None,
        options: DiscoveryOptions,
    ) -> DiscoveryResult: ...


class Scorer(Protocol):
    async def score(self, query: str, texts: list[str], links: list[str]) -> list[ScoredLink]: ...


class JobQueue(Protocol):
    async def add_job(self, job: ScrapeJob, job_id: str, priority: int) -> None: ...

    async def wait_for_job(self, job_id: str, timeout_ms: int) -> FetchedDocument: ...

    async def remove(self, job_id: str) -> None: ...


class PriorityPolicy(Protocol):
    async def compute_priority(self, plan: str, team_id: str, base_priority: int) -> int: ...


class Completer(Protocol):
    async def rephrase(self, prompt: str, url: str) -> str | None: ...

    async def extract(
        self,
        *,
        system_prompt: str,
        prompt: str | None,
        schema: dict[str, Any] | None,
        context: str,
    ) -> CompletionResult: ...


class CreditLedger(Protocol):
    async def bill_team(self, team_id: str, sub_id: str | None, credits: int) -> None: ...


class JobLogger(Protocol):
    async def log_job(self, record: JobRecord) -> None: ...


class Blocklist(Protocol):
    def is_blocked(self, url: str) -> bool: ...
