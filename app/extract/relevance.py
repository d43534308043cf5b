"""Relevance filtering of discovered links against the request prompt."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from app.extract.interfaces import Blocklist, CandidateLink, ScoredLink, Scorer
from app.extract.ledger import TraceLedger
from app.tools import web_utils

MAX_RANKING_LIMIT = 10
INITIAL_SCORE_THRESHOLD = 0.75
FALLBACK_SCORE_THRESHOLD = 0.5
MIN_REQUIRED_LINKS = 1

RANKING_LIMIT_WARNING = "Excluded due to ranking limit"


def build_search_query(prompt: str | None, base_url: str, *, allow_external_links: bool) -> str:
    host = web_utils.host_without_www(base_url)
    if prompt and allow_external_links:
        return f"{prompt} {host}"
    if prompt:
        return f"{prompt} site:{host}"
    return f"site:{host}"


@dataclass(frozen=True, slots=True)
class ThresholdPolicy:
    threshold: float

    def select(
        self,
        scored: list[ScoredLink],
        by_url: dict[str, CandidateLink],
        blocklist: Blocklist,
    ) -> list[CandidateLink]:
        accepted: list[CandidateLink] = []
        for item in scored:
            if item.score <= self.threshold:
                continue
            link = by_url.get(item.link)
            if link is not None and not blocklist.is_blocked(link.url):
                accepted.append(link)
        return accepted


@dataclass(frozen=True, slots=True)
class TopScoresPolicy:
    count: int

    def select(
        self,
        scored: list[ScoredLink],
        by_url: dict[str, CandidateLink],
        blocklist: Blocklist,
    ) -> list[CandidateLink]:
        accepted: list[CandidateLink] = []
        for item in sorted(scored, key=lambda item: item.score, reverse=True):
            if len(accepted) >= self.count:
                break
            link = by_url.get(item.link)
            if link is not None and not blocklist.is_blocked(link.url):
                accepted.append(link)
        return accepted


# Tried in order until at least MIN_REQUIRED_LINKS are accepted.
ACCEPTANCE_CASCADE = (
    ThresholdPolicy(INITIAL_SCORE_THRESHOLD),
    ThresholdPolicy(FALLBACK_SCORE_THRESHOLD),
    TopScoresPolicy(MIN_REQUIRED_LINKS),
)


def apply_cascade(
    scored: list[ScoredLink],
    links: list[CandidateLink],
    blocklist: Blocklist,
    policies=ACCEPTANCE_CASCADE,
) -> list[CandidateLink]:
    by_url = {link.url: link for link in links}
    accepted: list[CandidateLink] = []
    for policy in policies:
        if len(accepted) >= MIN_REQUIRED_LINKS:
            break
        accepted = policy.select(scored, by_url, blocklist)
        logger.debug(f"Relevance policy {policy} accepted {len(accepted)} links")
    return accepted


class RelevanceFilter:
    def __init__(self, scorer: Scorer, blocklist: Blocklist):
        self.scorer = scorer
        self.blocklist = blocklist

    async def filter(
        self,
        links: list[CandidateLink],
        *,
        prompt: str | None,
        base_url: str,
        allow_external_links: bool,
        ledger: TraceLedger,
    ) -> list[CandidateLink]:
        """Score ``links`` and return the accepted ones, best first, capped."""
        query = build_search_query(prompt, base_url, allow_external_links=allow_external_links)
        scored = await self.scorer.score(
            query,
            [link.context() for link in links],
            [link.url for link in links],
        )

        scores = {item.link: item.score for item in scored}
        accepted = apply_cascade(scored, links, self.blocklist)
        accepted.sort(key=lambda link: scores.get(link.url, 0.0), reverse=True)
        if not accepted:
            logger.warning(f"No relevant links found for {base_url} with query {query!r}")

        accepted_urls = {link.url for link in accepted}
        for item in scored:
            ledger.set_relevance(item.link, item.score)
            if item.link not in accepted_urls:
                ledger.set_warning(
                    item.link,
                    f"Relevance score {item.score} below threshold",
                    used_in_completion=False,
                )

        kept = accepted[:MAX_RANKING_LIMIT]
        for link in kept:
            ledger.mark_used(link.url)
        for link in accepted[MAX_RANKING_LIMIT:]:
            ledger.set_warning(link.url, RANKING_LIMIT_WARNING, used_in_completion=False)
        return kept
