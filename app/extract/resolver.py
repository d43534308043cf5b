"""Expansion of input URLs (literal or ``/*`` site patterns) into URLs to fetch."""

from __future__ import annotations

from loguru import logger

from app.extract.errors import BlockedURLError
from app.extract.interfaces import (
    AuthContext,
    Blocklist,
    CandidateLink,
    Completer,
    Discovery,
    DiscoveryOptions,
)
from app.extract.ledger import TraceLedger
from app.extract.relevance import RelevanceFilter
from app.models.schemas import ExtractRequest
from app.tools import web_utils

MAX_EXTRACT_LIMIT = 100


def merge_candidates(candidates: list[CandidateLink], raw_links: list[str]) -> list[CandidateLink]:
    """Merge discovered candidates with bare links, first occurrence wins."""
    by_key: dict[str, CandidateLink] = {}
    for link in candidates:
        by_key.setdefault(web_utils.url_key(link.url), link)
    merged: list[CandidateLink] = []
    for url in web_utils.remove_duplicate_urls([c.url for c in candidates] + list(raw_links)):
        merged.append(by_key.get(web_utils.url_key(url)) or CandidateLink(url=url))
    return merged


class URLResolver:
    def __init__(
        self,
        discovery: Discovery,
        completer: Completer,
        relevance: RelevanceFilter,
        blocklist: Blocklist,
    ):
        self.discovery = discovery
        self.completer = completer
        self.relevance = relevance
        self.blocklist = blocklist

    async def resolve(
        self,
        url: str,
        request: ExtractRequest,
        auth: AuthContext,
        ledger: TraceLedger,
    ) -> list[str]:
        """Resolve one input URL. Never raises; failures land on the URL's trace."""
        ledger.record(url)

        if not web_utils.is_site_pattern(url) and not request.allow_external_links:
            if self.blocklist.is_blocked(url):
                ledger.mark_error(url, str(BlockedURLError(url)))
                return []
            ledger.mark_used(url)
            return [url]

        try:
            return await self._expand(url, request, auth, ledger)
        except Exception as exc:
            logger.warning(f"Failed to resolve {url}: {exc}")
            ledger.mark_error(url, str(exc))
            return []

    async def _expand(
        self,
        url: str,
        request: ExtractRequest,
        auth: AuthContext,
        ledger: TraceLedger,
    ) -> list[str]:
        base_url = web_utils.strip_site_pattern(url)
        query = await self._rephrase(request.prompt, base_url)

        result = await self.discovery.discover(
            base_url,
            query=query,
            options=DiscoveryOptions(
                team_id=auth.team_id,
                plan=auth.plan,
                allow_external_links=request.allow_external_links,
                include_subdomains=request.include_subdomains,
                limit=request.limit,
                origin=request.origin,
            ),
        )

        links: list[CandidateLink] = []
        for link in merge_candidates(result.candidate_links, result.raw_links):
            ledger.record(link.url, used_in_completion=False)
            if self.blocklist.is_blocked(link.url):
                ledger.set_warning(link.url, "URL is blocked", used_in_completion=False)
                continue
            links.append(link)

        if not links:
            ledger.record(base_url, used_in_completion=False)
            if self.blocklist.is_blocked(base_url):
                ledger.set_warning(base_url, "URL is blocked", used_in_completion=False)
                return []
            links = [CandidateLink(url=base_url)]

        links = links[:MAX_EXTRACT_LIMIT]

        if request.prompt and len(links) > 1:
            links = await self.relevance.filter(
                links,
                prompt=request.prompt,
                base_url=base_url,
                allow_external_links=request.allow_external_links,
                ledger=ledger,
            )
        else:
            for link in links:
                ledger.mark_used(link.url)

        logger.debug(f"Resolved {url} into {len(links)} links")
        return [link.url for link in links]

    async def _rephrase(self, prompt: str | None, base_url: str) -> str | None:
        if not prompt:
            return prompt
        try:
            rephrased = await self.completer.rephrase(prompt, base_url)
        except Exception as exc:
            logger.warning(f"Query rephrase failed, using original prompt: {exc}")
            return prompt
        return rephrased or prompt
