"""Site discovery from ``sitemap.xml`` and the links on the base page."""

from __future__ import annotations

import re
from urllib.parse import urljoin, urldefrag, urlparse

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from app.config import settings
from app.extract.errors import DiscoveryError
from app.extract.interfaces import CandidateLink, DiscoveryOptions, DiscoveryResult
from app.tools import web_utils


def in_scope(url: str, base_url: str, options: DiscoveryOptions) -> bool:
    if not web_utils.is_valid_url(url):
        return False
    if options.allow_external_links:
        return True
    host, base_host = web_utils.host_without_www(url), web_utils.host_without_www(base_url)
    if host == base_host:
        return True
    return options.include_subdomains and host.endswith(f".{base_host}")


def query_terms(query: str | None) -> list[str]:
    if not query:
        return []
    return [t for t in re.findall(r"[a-z0-9]+", query.lower()) if len(t) > 2 and t != "site"]


def matches_query(link: CandidateLink, terms: list[str]) -> bool:
    haystack = f"{link.url} {link.title} {link.description}".lower()
    return any(term in haystack for term in terms)


def parse_sitemap(xml: str) -> list[str]:
    soup = BeautifulSoup(xml, "html.parser")
    urls = [loc.get_text(strip=True) for loc in soup.find_all("loc")]
    # Nested sitemap indexes are not followed.
    return [url for url in urls if url and not url.lower().endswith(".xml")]


def parse_page_links(html: str, page_url: str) -> tuple[str, list[CandidateLink]]:
    soup = BeautifulSoup(html, "html.parser")
    page_title = soup.title.get_text(strip=True) if soup.title else ""
    links: list[CandidateLink] = []
    for anchor in soup.find_all("a", href=True):
        href = str(anchor["href"]).strip()
        if not href or href.startswith(("mailto:", "tel:", "javascript:")):
            continue
        absolute, _ = urldefrag(urljoin(page_url, href))
        links.append(
            CandidateLink(
                url=absolute,
                title=" ".join(anchor.get_text(" ", strip=True).split()),
                description=str(anchor.get("title") or ""),
            )
        )
    return page_title, links


class SiteMapper:
    def __init__(
        self,
        *,
        timeout_s: float | None = None,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout_s = timeout_s or settings.map_request_timeout_s
        self.user_agent = user_agent or settings.scrape_user_agent
        self.transport = transport

    async def discover(
        self,
        base_url: str,
        *,
        query: str | None,
        options: DiscoveryOptions,
    ) -> DiscoveryResult:
        limit = options.limit or settings.map_default_limit
        async with httpx.AsyncClient(
            timeout=self.timeout_s,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
            transport=self.transport,
        ) as client:
            try:
                response = await client.get(base_url)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise DiscoveryError(f"Failed to map {base_url}: {exc}") from exc
            page_title, page_links = parse_page_links(response.text, str(response.url))
            sitemap_links = await self._sitemap_links(client, base_url)

        candidates = [CandidateLink(url=base_url, title=page_title)]
        candidates.extend(link for link in page_links if in_scope(link.url, base_url, options))
        raw_links = [url for url in sitemap_links if in_scope(url, base_url, options)]

        terms = query_terms(query)
        if terms:
            # Stable: matching links first, original order otherwise.
            candidates.sort(key=lambda link: not matches_query(link, terms))
            raw_links.sort(key=lambda url: not any(term in url.lower() for term in terms))

        logger.debug(
            f"Mapped {base_url}: {len(candidates)} page links, {len(raw_links)} sitemap links"
        )
        return DiscoveryResult(candidate_links=candidates[:limit], raw_links=raw_links[:limit])

    async def _sitemap_links(self, client: httpx.AsyncClient, base_url: str) -> list[str]:
        parsed = urlparse(base_url)
        sitemap_url = f"{parsed.scheme}://{parsed.netloc}/sitemap.xml"
        try:
            response = await client.get(sitemap_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.debug(f"No sitemap for {base_url}: {exc}")
            return []
        return parse_sitemap(response.text)
