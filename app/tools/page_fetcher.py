from __future__ import annotations

from typing import Awaitable, Callable

import httpx
import trafilatura
from bs4 import BeautifulSoup

from app.config import settings
from app.extract.interfaces import FetchedDocument, ScrapeJob

ProviderFn = Callable[[ScrapeJob, float], Awaitable[FetchedDocument]]

DEFAULT_FETCH_TIMEOUT_S = 30.0


def html_to_markdown(html: str) -> tuple[str, str, str]:
    """Return (markdown, title, description) for an HTML page."""
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else ""
    meta = soup.find("meta", attrs={"name": "description"})
    description = str(meta.get("content") or "") if meta else ""

    markdown = trafilatura.extract(html, output_format="markdown", include_links=True)
    if not markdown:
        markdown = soup.get_text("\n", strip=True)
    return markdown, title, description


class PageFetcher:
    """Fetches one page as markdown through the configured provider chain."""

    def __init__(
        self,
        *,
        provider: str | None = None,
        firecrawl_base_url: str | None = None,
        firecrawl_api_key: str | None = None,
        timeout_s: float = DEFAULT_FETCH_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.provider = (provider or settings.scrape_provider).lower().strip() or "http"
        self.firecrawl_base_url = (
            firecrawl_base_url if firecrawl_base_url is not None else settings.firecrawl_base_url
        ).strip()
        self.firecrawl_api_key = (
            firecrawl_api_key if firecrawl_api_key is not None else settings.firecrawl_api_key
        ).strip()
        self.timeout_s = timeout_s
        self.transport = transport

    async def fetch(self, job: ScrapeJob) -> FetchedDocument:
        attempts: list[ProviderFn] = []
        if self.provider in {"firecrawl", "auto"}:
            attempts.append(self._fetch_with_firecrawl)
        if self.provider in {"http", "auto"}:
            attempts.append(self._fetch_with_httpx)
        if not attempts:
            raise ValueError(f"Unsupported SCRAPE_PROVIDER: {self.provider}")

        last_error: Exception | None = None
        for fetch_fn in attempts:
            try:
                return await fetch_fn(job, self.timeout_s)
            except Exception as exc:
                last_error = exc
                continue
        raise RuntimeError(f"No scrape provider succeeded for {job.url}: {last_error}")

    async def _fetch_with_httpx(self, job: ScrapeJob, timeout_s: float) -> FetchedDocument:
        async with httpx.AsyncClient(
            timeout=timeout_s, follow_redirects=True, transport=self.transport
        ) as client:
            response = await client.get(job.url, headers={"User-Agent": settings.scrape_user_agent})
            response.raise_for_status()

        markdown, title, description = html_to_markdown(response.text)
        return FetchedDocument(
            content=markdown,
            metadata={
                "sourceURL": job.url,
                "url": str(response.url),
                "statusCode": int(response.status_code),
                "title": title,
                "description": description,
            },
        )

    async def _fetch_with_firecrawl(self, job: ScrapeJob, timeout_s: float) -> FetchedDocument:
        if not self.firecrawl_base_url:
            raise RuntimeError("Firecrawl base URL not configured")

        endpoint = self.firecrawl_base_url.rstrip("/") + "/v1/scrape"
        headers = {"Content-Type": "application/json"}
        if self.firecrawl_api_key:
            headers["Authorization"] = f"Bearer {self.firecrawl_api_key}"

        payload = {"url": job.url, "formats": ["markdown"], **job.scrape_options}
        async with httpx.AsyncClient(
            timeout=timeout_s, follow_redirects=True, transport=self.transport
        ) as client:
            response = await client.post(endpoint, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()

        body = data.get("data", data) if isinstance(data, dict) else {}
        if not isinstance(body, dict):
            body = {}
        markdown = str(body.get("markdown") or "")
        if not markdown:
            raise RuntimeError("Firecrawl response missing markdown content")

        metadata = body.get("metadata") if isinstance(body.get("metadata"), dict) else {}
        return FetchedDocument(
            content=markdown,
            metadata={
                **metadata,
                "sourceURL": job.url,
                "url": str(metadata.get("url") or metadata.get("sourceURL") or job.url),
            },
        )
