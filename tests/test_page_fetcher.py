from __future__ import annotations

import json

import httpx
import pytest

from app.extract.interfaces import ScrapeJob
from app.tools.page_fetcher import PageFetcher, html_to_markdown

ARTICLE = """
<html><head>
  <title>Pricing | Example</title>
  <meta name="description" content="Plans for every team">
</head><body>
  <article><h1>Pricing</h1><p>The Starter plan costs 10 dollars per month.</p></article>
</body></html>
"""


def _job(url: str = "https://example.com/pricing") -> ScrapeJob:
    return ScrapeJob(url=url, team_id="team-1", plan="free")


def test_html_to_markdown_returns_title_and_description():
    markdown, title, description = html_to_markdown(ARTICLE)
    assert "Starter plan" in markdown
    assert title == "Pricing | Example"
    assert description == "Plans for every team"


@pytest.mark.asyncio
async def test_http_provider_sets_source_url():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text=ARTICLE))
    fetcher = PageFetcher(provider="http", transport=transport)

    doc = await fetcher.fetch(_job())

    assert doc.source_url == "https://example.com/pricing"
    assert doc.metadata["title"] == "Pricing | Example"
    assert doc.metadata["statusCode"] == 200


@pytest.mark.asyncio
async def test_auto_provider_falls_back_to_http_when_firecrawl_fails():
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.host)
        if request.url.path == "/v1/scrape":
            return httpx.Response(502)
        return httpx.Response(200, text=ARTICLE)

    fetcher = PageFetcher(
        provider="auto",
        firecrawl_base_url="http://firecrawl.local",
        firecrawl_api_key="",
        transport=httpx.MockTransport(handler),
    )
    doc = await fetcher.fetch(_job())

    assert seen == ["firecrawl.local", "example.com"]
    assert "Starter plan" in doc.content


@pytest.mark.asyncio
async def test_firecrawl_provider_posts_scrape_request():
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = json.loads(request.content)
        captured["auth"] = request.headers.get("Authorization")
        return httpx.Response(
            200,
            json={"success": True, "data": {"markdown": "# Pricing", "metadata": {"title": "Pricing"}}},
        )

    fetcher = PageFetcher(
        provider="firecrawl",
        firecrawl_base_url="http://firecrawl.local/",
        firecrawl_api_key="fc-key",
        transport=httpx.MockTransport(handler),
    )
    doc = await fetcher.fetch(_job())

    assert captured["body"] == {"url": "https://example.com/pricing", "formats": ["markdown"]}
    assert captured["auth"] == "Bearer fc-key"
    assert doc.content == "# Pricing"
    assert doc.metadata["title"] == "Pricing"
    assert doc.source_url == "https://example.com/pricing"


@pytest.mark.asyncio
async def test_all_providers_failing_raises():
    fetcher = PageFetcher(
        provider="http",
        transport=httpx.MockTransport(lambda request: httpx.Response(404)),
    )
    with pytest.raises(RuntimeError, match="No scrape provider succeeded"):
        await fetcher.fetch(_job())


@pytest.mark.asyncio
async def test_unknown_provider_is_rejected():
    with pytest.raises(ValueError):
        await PageFetcher(provider="carrier-pigeon").fetch(_job())
