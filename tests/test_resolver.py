from __future__ import annotations

import pytest

from conftest import FakeCompleter, FakeDiscovery, FakeScorer

from app.extract.errors import DiscoveryError
from app.extract.interfaces import CandidateLink, DiscoveryResult
from app.extract.ledger import TraceLedger
from app.extract.relevance import RelevanceFilter
from app.extract.resolver import MAX_EXTRACT_LIMIT, URLResolver, merge_candidates
from app.models.schemas import ExtractRequest
from app.models.trace import TraceStatus


def _resolver(blocklist, *, discovery=None, completer=None, scorer=None):
    return URLResolver(
        discovery or FakeDiscovery(),
        completer or FakeCompleter(),
        RelevanceFilter(scorer or FakeScorer(default=0.9), blocklist),
        blocklist,
    )


def _request(*urls: str, **kwargs) -> ExtractRequest:
    kwargs.setdefault("prompt", "List the pricing plans")
    return ExtractRequest(urls=list(urls), **kwargs)


def test_merge_candidates_dedupes_and_keeps_context():
    merged = merge_candidates(
        [CandidateLink(url="https://example.com/a", title="A")],
        ["https://example.com/A/", "https://example.com/b"],
    )
    assert [link.url for link in merged] == ["https://example.com/a", "https://example.com/b"]
    assert merged[0].title == "A"


@pytest.mark.asyncio
async def test_literal_url_passes_through(blocklist, auth):
    discovery = FakeDiscovery()
    ledger = TraceLedger()
    links = await _resolver(blocklist, discovery=discovery).resolve(
        "https://example.com/pricing", _request("https://example.com/pricing"), auth, ledger
    )

    assert links == ["https://example.com/pricing"]
    assert discovery.calls == []
    assert ledger.get("https://example.com/pricing").used_in_completion is True


@pytest.mark.asyncio
async def test_blocked_literal_url_is_recorded_as_error(blocklist, auth):
    ledger = TraceLedger()
    links = await _resolver(blocklist).resolve(
        "https://www.facebook.com/somepage", _request("https://www.facebook.com/somepage"), auth, ledger
    )

    trace = ledger.get("https://www.facebook.com/somepage")
    assert links == []
    assert trace.status == TraceStatus.ERROR
    assert trace.error == "URL is blocked"
    assert trace.used_in_completion is False


@pytest.mark.asyncio
async def test_discovery_failure_is_isolated_to_the_input_url(blocklist, auth):
    discovery = FakeDiscovery(error=DiscoveryError("Failed to map https://example.com"))
    ledger = TraceLedger()
    links = await _resolver(blocklist, discovery=discovery).resolve(
        "https://example.com/*", _request("https://example.com/*"), auth, ledger
    )

    trace = ledger.get("https://example.com/*")
    assert links == []
    assert trace.status == TraceStatus.ERROR
    assert "Failed to map" in trace.error


@pytest.mark.asyncio
async def test_empty_discovery_falls_back_to_base_url(blocklist, auth):
    discovery = FakeDiscovery(DiscoveryResult())
    ledger = TraceLedger()
    links = await _resolver(
        blocklist, discovery=discovery, completer=FakeCompleter(rephrased="pricing plans")
    ).resolve("https://example.com/*", _request("https://example.com/*"), auth, ledger)

    assert links == ["https://example.com"]
    assert discovery.calls == [("https://example.com", "pricing plans")]
    assert ledger.get("https://example.com").used_in_completion is True


@pytest.mark.asyncio
async def test_rephrase_failure_uses_original_prompt(blocklist, auth):
    discovery = FakeDiscovery()
    await _resolver(
        blocklist, discovery=discovery, completer=FakeCompleter(rephrase_error=RuntimeError("down"))
    ).resolve("https://example.com/*", _request("https://example.com/*"), auth, TraceLedger())

    assert discovery.calls == [("https://example.com", "List the pricing plans")]


@pytest.mark.asyncio
async def test_candidates_are_capped_before_filtering(blocklist, auth):
    raw = [f"https://example.com/p/{i}" for i in range(150)]
    ledger = TraceLedger()
    links = await _resolver(blocklist, discovery=FakeDiscovery(DiscoveryResult(raw_links=raw))).resolve(
        "https://example.com/*",
        _request("https://example.com/*", prompt=None, schema={"type": "object"}),
        auth,
        ledger,
    )

    assert len(links) == MAX_EXTRACT_LIMIT
    assert links == raw[:MAX_EXTRACT_LIMIT]
    assert ledger.get(raw[0]).used_in_completion is True
    assert ledger.get(raw[-1]).used_in_completion is False


@pytest.mark.asyncio
async def test_blocked_candidates_are_dropped_with_warning(blocklist, auth):
    discovery = FakeDiscovery(
        DiscoveryResult(raw_links=["https://example.com/a", "https://twitter.com/example"])
    )
    ledger = TraceLedger()
    links = await _resolver(blocklist, discovery=discovery).resolve(
        "https://example.com/*", _request("https://example.com/*"), auth, ledger
    )

    assert links == ["https://example.com/a"]
    assert ledger.get("https://twitter.com/example").warning == "URL is blocked"
    assert ledger.get("https://twitter.com/example").used_in_completion is False


@pytest.mark.asyncio
async def test_prompt_with_several_candidates_runs_relevance_filter(blocklist, auth):
    raw = ["https://example.com/pricing", "https://example.com/jobs", "https://example.com/team"]
    scorer = FakeScorer({raw[0]: 0.9, raw[1]: 0.2, raw[2]: 0.1})
    ledger = TraceLedger()
    links = await _resolver(
        blocklist, discovery=FakeDiscovery(DiscoveryResult(raw_links=raw)), scorer=scorer
    ).resolve("https://example.com/*", _request("https://example.com/*"), auth, ledger)

    assert links == ["https://example.com/pricing"]
    assert scorer.queries == ["List the pricing plans site:example.com"]
    assert ledger.get(raw[1]).relevance_score == 0.2
