from __future__ import annotations

import time

import pytest

from conftest import FakeCompleter, RecordingBilling, RecordingJobLog

from app.extract.aggregator import (
    ExtractionAggregator,
    attribute_tokens,
    build_document,
    build_system_prompt,
)
from app.extract.interfaces import CompletionResult, FetchedDocument
from app.extract.ledger import TraceLedger
from app.models.schemas import ExtractRequest
from app.services.side_effects import BackgroundDispatcher


def _doc(url: str | None, length: int) -> FetchedDocument:
    metadata = {"sourceURL": url} if url else {}
    return FetchedDocument(content="x" * length, metadata=metadata)


def test_attribute_tokens_by_content_length():
    docs = [_doc("https://example.com/a", 100), _doc("https://example.com/b", 300)]
    assert attribute_tokens(docs, 40) == {"https://example.com/a": 10, "https://example.com/b": 30}


def test_attribute_tokens_floors_and_drops_remainder():
    docs = [_doc("https://example.com/a", 1), _doc("https://example.com/b", 1), _doc("https://example.com/c", 1)]
    shares = attribute_tokens(docs, 10)
    assert set(shares.values()) == {3}
    assert sum(shares.values()) <= 10


def test_documents_without_source_url_get_no_share():
    docs = [_doc(None, 100), _doc("https://example.com/b", 300)]
    assert attribute_tokens(docs, 40) == {"https://example.com/b": 30}


def test_attribute_tokens_without_usage_or_content():
    assert attribute_tokens([_doc("https://example.com/a", 10)], 0) == {}
    assert attribute_tokens([_doc("https://example.com/a", 0)], 50) == {}


def test_build_document_appends_metadata_block():
    doc = FetchedDocument(
        content="# Pricing",
        metadata={"sourceURL": "https://example.com/pricing", "title": "Pricing", "statusCode": 200},
    )
    rendered = build_document(doc)
    assert rendered.startswith("# Pricing\n- - - - - Page metadata - - - - -\n")
    assert '"sourceURL": "https://example.com/pricing"' in rendered
    assert "statusCode" not in rendered


def test_build_system_prompt_prefixes_caller_prompt():
    prompt = build_system_prompt("You are terse.", ["https://example.com/a", "https://example.com/b"])
    assert prompt.startswith("You are terse.\n")
    assert "https://example.com/a, https://example.com/b" in prompt


@pytest.mark.asyncio
async def test_aggregate_attributes_tokens_on_ledger():
    completer = FakeCompleter(data={"plans": ["free"]}, tokens=40)
    aggregator = ExtractionAggregator(
        completer, RecordingBilling(), RecordingJobLog(), BackgroundDispatcher()
    )
    docs = [_doc("https://example.com/a", 100), _doc("https://example.com/b", 300)]
    ledger = TraceLedger()
    for doc in docs:
        ledger.record(doc.source_url)
        ledger.mark_completed(doc.source_url, len(doc.content))

    request = ExtractRequest(urls=["https://example.com/*"], prompt="List plans")
    result = await aggregator.aggregate(
        docs, request=request, links=[d.source_url for d in docs], ledger=ledger
    )

    assert result.data == {"plans": ["free"]}
    assert ledger.get("https://example.com/a").content_stats.tokens_used == 10
    assert ledger.get("https://example.com/b").content_stats.tokens_used == 30
    assert completer.extract_calls[0]["prompt"] == "List plans"


@pytest.mark.asyncio
async def test_settle_bills_per_link_and_logs_job(auth):
    billing, job_log, background = RecordingBilling(), RecordingJobLog(), BackgroundDispatcher()
    aggregator = ExtractionAggregator(FakeCompleter(), billing, job_log, background)
    request = ExtractRequest(urls=["https://example.com"], prompt="List plans")

    aggregator.settle(
        scrape_id="scrape-1",
        request=request,
        auth=auth,
        links=["https://example.com/a", "https://example.com/b"],
        completion=CompletionResult(data={"ok": True}, tokens_used=12),
        started=time.monotonic(),
    )
    await background.drain()

    assert billing.calls == [("team-1", None, 10)]
    record = job_log.records[0]
    assert record.job_id == "scrape-1"
    assert record.mode == "extract"
    assert record.num_tokens == 12
    assert record.docs == {"ok": True}
