"""Tests for the canvas discovery ladder."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from releasebeacon.models.release import CanvasMetadata
from releasebeacon.reconciler.discovery import (
    CHANNEL_LADDER,
    METADATA,
    REPOSITORY_LADDER,
    Discoverer,
    DiscoveryContext,
    DiscoveryHit,
    DiscoveryStrategy,
    build_discovery_ladder,
    pick_document,
)
from releasebeacon.slack.errors import ApiError
from releasebeacon.slack.interfaces import DocumentSummary
from releasebeacon.stores.state_store import InMemoryStateStore

CONTEXT = DiscoveryContext(channel_id="C0RELEASES", scope_key="C0RELEASES")


def summary(document_id, title, day, channels=("C0RELEASES",)):
    return DocumentSummary(
        id=document_id,
        name=title,
        title=title,
        created=datetime(2024, 1, day, tzinfo=timezone.utc),
        associated_channels=list(channels),
    )


def strategy(name, result=None, error=None, delay=0.0):
    async def locate(context):
        if error:
            raise error
        return result

    return DiscoveryStrategy(name=name, cost=1, false_negative_risk="low", locate=locate, delay_seconds=delay)


def test_ladder_names(document_store):
    ladder = build_discovery_ladder(document_store, InMemoryStateStore(), include_workspace=True)
    assert [s.name for s in ladder] == list(CHANNEL_LADDER)

    ladder = build_discovery_ladder(document_store, names=REPOSITORY_LADDER)
    assert [s.name for s in ladder] == ["channel_listing"]


def test_ladder_costs_increase(document_store):
    ladder = build_discovery_ladder(document_store, InMemoryStateStore(), include_workspace=True)
    costs = [s.cost for s in ladder]
    assert costs == sorted(costs)


def test_unknown_strategy(document_store):
    with pytest.raises(ValueError):
        build_discovery_ladder(document_store, names=["metadata", "crystal_ball"])


@pytest.mark.asyncio
async def test_first_hit_wins():
    discoverer = Discoverer([strategy("a"), strategy("b", "F1"), strategy("c", "F2")])
    hit = await discoverer.discover(CONTEXT)
    assert hit.document_id == "F1"
    assert hit.strategy == "b"


@pytest.mark.asyncio
async def test_failing_strategy_is_a_miss():
    discoverer = Discoverer([strategy("a", error=ApiError(code="missing_scope")), strategy("b", "F1")])
    hit = await discoverer.discover(CONTEXT)
    assert hit.strategy == "b"


@pytest.mark.asyncio
async def test_excluded_strategies_are_skipped():
    discoverer = Discoverer([strategy(METADATA, "FSTALE"), strategy("b", "F1")])
    hit = await discoverer.discover(CONTEXT, exclude=(METADATA,))
    assert hit.document_id == "F1"


@pytest.mark.asyncio
async def test_delay_before_retry():
    sleep = AsyncMock()
    discoverer = Discoverer([strategy("a"), strategy("a_retry", "F1", delay=2.0)], sleep=sleep)
    hit = await discoverer.discover(CONTEXT)
    sleep.assert_awaited_once_with(2.0)
    assert hit.document_id == "F1"


@pytest.mark.asyncio
async def test_nothing_found():
    assert await Discoverer([strategy("a"), strategy("b")]).discover(CONTEXT) is None


@pytest.mark.asyncio
async def test_metadata_strategy(document_store):
    store = InMemoryStateStore()
    store.put(
        "C0RELEASES",
        CanvasMetadata(document_id="F42", channel_id="C0RELEASES", last_updated=datetime(2024, 1, 1, tzinfo=timezone.utc)),
    )
    discoverer = Discoverer(build_discovery_ladder(document_store, store))
    hit = await discoverer.discover(CONTEXT)
    assert hit == DiscoveryHit(document_id="F42", strategy=METADATA)


@pytest.mark.asyncio
async def test_channel_properties_retry_sees_late_canvas(document_store):
    calls = []

    async def sleep(seconds):
        calls.append(seconds)
        document_store.add_document("C0RELEASES", "# 📦 late Releases", title="releases")

    discoverer = Discoverer(build_discovery_ladder(document_store, retry_delay=1.5), sleep=sleep)
    hit = await discoverer.discover(CONTEXT)
    assert calls == [1.5]
    assert hit.strategy == "channel_properties_retry"


@pytest.mark.asyncio
async def test_workspace_listing_matches_associated_channel(document_store):
    document_store.add_document("C0OTHER", "# other", title="Other Releases", embedded=False)
    shared = document_store.add_document("C0RELEASES", "# ours", title="Team Releases", embedded=False)
    ladder = build_discovery_ladder(document_store, names=["workspace_listing"], include_workspace=True)
    hit = await Discoverer(ladder).discover(CONTEXT)
    assert hit.document_id == shared


def test_pick_document_prefers_convention():
    documents = [summary("F1", "Meeting notes", 3), summary("F2", "acme/api Releases", 1), summary("F3", "Releases", 2)]
    assert pick_document(documents).id == "F3"
    assert pick_document(documents, "acme/api").id == "F2"


def test_pick_document_fallback():
    documents = [summary("F1", "Meeting notes", 3), summary("F2", "Roadmap", 1)]
    assert pick_document(documents).id == "F1"
    assert pick_document(documents, "acme/api") is None
    assert pick_document([]) is None
