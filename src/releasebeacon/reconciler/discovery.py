"""Ordered strategies for locating an existing releases canvas.

A ladder is a named list of strategies tried cheapest first. Strategies only
read; a failing strategy counts as a miss and the next one is tried.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Sequence

from loguru import logger

from releasebeacon.slack.interfaces import WORKSPACE, DocumentStore, DocumentSummary, MetadataStore

METADATA = "metadata"
CHANNEL_PROPERTIES = "channel_properties"
CHANNEL_PROPERTIES_RETRY = "channel_properties_retry"
CHANNEL_LISTING = "channel_listing"
WORKSPACE_LISTING = "workspace_listing"

CHANNEL_LADDER = (METADATA, CHANNEL_PROPERTIES, CHANNEL_PROPERTIES_RETRY, CHANNEL_LISTING, WORKSPACE_LISTING)
# A channel holds a single channel canvas, so its embedded reference says nothing about a repository
REPOSITORY_LADDER = (METADATA, CHANNEL_LISTING, WORKSPACE_LISTING)
LADDERS = {"channel": CHANNEL_LADDER, "repository": REPOSITORY_LADDER}

DEFAULT_RETRY_DELAY = 2.0
RELEASES_TITLE_MARKER = "releases"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class DiscoveryContext:
    """What is being looked for: the canvas of a channel, or of one repository in it."""

    channel_id: str
    scope_key: str
    repository_name: Optional[str] = None


@dataclass(frozen=True)
class DiscoveryHit:
    document_id: str
    strategy: str


Locator = Callable[[DiscoveryContext], Awaitable[Optional[str]]]


@dataclass(frozen=True)
class DiscoveryStrategy:
    name: str
    cost: int
    false_negative_risk: str
    locate: Locator
    delay_seconds: float = 0.0


def document_title(name: str) -> str:
    return f"{name} Releases"


def matches_convention(document: DocumentSummary, repository_name: Optional[str] = None) -> bool:
    """Whether a canvas looks like a releases canvas (for the given repository, if any)."""
    label = f"{document.title} {document.name}".lower()
    if repository_name:
        return repository_name.lower() in label
    return RELEASES_TITLE_MARKER in label


def most_recent(documents: Sequence[DocumentSummary]) -> Optional[DocumentSummary]:
    if not documents:
        return None
    return max(documents, key=lambda d: d.created or _EPOCH)


def pick_document(documents: Sequence[DocumentSummary], repository_name: Optional[str] = None) -> Optional[DocumentSummary]:
    """Most recent conventionally named canvas, else (channel scope only) the most recent one."""
    matching = [d for d in documents if matches_convention(d, repository_name)]
    if matching:
        return most_recent(matching)
    if repository_name:
        return None
    return most_recent(documents)


def metadata_strategy(metadata_store: MetadataStore) -> DiscoveryStrategy:
    async def locate(context: DiscoveryContext) -> Optional[str]:
        metadata = metadata_store.get(context.scope_key)
        return metadata.document_id if metadata else None

    return DiscoveryStrategy(name=METADATA, cost=0, false_negative_risk="high", locate=locate)


def channel_properties_strategy(
    documents: DocumentStore, name: str = CHANNEL_PROPERTIES, cost: int = 1, delay_seconds: float = 0.0
) -> DiscoveryStrategy:
    async def locate(context: DiscoveryContext) -> Optional[str]:
        info = await documents.get_channel_info(context.channel_id)
        return info.embedded_document_ref if info else None

    return DiscoveryStrategy(name=name, cost=cost, false_negative_risk="medium", locate=locate, delay_seconds=delay_seconds)


def channel_listing_strategy(documents: DocumentStore) -> DiscoveryStrategy:
    async def locate(context: DiscoveryContext) -> Optional[str]:
        listed = await documents.list_documents(context.channel_id)
        logger.debug(f"Found {len(listed)} canvases in channel {context.channel_id}")
        picked = pick_document(listed, context.repository_name)
        return picked.id if picked else None

    return DiscoveryStrategy(name=CHANNEL_LISTING, cost=3, false_negative_risk="medium", locate=locate)


def workspace_listing_strategy(documents: DocumentStore) -> DiscoveryStrategy:
    async def locate(context: DiscoveryContext) -> Optional[str]:
        listed = await documents.list_documents(WORKSPACE)
        associated = [d for d in listed if context.channel_id in d.associated_channels]
        logger.debug(f"Found {len(associated)} workspace canvases shared to {context.channel_id}")
        picked = pick_document(associated, context.repository_name)
        return picked.id if picked else None

    return DiscoveryStrategy(name=WORKSPACE_LISTING, cost=4, false_negative_risk="low", locate=locate)


def build_discovery_ladder(
    documents: DocumentStore,
    metadata_store: Optional[MetadataStore] = None,
    names: Sequence[str] = CHANNEL_LADDER,
    retry_delay: float = DEFAULT_RETRY_DELAY,
    include_workspace: bool = False,
) -> List[DiscoveryStrategy]:
    """Instantiate a ladder from strategy names, in the given order.

    The metadata rung is dropped when no metadata store is configured and the
    workspace rung unless ``include_workspace`` is set.
    """
    factories = {
        METADATA: lambda: metadata_strategy(metadata_store),
        CHANNEL_PROPERTIES: lambda: channel_properties_strategy(documents),
        CHANNEL_PROPERTIES_RETRY: lambda: channel_properties_strategy(
            documents, name=CHANNEL_PROPERTIES_RETRY, cost=2, delay_seconds=retry_delay
        ),
        CHANNEL_LISTING: lambda: channel_listing_strategy(documents),
        WORKSPACE_LISTING: lambda: workspace_listing_strategy(documents),
    }

    ladder = []
    for name in names:
        if name not in factories:
            raise ValueError(f"Unknown discovery strategy: {name}")
        if name == METADATA and metadata_store is None:
            continue
        if name == WORKSPACE_LISTING and not include_workspace:
            continue
        ladder.append(factories[name]())
    return ladder


class Discoverer:
    """Runs a discovery ladder until a strategy finds a canvas."""

    def __init__(self, strategies: Sequence[DiscoveryStrategy], sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.strategies = list(strategies)
        self._sleep = sleep

    async def discover(self, context: DiscoveryContext, exclude: Sequence[str] = ()) -> Optional[DiscoveryHit]:
        for strategy in self.strategies:
            if strategy.name in exclude:
                logger.debug(f"Discovery: skipping {strategy.name}")
                continue

            if strategy.delay_seconds:
                logger.debug(f"Discovery: waiting {strategy.delay_seconds}s before {strategy.name}")
                await self._sleep(strategy.delay_seconds)

            logger.debug(
                f"Discovery: trying {strategy.name} for {context.scope_key} "
                f"(cost={strategy.cost}, false_negative_risk={strategy.false_negative_risk})"
            )
            try:
                document_id = await strategy.locate(context)
            except Exception as e:
                logger.warning(f"Discovery strategy {strategy.name} failed: {str(e)}")
                continue

            if document_id:
                logger.info(f"Found existing canvas {document_id} via {strategy.name}")
                return DiscoveryHit(document_id=document_id, strategy=strategy.name)

            logger.debug(f"Discovery: {strategy.name} found nothing")

        logger.info(f"No existing canvas found for {context.scope_key}")
        return None
