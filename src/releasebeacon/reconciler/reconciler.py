"""Keeps exactly one releases canvas per channel (or per repository in a channel) up to date."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from loguru import logger

from releasebeacon.formatting.canvas import DEFAULT_RECENT_RELEASES, render_document_snapshot
from releasebeacon.models.release import CanvasMetadata, ReleaseEntry, ReleasesDocument
from releasebeacon.reconciler.discovery import (
    DEFAULT_RETRY_DELAY,
    LADDERS,
    METADATA,
    Discoverer,
    DiscoveryContext,
    DiscoveryHit,
    build_discovery_ladder,
    document_title,
)
from releasebeacon.reconciler.history import PriorEntriesLoader
from releasebeacon.slack.client import is_channel_id
from releasebeacon.slack.errors import ApiError, DiscoveryAmbiguityError, ErrorKind, ReconcileError
from releasebeacon.slack.interfaces import DocumentStore, EntryStore, MetadataStore
from releasebeacon.stores.state_store import scope_key

DEFAULT_HISTORY_LIMIT = 50
CHANNEL_SCOPE = "channel"
REPOSITORY_SCOPE = "repository"

CREATED = "created"
EDITED = "edited"


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of one reconcile; truthy only on success."""

    success: bool
    document_id: Optional[str] = None
    action: Optional[str] = None
    entry_count: int = 0
    error: Optional[str] = None
    document: Optional[ReleasesDocument] = None

    def __bool__(self) -> bool:
        return self.success


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CanvasReconciler:
    """Discovers, creates or edits the releases canvas for a channel.

    Concurrent runs against the same channel are not serialized: two runs can
    both miss discovery and race on creation (reported as an already-exists
    failure), or both read the same history and lose one entry.
    """

    def __init__(
        self,
        documents: DocumentStore,
        metadata_store: Optional[MetadataStore] = None,
        entry_store: Optional[EntryStore] = None,
        scope: str = CHANNEL_SCOPE,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        recent_limit: int = DEFAULT_RECENT_RELEASES,
        discoverer: Optional[Discoverer] = None,
        strategy_names: Optional[Sequence[str]] = None,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        include_workspace: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if scope not in LADDERS:
            raise ValueError(f"Unknown canvas scope: {scope}")
        if history_limit < 1:
            raise ValueError("history_limit must be at least 1")

        self.documents = documents
        self.metadata_store = metadata_store
        self.entry_store = entry_store
        self.scope = scope
        self.history_limit = history_limit
        self.recent_limit = recent_limit
        self.history = PriorEntriesLoader(documents, entry_store)
        self.discoverer = discoverer or Discoverer(
            build_discovery_ladder(
                documents,
                metadata_store=metadata_store,
                names=strategy_names or LADDERS[scope],
                retry_delay=retry_delay,
                include_workspace=include_workspace,
            )
        )
        self._clock = clock

    async def reconcile(self, channel_ref: str, new_entry: ReleaseEntry) -> ReconcileResult:
        """Prepend ``new_entry`` to the channel's releases canvas, creating the canvas if needed.

        Never raises; failures come back as an unsuccessful result.
        """
        try:
            return await self._reconcile(channel_ref, new_entry)
        except DiscoveryAmbiguityError as e:
            logger.warning(str(e))
            return ReconcileResult(success=False, error=str(e))
        except Exception as e:
            logger.error(f"Canvas update failed for {channel_ref}: {str(e)}")
            return ReconcileResult(success=False, error=str(e))

    def apply_retention(self, entries: List[ReleaseEntry]) -> List[ReleaseEntry]:
        """Newest first, capped at ``history_limit`` by dropping the oldest."""
        return list(entries[: self.history_limit])

    async def _reconcile(self, channel_ref: str, new_entry: ReleaseEntry) -> ReconcileResult:
        channel_id = await self.documents.resolve_channel(channel_ref)
        if not channel_id:
            message = f"Could not resolve channel {channel_ref}"
            logger.error(message)
            return ReconcileResult(success=False, error=message)

        repository = None
        if self.scope == REPOSITORY_SCOPE:
            repository = new_entry.repository_name
            if not repository:
                logger.warning("Repository scope requested but the release has no repository, using the channel canvas")

        context = DiscoveryContext(channel_id=channel_id, scope_key=scope_key(channel_id, repository), repository_name=repository)
        channel_name = await self._channel_name(channel_ref, channel_id)
        name = context.repository_name or channel_name

        logger.info(f"Updating releases canvas for {context.scope_key}")

        hit = await self.discoverer.discover(context)
        if hit:
            result = await self._edit(context, hit, new_entry, name, channel_name)
            if result is not None:
                return result
            hit = await self.discoverer.discover(context, exclude=(METADATA,))
            if hit:
                return await self._edit(context, hit, new_entry, name, channel_name)

        return await self._create(context, new_entry, name, channel_name)

    async def _channel_name(self, channel_ref: str, channel_id: str) -> str:
        reference = channel_ref.strip()
        if not is_channel_id(reference):
            return reference.lstrip("#")
        try:
            info = await self.documents.get_channel_info(channel_id)
        except ApiError as e:
            logger.debug(f"Could not look up channel name for {channel_id}: {e.describe()}")
            return channel_id
        return info.name if info and info.name else channel_id

    async def _edit(
        self, context: DiscoveryContext, hit: DiscoveryHit, new_entry: ReleaseEntry, name: str, channel_name: str
    ) -> Optional[ReconcileResult]:
        """Edit a discovered canvas in place. None means the hit came from stale metadata."""
        prior = await self.history.load(context.scope_key, hit.document_id)
        entries = self.apply_retention([new_entry] + prior.entries)
        markdown = render_document_snapshot(name, entries, self.recent_limit)

        outcome = await self.documents.edit_document(hit.document_id, markdown)
        if outcome.ok:
            return self._finish(context, hit.document_id, entries, EDITED, channel_name)

        if outcome.error.kind == ErrorKind.NOT_FOUND and hit.strategy == METADATA:
            logger.warning(f"Canvas {hit.document_id} from stored metadata no longer exists, rediscovering")
            return None

        raise ReconcileError(f"Failed to update canvas {hit.document_id}: {outcome.error.describe()}")

    async def _create(
        self, context: DiscoveryContext, new_entry: ReleaseEntry, name: str, channel_name: str
    ) -> ReconcileResult:
        seeded = self.history.load_from_store(context.scope_key) or []
        entries = self.apply_retention([new_entry] + seeded)
        markdown = render_document_snapshot(name, entries, self.recent_limit)
        title = document_title(context.repository_name) if context.repository_name else None

        outcome = await self.documents.create_document(context.channel_id, markdown, title=title)
        if outcome.ok:
            return self._finish(context, outcome.data["document_id"], entries, CREATED, channel_name)

        if outcome.error.kind != ErrorKind.ALREADY_EXISTS:
            raise ReconcileError(f"Failed to create canvas in {context.channel_id}: {outcome.error.describe()}")

        logger.warning(f"A canvas already exists in {context.channel_id} but was not discovered, searching again")
        hit = await self.discoverer.discover(context, exclude=(METADATA,))
        if not hit:
            raise DiscoveryAmbiguityError(context.channel_id, outcome.error)
        return await self._edit(context, hit, new_entry, name, channel_name)

    def _finish(
        self, context: DiscoveryContext, document_id: str, entries: List[ReleaseEntry], action: str, channel_name: str
    ) -> ReconcileResult:
        logger.info(f"Canvas {document_id} {action} with {len(entries)} releases")
        document = ReleasesDocument(
            owner_channel_id=context.channel_id, document_id=document_id, entries=entries, last_updated=self._clock()
        )

        if self.metadata_store is not None:
            metadata = CanvasMetadata(
                document_id=document_id,
                channel_id=context.channel_id,
                channel_name=channel_name,
                last_updated=document.last_updated,
                entry_count=len(entries),
            )
            try:
                self.metadata_store.put(context.scope_key, metadata)
            except OSError as e:
                logger.warning(f"Could not persist canvas metadata for {context.scope_key}: {str(e)}")

        if self.entry_store is not None:
            try:
                self.entry_store.save_entries(context.scope_key, entries)
            except OSError as e:
                logger.warning(f"Could not persist release history for {context.scope_key}: {str(e)}")

        return ReconcileResult(
            success=True, document_id=document_id, action=action, entry_count=len(entries), document=document
        )
