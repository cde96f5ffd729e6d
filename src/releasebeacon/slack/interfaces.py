"""Collaborators consumed by the notifier and the canvas reconciler."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from releasebeacon.models.release import CanvasMetadata, ReleaseEntry
from releasebeacon.slack.errors import ApiError

WORKSPACE = None


@dataclass
class ApiResult:
    """Outcome of a single Slack call."""

    ok: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[ApiError] = None

    @classmethod
    def success(cls, **data) -> "ApiResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: ApiError) -> "ApiResult":
        return cls(ok=False, error=error)


@dataclass(frozen=True)
class ChannelInfo:
    channel_id: str
    name: str
    embedded_document_ref: Optional[str] = None


@dataclass(frozen=True)
class DocumentSummary:
    """A canvas as returned by a listing."""

    id: str
    name: str = ""
    title: str = ""
    created: Optional[datetime] = None
    associated_channels: List[str] = field(default_factory=list)


class ChatTransport(Protocol):
    async def post_message(
        self, channel: str, text: str, color: str, body_markdown: str, fallback: Optional[str] = None
    ) -> ApiResult: ...


class DocumentStore(Protocol):
    """Canvas operations. Listing with ``scope=None`` searches the whole workspace."""

    async def resolve_channel(self, name_or_id: str) -> Optional[str]: ...

    async def get_channel_info(self, channel_id: str) -> Optional[ChannelInfo]: ...

    async def list_documents(self, scope: Optional[str] = WORKSPACE) -> List[DocumentSummary]: ...

    async def read_document(self, document_id: str) -> Optional[str]: ...

    async def create_document(self, channel_id: str, markdown: str, title: Optional[str] = None) -> ApiResult: ...

    async def edit_document(self, document_id: str, markdown: str) -> ApiResult: ...


class MetadataStore(Protocol):
    def get(self, key: str) -> Optional[CanvasMetadata]: ...

    def put(self, key: str, metadata: CanvasMetadata) -> None: ...


class EntryStore(Protocol):
    """Authoritative list of release entries, newest first."""

    def load_entries(self, key: str) -> Optional[List[ReleaseEntry]]: ...

    def save_entries(self, key: str, entries: List[ReleaseEntry]) -> None: ...
