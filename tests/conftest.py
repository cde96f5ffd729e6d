"""Shared fakes for the Slack collaborators."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from releasebeacon.slack.errors import ApiError
from releasebeacon.slack.interfaces import WORKSPACE, ApiResult, ChannelInfo, DocumentSummary


class FakeDocumentStore:
    """In-memory canvases keyed by id, with hooks for simulating Slack quirks."""

    def __init__(self, channels: Optional[Dict[str, str]] = None):
        self.channels = channels if channels is not None else {"releases": "C0RELEASES"}
        self.documents: Dict[str, str] = {}
        self.document_channels: Dict[str, str] = {}
        self.titles: Dict[str, str] = {}
        self.created_at: Dict[str, datetime] = {}
        self.channel_canvas: Dict[str, str] = {}
        self.created: List[str] = []
        self.edited: List[str] = []
        self.create_errors: List[ApiError] = []
        self.edit_errors: List[ApiError] = []
        self.race_document: Optional[str] = None
        self._counter = 0

    def add_document(self, channel_id: str, markdown: str, title: str = "", embedded: bool = True) -> str:
        self._counter += 1
        document_id = f"F{self._counter:08d}"
        self.documents[document_id] = markdown
        self.document_channels[document_id] = channel_id
        self.titles[document_id] = title
        self.created_at[document_id] = datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=self._counter)
        if embedded:
            self.channel_canvas[channel_id] = document_id
        return document_id

    async def resolve_channel(self, name_or_id: str) -> Optional[str]:
        reference = name_or_id.strip()
        if reference in self.channels.values():
            return reference
        return self.channels.get(reference.lstrip("#"))

    async def get_channel_info(self, channel_id: str) -> Optional[ChannelInfo]:
        name = next((n for n, i in self.channels.items() if i == channel_id), "")
        return ChannelInfo(channel_id=channel_id, name=name, embedded_document_ref=self.channel_canvas.get(channel_id))

    async def list_documents(self, scope: Optional[str] = WORKSPACE) -> List[DocumentSummary]:
        return [
            DocumentSummary(
                id=document_id,
                name=self.titles[document_id],
                title=self.titles[document_id],
                created=self.created_at[document_id],
                associated_channels=[channel_id],
            )
            for document_id, channel_id in self.document_channels.items()
            if scope is WORKSPACE or channel_id == scope
        ]

    async def read_document(self, document_id: str) -> Optional[str]:
        return self.documents.get(document_id)

    async def create_document(self, channel_id: str, markdown: str, title: Optional[str] = None) -> ApiResult:
        if self.race_document is not None:
            # Another run created the canvas just before this one
            self.add_document(channel_id, self.race_document, title=title or "releases")
            self.race_document = None
            return ApiResult.failure(ApiError(code="channel_canvas_already_exists"))
        if self.create_errors:
            return ApiResult.failure(self.create_errors.pop(0))

        document_id = self.add_document(channel_id, markdown, title=title or "releases", embedded=title is None)
        self.created.append(document_id)
        return ApiResult.success(document_id=document_id)

    async def edit_document(self, document_id: str, markdown: str) -> ApiResult:
        if self.edit_errors:
            return ApiResult.failure(self.edit_errors.pop(0))
        if document_id not in self.documents:
            return ApiResult.failure(ApiError(code="canvas_not_found"))
        self.documents[document_id] = markdown
        self.edited.append(document_id)
        return ApiResult.success(document_id=document_id)


class FakeChatTransport:
    def __init__(self, error: Optional[ApiError] = None):
        self.error = error
        self.posts: List[dict] = []

    async def post_message(
        self, channel: str, text: str, color: str, body_markdown: str, fallback: Optional[str] = None
    ) -> ApiResult:
        self.posts.append(
            {"channel": channel, "text": text, "color": color, "body": body_markdown, "fallback": fallback}
        )
        if self.error:
            return ApiResult.failure(self.error)
        return ApiResult.success(ts="1700000000.000100")


@pytest.fixture
def document_store():
    return FakeDocumentStore()


@pytest.fixture
def chat_transport():
    return FakeChatTransport()


@pytest.fixture
def failing_chat_transport():
    return FakeChatTransport(error=ApiError(code="not_in_channel"))
