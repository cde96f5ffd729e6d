"""Slack Web API adapter for chat messages and canvases.

All provider error shapes are translated into ApiError here. Write calls
(post, create, edit) report failures through ApiResult; lookups raise ApiError.
"""

import asyncio
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiohttp
from loguru import logger
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from releasebeacon.slack.errors import ApiError, ErrorKind
from releasebeacon.slack.interfaces import WORKSPACE, ApiResult, ChannelInfo, DocumentSummary

CHANNEL_ID_PATTERN = re.compile(r"^[CGD][A-Z0-9]{6,}$")
CHANNEL_TYPES = "public_channel,private_channel"
CHANNEL_PAGE_SIZE = 200
CANVAS_LIST_COUNT = 50
SECTION_TEXT_LIMIT = 3000
DEFAULT_TIMEOUT = 30


def is_channel_id(value: str) -> bool:
    return bool(CHANNEL_ID_PATTERN.match(value))


def normalize_channel(channel: str) -> str:
    """Channel ids are used as-is; names are addressed as ``#name``."""
    channel = channel.strip()
    if is_channel_id(channel) or channel.startswith("#"):
        return channel
    return f"#{channel}"


def _payload(response: Any) -> Dict[str, Any]:
    data = getattr(response, "data", response)
    return data if isinstance(data, dict) else {}


def _error_from_slack(e: SlackApiError) -> ApiError:
    payload = _payload(e.response)
    code = payload.get("error") or "unknown_error"
    return ApiError(code=code, message=f"Slack API error: {code}", payload=payload)


def _markdown_content(markdown: str) -> Dict[str, str]:
    return {"type": "markdown", "markdown": markdown}


def _truncate(text: str, limit: int = SECTION_TEXT_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


class SlackClient:
    """Thin wrapper over AsyncWebClient shared by the transport and the document store."""

    def __init__(self, token: Optional[str] = None, timeout: int = DEFAULT_TIMEOUT, client: Optional[AsyncWebClient] = None):
        self.client = client or AsyncWebClient(token=token, timeout=timeout)

    async def call(self, method: str, **kwargs) -> Dict[str, Any]:
        """Invoke a Web API method by its slack_sdk name, raising ApiError on any failure."""
        try:
            response = await getattr(self.client, method)(**kwargs)
        except SlackApiError as e:
            raise _error_from_slack(e) from e
        except asyncio.TimeoutError as e:
            raise ApiError(code="timeout", message=f"Slack call {method} timed out", kind=ErrorKind.TIMEOUT) from e
        except aiohttp.ClientError as e:
            raise ApiError(code="network_error", message=f"Slack call {method} failed: {str(e)}") from e

        data = _payload(response)
        if not data.get("ok", True):
            code = data.get("error") or "unknown_error"
            raise ApiError(code=code, message=f"Slack API error: {code}", payload=data)
        return data


class SlackChatTransport:
    """Posts release notifications as colored attachments."""

    def __init__(self, slack: SlackClient):
        self.slack = slack

    async def post_message(
        self, channel: str, text: str, color: str, body_markdown: str, fallback: Optional[str] = None
    ) -> ApiResult:
        section = _truncate(f"{text}\n\n{body_markdown}" if body_markdown else text)
        attachment = {
            "color": color,
            "fallback": fallback or text,
            "blocks": [{"type": "section", "text": {"type": "mrkdwn", "text": section}}],
        }
        target = normalize_channel(channel)
        try:
            data = await self.slack.call(
                "chat_postMessage", channel=target, text=fallback or text, attachments=[attachment]
            )
        except ApiError as e:
            logger.error(f"Failed to post message to {target}: {e.describe()}")
            return ApiResult.failure(e)

        logger.info(f"Posted release notification to {target}")
        return ApiResult.success(ts=data.get("ts"), channel=data.get("channel"))


class SlackDocumentStore:
    """Canvas discovery and writes on top of the Slack Web API."""

    def __init__(self, slack: SlackClient):
        self.slack = slack

    async def resolve_channel(self, name_or_id: str) -> Optional[str]:
        reference = (name_or_id or "").strip()
        if not reference:
            return None
        if is_channel_id(reference):
            return reference

        name = reference.lstrip("#")
        cursor = None
        while True:
            kwargs = {"types": CHANNEL_TYPES, "exclude_archived": True, "limit": CHANNEL_PAGE_SIZE}
            if cursor:
                kwargs["cursor"] = cursor
            data = await self.slack.call("conversations_list", **kwargs)

            for channel in data.get("channels", []):
                if channel.get("name") == name:
                    logger.debug(f"Resolved #{name} to {channel['id']}")
                    return channel["id"]

            cursor = data.get("response_metadata", {}).get("next_cursor")
            if not cursor:
                break

        logger.warning(f"Channel #{name} not found among channels visible to the bot")
        return None

    async def get_channel_info(self, channel_id: str) -> Optional[ChannelInfo]:
        data = await self.slack.call("conversations_info", channel=channel_id)
        channel = data.get("channel") or {}
        if not channel:
            return None
        canvas = (channel.get("properties") or {}).get("canvas") or {}
        return ChannelInfo(
            channel_id=channel.get("id", channel_id),
            name=channel.get("name", ""),
            embedded_document_ref=canvas.get("file_id"),
        )

    async def list_documents(self, scope: Optional[str] = WORKSPACE) -> List[DocumentSummary]:
        kwargs: Dict[str, Any] = {"types": "canvas", "count": CANVAS_LIST_COUNT}
        if scope is not WORKSPACE:
            kwargs["channel"] = scope
        data = await self.slack.call("files_list", **kwargs)

        documents = []
        for item in data.get("files", []):
            created = item.get("created")
            documents.append(
                DocumentSummary(
                    id=item["id"],
                    name=item.get("name") or "",
                    title=item.get("title") or "",
                    created=datetime.fromtimestamp(created, tz=timezone.utc) if created else None,
                    associated_channels=list(item.get("channels", [])) + list(item.get("groups", [])),
                )
            )
        return documents

    async def read_document(self, document_id: str) -> Optional[str]:
        data = await self.slack.call("files_info", file=document_id)
        item = data.get("file") or {}
        return item.get("plain_text") or item.get("preview") or data.get("content")

    async def create_document(self, channel_id: str, markdown: str, title: Optional[str] = None) -> ApiResult:
        """Create the channel canvas, or a titled standalone canvas shared to the channel."""
        try:
            if title is None:
                data = await self.slack.call(
                    "conversations_canvases_create", channel_id=channel_id, document_content=_markdown_content(markdown)
                )
            else:
                data = await self.slack.call(
                    "canvases_create", title=title, channel_id=channel_id, document_content=_markdown_content(markdown)
                )
        except ApiError as e:
            logger.error(f"Failed to create canvas in {channel_id}: {e.describe()}")
            return ApiResult.failure(e)

        canvas_id = data.get("canvas_id")
        if not canvas_id:
            return ApiResult.failure(ApiError(code="canvas_creation_failed", message="No canvas id returned", payload=data))

        logger.info(f"Created canvas {canvas_id} in {channel_id}")
        return ApiResult.success(document_id=canvas_id)

    async def edit_document(self, document_id: str, markdown: str) -> ApiResult:
        changes = [{"operation": "replace", "document_content": _markdown_content(markdown)}]
        try:
            await self.slack.call("canvases_edit", canvas_id=document_id, changes=changes)
        except ApiError as e:
            logger.error(f"Failed to edit canvas {document_id}: {e.describe()}")
            return ApiResult.failure(e)

        logger.info(f"Replaced content of canvas {document_id}")
        return ApiResult.success(document_id=document_id)
