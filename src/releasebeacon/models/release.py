"""Release events, persisted release entries and canvas bookkeeping."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class ReleaseInputError(ValueError):
    """Raised when required release input is missing or malformed."""


class ChangeType(str, Enum):
    """Single classification of a release, highest priority first."""

    BREAKING = "breaking"
    CONFIG = "config"
    E2E = "e2e"
    NORMAL = "normal"


class ReleaseEvent(BaseModel):
    """A release as supplied by the trigger. Read-only for every consumer."""

    model_config = ConfigDict(frozen=True)

    version: str = Field(..., description="Release tag or version string")
    repository_name: str = Field("", description="Repository in owner/repo form")
    release_url: Optional[str] = Field(None, description="Link to the release page")
    raw_notes: str = Field("", description="Release body as markdown")
    custom_message: Optional[str] = Field(None, description="Free text prepended to the notification")

    @field_validator("version")
    @classmethod
    def _version_required(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ReleaseInputError(
                "No release version found. Trigger from a release event or provide a release version."
            )
        return value

    @field_validator("raw_notes", mode="before")
    @classmethod
    def _notes_default(cls, value: Optional[str]) -> str:
        return value or ""


def build_release_event(**fields) -> ReleaseEvent:
    """Create a ReleaseEvent, surfacing validation problems as ReleaseInputError."""
    try:
        return ReleaseEvent(**fields)
    except ValidationError as e:
        messages = "; ".join(str(err.get("msg", "")) for err in e.errors())
        raise ReleaseInputError(messages) from e


def format_release_date(moment: datetime) -> str:
    """Display form used in the releases canvas, e.g. ``Jan 5, 2024``."""
    return f"{moment:%b} {moment.day}, {moment.year}"


class ReleaseEntry(BaseModel):
    """One historical release as listed in the releases canvas."""

    model_config = ConfigDict(frozen=True)

    version: str
    release_date: str
    change_type: ChangeType = ChangeType.NORMAL
    has_breaking: bool = False
    has_config: bool = False
    has_e2e: bool = False
    release_url: Optional[str] = None
    repository_name: Optional[str] = None


class CanvasMetadata(BaseModel):
    """Side-channel record that lets later runs skip canvas discovery."""

    document_id: str
    channel_id: str
    channel_name: str = ""
    last_updated: datetime
    entry_count: int = 0


class ReleasesDocument(BaseModel):
    """The releases canvas of a channel (or of a repository within a channel)."""

    owner_channel_id: str
    document_id: str
    entries: List[ReleaseEntry] = Field(default_factory=list)
    last_updated: datetime
