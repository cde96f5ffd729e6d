"""Typed failures for the Slack adapter and the canvas reconciler."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Actionable classification of a provider error code."""

    NOT_IN_CHANNEL = "not_in_channel"
    MISSING_SCOPE = "missing_scope"
    FEATURE_DISABLED = "feature_disabled"
    TIER_UNSUPPORTED = "tier_unsupported"
    ALREADY_EXISTS = "already_exists"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


ERROR_CODES: Dict[str, ErrorKind] = {
    "not_in_channel": ErrorKind.NOT_IN_CHANNEL,
    "channel_not_found": ErrorKind.NOT_FOUND,
    "missing_scope": ErrorKind.MISSING_SCOPE,
    "not_allowed_token_type": ErrorKind.MISSING_SCOPE,
    "canvas_disabled_user_team": ErrorKind.FEATURE_DISABLED,
    "canvas_creation_failed": ErrorKind.FEATURE_DISABLED,
    "team_tier_cannot_create_channel_canvases": ErrorKind.TIER_UNSUPPORTED,
    "channel_canvas_already_exists": ErrorKind.ALREADY_EXISTS,
    "canvas_not_found": ErrorKind.NOT_FOUND,
    "file_not_found": ErrorKind.NOT_FOUND,
    "timeout": ErrorKind.TIMEOUT,
}

REMEDIATIONS: Dict[ErrorKind, str] = {
    ErrorKind.NOT_IN_CHANNEL: "Invite the bot to the channel: /invite @<bot-name>",
    ErrorKind.MISSING_SCOPE: "Add the canvases:write, canvases:read, files:read and channels:read scopes to the Slack app and reinstall it",
    ErrorKind.FEATURE_DISABLED: "Canvases are disabled for this workspace; ask a workspace admin to enable them",
    ErrorKind.TIER_UNSUPPORTED: "Channel canvases require a paid Slack plan; upgrade the workspace or disable release history",
    ErrorKind.ALREADY_EXISTS: "A releases canvas already exists but could not be located; check the bot can see channel files, or set CANVAS_STATE_DIR so later runs can find it",
    ErrorKind.NOT_FOUND: "The channel or canvas no longer exists; check the channel name and that the canvas was not deleted",
    ErrorKind.TIMEOUT: "Slack did not answer in time; raise SLACK_TIMEOUT or retry the run",
}


def classify_error_code(code: Optional[str]) -> ErrorKind:
    """Map a Slack error code onto an ErrorKind; unrecognized codes are UNKNOWN."""
    if not code:
        return ErrorKind.UNKNOWN
    return ERROR_CODES.get(code, ErrorKind.UNKNOWN)


class ApiError(Exception):
    """A failed Slack call, with the provider's raw code preserved."""

    def __init__(
        self,
        code: str,
        message: Optional[str] = None,
        kind: Optional[ErrorKind] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.kind = kind or classify_error_code(code)
        self.payload = payload or {}
        self.message = message or code
        super().__init__(self.describe())

    @property
    def remediation(self) -> Optional[str]:
        return REMEDIATIONS.get(self.kind)

    def describe(self) -> str:
        """Human readable description, raw payload included for unrecognized codes."""
        text = f"{self.message} (code: {self.code})"
        if self.remediation:
            return f"{text}. {self.remediation}"
        if self.payload:
            return f"{text}. Response: {self.payload}"
        return text


class DocumentStoreError(Exception):
    """The document store answered in a way the reconciler cannot use."""


class DiscoveryAmbiguityError(DocumentStoreError):
    """A releases canvas is known to exist but its identifier cannot be recovered."""

    def __init__(self, channel_id: str, cause: Optional[ApiError] = None):
        self.channel_id = channel_id
        self.cause = cause
        remediation = REMEDIATIONS[ErrorKind.ALREADY_EXISTS]
        super().__init__(f"Releases canvas for channel {channel_id} exists but was not discoverable. {remediation}")


class ReconcileError(Exception):
    """Raised inside the reconciler when a step fails; converted to a failed result."""
