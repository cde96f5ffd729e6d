"""Runtime settings read from the environment and the GitHub Actions release event."""

import json
import os
from typing import Dict, List, Literal, Mapping, Optional

from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from releasebeacon.models.release import ReleaseEvent, build_release_event
from releasebeacon.reconciler.discovery import CHANNEL_LADDER

ENV_VARS = {
    "SLACK_BOT_TOKEN": "slack_bot_token",
    "SLACK_CHANNEL": "channel",
    "RELEASE_VERSION": "version",
    "RELEASE_URL": "release_url",
    "RELEASE_BODY": "release_body",
    "CUSTOM_MESSAGE": "custom_message",
    "REPOSITORY_NAME": "repository_name",
    "RELEASE_HISTORY_ENABLED": "history_enabled",
    "RELEASE_HISTORY_LIMIT": "history_limit",
    "CANVAS_SCOPE": "canvas_scope",
    "CANVAS_DISCOVERY_DELAY": "discovery_delay",
    "CANVAS_DISCOVERY_STRATEGIES": "discovery_strategies",
    "CANVAS_WORKSPACE_DISCOVERY": "workspace_discovery",
    "CANVAS_STATE_DIR": "state_dir",
    "CANVAS_RECENT_RELEASES": "recent_releases",
    "SLACK_TIMEOUT": "slack_timeout",
    "GITHUB_OUTPUT": "github_output",
}


class ConfigurationError(ValueError):
    """Raised when settings are missing or invalid."""


class Settings(BaseModel):
    """Everything a run needs. Values come from the environment, then CLI overrides."""

    slack_bot_token: Optional[str] = None
    channel: Optional[str] = None
    version: Optional[str] = None
    release_url: Optional[str] = None
    release_body: Optional[str] = None
    custom_message: Optional[str] = None
    repository_name: Optional[str] = None
    history_enabled: bool = False
    history_limit: int = Field(50, ge=1)
    canvas_scope: Literal["channel", "repository"] = "channel"
    discovery_delay: float = Field(2.0, ge=0)
    discovery_strategies: Optional[List[str]] = None
    workspace_discovery: bool = False
    state_dir: Optional[str] = None
    recent_releases: int = Field(10, ge=1)
    slack_timeout: int = Field(30, ge=1)
    github_output: Optional[str] = None

    @field_validator("discovery_strategies", mode="before")
    @classmethod
    def _split_strategies(cls, value):
        if isinstance(value, str):
            return [name.strip() for name in value.split(",") if name.strip()] or None
        return value

    @field_validator("discovery_strategies")
    @classmethod
    def _known_strategies(cls, value):
        unknown = [name for name in value or [] if name not in CHANNEL_LADDER]
        if unknown:
            raise ValueError(f"Unknown discovery strategies {unknown}, expected names from {list(CHANNEL_LADDER)}")
        return value

    @field_validator("canvas_scope", mode="before")
    @classmethod
    def _lower_scope(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    def release_event(self) -> ReleaseEvent:
        return build_release_event(
            version=self.version or "",
            repository_name=self.repository_name or "",
            release_url=self.release_url,
            raw_notes=self.release_body,
            custom_message=self.custom_message,
        )


def read_github_release(environ: Mapping[str, str]) -> Dict[str, str]:
    """Release fields from the Actions event payload and GITHUB_REPOSITORY, where present."""
    values: Dict[str, str] = {}

    if environ.get("GITHUB_REPOSITORY"):
        values["repository_name"] = environ["GITHUB_REPOSITORY"]

    event_path = environ.get("GITHUB_EVENT_PATH")
    if not event_path:
        return values

    try:
        with open(event_path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read GitHub event payload {event_path}: {str(e)}")
        return values

    release = payload.get("release") or {}
    for source, target in (("tag_name", "version"), ("html_url", "release_url"), ("body", "release_body")):
        if release.get(source):
            values[target] = release[source]

    if release:
        logger.debug(f"Using release {release.get('tag_name')} from the GitHub event payload")
    return values


def load_settings(environ: Optional[Mapping[str, str]] = None, **overrides) -> Settings:
    """Build Settings from explicit overrides, then environment variables, then the GitHub event."""
    environ = os.environ if environ is None else environ

    values = {field: environ[var] for var, field in ENV_VARS.items() if environ.get(var)}
    for field, value in read_github_release(environ).items():
        values.setdefault(field, value)
    values.update({field: value for field, value in overrides.items() if value is not None})

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {str(e)}") from e


def write_github_output(path: Optional[str], outputs: Mapping[str, str]) -> None:
    """Append step outputs in the ``name=value`` format GitHub Actions reads."""
    if not path:
        return
    with open(path, "a", encoding="utf-8") as f:
        for name, value in outputs.items():
            f.write(f"{name}={value}\n")
    logger.debug(f"Wrote {len(outputs)} outputs to {path}")
