"""Release classification and Slack message rendering."""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from releasebeacon.models.analysis import (
    FAILED,
    MENTION,
    PASSED,
    WORKFLOW_RUN,
    BreakingChangeAnalysis,
    ConfigAnalysis,
    E2EAnalysis,
    E2EWorkflowLink,
)
from releasebeacon.models.release import ChangeType, ReleaseEvent


@dataclass(frozen=True)
class ReleaseStyle:
    """Presentation of a release classification."""

    emoji: str
    label: str
    color: str


RELEASE_STYLES: Dict[ChangeType, ReleaseStyle] = {
    ChangeType.NORMAL: ReleaseStyle(emoji="🚀", label="New Release", color="#36a64f"),
    ChangeType.BREAKING: ReleaseStyle(emoji="⚠️🚀", label="BREAKING RELEASE", color="#ff9900"),
    ChangeType.CONFIG: ReleaseStyle(emoji="⚙️🚀", label="CONFIG UPDATE", color="#ffcc00"),
    ChangeType.E2E: ReleaseStyle(emoji="🧪🚀", label="E2E WORKFLOW RELEASE", color="#439fe0"),
}

STATUS_ICONS = {PASSED: "✅", FAILED: "❌"}
STATUS_TEXT = {PASSED: "*Passed*", FAILED: "*Failed*"}
EXTRA_BLANK_LINES = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")


@dataclass(frozen=True)
class ChatMessage:
    """A rendered chat notification."""

    title: str
    color: str
    body: str
    fallback_text: str


def classify(breaking: bool, config: bool, e2e: bool) -> ChangeType:
    """Pick exactly one classification: breaking > config > e2e > normal."""
    if breaking:
        return ChangeType.BREAKING
    if config:
        return ChangeType.CONFIG
    if e2e:
        return ChangeType.E2E
    return ChangeType.NORMAL


def render_title(classification: ChangeType, version: str) -> str:
    style = RELEASE_STYLES[classification]
    return f"{style.emoji} {style.label}: {version}"


def format_breaking_changes(analysis: BreakingChangeAnalysis) -> str:
    """Format the breaking changes section."""
    if not analysis.has_breaking_changes:
        return ""

    parts = ["⚠️ *BREAKING CHANGES DETECTED*"]

    if analysis.conventional_breaks:
        parts.append(
            "\n".join(["*Conventional Commit Breaking Changes:*"] + [f"• {c}" for c in analysis.conventional_breaks])
        )

    if analysis.note_breaks:
        parts.append(
            "\n".join(["*Breaking Changes from Release Notes:*"] + [f"• {c}" for c in analysis.note_breaks])
        )

    if not analysis.conventional_breaks and not analysis.note_breaks:
        # Only marker signals such as a major version bump
        parts.append("\n".join(f"• {marker}" for marker in analysis.markers))

    parts.append("🔍 *Please review the changes carefully before updating!*")
    return "\n\n".join(parts)


def format_config_changes(analysis: ConfigAnalysis) -> str:
    """Format the configuration changes section."""
    if not analysis.has_config_changes:
        return ""

    parts = ["⚙️ *CONFIGURATION CHANGES*"]

    if analysis.links:
        parts.append(
            "\n".join(["*Configuration Files:*"] + [f"• <{link.url}|{link.filename}>" for link in analysis.links])
        )

    if analysis.diffs:
        lines = ["*Configuration Updates:*"]
        for diff in analysis.diffs:
            if diff.kind == MENTION:
                lines.append(f"• {diff.content}")
            else:
                lines.append(f"• {diff.filename} - See release notes for details")
        parts.append("\n".join(lines))

    parts.append("📋 *Review configuration changes before deploying!*")
    return "\n\n".join(parts)


def _format_workflow(link: E2EWorkflowLink) -> str:
    kind_icon = "🔄" if link.kind == WORKFLOW_RUN else "📋"
    status_icon = STATUS_ICONS.get(link.status, "❔")
    status_text = STATUS_TEXT.get(link.status, "*Unknown*")
    return f"{kind_icon} <{link.url}|{link.workflow_name}> ({link.repository})\n{status_icon} Status: {status_text}"


def format_e2e_workflows(analysis: E2EAnalysis) -> str:
    """Format the e2e workflows section."""
    if not analysis.has_e2e_tests:
        return ""

    parts = ["🧪 *E2E WORKFLOWS DETECTED*"]
    parts.extend(_format_workflow(link) for link in analysis.links)
    return "\n\n".join(parts)


def render_chat_message(
    event: ReleaseEvent,
    classification: ChangeType,
    breaking: BreakingChangeAnalysis,
    config: ConfigAnalysis,
    e2e: E2EAnalysis,
    now: Optional[datetime] = None,
) -> ChatMessage:
    """Render the notification for a release.

    The classification only drives the title, emoji and color. Every section
    with findings is rendered in the body regardless of which label won.
    """
    style = RELEASE_STYLES[classification]
    now = now or datetime.now(timezone.utc)
    title = render_title(classification, event.version)

    sections: List[str] = [
        event.custom_message or "",
        format_breaking_changes(breaking),
        format_config_changes(config),
        format_e2e_workflows(e2e),
        f"🔗 <{event.release_url}|View Release>" if event.release_url else "",
        f"_Released at {now.isoformat()}_",
    ]
    body = "\n\n".join(section.strip() for section in sections if section and section.strip())
    body = EXTRA_BLANK_LINES.sub("\n\n", body)

    return ChatMessage(
        title=title,
        color=style.color,
        body=body,
        fallback_text=f"*{style.label}*: {event.version}",
    )


def render_header_line(message: ChatMessage, repository_name: Optional[str] = None) -> str:
    """First line of the attachment, prefixed with the repository when known."""
    if repository_name:
        return f"*{repository_name}* {message.title}"
    return message.title
