"""Markdown rendering of the releases canvas, and parsing it back into entries.

The rendered document is a projection of the entry list. Parsing it back is
the fallback used when no entry store holds the authoritative list, so the
line format below must stay stable:

    ### <emoji> <version or [version](url)>
    **<date>** · `<repository>`
    <badge> · <badge>

    - <emoji> <version or [version](url)> · <date> · `<repository>` · <badge>
"""

import re
from typing import List, Optional

from loguru import logger

from releasebeacon.formatting.message import RELEASE_STYLES
from releasebeacon.models.release import ChangeType, ReleaseEntry

DEFAULT_RECENT_RELEASES = 10
TOKEN_SEPARATOR = " · "

BREAKING_BADGE = "⚠️ *Breaking*"
CONFIG_BADGE = "⚙️ *Config*"
E2E_BADGE = "🧪 *E2E Workflows*"

RECENT_HEADING = "## 🚀 Recent Releases"
ALL_HEADING = "## 📚 All Releases"
STATS_HEADING = "## 📊 Release Statistics"
FOOTER = "*This canvas is automatically updated when new releases are published.*"

# Longest first, so no emoji shadows another that it prefixes
ENTRY_EMOJIS = sorted(
    ((style.emoji, change_type) for change_type, style in RELEASE_STYLES.items()),
    key=lambda pair: len(pair[0]),
    reverse=True,
)

LINKED_VERSION_PATTERN = re.compile(r"^\[(?P<version>.+?)\]\((?P<url>[^)\s]+)\)$")
LINE_MARKER_PATTERN = re.compile(r"^(?:#{1,6}\s+|[-*•]\s+)")
EMPHASIS_PATTERN = re.compile(r"[*_]")


def _version_text(entry: ReleaseEntry) -> str:
    if entry.release_url:
        return f"[{entry.version}]({entry.release_url})"
    return entry.version


def _badges(entry: ReleaseEntry) -> List[str]:
    badges = []
    if entry.has_breaking:
        badges.append(BREAKING_BADGE)
    if entry.has_config:
        badges.append(CONFIG_BADGE)
    if entry.has_e2e:
        badges.append(E2E_BADGE)
    return badges


def _entry_head(entry: ReleaseEntry) -> str:
    return f"{RELEASE_STYLES[entry.change_type].emoji} {_version_text(entry)}"


def _format_recent_entry(entry: ReleaseEntry) -> List[str]:
    details = f"**{entry.release_date}**"
    if entry.repository_name:
        details += f"{TOKEN_SEPARATOR}`{entry.repository_name}`"

    lines = [f"### {_entry_head(entry)}", details]
    badges = _badges(entry)
    if badges:
        lines.append(TOKEN_SEPARATOR.join(badges))
    lines.append("")
    return lines


def _format_listed_entry(entry: ReleaseEntry) -> str:
    tokens = [_entry_head(entry), entry.release_date]
    if entry.repository_name:
        tokens.append(f"`{entry.repository_name}`")
    tokens.extend(_badges(entry))
    return "- " + TOKEN_SEPARATOR.join(tokens)


def _format_statistics(entries: List[ReleaseEntry]) -> List[str]:
    return [
        STATS_HEADING,
        "",
        f"- **Total releases tracked:** {len(entries)}",
        f"- **Breaking changes:** {sum(1 for e in entries if e.has_breaking)}",
        f"- **Configuration updates:** {sum(1 for e in entries if e.has_config)}",
        f"- **E2E workflows:** {sum(1 for e in entries if e.has_e2e)}",
        f"- **Normal releases:** {sum(1 for e in entries if e.change_type == ChangeType.NORMAL)}",
        "",
    ]


def render_document_snapshot(
    name: str, entries: List[ReleaseEntry], recent_limit: int = DEFAULT_RECENT_RELEASES
) -> str:
    """Render the releases canvas for a channel or repository.

    Deterministic for a given entry list: no clock or other hidden input.
    """
    lines = [f"# 📦 {name} Releases", ""]

    if entries:
        latest = entries[0]
        lines.extend([f"*Latest release: {latest.version} ({latest.release_date})*", ""])

    lines.extend([RECENT_HEADING, ""])
    if not entries:
        lines.extend(["_No releases tracked yet._", ""])

    recent, remainder = entries[:recent_limit], entries[recent_limit:]
    for entry in recent:
        lines.extend(_format_recent_entry(entry))

    if remainder:
        lines.extend([ALL_HEADING, ""])
        lines.extend(_format_listed_entry(entry) for entry in remainder)
        lines.append("")

    lines.extend(_format_statistics(entries))
    lines.extend(["---", "", FOOTER])
    return "\n".join(lines) + "\n"


def _match_entry_emoji(content: str) -> Optional[ChangeType]:
    for emoji, change_type in ENTRY_EMOJIS:
        if content.startswith(emoji):
            return change_type
    return None


def _plain(token: str) -> str:
    return EMPHASIS_PATTERN.sub("", token).strip()


def _entry_from_tokens(tokens: List[str]) -> Optional[ReleaseEntry]:
    head = tokens[0]
    change_type = _match_entry_emoji(head)
    if change_type is None or len(tokens) < 2:
        return None

    emoji = RELEASE_STYLES[change_type].emoji
    version_text = head[len(emoji) :].strip()
    release_url = None
    linked = LINKED_VERSION_PATTERN.match(version_text)
    if linked:
        version_text, release_url = linked.group("version"), linked.group("url")
    if not version_text:
        return None

    extras = tokens[2:]
    repository_name = next((t.strip("`") for t in extras if t.startswith("`") and t.endswith("`")), None)
    # Slack's plain-text export drops the emphasis around badge labels
    badges = {_plain(t) for t in extras}

    return ReleaseEntry(
        version=version_text,
        release_date=tokens[1].strip("*").strip(),
        change_type=change_type,
        has_breaking=_plain(BREAKING_BADGE) in badges or change_type == ChangeType.BREAKING,
        has_config=_plain(CONFIG_BADGE) in badges or change_type == ChangeType.CONFIG,
        has_e2e=_plain(E2E_BADGE) in badges or change_type == ChangeType.E2E,
        release_url=release_url,
        repository_name=repository_name,
    )


def _tokens(content: str) -> List[str]:
    return [token.strip() for token in content.split(TOKEN_SEPARATOR.strip()) if token.strip()]


def parse_document_entries(document_text: str) -> List[ReleaseEntry]:
    """Recover release entries from a rendered canvas (markdown or plain text).

    Anything that cannot be understood is skipped; a document that cannot be
    parsed at all yields an empty list.
    """
    if not document_text:
        return []

    try:
        entries: List[ReleaseEntry] = []
        pending: List[str] = []
        in_entries = False

        def flush() -> None:
            if pending:
                entry = _entry_from_tokens(pending)
                if entry:
                    entries.append(entry)
                else:
                    logger.debug(f"Skipping unrecognized canvas entry: {pending[0]}")
                pending.clear()

        for raw_line in document_text.splitlines():
            line = raw_line.strip()

            if "Recent Releases" in line or "All Releases" in line:
                flush()
                in_entries = True
                continue
            if "Release Statistics" in line:
                flush()
                break
            if not in_entries:
                continue

            if not line:
                flush()
                continue

            content = LINE_MARKER_PATTERN.sub("", line, count=1)
            if _match_entry_emoji(content) is not None:
                flush()
                pending.extend(_tokens(content))
            elif pending:
                pending.extend(_tokens(content))

        flush()
        return entries
    except ValueError as e:
        logger.warning(f"Could not parse existing canvas content, starting a fresh history: {str(e)}")
        return []
