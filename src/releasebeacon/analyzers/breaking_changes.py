"""Breaking change detection for release notes.

Four independent rules run over the text and their findings are unioned:

1. Conventional commit markers (``feat!: ...``)
2. An explicit ``BREAKING CHANGES`` section
3. Keyword heuristics on bullet lines (skipped when rule 2 yields entries)
4. Major version bumps (``version v2.0.0`` and above)
"""

import re
from typing import List, Optional, Tuple

from loguru import logger

from releasebeacon.models.analysis import BreakingChangeAnalysis
from releasebeacon.analyzers.markdown import bullet_text, is_bullet, is_heading, split_inline_bullets

CONVENTIONAL_MARKER = "Conventional commit breaking change: {commit_type}!"
SECTION_MARKER = "BREAKING CHANGE section found"
KEYWORD_MARKER = "Breaking change keyword detected"
MAJOR_VERSION_MARKER = "Major version bump detected"

CONVENTIONAL_BREAKING_PATTERN = re.compile(
    r"^[\s\-*•]*(?P<type>[a-zA-Z]+)(?:!\s*(?P<scope>\([^)]+\))?|(?P<scope_first>\([^)]+\))!)\s*:\s*(?P<desc>.+)$",
    re.MULTILINE,
)
BREAKING_SECTION_PATTERN = re.compile(
    r"^#{1,4}\s*[⚠️\U0001F6A8\U0001F4A5\s]*breaking\s+changes?[⚠️\U0001F6A8\U0001F4A5\s]*:?\s*$",
    re.IGNORECASE,
)
BREAKING_KEYWORD_PATTERNS = [
    re.compile(r"\b(removed?|incompatible)\b", re.IGNORECASE),
    re.compile(r"\b(major\s+change|api\s+change)\b", re.IGNORECASE),
    re.compile(r"\bno\s+longer\s+supports?\b", re.IGNORECASE),
]
MAJOR_VERSION_PATTERN = re.compile(r"\b(?:version|release|tag)\s+v?(\d+)\.0\.0\b", re.IGNORECASE)


def find_conventional_breaks(text: str) -> Tuple[List[str], List[str]]:
    """Return (breaks, markers) for ``type!:`` style commit lines."""
    breaks, markers = [], []
    for match in CONVENTIONAL_BREAKING_PATTERN.finditer(text):
        commit_type = match.group("type")
        description = match.group("desc").strip()
        breaks.append(f"{commit_type}!: {description}")
        markers.append(CONVENTIONAL_MARKER.format(commit_type=commit_type))
    return breaks, markers


def find_breaking_section_items(lines: List[str]) -> List[str]:
    """Collect bullets listed under a BREAKING CHANGES heading."""
    items: List[str] = []
    in_section = False

    for raw_line in lines:
        line = raw_line.strip()

        if BREAKING_SECTION_PATTERN.match(line):
            in_section = True
            logger.debug(f"Found breaking changes section: {line}")
            continue

        if in_section and is_heading(line):
            in_section = False
            continue

        if in_section and is_bullet(line):
            items.extend(split_inline_bullets(bullet_text(line)))

    return items


def find_breaking_keywords(lines: List[str]) -> List[str]:
    """Bullet lines whose wording suggests a breaking change."""
    matches = []
    for raw_line in lines:
        line = raw_line.strip()
        if not is_bullet(line) or is_heading(line):
            continue
        if any(pattern.search(line) for pattern in BREAKING_KEYWORD_PATTERNS):
            text = bullet_text(line)
            if text:
                matches.append(text)
    return matches


def has_major_version_bump(text: str) -> bool:
    """True for mentions like ``release v2.0.0``. v1.0.0 is an initial release, not a break."""
    return any(int(match.group(1)) >= 2 for match in MAJOR_VERSION_PATTERN.finditer(text))


def _dedupe(items: List[str]) -> List[str]:
    seen = set()
    unique = []
    for item in items:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


def analyze_breaking_changes(release_notes: Optional[str] = None) -> BreakingChangeAnalysis:
    """Analyze release notes for breaking changes."""
    if not release_notes:
        return BreakingChangeAnalysis()

    logger.debug(f"Analyzing release notes for breaking changes: {release_notes[:200]}...")

    lines = release_notes.split("\n")
    markers: List[str] = []
    note_breaks: List[str] = []

    conventional_breaks, conventional_markers = find_conventional_breaks(release_notes)
    markers.extend(conventional_markers)

    section_items = find_breaking_section_items(lines)
    if section_items:
        note_breaks.extend(section_items)
        markers.append(SECTION_MARKER)
    else:
        # An explicit section is authoritative; keywords elsewhere would only add noise
        for keyword_line in find_breaking_keywords(lines):
            note_breaks.append(keyword_line)
            markers.append(KEYWORD_MARKER)

    if has_major_version_bump(release_notes):
        markers.append(MAJOR_VERSION_MARKER)

    note_breaks = _dedupe(note_breaks)
    has_breaking = bool(conventional_breaks or note_breaks or markers)

    if has_breaking:
        logger.info(f"Breaking changes detected: {', '.join(markers)}")
    else:
        logger.debug("No breaking changes detected")

    return BreakingChangeAnalysis(
        has_breaking_changes=has_breaking,
        markers=markers,
        conventional_breaks=conventional_breaks,
        note_breaks=note_breaks,
    )
