"""Configuration change detection for release notes."""

import re
from typing import List, Optional, Set

from loguru import logger

from releasebeacon.models.analysis import BEFORE_AFTER, DIFF, MENTION, ConfigAnalysis, ConfigDiff, ConfigLink
from releasebeacon.analyzers.markdown import (
    bullet_text,
    is_bullet,
    is_heading,
    split_inline_bullets,
    strip_code_blocks,
)

SECTION_ITEM_FILENAME = "Configuration change"
CODE_BLOCK_FILENAME = "Configuration file"
MENTION_FILENAME = "Configuration mention"

CONFIG_TOKEN = r"(?:config|settings|\.env|\.json|\.yaml|\.yml|\.toml|\.ini|\.conf)"

CONFIG_SECTION_PATTERN = re.compile(
    r"^#{1,4}\s*[📋⚙️🔧\s]*config(?:uration)?\s+(?:updates?|changes?)[📋⚙️🔧\s]*:?\s*$",
    re.IGNORECASE,
)
MARKDOWN_LINK_PATTERN = re.compile(r"\[([^\]]*)\]\(([^)\s]+)\)")
CONFIG_TOKEN_PATTERN = re.compile(CONFIG_TOKEN, re.IGNORECASE)
CONFIG_FILENAME_PATTERN = re.compile(rf"([^/\s]*{CONFIG_TOKEN}[^/\s]*)", re.IGNORECASE)
WORKFLOW_URL_PATTERN = re.compile(r"/actions/workflows/|/\.github/workflows/", re.IGNORECASE)
CODE_BLOCK_PATTERN = re.compile(r"```[\w-]*[ \t]*\n([\s\S]*?)\n[ \t]*```")
BEFORE_AFTER_PATTERN = re.compile(
    r"\b(?:before|old|previous)\b\s*:?\s*(```[\s\S]*?```)\s*\b(?:after|new|updated)\b\s*:?\s*(```[\s\S]*?```)",
    re.IGNORECASE,
)
CONFIG_MENTION_PATTERN = re.compile(
    r"^[ \t]*[-*•]\s+.*(?:config|configuration|settings|\.env).*(?:changed?|updated?|modified|added|removed)",
    re.IGNORECASE | re.MULTILINE,
)

CONFIG_CONTENT_PATTERNS = [
    re.compile(r"\.(json|ya?ml|toml|ini|conf|env)\b", re.IGNORECASE),  # file extension mentioned
    re.compile(r"\{[\s\S]*\"[\w-]+\"\s*:"),  # JSON object with quoted keys
    re.compile(r"^[ \t]*[+-]?[ \t]*[\w.-]+:(?!//)[ \t]*\S", re.MULTILINE),  # YAML key: value, diff markers allowed
    re.compile(r"^[ \t]*[+-]?[ \t]*[A-Z][A-Z0-9_]*=.*$", re.MULTILINE),  # KEY=value environment variables
    re.compile(r"^\s*\[[\w.-]+\]\s*$", re.MULTILINE),  # INI section headers
    re.compile(r"[\w-]+\s*=\s*[\w\"'-]"),  # generic key=value
]


def contains_config_content(content: str) -> bool:
    """Heuristic check whether a code block looks like configuration."""
    return any(pattern.search(content) for pattern in CONFIG_CONTENT_PATTERNS)


def extract_config_filename(text: str) -> Optional[str]:
    match = CONFIG_FILENAME_PATTERN.search(text)
    return match.group(1) if match else None


def find_config_section_items(lines: List[str]) -> List[str]:
    """Bullets listed under a ``Configuration Updates`` style heading."""
    items: List[str] = []
    in_section = False

    for raw_line in lines:
        line = raw_line.strip()

        if CONFIG_SECTION_PATTERN.match(line):
            in_section = True
            logger.debug(f"Found configuration section: {line}")
            continue

        if in_section and is_heading(line):
            in_section = False
            continue

        if in_section and is_bullet(line):
            for item in split_inline_bullets(bullet_text(line)):
                logger.debug(f"Found config item: {item}")
                items.append(item)

    return items


def _is_config_link(text: str, url: str) -> bool:
    if CONFIG_TOKEN_PATTERN.search(text):
        return True
    if WORKFLOW_URL_PATTERN.search(url):
        return False
    last_segment = url.rstrip("/").rsplit("/", 1)[-1]
    return bool(CONFIG_TOKEN_PATTERN.search(last_segment))


def find_config_links(text: str) -> List[ConfigLink]:
    links = []
    for match in MARKDOWN_LINK_PATTERN.finditer(text):
        link_text, url = match.group(1), match.group(2)
        if not _is_config_link(link_text, url):
            continue
        filename = extract_config_filename(link_text) or extract_config_filename(url) or link_text
        links.append(ConfigLink(text=link_text, url=url, filename=filename))
    return links


def _before_after_pairs(text: str):
    """Yield (diff, fence start offsets) for every before/after pair with config content."""
    for match in BEFORE_AFTER_PATTERN.finditer(text):
        before, after = match.group(1), match.group(2)
        if contains_config_content(before) or contains_config_content(after):
            diff = ConfigDiff(filename=SECTION_ITEM_FILENAME, content=f"{before}\n\n{after}", kind=BEFORE_AFTER)
            yield diff, {match.start(1), match.start(2)}


def find_code_block_diffs(text: str, skip_offsets: Set[int]) -> List[ConfigDiff]:
    """Config-looking fenced blocks, except those already reported as a before/after pair."""
    diffs = []
    for match in CODE_BLOCK_PATTERN.finditer(text):
        if match.start() in skip_offsets:
            continue
        content = match.group(1)
        if contains_config_content(content):
            diffs.append(ConfigDiff(filename=CODE_BLOCK_FILENAME, content=content, kind=DIFF))
    return diffs


def find_config_mentions(text: str) -> List[ConfigDiff]:
    mentions = []
    for match in CONFIG_MENTION_PATTERN.finditer(strip_code_blocks(text)):
        # Keep the whole bullet line, not only the matched prefix
        line_end = match.string.find("\n", match.end())
        line = match.string[match.start() : line_end if line_end != -1 else None]
        mentions.append(ConfigDiff(filename=MENTION_FILENAME, content=bullet_text(line), kind=MENTION))
    return mentions


def analyze_config_changes(release_notes: Optional[str] = None) -> ConfigAnalysis:
    """Analyze release notes for configuration file links and diffs."""
    if not release_notes:
        return ConfigAnalysis()

    logger.debug(f"Analyzing release notes for config changes: {release_notes[:200]}...")

    diffs: List[ConfigDiff] = []

    section_items = find_config_section_items(release_notes.split("\n"))
    diffs.extend(ConfigDiff(filename=SECTION_ITEM_FILENAME, content=item, kind=MENTION) for item in section_items)

    links = find_config_links(release_notes)

    pairs = list(_before_after_pairs(release_notes))
    paired_offsets: Set[int] = set()
    for _, offsets in pairs:
        paired_offsets.update(offsets)

    diffs.extend(find_code_block_diffs(release_notes, paired_offsets))
    diffs.extend(diff for diff, _ in pairs)

    # A dedicated section already lists the config changes explicitly
    if not section_items:
        diffs.extend(find_config_mentions(release_notes))

    has_config = bool(links or diffs)
    if has_config:
        logger.info(f"Config changes detected: {len(links)} links, {len(diffs)} diffs/mentions")
    else:
        logger.debug("No config changes detected")

    return ConfigAnalysis(has_config_changes=has_config, links=links, diffs=diffs)
