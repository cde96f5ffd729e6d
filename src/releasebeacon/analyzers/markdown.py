"""Small line-level markdown helpers shared by the analyzers."""

import re
from typing import List

HEADING_PATTERN = re.compile(r"^#{1,4}\s")
BULLET_PREFIX_PATTERN = re.compile(r"^[-*•]\s*")
HORIZONTAL_RULE_PATTERN = re.compile(r"^([-*_])\1{2,}$")
CODE_FENCE_PATTERN = re.compile(r"```[\s\S]*?```")
INLINE_BULLET_SEPARATOR = " • "


def is_heading(line: str) -> bool:
    return bool(HEADING_PATTERN.match(line))


def is_bullet(line: str) -> bool:
    """True for ``-``, ``*`` and ``•`` list items (horizontal rules excluded)."""
    if HORIZONTAL_RULE_PATTERN.match(line):
        return False
    return line.startswith(("-", "*", "•"))


def bullet_text(line: str) -> str:
    return BULLET_PREFIX_PATTERN.sub("", line.strip(), count=1).strip()


def split_inline_bullets(text: str) -> List[str]:
    """Split ``a • b • c`` (several bullets pasted onto one line) into items."""
    if INLINE_BULLET_SEPARATOR not in text:
        return [text] if text else []
    return [item.strip() for item in text.split(INLINE_BULLET_SEPARATOR) if item.strip()]


def strip_code_blocks(text: str) -> str:
    return CODE_FENCE_PATTERN.sub("", text)
