"""Types produced by the release note analyzers."""

from dataclasses import dataclass, field
from typing import List

# Config diff kinds
DIFF = "diff"
BEFORE_AFTER = "before-after"
MENTION = "mention"

# E2E workflow statuses and link kinds
PASSED = "passed"
FAILED = "failed"
UNKNOWN = "unknown"
WORKFLOW_RUN = "workflow_run"
WORKFLOW_FILE = "workflow_file"


@dataclass(frozen=True)
class BreakingChangeAnalysis:
    """Breaking change signals found in release notes."""

    has_breaking_changes: bool = False
    markers: List[str] = field(default_factory=list)
    conventional_breaks: List[str] = field(default_factory=list)
    note_breaks: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ConfigLink:
    """A markdown link pointing at a configuration file."""

    text: str
    url: str
    filename: str


@dataclass(frozen=True)
class ConfigDiff:
    """A configuration change found in a code block or bullet."""

    filename: str
    content: str
    kind: str  # 'diff', 'before-after', 'mention'


@dataclass(frozen=True)
class ConfigAnalysis:
    """Configuration change signals found in release notes."""

    has_config_changes: bool = False
    links: List[ConfigLink] = field(default_factory=list)
    diffs: List[ConfigDiff] = field(default_factory=list)


@dataclass(frozen=True)
class E2EWorkflowLink:
    """A GitHub Actions link related to end-to-end testing."""

    url: str
    workflow_name: str
    repository: str
    status: str  # 'passed', 'failed', 'unknown'
    kind: str  # 'workflow_run', 'workflow_file'


@dataclass(frozen=True)
class E2EAnalysis:
    """E2E workflow references found in release notes."""

    has_e2e_tests: bool = False
    links: List[E2EWorkflowLink] = field(default_factory=list)
