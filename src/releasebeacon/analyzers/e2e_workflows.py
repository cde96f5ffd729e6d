"""Detection of end-to-end test workflow links in release notes."""

import re
from typing import List, Optional

from loguru import logger

from releasebeacon.models.analysis import (
    FAILED,
    PASSED,
    UNKNOWN,
    WORKFLOW_FILE,
    WORKFLOW_RUN,
    E2EAnalysis,
    E2EWorkflowLink,
)

CONTEXT_WINDOW = 100

WORKFLOW_LINK_PATTERN = re.compile(
    r"https://github\.com/(?P<repo>[^/\s]+/[^/\s]+)/actions/"
    r"(?:runs/(?P<run_id>\d+)|workflows/(?P<file>[^?\s)#]+))",
    re.IGNORECASE,
)
E2E_CONTEXT_KEYWORDS = ["e2e", "end-to-end", "integration test"]
E2E_FILE_PATTERN = re.compile(r"e2e|end-to-end|integration.test", re.IGNORECASE)
PASS_PATTERN = re.compile(r"\b(?:passed|success|successful|successfully|green|completed successfully)\b")
FAIL_PATTERN = re.compile(r"\b(?:failed|failure|failures|error|errors|red|unsuccessful)\b")
LABELLED_NAME_PATTERN = re.compile(r"\b(?:workflow|action|job)(?:\s+name)?\s*:\s*([^\n\r]+)", re.IGNORECASE)
E2E_LINE_PATTERN = re.compile(r"([^\n\r]*(?:e2e|end-to-end|integration)[^\n\r]*)", re.IGNORECASE)
LINE_DECORATION_PATTERN = re.compile(r"^[#\-*•\s]+")


def is_e2e_context(context: str) -> bool:
    lowered = context.lower()
    return any(keyword in lowered for keyword in E2E_CONTEXT_KEYWORDS)


def is_e2e_workflow_file(filename: str) -> bool:
    return bool(E2E_FILE_PATTERN.search(filename))


def determine_workflow_status(context: str) -> str:
    """Infer a run's status from the words around its link."""
    lowered = context.lower()
    has_pass = bool(PASS_PATTERN.search(lowered))
    has_fail = bool(FAIL_PATTERN.search(lowered))
    if has_pass and not has_fail:
        return PASSED
    if has_fail and not has_pass:
        return FAILED
    return UNKNOWN


def extract_workflow_name(context: str) -> Optional[str]:
    """Pick a workflow name from a ``Workflow: name`` label or an e2e line nearby."""
    for pattern in (LABELLED_NAME_PATTERN, E2E_LINE_PATTERN):
        for match in pattern.finditer(context):
            candidate = LINE_DECORATION_PATTERN.sub("", match.group(1)).strip()
            if candidate and "http" not in candidate:
                return candidate
    return None


def humanize_workflow_filename(filename: str) -> str:
    """``e2e-tests.yml`` -> ``E2e Tests``."""
    stem = re.sub(r"\.ya?ml$", "", filename, flags=re.IGNORECASE)
    return " ".join(word[:1].upper() + word[1:].lower() for word in re.split(r"[\s\-_]+", stem) if word)


def _context_around(text: str, start: int, end: int) -> str:
    return text[max(0, start - CONTEXT_WINDOW) : min(len(text), end + CONTEXT_WINDOW)]


def find_e2e_workflow_links(release_notes: str) -> List[E2EWorkflowLink]:
    """Workflow run and workflow file links, in order of appearance."""
    links: List[E2EWorkflowLink] = []

    for match in WORKFLOW_LINK_PATTERN.finditer(release_notes):
        repository = match.group("repo")

        if match.group("run_id"):
            run_id = match.group("run_id")
            context = _context_around(release_notes, match.start(), match.end())
            if not is_e2e_context(context):
                logger.debug(f"Skipping workflow run {run_id}: no e2e context")
                continue
            links.append(
                E2EWorkflowLink(
                    url=match.group(0),
                    workflow_name=extract_workflow_name(context) or f"E2E Workflow Run #{run_id}",
                    repository=repository,
                    status=determine_workflow_status(context),
                    kind=WORKFLOW_RUN,
                )
            )
        else:
            workflow_file = match.group("file")
            if not is_e2e_workflow_file(workflow_file):
                logger.debug(f"Skipping workflow file {workflow_file}: not an e2e workflow")
                continue
            links.append(
                E2EWorkflowLink(
                    url=match.group(0),
                    workflow_name=humanize_workflow_filename(workflow_file),
                    repository=repository,
                    status=UNKNOWN,
                    kind=WORKFLOW_FILE,
                )
            )

    return links


def analyze_e2e_workflows(release_notes: Optional[str] = None) -> E2EAnalysis:
    """Analyze release notes for e2e workflow links."""
    if not release_notes:
        return E2EAnalysis()

    logger.debug("Analyzing release notes for e2e workflow references")

    links = find_e2e_workflow_links(release_notes)
    if links:
        logger.info(f"Found {len(links)} e2e workflow links")

    return E2EAnalysis(has_e2e_tests=bool(links), links=links)
