"""Tests for classification and chat message rendering."""

from datetime import datetime, timezone

import pytest

from releasebeacon.formatting.message import (
    RELEASE_STYLES,
    classify,
    render_chat_message,
    render_header_line,
    render_title,
)
from releasebeacon.models.analysis import (
    MENTION,
    PASSED,
    WORKFLOW_RUN,
    BreakingChangeAnalysis,
    ConfigAnalysis,
    ConfigDiff,
    ConfigLink,
    E2EAnalysis,
    E2EWorkflowLink,
)
from releasebeacon.models.release import ChangeType, build_release_event

NOW = datetime(2024, 1, 5, 12, 30, tzinfo=timezone.utc)


@pytest.fixture
def event():
    return build_release_event(
        version="v2.0.0",
        repository_name="acme/api",
        release_url="https://github.com/acme/api/releases/tag/v2.0.0",
        raw_notes="",
    )


@pytest.fixture
def breaking():
    return BreakingChangeAnalysis(
        has_breaking_changes=True,
        markers=["BREAKING CHANGE section found"],
        conventional_breaks=["feat!: new auth"],
        note_breaks=["Removed /v1 endpoints"],
    )


@pytest.fixture
def config():
    return ConfigAnalysis(
        has_config_changes=True,
        links=[ConfigLink(text="config.json", url="https://example.com/config.json", filename="config.json")],
        diffs=[ConfigDiff(filename="Configuration change", content="Added `retry.max`", kind=MENTION)],
    )


@pytest.fixture
def e2e():
    return E2EAnalysis(
        has_e2e_tests=True,
        links=[
            E2EWorkflowLink(
                url="https://github.com/acme/api/actions/runs/1",
                workflow_name="Nightly",
                repository="acme/api",
                status=PASSED,
                kind=WORKFLOW_RUN,
            )
        ],
    )


@pytest.mark.parametrize(
    "flags, expected",
    [
        ((True, True, True), ChangeType.BREAKING),
        ((False, True, True), ChangeType.CONFIG),
        ((False, False, True), ChangeType.E2E),
        ((False, False, False), ChangeType.NORMAL),
    ],
)
def test_classify_priority(flags, expected):
    assert classify(*flags) == expected


def test_title_and_color_per_classification():
    assert render_title(ChangeType.NORMAL, "v1.2.3") == "🚀 New Release: v1.2.3"
    assert render_title(ChangeType.BREAKING, "v2.0.0") == "⚠️🚀 BREAKING RELEASE: v2.0.0"
    assert render_title(ChangeType.CONFIG, "v1.3.0") == "⚙️🚀 CONFIG UPDATE: v1.3.0"
    assert render_title(ChangeType.E2E, "v1.4.0") == "🧪🚀 E2E WORKFLOW RELEASE: v1.4.0"
    colors = {style.color for style in RELEASE_STYLES.values()}
    assert len(colors) == 4


def test_all_sections_rendered_under_breaking_label(event, breaking, config, e2e):
    message = render_chat_message(event, ChangeType.BREAKING, breaking, config, e2e, now=NOW)
    assert message.title == "⚠️🚀 BREAKING RELEASE: v2.0.0"
    assert message.color == "#ff9900"
    assert "BREAKING CHANGES DETECTED" in message.body
    assert "CONFIGURATION CHANGES" in message.body
    assert "E2E WORKFLOWS DETECTED" in message.body
    assert message.body.index("BREAKING") < message.body.index("CONFIGURATION") < message.body.index("E2E WORKFLOWS")


def test_body_sections(event, breaking, config, e2e):
    message = render_chat_message(event, ChangeType.BREAKING, breaking, config, e2e, now=NOW)
    assert "• feat!: new auth" in message.body
    assert "• Removed /v1 endpoints" in message.body
    assert "• <https://example.com/config.json|config.json>" in message.body
    assert "• Added `retry.max`" in message.body
    assert "<https://github.com/acme/api/actions/runs/1|Nightly> (acme/api)" in message.body
    assert "✅ Status: *Passed*" in message.body
    assert "🔗 <https://github.com/acme/api/releases/tag/v2.0.0|View Release>" in message.body
    assert message.body.endswith("_Released at 2024-01-05T12:30:00+00:00_")


def test_body_spacing():
    event = build_release_event(version="v1.0.1", custom_message="\n\nHello team\n\n\n")
    message = render_chat_message(event, ChangeType.NORMAL, BreakingChangeAnalysis(), ConfigAnalysis(), E2EAnalysis(), now=NOW)
    assert message.body == "Hello team\n\n_Released at 2024-01-05T12:30:00+00:00_"
    assert "\n\n\n" not in message.body
    assert not message.body.startswith("\n")


def test_marker_only_breaking_section(event):
    breaking = BreakingChangeAnalysis(has_breaking_changes=True, markers=["Major version bump detected"])
    message = render_chat_message(event, ChangeType.BREAKING, breaking, ConfigAnalysis(), E2EAnalysis(), now=NOW)
    assert "• Major version bump detected" in message.body


def test_fallback_text_and_header(event):
    message = render_chat_message(event, ChangeType.NORMAL, BreakingChangeAnalysis(), ConfigAnalysis(), E2EAnalysis(), now=NOW)
    assert message.fallback_text == "*New Release*: v2.0.0"
    assert render_header_line(message, "acme/api") == "*acme/api* 🚀 New Release: v2.0.0"
    assert render_header_line(message) == "🚀 New Release: v2.0.0"
