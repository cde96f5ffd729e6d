"""Message Node classifying the release and rendering the notification."""

from datetime import datetime, timezone

from loguru import logger

from releasebeacon.formatting.message import classify, render_chat_message
from releasebeacon.models.release import ReleaseEntry, format_release_date
from releasebeacon.models.state import AgentState


def build_release_entry(state: AgentState, now: datetime) -> ReleaseEntry:
    event = state["event"]
    return ReleaseEntry(
        version=event.version,
        release_date=format_release_date(now),
        change_type=state["classification"],
        has_breaking=state["breaking_analysis"].has_breaking_changes,
        has_config=state["config_analysis"].has_config_changes,
        has_e2e=state["e2e_analysis"].has_e2e_tests,
        release_url=event.release_url,
        repository_name=event.repository_name or None,
    )


async def message_node(state: AgentState) -> AgentState:
    """Classify the release and render both the chat message and the canvas entry."""
    logger.info("Executing Message Node")
    try:
        if "breaking_analysis" not in state:
            raise ValueError("Release notes were not analyzed")

        now = datetime.now(timezone.utc)
        breaking = state["breaking_analysis"]
        config = state["config_analysis"]
        e2e = state["e2e_analysis"]

        state["classification"] = classify(breaking.has_breaking_changes, config.has_config_changes, e2e.has_e2e_tests)
        state["chat_message"] = render_chat_message(state["event"], state["classification"], breaking, config, e2e, now=now)
        state["release_entry"] = build_release_entry(state, now)

        logger.info(f"Release {state['event'].version} classified as {state['classification'].value}")
        return state

    except Exception as e:
        logger.error(f"Failed to render release message: {str(e)}")
        state.setdefault("errors", []).append({"node": "message_node", "error": str(e), "timestamp": datetime.now()})
        return state
