"""Release notification workflow using LangGraph for orchestration."""

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv
from langgraph.graph import END, StateGraph
from loguru import logger

from releasebeacon.config import ConfigurationError, Settings, load_settings, write_github_output
from releasebeacon.models.release import ReleaseEvent, ReleaseInputError
from releasebeacon.models.state import AgentState
from releasebeacon.nodes.analysis_node import analysis_node
from releasebeacon.nodes.canvas_node import make_canvas_node
from releasebeacon.nodes.message_node import message_node
from releasebeacon.nodes.notify_node import make_notify_node
from releasebeacon.reconciler.reconciler import CanvasReconciler
from releasebeacon.slack.client import SlackChatTransport, SlackClient, SlackDocumentStore
from releasebeacon.slack.interfaces import ChatTransport, DocumentStore
from releasebeacon.stores.state_store import JsonFileStateStore


def should_update_canvas(state: AgentState) -> str:
    return "canvas_node" if state.get("persist_history") else END


def create_workflow(transport: ChatTransport, reconciler: Optional[CanvasReconciler] = None) -> StateGraph:
    """Create the release notification graph. The canvas step exists only with a reconciler."""
    workflow = StateGraph(AgentState)

    # Add nodes
    workflow.add_node("analysis_node", analysis_node)
    workflow.add_node("message_node", message_node)
    workflow.add_node("notify_node", make_notify_node(transport))

    workflow.set_entry_point("analysis_node")

    # Define edges
    workflow.add_edge("analysis_node", "message_node")
    workflow.add_edge("message_node", "notify_node")

    if reconciler is not None:
        workflow.add_node("canvas_node", make_canvas_node(reconciler))
        workflow.add_conditional_edges("notify_node", should_update_canvas, {"canvas_node": "canvas_node", END: END})
        workflow.add_edge("canvas_node", END)
    else:
        workflow.add_edge("notify_node", END)

    return workflow.compile()


async def run_workflow_async(
    event: ReleaseEvent,
    channel: str,
    transport: ChatTransport,
    reconciler: Optional[CanvasReconciler] = None,
    persist_history: bool = False,
) -> AgentState:
    """Run the workflow for one release event and return the final state."""
    initial_state: AgentState = {
        "event": event,
        "channel": channel,
        "persist_history": persist_history and reconciler is not None,
        "errors": [],
        "warnings": [],
    }

    app = create_workflow(transport, reconciler)
    final_state = None
    async for state in app.astream(initial_state):
        final_state = list(state.values())[0]
        if final_state.get("errors"):
            logger.error(f"Errors encountered: {final_state['errors']}")

    return final_state


def run_workflow(
    event: ReleaseEvent,
    channel: str,
    transport: ChatTransport,
    reconciler: Optional[CanvasReconciler] = None,
    persist_history: bool = False,
) -> AgentState:
    """Synchronous wrapper for the async workflow."""
    return asyncio.run(run_workflow_async(event, channel, transport, reconciler, persist_history))


def build_reconciler(settings: Settings, documents: DocumentStore) -> CanvasReconciler:
    state_store = JsonFileStateStore(settings.state_dir) if settings.state_dir else None
    return CanvasReconciler(
        documents,
        metadata_store=state_store,
        entry_store=state_store,
        scope=settings.canvas_scope,
        history_limit=settings.history_limit,
        recent_limit=settings.recent_releases,
        strategy_names=settings.discovery_strategies,
        retry_delay=settings.discovery_delay,
        include_workspace=settings.workspace_discovery,
    )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send release notifications to Slack and keep a releases canvas")
    parser.add_argument("--channel", type=str, help="Slack channel id or name")
    parser.add_argument("--version", type=str, help="Release version (defaults to the GitHub release tag)")
    parser.add_argument("--release-url", type=str, help="Link to the release page")
    parser.add_argument("--notes-file", type=str, help="Read release notes from this file")
    parser.add_argument("--custom-message", type=str, help="Text to include at the top of the notification")
    parser.add_argument("--repository", type=str, help="Repository name in owner/repo form")
    parser.add_argument(
        "--history",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Record the release in the channel's releases canvas",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    load_dotenv()

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else "INFO")

    release_body = None
    if args.notes_file:
        try:
            with open(args.notes_file, "r", encoding="utf-8") as f:
                release_body = f.read()
        except OSError as e:
            logger.error(f"Failed to read release notes from {args.notes_file}: {str(e)}")
            sys.exit(1)

    try:
        settings = load_settings(
            channel=args.channel,
            version=args.version,
            release_url=args.release_url,
            release_body=release_body,
            custom_message=args.custom_message,
            repository_name=args.repository,
            history_enabled=args.history,
        )
        event = settings.release_event()
    except (ConfigurationError, ReleaseInputError) as e:
        logger.error(str(e))
        sys.exit(1)

    if not settings.slack_bot_token:
        logger.error("SLACK_BOT_TOKEN environment variable is not set")
        sys.exit(1)
    if not settings.channel:
        logger.error("No Slack channel given. Set SLACK_CHANNEL or pass --channel")
        sys.exit(1)

    slack = SlackClient(token=settings.slack_bot_token, timeout=settings.slack_timeout)
    transport = SlackChatTransport(slack)
    reconciler = build_reconciler(settings, SlackDocumentStore(slack)) if settings.history_enabled else None

    logger.info(f"Announcing release {event.version} in {settings.channel}")
    final_state = run_workflow(event, settings.channel, transport, reconciler, settings.history_enabled)

    notification_sent = bool(final_state.get("notification_sent"))
    canvas_updated = bool(final_state.get("canvas_updated"))
    write_github_output(
        settings.github_output,
        {
            "notification-sent": str(notification_sent).lower(),
            "canvas-updated": str(canvas_updated).lower(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )

    logger.info("Workflow completed!")
    for warning in final_state.get("warnings", []):
        logger.warning(f"- {warning['node']}: {warning['error']}")

    if final_state.get("errors"):
        logger.error("Errors encountered during processing:")
        for error in final_state["errors"]:
            logger.error(f"- {error['node']}: {error['error']}")
        sys.exit(1)


if __name__ == "__main__":
    main()
