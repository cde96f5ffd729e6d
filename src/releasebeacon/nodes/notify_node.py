"""Notify Node posting the release message to Slack."""

from datetime import datetime

from loguru import logger

from releasebeacon.formatting.message import render_header_line
from releasebeacon.models.state import AgentState
from releasebeacon.slack.interfaces import ChatTransport


def make_notify_node(transport: ChatTransport):
    """Build the node posting the chat notification. A failed post is an invocation error."""

    async def notify_node(state: AgentState) -> AgentState:
        logger.info("Executing Notify Node")
        state["notification_sent"] = False
        try:
            if "chat_message" not in state:
                raise ValueError("No chat message was rendered")

            message = state["chat_message"]
            header = render_header_line(message, state["event"].repository_name or None)
            result = await transport.post_message(
                state["channel"], header, message.color, message.body, fallback=message.fallback_text
            )

            if not result.ok:
                raise RuntimeError(f"Slack notification failed: {result.error.describe()}")

            state["notification_sent"] = True
            logger.info(f"Release notification sent to {state['channel']}")
            return state

        except Exception as e:
            logger.error(f"Failed to send release notification: {str(e)}")
            state.setdefault("errors", []).append({"node": "notify_node", "error": str(e), "timestamp": datetime.now()})
            return state

    return notify_node
