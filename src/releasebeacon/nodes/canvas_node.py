"""Canvas Node recording the release in the channel's releases canvas."""

from datetime import datetime

from loguru import logger

from releasebeacon.models.state import AgentState
from releasebeacon.reconciler.reconciler import CanvasReconciler


def make_canvas_node(reconciler: CanvasReconciler):
    """Build the node updating the releases canvas. Failures are only warnings."""

    async def canvas_node(state: AgentState) -> AgentState:
        logger.info("Executing Canvas Node")
        state["canvas_updated"] = False
        state["canvas_document_id"] = None

        if "release_entry" not in state:
            logger.warning("Skipping canvas update: no release entry was rendered")
            return state

        result = await reconciler.reconcile(state["channel"], state["release_entry"])
        if result:
            state["canvas_updated"] = True
            state["canvas_document_id"] = result.document_id
        else:
            logger.warning(f"Canvas update failed, release history not recorded: {result.error}")
            state.setdefault("warnings", []).append(
                {"node": "canvas_node", "error": result.error, "timestamp": datetime.now()}
            )
        return state

    return canvas_node
