"""Analysis Node running the release note analyzers."""

from datetime import datetime

from loguru import logger

from releasebeacon.analyzers.breaking_changes import analyze_breaking_changes
from releasebeacon.analyzers.config_changes import analyze_config_changes
from releasebeacon.analyzers.e2e_workflows import analyze_e2e_workflows
from releasebeacon.models.state import AgentState


async def analysis_node(state: AgentState) -> AgentState:
    """Run every analyzer over the release notes. The analyzers are independent of each other."""
    logger.info("Executing Analysis Node")
    try:
        notes = state["event"].raw_notes

        state["breaking_analysis"] = analyze_breaking_changes(notes)
        state["config_analysis"] = analyze_config_changes(notes)
        state["e2e_analysis"] = analyze_e2e_workflows(notes)

        logger.info(
            f"Analysis complete: breaking={state['breaking_analysis'].has_breaking_changes}, "
            f"config={state['config_analysis'].has_config_changes}, "
            f"e2e={state['e2e_analysis'].has_e2e_tests}"
        )
        return state

    except Exception as e:
        logger.error(f"Release note analysis failed: {str(e)}")
        state.setdefault("errors", []).append({"node": "analysis_node", "error": str(e), "timestamp": datetime.now()})
        return state
