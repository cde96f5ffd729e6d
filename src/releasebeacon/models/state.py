"""State passed between the notification workflow nodes."""

from typing import Any, Dict, List, Optional, TypedDict

from releasebeacon.models.analysis import BreakingChangeAnalysis, ConfigAnalysis, E2EAnalysis
from releasebeacon.models.release import ChangeType, ReleaseEntry, ReleaseEvent


class AgentState(TypedDict, total=False):
    """
    Shared state passed between nodes.
    Each node adds or modifies specific fields.
    """

    # Input
    event: ReleaseEvent
    channel: str
    persist_history: bool

    # Analysis Node Output
    breaking_analysis: BreakingChangeAnalysis
    config_analysis: ConfigAnalysis
    e2e_analysis: E2EAnalysis

    # Message Node Output
    classification: ChangeType
    chat_message: Any  # ChatMessage
    release_entry: ReleaseEntry

    # Notify Node Output
    notification_sent: bool

    # Canvas Node Output
    canvas_updated: Optional[bool]
    canvas_document_id: Optional[str]

    # Global State
    errors: List[Dict[str, Any]]
    warnings: List[Dict[str, Any]]
