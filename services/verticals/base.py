"""Pluggable vertical configuration shared by the realtime walkthrough services."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from models.session_models import ReportOutput, WalkthroughSession
from models.tool_models import ToolCall, ToolResult

if TYPE_CHECKING:
    from services.realtime.session_manager import SessionManager


class VerticalConfiguration:
    """Domain-specific behavior pack selected before a session starts.

    A vertical supplies the system prompt and tool schemas sent to the realtime
    model, handles the tool calls it owns, and may contribute a prompt context
    block and a report for a finished walkthrough.

    Attributes:
        id: Unique identifier (e.g. "construction").
        display_name: Name shown in the vertical picker.
        description: Short picker description.
        session_key_prefix: Prefix for remote agent session keys.
    """

    id: str = ""
    display_name: str = ""
    description: str = ""
    session_key_prefix: str = ""

    @property
    def system_prompt(self) -> str:
        raise NotImplementedError

    @property
    def tool_declarations(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def handle_tool_call(self, call: ToolCall, session_manager: "SessionManager") -> Optional[ToolResult]:
        """Handle a tool call locally, or return None to fall through to the remote agent."""
        raise NotImplementedError

    async def context_block(self, session_manager: "SessionManager") -> Optional[str]:
        """Return text appended to the system prompt before the session starts."""
        return None

    async def generate_report(self, session: WalkthroughSession) -> Optional[ReportOutput]:
        """Return a report for a completed walkthrough, or None."""
        return None

    def describe(self) -> Dict[str, str]:
        return {"id": self.id, "display_name": self.display_name, "description": self.description}
