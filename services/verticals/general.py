"""General-purpose vertical: every tool call goes to the remote agent."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from models.tool_models import ToolCall, ToolResult
from services.realtime.prompts import general_system_prompt
from services.verticals.base import VerticalConfiguration
from services.verticals.tool_declarations import EXECUTE_TOOL


class GeneralVertical(VerticalConfiguration):
    id = "general"
    display_name = "General Assistant"
    description = "General-purpose AI assistant with full personal-assistant capabilities."
    session_key_prefix = "oversite:general"

    @property
    def system_prompt(self) -> str:
        return general_system_prompt()

    @property
    def tool_declarations(self) -> List[Dict[str, Any]]:
        return [EXECUTE_TOOL]

    async def handle_tool_call(self, call: ToolCall, session_manager) -> Optional[ToolResult]:
        # No local handlers
        return None
