"""Construction site manager vertical.

Adds the `flag_issue` and `end_walkthrough` tools on top of the remote
`execute` tool, injects previous walkthrough summaries into the prompt, and
renders a CSV punch list when a walkthrough ends.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import Any, Dict, List, Optional

from models.session_models import ReportOutput, WalkthroughSession
from models.tool_models import ToolCall, ToolResult
from services.realtime.prompts import construction_system_prompt
from services.verticals.base import VerticalConfiguration
from services.verticals.tool_declarations import END_WALKTHROUGH_TOOL, EXECUTE_TOOL, FLAG_ISSUE_TOOL

LOGGER = logging.getLogger(__name__)

REPORT_HEADER = ["Issue #", "Timestamp", "Location", "Description", "Priority"]
DEFAULT_PRIORITY = "Medium"


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class ConstructionVertical(VerticalConfiguration):
    id = "construction"
    display_name = "Construction Site Manager"
    description = "AI copilot for site walks: flag issues, track progress, generate reports."
    session_key_prefix = "oversite:construction"

    @property
    def system_prompt(self) -> str:
        return construction_system_prompt()

    @property
    def tool_declarations(self) -> List[Dict[str, Any]]:
        return [FLAG_ISSUE_TOOL, END_WALKTHROUGH_TOOL, EXECUTE_TOOL]

    async def handle_tool_call(self, call: ToolCall, session_manager) -> Optional[ToolResult]:
        if call.name == "flag_issue":
            return self._flag_issue(call, session_manager)
        if call.name == "end_walkthrough":
            return await self._end_walkthrough(session_manager)
        return None

    async def context_block(self, session_manager) -> Optional[str]:
        history = await session_manager.get_past_session_summaries(limit=5)
        return history or None

    async def generate_report(self, session: WalkthroughSession) -> Optional[ReportOutput]:
        """Render the walkthrough's flags as a CSV punch list.

        Returns None when nothing was flagged.
        """
        if not session.flags:
            return None

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(REPORT_HEADER)
        for number, flag in enumerate(session.flags, start=1):
            writer.writerow(
                [
                    number,
                    flag.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                    flag.location or "",
                    flag.description,
                    flag.priority or DEFAULT_PRIORITY,
                ]
            )

        filename = f"walkthrough_{session.start_time.strftime('%Y-%m-%d_%H%M')}.csv"
        return ReportOutput.csv(buffer.getvalue().encode("utf-8"), filename)

    def _flag_issue(self, call: ToolCall, session_manager) -> ToolResult:
        description = _optional_text(call.args.get("description")) or "Issue flagged"
        location = _optional_text(call.args.get("location"))
        priority = _optional_text(call.args.get("priority"))

        flag = session_manager.flag_issue(description, user_transcript=session_manager.latest_user_utterance())
        if flag is None:
            return ToolResult.failure("No walkthrough is active; the issue was not recorded.")

        session_manager.update_latest_flag(location=location, priority=priority)

        location_text = f" at {location}" if location else ""
        return ToolResult.success(f"Issue #{session_manager.flag_count} flagged{location_text}: {description}")

    async def _end_walkthrough(self, session_manager) -> ToolResult:
        if not session_manager.is_walkthrough_active:
            return ToolResult.failure("No walkthrough is active.")

        report = await session_manager.end_walkthrough()
        flag_count = session_manager.flag_count

        if report is not None:
            LOGGER.info("Construction report ready: %s", report.filename)
            return ToolResult.success(
                f"Walkthrough ended. Report generated with {flag_count} flagged issues. File: {report.filename}"
            )
        return ToolResult.success(f"Walkthrough ended. {flag_count} issues were flagged.")
