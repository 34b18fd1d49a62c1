"""Function schemas shared by the realtime verticals."""

from typing import Any, Dict

EXECUTE_TOOL_NAME = "execute"

EXECUTE_TOOL: Dict[str, Any] = {
    "type": "function",
    "name": EXECUTE_TOOL_NAME,
    "description": (
        "Hand a task to the personal assistant. Use for sending messages, web search, lists, "
        "reminders, notes, research, or any action outside the conversation."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "task": {
                "type": "string",
                "description": "Clear, detailed description of what to do, including every relevant detail.",
            }
        },
        "required": ["task"],
    },
}

FLAG_ISSUE_TOOL: Dict[str, Any] = {
    "type": "function",
    "name": "flag_issue",
    "description": (
        "Flag an issue seen during the walkthrough. Captures the current camera frame as a photo along "
        "with the description. Use when the user says 'flag this', 'mark that', 'note this issue', or similar."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "description": {
                "type": "string",
                "description": "Clear description of the issue (what you see, what's wrong, which trade)",
            },
            "location": {
                "type": "string",
                "description": "Location on site if identifiable (e.g. 'Building C east wall', 'Zone 2 bathroom')",
            },
            "priority": {
                "type": "string",
                "enum": ["Low", "Medium", "High", "Critical"],
                "description": (
                    "Priority level. Critical = safety hazard. High = blocks progress. "
                    "Medium = needs attention. Low = minor."
                ),
            },
        },
        "required": ["description"],
    },
}

END_WALKTHROUGH_TOOL: Dict[str, Any] = {
    "type": "function",
    "name": "end_walkthrough",
    "description": (
        "End the current walkthrough session and generate a report. Use when the user says "
        "'end walkthrough', 'that's it', 'wrap up', 'generate report', or similar."
    ),
    "parameters": {"type": "object", "properties": {}, "required": []},
}
