from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class ToolCall:
    """A function call emitted by the realtime model.

    Attributes:
        id: Caller-assigned identifier, unique per request.
        name: Tool (function) name.
        args: Decoded JSON arguments.
    """

    id: str
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    """Outcome of a tool call. Handlers return None instead to decline."""

    ok: bool
    message: str

    @classmethod
    def success(cls, message: str) -> "ToolResult":
        return cls(ok=True, message=message)

    @classmethod
    def failure(cls, message: str) -> "ToolResult":
        return cls(ok=False, message=message)

    @property
    def response_value(self) -> Dict[str, str]:
        return {"result": self.message} if self.ok else {"error": self.message}


@dataclass(frozen=True)
class ToolCallStatus:
    """Last known state of remote tool execution, mirrored into the UI.

    `state` is one of "idle", "executing", "completed", "failed", "cancelled".
    """

    state: str = "idle"
    tool_name: Optional[str] = None
    detail: Optional[str] = None
    call_ids: Tuple[str, ...] = ()

    @classmethod
    def idle(cls) -> "ToolCallStatus":
        return cls()

    @classmethod
    def executing(cls, tool_name: str) -> "ToolCallStatus":
        return cls(state="executing", tool_name=tool_name)

    @classmethod
    def completed(cls, tool_name: str) -> "ToolCallStatus":
        return cls(state="completed", tool_name=tool_name)

    @classmethod
    def failed(cls, tool_name: str, detail: str) -> "ToolCallStatus":
        return cls(state="failed", tool_name=tool_name, detail=detail)

    @classmethod
    def cancelled(cls, call_ids: Tuple[str, ...]) -> "ToolCallStatus":
        return cls(state="cancelled", call_ids=tuple(call_ids))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state,
            "tool_name": self.tool_name,
            "detail": self.detail,
            "call_ids": list(self.call_ids),
        }


class AgentConnectionState(str, Enum):
    NOT_CONFIGURED = "not_configured"
    CHECKING = "checking"
    CONNECTED = "connected"
    UNREACHABLE = "unreachable"


class ConnectionStatus(str, Enum):
    """Realtime model transport status."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    ERROR = "error"


class EventKind(str, Enum):
    AUDIO = "audio"
    INTERRUPTED = "interrupted"
    TURN_COMPLETE = "turn_complete"
    INPUT_TRANSCRIPT = "input_transcript"
    OUTPUT_TRANSCRIPT = "output_transcript"
    DISCONNECTED = "disconnected"
    TOOL_CALL = "tool_call"
    TOOL_CALL_CANCELLATION = "tool_call_cancellation"


@dataclass(frozen=True)
class TransportEvent:
    """One event pushed by the model transport into the orchestrator channel.

    Attributes:
        kind: Event kind.
        audio: PCM audio bytes for AUDIO events.
        text: Transcript text, or the disconnect reason for DISCONNECTED.
        calls: Function calls for TOOL_CALL events.
        call_ids: Cancelled call ids for TOOL_CALL_CANCELLATION events.
    """

    kind: EventKind
    audio: bytes = b""
    text: Optional[str] = None
    calls: Tuple[ToolCall, ...] = ()
    call_ids: Tuple[str, ...] = ()
