"""Delegate tool calls to a remote personal-assistant agent.

The agent gateway speaks the OpenAI chat completions protocol, so the bridge
uses the shared `AsyncOpenAI` client pointed at the gateway's base URL. Each
walkthrough gets its own session key so the agent keeps per-session memory.
"""

import logging
from typing import Dict, List, Optional
from uuid import uuid4

from openai import APIConnectionError, AsyncOpenAI

from models.tool_models import AgentConnectionState, ToolCallStatus, ToolResult

LOGGER = logging.getLogger(__name__)

DEFAULT_AGENT_MODEL = "openclaw"


class RemoteAgentBridge:
    """Send task descriptions to the remote agent and track its status."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        *,
        model: str = DEFAULT_AGENT_MODEL,
        client: Optional[AsyncOpenAI] = None,
        timeout: float = 120.0,
        max_history_messages: int = 20,
    ) -> None:
        """Initialize the bridge.

        Args:
            base_url: Gateway URL; when missing and no client is given the bridge is unconfigured.
            token: Bearer token for the gateway.
            model: Model name the gateway routes to.
            client: Optional preconfigured async OpenAI client (dependency injection).
            timeout: Request timeout in seconds.
            max_history_messages: Conversation turns replayed to the agent per request.
        """
        if client is None and base_url:
            client = AsyncOpenAI(base_url=base_url, api_key=token or "unused", timeout=timeout)
        self.client = client
        self.model = model
        self.max_history_messages = max_history_messages
        self.connection_state = (
            AgentConnectionState.NOT_CONFIGURED if client is None else AgentConnectionState.CHECKING
        )
        self.last_tool_call_status = ToolCallStatus.idle()
        self.session_key: Optional[str] = None
        self._messages: List[Dict[str, str]] = []

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def check_connection(self) -> bool:
        """Probe the gateway and update `connection_state`."""
        if self.client is None:
            self.connection_state = AgentConnectionState.NOT_CONFIGURED
            return False

        self.connection_state = AgentConnectionState.CHECKING
        try:
            await self.client.models.list()
        except Exception as exc:
            LOGGER.warning("Remote agent unreachable: %s", exc)
            self.connection_state = AgentConnectionState.UNREACHABLE
            return False

        self.connection_state = AgentConnectionState.CONNECTED
        return True

    def reset_session(self, prefix: str = "oversite") -> str:
        """Start a fresh agent conversation under a new session key."""
        self.session_key = f"{prefix}:{uuid4().hex[:12]}"
        self._messages.clear()
        self.last_tool_call_status = ToolCallStatus.idle()
        LOGGER.info("Remote agent session reset: %s", self.session_key)
        return self.session_key

    async def delegate_task(self, task: str, tool_name: str = "execute") -> ToolResult:
        """Ask the remote agent to carry out `task`.

        Failures are returned as error results rather than raised.
        """
        if self.client is None:
            self.last_tool_call_status = ToolCallStatus.failed(tool_name, "not configured")
            return ToolResult.failure("The personal assistant is not configured.")

        self.last_tool_call_status = ToolCallStatus.executing(tool_name)
        self._messages.append({"role": "user", "content": task})
        messages = self._messages[-self.max_history_messages:]

        extra_headers = {"x-session-key": self.session_key} if self.session_key else None
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                user=self.session_key or "oversite",
                extra_headers=extra_headers,
            )
        except APIConnectionError as exc:
            LOGGER.error("Remote agent connection failed: %s", exc)
            self.connection_state = AgentConnectionState.UNREACHABLE
            self.last_tool_call_status = ToolCallStatus.failed(tool_name, str(exc))
            return ToolResult.failure(f"Could not reach the personal assistant: {exc}")
        except Exception as exc:
            LOGGER.error("Remote agent request failed: %s", exc)
            self.last_tool_call_status = ToolCallStatus.failed(tool_name, str(exc))
            return ToolResult.failure(f"Personal assistant error: {exc}")

        content = ""
        if response.choices:
            content = (response.choices[0].message.content or "").strip()
        self._messages.append({"role": "assistant", "content": content})
        self.last_tool_call_status = ToolCallStatus.completed(tool_name)
        return ToolResult.success(content or "Task completed.")
