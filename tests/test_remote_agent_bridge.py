from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APIConnectionError

from models.tool_models import AgentConnectionState
from services.agent.remote_agent_bridge import RemoteAgentBridge


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def client():
    client = MagicMock()
    client.models.list = AsyncMock(return_value=[])
    client.chat.completions.create = AsyncMock(return_value=_completion("Message sent to Sam."))
    return client


@pytest.mark.asyncio
async def test_unconfigured_bridge_fails_without_raising():
    bridge = RemoteAgentBridge()

    result = await bridge.delegate_task("text Sam")

    assert not bridge.is_configured
    assert bridge.connection_state == AgentConnectionState.NOT_CONFIGURED
    assert not result.ok
    assert bridge.last_tool_call_status.state == "failed"
    assert await bridge.check_connection() is False


@pytest.mark.asyncio
async def test_check_connection(client):
    bridge = RemoteAgentBridge(client=client)

    assert await bridge.check_connection() is True
    assert bridge.connection_state == AgentConnectionState.CONNECTED

    client.models.list.side_effect = RuntimeError("refused")
    assert await bridge.check_connection() is False
    assert bridge.connection_state == AgentConnectionState.UNREACHABLE


@pytest.mark.asyncio
async def test_delegate_task_sends_session_key_and_history(client):
    bridge = RemoteAgentBridge(client=client, model="agent-x")
    key = bridge.reset_session("oversite:construction")

    result = await bridge.delegate_task("text Sam that I'm late")

    assert key.startswith("oversite:construction:")
    assert result.ok and result.message == "Message sent to Sam."
    assert bridge.last_tool_call_status.state == "completed"
    kwargs = client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "agent-x"
    assert kwargs["user"] == key
    assert kwargs["extra_headers"] == {"x-session-key": key}
    assert kwargs["messages"] == [{"role": "user", "content": "text Sam that I'm late"}]

    await bridge.delegate_task("and Alex too")
    roles = [message["role"] for message in client.chat.completions.create.await_args.kwargs["messages"]]
    assert roles == ["user", "assistant", "user"]


@pytest.mark.asyncio
async def test_empty_reply_reports_completion(client):
    client.chat.completions.create.return_value = _completion(None)
    bridge = RemoteAgentBridge(client=client)

    result = await bridge.delegate_task("set a reminder")

    assert result.message == "Task completed."


@pytest.mark.asyncio
async def test_connection_error_marks_agent_unreachable(client):
    request = httpx.Request("POST", "http://agent.local/v1/chat/completions")
    client.chat.completions.create.side_effect = APIConnectionError(request=request)
    bridge = RemoteAgentBridge(client=client)

    result = await bridge.delegate_task("search the web")

    assert not result.ok
    assert bridge.connection_state == AgentConnectionState.UNREACHABLE
    assert bridge.last_tool_call_status.state == "failed"


@pytest.mark.asyncio
async def test_other_errors_become_failures(client):
    client.chat.completions.create.side_effect = ValueError("bad payload")
    bridge = RemoteAgentBridge(client=client)

    result = await bridge.delegate_task("search the web")

    assert result.message == "Personal assistant error: bad payload"


def test_reset_session_clears_history(client):
    bridge = RemoteAgentBridge(client=client)
    bridge._messages.append({"role": "user", "content": "old"})

    first = bridge.reset_session("oversite:general")
    second = bridge.reset_session("oversite:general")

    assert first != second
    assert bridge._messages == []
    assert bridge.last_tool_call_status.state == "idle"
