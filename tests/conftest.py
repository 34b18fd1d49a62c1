import asyncio
from typing import Dict, List

import pytest

from models.tool_models import AgentConnectionState, ConnectionStatus, ToolCallStatus, ToolResult
from utils.config import RealtimeSettings


class InMemoryHistoryStore:
    """History store double with the same load/save contract as SessionHistoryDAL."""

    def __init__(self, sessions=None):
        self.sessions = list(sessions or [])
        self.save_calls = 0

    async def load(self):
        return list(self.sessions)

    async def save(self, sessions):
        self.save_calls += 1
        self.sessions = list(sessions)


class FakeBridge:
    """Remote agent bridge double; set `block` to hold delegations until resolved."""

    def __init__(self):
        self.connection_state = AgentConnectionState.CONNECTED
        self.last_tool_call_status = ToolCallStatus.idle()
        self.delegated: List[tuple] = []
        self.pending: Dict[str, asyncio.Future] = {}
        self.reset_prefixes: List[str] = []
        self.block = False
        self.error = None

    async def check_connection(self):
        return True

    def reset_session(self, prefix="oversite"):
        self.reset_prefixes.append(prefix)
        return f"{prefix}:test"

    async def delegate_task(self, task, tool_name="execute"):
        self.delegated.append((task, tool_name))
        if self.error is not None:
            raise self.error
        if self.block:
            future = asyncio.get_running_loop().create_future()
            self.pending[task] = future
            return await future
        return ToolResult.success(f"done: {task}")


class FakeTransport:
    """Model transport double recording everything sent to it."""

    def __init__(self, connect_result=True, connect_error=None, connect_gate=None):
        self.connect_result = connect_result
        self.connect_error = connect_error
        self.connect_gate = connect_gate
        self.connect_started = False
        self.on_event = None
        self.dynamic_system_prompt = None
        self.dynamic_tool_declarations = None
        self.connection_status = ConnectionStatus.DISCONNECTED
        self.connection_error = None
        self.is_model_speaking = False
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.sent_audio: List[bytes] = []
        self.frames: List[bytes] = []
        self.tool_responses: List[dict] = []
        self.prompt_at_connect = None

    async def connect(self):
        self.connect_calls += 1
        self.prompt_at_connect = self.dynamic_system_prompt
        self.connect_started = True
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        if not self.connect_result:
            self.connection_status = ConnectionStatus.ERROR
            self.connection_error = self.connect_error
            return False
        self.connection_status = ConnectionStatus.READY
        return True

    async def disconnect(self):
        self.disconnect_calls += 1
        self.connection_status = ConnectionStatus.DISCONNECTED

    async def send_audio(self, pcm):
        self.sent_audio.append(pcm)

    async def send_video_frame(self, jpeg):
        self.frames.append(jpeg)

    async def send_tool_response(self, envelope):
        self.tool_responses.append(envelope)

    def emit(self, event):
        self.on_event(event)


@pytest.fixture
def history_store():
    return InMemoryHistoryStore()


@pytest.fixture
def fake_bridge():
    return FakeBridge()


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def settings():
    return RealtimeSettings(
        openai_api_key="test-key",
        state_poll_interval=0.01,
        video_frame_interval=60.0,
    )


@pytest.fixture
def eventually():
    async def _wait(predicate, timeout=2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.005)

    return _wait


@pytest.fixture
def make_transport():
    return FakeTransport
