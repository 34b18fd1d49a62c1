"""OpenAI Realtime connection used as the walkthrough model transport."""

import asyncio
import base64
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from openai import AsyncOpenAI

from models.tool_models import ConnectionStatus, EventKind, TransportEvent
from services.realtime.response_parser import AUDIO_DELTA_EVENTS, parse_server_event
from utils.config import RealtimeSettings

LOGGER = logging.getLogger(__name__)

SETUP_TIMEOUT_SECONDS = 15.0
PCM_RATE = 24000


class RealtimeTransport:
    """Stream audio, frames and tool responses to the Realtime API.

    Server events are translated into `TransportEvent`s and handed to the
    single `on_event` sink; the orchestrator owns what happens next.
    """

    def __init__(self, client: Optional[AsyncOpenAI], settings: RealtimeSettings) -> None:
        self.client = client
        self.settings = settings
        self.on_event: Optional[Callable[[TransportEvent], None]] = None
        self.dynamic_system_prompt: Optional[str] = None
        self.dynamic_tool_declarations: Optional[List[Dict[str, Any]]] = None
        self.connection_status = ConnectionStatus.DISCONNECTED
        self.connection_error: Optional[str] = None
        self.is_model_speaking = False
        self._connection = None
        self._reader: Optional[asyncio.Task] = None
        self._closing = False

    @property
    def is_ready(self) -> bool:
        return self.connection_status == ConnectionStatus.READY

    async def connect(self) -> bool:
        """Open the realtime connection and wait for the session update.

        Returns False on failure; `connection_error` then carries the reason.
        """
        if self.client is None:
            self._fail("OpenAI client is not configured")
            return False

        self._closing = False
        self.connection_error = None
        self.connection_status = ConnectionStatus.CONNECTING
        try:
            self._connection = await self.client.realtime.connect(model=self.settings.realtime_model).enter()
            await self._connection.session.update(session=self._session_config())
            await asyncio.wait_for(self._await_session_updated(), timeout=SETUP_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            self._fail("Timed out waiting for the realtime session to start")
            await self._close_connection()
            return False
        except Exception as exc:
            LOGGER.error("Realtime connect failed: %s", exc)
            self._fail(str(exc))
            await self._close_connection()
            return False

        self.connection_status = ConnectionStatus.READY
        self._reader = asyncio.create_task(self._read_events(), name="realtime-reader")
        LOGGER.info("Realtime session ready (%s)", self.settings.realtime_model)
        return True

    async def disconnect(self) -> None:
        self._closing = True
        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
        await self._close_connection()
        self.connection_status = ConnectionStatus.DISCONNECTED
        self.is_model_speaking = False

    async def send_audio(self, pcm: bytes) -> None:
        if not self.is_ready or not pcm:
            return
        await self._connection.input_audio_buffer.append(audio=base64.b64encode(pcm).decode("ascii"))

    async def send_video_frame(self, jpeg: bytes) -> None:
        if not self.is_ready:
            return
        image_url = "data:image/jpeg;base64," + base64.b64encode(jpeg).decode("ascii")
        await self._connection.conversation.item.create(
            item={
                "type": "message",
                "role": "user",
                "content": [{"type": "input_image", "image_url": image_url}],
            }
        )

    async def send_tool_response(self, envelope: Dict[str, Any]) -> None:
        """Send function outputs from a router envelope and ask the model to continue."""
        if not self.is_ready:
            LOGGER.warning("Dropping tool response; realtime session is not ready")
            return
        for item in envelope.get("toolResponse", {}).get("functionResponses", []):
            await self._connection.conversation.item.create(
                item={
                    "type": "function_call_output",
                    "call_id": item["id"],
                    "output": json.dumps(item["response"]),
                }
            )
        await self._connection.response.create()

    def _session_config(self) -> Dict[str, Any]:
        audio_format = {"type": "audio/pcm", "rate": PCM_RATE}
        return {
            "type": "realtime",
            "instructions": self.dynamic_system_prompt or "",
            "tools": self.dynamic_tool_declarations or [],
            "tool_choice": "auto",
            "output_modalities": ["audio"],
            "audio": {
                "input": {
                    "format": audio_format,
                    "transcription": {"model": self.settings.transcribe_model},
                    "turn_detection": {"type": "server_vad"},
                },
                "output": {"format": audio_format, "voice": self.settings.voice},
            },
        }

    async def _await_session_updated(self) -> None:
        while True:
            event = await self._connection.recv()
            if event.type == "session.updated":
                return
            if event.type == "error":
                raise RuntimeError(getattr(event.error, "message", None) or "Realtime session error")

    async def _read_events(self) -> None:
        reason = "Server closed the connection"
        try:
            async for event in self._connection:
                if event.type == "error":
                    LOGGER.error("Realtime error event: %s", getattr(event.error, "message", event))
                    continue
                self._track_speaking(event.type)
                for parsed in parse_server_event(event):
                    self._emit(parsed)
        except Exception as exc:
            reason = str(exc) or exc.__class__.__name__

        if self._closing:
            return
        LOGGER.warning("Realtime connection lost: %s", reason)
        self.connection_status = ConnectionStatus.DISCONNECTED
        self.is_model_speaking = False
        self._emit(TransportEvent(EventKind.DISCONNECTED, text=reason))

    def _track_speaking(self, event_type: str) -> None:
        if event_type in AUDIO_DELTA_EVENTS:
            self.is_model_speaking = True
        elif event_type in ("response.done", "input_audio_buffer.speech_started"):
            self.is_model_speaking = False

    def _emit(self, event: TransportEvent) -> None:
        if self.on_event is not None:
            self.on_event(event)

    def _fail(self, message: str) -> None:
        self.connection_status = ConnectionStatus.ERROR
        self.connection_error = message

    async def _close_connection(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            await connection.close()
        except Exception as exc:
            LOGGER.debug("Ignoring error while closing realtime connection: %s", exc)
