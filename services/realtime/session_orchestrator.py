"""Sequence a realtime walkthrough: connect, run, disconnect."""
from __future__ import annotations

import asyncio
import base64
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from dal.session_history_dal import SessionHistoryDAL
from models.session_models import ReportOutput
from models.tool_models import ConnectionStatus, EventKind, ToolCallStatus, TransportEvent
from services.agent.remote_agent_bridge import RemoteAgentBridge
from services.openai.realtime_transport import RealtimeTransport
from services.realtime.client_audio import ClientAudioChannel
from services.realtime.prompts import with_context
from services.realtime.session_manager import SessionManager
from services.realtime.tool_call_router import ToolCallRouter
from services.verticals.base import VerticalConfiguration
from services.verticals.registry import get_vertical
from utils.config import RealtimeSettings
from utils.frame_encoding import encode_jpeg

LOGGER = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any]], Awaitable[None]]


class OrchestratorState(str, Enum):
	IDLE = "idle"
	STARTING = "starting"
	RUNNING = "running"
	STOPPING = "stopping"
	ERROR = "error"


class SessionOrchestrator:
	"""Own one realtime walkthrough session and its observable state.

	Transport events arrive on a queue and are consumed by a single task, one
	handler per event kind. A poll loop mirrors transport and agent bridge
	state into this object's fields and pushes changes to `listener`.
	"""

	def __init__(
		self,
		transport: RealtimeTransport,
		bridge: RemoteAgentBridge,
		audio: ClientAudioChannel,
		history_store: SessionHistoryDAL,
		settings: RealtimeSettings,
		*,
		vertical: Optional[VerticalConfiguration] = None,
		listener: Optional[Listener] = None,
	) -> None:
		self.transport = transport
		self.bridge = bridge
		self.audio = audio
		self.history_store = history_store
		self.settings = settings
		self.listener = listener
		self._vertical = vertical or get_vertical()

		self.state = OrchestratorState.IDLE
		self.is_active = False
		self.connection_status = ConnectionStatus.DISCONNECTED
		self.is_model_speaking = False
		self.error_message: Optional[str] = None
		self.user_transcript = ""
		self.ai_transcript = ""
		self.tool_call_status = ToolCallStatus.idle()
		self.agent_connection_state = bridge.connection_state
		self.session_manager: Optional[SessionManager] = None
		self.last_report: Optional[ReportOutput] = None

		self._router: Optional[ToolCallRouter] = None
		self._stop_token: Optional[asyncio.Event] = None
		self._event_task: Optional[asyncio.Task] = None
		self._poll_task: Optional[asyncio.Task] = None
		self._last_video_frame_time = float("-inf")
		self._handlers: Dict[EventKind, Callable[[TransportEvent], Awaitable[None]]] = {
			EventKind.AUDIO: self._on_audio_received,
			EventKind.INTERRUPTED: self._on_interrupted,
			EventKind.TURN_COMPLETE: self._on_turn_complete,
			EventKind.INPUT_TRANSCRIPT: self._on_input_transcript,
			EventKind.OUTPUT_TRANSCRIPT: self._on_output_transcript,
			EventKind.DISCONNECTED: self._on_disconnected,
			EventKind.TOOL_CALL: self._on_tool_call,
			EventKind.TOOL_CALL_CANCELLATION: self._on_tool_call_cancellation,
		}

	@property
	def vertical(self) -> VerticalConfiguration:
		return self._vertical

	@vertical.setter
	def vertical(self, value: VerticalConfiguration) -> None:
		if self.is_active:
			raise RuntimeError("Cannot change vertical while a session is active")
		self._vertical = value

	async def start_session(self) -> bool:
		"""Start a walkthrough session. Returns True once the session is running."""
		if self.is_active:
			return False

		if not self.settings.is_configured:
			self.error_message = "OpenAI API key not configured. Set OPENAI_API_KEY in the environment or .env file."
			await self._notify({"type": "error", "detail": self.error_message})
			return False

		self.is_active = True
		self.state = OrchestratorState.STARTING
		self.error_message = None
		self.last_report = None

		vertical = self._vertical
		manager = SessionManager(vertical, self.history_store)
		self.session_manager = manager

		try:
			context = await vertical.context_block(manager)
		except Exception:
			LOGGER.exception("Context block for vertical '%s' failed; starting without it", vertical.id)
			context = None
		self.transport.dynamic_system_prompt = with_context(vertical.system_prompt, context)
		self.transport.dynamic_tool_declarations = vertical.tool_declarations

		LOGGER.info("Starting with vertical: %s (%s)", vertical.display_name, vertical.id)

		stop_token = asyncio.Event()
		self._stop_token = stop_token
		events: asyncio.Queue = asyncio.Queue()
		self.transport.on_event = events.put_nowait
		self.audio.on_audio_captured = self._on_audio_captured
		self._event_task = asyncio.create_task(self._consume_events(events, stop_token), name="orchestrator-events")

		await self.bridge.check_connection()
		self.bridge.reset_session(vertical.session_key_prefix)
		if self._superseded(stop_token):
			return False

		self._router = ToolCallRouter(self.bridge, vertical, manager)
		self._poll_task = asyncio.create_task(self._poll_state(stop_token), name="orchestrator-poll")

		try:
			self.audio.setup_audio_session()
		except Exception as exc:
			await self._abort_start(f"Audio setup failed: {exc}", transport_opened=False)
			return False

		manager.start_walkthrough()

		connected = await self.transport.connect()
		if self._superseded(stop_token):
			# Teardown ran before the connection existed; close what connect opened.
			if connected:
				await self.transport.disconnect()
			manager.abandon_walkthrough()
			return False
		if not connected:
			message = self.transport.connection_error or "Failed to connect to the realtime model"
			await self._abort_start(message, transport_opened=True)
			return False

		try:
			self.audio.start_capture()
		except Exception as exc:
			await self._abort_start(f"Mic capture failed: {exc}", transport_opened=True)
			return False

		self.state = OrchestratorState.RUNNING
		self.connection_status = self.transport.connection_status
		await self._notify({"type": "state", **self.snapshot()})
		return True

	async def stop_session(self) -> None:
		"""Stop the active session and reset observable state."""
		if not self.is_active:
			return
		self.state = OrchestratorState.STOPPING
		await self._teardown()
		self.state = OrchestratorState.IDLE
		LOGGER.info("Session stopped")
		await self._notify({"type": "state", **self.snapshot()})

	async def handle_disconnect(self, reason: Optional[str]) -> None:
		"""Tear down after an unexpected transport disconnection."""
		if not self.is_active:
			return
		self.state = OrchestratorState.ERROR
		await self._teardown()
		self.error_message = f"Connection lost: {reason or 'Unknown error'}"
		self.state = OrchestratorState.IDLE
		LOGGER.warning(self.error_message)
		await self._notify({"type": "error", "detail": self.error_message})
		await self._notify({"type": "state", **self.snapshot()})

	async def send_video_frame_if_throttled(self, frame: bytes) -> bool:
		"""Forward a camera frame at most once per `video_frame_interval`.

		Returns True if the frame was sent.
		"""
		if not self.is_active or self.connection_status != ConnectionStatus.READY:
			return False
		now = time.monotonic()
		if now - self._last_video_frame_time < self.settings.video_frame_interval:
			return False
		self._last_video_frame_time = now

		jpeg = await asyncio.to_thread(encode_jpeg, frame, self.settings.video_jpeg_quality)
		await self.transport.send_video_frame(jpeg)
		if self.session_manager is not None:
			self.session_manager.latest_frame = jpeg
		return True

	def snapshot(self) -> Dict[str, Any]:
		manager = self.session_manager
		return {
			"state": self.state.value,
			"vertical_id": self._vertical.id,
			"connection_status": self.connection_status.value,
			"is_model_speaking": self.is_model_speaking,
			"tool_call_status": self.tool_call_status.to_dict(),
			"agent_connection_state": self.agent_connection_state.value,
			"is_walkthrough_active": bool(manager and manager.is_walkthrough_active),
			"flag_count": manager.flag_count if manager else 0,
			"error_message": self.error_message,
		}

	async def _abort_start(self, message: str, *, transport_opened: bool) -> None:
		LOGGER.error("Session start failed: %s", message)
		if self._router is not None:
			self._router.cancel_all()
			self._router = None
		self.audio.stop_capture()
		if transport_opened:
			await self.transport.disconnect()
		self.transport.dynamic_system_prompt = None
		self.transport.dynamic_tool_declarations = None
		await self._cancel_background()
		if self.session_manager is not None:
			self.session_manager.abandon_walkthrough()
		self.is_active = False
		self.connection_status = ConnectionStatus.DISCONNECTED
		self.error_message = message
		self.state = OrchestratorState.ERROR
		await self._notify({"type": "error", "detail": message})

	async def _teardown(self) -> None:
		self.is_active = False
		if self._router is not None:
			self._router.cancel_all()
			self._router = None
		self.audio.stop_capture()
		await self.transport.disconnect()
		self.transport.dynamic_system_prompt = None
		self.transport.dynamic_tool_declarations = None
		await self._cancel_background()
		self.connection_status = ConnectionStatus.DISCONNECTED
		self.is_model_speaking = False
		self.user_transcript = ""
		self.ai_transcript = ""
		self.tool_call_status = ToolCallStatus.idle()

	async def _cancel_background(self) -> None:
		stop_token, self._stop_token = self._stop_token, None
		if stop_token is not None:
			stop_token.set()
		current = asyncio.current_task()
		pending = []
		for task in (self._poll_task, self._event_task):
			if task is None or task is current or task.done():
				continue
			task.cancel()
			pending.append(task)
		self._poll_task = None
		self._event_task = None
		if pending:
			await asyncio.gather(*pending, return_exceptions=True)

	def _superseded(self, stop_token: asyncio.Event) -> bool:
		"""True when the session was stopped while start was suspended."""
		return self._stop_token is not stop_token or not self.is_active

	async def _consume_events(self, events: asyncio.Queue, stop_token: asyncio.Event) -> None:
		while not stop_token.is_set():
			event = await events.get()
			if stop_token.is_set():
				break
			try:
				await self._handlers[event.kind](event)
			except Exception:
				LOGGER.exception("Error handling %s event", event.kind.value)

	async def _poll_state(self, stop_token: asyncio.Event) -> None:
		last_published: Optional[Dict[str, Any]] = None
		while not stop_token.is_set():
			await asyncio.sleep(self.settings.state_poll_interval)
			if stop_token.is_set():
				break
			self.connection_status = self.transport.connection_status
			self.is_model_speaking = self.transport.is_model_speaking
			self.tool_call_status = self.bridge.last_tool_call_status
			self.agent_connection_state = self.bridge.connection_state

			snapshot = self.snapshot()
			if snapshot != last_published:
				last_published = snapshot
				await self._notify({"type": "state", **snapshot})

			report = self.session_manager.last_report if self.session_manager else None
			if report is not None and report is not self.last_report:
				self.last_report = report
				await self._notify_report(report)

	async def _on_audio_captured(self, pcm: bytes) -> None:
		if self.settings.mute_mic_while_model_speaking and self.transport.is_model_speaking:
			return
		await self.transport.send_audio(pcm)

	async def _on_audio_received(self, event: TransportEvent) -> None:
		await self.audio.play_audio(event.audio)

	async def _on_interrupted(self, event: TransportEvent) -> None:
		await self.audio.stop_playback()

	async def _on_turn_complete(self, event: TransportEvent) -> None:
		self.user_transcript = ""

	async def _on_input_transcript(self, event: TransportEvent) -> None:
		text = event.text or ""
		self.user_transcript += text
		self.ai_transcript = ""
		if self.session_manager is not None:
			self.session_manager.add_transcript("user", text)
		await self._notify({"type": "transcript", "speaker": "user", "text": self.user_transcript})

	async def _on_output_transcript(self, event: TransportEvent) -> None:
		text = event.text or ""
		self.ai_transcript += text
		if self.session_manager is not None:
			self.session_manager.add_transcript("ai", text)
		await self._notify({"type": "transcript", "speaker": "ai", "text": self.ai_transcript})

	async def _on_disconnected(self, event: TransportEvent) -> None:
		await self.handle_disconnect(event.text)

	async def _on_tool_call(self, event: TransportEvent) -> None:
		if self._router is None:
			return
		for call in event.calls:
			self._router.route(call, self.transport.send_tool_response)

	async def _on_tool_call_cancellation(self, event: TransportEvent) -> None:
		if self._router is None:
			return
		self._router.cancel(event.call_ids)

	async def _notify_report(self, report: ReportOutput) -> None:
		session = self.session_manager.current_session if self.session_manager else None
		await self._notify(
			{
				"type": "report",
				"session_id": session.id if session else None,
				"filename": report.filename,
				"media_type": report.media_type,
				"data_b64": base64.b64encode(report.data).decode("ascii"),
			}
		)

	async def _notify(self, payload: Dict[str, Any]) -> None:
		if self.listener is None:
			return
		try:
			await self.listener(payload)
		except Exception as exc:
			LOGGER.warning("Listener rejected %s update: %s", payload.get("type"), exc)
