"""Audio resource backed by the browser client on the walkthrough websocket."""
from __future__ import annotations

import base64
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

LOGGER = logging.getLogger(__name__)

Sender = Callable[[Dict[str, Any]], Awaitable[None]]
AudioSink = Callable[[bytes], Awaitable[None]]


class ClientAudioChannel:
	"""Microphone capture and speaker playback relayed through the client.

	Captured PCM arrives from the client via `capture()` and is passed to
	`on_audio_captured` only between `start_capture()` and `stop_capture()`.
	Model audio is played by sending it back to the client.
	"""

	def __init__(self, send: Sender) -> None:
		self._send = send
		self.on_audio_captured: Optional[AudioSink] = None
		self.is_session_ready = False
		self.is_capturing = False
		self.closed = False

	def setup_audio_session(self) -> None:
		if self.closed:
			raise RuntimeError("Client audio channel is closed")
		self.is_session_ready = True

	def start_capture(self) -> None:
		if self.closed:
			raise RuntimeError("Client audio channel is closed")
		if not self.is_session_ready:
			raise RuntimeError("Audio session has not been set up")
		self.is_capturing = True

	def stop_capture(self) -> None:
		self.is_capturing = False

	def close(self) -> None:
		self.closed = True
		self.is_capturing = False
		self.is_session_ready = False

	async def capture(self, pcm: bytes) -> None:
		"""Accept a microphone chunk from the client."""
		if not self.is_capturing or self.on_audio_captured is None or not pcm:
			return
		await self.on_audio_captured(pcm)

	async def play_audio(self, pcm: bytes) -> None:
		if self.closed:
			return
		await self._send({"type": "audio", "audio_b64": base64.b64encode(pcm).decode("ascii")})

	async def stop_playback(self) -> None:
		if self.closed:
			return
		await self._send({"type": "interrupted"})
