"""Dispatch walkthrough websocket messages to the orchestrator."""
from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict, Optional

from fastapi import WebSocket

from services.realtime.client_audio import ClientAudioChannel
from services.realtime.session_orchestrator import SessionOrchestrator
from utils.frame_encoding import decode_frame


class WalkthroughMessageHandler:
	"""Route inbound client messages for a single walkthrough session."""

	def __init__(self, orchestrator: SessionOrchestrator, audio: ClientAudioChannel) -> None:
		self.orchestrator = orchestrator
		self.audio = audio

	async def handle(self, websocket: WebSocket, payload: Dict[str, Any]) -> None:
		"""Process a single inbound websocket payload."""
		request_id = payload.get("request_id")
		message_type = payload.get("type")
		try:
			if message_type == "audio":
				result = await self._capture_audio(payload)
			elif message_type == "frame":
				result = await self._send_frame(payload)
			elif message_type == "stop":
				await self.orchestrator.stop_session()
				result = {"type": "stopped"}
			else:
				raise ValueError("Unsupported message type.")
			if result is not None:
				result["request_id"] = request_id
				await self._send(websocket, result)
		except Exception as exc:
			await self._send_error(websocket, request_id, str(exc))

	async def _capture_audio(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
		audio_b64 = payload.get("audio_b64") or ""
		if not audio_b64:
			raise ValueError("Audio payload is required.")
		try:
			pcm = base64.b64decode(audio_b64, validate=True)
		except (binascii.Error, ValueError) as exc:
			raise ValueError("Audio payload must be base64-encoded PCM.") from exc
		await self.audio.capture(pcm)
		return None

	async def _send_frame(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
		image_b64 = (payload.get("image_b64") or "").strip()
		if not image_b64:
			raise ValueError("Image payload is required.")
		sent = await self.orchestrator.send_video_frame_if_throttled(decode_frame(image_b64))
		# Only acknowledge frames that were actually forwarded.
		return {"type": "frame.ack"} if sent else None

	async def _send_error(self, websocket: WebSocket, request_id: Any, detail: str) -> None:
		await self._send(websocket, {"type": "error", "request_id": request_id, "detail": detail})

	async def _send(self, websocket: WebSocket, payload: Dict[str, Any]) -> None:
		await websocket.send_text(json.dumps(payload))
