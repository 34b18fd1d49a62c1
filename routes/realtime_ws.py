"""WebSocket endpoint for a realtime construction or general walkthrough."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect

from services.openai.realtime_transport import RealtimeTransport
from services.realtime.client_audio import ClientAudioChannel
from services.realtime.session_orchestrator import SessionOrchestrator
from services.realtime.ws_session import WalkthroughMessageHandler
from services.verticals.registry import get_vertical

LOGGER = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/walkthrough")
async def walkthrough_socket(websocket: WebSocket, vertical: Optional[str] = None):
	"""Run one walkthrough session for the lifetime of the websocket."""
	await websocket.accept()

	async def send(payload: Dict[str, Any]) -> None:
		await websocket.send_text(json.dumps(payload))

	try:
		selected = get_vertical(vertical)
	except KeyError as exc:
		await send({"type": "error", "detail": str(exc.args[0])})
		await websocket.close()
		return

	state = websocket.app.state
	active = getattr(state, "active_orchestrator", None)
	if active is not None and active.is_active:
		await send({"type": "error", "detail": "A walkthrough is already active"})
		await websocket.close()
		return

	audio = ClientAudioChannel(send)
	orchestrator = SessionOrchestrator(
		RealtimeTransport(state.openai_client, state.settings),
		state.agent_bridge,
		audio,
		state.history_store,
		state.settings,
		vertical=selected,
		listener=send,
	)
	state.active_orchestrator = orchestrator
	handler = WalkthroughMessageHandler(orchestrator, audio)

	try:
		if not await orchestrator.start_session():
			return
		while orchestrator.is_active:
			try:
				raw = await websocket.receive_text()
			except WebSocketDisconnect:
				break
			try:
				payload = json.loads(raw)
			except Exception:
				await send({"type": "error", "detail": "Payload must be JSON"})
				continue
			await handler.handle(websocket, payload)
	finally:
		audio.close()
		await orchestrator.stop_session()
		if state.active_orchestrator is orchestrator:
			state.active_orchestrator = None
		try:
			await websocket.close()
		except Exception:
			pass
