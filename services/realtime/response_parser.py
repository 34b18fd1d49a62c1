"""Translate Realtime API server events into transport events."""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, List

from models.tool_models import EventKind, ToolCall, TransportEvent

LOGGER = logging.getLogger(__name__)

AUDIO_DELTA_EVENTS = {"response.output_audio.delta", "response.audio.delta"}
OUTPUT_TRANSCRIPT_EVENTS = {"response.output_audio_transcript.delta", "response.audio_transcript.delta"}


def _field(obj: Any, name: str, default: Any = None) -> Any:
	"""Read `name` from an SDK model or a plain dict."""
	if isinstance(obj, dict):
		return obj.get(name, default)
	return getattr(obj, name, default)


def parse_arguments(raw: Any) -> Dict[str, Any]:
	"""Decode function-call arguments; undecodable input yields an empty mapping."""
	if isinstance(raw, dict):
		return raw
	try:
		args = json.loads(raw or "{}")
	except (TypeError, ValueError):
		LOGGER.warning("Could not decode tool call arguments: %r", raw)
		return {}
	return args if isinstance(args, dict) else {}


def parse_server_event(event: Any) -> List[TransportEvent]:
	"""Return the transport events carried by one server event (often none)."""
	event_type = _field(event, "type")

	if event_type in AUDIO_DELTA_EVENTS:
		return [TransportEvent(EventKind.AUDIO, audio=base64.b64decode(_field(event, "delta") or ""))]

	if event_type == "input_audio_buffer.speech_started":
		return [TransportEvent(EventKind.INTERRUPTED)]

	if event_type == "conversation.item.input_audio_transcription.completed":
		transcript = _field(event, "transcript") or ""
		return [TransportEvent(EventKind.INPUT_TRANSCRIPT, text=transcript)] if transcript else []

	if event_type in OUTPUT_TRANSCRIPT_EVENTS:
		delta = _field(event, "delta") or ""
		return [TransportEvent(EventKind.OUTPUT_TRANSCRIPT, text=delta)] if delta else []

	if event_type == "response.function_call_arguments.done":
		call = ToolCall(
			id=_field(event, "call_id"),
			name=_field(event, "name"),
			args=parse_arguments(_field(event, "arguments")),
		)
		return [TransportEvent(EventKind.TOOL_CALL, calls=(call,))]

	if event_type == "response.done":
		return _parse_response_done(_field(event, "response"))

	return []


def _parse_response_done(response: Any) -> List[TransportEvent]:
	events: List[TransportEvent] = []
	if _field(response, "status") == "cancelled":
		call_ids = tuple(
			_field(item, "call_id")
			for item in _field(response, "output", None) or []
			if _field(item, "type") == "function_call" and _field(item, "call_id")
		)
		if call_ids:
			events.append(TransportEvent(EventKind.TOOL_CALL_CANCELLATION, call_ids=call_ids))
	events.append(TransportEvent(EventKind.TURN_COMPLETE))
	return events
