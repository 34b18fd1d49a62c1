"""Route realtime model tool calls to the vertical or the remote agent."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from models.tool_models import ToolCall, ToolCallStatus, ToolResult
from services.agent.remote_agent_bridge import RemoteAgentBridge
from services.realtime.session_manager import SessionManager
from services.verticals.base import VerticalConfiguration

LOGGER = logging.getLogger(__name__)

Responder = Callable[[Dict[str, Any]], Awaitable[None]]


def build_tool_response(call: ToolCall, result: ToolResult) -> Dict[str, Any]:
	"""Wrap a result in the envelope the model transport sends back."""
	return {
		"toolResponse": {
			"functionResponses": [
				{"id": call.id, "name": call.name, "response": result.response_value},
			]
		}
	}


def task_description(call: ToolCall) -> str:
	"""Return the text handed to the remote agent for a declined call."""
	task = call.args.get("task")
	if isinstance(task, str):
		return task
	return json.dumps(call.args, default=str, sort_keys=True)


class ToolCallRouter:
	"""Dispatch each tool call as its own cancellable task.

	The vertical gets the first chance at a call; when it declines (returns
	None) the call is delegated to the remote agent bridge. Each non-cancelled
	call yields exactly one response. A call cancelled before its response is
	delivered never responds.
	"""

	def __init__(
		self,
		bridge: RemoteAgentBridge,
		vertical: Optional[VerticalConfiguration] = None,
		session_manager: Optional[SessionManager] = None,
	) -> None:
		self.bridge = bridge
		self.vertical = vertical
		self.session_manager = session_manager
		self._in_flight: Dict[str, asyncio.Task] = {}

	def route(self, call: ToolCall, respond: Responder) -> asyncio.Task:
		"""Schedule `call` without blocking and return its task."""
		LOGGER.info("Received tool call %s (id: %s) args: %s", call.name, call.id, call.args)

		previous = self._in_flight.pop(call.id, None)
		if previous is not None:
			LOGGER.warning("Duplicate tool call id %s; cancelling the earlier call", call.id)
			previous.cancel()

		task = asyncio.create_task(self._run(call, respond), name=f"tool-call-{call.id}")
		self._in_flight[call.id] = task
		return task

	def cancel(self, call_ids: Iterable[str]) -> List[str]:
		"""Cancel the named calls; unknown ids are ignored. Returns the ids cancelled."""
		requested = list(call_ids)
		cancelled: List[str] = []
		for call_id in requested:
			task = self._in_flight.pop(call_id, None)
			if task is None:
				continue
			LOGGER.info("Cancelling in-flight call: %s", call_id)
			task.cancel()
			cancelled.append(call_id)
		self.bridge.last_tool_call_status = ToolCallStatus.cancelled(tuple(requested))
		return cancelled

	def cancel_all(self) -> None:
		"""Cancel every in-flight call and clear the registry."""
		for call_id, task in self._in_flight.items():
			LOGGER.info("Cancelling in-flight call: %s", call_id)
			task.cancel()
		self._in_flight.clear()

	async def _run(self, call: ToolCall, respond: Responder) -> None:
		result = await self._resolve(call)

		current = asyncio.current_task()
		if self._in_flight.get(call.id) is not current:
			LOGGER.info("Tool call %s was cancelled, skipping response", call.id)
			return

		LOGGER.info("Result for %s (id: %s): %s", call.name, call.id, result)
		try:
			await respond(build_tool_response(call, result))
		except Exception:
			LOGGER.exception("Failed to deliver response for tool call %s", call.id)
		finally:
			if self._in_flight.get(call.id) is current:
				del self._in_flight[call.id]

	def _detached_failure_logger(
		self, call: ToolCall, owner: Optional[asyncio.Task]
	) -> Callable[[asyncio.Future], None]:
		"""Log failures of local work whose call was cancelled before it finished."""

		def _done(handler: asyncio.Future) -> None:
			if handler.cancelled():
				return
			exc = handler.exception()
			if exc is not None and self._in_flight.get(call.id) is not owner:
				LOGGER.error(
					"Local handling of cancelled call %s (id: %s) failed",
					call.name,
					call.id,
					exc_info=exc,
				)

		return _done

	async def _resolve(self, call: ToolCall) -> ToolResult:
		if self.vertical is not None and self.session_manager is not None:
			# Local work runs to completion even if the call is cancelled meanwhile.
			handler = asyncio.ensure_future(self.vertical.handle_tool_call(call, self.session_manager))
			handler.add_done_callback(self._detached_failure_logger(call, asyncio.current_task()))
			try:
				local = await asyncio.shield(handler)
			except Exception as exc:
				LOGGER.exception("Vertical '%s' failed on %s (id: %s)", self.vertical.id, call.name, call.id)
				return ToolResult.failure(f"{call.name} failed: {exc}")
			if local is not None:
				LOGGER.info("Handled locally by vertical '%s': %s (id: %s)", self.vertical.id, call.name, call.id)
				return local

		try:
			return await self.bridge.delegate_task(task_description(call), tool_name=call.name)
		except Exception as exc:
			LOGGER.exception("Remote agent delegation failed for %s (id: %s)", call.name, call.id)
			return ToolResult.failure(f"Remote agent error: {exc}")
