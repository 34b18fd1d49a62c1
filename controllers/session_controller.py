"""Walkthrough history helpers for the HTTP routes."""

from __future__ import annotations

import json
from typing import Any, Dict, List

from fastapi import HTTPException, Request
from fastapi.responses import Response

from dal.session_history_dal import SessionHistoryDAL
from models.session_models import ReportOutput, WalkthroughSession
from services.realtime.session_manager import SessionManager
from services.verticals.registry import VERTICALS, get_vertical


def _history_store(request: Request) -> SessionHistoryDAL:
	return request.app.state.history_store


async def _find_session(request: Request, session_id: str) -> WalkthroughSession:
	for session in await _history_store(request).load():
		if session.id == session_id:
			return session
	raise HTTPException(status_code=404, detail=f"Session {session_id} not found")


def _json_export(session: WalkthroughSession) -> ReportOutput:
	data = json.dumps(session.to_dict(include_frames=False), indent=2).encode("utf-8")
	return ReportOutput.json(data, f"walkthrough_{session.start_time.strftime('%Y-%m-%d_%H%M')}.json")


async def list_history(request: Request, limit: int = 20) -> List[Dict[str, Any]]:
	"""Return stored walkthroughs, newest first, without frame bytes."""
	sessions = sorted(await _history_store(request).load(), key=lambda s: s.start_time, reverse=True)
	return [session.to_dict(include_frames=False) for session in sessions[:limit]]


async def history_summary(request: Request, limit: int = 5) -> Dict[str, Any]:
	"""Return the digest injected into prompts as context."""
	manager = SessionManager(get_vertical(), _history_store(request))
	return {"summary": await manager.get_past_session_summaries(limit=limit)}


async def session_report(request: Request, session_id: str) -> Response:
	"""Regenerate the report of a stored walkthrough.

	Falls back to a JSON export when the session's vertical produces no report.
	"""
	session = await _find_session(request, session_id)
	vertical = VERTICALS.get(session.vertical_id) or get_vertical()
	report = await vertical.generate_report(session) or _json_export(session)
	return Response(
		content=report.data,
		media_type=report.media_type,
		headers={"Content-Disposition": f'attachment; filename="{report.filename}"'},
	)


async def flag_frame(request: Request, session_id: str, flag_id: str) -> Response:
	"""Return the camera frame captured with a flagged issue."""
	session = await _find_session(request, session_id)
	for flag in session.flags:
		if flag.id == flag_id:
			if not flag.frame_jpeg:
				raise HTTPException(status_code=404, detail="No frame was captured for this issue")
			return Response(content=flag.frame_jpeg, media_type="image/jpeg")
	raise HTTPException(status_code=404, detail=f"Flag {flag_id} not found")
