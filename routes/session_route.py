"""FastAPI routes for verticals and walkthrough history."""

from typing import List

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from controllers.session_controller import flag_frame, history_summary, list_history, session_report
from services.verticals.registry import list_verticals

router = APIRouter()


class VerticalSummary(BaseModel):
	id: str
	display_name: str
	description: str


class HistorySummary(BaseModel):
	summary: str


@router.get("/verticals", response_model=List[VerticalSummary])
async def list_verticals_route():
	return list_verticals()


@router.get("/sessions/history")
async def list_history_route(request: Request, limit: int = Query(20, ge=1, le=50)):
	try:
		return await list_history(request, limit)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/sessions/history/summary", response_model=HistorySummary)
async def history_summary_route(request: Request, limit: int = Query(5, ge=1, le=50)):
	try:
		return await history_summary(request, limit)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/sessions/{session_id}/report")
async def session_report_route(request: Request, session_id: str):
	"""Download the report for a stored walkthrough."""
	try:
		return await session_report(request, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/sessions/{session_id}/flags/{flag_id}/frame")
async def flag_frame_route(request: Request, session_id: str, flag_id: str):
	"""Return the JPEG captured with a flagged issue."""
	try:
		return await flag_frame(request, session_id, flag_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
