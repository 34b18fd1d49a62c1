"""Walkthrough session lifecycle: start, flag issues, end, persist history."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from dal.session_history_dal import SessionHistoryDAL
from models.session_models import FlaggedIssue, ReportOutput, TranscriptSegment, WalkthroughSession
from services.verticals.base import VerticalConfiguration

LOGGER = logging.getLogger(__name__)

HISTORY_LIMIT = 50


class SessionManager:
	"""Own the current walkthrough and the persisted walkthrough history.

	A walkthrough moves from absent to active on `start_walkthrough()` and from
	active to ended on `end_walkthrough()`. Mutations arriving while no
	walkthrough is active are ignored, since they come from asynchronous event
	handlers that can race with teardown.
	"""

	def __init__(
		self,
		vertical: VerticalConfiguration,
		history_store: SessionHistoryDAL,
		history_limit: int = HISTORY_LIMIT,
	) -> None:
		self.vertical = vertical
		self.history_store = history_store
		self.history_limit = history_limit
		self.current_session: Optional[WalkthroughSession] = None
		self.is_walkthrough_active = False
		self.last_report: Optional[ReportOutput] = None
		# Most recent JPEG frame, kept current by the video pipeline.
		self.latest_frame: Optional[bytes] = None

	@property
	def flag_count(self) -> int:
		return len(self.current_session.flags) if self.current_session else 0

	def start_walkthrough(self) -> WalkthroughSession:
		"""Begin a fresh walkthrough for the configured vertical."""
		session = WalkthroughSession(vertical_id=self.vertical.id)
		self.current_session = session
		self.is_walkthrough_active = True
		self.last_report = None
		LOGGER.info("Started walkthrough %s (%s)", session.id, self.vertical.id)
		return session

	def abandon_walkthrough(self) -> None:
		"""Deactivate the current walkthrough without persisting or reporting it."""
		if not self.is_walkthrough_active:
			return
		self.is_walkthrough_active = False
		LOGGER.info("Abandoned walkthrough %s", self.current_session.id if self.current_session else "-")

	def flag_issue(self, description: str, user_transcript: str = "") -> Optional[FlaggedIssue]:
		"""Append a flag with the latest camera frame; returns None when inactive."""
		if not self.is_walkthrough_active or self.current_session is None:
			return None
		flag = FlaggedIssue(
			description=description,
			frame_jpeg=self.latest_frame,
			user_transcript=user_transcript,
		)
		self.current_session.flags.append(flag)
		LOGGER.info("Flagged issue #%d: %s", len(self.current_session.flags), description[:100])
		return flag

	def update_latest_flag(self, location: Optional[str] = None, priority: Optional[str] = None) -> None:
		"""Fill location/priority on the most recently flagged issue."""
		if self.current_session is None or not self.current_session.flags:
			return
		flag = self.current_session.flags[-1]
		flag.location = location
		flag.priority = priority

	def add_transcript(self, speaker: str, text: str) -> None:
		if not self.is_walkthrough_active or self.current_session is None:
			return
		self.current_session.transcript_segments.append(TranscriptSegment(speaker=speaker, text=text))

	def latest_user_utterance(self) -> str:
		"""Return the user's words since the AI last spoke."""
		if self.current_session is None:
			return ""
		parts: List[str] = []
		for segment in reversed(self.current_session.transcript_segments):
			if segment.speaker != "user":
				break
			parts.append(segment.text)
		return "".join(reversed(parts)).strip()

	async def end_walkthrough(self) -> Optional[ReportOutput]:
		"""Freeze the current walkthrough, persist it, and generate its report."""
		if not self.is_walkthrough_active or self.current_session is None:
			return None
		session = self.current_session
		session.end_time = datetime.now()
		self.is_walkthrough_active = False

		LOGGER.info("Ended walkthrough %s (%d flags)", session.id, len(session.flags))

		try:
			await self._save_session(session)
		except Exception:
			LOGGER.exception("Failed to persist walkthrough %s", session.id)

		report = await self.vertical.generate_report(session)
		self.last_report = report
		return report

	async def get_session_history(self) -> List[WalkthroughSession]:
		return await self.history_store.load()

	async def get_past_session_summaries(self, limit: int = 5) -> str:
		"""Return a plain-text digest of recent walkthroughs for prompt context."""
		history = sorted(await self.get_session_history(), key=lambda s: s.start_time, reverse=True)[:limit]
		if not history:
			return ""

		lines = ["PREVIOUS WALKTHROUGHS:"]
		for session in history:
			line = f"- {session.start_time.strftime('%b %d, %Y %I:%M %p')}: {len(session.flags)} issues flagged"
			if session.flags:
				line += " (" + "; ".join(flag.description for flag in session.flags[:3]) + ")"
			lines.append(line)
		return "\n".join(lines) + "\n"

	async def _save_session(self, session: WalkthroughSession) -> None:
		history = await self.history_store.load()
		history.append(session)
		if len(history) > self.history_limit:
			history = history[-self.history_limit:]
		await self.history_store.save(history)
