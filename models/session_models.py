"""Walkthrough session domain models."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4


def _parse_time(value: Optional[str]) -> Optional[datetime]:
	return datetime.fromisoformat(value) if value else None


@dataclass
class FlaggedIssue:
	"""A single issue flagged during a walkthrough.

	Only `location` and `priority` change after creation; the vertical that
	created the flag fills them in a second step.
	"""

	description: str
	frame_jpeg: Optional[bytes] = None
	user_transcript: str = ""
	location: Optional[str] = None
	priority: Optional[str] = None
	id: str = field(default_factory=lambda: uuid4().hex)
	timestamp: datetime = field(default_factory=datetime.now)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"timestamp": self.timestamp.isoformat(),
			"description": self.description,
			"frame_jpeg": base64.b64encode(self.frame_jpeg).decode("ascii") if self.frame_jpeg else None,
			"user_transcript": self.user_transcript,
			"location": self.location,
			"priority": self.priority,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "FlaggedIssue":
		frame = data.get("frame_jpeg")
		return cls(
			id=data["id"],
			timestamp=datetime.fromisoformat(data["timestamp"]),
			description=data["description"],
			frame_jpeg=base64.b64decode(frame) if frame else None,
			user_transcript=data.get("user_transcript") or "",
			location=data.get("location"),
			priority=data.get("priority"),
		)


@dataclass
class TranscriptSegment:
	"""One transcript fragment; speaker is "user" or "ai"."""

	speaker: str
	text: str
	timestamp: datetime = field(default_factory=datetime.now)

	def to_dict(self) -> Dict[str, Any]:
		return {"timestamp": self.timestamp.isoformat(), "speaker": self.speaker, "text": self.text}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "TranscriptSegment":
		return cls(
			speaker=data["speaker"],
			text=data["text"],
			timestamp=datetime.fromisoformat(data["timestamp"]),
		)


@dataclass
class WalkthroughSession:
	"""A complete walkthrough with all captured data."""

	vertical_id: str
	id: str = field(default_factory=lambda: uuid4().hex)
	start_time: datetime = field(default_factory=datetime.now)
	end_time: Optional[datetime] = None
	flags: List[FlaggedIssue] = field(default_factory=list)
	transcript_segments: List[TranscriptSegment] = field(default_factory=list)
	metadata: Dict[str, str] = field(default_factory=dict)

	def to_dict(self, include_frames: bool = True) -> Dict[str, Any]:
		flags = [flag.to_dict() for flag in self.flags]
		if not include_frames:
			for flag in flags:
				flag["has_frame"] = flag.pop("frame_jpeg") is not None
		return {
			"id": self.id,
			"start_time": self.start_time.isoformat(),
			"end_time": self.end_time.isoformat() if self.end_time else None,
			"vertical_id": self.vertical_id,
			"flags": flags,
			"transcript_segments": [segment.to_dict() for segment in self.transcript_segments],
			"metadata": dict(self.metadata),
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "WalkthroughSession":
		return cls(
			id=data["id"],
			vertical_id=data["vertical_id"],
			start_time=datetime.fromisoformat(data["start_time"]),
			end_time=_parse_time(data.get("end_time")),
			flags=[FlaggedIssue.from_dict(item) for item in data.get("flags", [])],
			transcript_segments=[TranscriptSegment.from_dict(item) for item in data.get("transcript_segments", [])],
			metadata=dict(data.get("metadata") or {}),
		)


@dataclass(frozen=True)
class ReportOutput:
	"""A generated report file. `kind` is "csv" or "json"."""

	kind: str
	data: bytes
	filename: str

	@classmethod
	def csv(cls, data: bytes, filename: str) -> "ReportOutput":
		return cls(kind="csv", data=data, filename=filename)

	@classmethod
	def json(cls, data: bytes, filename: str) -> "ReportOutput":
		return cls(kind="json", data=data, filename=filename)

	@property
	def media_type(self) -> str:
		return "text/csv" if self.kind == "csv" else "application/json"
