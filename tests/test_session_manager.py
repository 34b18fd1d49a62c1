from datetime import datetime, timedelta

import pytest

from models.session_models import FlaggedIssue, WalkthroughSession
from services.realtime.session_manager import HISTORY_LIMIT, SessionManager
from services.verticals.construction import ConstructionVertical
from services.verticals.general import GeneralVertical


class FailingSaveStore:
    async def load(self):
        return []

    async def save(self, sessions):
        raise OSError("disk full")


def _stored_session(index, flags=0):
    session = WalkthroughSession(
        vertical_id="construction",
        id=f"s{index}",
        start_time=datetime(2026, 1, 1, 8, 0) + timedelta(days=index),
    )
    session.flags = [FlaggedIssue(description=f"issue {index}.{n}") for n in range(flags)]
    return session


def test_flag_issue_while_inactive_is_noop(history_store):
    manager = SessionManager(ConstructionVertical(), history_store)

    assert manager.flag_issue("cracked slab") is None
    manager.add_transcript("user", "hello")
    manager.update_latest_flag(location="Lobby")

    assert manager.current_session is None
    assert manager.flag_count == 0
    assert history_store.sessions == []


def test_flag_issue_captures_latest_frame(history_store):
    manager = SessionManager(ConstructionVertical(), history_store)
    session = manager.start_walkthrough()
    manager.latest_frame = b"\xff\xd8frame"

    flag = manager.flag_issue("exposed wiring", user_transcript="flag this")
    manager.update_latest_flag(location="Building C", priority="Critical")

    assert session.vertical_id == "construction"
    assert session.flags == [flag]
    assert flag.frame_jpeg == b"\xff\xd8frame"
    assert flag.user_transcript == "flag this"
    assert (flag.location, flag.priority) == ("Building C", "Critical")


def test_flags_keep_discovery_order(history_store):
    manager = SessionManager(ConstructionVertical(), history_store)
    manager.start_walkthrough()
    for description in ("first", "second", "third"):
        manager.flag_issue(description)

    assert [flag.description for flag in manager.current_session.flags] == ["first", "second", "third"]


def test_transcript_and_latest_user_utterance(history_store):
    manager = SessionManager(GeneralVertical(), history_store)
    manager.start_walkthrough()
    manager.add_transcript("user", "hi ")
    manager.add_transcript("ai", "Hello!")
    manager.add_transcript("user", "flag ")
    manager.add_transcript("user", "this wall")

    speakers = [segment.speaker for segment in manager.current_session.transcript_segments]
    assert speakers == ["user", "ai", "user", "user"]
    assert manager.latest_user_utterance() == "flag this wall"


@pytest.mark.asyncio
async def test_end_without_flags_persists_and_yields_no_report(history_store):
    manager = SessionManager(ConstructionVertical(), history_store)
    session = manager.start_walkthrough()

    report = await manager.end_walkthrough()

    assert report is None
    assert manager.is_walkthrough_active is False
    assert session.end_time is not None
    assert [stored.id for stored in history_store.sessions] == [session.id]


@pytest.mark.asyncio
async def test_end_with_flags_yields_one_row_per_flag(history_store):
    manager = SessionManager(ConstructionVertical(), history_store)
    manager.start_walkthrough()
    manager.flag_issue("one")
    manager.flag_issue("two")
    manager.flag_issue("three")

    report = await manager.end_walkthrough()

    rows = report.data.decode("utf-8").strip().split("\n")
    assert report.kind == "csv"
    assert len(rows) - 1 == 3
    assert manager.last_report is report


@pytest.mark.asyncio
async def test_end_when_not_active_returns_none(history_store):
    manager = SessionManager(ConstructionVertical(), history_store)

    assert await manager.end_walkthrough() is None
    assert history_store.save_calls == 0


@pytest.mark.asyncio
async def test_mutations_after_end_are_ignored(history_store):
    manager = SessionManager(ConstructionVertical(), history_store)
    manager.start_walkthrough()
    manager.flag_issue("before end")
    await manager.end_walkthrough()

    manager.flag_issue("after end")
    manager.add_transcript("ai", "late")

    assert manager.flag_count == 1
    assert manager.current_session.transcript_segments == []
    assert await manager.end_walkthrough() is None


@pytest.mark.asyncio
async def test_history_is_capped_with_oldest_evicted(history_store):
    history_store.sessions = [_stored_session(i) for i in range(HISTORY_LIMIT)]
    manager = SessionManager(ConstructionVertical(), history_store)
    newest = manager.start_walkthrough()

    await manager.end_walkthrough()

    ids = [session.id for session in history_store.sessions]
    assert len(ids) == HISTORY_LIMIT
    assert "s0" not in ids
    assert ids[0] == "s1"
    assert ids[-1] == newest.id


@pytest.mark.asyncio
async def test_eviction_follows_insertion_order_not_start_time(history_store):
    # The oldest insertion has the latest start time; it is still the one evicted.
    history_store.sessions = [_stored_session(100)] + [_stored_session(i) for i in range(1, HISTORY_LIMIT)]
    manager = SessionManager(ConstructionVertical(), history_store)
    manager.start_walkthrough()

    await manager.end_walkthrough()

    assert "s100" not in [session.id for session in history_store.sessions]


@pytest.mark.asyncio
async def test_past_session_summaries(history_store):
    history_store.sessions = [_stored_session(1, flags=0), _stored_session(3, flags=5), _stored_session(2, flags=1)]
    manager = SessionManager(ConstructionVertical(), history_store)

    summary = await manager.get_past_session_summaries(limit=2)

    lines = summary.strip().split("\n")
    assert lines[0] == "PREVIOUS WALKTHROUGHS:"
    assert len(lines) == 3
    assert lines[1].startswith("- Jan 04, 2026")
    assert lines[1].endswith("5 issues flagged (issue 3.0; issue 3.1; issue 3.2)")
    assert lines[2].endswith("1 issues flagged (issue 2.0)")
    assert history_store.save_calls == 0


@pytest.mark.asyncio
async def test_past_session_summaries_empty_history(history_store):
    manager = SessionManager(ConstructionVertical(), history_store)

    assert await manager.get_past_session_summaries() == ""


@pytest.mark.asyncio
async def test_persist_failure_still_generates_report():
    manager = SessionManager(ConstructionVertical(), FailingSaveStore())
    manager.start_walkthrough()
    manager.flag_issue("water leak")

    report = await manager.end_walkthrough()

    assert report is not None
    assert manager.is_walkthrough_active is False


@pytest.mark.asyncio
async def test_abandoned_walkthrough_is_not_persisted(history_store):
    manager = SessionManager(ConstructionVertical(), history_store)
    manager.start_walkthrough()

    manager.abandon_walkthrough()

    assert manager.is_walkthrough_active is False
    assert manager.flag_issue("too late") is None
    assert await manager.end_walkthrough() is None
    assert history_store.save_calls == 0
