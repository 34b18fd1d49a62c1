import csv
import io
from datetime import datetime

import pytest

from models.session_models import FlaggedIssue, WalkthroughSession
from models.tool_models import ToolCall
from services.realtime.session_manager import SessionManager
from services.verticals.construction import REPORT_HEADER, ConstructionVertical
from services.verticals.general import GeneralVertical
from services.verticals.registry import DEFAULT_VERTICAL_ID, get_vertical, list_verticals


def _rows(report):
    return list(csv.reader(io.StringIO(report.data.decode("utf-8"))))


@pytest.fixture
def vertical():
    return ConstructionVertical()


@pytest.fixture
def manager(vertical, history_store):
    manager = SessionManager(vertical, history_store)
    manager.start_walkthrough()
    return manager


@pytest.mark.asyncio
async def test_walkthrough_with_two_flags_produces_punch_list(vertical, manager, history_store):
    first = await vertical.handle_tool_call(
        ToolCall(
            "f1",
            "flag_issue",
            {"description": "exposed wiring on east wall", "location": "Building C", "priority": "Critical"},
        ),
        manager,
    )
    second = await vertical.handle_tool_call(ToolCall("f2", "flag_issue", {"description": "missing guardrail"}), manager)
    ended = await vertical.handle_tool_call(ToolCall("e1", "end_walkthrough", {}), manager)

    assert first.ok and first.message == "Issue #1 flagged at Building C: exposed wiring on east wall"
    assert second.ok and second.message == "Issue #2 flagged: missing guardrail"

    report = manager.last_report
    assert ended.ok
    assert ended.message == f"Walkthrough ended. Report generated with 2 flagged issues. File: {report.filename}"

    rows = _rows(report)
    assert rows[0] == REPORT_HEADER
    assert len(rows) == 3
    assert rows[1][0] == "1"
    assert rows[1][2:] == ["Building C", "exposed wiring on east wall", "Critical"]
    assert rows[2][0] == "2"
    assert rows[2][2:] == ["", "missing guardrail", "Medium"]

    stored = history_store.sessions
    assert len(stored) == 1
    assert len(stored[0].flags) == 2


@pytest.mark.asyncio
async def test_end_without_flags_reports_count(vertical, manager):
    result = await vertical.handle_tool_call(ToolCall("e1", "end_walkthrough", {}), manager)

    assert result.ok
    assert result.message == "Walkthrough ended. 0 issues were flagged."
    assert manager.last_report is None


@pytest.mark.asyncio
async def test_end_when_no_walkthrough_is_active(vertical, history_store):
    manager = SessionManager(vertical, history_store)

    result = await vertical.handle_tool_call(ToolCall("e1", "end_walkthrough", {}), manager)

    assert not result.ok
    assert history_store.save_calls == 0


@pytest.mark.asyncio
async def test_flag_without_active_walkthrough_fails(vertical, history_store):
    manager = SessionManager(vertical, history_store)

    result = await vertical.handle_tool_call(ToolCall("f1", "flag_issue", {"description": "loose scaffold"}), manager)

    assert not result.ok
    assert manager.flag_count == 0


@pytest.mark.asyncio
async def test_flag_defaults_and_user_transcript(vertical, manager):
    manager.add_transcript("user", "there is something wrong here")

    result = await vertical.handle_tool_call(ToolCall("f1", "flag_issue", {"location": "  "}), manager)

    flag = manager.current_session.flags[0]
    assert result.message == "Issue #1 flagged: Issue flagged"
    assert flag.description == "Issue flagged"
    assert flag.location is None
    assert flag.user_transcript == "there is something wrong here"


@pytest.mark.asyncio
async def test_unknown_tool_is_declined(vertical, manager):
    assert await vertical.handle_tool_call(ToolCall("x1", "execute", {"task": "call the GC"}), manager) is None


@pytest.mark.asyncio
async def test_report_quotes_fields_with_commas(vertical):
    session = WalkthroughSession(vertical_id="construction", start_time=datetime(2026, 3, 14, 9, 5))
    session.flags = [
        FlaggedIssue(
            description='crack, 2" wide',
            location="Level 2, grid B",
            timestamp=datetime(2026, 3, 14, 9, 7, 30),
        )
    ]

    report = await vertical.generate_report(session)

    assert report.filename == "walkthrough_2026-03-14_0905.csv"
    assert report.media_type == "text/csv"
    assert _rows(report)[1] == ["1", "2026-03-14 09:07:30", "Level 2, grid B", 'crack, 2" wide', "Medium"]


@pytest.mark.asyncio
async def test_report_is_none_without_flags(vertical):
    assert await vertical.generate_report(WalkthroughSession(vertical_id="construction")) is None


@pytest.mark.asyncio
async def test_context_block_uses_recent_history(vertical, history_store):
    manager = SessionManager(vertical, history_store)
    assert await vertical.context_block(manager) is None

    manager.start_walkthrough()
    manager.flag_issue("wet insulation")
    await manager.end_walkthrough()

    block = await vertical.context_block(manager)
    assert block.startswith("PREVIOUS WALKTHROUGHS:")
    assert "1 issues flagged (wet insulation)" in block


def test_tool_declarations_include_local_and_remote_tools(vertical):
    names = [tool["name"] for tool in vertical.tool_declarations]
    assert names == ["flag_issue", "end_walkthrough", "execute"]
    assert "flag_issue" in vertical.system_prompt


@pytest.mark.asyncio
async def test_general_vertical_declines_everything(history_store):
    vertical = GeneralVertical()
    manager = SessionManager(vertical, history_store)

    assert [tool["name"] for tool in vertical.tool_declarations] == ["execute"]
    assert await vertical.handle_tool_call(ToolCall("c1", "execute", {"task": "x"}), manager) is None
    assert await vertical.context_block(manager) is None
    assert await vertical.generate_report(WalkthroughSession(vertical_id="general")) is None


def test_registry_lookup():
    assert get_vertical().id == DEFAULT_VERTICAL_ID
    assert isinstance(get_vertical("construction"), ConstructionVertical)
    assert {item["id"] for item in list_verticals()} == {"general", "construction"}
    with pytest.raises(KeyError):
        get_vertical("plumbing")
