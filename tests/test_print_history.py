from datetime import datetime

import pytest

import print_history
from dal.session_history_dal import SessionHistoryDAL
from models.session_models import FlaggedIssue, WalkthroughSession
from utils.database_init import AsyncDatabaseInitializer


@pytest.mark.asyncio
async def test_prints_empty_history(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("DATABASE_DIR", str(tmp_path))

    await print_history.main()

    assert "No walkthroughs recorded." in capsys.readouterr().out


@pytest.mark.asyncio
async def test_prints_digest_and_flags(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("DATABASE_DIR", str(tmp_path))
    session = WalkthroughSession(vertical_id="construction", start_time=datetime(2026, 6, 1, 14, 15))
    session.flags = [FlaggedIssue(description="standing water", location="Basement", priority="High")]
    await SessionHistoryDAL(AsyncDatabaseInitializer(tmp_path)).save([session])

    await print_history.main(limit=3)

    out = capsys.readouterr().out
    assert out.startswith("PREVIOUS WALKTHROUGHS:")
    assert "Jun 01, 2026 02:15 PM: 1 issues flagged (standing water)" in out
    assert "1. standing water [Basement; High]" in out
