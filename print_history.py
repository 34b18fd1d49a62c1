"""Print the stored walkthrough history digest.

This script reads the session history kept in the project's SQLite
database and prints the same digest that is injected into the model's
system prompt, followed by a per-session flag listing. It reuses the
`DATABASE_DIR` behavior of the application via
`utils.database_init.AsyncDatabaseInitializer`.

Run: set the `DATABASE_DIR` environment variable and run
      `python print_history.py [limit]`.
"""
import asyncio
import sys

from dotenv import load_dotenv

from dal.session_history_dal import SessionHistoryDAL
from models.session_models import WalkthroughSession
from services.realtime.session_manager import SessionManager
from services.verticals.registry import get_vertical
from utils.database_init import AsyncDatabaseInitializer


def _print_session(session: WalkthroughSession) -> None:
    """Print one session's flags, one line each.

    Args:
        session: Stored walkthrough to print.
    """
    ended = session.end_time.strftime("%H:%M") if session.end_time else "open"
    print(f"Session {session.id} ({session.vertical_id}) {session.start_time:%Y-%m-%d %H:%M} - {ended}")
    for number, flag in enumerate(session.flags, start=1):
        details = "; ".join(part for part in (flag.location, flag.priority) if part)
        suffix = f" [{details}]" if details else ""
        print(f"  {number}. {flag.description}{suffix}")
    print(f"  transcript segments: {len(session.transcript_segments)}")
    print()


async def main(limit: int = 5) -> None:
    """Print the prompt digest and the most recent sessions."""
    store = SessionHistoryDAL(AsyncDatabaseInitializer())
    manager = SessionManager(get_vertical(), store)

    digest = await manager.get_past_session_summaries(limit=limit)
    print(digest or "No walkthroughs recorded.")

    history = sorted(await store.load(), key=lambda s: s.start_time, reverse=True)
    for session in history[:limit]:
        _print_session(session)


if __name__ == "__main__":
    load_dotenv()
    asyncio.run(main(int(sys.argv[1]) if len(sys.argv) > 1 else 5))
