import inspect
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from openai import AsyncOpenAI

from dal.session_history_dal import SessionHistoryDAL
from routes.realtime_ws import router as realtime_router
from routes.session_route import router as session_router
from services.agent.remote_agent_bridge import RemoteAgentBridge
from utils.config import RealtimeSettings
from utils.database_init import AsyncDatabaseInitializer

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite database holding walkthrough history (DATABASE_DIR/app.db)
      - the OpenAI async client used by the realtime transport
      - the remote agent bridge shared by walkthrough sessions
    and attach them to `app.state`.
    """
    settings = RealtimeSettings.from_env()
    app.state.settings = settings

    db_initializer = AsyncDatabaseInitializer()
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer
    app.state.history_store = SessionHistoryDAL(db_initializer)

    # A missing key is reported when a walkthrough starts, not at boot.
    openai_client = None
    if settings.is_configured:
        try:
            openai_client = AsyncOpenAI(api_key=settings.openai_api_key)
        except Exception as exc:
            raise RuntimeError("Failed to initialize OpenAI Async client") from exc
    else:
        LOGGER.warning("OPENAI_API_KEY is not set; walkthroughs cannot start")
    app.state.openai_client = openai_client

    app.state.agent_bridge = RemoteAgentBridge(
        settings.agent_base_url,
        settings.agent_token,
        model=settings.agent_model,
    )
    app.state.active_orchestrator = None

    try:
        yield
    finally:
        orchestrator = getattr(app.state, "active_orchestrator", None)
        if orchestrator is not None:
            await orchestrator.stop_session()

        # Gracefully close the OpenAI clients if they expose a close/aclose method.
        clients = [getattr(app.state, "openai_client", None), getattr(app.state.agent_bridge, "client", None)]
        for client in clients:
            if client is None:
                continue
            aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
            if aclose is None:
                continue
            try:
                if inspect.iscoroutinefunction(aclose):
                    await aclose()
                else:
                    result = aclose()
                    if inspect.isawaitable(result):
                        await result
            except Exception as exc:
                # Shutdown errors must not mask more important issues.
                LOGGER.debug("Ignoring client shutdown error: %s", exc)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = FastAPI(lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        """
        Report database, OpenAI and remote agent availability.
        """
        state = request.app.state
        has_db = hasattr(state, "db_initializer")
        has_openai = getattr(state, "openai_client", None) is not None
        bridge = getattr(state, "agent_bridge", None)
        orchestrator = getattr(state, "active_orchestrator", None)
        return {
            "ok": True,
            "db_initialized": has_db,
            "openai_available": has_openai,
            "agent_configured": bool(bridge and bridge.is_configured),
            "walkthrough_active": bool(orchestrator and orchestrator.is_active),
        }

    # Register application routers
    app.include_router(session_router)
    app.include_router(realtime_router)

    return app


app = create_app()
