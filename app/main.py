# app/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes import agenda, health, meetings, participants, votes
from app.api.websocket import meeting_ws
from app.core.config import get_settings
from app.core.errors import DomainError
from app.core.logging import configure_logging
from app.db.session import init_db_for_startup
from app.services.realtime import RoomHub

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """
    Application factory for the Meeting Session service.
    """
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Backend of a live meeting session: ordered agenda with sub-items and\n"
            "presenter navigation, attendance ledger with mandates and quorum,\n"
            "votes with recomputed tallies, and realtime fan-out per meeting room."
        ),
        version="0.1.0",
    )

    # One in-memory hub per process; rooms are not shared between instances.
    app.state.room_hub = RoomHub()

    # Routers
    app.include_router(health.router)
    app.include_router(meetings.router)
    app.include_router(agenda.router)
    app.include_router(participants.router)
    app.include_router(votes.router)
    app.include_router(meeting_ws.router)

    @app.exception_handler(DomainError)
    async def handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request_failed path=%s kind=%s", request.url.path, exc.kind)
        return JSONResponse(status_code=int(exc.status_code), content=exc.to_dict())

    @app.on_event("startup")
    async def on_startup() -> None:  # pragma: no cover
        await init_db_for_startup()
        logger.info("startup app_env=%s", settings.APP_ENV)

    return app


app = create_app()
