from __future__ import annotations

import logging

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flow.api.routers import events, ideas, rooms
from flow.core.config import settings
from flow.core.logging import configure_logging
from flow.db.session import init_db
from flow.services.bus import RoomEventBus
from flow.services.registry import RoomRegistry

logger = logging.getLogger(__name__)


def create_application() -> FastAPI:
    configure_logging(settings.log_level)

    application = FastAPI(title=settings.app_name)
    application.state.event_bus = RoomEventBus(RoomRegistry())

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.on_event("startup")
    def on_startup() -> None:
        init_db()
        logger.info("%s started", settings.app_name)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    api = APIRouter(prefix="/api")
    api.include_router(rooms.router)
    api.include_router(events.router)
    api.include_router(ideas.router)
    application.include_router(api)
    return application


app = create_application()
