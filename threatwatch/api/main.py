import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from ..config import Settings, get_settings
from ..detection import ThreatDetectionEngine
from .websocket import ConnectionManager, websocket_endpoint

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting ThreatWatch...")

        engine = ThreatDetectionEngine(settings)
        ws_manager = ConnectionManager()
        ws_manager.attach(engine.hub)

        app.state.engine = engine
        app.state.ws_manager = ws_manager
        await engine.initialize()

        logger.info("ThreatWatch started successfully")

        yield

        logger.info("Shutting down ThreatWatch...")
        await engine.shutdown()
        ws_manager.detach()

    app = FastAPI(
        title="ThreatWatch",
        description="Event-driven threat detection and risk scoring",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict this
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from .routes import detections, events, system

    app.include_router(events.router, prefix="/api/events", tags=["Events"])
    app.include_router(detections.router, prefix="/api/detections", tags=["Detections"])
    app.include_router(system.router, prefix="/api/system", tags=["System"])

    @app.websocket("/ws/{channel}")
    async def ws_endpoint(websocket: WebSocket, channel: str = "all"):
        await websocket_endpoint(websocket, websocket.app.state.ws_manager, channel)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": "threatwatch"}

    return app
