from contextlib import asynccontextmanager, suppress
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from typing import Optional
import os

from backend import RedisRoomStore, RoomStore
from connections import ConnectionHub, WebSocketConnection
from constants import CORS_ORIGINS, SYNC_INTERVAL_SECONDS
from dispatcher import EventDispatcher
from logging_config import get_logger, setup_logging
from registry import RoomRegistry
from routers.health import health_router
from schemas.events import EventEnvelope
from sync import StateSyncLoop

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)
logger = get_logger(__name__)


def create_app(store: Optional[RoomStore] = None, sync_interval: float = SYNC_INTERVAL_SECONDS) -> FastAPI:
    """
    Build the application.

    Without an explicit store a Redis store is opened at startup; if Redis
    cannot be reached startup fails and the server does not come up.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_store = store is None
        room_store = RedisRoomStore.from_url() if owns_store else store
        if owns_store:
            await room_store.connect()

        registry = RoomRegistry(room_store)
        hub = ConnectionHub()
        app.state.registry = registry
        app.state.hub = hub
        app.state.dispatcher = EventDispatcher(registry, hub)
        app.state.sync_loop = StateSyncLoop(registry, hub, interval=sync_interval)
        app.state.sync_loop.start()
        logger.info("Room sync server ready")
        try:
            yield
        finally:
            await app.state.sync_loop.stop()
            if owns_store:
                await room_store.close()

    app = FastAPI(lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.add_api_websocket_route("/ws", websocket_endpoint)
    return app


async def websocket_endpoint(websocket: WebSocket):
    """Socket carrying `{"event": ..., "data": ...}` JSON frames both ways."""
    dispatcher: EventDispatcher = websocket.app.state.dispatcher
    await websocket.accept()

    connection = WebSocketConnection(websocket)
    await dispatcher.handle_connect(connection)

    try:
        while True:
            raw = await connection.receive_text()
            try:
                if raw is None:
                    raise ValueError("binary frame")
                envelope = EventEnvelope.model_validate_json(raw)
            except (ValidationError, ValueError):
                logger.debug(f"Malformed frame from {connection.connection_id}")
                await dispatcher.send_error(connection, "Malformed message")
                continue
            await dispatcher.handle_event(connection, envelope.event, envelope.data)
    except WebSocketDisconnect:
        logger.debug(f"WebSocket closed by {connection.connection_id}")
    except Exception as e:
        logger.error(f"Error receiving from connection {connection.connection_id}: {e}", exc_info=True)
        with suppress(ConnectionError):
            await connection.close(code=1011)
    finally:
        await dispatcher.handle_disconnect(connection)


app = create_app()
