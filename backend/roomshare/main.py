from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from roomshare.api import chatrooms, health, messages, posts, users
from roomshare.core.config import settings
from roomshare.core.logging import realtime_logger, setup_logging
from roomshare.core.middleware import setup_middleware
from roomshare.db.database import create_tables
from roomshare.realtime.hub import ChatHub
from roomshare.realtime.socket import create_socket_server


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await create_tables()
    realtime_logger.info("Chat hub ready", socketio_path=settings.SOCKETIO_PATH)
    yield
    hub = app.state.hub
    realtime_logger.info("Shutting down", open_connections=len(hub.connections))


def create_app(hub: ChatHub = None, session_factory=None) -> FastAPI:
    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Chat backend for the roomshare room-rental marketplace",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_middleware(app)

    app.include_router(users.router, prefix="/api/users", tags=["Users"])
    app.include_router(posts.router, prefix="/api/posts", tags=["Posts"])
    app.include_router(chatrooms.router, prefix="/api/chatroom", tags=["Chat Rooms"])
    app.include_router(messages.router, prefix="/api/messages", tags=["Messages"])
    app.include_router(health.router, prefix="", tags=["Health"])

    # One hub per process, shared by the REST send path and the socket server
    app.state.hub = hub or ChatHub()
    app.state.sio = create_socket_server(app.state.hub, session_factory)
    return app


app = create_app()

# uvicorn roomshare.main:asgi_app
asgi_app = socketio.ASGIApp(app.state.sio, other_asgi_app=app, socketio_path=settings.SOCKETIO_PATH)
