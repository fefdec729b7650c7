"""
Socket.IO server for chat.

Events (client -> server):
- joinRoom(roomId) - start receiving broadcasts for a chat room
- leaveRoom(roomId) - stop receiving them
- sendMessage({chatId, message, sender}) - persist, then broadcast

Events (server -> client):
- connected - handshake accepted
- receiveMessage - new message, to every room member but the sender
- updateMessage - new message, to every room member (chat list refresh)
- error - rejected frame or failed send
"""
import logging

import socketio
from fastapi import HTTPException

from roomshare.chat.delivery import deliver_message
from roomshare.chat.envelope import (
    CONNECTED,
    ERROR,
    JOIN_ROOM,
    LEAVE_ROOM,
    SEND_MESSAGE,
    parse_frame,
)
from roomshare.core.exceptions import parse_id
from roomshare.db.database import async_session
from roomshare.realtime.auth import authenticate_socket
from roomshare.realtime.hub import ChatHub

logger = logging.getLogger(__name__)


class ChatNamespace(socketio.AsyncNamespace):
    """Wire protocol adapter: validates frames and forwards them to the hub."""

    def __init__(self, hub: ChatHub, session_factory=None, namespace: str = "/"):
        super().__init__(namespace)
        self.hub = hub
        self.session_factory = session_factory or async_session

    async def _error(self, sid: str, event: str, message: str):
        await self.hub.emit_to(sid, ERROR, {"event": event, "message": message})

    async def on_connect(self, sid: str, environ: dict, auth: dict = None):
        """Authenticate and register the connection. Returning False rejects it."""
        logger.info(f"Socket connect attempt: {sid}")
        is_authenticated, user_data = await authenticate_socket(auth, environ, self.session_factory)
        if not is_authenticated:
            logger.warning(f"Socket connection rejected: {sid}")
            return False

        self.hub.connect(sid, user_data["user_id"], user_data["name"])
        await self.hub.emit_to(sid, CONNECTED, {
            "userId": user_data["user_id"],
            "name": user_data["name"],
        })
        return True

    async def on_disconnect(self, sid: str, reason=None):
        # Membership is connection-scoped; dropping the connection drops every room
        self.hub.disconnect(sid)

    async def on_joinRoom(self, sid: str, data):
        try:
            frame = parse_frame(JOIN_ROOM, data)
        except HTTPException as e:
            await self._error(sid, JOIN_ROOM, e.detail)
            return
        if not self.hub.join(sid, frame.room_id):
            await self._error(sid, JOIN_ROOM, "Not authenticated")

    async def on_leaveRoom(self, sid: str, data):
        try:
            frame = parse_frame(LEAVE_ROOM, data)
        except HTTPException as e:
            await self._error(sid, LEAVE_ROOM, e.detail)
            return
        self.hub.leave(sid, frame.room_id)

    async def on_sendMessage(self, sid: str, data):
        """
        Persist the message, then broadcast it. The sender's own socket is
        skipped for receiveMessage. Returns an ack payload for clients that
        asked for one.
        """
        conn = self.hub.connection(sid)
        if conn is None:
            await self._error(sid, SEND_MESSAGE, "Not authenticated")
            return {"success": False}

        try:
            frame = parse_frame(SEND_MESSAGE, data)
            if parse_id(frame.sender, "sender") != conn.user_id:
                await self._error(sid, SEND_MESSAGE, "Sender does not match the authenticated user")
                return {"success": False}

            async with self.session_factory() as db:
                stored, _, _ = await deliver_message(
                    db, self.hub, frame.chat_id, conn.user_id, frame.message, skip_sids=[sid]
                )
        except HTTPException as e:
            await self._error(sid, SEND_MESSAGE, e.detail)
            return {"success": False}
        except Exception:
            logger.exception(f"sendMessage from {sid} failed")
            await self._error(sid, SEND_MESSAGE, "Something went wrong")
            return {"success": False}

        return {"success": True, "message": stored}


def create_socket_server(hub: ChatHub, session_factory=None) -> socketio.AsyncServer:
    """Build the Socket.IO server around an existing hub."""
    # cors_allowed_origins=[] - FastAPI's CORS middleware handles CORS
    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=[],
        logger=False,
        engineio_logger=False,
    )
    namespace = ChatNamespace(hub, session_factory)
    sio.register_namespace(namespace)
    hub.attach(namespace)
    return sio
