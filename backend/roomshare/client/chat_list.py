"""
Chat list client.

Keeps one user's conversation list current: a full HTTP refetch seeds it,
then every updateMessage from the socket is folded in through the reducer
in roomshare.chat.sync. Room membership is per connection, so every room is
joined again after each (re)connect.
"""
import logging
from typing import Callable, List, Optional

import httpx
import socketio
from pydantic import ValidationError as PydanticValidationError

from roomshare.chat import sync
from roomshare.chat.envelope import JOIN_ROOM, UPDATE_MESSAGE, MessageEnvelope

logger = logging.getLogger(__name__)

Listener = Callable[[sync.ChatListState], None]


class ChatListClient:
    def __init__(
        self,
        base_url: str,
        user_id,
        token: str,
        http: Optional[httpx.AsyncClient] = None,
        sio: Optional[socketio.AsyncClient] = None,
        socketio_path: str = "socket.io",
    ):
        self.base_url = base_url
        self.user_id = str(user_id)
        self.token = token
        self.socketio_path = socketio_path
        self.http = http or httpx.AsyncClient(base_url=base_url, timeout=10.0)
        self.sio = sio or socketio.AsyncClient(reconnection=True)
        self.state = sync.ChatListState()
        self.my_listing_ids: List[str] = []
        self._listeners: List[Listener] = []

        self.sio.on("connect", self._on_connect)
        self.sio.on(UPDATE_MESSAGE, self._on_update_message)

    @property
    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state listener. Returns a function that removes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _publish(self, state: sync.ChatListState) -> None:
        if state is self.state:
            return
        self.state = state
        for listener in list(self._listeners):
            listener(state)

    async def refresh(self) -> sync.ChatListState:
        """Refetch chats and the user's listings, then join every room."""
        chats_resp = await self.http.get(f"/api/chatroom/user/{self.user_id}", headers=self._headers)
        chats_resp.raise_for_status()
        posts_resp = await self.http.get(f"/api/posts/user/{self.user_id}", headers=self._headers)
        posts_resp.raise_for_status()

        self.my_listing_ids = [str(p["id"]) for p in posts_resp.json().get("rooms", [])]
        chats = [sync.ChatSummary.from_api(c) for c in chats_resp.json().get("chats", [])]
        self._publish(sync.replace_chats(self.state, chats))

        if self.sio.connected:
            await self._join_all()
        return self.state

    async def connect(self) -> None:
        await self.sio.connect(
            self.base_url,
            auth={"token": self.token},
            socketio_path=self.socketio_path,
        )

    async def _join_all(self) -> None:
        for chat in self.state.chats:
            await self.sio.emit(JOIN_ROOM, chat.id)

    async def _on_connect(self):
        logger.info(f"Chat list socket connected for user {self.user_id}")
        await self._join_all()

    async def _on_update_message(self, data):
        try:
            envelope = MessageEnvelope.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Ignoring malformed {UPDATE_MESSAGE} payload: {e}")
            return
        self._publish(sync.apply_message(self.state, envelope, self.my_listing_ids))

    def set_tab(self, tab: sync.Tab) -> None:
        self._publish(sync.ChatListState(chats=self.state.chats, active_tab=sync.Tab(tab)))

    def visible(self):
        return sync.visible_chats(self.state, self.my_listing_ids)

    async def close(self) -> None:
        if self.sio.connected:
            await self.sio.disconnect()
        await self.http.aclose()
