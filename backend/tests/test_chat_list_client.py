"""
Tests for ChatListClient with a mocked HTTP transport and a fake socket.
"""
import httpx
import pytest

from roomshare.chat.envelope import JOIN_ROOM, UPDATE_MESSAGE
from roomshare.chat.sync import Tab
from roomshare.client.chat_list import ChatListClient

CHATS = {
    "success": True,
    "chats": [
        {
            "id": 1,
            "participants": [{"id": 5, "email": "me@example.com", "name": "me"}, {"id": 6}],
            "roomId": 100,
            "latestMessage": {"content": "older", "sender": 6, "timestamp": "2026-10-16T08:00:00+00:00"},
        },
        {
            "id": 2,
            "participants": [{"id": 5}, {"id": 7}],
            "roomId": 300,
            "latestMessage": {"content": "newer", "sender": 7, "timestamp": "2026-10-16T09:00:00+00:00"},
        },
    ],
}
POSTS = {"success": True, "rooms": [{"id": 100}]}


class FakeSocket:
    def __init__(self):
        self.handlers = {}
        self.emitted = []
        self.connected = False

    def on(self, event, handler=None):
        self.handlers[event] = handler

    async def connect(self, url, auth=None, socketio_path=None):
        self.connected = True
        self.connect_args = (url, auth, socketio_path)
        await self.handlers["connect"]()

    async def emit(self, event, data=None):
        self.emitted.append((event, data))

    async def disconnect(self):
        self.connected = False

    async def deliver(self, event, data):
        await self.handlers[event](data)


def handler(request: httpx.Request) -> httpx.Response:
    assert request.headers["Authorization"] == "Bearer tok"
    if request.url.path == "/api/chatroom/user/5":
        return httpx.Response(200, json=CHATS)
    if request.url.path == "/api/posts/user/5":
        return httpx.Response(200, json=POSTS)
    return httpx.Response(404, json={"success": False})


@pytest.fixture
def sio():
    return FakeSocket()


@pytest.fixture
def chat_client(sio):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    return ChatListClient("http://test", 5, "tok", http=http, sio=sio)


def update(room, content, ts):
    return {"content": content, "sender": "6", "senderName": "six", "timestamp": ts, "chatRoom": room}


@pytest.mark.anyio
async def test_refresh_orders_and_learns_listings(chat_client):
    state = await chat_client.refresh()
    assert [c.id for c in state.chats] == ["2", "1"]
    assert chat_client.my_listing_ids == ["100"]


@pytest.mark.anyio
async def test_connect_joins_every_room(chat_client, sio):
    await chat_client.refresh()
    await chat_client.connect()

    assert sio.connect_args == ("http://test", {"token": "tok"}, "socket.io")
    assert sio.emitted == [(JOIN_ROOM, "2"), (JOIN_ROOM, "1")]


@pytest.mark.anyio
async def test_update_moves_chat_and_switches_tab(chat_client, sio):
    await chat_client.refresh()
    seen = []
    chat_client.subscribe(seen.append)

    await sio.deliver(UPDATE_MESSAGE, update("1", "fresh", "2026-10-16T10:00:00Z"))

    assert [c.id for c in chat_client.state.chats] == ["1", "2"]
    assert chat_client.state.chats[0].latest_message.content == "fresh"
    assert chat_client.state.active_tab == Tab.mine
    assert len(seen) == 1
    assert [c.id for c in chat_client.visible()] == ["1"]


@pytest.mark.anyio
async def test_stale_and_malformed_updates_ignored(chat_client, sio):
    await chat_client.refresh()
    before = chat_client.state
    seen = []
    chat_client.subscribe(seen.append)

    await sio.deliver(UPDATE_MESSAGE, update("2", "late", "2026-10-16T07:00:00Z"))
    await sio.deliver(UPDATE_MESSAGE, {"content": "missing fields"})

    assert chat_client.state is before
    assert seen == []


@pytest.mark.anyio
async def test_set_tab_and_unsubscribe(chat_client):
    await chat_client.refresh()
    seen = []
    unsubscribe = chat_client.subscribe(seen.append)

    chat_client.set_tab("mine")
    assert [c.id for c in chat_client.visible()] == ["1"]
    unsubscribe()
    chat_client.set_tab(Tab.others)

    assert len(seen) == 1
    assert [c.id for c in chat_client.visible()] == ["2"]


@pytest.mark.anyio
async def test_refresh_propagates_http_errors(sio):
    def failing(request):
        return httpx.Response(500)

    http = httpx.AsyncClient(transport=httpx.MockTransport(failing), base_url="http://test")
    client = ChatListClient("http://test", 5, "tok", http=http, sio=sio)
    with pytest.raises(httpx.HTTPStatusError):
        await client.refresh()


@pytest.mark.anyio
async def test_close(chat_client, sio):
    await chat_client.connect()
    await chat_client.close()
    assert sio.connected is False
