from typing import Optional, Union

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from roomshare.chat import rooms
from roomshare.chat.envelope import isoformat_utc
from roomshare.chat.sync import Tab
from roomshare.core.exceptions import NotFoundError
from roomshare.core.logging import api_logger
from roomshare.core.schemas import CamelModel
from roomshare.db.database import get_db
from roomshare.db.models import ChatRoom, Message, User

router = APIRouter()

# Ids arrive as numbers or strings; the registry parses them
WireIdIn = Union[int, str]


class ChatRoomCreate(CamelModel):
    user1: WireIdIn
    user2: WireIdIn
    room_id: Optional[WireIdIn] = None


def _participant(user: Optional[User], user_id: int) -> dict:
    if user is None:
        return {"id": user_id}
    return {"id": user.id, "email": user.email, "name": user.name}


def _latest(message: Optional[Message]) -> Optional[dict]:
    if message is None:
        return None
    return {
        "content": message.content,
        "sender": message.sender_id,
        "timestamp": isoformat_utc(message.timestamp),
    }


def room_to_dict(room: ChatRoom) -> dict:
    return {
        "id": room.id,
        "participants": room.participant_ids,
        "roomId": room.post_id,
        "latestMessage": room.latest_message_id,
        "createdAt": isoformat_utc(room.created_at),
        "updatedAt": isoformat_utc(room.updated_at),
    }


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_chat_room(request: ChatRoomCreate, db: AsyncSession = Depends(get_db)):
    """Create the room for a pair, or return the one that already exists."""
    room = await rooms.create_or_get_room(db, request.user1, request.user2, request.room_id)
    return room_to_dict(room)


@router.get("/find")
async def find_chat_room(
    user1_id: str = Query(..., alias="user1Id"),
    user2_id: str = Query(..., alias="user2Id"),
    room_id: Optional[str] = Query(None, alias="roomId"),
    db: AsyncSession = Depends(get_db),
):
    room = await rooms.find_room(db, user1_id, user2_id, room_id)
    if room is None:
        raise NotFoundError("Chat room not found")
    return {"success": True, "chatRoom": room_to_dict(room)}


@router.get("/user/{user_id}")
async def list_user_chat_rooms(
    user_id: str,
    tab: Optional[Tab] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Chat list of a user with participants and latest message resolved."""
    user_rooms = await rooms.list_rooms_for_user(db, user_id, tab)
    latest = await rooms.load_latest_messages(db, user_rooms)

    chats = []
    for room in user_rooms:
        entry = room_to_dict(room)
        entry["participants"] = [
            _participant(room.user1, room.user1_id),
            _participant(room.user2, room.user2_id),
        ]
        entry["latestMessage"] = _latest(latest.get(room.id))
        chats.append(entry)

    api_logger.debug("Chat list served", user_id=user_id, count=len(chats), tab=tab.value if tab else None)
    return {"success": True, "chats": chats}


@router.get("/{chat_id}")
async def get_chat_room(chat_id: str, db: AsyncSession = Depends(get_db)):
    room = await rooms.get_room(db, chat_id)
    return {"success": True, "data": room_to_dict(room)}
