from typing import Union

from fastapi import APIRouter, Depends, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from roomshare.api.deps import get_hub
from roomshare.chat.delivery import deliver_message
from roomshare.chat.messages import list_messages, serialize_message
from roomshare.core.exceptions import parse_id
from roomshare.core.schemas import CamelModel
from roomshare.db.database import get_db
from roomshare.realtime.hub import ChatHub

router = APIRouter()


class SendMessageRequest(CamelModel):
    chat_room_id: Union[int, str]
    sender_id: Union[int, str]
    content: str = Field(max_length=5000)


@router.post("/send", status_code=status.HTTP_201_CREATED)
async def send_message(
    request: SendMessageRequest,
    db: AsyncSession = Depends(get_db),
    hub: ChatHub = Depends(get_hub),
):
    """
    Persist a message and push it to the room's live members.

    The sender's own sockets are left out of receiveMessage; they still get
    updateMessage so their chat list moves.
    """
    sender = parse_id(request.sender_id, "senderId")
    stored, _, _ = await deliver_message(
        db,
        hub,
        request.chat_room_id,
        sender,
        request.content,
        skip_sids=hub.sids_for_user(sender),
    )
    return {"success": True, "message": stored}


@router.get("/{chat_room_id}")
async def get_messages(chat_room_id: str, db: AsyncSession = Depends(get_db)):
    messages = await list_messages(db, chat_room_id)
    return {"success": True, "messages": [serialize_message(m) for m in messages]}
