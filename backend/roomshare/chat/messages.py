"""
Message store: append-only chat messages, read back per room in send order.
"""
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from roomshare.chat.envelope import isoformat_utc
from roomshare.chat.rooms import get_room
from roomshare.core.exceptions import ValidationError, parse_id
from roomshare.core.logging import chat_logger, log_operation
from roomshare.db.models import Message, User


@log_operation("append_message", chat_logger)
async def append_message(db: AsyncSession, room_id, sender_id, content: str) -> Message:
    """Persist a message with a server-assigned timestamp.

    Raises NotFoundError for an unknown room and ValidationError for an
    unknown sender or blank content. The returned message has its sender loaded.
    """
    room = await get_room(db, room_id)
    sid = parse_id(sender_id, "senderId")

    content = content or ""
    if not content.strip():
        raise ValidationError("Content cannot be empty")

    r = await db.execute(select(User.id).where(User.id == sid))
    if r.scalar_one_or_none() is None:
        raise ValidationError("Sender not found")

    msg = Message(chat_room_id=room.id, sender_id=sid, content=content)
    db.add(msg)
    await db.commit()

    # Re-fetch with the sender loaded to avoid async lazy loads
    r = await db.execute(
        select(Message)
        .options(selectinload(Message.sender))
        .where(Message.id == msg.id)
        .execution_options(populate_existing=True)
    )
    return r.scalar_one()


async def list_messages(db: AsyncSession, room_id) -> List[Message]:
    """All messages of a room, oldest first. Unknown rooms yield an empty list."""
    rid = parse_id(room_id, "chatRoomId")
    q = (
        select(Message)
        .options(selectinload(Message.sender))
        .where(Message.chat_room_id == rid)
        .order_by(Message.timestamp.asc(), Message.id.asc())
    )
    r = await db.execute(q)
    return list(r.scalars().all())


def serialize_message(message: Message) -> dict:
    """Wire shape of a stored message, sender resolved to id + email."""
    return {
        "id": message.id,
        "chatRoom": message.chat_room_id,
        "sender": {
            "id": message.sender_id,
            "email": message.sender.email if message.sender else None,
        },
        "content": message.content,
        "timestamp": isoformat_utc(message.timestamp),
    }
