"""
Message delivery: persist first, broadcast only once the row is stored.
"""
from typing import Iterable, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from roomshare.chat.envelope import MessageEnvelope
from roomshare.chat.messages import append_message, serialize_message
from roomshare.chat.rooms import record_latest_message
from roomshare.core.logging import chat_logger
from roomshare.realtime.hub import ChatHub, Delivery


async def deliver_message(
    db: AsyncSession,
    hub: ChatHub,
    room_id,
    sender_id,
    content: str,
    skip_sids: Optional[Iterable[str]] = None,
) -> Tuple[dict, MessageEnvelope, Delivery]:
    """
    Store a message, move the room's latest-message pointer, then fan out.

    Returns the stored message in its REST shape, the broadcast envelope and
    the sids reached. NotFoundError / ValidationError from the store
    propagate before anything is broadcast.
    """
    message = await append_message(db, room_id, sender_id, content)
    # Snapshot before the pointer commit; a rollback there expires the instance
    stored = serialize_message(message)
    envelope = MessageEnvelope.from_message(message)

    try:
        await record_latest_message(db, stored["chatRoom"], stored["id"])
    except Exception as e:
        # The pointer only feeds list previews; the message itself is stored
        await db.rollback()
        chat_logger.error("Latest message pointer update failed", error=e, room_id=stored["chatRoom"])

    delivery = await hub.send(envelope, skip_sids=skip_sids or ())
    return stored, envelope, delivery
