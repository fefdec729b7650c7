"""
Chat room registry.

A room is keyed by the unordered participant pair, optionally scoped to the
listing it was opened from, so (A, B) and (B, A) resolve to the same row.
"""
from typing import Iterable, List, Optional

from sqlalchemy import select, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from roomshare.chat.sync import Tab
from roomshare.core.exceptions import NotFoundError, ValidationError, parse_id
from roomshare.core.logging import chat_logger, log_operation
from roomshare.db.models import ChatRoom, Message, Post, User, utcnow


def pair_key(user_a: int, user_b: int, listing_id: Optional[int] = None) -> str:
    key = f"{min(user_a, user_b)}:{max(user_a, user_b)}"
    if listing_id is not None:
        key = f"{key}:{listing_id}"
    return key


async def _existing_user_ids(db: AsyncSession, user_ids: Iterable[int]) -> set:
    r = await db.execute(select(User.id).where(User.id.in_(list(user_ids))))
    return {row[0] for row in r.all()}


async def _get_by_pair(db: AsyncSession, key: str) -> Optional[ChatRoom]:
    r = await db.execute(select(ChatRoom).where(ChatRoom.participant_pair == key))
    return r.scalar_one_or_none()


@log_operation("create_or_get_room", chat_logger)
async def create_or_get_room(db: AsyncSession, user_a, user_b, listing_id=None) -> ChatRoom:
    """Return the room for this pair (and listing), creating it on first use."""
    a = parse_id(user_a, "user1")
    b = parse_id(user_b, "user2")
    if a == b:
        raise ValidationError("Cannot create a chat room with yourself")
    post_id = parse_id(listing_id, "roomId") if listing_id is not None else None

    found = await _existing_user_ids(db, (a, b))
    if found != {a, b}:
        raise ValidationError("One or both users not found")

    if post_id is not None:
        r = await db.execute(select(Post.id).where(Post.id == post_id))
        if r.scalar_one_or_none() is None:
            raise ValidationError("Listing not found")

    key = pair_key(a, b, post_id)
    room = await _get_by_pair(db, key)
    if room:
        return room

    room = ChatRoom(user1_id=a, user2_id=b, post_id=post_id, participant_pair=key)
    db.add(room)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race against a concurrent create for the same pair
        await db.rollback()
        room = await _get_by_pair(db, key)
        if room is None:
            raise
        return room
    await db.refresh(room)
    chat_logger.info("Chat room created", room_id=room.id, pair=key)
    return room


async def find_room(db: AsyncSession, user_a, user_b, listing_id=None) -> Optional[ChatRoom]:
    a = parse_id(user_a, "user1Id")
    b = parse_id(user_b, "user2Id")
    post_id = parse_id(listing_id, "roomId") if listing_id is not None else None
    return await _get_by_pair(db, pair_key(a, b, post_id))


async def get_room(db: AsyncSession, room_id) -> ChatRoom:
    rid = parse_id(room_id, "chatRoomId")
    r = await db.execute(select(ChatRoom).where(ChatRoom.id == rid))
    room = r.scalar_one_or_none()
    if not room:
        raise NotFoundError("Chat room not found")
    return room


async def record_latest_message(db: AsyncSession, room_id: int, message_id: int) -> bool:
    """Move the room's latest-message pointer forward to message_id.

    The pointer only ever moves to a newer message, so interleaved sends
    cannot leave it on an older one. Returns False when nothing moved.
    Best-effort: never raises for a missing room.
    """
    r = await db.execute(
        update(ChatRoom)
        .where(
            ChatRoom.id == room_id,
            or_(ChatRoom.latest_message_id.is_(None), ChatRoom.latest_message_id < message_id),
        )
        .values(latest_message_id=message_id, updated_at=utcnow())
    )
    await db.commit()
    if r.rowcount:
        return True

    r = await db.execute(select(ChatRoom.id).where(ChatRoom.id == room_id))
    if r.scalar_one_or_none() is None:
        chat_logger.warning("Latest message not recorded: room missing", room_id=room_id, message_id=message_id)
    else:
        chat_logger.debug("Latest message not recorded: newer one already set", room_id=room_id, message_id=message_id)
    return False


async def list_rooms_for_user(
    db: AsyncSession,
    user_id,
    tab: Optional[Tab] = None,
) -> List[ChatRoom]:
    """Rooms the user takes part in, most recently updated first.

    tab=mine keeps rooms opened on the user's own listings; tab=others the rest.
    """
    uid = parse_id(user_id, "userId")
    q = (
        select(ChatRoom)
        .options(
            selectinload(ChatRoom.user1),
            selectinload(ChatRoom.user2),
            selectinload(ChatRoom.post),
        )
        .where(or_(ChatRoom.user1_id == uid, ChatRoom.user2_id == uid))
        .order_by(ChatRoom.updated_at.desc(), ChatRoom.id.desc())
    )
    r = await db.execute(q)
    rooms = list(r.scalars().all())

    if tab is not None:
        def is_mine(room: ChatRoom) -> bool:
            return room.post is not None and room.post.posted_by_id == uid
        rooms = [room for room in rooms if is_mine(room) == (tab == Tab.mine)]
    return rooms


async def load_latest_messages(db: AsyncSession, rooms: Iterable[ChatRoom]) -> dict:
    """Map room id -> latest Message (sender loaded) for list previews."""
    ids = {room.latest_message_id: room.id for room in rooms if room.latest_message_id}
    if not ids:
        return {}
    r = await db.execute(
        select(Message).options(selectinload(Message.sender)).where(Message.id.in_(list(ids)))
    )
    return {ids[m.id]: m for m in r.scalars().all()}
