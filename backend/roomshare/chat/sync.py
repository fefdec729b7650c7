"""
Chat list synchronization.

Pure reducer over the cached conversation list of one user. Real-time
message events are folded in without a refetch: the affected conversation
moves to the front with its latest message replaced, and the active tab
follows the conversation that was just updated.

All functions return new state; applying the same event twice yields the
same state as applying it once.
"""
import enum
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable, Optional, Tuple

from roomshare.chat.envelope import MessageEnvelope, parse_timestamp


class Tab(str, enum.Enum):
    mine = "mine"
    others = "others"


@dataclass(frozen=True)
class LatestMessage:
    content: str
    sender: str
    timestamp: str

    @property
    def sent_at(self) -> datetime:
        return parse_timestamp(self.timestamp)

    def same_as(self, other: "LatestMessage") -> bool:
        return (
            self.content == other.content
            and self.sender == other.sender
            and self.sent_at == other.sent_at
        )


@dataclass(frozen=True)
class ChatSummary:
    """
    One row of the chat list.

    listing_id is the id of the listing the room was opened from (None for
    pair-only rooms). Placeholders are synthesized from an event for a room
    that is not cached yet; their participants and listing are unknown until
    the next full refetch.
    """
    id: str
    listing_id: Optional[str] = None
    participants: Tuple[dict, ...] = ()
    latest_message: Optional[LatestMessage] = None
    placeholder: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "ChatSummary":
        """Build from one entry of GET /api/chatroom/user/{userId}."""
        latest = data.get("latestMessage")
        listing = data.get("roomId")
        return cls(
            id=str(data["id"]),
            listing_id=str(listing) if listing is not None else None,
            participants=tuple(data.get("participants") or ()),
            latest_message=LatestMessage(
                content=latest["content"],
                sender=str(latest["sender"]),
                timestamp=latest["timestamp"],
            ) if latest else None,
        )


@dataclass(frozen=True)
class ChatListState:
    chats: Tuple[ChatSummary, ...] = ()
    active_tab: Tab = Tab.others

    def get(self, chat_id) -> Optional[ChatSummary]:
        chat_id = str(chat_id)
        for chat in self.chats:
            if chat.id == chat_id:
                return chat
        return None


def classify(chat: ChatSummary, my_listing_ids: Iterable) -> Optional[Tab]:
    """Tab a conversation belongs to, or None when it cannot be told yet."""
    if chat.placeholder:
        return None
    ids = {str(i) for i in my_listing_ids}
    return Tab.mine if chat.listing_id is not None and chat.listing_id in ids else Tab.others


def derive_active_tab(chat: ChatSummary, my_listing_ids: Iterable, current: Tab) -> Tab:
    tab = classify(chat, my_listing_ids)
    return current if tab is None else tab


def _recency(chat: ChatSummary) -> datetime:
    if chat.latest_message is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    return chat.latest_message.sent_at


def replace_chats(state: ChatListState, chats: Iterable[ChatSummary]) -> ChatListState:
    """Full refetch: adopt the server list, most recent conversation first."""
    ordered = sorted(chats, key=_recency, reverse=True)
    return replace(state, chats=tuple(ordered))


def apply_message(state: ChatListState, envelope: MessageEnvelope, my_listing_ids: Iterable) -> ChatListState:
    """Fold one updateMessage event into the list."""
    room_id = str(envelope.chat_room)
    latest = LatestMessage(
        content=envelope.content,
        sender=str(envelope.sender),
        timestamp=envelope.timestamp,
    )

    existing = state.get(room_id)
    if existing is not None:
        shown = existing.latest_message
        if shown is not None and (shown.same_as(latest) or shown.sent_at > latest.sent_at):
            # Replayed or stale event; the list already reflects it
            return state
        updated = replace(existing, latest_message=latest)
    else:
        updated = ChatSummary(id=room_id, latest_message=latest, placeholder=True)

    chats = (updated,) + tuple(c for c in state.chats if c.id != room_id)
    return ChatListState(
        chats=chats,
        active_tab=derive_active_tab(updated, my_listing_ids, state.active_tab),
    )


def reduce_events(state: ChatListState, envelopes: Iterable[MessageEnvelope], my_listing_ids: Iterable) -> ChatListState:
    ids = [str(i) for i in my_listing_ids]
    for envelope in envelopes:
        state = apply_message(state, envelope, ids)
    return state


def visible_chats(state: ChatListState, my_listing_ids: Iterable) -> Tuple[ChatSummary, ...]:
    """Chats shown under the active tab. Placeholders show on every tab."""
    ids = [str(i) for i in my_listing_ids]
    return tuple(
        chat for chat in state.chats
        if classify(chat, ids) in (None, state.active_tab)
    )
