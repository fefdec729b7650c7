from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Float, JSON, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from roomshare.db.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    posts = relationship("Post", back_populates="posted_by")
    messages = relationship("Message", back_populates="sender")


class Post(Base):
    """A room listing. Its id scopes chat rooms opened from the listing page."""
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False)
    location = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False)  # Room, House, PG
    occupancy = Column(String(50), nullable=False)  # Single, Shared
    furnished = Column(Boolean, default=False)
    available_from = Column(DateTime(timezone=True), nullable=False)
    amenities = Column(JSON, default=list)
    images = Column(JSON, default=list)
    posted_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    posted_by = relationship("User", back_populates="posts")


class ChatRoom(Base):
    """
    Conversation between exactly two users, optionally about one listing.

    participant_pair is the canonical "min:max[:post]" key that makes
    creation idempotent regardless of participant order.
    latest_message_id is a denormalized pointer kept without a foreign key;
    it is updated in a separate commit after the message insert.
    """
    __tablename__ = "chat_rooms"
    __table_args__ = (
        Index("ix_chat_rooms_user1_updated", "user1_id", "updated_at"),
        Index("ix_chat_rooms_user2_updated", "user2_id", "updated_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user1_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    user2_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=True)
    participant_pair = Column(String(100), unique=True, index=True, nullable=False)
    latest_message_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    user1 = relationship("User", foreign_keys=[user1_id])
    user2 = relationship("User", foreign_keys=[user2_id])
    post = relationship("Post")
    messages = relationship("Message", back_populates="chat_room")

    @property
    def participant_ids(self):
        return [self.user1_id, self.user2_id]


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_room_timestamp", "chat_room_id", "timestamp"),
    )

    id = Column(Integer, primary_key=True, index=True)
    chat_room_id = Column(Integer, ForeignKey("chat_rooms.id"), nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    # Assigned in Python so ordering keeps sub-second precision on every backend
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    chat_room = relationship("ChatRoom", back_populates="messages")
    sender = relationship("User", back_populates="messages")
