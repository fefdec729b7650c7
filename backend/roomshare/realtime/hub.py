"""
Real-time hub: live connections, their chat room memberships, and fan-out.

Membership is volatile and connection-scoped; a reconnecting client has to
join its rooms again. Nothing here touches the database.

Structure:
- connections[sid] = Connection(user_id, name, rooms)
- room_members[room_id] = set(sids)
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from roomshare.chat.envelope import MessageEnvelope, RECEIVE_MESSAGE, UPDATE_MESSAGE

logger = logging.getLogger(__name__)


@dataclass
class Connection:
    sid: str
    user_id: int
    name: str
    rooms: Set[str] = field(default_factory=set)


@dataclass
class Delivery:
    """Sids reached by one send, per event."""
    received: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)


@dataclass
class ChatHub:
    """
    In-memory registry, one per server process.

    `emitter` is anything with `async emit(event, data, to=sid)`: the
    Socket.IO namespace in production, a recorder in tests.
    """
    emitter: Optional[object] = None
    connections: Dict[str, Connection] = field(default_factory=dict)
    room_members: Dict[str, Set[str]] = field(default_factory=dict)

    def attach(self, emitter) -> None:
        self.emitter = emitter

    def connect(self, sid: str, user_id: int, name: str) -> Connection:
        conn = Connection(sid=sid, user_id=user_id, name=name)
        self.connections[sid] = conn
        logger.info(f"Connection registered: {sid} (user {user_id})")
        return conn

    def connection(self, sid: str) -> Optional[Connection]:
        return self.connections.get(sid)

    def join(self, sid: str, room_id) -> bool:
        """Add the connection to a room. Returns False for unknown connections."""
        conn = self.connections.get(sid)
        if conn is None:
            logger.warning(f"Join ignored for unknown connection {sid}")
            return False
        room_id = str(room_id)
        self.room_members.setdefault(room_id, set()).add(sid)
        conn.rooms.add(room_id)
        logger.debug(f"{sid} joined room {room_id}")
        return True

    def leave(self, sid: str, room_id) -> bool:
        """Remove the connection from a room. Leaving a room not joined is a no-op."""
        room_id = str(room_id)
        members = self.room_members.get(room_id)
        if not members or sid not in members:
            return False
        members.discard(sid)
        if not members:
            del self.room_members[room_id]
        conn = self.connections.get(sid)
        if conn:
            conn.rooms.discard(room_id)
        logger.debug(f"{sid} left room {room_id}")
        return True

    def disconnect(self, sid: str) -> Set[str]:
        """Forget the connection and every membership it held. Returns the rooms it left."""
        conn = self.connections.pop(sid, None)
        if conn is None:
            return set()
        for room_id in conn.rooms:
            members = self.room_members.get(room_id)
            if members is None:
                continue
            members.discard(sid)
            if not members:
                del self.room_members[room_id]
        logger.info(f"Connection dropped: {sid} (user {conn.user_id}, rooms: {conn.rooms})")
        return set(conn.rooms)

    def members(self, room_id) -> Set[str]:
        return set(self.room_members.get(str(room_id), set()))

    def rooms_of(self, sid: str) -> Set[str]:
        conn = self.connections.get(sid)
        return set(conn.rooms) if conn else set()

    def sids_for_user(self, user_id: int) -> Set[str]:
        return {sid for sid, conn in self.connections.items() if conn.user_id == user_id}

    async def emit_to(self, sid: str, event: str, data) -> bool:
        """Emit to one socket. Failures are logged, never raised."""
        if self.emitter is None:
            logger.warning(f"No emitter attached; dropped {event} for {sid}")
            return False
        try:
            await self.emitter.emit(event, data, to=sid)
            return True
        except Exception as e:
            logger.warning(f"Emit {event} to {sid} failed: {e}")
            return False

    async def send(self, envelope: MessageEnvelope, skip_sids: Iterable[str] = ()) -> Delivery:
        """
        Fan a message out to the room's current members.

        receiveMessage goes to everyone except `skip_sids` (the sender's own
        socket), updateMessage to everyone. Offline participants get nothing;
        there is no queue or replay.
        """
        room_id = str(envelope.chat_room)
        skip = set(skip_sids or ())
        payload = envelope.to_wire()
        delivery = Delivery()

        # Snapshot: membership may change while emits are awaited
        for sid in sorted(self.members(room_id)):
            if sid not in skip and await self.emit_to(sid, RECEIVE_MESSAGE, payload):
                delivery.received.append(sid)
            if await self.emit_to(sid, UPDATE_MESSAGE, payload):
                delivery.updated.append(sid)

        logger.debug(
            f"Room {room_id}: receiveMessage -> {len(delivery.received)}, updateMessage -> {len(delivery.updated)}"
        )
        return delivery
