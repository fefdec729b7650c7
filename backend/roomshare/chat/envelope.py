"""
Socket wire types.

Inbound frames form a closed union tagged by the Socket.IO event name; a
frame that does not validate is rejected as a whole. The outbound
MessageEnvelope is the single payload shape of both receiveMessage and
updateMessage.
"""
from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BeforeValidator, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from roomshare.core.exceptions import ValidationError
from roomshare.core.schemas import CamelModel

# Client -> server
JOIN_ROOM = "joinRoom"
LEAVE_ROOM = "leaveRoom"
SEND_MESSAGE = "sendMessage"

# Server -> client
RECEIVE_MESSAGE = "receiveMessage"
UPDATE_MESSAGE = "updateMessage"
CONNECTED = "connected"
ERROR = "error"


def isoformat_utc(value: datetime) -> str:
    """ISO-8601 with an explicit offset; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def parse_timestamp(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _coerce_wire_id(value):
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError("must be a string or integer id")
    value = str(value).strip()
    if not value:
        raise ValueError("must not be empty")
    return value


WireId = Annotated[str, BeforeValidator(_coerce_wire_id)]


class JoinRoomFrame(CamelModel):
    event: Literal["joinRoom"] = JOIN_ROOM
    room_id: WireId


class LeaveRoomFrame(CamelModel):
    event: Literal["leaveRoom"] = LEAVE_ROOM
    room_id: WireId


class SendMessageFrame(CamelModel):
    event: Literal["sendMessage"] = SEND_MESSAGE
    chat_id: WireId
    message: str
    sender: WireId

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be empty")
        return value


ClientFrame = Annotated[
    Union[JoinRoomFrame, LeaveRoomFrame, SendMessageFrame],
    Field(discriminator="event"),
]

_client_frame_adapter = TypeAdapter(ClientFrame)


def parse_frame(event: str, data) -> Union[JoinRoomFrame, LeaveRoomFrame, SendMessageFrame]:
    """Validate one inbound socket frame.

    joinRoom/leaveRoom carry the bare room id; {"roomId": ...} is accepted
    too. Raises ValidationError on any malformed frame.
    """
    if event in (JOIN_ROOM, LEAVE_ROOM) and not isinstance(data, dict):
        payload = {"event": event, "roomId": data}
    elif isinstance(data, dict):
        payload = {**data, "event": event}
    else:
        raise ValidationError(f"Malformed {event} frame")

    try:
        return _client_frame_adapter.validate_python(payload)
    except PydanticValidationError as e:
        fields = ", ".join(".".join(str(loc) for loc in err["loc"]) for err in e.errors())
        raise ValidationError(f"Malformed {event} frame: {fields}")


class MessageEnvelope(CamelModel):
    content: str
    sender: WireId
    sender_name: str
    timestamp: str
    chat_room: WireId

    @field_validator("timestamp")
    @classmethod
    def timestamp_is_iso(cls, value: str) -> str:
        parse_timestamp(value)
        return value

    @classmethod
    def from_message(cls, message) -> "MessageEnvelope":
        """Build from a persisted Message with its sender loaded."""
        return cls(
            content=message.content,
            sender=message.sender_id,
            sender_name=message.sender.name if message.sender else "",
            timestamp=isoformat_utc(message.timestamp),
            chat_room=message.chat_room_id,
        )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude={"event"})

    @property
    def sent_at(self) -> datetime:
        return parse_timestamp(self.timestamp)
