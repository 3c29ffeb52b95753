"""
Message protocol module for RideChat.

Defines the chat message entity, the inbound event shape read from the
server and the outbound commands written to it. The server speaks several
dialects for the same logical fields, so every field is read through an
alias list and normalized here; nothing downstream looks at raw keys.
"""

import hashlib
import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

SYNTHETIC_ID_PREFIX = "msg"


class Sender(str, Enum):
    """Who authored a message, from this client's point of view."""
    SELF = "self"
    PEER = "peer"


class MessageStatus(str, Enum):
    """Delivery status of a message. Updates are last-write-wins."""
    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"

    @classmethod
    def parse(cls, value: Any) -> 'MessageStatus':
        """
        Parse a status value from the wire or from storage.

        Raises:
            ValueError: If the value names no known status
        """
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        text = _STATUS_ALIASES.get(text, text)
        return cls(text)


# Older logs stored inbound messages as "received".
_STATUS_ALIASES = {
    "received": MessageStatus.DELIVERED.value,
}

# Raw role values, compared case-insensitively.
PEER_ROLES = frozenset({"peer", "motorista", "driver"})
SELF_ROLES = frozenset({"self", "passageiro", "passenger"})


def normalize_sender(role: Any) -> Sender:
    """Resolve a raw role field. Anything not recognized as the peer is us."""
    if str(role or "").strip().lower() in PEER_ROLES:
        return Sender.PEER
    return Sender.SELF


# ==================== Time helpers ====================

def parse_timestamp(value: Any) -> datetime:
    """
    Parse a timestamp into an aware UTC datetime.

    Accepts datetimes, epoch numbers (seconds or milliseconds) and ISO-8601
    strings, with or without a trailing 'Z'. Naive values are taken as UTC.

    Raises:
        ValueError: If the value cannot be read as a point in time
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        raise ValueError(f"Not a timestamp: {value!r}")
    elif isinstance(value, (int, float)):
        seconds = value / 1000.0 if value > 1e11 else float(value)
        try:
            dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError) as e:
            raise ValueError(f"Timestamp out of range: {value!r}") from e
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Not a timestamp: {value!r}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(dt: datetime) -> str:
    return parse_timestamp(dt).isoformat(timespec="milliseconds")


def now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


def format_display_time(timestamp: Any, tz: Optional[tzinfo] = None) -> str:
    """Hour:minute label in local time (or ``tz``), e.g. '9:05'."""
    dt = parse_timestamp(timestamp).astimezone(tz)
    return f"{dt.hour}:{dt.minute:02d}"


# ==================== Message ====================

@dataclass(frozen=True)
class Message:
    """
    One chat message.

    Frozen: a status change produces a new instance via ``with_status``, so
    ``sender`` and the identity fields can never change after creation.

    Attributes:
        id: Server id, or a provisional local id for our own unsent messages
        text: Message body
        sender: Sender.SELF or Sender.PEER
        timestamp: ISO-8601 creation time, the sort key
        status: Delivery status
        display_time: Cached hour:minute label derived from timestamp
    """
    id: str
    text: str
    sender: Sender
    timestamp: str
    status: MessageStatus
    display_time: str = field(default="", compare=False)

    def __post_init__(self):
        if not self.display_time:
            object.__setattr__(self, "display_time", format_display_time(self.timestamp))

    @property
    def sort_key(self) -> datetime:
        return parse_timestamp(self.timestamp)

    @property
    def is_self(self) -> bool:
        return self.sender is Sender.SELF

    def with_status(self, status: MessageStatus) -> 'Message':
        return replace(self, status=status)

    def to_record(self) -> Dict[str, str]:
        """Projection written to storage. Nothing transient goes in here."""
        return {
            "id": self.id,
            "text": self.text,
            "sender": self.sender.value,
            "timestamp": self.timestamp,
            "status": self.status.value,
            "displayTime": self.display_time,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'Message':
        """
        Rebuild a message from its stored projection.

        Raises:
            KeyError, ValueError, TypeError: If the record is malformed
        """
        sender = record["sender"]
        # Older logs hold raw epoch numbers; always keep an ISO string.
        timestamp = to_iso(parse_timestamp(record["timestamp"]))
        return cls(
            id=str(record["id"]),
            text=str(record["text"]),
            sender=Sender(sender) if sender in (Sender.SELF.value, Sender.PEER.value)
            else normalize_sender(sender),
            timestamp=timestamp,
            status=MessageStatus.parse(record["status"]),
            display_time=str(record.get("displayTime") or record.get("time") or ""),
        )


def sort_messages(messages: Iterable[Message]) -> List[Message]:
    """Ascending by timestamp; equal timestamps keep their input order."""
    return sorted(messages, key=lambda m: m.sort_key)


def dump_messages(messages: Iterable[Message]) -> str:
    return json.dumps([m.to_record() for m in sort_messages(messages)], ensure_ascii=False)


def load_messages(data: str) -> Tuple[List[Message], int]:
    """
    Decode a stored message log.

    Returns:
        (messages sorted by timestamp, number of records that were skipped)

    Raises:
        ValueError: If the payload is not a JSON list
    """
    records = json.loads(data)
    if not isinstance(records, list):
        raise ValueError(f"Stored log is a {type(records).__name__}, expected a list")

    messages = []
    skipped = 0
    for record in records:
        try:
            messages.append(Message.from_record(record))
        except (KeyError, ValueError, TypeError):
            skipped += 1
    return sort_messages(messages), skipped


# ==================== Inbound events ====================

class EventType(Enum):
    """Classification of an inbound transport event."""
    PEER_MESSAGE = "peer_message"
    OWN_ECHO = "own_echo"
    HISTORY_BULK = "history_bulk"
    STATUS_UPDATE = "status_update"
    UNRECOGNIZED = "unrecognized"


# Field aliases, in lookup order.
EVENT_TYPE_FIELDS = ("eventType", "type")
EVENT_ID_FIELDS = ("eventId", "id", "messageId", "unique_id")
CONVERSATION_FIELDS = ("conversationId", "corridaId", "corrida_id")
SENDER_FIELDS = ("senderRole", "remetente", "sender")
CONTENT_FIELDS = ("content", "mensagem", "conteudo", "message")
TIMESTAMP_FIELDS = ("serverTimestamp", "timestamp", "data")
STATUS_TARGET_FIELDS = ("statusTarget", "message_id", "clientMessageId")
# On status events these name the target message, not the event.
STATUS_TARGET_FALLBACK_FIELDS = ("messageId", "id")
STATUS_EVENT_ID_FIELDS = ("eventId", "unique_id")
STATUS_VALUE_FIELDS = ("statusValue", "status")
CLIENT_ID_FIELDS = ("clientMessageId", "client_message_id", "message_id")
HISTORY_FIELDS = ("messages", "history", "entries")

CHAT_TYPES = frozenset({"chat_message", "mensagem_chat", "nova_mensagem"})
HISTORY_TYPES = frozenset({"chat_history", "historico_chat", "history_bulk"})
SENT_ACK_TYPES = frozenset({"message_sent", "mensagem_enviada"})
STATUS_TYPES = frozenset({"status_update", "message_status"})


def first_field(payload: Dict[str, Any], names: Iterable[str]) -> Any:
    """Value of the first alias present with a non-empty value, else None."""
    for name in names:
        value = payload.get(name)
        if value is not None and value != "":
            return value
    return None


def _opt_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


@dataclass
class InboundEvent:
    """A transport event with its fields normalized and its type classified."""
    event_type: EventType
    raw_type: Optional[str] = None
    event_id: Optional[str] = None
    conversation_id: Optional[str] = None
    sender_role: Optional[str] = None
    content: Optional[str] = None
    server_timestamp: Any = None
    status_target: Optional[str] = None
    status_value: Optional[str] = None
    client_message_id: Optional[str] = None
    entries: List[Dict[str, Any]] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'InboundEvent':
        raw_type = _opt_str(first_field(payload, EVENT_TYPE_FIELDS))
        sender_role = _opt_str(first_field(payload, SENDER_FIELDS))
        status_value = _opt_str(first_field(payload, STATUS_VALUE_FIELDS))

        kind = (raw_type or "").strip().lower()
        if kind in CHAT_TYPES:
            if normalize_sender(sender_role) is Sender.PEER:
                event_type = EventType.PEER_MESSAGE
            else:
                event_type = EventType.OWN_ECHO
        elif kind in (EventType.PEER_MESSAGE.value, EventType.OWN_ECHO.value):
            event_type = EventType(kind)
        elif kind in HISTORY_TYPES:
            event_type = EventType.HISTORY_BULK
        elif kind in SENT_ACK_TYPES:
            event_type = EventType.STATUS_UPDATE
            status_value = status_value or MessageStatus.SENT.value
        elif kind in STATUS_TYPES:
            event_type = EventType.STATUS_UPDATE
        else:
            event_type = EventType.UNRECOGNIZED

        entries = first_field(payload, HISTORY_FIELDS)
        if not isinstance(entries, list):
            entries = []

        event_id = first_field(payload, EVENT_ID_FIELDS)
        status_target = first_field(payload, STATUS_TARGET_FIELDS)
        if event_type is EventType.STATUS_UPDATE and status_target is None:
            status_target = first_field(payload, STATUS_TARGET_FALLBACK_FIELDS)
            event_id = first_field(payload, STATUS_EVENT_ID_FIELDS)

        return cls(
            event_type=event_type,
            raw_type=raw_type,
            event_id=_opt_str(event_id),
            conversation_id=_opt_str(first_field(payload, CONVERSATION_FIELDS)),
            sender_role=sender_role,
            content=_opt_str(first_field(payload, CONTENT_FIELDS)),
            server_timestamp=first_field(payload, TIMESTAMP_FIELDS),
            status_target=_opt_str(status_target),
            status_value=status_value,
            client_message_id=_opt_str(first_field(payload, CLIENT_ID_FIELDS)),
            entries=[e for e in entries if isinstance(e, dict)],
            raw=payload,
        )


def synthesize_message_id(sender: Sender, text: str, timestamp: str) -> str:
    """
    Id for an inbound message the server sent without one.

    Derived from the message itself so a replayed copy maps to the same id.
    """
    millis = int(parse_timestamp(timestamp).timestamp() * 1000)
    digest = hashlib.sha1(f"{sender.value}|{text}".encode("utf-8")).hexdigest()[:10]
    return f"{SYNTHETIC_ID_PREFIX}_{millis}_{digest}"


def message_from_payload(payload: Dict[str, Any], received_at: Optional[str] = None) -> Message:
    """
    Normalize one wire message (a live chat event or a history entry).

    A missing or unreadable server timestamp falls back to ``received_at``
    (default: now). Peer messages default to DELIVERED, our own to SENT.
    """
    sender = normalize_sender(first_field(payload, SENDER_FIELDS))
    text = str(first_field(payload, CONTENT_FIELDS) or "")

    try:
        timestamp = to_iso(parse_timestamp(first_field(payload, TIMESTAMP_FIELDS)))
    except ValueError:
        timestamp = received_at or now_iso()

    try:
        status = MessageStatus.parse(first_field(payload, STATUS_VALUE_FIELDS))
    except ValueError:
        status = MessageStatus.DELIVERED if sender is Sender.PEER else MessageStatus.SENT

    message_id = _opt_str(first_field(payload, EVENT_ID_FIELDS))
    if not message_id:
        message_id = synthesize_message_id(sender, text, timestamp)

    return Message(id=message_id, text=text, sender=sender, timestamp=timestamp, status=status)


# ==================== Outbound commands ====================

COMMAND_CHAT_MESSAGE = "chat_message"
COMMAND_REQUEST_HISTORY = "request_history"


def build_chat_command(conversation_id: str, content: str, client_message_id: str) -> Dict[str, Any]:
    return {
        "commandType": COMMAND_CHAT_MESSAGE,
        "conversationId": conversation_id,
        "senderRole": Sender.SELF.value,
        "content": content,
        "clientMessageId": client_message_id,
    }


def build_history_request(conversation_id: str) -> Dict[str, Any]:
    return {
        "commandType": COMMAND_REQUEST_HISTORY,
        "conversationId": conversation_id,
    }


__all__ = [
    'Sender',
    'MessageStatus',
    'Message',
    'EventType',
    'InboundEvent',
    'PEER_ROLES',
    'SELF_ROLES',
    'normalize_sender',
    'parse_timestamp',
    'to_iso',
    'now_iso',
    'format_display_time',
    'sort_messages',
    'dump_messages',
    'load_messages',
    'first_field',
    'synthesize_message_id',
    'message_from_payload',
    'build_chat_command',
    'build_history_request',
    'COMMAND_CHAT_MESSAGE',
    'COMMAND_REQUEST_HISTORY',
]
