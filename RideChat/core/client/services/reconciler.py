"""
Inbound reconciliation.

Folds transport events into the LocalStore exactly once each. Events are
handled synchronously in the order the transport delivers them; display
order is left to the store's timestamp sort.
"""
from typing import Any, Callable, Dict, Optional

from RideChat.core.logging import get_logger
from RideChat.core.message.protocol import (
    CLIENT_ID_FIELDS,
    EventType,
    InboundEvent,
    Message,
    MessageStatus,
    Sender,
    first_field,
    message_from_payload,
    now_iso,
)
from .correlation import CorrelationTable
from .local_store import LocalStore
from .notifier import Notifier

logger = get_logger(__name__)

# Event types that must name this conversation to be applied.
_SCOPED_TYPES = (EventType.PEER_MESSAGE, EventType.HISTORY_BULK)


class InboundReconciler:
    """
    Classifies inbound events and applies them to the store.

    Per event:
      1. an event id equal to the last processed one is dropped
      2. events for another conversation are dropped
      3. peer messages are upserted and handed to the notifier
      4. own echoes only teach the correlation table the server id
      5. history batches are merged; the first one marks history loaded
      6. status updates are resolved through the correlation table
    """

    def __init__(self, conversation_id: str, store: LocalStore, correlation: CorrelationTable,
                 notifier: Notifier, is_foreground: Callable[[], bool],
                 on_history_loaded: Optional[Callable[[], None]] = None,
                 on_peer_message: Optional[Callable[[Message], None]] = None):
        self._conversation_id = str(conversation_id)
        self._store = store
        self._correlation = correlation
        self._notifier = notifier
        self._is_foreground = is_foreground
        self._on_history_loaded = on_history_loaded
        self._on_peer_message = on_peer_message
        self._last_seen_event_id: Optional[str] = None
        self._history_loaded = False

    @property
    def last_seen_event_id(self) -> Optional[str]:
        return self._last_seen_event_id

    @property
    def history_loaded(self) -> bool:
        return self._history_loaded

    def handle_event(self, payload: Dict[str, Any]) -> Optional[EventType]:
        """
        Apply one raw transport event.

        Returns:
            The event's classification if it was processed, None if dropped
        """
        event = InboundEvent.from_payload(payload)

        if event.event_id is not None:
            if event.event_id == self._last_seen_event_id:
                logger.debug("Dropping repeated event %s", event.event_id)
                return None
            self._last_seen_event_id = event.event_id

        if not self._in_scope(event):
            logger.debug("Ignoring %s for conversation %s", event.raw_type, event.conversation_id)
            return None

        match event.event_type:
            case EventType.PEER_MESSAGE:
                self._apply_peer_message(event)
            case EventType.OWN_ECHO:
                self._apply_own_echo(event)
            case EventType.HISTORY_BULK:
                self._apply_history(event)
            case EventType.STATUS_UPDATE:
                self._apply_status(event)
            case _:
                logger.debug("Unrecognized event type %r", event.raw_type)
        return event.event_type

    def _in_scope(self, event: InboundEvent) -> bool:
        if event.conversation_id is None:
            return event.event_type not in _SCOPED_TYPES
        return event.conversation_id == self._conversation_id

    def _apply_peer_message(self, event: InboundEvent) -> None:
        message = message_from_payload(event.raw, received_at=now_iso())
        if not self._store.upsert(message):
            return
        logger.info("Peer message %s in conversation %s", message.id, self._conversation_id)
        self._notifier.notify(message, self._is_foreground())
        if self._on_peer_message is not None:
            self._on_peer_message(message)

    def _apply_own_echo(self, event: InboundEvent) -> None:
        client_id = event.client_message_id
        if not client_id or not event.event_id:
            return
        local_id = self._correlation.resolve(client_id)
        if local_id is None:
            return
        self._correlation.register(event.event_id, local_id)
        logger.debug("Echo %s correlated to local message %s", event.event_id, local_id)

    def _apply_history(self, event: InboundEvent) -> None:
        received_at = now_iso()
        messages = [self._normalize_history_entry(entry, received_at) for entry in event.entries]
        self._store.merge_bulk(messages)
        logger.info("Merged %d history messages into conversation %s",
                    len(messages), self._conversation_id)
        if not self._history_loaded:
            self._history_loaded = True
            if self._on_history_loaded is not None:
                self._on_history_loaded()

    def _normalize_history_entry(self, entry: Dict[str, Any], received_at: str) -> Message:
        message = message_from_payload(entry, received_at=received_at)
        if message.sender is not Sender.SELF:
            return message
        # The server's copy of one of our sends replaces the provisional entry,
        # found by its client id or by a server id learned from an echo.
        client_id = first_field(entry, CLIENT_ID_FIELDS)
        local_id = self._correlation.resolve(str(client_id) if client_id else message.id)
        if local_id is None or local_id == message.id or local_id not in self._store:
            return message
        self._correlation.register(message.id, local_id)
        return Message(id=local_id, text=message.text, sender=message.sender,
                       timestamp=self._store.get(local_id).timestamp, status=message.status)

    def _apply_status(self, event: InboundEvent) -> None:
        try:
            status = MessageStatus.parse(event.status_value)
        except ValueError:
            logger.warning("Status update with unknown status %r", event.status_value)
            return

        target = event.status_target
        if not target:
            logger.warning("Status update without a target message")
            return

        local_id = self._correlation.resolve(target) or target
        if local_id not in self._store:
            logger.warning("Status update for unknown message %s", target)
            return
        if self._store.update_status(local_id, status):
            logger.debug("Message %s is now %s", local_id, status.value)


__all__ = ['InboundReconciler']
