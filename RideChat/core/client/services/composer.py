"""
Outbound composition: optimistic local insert plus a command to the server.
"""
import time
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from RideChat.core.logging import get_logger
from RideChat.core.message.protocol import (
    Message,
    MessageStatus,
    Sender,
    build_chat_command,
    build_history_request,
    to_iso,
)
from .correlation import CorrelationTable
from .local_store import LocalStore
from ..transport import Transport
from ..utils.constants import EMPTY_MESSAGE_TEXT, LOCAL_ID_PREFIX, NOT_CONNECTED_TEXT
from ..utils.exceptions import NotConnectedError, ValidationError

logger = get_logger(__name__)


class OutboundComposer:
    """
    Turns user text into a ``sending`` message and a ``chat_message`` command.

    There is no outbox: a send that fails validation or finds the transport
    disconnected raises and leaves the store and the draft untouched.
    """

    def __init__(self, conversation_id: str, sender_key: str, store: LocalStore,
                 transport: Transport, correlation: CorrelationTable,
                 clock: Callable[[], float] = time.time):
        self._conversation_id = conversation_id
        self._sender_key = sender_key
        self._store = store
        self._transport = transport
        self._correlation = correlation
        self._clock = clock
        self._last_millis = 0
        self.draft = ""

    def _next_local_id(self) -> Tuple[str, int]:
        # Millisecond clock, bumped so two sends in one millisecond stay distinct.
        millis = max(int(self._clock() * 1000), self._last_millis + 1)
        self._last_millis = millis
        return f"{LOCAL_ID_PREFIX}_{millis}_{self._sender_key}", millis

    def send(self, text: Optional[str] = None) -> Message:
        """
        Send ``text``, or the current draft when no text is given.

        Returns:
            The optimistic message, already in the store with status SENDING

        Raises:
            ValidationError: If the text is empty after trimming
            NotConnectedError: If the transport is not connected
        """
        body = (self.draft if text is None else text).strip()
        if not body:
            raise ValidationError(EMPTY_MESSAGE_TEXT)
        if not self._transport.is_connected:
            raise NotConnectedError(NOT_CONNECTED_TEXT, {"conversation": self._conversation_id})

        if text is None:
            self.draft = ""

        local_id, millis = self._next_local_id()
        message = Message(
            id=local_id,
            text=body,
            sender=Sender.SELF,
            timestamp=to_iso(datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc)),
            status=MessageStatus.SENDING,
        )
        self._store.upsert(message)
        self._correlation.register(local_id, local_id)

        command = build_chat_command(self._conversation_id, body, local_id)
        logger.debug("Sending %s in conversation %s", local_id, self._conversation_id)
        self._transport.send_command(command)
        return message

    def request_history(self) -> bool:
        """Ask the server for recent history. Returns False when offline."""
        if not self._transport.is_connected:
            logger.info("Not connected, skipping history request for %s", self._conversation_id)
            return False
        self._transport.send_command(build_history_request(self._conversation_id))
        return True


__all__ = ['OutboundComposer']
