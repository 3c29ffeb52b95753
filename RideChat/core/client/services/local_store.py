"""
Local message store.

Holds one conversation's message log in memory, keyed by message id, and
mirrors it to a KeyValueStore through a debounced writer. The in-memory
log is the source of truth for the session; storage failures are logged
and never reach the caller.
"""
from typing import Dict, Iterable, List, Optional

from RideChat.core.logging import get_logger
from RideChat.core.logging.utils import ExceptionLogger, LogTimer
from RideChat.core.message.protocol import (
    Message,
    MessageStatus,
    dump_messages,
    load_messages,
    sort_messages,
)
from .debounce import DebouncedWriter
from .persistence_service import KeyValueStore, storage_key
from ..utils.constants import PERSIST_DEBOUNCE_SECONDS, STORAGE_KEY_PREFIX
from ..utils.exceptions import StorageError

logger = get_logger(__name__)


class LocalStore:
    """Durable, id-keyed message log for a single conversation."""

    def __init__(self, conversation_id: str, storage: KeyValueStore,
                 debounce_seconds: float = PERSIST_DEBOUNCE_SECONDS,
                 key_prefix: str = STORAGE_KEY_PREFIX):
        self._conversation_id = conversation_id
        self._storage = storage
        self._key = storage_key(conversation_id, key_prefix)
        # dict order is arrival order, the tie-breaker for equal timestamps
        self._messages: Dict[str, Message] = {}
        self._writer: DebouncedWriter[List[Message]] = DebouncedWriter(
            self._write_snapshot, delay=debounce_seconds, label=self._key
        )
        self._errors = ExceptionLogger(logger)

    @property
    def conversation_id(self) -> str:
        return self._conversation_id

    @property
    def key(self) -> str:
        return self._key

    @property
    def writer(self) -> DebouncedWriter:
        return self._writer

    @property
    def messages(self) -> List[Message]:
        """All messages, ascending by timestamp."""
        return sort_messages(self._messages.values())

    def get(self, message_id: str) -> Optional[Message]:
        return self._messages.get(message_id)

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._messages

    def __len__(self) -> int:
        return len(self._messages)

    async def load(self) -> List[Message]:
        """
        Load the stored log for this conversation.

        Missing or unreadable data yields an empty log. Messages already
        received in memory take precedence over stored copies.
        """
        try:
            with LogTimer(f"load {self._key}", logger):
                data = await self._storage.get(self._key)
        except Exception as e:
            error = StorageError(f"Could not read stored log {self._key}")
            error.__cause__ = e
            self._errors.log_exception(error)
            return self.messages

        if data is None:
            logger.info("No stored messages for conversation %s", self._conversation_id)
            return self.messages

        try:
            loaded, skipped = load_messages(data)
        except (ValueError, TypeError) as e:
            self._errors.log_exception(e, f"Stored log {self._key} is corrupt, starting empty")
            return self.messages

        if skipped:
            logger.warning("Skipped %d malformed records in %s", skipped, self._key)

        received_during_load = bool(self._messages)
        merged = {m.id: m for m in loaded}
        merged.update(self._messages)
        self._messages = merged
        if received_during_load:
            self.schedule_persist()
        logger.info("Loaded %d messages for conversation %s", len(loaded), self._conversation_id)
        return self.messages

    def upsert(self, message: Message) -> bool:
        """
        Insert a message unless its id is already known.

        Returns:
            True if the message was inserted, False for a duplicate id
        """
        if message.id in self._messages:
            logger.debug("Ignoring duplicate message %s", message.id)
            return False
        self._messages[message.id] = message
        self.schedule_persist()
        return True

    def update_status(self, message_id: str, status: MessageStatus) -> bool:
        """
        Set the status of a known message.

        Returns:
            True if the status changed, False for an unknown id or same status
        """
        current = self._messages.get(message_id)
        if current is None or current.status == status:
            return False
        self._messages[message_id] = current.with_status(status)
        self.schedule_persist()
        return True

    def merge_bulk(self, incoming: Iterable[Message]) -> List[Message]:
        """
        Union with a batch of messages, incoming copies winning on id collision.

        Returns:
            The merged log, ascending by timestamp
        """
        count = 0
        for message in incoming:
            self._messages[message.id] = message
            count += 1
        if count:
            self.schedule_persist()
        return self.messages

    def schedule_persist(self) -> None:
        self._writer.schedule_persist(self.messages)

    async def flush(self) -> None:
        """Write any pending snapshot immediately."""
        await self._writer.flush()

    async def _write_snapshot(self, snapshot: List[Message]) -> None:
        await self._storage.set(self._key, dump_messages(snapshot))


__all__ = ['LocalStore']
