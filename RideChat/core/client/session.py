"""
Conversation session: one chat screen visit, wired end to end.

A session owns the LocalStore for its conversation and the reconciler,
composer and notifier around it. It subscribes to the transport on start
and unsubscribes on close; closing also flushes pending persistence.
"""
import asyncio
from dataclasses import dataclass
from typing import Callable, List, Optional

from RideChat.config import config
from RideChat.core.logging import get_logger
from RideChat.core.logging.utils import log_context
from RideChat.core.message.protocol import Message
from .services.composer import OutboundComposer
from .services.correlation import CorrelationTable
from .services.local_store import LocalStore
from .services.notifier import NotificationSink, Notifier
from .services.persistence_service import KeyValueStore
from .services.reconciler import InboundReconciler
from .transport import Transport, Unsubscribe
from .utils.constants import MISSING_CONTEXT_TEXT
from .utils.exceptions import MissingContextError

logger = get_logger(__name__)


@dataclass
class ChatContext:
    """Identifiers a chat needs before anything else can start."""
    conversation_id: Optional[str]
    self_key: Optional[str]
    peer_name: str = config.PEER_LABEL
    self_name: str = "You"

    def validate(self) -> None:
        missing = [name for name in ("conversation_id", "self_key")
                   if not str(getattr(self, name) or "").strip()]
        if missing:
            raise MissingContextError(MISSING_CONTEXT_TEXT, {"missing": missing})


class ConversationSession:
    """
    Message reconciliation for one conversation.

    Raises MissingContextError from the constructor when the context is
    incomplete, so no partially built session ever exists.
    """

    def __init__(self, context: ChatContext, transport: Transport, storage: KeyValueStore,
                 sink: NotificationSink,
                 debounce_seconds: Optional[float] = None,
                 request_history: Optional[bool] = None,
                 on_history_loaded: Optional[Callable[[], None]] = None,
                 on_peer_message: Optional[Callable[[Message], None]] = None):
        context.validate()

        self.context = context
        self._transport = transport
        self._request_history = (config.REQUEST_HISTORY_ON_START
                                 if request_history is None else request_history)
        self._on_history_loaded = on_history_loaded
        self._is_foreground = True
        self._loading = True
        self._unsubscribe: Optional[Unsubscribe] = None
        self._closed = False
        self.history_loaded = asyncio.Event()

        conversation_id = str(context.conversation_id)
        self.correlation = CorrelationTable()
        self.store = LocalStore(
            conversation_id, storage,
            debounce_seconds=(config.PERSIST_DEBOUNCE_SECONDS
                              if debounce_seconds is None else debounce_seconds),
            key_prefix=config.STORAGE_KEY_PREFIX,
        )
        self.notifier = Notifier(sink, context.peer_name)
        self.reconciler = InboundReconciler(
            conversation_id, self.store, self.correlation, self.notifier,
            is_foreground=lambda: self._is_foreground,
            on_history_loaded=self._history_done,
            on_peer_message=on_peer_message,
        )
        self.composer = OutboundComposer(
            conversation_id, str(context.self_key), self.store, transport, self.correlation
        )

    @property
    def conversation_id(self) -> str:
        return self.store.conversation_id

    @property
    def messages(self) -> List[Message]:
        return self.store.messages

    @property
    def is_foreground(self) -> bool:
        return self._is_foreground

    @property
    def is_loading(self) -> bool:
        """True until the stored log has been loaded."""
        return self._loading

    @property
    def is_active(self) -> bool:
        return self._unsubscribe is not None

    def set_foreground(self, foreground: bool) -> None:
        self._is_foreground = foreground
        logger.debug("Conversation %s %s", self.conversation_id,
                     "in foreground" if foreground else "in background")

    async def start(self) -> List[Message]:
        """
        Subscribe to the transport, load the stored log and ask for history.

        Returns:
            The message log after loading
        """
        if self._closed:
            raise RuntimeError("Session already closed")
        if self._unsubscribe is None:
            # Subscribe first: events arriving while storage is read are kept.
            self._unsubscribe = self._transport.add_listener(self.reconciler.handle_event)
        messages = await self.store.load()
        self._loading = False
        if self._request_history:
            self.composer.request_history()
        logger.info("Session started for conversation %s with %d messages",
                    self.conversation_id, len(messages))
        return messages

    def send(self, text: Optional[str] = None) -> Message:
        return self.composer.send(text)

    def _history_done(self) -> None:
        self.history_loaded.set()
        if self._on_history_loaded is not None:
            self._on_history_loaded()

    async def close(self) -> None:
        """Unsubscribe and write any pending snapshot. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        with log_context(f"close session {self.conversation_id}", logger):
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
            await self.store.flush()

    async def __aenter__(self) -> 'ConversationSession':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = ['ChatContext', 'ConversationSession']
