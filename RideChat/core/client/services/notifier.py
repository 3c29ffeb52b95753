"""
Out-of-band alerts for newly arrived peer messages.
"""
import logging
import sys
from typing import Optional, Protocol, Set, TextIO

from RideChat.core.logging import get_logger
from RideChat.core.logging.utils import ExceptionLogger
from RideChat.core.message.protocol import Message, Sender
from ..utils.constants import NOTIFICATION_TITLE_TEMPLATE
from ..utils.exceptions import NotificationError

logger = get_logger(__name__)


class NotificationSink(Protocol):
    """Device-side alert surface. Both calls are best-effort."""

    def play_alert_sound(self) -> None:
        ...

    def raise_local_notification(self, title: str, body: str) -> None:
        ...


class ConsoleNotificationSink:
    """Terminal bell for the sound, a stdout line for the notification."""

    def __init__(self, stream: Optional[TextIO] = None, bell: bool = True):
        self._stream = stream or sys.stdout
        self._bell = bell

    def play_alert_sound(self) -> None:
        if self._bell:
            self._stream.write("\a")
            self._stream.flush()

    def raise_local_notification(self, title: str, body: str) -> None:
        self._stream.write(f"\n[{title}] {body}\n")
        self._stream.flush()


class Notifier:
    """
    Decides whether a reconciled peer message raises an alert.

    The sound always plays; the local notification is raised only while the
    chat is in the background. A message id is alerted at most once.
    """

    def __init__(self, sink: NotificationSink, peer_name: str):
        self._sink = sink
        self._peer_name = peer_name
        self._notified: Set[str] = set()
        self._errors = ExceptionLogger(logger)

    @property
    def peer_name(self) -> str:
        return self._peer_name

    def has_notified(self, message_id: str) -> bool:
        return message_id in self._notified

    def notify(self, message: Message, is_foreground: bool) -> bool:
        """
        Alert for a newly inserted peer message.

        Returns:
            True if this call produced an alert, False if skipped
        """
        if message.sender is not Sender.PEER or message.id in self._notified:
            return False
        self._notified.add(message.id)

        self._deliver("alert sound", self._sink.play_alert_sound)
        if not is_foreground:
            title = NOTIFICATION_TITLE_TEMPLATE.format(peer=self._peer_name)
            self._deliver("local notification", self._sink.raise_local_notification,
                          title, message.text)
        return True

    def _deliver(self, what: str, call, *args) -> None:
        try:
            call(*args)
        except Exception as e:
            error = NotificationError(f"Could not deliver {what}")
            error.__cause__ = e
            self._errors.log_exception(error, level=logging.WARNING)


__all__ = ['NotificationSink', 'ConsoleNotificationSink', 'Notifier']
