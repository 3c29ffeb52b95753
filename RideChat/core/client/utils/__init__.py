"""
Utility constants and exceptions for the chat client core.
"""

from .constants import (
    PERSIST_DEBOUNCE_SECONDS,
    STORAGE_KEY_PREFIX,
)
from .exceptions import (
    ClientError,
    ValidationError,
    NotConnectedError,
    MissingContextError,
    StorageError,
    NotificationError,
    WsConnectionError,
)

__all__ = [
    'ClientError',
    'ValidationError',
    'NotConnectedError',
    'MissingContextError',
    'StorageError',
    'NotificationError',
    'WsConnectionError',
    'PERSIST_DEBOUNCE_SECONDS',
    'STORAGE_KEY_PREFIX',
]
