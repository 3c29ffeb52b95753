"""
Custom exceptions for the chat client core.

Only ValidationError, NotConnectedError and MissingContextError are meant
to reach the user; storage and notification errors are recovered locally
and exist so the failure can be logged with a consistent shape.
"""


class ClientError(Exception):
    """Base exception for client errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ValidationError(ClientError):
    """Message text is empty after trimming."""
    pass


class NotConnectedError(ClientError):
    """Send attempted while the transport reports disconnected."""
    pass


class MissingContextError(ClientError):
    """A session was opened without the identifiers it needs."""
    pass


class StorageError(ClientError):
    """Reading or writing the local message log failed."""
    pass


class NotificationError(ClientError):
    """Alert sound or local notification could not be delivered."""
    pass


class WsConnectionError(ClientError):
    """Exception raised for connection-related errors."""
    pass
