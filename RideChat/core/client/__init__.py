"""
Client module for RideChat.
Provides the per-conversation session and the transport it talks through.
"""

from .session import ChatContext, ConversationSession
from .transport import Transport, WebSocketTransport

__all__ = [
    'ChatContext', 'ConversationSession',
    'Transport', 'WebSocketTransport',
]
