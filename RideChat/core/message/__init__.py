from .protocol import (
    EventType,
    InboundEvent,
    Message,
    MessageStatus,
    Sender,
    build_chat_command,
    build_history_request,
    message_from_payload,
)

__all__ = [
    'EventType',
    'InboundEvent',
    'Message',
    'MessageStatus',
    'Sender',
    'build_chat_command',
    'build_history_request',
    'message_from_payload',
]
