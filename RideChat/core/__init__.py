from .message.protocol import Message, MessageStatus, Sender

__all__ = ['Message', 'MessageStatus', 'Sender']
