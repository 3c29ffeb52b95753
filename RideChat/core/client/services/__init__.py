"""
Client services: storage, reconciliation, composition and alerts.
"""
from .composer import OutboundComposer
from .correlation import CorrelationTable
from .debounce import DebouncedWriter
from .local_store import LocalStore
from .notifier import ConsoleNotificationSink, NotificationSink, Notifier
from .persistence_service import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore, storage_key
from .reconciler import InboundReconciler

__all__ = [
    'OutboundComposer',
    'CorrelationTable',
    'DebouncedWriter',
    'LocalStore',
    'ConsoleNotificationSink',
    'NotificationSink',
    'Notifier',
    'FileKeyValueStore',
    'KeyValueStore',
    'MemoryKeyValueStore',
    'storage_key',
    'InboundReconciler',
]
