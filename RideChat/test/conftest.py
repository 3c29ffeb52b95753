"""
Test configuration and fixtures for the RideChat client core.

Provides:
- In-memory collaborators (transport, notification sink, key-value stores)
- Wire event generators
- Store and session fixtures with a short debounce window
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio

from RideChat.core.client.session import ChatContext, ConversationSession
from RideChat.core.client.services.local_store import LocalStore
from RideChat.core.client.services.persistence_service import MemoryKeyValueStore
from RideChat.core.client.transport import ListenerRegistry
from RideChat.core.logging import configure_logging, create_testing_config

configure_logging(create_testing_config())


@dataclass
class TestConfig:
    """Configuration shared by the tests."""
    conversation_id: str = "ride-42"
    self_key: str = "12345678900"
    peer_name: str = "Carlos"
    debounce_seconds: float = 0.05

    @property
    def settle_seconds(self) -> float:
        """Long enough for a debounced write to land."""
        return self.debounce_seconds * 4


class FakeTransport:
    """Transport double: records commands, lets tests push events."""

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.sent: List[Dict[str, Any]] = []
        self._listeners = ListenerRegistry()

    @property
    def is_connected(self) -> bool:
        return self.connected

    def add_listener(self, handler):
        return self._listeners.add(handler)

    def send_command(self, payload: Dict[str, Any]) -> None:
        self.sent.append(payload)

    def emit(self, event: Dict[str, Any]) -> None:
        self._listeners.dispatch(event)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


@dataclass
class RecordingSink:
    """Notification sink that remembers what it was asked to do."""
    sounds: int = 0
    notifications: List[tuple] = field(default_factory=list)
    fail_sound: bool = False
    fail_push: bool = False

    def play_alert_sound(self) -> None:
        if self.fail_sound:
            raise RuntimeError("sound asset missing")
        self.sounds += 1

    def raise_local_notification(self, title: str, body: str) -> None:
        if self.fail_push:
            raise RuntimeError("notifications disabled")
        self.notifications.append((title, body))


class FailingStore:
    """Key-value store whose every call fails."""

    def __init__(self):
        self.attempts = 0

    async def get(self, key: str) -> Optional[str]:
        self.attempts += 1
        raise OSError("disk unavailable")

    async def set(self, key: str, value: str) -> None:
        self.attempts += 1
        raise OSError("disk full")


class TestDataGenerator:
    """Generate wire events in the server's dialects."""

    BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    @classmethod
    def ts(cls, minutes: int) -> str:
        return (cls.BASE_TIME + timedelta(minutes=minutes)).isoformat()

    @classmethod
    def peer_message(cls, message_id: Optional[str], text: str, minutes: int = 0,
                     conversation_id: str = "ride-42") -> Dict[str, Any]:
        event = {
            "type": "mensagem_chat",
            "corrida_id": conversation_id,
            "remetente": "MOTORISTA",
            "mensagem": text,
            "timestamp": cls.ts(minutes),
        }
        if message_id is not None:
            event["id"] = message_id
        return event

    @classmethod
    def history(cls, entries: List[Dict[str, Any]], conversation_id: str = "ride-42") -> Dict[str, Any]:
        return {"type": "historico_chat", "corrida_id": conversation_id, "messages": entries}

    @classmethod
    def history_entry(cls, message_id: str, text: str, minutes: int,
                      sender: str = "motorista", **extra) -> Dict[str, Any]:
        entry = {"id": message_id, "conteudo": text, "sender": sender, "timestamp": cls.ts(minutes)}
        entry.update(extra)
        return entry

    @staticmethod
    def status_update(target: str, status: str, event_id: Optional[str] = None) -> Dict[str, Any]:
        event = {"eventType": "status_update", "statusTarget": target, "statusValue": status}
        if event_id is not None:
            event["eventId"] = event_id
        return event

    @staticmethod
    def sent_ack(client_message_id: str) -> Dict[str, Any]:
        return {"type": "mensagem_enviada", "message_id": client_message_id}


@pytest.fixture(scope="session")
def test_config() -> TestConfig:
    return TestConfig()


@pytest.fixture(scope="session")
def data() -> TestDataGenerator:
    return TestDataGenerator()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def storage() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def store(storage, test_config) -> LocalStore:
    return LocalStore(test_config.conversation_id, storage,
                      debounce_seconds=test_config.debounce_seconds)


@pytest.fixture
def context(test_config) -> ChatContext:
    return ChatContext(
        conversation_id=test_config.conversation_id,
        self_key=test_config.self_key,
        peer_name=test_config.peer_name,
    )


@pytest_asyncio.fixture
async def session(context, transport, storage, sink, test_config):
    chat = ConversationSession(
        context, transport, storage, sink,
        debounce_seconds=test_config.debounce_seconds,
        request_history=False,
    )
    await chat.start()
    yield chat
    await chat.close()


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "scenario: end-to-end reconciliation scenario"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
