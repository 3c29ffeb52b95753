"""
Tests for ConversationSession: lifecycle, subscription handling and the
end-to-end flows through a fake transport.
"""

import asyncio
import json

import pytest

from RideChat.core.client.services.persistence_service import (
    FileKeyValueStore,
    MemoryKeyValueStore,
)
from RideChat.core.client.session import ChatContext, ConversationSession
from RideChat.core.client.utils.exceptions import MissingContextError, NotConnectedError
from RideChat.core.message.protocol import MessageStatus, dump_messages, message_from_payload
from RideChat.test.conftest import FakeTransport, RecordingSink


class TestContext:

    @pytest.mark.parametrize("conversation_id, self_key, missing", [
        (None, "123", ["conversation_id"]),
        ("ride-42", "", ["self_key"]),
        ("  ", None, ["conversation_id", "self_key"]),
    ])
    def test_incomplete_context_is_rejected(self, conversation_id, self_key, missing):
        context = ChatContext(conversation_id=conversation_id, self_key=self_key)

        with pytest.raises(MissingContextError) as exc_info:
            ConversationSession(context, FakeTransport(), MemoryKeyValueStore(), RecordingSink())

        assert exc_info.value.details == {"missing": missing}

    def test_complete_context(self, context):
        context.validate()


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_subscribes_loads_and_requests_history(self, context, storage, sink,
                                                               test_config):
        transport = FakeTransport()
        session = ConversationSession(context, transport, storage, sink,
                                      debounce_seconds=test_config.debounce_seconds,
                                      request_history=True)
        assert session.is_loading

        await session.start()

        assert not session.is_loading
        assert session.is_active
        assert transport.listener_count == 1
        assert transport.sent == [{
            "commandType": "request_history",
            "conversationId": test_config.conversation_id,
        }]
        await session.close()

    @pytest.mark.asyncio
    async def test_start_restores_stored_log(self, context, storage, sink, data, test_config):
        stored = [message_from_payload(data.history_entry("A", "hello", 1))]
        storage.data[f"chat_{test_config.conversation_id}"] = dump_messages(stored)

        async with ConversationSession(context, FakeTransport(), storage, sink,
                                       request_history=False) as session:
            assert [m.id for m in session.messages] == ["A"]

    @pytest.mark.asyncio
    async def test_close_unsubscribes_and_flushes(self, session, transport, storage, data):
        transport.emit(data.peer_message("m1", "hello", 1))
        assert storage.writes == 0

        await session.close()

        assert transport.listener_count == 0
        assert not session.is_active
        assert storage.writes == 1
        assert [r["id"] for r in json.loads(storage.data[session.store.key])] == ["m1"]

    @pytest.mark.asyncio
    async def test_events_after_close_are_not_applied(self, session, transport, data):
        await session.close()
        transport.emit(data.peer_message("m1", "too late", 1))

        assert session.messages == []

    @pytest.mark.asyncio
    async def test_close_twice(self, session):
        await session.close()
        await session.close()

    @pytest.mark.asyncio
    async def test_restart_after_close_fails(self, session):
        await session.close()
        with pytest.raises(RuntimeError):
            await session.start()

    @pytest.mark.asyncio
    async def test_foreground_toggle_controls_notifications(self, session, transport, sink, data,
                                                            test_config):
        transport.emit(data.peer_message("m1", "one", 1))
        session.set_foreground(False)
        transport.emit(data.peer_message("m2", "two", 2))

        assert not session.is_foreground
        assert sink.sounds == 2
        assert sink.notifications == [(f"New message from {test_config.peer_name}", "two")]


class TestEndToEnd:

    @pytest.mark.asyncio
    @pytest.mark.scenario
    async def test_history_arrives_after_start(self, session, transport, data):
        transport.emit(data.history([
            data.history_entry("C", "third", 3),
            data.history_entry("A", "first", 1),
            data.history_entry("B", "second", 2),
        ]))

        assert session.history_loaded.is_set()
        assert [m.id for m in session.messages] == ["A", "B", "C"]

    @pytest.mark.asyncio
    @pytest.mark.scenario
    async def test_send_and_acknowledge(self, session, transport, data):
        message = session.send("hi")
        assert [(m.id, m.status) for m in session.messages] == [(message.id, MessageStatus.SENDING)]

        transport.emit(data.status_update(message.id, "sent", event_id="evt-1"))

        assert [(m.id, m.status) for m in session.messages] == [(message.id, MessageStatus.SENT)]

    @pytest.mark.asyncio
    async def test_send_echo_then_history_keeps_one_copy(self, session, transport, data,
                                                         test_config):
        message = session.send("hi")
        transport.emit({
            "type": "mensagem_chat", "corrida_id": test_config.conversation_id,
            "remetente": "PASSAGEIRO", "mensagem": "hi", "id": "srv-1", "message_id": message.id,
        })
        transport.emit(data.history([
            data.history_entry("srv-1", "hi", 6, sender="PASSAGEIRO", status="delivered"),
        ]))

        assert [(m.id, m.status) for m in session.messages] == [(message.id, MessageStatus.DELIVERED)]

    @pytest.mark.asyncio
    @pytest.mark.scenario
    async def test_send_while_disconnected(self, session, transport):
        transport.connected = False
        session.composer.draft = "hello"

        with pytest.raises(NotConnectedError):
            session.send()

        assert session.messages == []
        assert session.composer.draft == "hello"

    @pytest.mark.asyncio
    @pytest.mark.scenario
    async def test_duplicate_peer_event(self, session, transport, data):
        event = data.peer_message("m1", "hello", 1)
        transport.emit(event)
        transport.emit(event)

        assert [m.id for m in session.messages] == ["m1"]

    @pytest.mark.asyncio
    async def test_conversation_survives_restart(self, tmp_path, context, sink, data, test_config):
        storage = FileKeyValueStore(str(tmp_path))

        transport = FakeTransport()
        async with ConversationSession(context, transport, storage, sink,
                                       debounce_seconds=test_config.debounce_seconds,
                                       request_history=False) as session:
            transport.emit(data.peer_message("m1", "Arrived", 1))
            sent = session.send("coming down")

        async with ConversationSession(context, FakeTransport(), FileKeyValueStore(str(tmp_path)),
                                       RecordingSink(), request_history=False) as session:
            assert [m.id for m in session.messages] == ["m1", sent.id]
            assert session.messages[1].status is MessageStatus.SENDING

    @pytest.mark.asyncio
    async def test_message_during_burst_is_persisted_once(self, session, transport, storage, data,
                                                          test_config):
        for i in range(3):
            transport.emit(data.peer_message(f"m{i}", f"msg {i}", i))
        await asyncio.sleep(test_config.settle_seconds)

        assert storage.writes == 1
