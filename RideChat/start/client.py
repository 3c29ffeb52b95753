"""
Client startup module for RideChat.
Runs a terminal chat for one conversation, or prints its stored log.
"""

import asyncio
from typing import Optional

from RideChat.config import config
from RideChat.core.client import ChatContext, ConversationSession, WebSocketTransport
from RideChat.core.client.services import ConsoleNotificationSink, FileKeyValueStore, LocalStore
from RideChat.core.client.utils import (
    MissingContextError,
    NotConnectedError,
    ValidationError,
    WsConnectionError,
)
from RideChat.core.message.protocol import Message, MessageStatus

__all__ = ['client', 'history', 'format_message']

_STATUS_MARKS = {
    MessageStatus.SENDING: "...",
    MessageStatus.SENT: "v",
    MessageStatus.DELIVERED: "vv",
    MessageStatus.READ: "vv read",
    MessageStatus.FAILED: "! failed",
}

HELP_TEXT = (
    "Commands:\n"
    "  /history - Show the whole conversation\n"
    "  /away    - Pretend the chat is in the background (notifications on)\n"
    "  /back    - Bring the chat back to the foreground\n"
    "  /exit    - Leave the chat\n"
    "Anything else is sent as a message."
)


def format_message(message: Message, peer_name: str, self_name: str = "You") -> str:
    """One display line for a message, with a delivery mark on our own."""
    name = self_name if message.is_self else peer_name
    line = f"[{message.display_time}] {name}: {message.text}"
    if message.is_self:
        line = f"{line}  ({_STATUS_MARKS.get(message.status, message.status.value)})"
    return line


def client(conversation_id: Optional[str], self_key: Optional[str],
           server: str = config.DEFAULT_SERVER_ADDRESS, peer_name: str = config.PEER_LABEL,
           storage_dir: str = config.STORAGE_DIR) -> int:
    """
    Start an interactive chat.

    Args:
        conversation_id: Ride/session id the chat belongs to
        self_key: Identifier of this user, used in provisional message ids
        server: WebSocket server address
        peer_name: Display name of the other participant
        storage_dir: Directory holding stored conversation logs

    Returns:
        Process exit code
    """
    print("Welcome to RideChat!")
    print(f"Current setting: server={server}, conversation={conversation_id}")
    try:
        asyncio.run(_chat(conversation_id, self_key, server, peer_name, storage_dir))
    except MissingContextError as e:
        print(f"Error: {e.message}")
        return 2
    except WsConnectionError as e:
        print(f"Failed to connect: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nChat closed.")
    return 0


async def _chat(conversation_id, self_key, server, peer_name, storage_dir) -> None:
    transport = WebSocketTransport(
        server,
        on_send_error=lambda payload, error: print(f"! Message not sent: {error}"),
    )

    def show_incoming(message: Message) -> None:
        print(f"\r{format_message(message, peer_name)}\n> ", end="", flush=True)

    session = ConversationSession(
        ChatContext(conversation_id=conversation_id, self_key=self_key, peer_name=peer_name),
        transport,
        FileKeyValueStore(storage_dir),
        ConsoleNotificationSink(),
        on_history_loaded=lambda: print("\r(history synced)\n> ", end="", flush=True),
        on_peer_message=show_incoming,
    )

    await transport.connect()
    try:
        async with session:
            for message in session.messages:
                print(format_message(message, peer_name))
            print("Type '/help' for commands.")
            await _input_loop(session, peer_name)
    finally:
        await transport.close()


async def _input_loop(session: ConversationSession, peer_name: str) -> None:
    loop = asyncio.get_running_loop()
    while True:
        try:
            line = await loop.run_in_executor(None, input, "> ")
        except EOFError:
            break

        match line.strip().split():
            case ["/exit"] | ["/quit"]:
                print("Bye!")
                break

            case ["/help"]:
                print(HELP_TEXT)

            case ["/history"]:
                for message in session.messages:
                    print(format_message(message, peer_name))

            case ["/away"]:
                session.set_foreground(False)
                print("Chat is in the background.")

            case ["/back"]:
                session.set_foreground(True)
                print("Chat is in the foreground.")

            case _:
                session.composer.draft = line
                try:
                    session.send()
                except (ValidationError, NotConnectedError) as e:
                    print(f"! {e.message}")


def history(conversation_id: Optional[str], storage_dir: str = config.STORAGE_DIR,
            peer_name: str = config.PEER_LABEL) -> int:
    """Print the stored log of a conversation."""
    if not conversation_id:
        print("Error: a conversation id is required")
        return 2

    store = LocalStore(str(conversation_id), FileKeyValueStore(storage_dir))
    messages = asyncio.run(store.load())
    if not messages:
        print(f"No messages stored for conversation {conversation_id}.")
        return 0
    for message in messages:
        print(format_message(message, peer_name))
    return 0
