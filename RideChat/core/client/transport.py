"""
Transport collaborator for the chat core.

The core only needs three things from a connection: subscribe to inbound
events, fire a command, and ask whether it is connected right now.
WebSocketTransport provides them over a single websockets connection.
"""
import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Protocol, Set

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from RideChat.core.logging import get_logger
from .utils.exceptions import WsConnectionError

logger = get_logger(__name__)

EventHandler = Callable[[Dict[str, Any]], None]
Unsubscribe = Callable[[], None]


class Transport(Protocol):
    """What the reconciliation core consumes from a connection."""

    @property
    def is_connected(self) -> bool:
        ...

    def add_listener(self, handler: EventHandler) -> Unsubscribe:
        ...

    def send_command(self, payload: Dict[str, Any]) -> None:
        ...


class ListenerRegistry:
    """
    Ordered listener list with explicit unsubscribe handles.

    Handlers run synchronously in registration order; one failing handler is
    logged and does not stop the others.
    """

    def __init__(self):
        self._handlers: List[EventHandler] = []

    def add(self, handler: EventHandler) -> Unsubscribe:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass

        return unsubscribe

    def dispatch(self, event: Dict[str, Any]) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Listener %r failed on event", handler)

    def __len__(self) -> int:
        return len(self._handlers)


class WebSocketTransport:
    """
    JSON-over-WebSocket transport.

    Frames are decoded and dispatched in arrival order by one receive task.
    Sends are fire-and-forget; a failed send is logged and reported to
    ``on_send_error`` so it can be shown to the user.
    """

    def __init__(self, url: str,
                 on_send_error: Optional[Callable[[Dict[str, Any], Exception], None]] = None):
        self.url = url
        self._on_send_error = on_send_error
        self._listeners = ListenerRegistry()
        self._ws = None
        self._receiver: Optional[asyncio.Task] = None
        self._send_tasks: Set[asyncio.Task] = set()
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def add_listener(self, handler: EventHandler) -> Unsubscribe:
        return self._listeners.add(handler)

    async def connect(self) -> None:
        """
        Open the connection and start receiving.

        Raises:
            WsConnectionError: If the server cannot be reached
        """
        try:
            self._ws = await websockets.connect(self.url)
        except (OSError, WebSocketException) as e:
            raise WsConnectionError(f"Could not connect to {self.url}", {"error": str(e)}) from e
        self._connected = True
        self._receiver = asyncio.create_task(self._receive_loop())
        logger.info("Connected to %s", self.url)

    async def _receive_loop(self) -> None:
        try:
            async for frame in self._ws:
                self._handle_frame(frame)
        except ConnectionClosed as e:
            logger.warning("Connection to %s closed: %s", self.url, e)
        finally:
            self._connected = False

    def _handle_frame(self, frame) -> None:
        try:
            event = json.loads(frame)
        except (TypeError, ValueError):
            logger.warning("Dropping non-JSON frame: %.80r", frame)
            return
        if not isinstance(event, dict):
            logger.warning("Dropping non-object frame: %.80r", frame)
            return
        self._listeners.dispatch(event)

    def send_command(self, payload: Dict[str, Any]) -> None:
        if self._ws is None:
            self._report_send_error(payload, WsConnectionError("Not connected"))
            return
        task = asyncio.ensure_future(self._send(payload))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)

    async def _send(self, payload: Dict[str, Any]) -> None:
        try:
            await self._ws.send(json.dumps(payload, ensure_ascii=False))
        except (ConnectionClosed, OSError) as e:
            self._connected = False
            self._report_send_error(payload, e)

    def _report_send_error(self, payload: Dict[str, Any], error: Exception) -> None:
        logger.error("Failed to send %s: %s", payload.get("commandType"), error)
        if self._on_send_error is not None:
            self._on_send_error(payload, error)

    async def close(self) -> None:
        self._connected = False
        if self._send_tasks:
            await asyncio.gather(*list(self._send_tasks), return_exceptions=True)
        if self._ws is not None:
            await self._ws.close()
        if self._receiver is not None:
            self._receiver.cancel()
            try:
                await self._receiver
            except asyncio.CancelledError:
                pass
        logger.info("Disconnected from %s", self.url)


__all__ = ['Transport', 'ListenerRegistry', 'WebSocketTransport', 'EventHandler', 'Unsubscribe']
