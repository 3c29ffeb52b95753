"""
Debounced persistence.

Each LocalStore owns one DebouncedWriter: bursts of mutations collapse into a
single write of the newest snapshot once the store has been quiet for the
debounce delay.
"""
import asyncio
from typing import Awaitable, Callable, Generic, Optional, Set, TypeVar

from RideChat.core.logging import get_logger
from RideChat.core.logging.utils import ExceptionLogger
from ..utils.exceptions import StorageError

T = TypeVar("T")

logger = get_logger(__name__)


class DebouncedWriter(Generic[T]):
    """
    Coalesces snapshots and writes only the last one.

    Must be driven from inside a running event loop. Writes are serialized
    by a lock, so two snapshots are never written concurrently.
    """

    def __init__(self, write: Callable[[T], Awaitable[None]], delay: float = 0.5,
                 label: str = "snapshot"):
        self._write = write
        self._delay = delay
        self._label = label
        self._handle: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[T] = None
        self._has_pending = False
        self._lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()
        self._errors = ExceptionLogger(logger)
        self.write_count = 0
        self.failure_count = 0

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def has_pending(self) -> bool:
        return self._has_pending

    def schedule_persist(self, snapshot: T) -> None:
        """Replace the pending snapshot and restart the quiet-period timer."""
        self._pending = snapshot
        self._has_pending = True
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.ensure_future(self._drain())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _drain(self) -> None:
        async with self._lock:
            if not self._has_pending:
                return
            snapshot = self._pending
            self._pending = None
            self._has_pending = False
            try:
                await self._write(snapshot)
                self.write_count += 1
            except Exception as e:
                self.failure_count += 1
                error = StorageError(f"Debounced write of {self._label} failed")
                error.__cause__ = e
                self._errors.log_exception(error)

    async def flush(self) -> None:
        """Write the pending snapshot now and wait for in-flight writes."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        await self._drain()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel(self) -> None:
        """Drop the pending snapshot without writing it."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending = None
        self._has_pending = False


__all__ = ['DebouncedWriter']
