"""
Key-value persistence for conversation logs.
Uses async file I/O to avoid blocking the event loop.
"""
import asyncio
import os
from typing import Dict, Optional, Protocol
from urllib.parse import quote

import aiofiles
import aiofiles.os

from ..utils.exceptions import StorageError


class KeyValueStore(Protocol):
    """Async string key-value store. One key per conversation."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...


class FileKeyValueStore:
    """
    Stores each key as a UTF-8 file inside one directory.

    Writes go to a temporary file that is then renamed over the target, so a
    reader never sees a half-written value.
    """

    def __init__(self, directory: Optional[str] = None):
        self._dir = directory or os.path.join(os.getcwd(), "chat_store")
        self._write_lock = asyncio.Lock()
        self._initialized = False

    @property
    def directory(self) -> str:
        return self._dir

    async def _ensure_dir(self) -> None:
        if not self._initialized:
            await aiofiles.os.makedirs(self._dir, exist_ok=True)
            self._initialized = True

    def path_for(self, key: str) -> str:
        return os.path.join(self._dir, f"{quote(key, safe='')}.json")

    async def get(self, key: str) -> Optional[str]:
        """
        Read a value.

        Returns:
            The stored string, or None if the key was never written

        Raises:
            StorageError: If the file exists but cannot be read
        """
        path = self.path_for(key)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                return await f.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read {key}", {"path": path}) from e

    async def set(self, key: str, value: str) -> None:
        """
        Replace a value.

        Raises:
            StorageError: If the value cannot be written
        """
        path = self.path_for(key)
        tmp_path = f"{path}.tmp"
        try:
            await self._ensure_dir()
            async with self._write_lock:
                async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                    await f.write(value)
                await aiofiles.os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(f"Failed to write {key}", {"path": path}) from e


class MemoryKeyValueStore:
    """In-process store for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})
        self.writes = 0

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.writes += 1
        self.data[key] = value


def storage_key(conversation_id: str, prefix: str = "chat_") -> str:
    """Storage key for a conversation, e.g. ``chat_42``."""
    return f"{prefix}{conversation_id}"


__all__ = [
    'KeyValueStore',
    'FileKeyValueStore',
    'MemoryKeyValueStore',
    'storage_key',
]
