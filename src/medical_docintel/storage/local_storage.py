# ============================================================================
# src/medical_docintel/storage/local_storage.py
# ============================================================================
"""
Local filesystem storage.

Keys are relative paths under a root directory. File I/O runs in a worker
thread so the event loop is never blocked.
"""

import asyncio
from pathlib import Path

from ..utils.exceptions import StorageError, StorageObjectNotFoundError
from .base import BaseStorage


class LocalFileStorage(BaseStorage):
    """
    Stores documents as files under root.

    Args:
        root: Base directory, created on first use
    """

    def __init__(self, root: Path):
        super().__init__()
        self.root = Path(root)

    @property
    def backend_name(self) -> str:
        return "local"

    def _path_for(self, key: str) -> Path:
        root = self.root.resolve()
        path = (root / key).resolve()
        if root != path and root not in path.parents:
            raise StorageError(f"Storage key escapes storage root: {key}")
        return path

    async def upload(self, content: bytes, key: str, content_type: str = "application/octet-stream") -> str:
        path = self._path_for(key)

        def _write():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

        self.logger.info(f"Stored {key} ({len(content)} bytes)")
        return key

    async def download(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise StorageObjectNotFoundError(key) from e
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    async def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e
        self.logger.info(f"Deleted {key}")

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self._path_for(key).is_file)
