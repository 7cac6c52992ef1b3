"""Local filesystem StorageProvider

Objects live under root/<key>. Keys are validated so they cannot escape the
root directory.
"""

import asyncio
from pathlib import Path

from .base import StorageError


class LocalDiskStorage:
    """StorageProvider writing to a local directory"""

    def __init__(self, root: str | Path, name: str = "local-disk") -> None:
        self._root = Path(root).resolve()
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def root(self) -> Path:
        return self._root

    async def put(self, key: str, body: bytes, content_type: str) -> str:
        path = self._resolve(key)
        try:
            await asyncio.to_thread(self._write, path, body)
        except OSError as e:
            raise StorageError(f"cannot write {key}: {e}") from e
        return key

    async def get(self, key: str) -> bytes:
        path = self._resolve(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise StorageError(f"cannot read {key}: {e}") from e

    async def delete(self, key: str) -> None:
        path = self._resolve(key)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            raise StorageError(f"cannot delete {key}: {e}") from e

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def _resolve(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if not path.is_relative_to(self._root):
            raise StorageError(f"key escapes storage root: {key}")
        return path

    @staticmethod
    def _write(path: Path, body: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(body)
