"""StorageProvider protocol -- binary persistence abstraction

The recording engine never touches raw bytes beyond handing them to a
provider. Implementations return the key the object is reachable under.
"""

from typing import Protocol


class StorageError(Exception):
    """Raised by providers when an object cannot be written, read or removed"""


class StorageProvider(Protocol):
    """Injected blob store"""

    @property
    def name(self) -> str:
        """Provider identifier stored with each attachment"""
        ...

    async def put(self, key: str, body: bytes, content_type: str) -> str:
        """Store an object under key and return the key"""
        ...

    async def get(self, key: str) -> bytes:
        """Read an object back"""
        ...

    async def delete(self, key: str) -> None:
        """Remove an object; missing objects are ignored"""
        ...
