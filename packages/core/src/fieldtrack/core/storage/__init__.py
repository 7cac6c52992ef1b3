"""Binary storage providers"""

from .base import StorageError, StorageProvider
from .local_disk import LocalDiskStorage

__all__ = [
    "StorageError",
    "StorageProvider",
    "LocalDiskStorage",
]
