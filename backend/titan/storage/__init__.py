"""Storage module - provides interface and implementations for metric persistence."""

from .interface import StorageInterface
from .local_storage import LocalStorage
from .memory_storage import MemoryStorage
from .factory import create_storage

__all__ = ['StorageInterface', 'LocalStorage', 'MemoryStorage', 'create_storage']
