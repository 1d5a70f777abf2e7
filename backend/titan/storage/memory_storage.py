"""
In-memory storage. Nothing survives the process; used for tests and ``STORAGE_TYPE=memory``.
"""

from typing import Dict, Optional

from .interface import StorageInterface


class MemoryStorage(StorageInterface):
    """Dict-backed key/value storage."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> bool:
        self.data[key] = value
        return True
