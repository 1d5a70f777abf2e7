"""
Storage Interface - Abstract key/value store used to persist metrics.
This interface enables switching between local files, memory, or a remote store.
"""

from abc import ABC, abstractmethod
from typing import Optional


class StorageInterface(ABC):
    """
    Durable key -> string store.

    Keys are slash-separated relative names (e.g. "metrics/water_ml").
    Implementations must treat a missing key as ``None``; they never raise for absence.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Load the value stored under ``key``.

        Args:
            key: Relative key

        Returns:
            Optional[str]: Stored text, or None if absent or unreadable
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> bool:
        """
        Store ``value`` under ``key``, replacing any previous value.

        Args:
            key: Relative key
            value: Text to store

        Returns:
            bool: True if the value is durably stored, False otherwise
        """
        pass
