"""
Local Filesystem Storage Implementation.
Each key is one small text file below a base directory.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional

import aiofiles

from .interface import StorageInterface

logger = logging.getLogger(__name__)


class LocalStorage(StorageInterface):
    """
    Local filesystem key/value storage.
    ``metrics/water_ml`` is stored at ``<base_dir>/metrics/water_ml.txt``.
    """

    suffix = ".txt"

    def __init__(self, base_dir: str = "./data"):
        """
        Initialize local storage with a base directory.

        Args:
            base_dir: Base directory for all stored values
        """
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, key: str) -> Path:
        """Convert a key to an absolute file path within base directory."""
        full_path = (self.base_dir / f"{key}{self.suffix}").resolve()

        # Security check: ensure path is within base_dir
        if self.base_dir not in full_path.parents:
            raise ValueError(f"Invalid key: {key} - path traversal detected")

        return full_path

    async def get(self, key: str) -> Optional[str]:
        full_path = self._get_full_path(key)
        if not full_path.exists():
            return None
        try:
            async with aiofiles.open(full_path, 'r', encoding='utf-8') as f:
                return await f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Unreadable value for {key}: {e}")
            return None

    async def set(self, key: str, value: str) -> bool:
        full_path = self._get_full_path(key)
        tmp_path = full_path.with_name(f".{full_path.name}.{uuid.uuid4().hex}.tmp")
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
                await f.write(value)
            # Readers never see a half-written value
            os.replace(tmp_path, full_path)
            return True
        except OSError as e:
            logger.error(f"Error saving {key}: {e}", exc_info=True)
            if tmp_path.exists():
                tmp_path.unlink()
            return False
