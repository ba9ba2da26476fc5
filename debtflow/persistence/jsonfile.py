"""JSON file implementation of the state store."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

from .repository import StateStore

logger = logging.getLogger(__name__)


class JsonFileStateStore(StateStore):
    """Keep all keys in a single JSON object on disk.

    Writes go to a temporary file in the same directory and are moved into
    place, so a crash never leaves a half-written store behind.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except ValueError:
            logger.warning(f"Ignoring unreadable state file {self.path}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring state file {self.path}: not a JSON object")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, items: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(items, f, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _set(self, key: str, value: str) -> None:
        items = self._read()
        items[key] = value
        self._write(items)

    def _remove(self, key: str) -> None:
        items = self._read()
        if key in items:
            del items[key]
            self._write(items)

    async def get_item(self, key: str) -> Optional[str]:
        items = await asyncio.to_thread(self._read)
        return items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)

    async def keys(self) -> list[str]:
        items = await asyncio.to_thread(self._read)
        return sorted(items)
