"""Store abstraction for durable workflow state."""

from __future__ import annotations

from typing import Optional, Protocol


class StateStore(Protocol):
    """Protocol for key/value persistence backends.

    Mirrors the browser storage the dashboard used: string keys mapped to
    serialized string values.
    """

    async def get_item(self, key: str) -> Optional[str]:
        """Return the stored value for ``key`` or ``None``."""

    async def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    async def remove_item(self, key: str) -> None:
        """Delete ``key``; missing keys are ignored."""

    async def keys(self) -> list[str]:
        """Return all stored keys."""
