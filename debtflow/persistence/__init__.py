"""Persistence layer for debtflow workflow state."""

from __future__ import annotations

import os
from typing import Optional

from ..config import DebtflowConfig, load_config
from .inmemory import InMemoryStateStore
from .jsonfile import JsonFileStateStore
from .repository import StateStore
from .sqlite import SQLiteStateStore

_store_instance: StateStore | None = None


def get_store(
    state_url: Optional[str] = None,
    config: Optional[DebtflowConfig] = None,
    default_url: Optional[str] = None,
) -> StateStore:
    """Factory function to obtain a state store.

    The backend is selected based on ``state_url`` which can be provided
    explicitly, via environment variable ``DEBTFLOW_STATE_URL``, or from
    loaded configuration. ``file://<path>`` selects a JSON file and
    ``sqlite://<path>`` a SQLite database. When nothing is configured,
    ``default_url`` is used, and without one an in-memory store is returned.
    """

    global _store_instance
    if _store_instance is not None and state_url is None and config is None:
        return _store_instance

    config = config or load_config()
    state_url = (
        state_url
        or os.getenv("DEBTFLOW_STATE_URL")
        or getattr(config, "state_url", None)
        or default_url
    )

    if not state_url:
        _store_instance = InMemoryStateStore()
        return _store_instance

    if state_url.startswith("file://"):
        path = state_url.replace("file://", "", 1)
        _store_instance = JsonFileStateStore(path)
    elif state_url.startswith("sqlite://"):
        path = state_url.replace("sqlite://", "", 1)
        _store_instance = SQLiteStateStore(path)
    else:
        raise ValueError(f"Unsupported state backend: {state_url}")

    return _store_instance


__all__ = [
    "StateStore",
    "InMemoryStateStore",
    "JsonFileStateStore",
    "SQLiteStateStore",
    "get_store",
]
