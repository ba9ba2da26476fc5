"""Route-change collaborators used by the workflow orchestrator."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol

logger = logging.getLogger(__name__)


class Navigator(Protocol):
    """Anything able to move the user to another screen."""

    def navigate(self, path: str) -> None:
        """Route to ``path``."""


class RecordingNavigator:
    """Navigator that remembers visited paths.

    Used by the CLI and tests, where there is no router to drive.
    """

    def __init__(self) -> None:
        self.history: List[str] = []

    @property
    def location(self) -> Optional[str]:
        return self.history[-1] if self.history else None

    def navigate(self, path: str) -> None:
        logger.debug(f"Navigating to {path}")
        self.history.append(path)
