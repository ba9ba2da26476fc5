"""User-facing notification channel shared by the pipeline and import session."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

NotificationType = Literal["success", "error", "warning", "info"]

DEFAULT_DURATION_MS = 5000


class NotificationAction(BaseModel):
    """Button attached to a notification."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    label: str
    on_click: Callable[[], object]


class Notification(BaseModel):
    id: str
    type: NotificationType
    title: str
    message: Optional[str] = None
    duration: int = DEFAULT_DURATION_MS
    action: Optional[NotificationAction] = None


NotificationListener = Callable[[Notification], None]


class NotificationBridge:
    """Collects notifications and fans them out to listeners.

    Instances are passed to whoever needs to raise notifications; there is no
    process-wide instance. A ``duration`` of 0 keeps the notification until it
    is dismissed explicitly; any other duration (milliseconds) schedules its
    removal on the running event loop.
    """

    def __init__(self, default_duration: int = DEFAULT_DURATION_MS) -> None:
        self.default_duration = default_duration
        self._notifications: Dict[str, Notification] = {}
        self._listeners: List[NotificationListener] = []
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._ids = itertools.count(1)

    @property
    def notifications(self) -> List[Notification]:
        return list(self._notifications.values())

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def add(
        self,
        type: NotificationType,
        title: str,
        message: Optional[str] = None,
        duration: Optional[int] = None,
        action: Optional[NotificationAction] = None,
    ) -> str:
        notification = Notification(
            id=f"notification-{next(self._ids)}",
            type=type,
            title=title,
            message=message,
            duration=self.default_duration if duration is None else duration,
            action=action,
        )
        self._notifications[notification.id] = notification
        logger.debug(f"{type} notification {notification.id}: {title}")

        if notification.duration > 0:
            self._schedule_dismiss(notification)

        for listener in list(self._listeners):
            listener(notification)
        return notification.id

    def _schedule_dismiss(self, notification: Notification) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Outside an event loop there is nothing to expire notifications.
            return
        self._timers[notification.id] = loop.call_later(
            notification.duration / 1000, self.dismiss, notification.id
        )

    def dismiss(self, notification_id: str) -> None:
        timer = self._timers.pop(notification_id, None)
        if timer is not None:
            timer.cancel()
        self._notifications.pop(notification_id, None)

    def clear(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._notifications.clear()

    def success(self, title: str, message: Optional[str] = None, **options) -> str:
        return self.add("success", title, message, **options)

    def error(self, title: str, message: Optional[str] = None, **options) -> str:
        return self.add("error", title, message, **options)

    def warning(self, title: str, message: Optional[str] = None, **options) -> str:
        return self.add("warning", title, message, **options)

    def info(self, title: str, message: Optional[str] = None, **options) -> str:
        return self.add("info", title, message, **options)
