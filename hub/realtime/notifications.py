"""
User-facing notifications and the in-process notification centre.

The realtime channel only *creates* :class:`Notification` objects and
publishes them; the :class:`NotificationCenter` keeps the recent ones,
tracks unread/acknowledged state, fans them out to subscribers and
expires them after ``duration_ms``.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Optional

from django.utils import timezone

logger = logging.getLogger(__name__)

MAX_KEPT = 50


class NotificationKind(str, enum.Enum):
    SUCCESS = 'success'
    ERROR = 'error'
    WARNING = 'warning'
    EMERGENCY = 'emergency'
    INFO = 'info'


@dataclass(frozen=True)
class NotificationAction:
    label: str
    url: Optional[str] = None


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    title: str
    body: str
    priority: str = 'medium'
    source: str = 'system'
    duration_ms: Optional[int] = None
    action: Optional[NotificationAction] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:9])
    created_at: datetime = field(default_factory=timezone.now)
    acknowledged: bool = False

    @property
    def effective_duration_ms(self) -> int:
        if self.duration_ms is not None:
            return self.duration_ms
        return 10000 if self.priority == 'critical' else 5000


Subscriber = Callable[[Notification], None]


class NotificationCenter:
    """Observer list plus a bounded, newest-first store of notifications."""

    def __init__(self, *, loop: Optional[asyncio.AbstractEventLoop] = None, max_kept: int = MAX_KEPT) -> None:
        self._loop = loop
        self._max_kept = max_kept
        self._items: list[Notification] = []
        self._subscribers: list[Subscriber] = []
        self._expiry: dict[str, asyncio.TimerHandle] = {}
        self.unread_count = 0

    @property
    def notifications(self) -> list[Notification]:
        return list(self._items)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return unsubscribe

    def publish(self, notification: Notification) -> Notification:
        self._items.insert(0, notification)
        for dropped in self._items[self._max_kept:]:
            self._cancel_expiry(dropped.id)
        del self._items[self._max_kept:]
        self.unread_count += 1
        self._schedule_expiry(notification)
        for callback in list(self._subscribers):
            try:
                callback(notification)
            except Exception:
                logger.exception("notification subscriber failed")
        return notification

    def remove(self, notification_id: str) -> None:
        self._cancel_expiry(notification_id)
        for idx, item in enumerate(self._items):
            if item.id == notification_id:
                del self._items[idx]
                if not item.acknowledged:
                    self.unread_count = max(0, self.unread_count - 1)
                return

    def acknowledge(self, notification_id: str) -> None:
        for idx, item in enumerate(self._items):
            if item.id == notification_id and not item.acknowledged:
                self._items[idx] = replace(item, acknowledged=True)
                self.unread_count = max(0, self.unread_count - 1)
                return

    def acknowledge_all(self) -> None:
        self._items = [replace(item, acknowledged=True) for item in self._items]
        self.unread_count = 0

    def clear(self) -> None:
        for notification_id in list(self._expiry):
            self._cancel_expiry(notification_id)
        self._items.clear()
        self.unread_count = 0

    def _schedule_expiry(self, notification: Notification) -> None:
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return
        delay = notification.effective_duration_ms / 1000
        self._expiry[notification.id] = loop.call_later(delay, self.remove, notification.id)

    def _cancel_expiry(self, notification_id: str) -> None:
        handle = self._expiry.pop(notification_id, None)
        if handle is not None:
            handle.cancel()
