"""Notification and progress signals consumed by the UI.

The browser polls these through the API: notifications render as toasts and
the progress value drives the "Processing image..." bar.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

MAX_HISTORY: int = 50


class Severity(StrEnum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    """A single user-facing notification."""

    title: str
    description: str
    severity: Severity = Severity.INFO


class Notifier:
    """Keeps a bounded history of notifications for the UI to poll."""

    def __init__(self, max_history: int = MAX_HISTORY) -> None:
        self._history: deque[Notification] = deque(maxlen=max_history)
        self._lock = threading.Lock()

    def notify(self, title: str, description: str, severity: Severity = Severity.INFO) -> Notification:
        notification = Notification(title=title, description=description, severity=severity)
        with self._lock:
            self._history.append(notification)
        logger.debug("Notification [%s] %s: %s", severity, title, description)
        return notification

    def recent(self) -> list[Notification]:
        """Return notifications oldest first."""
        with self._lock:
            return list(self._history)

    def drain(self) -> list[Notification]:
        """Return and clear pending notifications."""
        with self._lock:
            items = list(self._history)
            self._history.clear()
            return items


class ProgressTracker:
    """Progress value in [0, 100] that only moves forward until reset."""

    def __init__(self) -> None:
        self._value: float = 0.0
        self._listeners: list[Callable[[float], None]] = []
        self._lock = threading.Lock()

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def add_listener(self, callback: Callable[[float], None]) -> None:
        with self._lock:
            self._listeners.append(callback)

    def advance(self, value: float) -> None:
        """Raise progress to ``value``; lower values are ignored."""
        value = min(max(value, 0.0), 100.0)
        with self._lock:
            if value <= self._value:
                return
            self._value = value
            listeners = list(self._listeners)
        for listener in listeners:
            listener(value)

    def reset(self) -> None:
        with self._lock:
            if self._value == 0.0:
                return
            self._value = 0.0
            listeners = list(self._listeners)
        for listener in listeners:
            listener(0.0)
