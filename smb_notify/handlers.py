"""Notification handlers for SMB Notifier.

A handler receives the name of every entry that appeared in or vanished
from the watched directory.  Handlers run on the engine's poll thread,
inline with the poll cadence, so they must not block for long.
"""

from __future__ import annotations

import fnmatch
import logging
import posixpath
import sys
from collections.abc import Callable
from typing import Protocol, TextIO

from watchdog.events import (
    FileCreatedEvent,
    FileDeletedEvent,
    FileSystemEventHandler,
)

logger = logging.getLogger(__name__)


class NotificationHandler(Protocol):
    """Expected callback interface for engine notifications."""

    def on_create(self, name: str) -> None:
        """Called with the relative name of a newly created entry."""
        ...

    def on_delete(self, name: str) -> None:
        """Called with the relative name of a deleted entry."""
        ...


def is_handler(obj: object) -> bool:
    """Return True if *obj* provides both notification callbacks."""
    return callable(getattr(obj, "on_create", None)) and callable(
        getattr(obj, "on_delete", None)
    )


class CallbackHandler:
    """Adapts a pair of plain functions to the handler interface."""

    def __init__(
        self,
        on_create: Callable[[str], None],
        on_delete: Callable[[str], None],
    ):
        self._on_create = on_create
        self._on_delete = on_delete

    def on_create(self, name: str) -> None:
        self._on_create(name)

    def on_delete(self, name: str) -> None:
        self._on_delete(name)


class ConsoleHandler:
    """Prints one line per change, e.g. ``report.txt added.``"""

    def __init__(self, stream: TextIO | None = None):
        self._stream = stream

    def _write(self, line: str) -> None:
        stream = self._stream or sys.stdout
        print(line, file=stream, flush=True)

    def on_create(self, name: str) -> None:
        self._write(f"{name} added.")

    def on_delete(self, name: str) -> None:
        self._write(f"{name} deleted.")


class FilteredHandler:
    """Forwards only the names that pass include/exclude glob patterns.

    Matching is case-insensitive, since SMB shares usually are.  An
    empty include list accepts every name.
    """

    def __init__(
        self,
        inner: NotificationHandler,
        include_patterns: list[str] | None = None,
        exclude_patterns: list[str] | None = None,
    ):
        self._inner = inner
        self._include_patterns = include_patterns or []
        self._exclude_patterns = exclude_patterns or []

    @property
    def inner(self) -> NotificationHandler:
        return self._inner

    def update_patterns(
        self,
        include_patterns: list[str] | None = None,
        exclude_patterns: list[str] | None = None,
    ) -> None:
        """Hot-update the include and exclude patterns."""
        self._include_patterns = include_patterns or []
        self._exclude_patterns = exclude_patterns or []

    def accepts(self, name: str) -> bool:
        lowered = name.lower()
        if self._include_patterns:
            matched = any(
                fnmatch.fnmatch(lowered, p.lower()) for p in self._include_patterns
            )
            if not matched:
                logger.debug("Ignoring %s (does not match any include pattern)", name)
                return False
        for pattern in self._exclude_patterns:
            if fnmatch.fnmatch(lowered, pattern.lower()):
                logger.debug("Excluding %s (matches %s)", name, pattern)
                return False
        return True

    def on_create(self, name: str) -> None:
        if self.accepts(name):
            self._inner.on_create(name)

    def on_delete(self, name: str) -> None:
        if self.accepts(name):
            self._inner.on_delete(name)


class WatchdogHandlerAdapter:
    """Feeds changes into a watchdog ``FileSystemEventHandler``.

    Lets code written against watchdog's local observers receive the
    polled remote changes unchanged.  Each name is joined onto
    *base_path* to form the event's ``src_path``.
    """

    def __init__(self, event_handler: FileSystemEventHandler, base_path: str = ""):
        self._event_handler = event_handler
        self._base_path = base_path

    def _src_path(self, name: str) -> str:
        if not self._base_path:
            return name
        return posixpath.join(self._base_path, name)

    def on_create(self, name: str) -> None:
        self._event_handler.dispatch(FileCreatedEvent(self._src_path(name)))

    def on_delete(self, name: str) -> None:
        self._event_handler.dispatch(FileDeletedEvent(self._src_path(name)))
