"""Polling notification engine for SMB Notifier.

Keeps the set of names last seen in the watched directory, polls the
directory on a background thread and reports the difference between
successive listings to a :class:`~smb_notify.handlers.NotificationHandler`.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable
from enum import Enum
from typing import Any

from smb_notify.errors import (
    IllegalStateError,
    InvalidArgumentError,
    ListingError,
    NotifierConnectionError,
    PathFormatError,
)
from smb_notify.handlers import NotificationHandler, is_handler
from smb_notify.lister import DirectoryLister, NtlmCredentials, SmbDirectoryLister

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 500


class LifecycleState(Enum):
    """Lifecycle of a notifier.  STOPPED is terminal."""

    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class NotificationEngine:
    """Creation and deletion notifications for one remote directory.

    Construction connects to *path* and records its current contents;
    nothing is reported for entries that already exist.  Call
    :meth:`start` to begin polling and :meth:`stop` to end it for good.

    Usage:
        creds = NtlmCredentials.from_user_info("WORKGROUP;alice:secret")
        engine = NotificationEngine("smb://host/share/dir/", creds, handler)
        engine.start(500)
        ...
        engine.stop()

    Parameters
    ----------
    path : str
        Directory to watch, in the form the lister understands
        (``smb://host/share/dir/`` for the default SMB lister).
    authentication : NtlmCredentials
        Credentials used to open the session.
    handler : NotificationHandler
        Receives ``on_create(name)`` and ``on_delete(name)`` calls.
    lister : DirectoryLister, optional
        Transport used to list the directory.  Defaults to
        :class:`~smb_notify.lister.SmbDirectoryLister`.

    Raises
    ------
    InvalidArgumentError
        If *authentication* or *handler* is missing.
    PathFormatError
        If *path* is missing or malformed.
    NotifierConnectionError
        If the directory cannot be reached or the credentials are rejected.
    """

    def __init__(
        self,
        path: Any,
        authentication: Any,
        handler: NotificationHandler,
        lister: DirectoryLister | None = None,
    ):
        if authentication is None or (
            isinstance(authentication, NtlmCredentials) and not authentication.username
        ):
            raise InvalidArgumentError("Authentication credentials are required.")
        if handler is None or not is_handler(handler):
            raise InvalidArgumentError(
                "A handler with on_create and on_delete callbacks is required."
            )
        if path is None or not str(path).strip():
            raise PathFormatError(f"No directory path given: {path!r}")

        self._path = path
        self._authentication = authentication
        self._handler = handler
        self._lister: DirectoryLister = lister or SmbDirectoryLister()

        self._lock = threading.Lock()
        self._poll_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._state = LifecycleState.CREATED
        self._thread: threading.Thread | None = None

        self._session = self._lister.connect(path, authentication)
        try:
            # Only the tick holding _poll_lock rebinds this
            self._known: set[str] = set(self._lister.list(self._session))
        except ListingError as exc:
            raise NotifierConnectionError(
                f"Initial listing of {path} failed: {exc}"
            ) from exc
        logger.info("Connected to %s (%d existing entries)", path, len(self._known))

    # ---- lifecycle ----

    def start(self, interval_ms: float = DEFAULT_INTERVAL_MS) -> bool:
        """Start polling every *interval_ms* milliseconds on a new thread.

        Returns True if polling was started, or False if it is already
        running (no second thread is created).

        Raises :class:`IllegalStateError` once :meth:`stop` has been called.
        """
        if (
            not math.isfinite(interval_ms)
            or interval_ms < 0
            or interval_ms / 1000.0 > threading.TIMEOUT_MAX
        ):
            raise InvalidArgumentError(f"Invalid poll interval: {interval_ms!r} ms")
        with self._lock:
            if self._state is LifecycleState.STOPPED:
                raise IllegalStateError("Cannot restart a stopped notifier.")
            if self._state is LifecycleState.RUNNING:
                return False
            self._state = LifecycleState.RUNNING
            self._thread = threading.Thread(
                target=self._poll,
                args=(interval_ms / 1000.0,),
                daemon=True,
                name=f"SmbNotifier-{self._path}",
            )
            self._thread.start()
        logger.info("Polling %s every %s ms", self._path, interval_ms)
        return True

    listen = start

    def stop(self) -> None:
        """Stop polling permanently.

        Safe to call in any state and more than once.  A listing already
        in progress is allowed to finish; the thread exits afterwards.
        """
        with self._lock:
            previous = self._state
            self._state = LifecycleState.STOPPED
        self._stop_event.set()
        if previous is not LifecycleState.STOPPED:
            logger.info("Notifier for %s stopped.", self._path)

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the poll thread to exit.

        Returns True when no poll thread is alive afterwards.
        """
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def __enter__(self) -> NotificationEngine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def state(self) -> LifecycleState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        """Return whether the notifier is currently polling."""
        return self.state is LifecycleState.RUNNING

    # ---- polling ----

    def _poll(self, interval: float) -> None:
        while self.is_running:
            try:
                self.poll_once()
            except ListingError as exc:
                logger.error("Listing failed for %s: %s", self._path, exc)
            except Exception:
                logger.exception("Unexpected error while polling %s", self._path)
            if self._stop_event.wait(timeout=interval):
                break
        logger.debug("Poll thread for %s exiting.", self._path)

    def poll_once(self) -> tuple[set[str], set[str]]:
        """Run a single poll synchronously.

        Returns ``(added, removed)``.  A failed listing raises
        :class:`ListingError` and leaves the known entries untouched.
        """
        with self._poll_lock:
            handler = self.handler
            current = set(self._lister.list(self._session))
            removed = self._known - current
            added = current - self._known
            self._known = current

            for name in sorted(removed):
                logger.debug("Deleted: %s", name)
                self._dispatch(handler.on_delete, name)
            for name in sorted(added):
                logger.debug("Created: %s", name)
                self._dispatch(handler.on_create, name)
        return added, removed

    @staticmethod
    def _dispatch(callback: Callable[[str], None], name: str) -> None:
        try:
            callback(name)
        except Exception:
            logger.exception("Error in notification callback for %s", name)

    # ---- accessors ----

    @property
    def path(self) -> Any:
        return self._path

    @property
    def session(self) -> Any:
        """The lister session opened at construction."""
        return self._session

    @property
    def known_files(self) -> frozenset[str]:
        """Snapshot of the names seen by the last completed poll."""
        return frozenset(self._known)

    @property
    def handler(self) -> NotificationHandler:
        with self._lock:
            return self._handler

    @handler.setter
    def handler(self, handler: NotificationHandler) -> None:
        """Replace the handler; the next poll dispatches to it."""
        if handler is None or not is_handler(handler):
            raise InvalidArgumentError(
                "A handler with on_create and on_delete callbacks is required."
            )
        with self._lock:
            self._handler = handler

    @property
    def authentication(self) -> Any:
        with self._lock:
            return self._authentication

    @authentication.setter
    def authentication(self, authentication: Any) -> None:
        """Store new credentials.

        This has no effect on the session opened at construction, which
        persists for the notifier's whole life.
        """
        with self._lock:
            self._authentication = authentication
