# tests/conftest.py
import sys
import threading
import time
from pathlib import Path

import pytest

# Make `import smb_notify` work without an editable install.
ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from smb_notify.lister import NtlmCredentials  # noqa: E402


class FakeLister:
    """Scripted lister: returns the queued listings in order.

    An exception instance in the queue is raised instead of returned.
    The last item repeats once the queue is exhausted.
    """

    def __init__(self, *listings, on_list=None):
        self._listings = list(listings) or [set()]
        self._on_list = on_list
        self._lock = threading.Lock()
        self.calls = 0
        self.connects = []

    def connect(self, path, credentials):
        self.connects.append((path, credentials))
        return f"session:{path}"

    def list(self, session):
        with self._lock:
            self.calls += 1
            if len(self._listings) > 1:
                item = self._listings.pop(0)
            else:
                item = self._listings[0]
        if self._on_list is not None:
            self._on_list(self.calls)
        if isinstance(item, Exception):
            raise item
        return set(item)


class RecordingHandler:
    def __init__(self):
        self._lock = threading.Lock()
        self.created = []
        self.deleted = []

    def on_create(self, name):
        with self._lock:
            self.created.append(name)

    def on_delete(self, name):
        with self._lock:
            self.deleted.append(name)


def wait_until(predicate, timeout=5.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def credentials():
    return NtlmCredentials.from_user_info("WORKGROUP;alice:secret")


@pytest.fixture
def handler():
    return RecordingHandler()
