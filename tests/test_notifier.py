import math
import threading

import pytest
import smbclient

from conftest import FakeLister, RecordingHandler, wait_until
from smb_notify.errors import (
    IllegalStateError,
    InvalidArgumentError,
    ListingError,
    NotifierConnectionError,
    PathFormatError,
)
from smb_notify.lister import NtlmCredentials, SmbDirectoryLister
from smb_notify.notifier import LifecycleState, NotificationEngine

URL = "smb://host/share/dir/"


def make_engine(credentials, handler, *listings, path=URL, **kwargs):
    lister = FakeLister(*listings, **kwargs)
    return NotificationEngine(path, credentials, handler, lister), lister


def poll_threads(path):
    return [t for t in threading.enumerate() if t.name == f"SmbNotifier-{path}"]


# ---- construction ----


def test_missing_credentials_rejected(handler) -> None:
    with pytest.raises(InvalidArgumentError):
        NotificationEngine(URL, None, handler, FakeLister())


def test_empty_username_rejected(handler) -> None:
    with pytest.raises(InvalidArgumentError):
        NotificationEngine(URL, NtlmCredentials(username=""), handler, FakeLister())


def test_missing_handler_rejected(credentials) -> None:
    with pytest.raises(InvalidArgumentError):
        NotificationEngine(URL, credentials, None, FakeLister())


def test_handler_without_callbacks_rejected(credentials) -> None:
    with pytest.raises(InvalidArgumentError):
        NotificationEngine(URL, credentials, object(), FakeLister())


def test_missing_path_rejected(credentials, handler) -> None:
    lister = FakeLister()
    with pytest.raises(PathFormatError):
        NotificationEngine(None, credentials, handler, lister)
    assert lister.connects == []


def test_malformed_smb_url_rejected(credentials, handler) -> None:
    with pytest.raises(PathFormatError):
        NotificationEngine("smb//", credentials, handler, SmbDirectoryLister())


def test_rejected_credentials_raise_connection_error(
    credentials, handler, monkeypatch
) -> None:
    from smbprotocol.exceptions import SMBAuthenticationError

    def refuse(server, **kwargs):
        raise SMBAuthenticationError("logon failure")

    monkeypatch.setattr(smbclient, "register_session", refuse)
    with pytest.raises(NotifierConnectionError):
        NotificationEngine(URL, credentials, handler, SmbDirectoryLister())


def test_failed_initial_listing_raises_connection_error(credentials, handler) -> None:
    with pytest.raises(NotifierConnectionError):
        make_engine(credentials, handler, ListingError("access denied"))


def test_construction_snapshots_without_notifying(credentials, handler) -> None:
    engine, lister = make_engine(credentials, handler, {"a", "b"})

    assert engine.known_files == {"a", "b"}
    assert lister.connects == [(URL, credentials)]
    assert lister.calls == 1
    assert handler.created == [] and handler.deleted == []
    assert engine.state is LifecycleState.CREATED


# ---- diffing ----


def test_poll_reports_added_and_removed(credentials, handler) -> None:
    engine, _ = make_engine(credentials, handler, {"A", "B", "C"}, {"B", "C", "D"})

    added, removed = engine.poll_once()

    assert added == {"D"}
    assert removed == {"A"}
    assert handler.created == ["D"]
    assert handler.deleted == ["A"]
    assert engine.known_files == {"B", "C", "D"}


def test_poll_reports_every_removed_name(credentials, handler) -> None:
    engine, _ = make_engine(credentials, handler, {"A", "B", "C"}, set())

    engine.poll_once()

    assert sorted(handler.deleted) == ["A", "B", "C"]
    assert handler.created == []
    assert engine.known_files == frozenset()


def test_unchanged_listing_reports_nothing(credentials, handler) -> None:
    engine, _ = make_engine(credentials, handler, {"A"})

    assert engine.poll_once() == (set(), set())
    assert handler.created == [] and handler.deleted == []


def test_failed_listing_keeps_known_files(credentials, handler) -> None:
    engine, _ = make_engine(
        credentials, handler, {"A", "B"}, ListingError("timeout"), {"B", "C"}
    )

    with pytest.raises(ListingError):
        engine.poll_once()
    assert engine.known_files == {"A", "B"}

    engine.poll_once()
    assert handler.deleted == ["A"]
    assert handler.created == ["C"]
    assert engine.known_files == {"B", "C"}


def test_failing_callback_does_not_abort_poll(credentials) -> None:
    seen = []

    class Flaky(RecordingHandler):
        def on_create(self, name):
            seen.append(name)
            if name == "a":
                raise RuntimeError("boom")
            super().on_create(name)

    handler = Flaky()
    engine, _ = make_engine(credentials, handler, set(), {"a", "b"})

    engine.poll_once()

    assert seen == ["a", "b"]
    assert handler.created == ["b"]
    assert engine.known_files == {"a", "b"}


# ---- lifecycle ----


def test_start_twice_runs_one_loop(credentials, handler) -> None:
    path = "smb://host/share/one-loop/"
    engine, lister = make_engine(credentials, handler, {"A"}, {"A", "B"}, path=path)

    assert engine.start(10) is True
    assert engine.start(10) is False
    assert len(poll_threads(path)) == 1

    assert wait_until(lambda: lister.calls >= 5)
    engine.stop()
    assert engine.join(timeout=5)

    assert handler.created == ["B"]
    assert poll_threads(path) == []


def test_listen_is_start(credentials, handler) -> None:
    engine, _ = make_engine(credentials, handler, set())
    try:
        assert engine.listen(10) is True
        assert engine.is_running
    finally:
        engine.stop()


def test_restart_after_stop_fails(credentials, handler) -> None:
    engine, _ = make_engine(credentials, handler, set())
    engine.start(10)
    engine.stop()

    with pytest.raises(IllegalStateError):
        engine.start(10)
    assert engine.state is LifecycleState.STOPPED


def test_stop_before_start_is_terminal(credentials, handler) -> None:
    engine, _ = make_engine(credentials, handler, set())
    engine.stop()
    engine.stop()

    with pytest.raises(IllegalStateError):
        engine.start(10)


def test_is_running_transitions(credentials, handler) -> None:
    engine, _ = make_engine(credentials, handler, set())

    assert engine.is_running is False
    engine.start(10)
    assert engine.is_running is True
    engine.stop()
    assert engine.is_running is False


def test_stop_wakes_sleeping_loop(credentials, handler) -> None:
    engine, lister = make_engine(credentials, handler, set())
    engine.start(60_000)
    assert wait_until(lambda: lister.calls >= 2)

    engine.stop()

    assert engine.join(timeout=5)


def test_negative_interval_rejected(credentials, handler) -> None:
    engine, _ = make_engine(credentials, handler, set())
    with pytest.raises(InvalidArgumentError):
        engine.start(-1)
    assert engine.state is LifecycleState.CREATED


@pytest.mark.parametrize(
    "interval_ms", [math.inf, math.nan, (threading.TIMEOUT_MAX + 1) * 1000.0]
)
def test_unusable_interval_rejected(credentials, handler, interval_ms) -> None:
    engine, _ = make_engine(credentials, handler, set())
    with pytest.raises(InvalidArgumentError):
        engine.start(interval_ms)
    assert engine.state is LifecycleState.CREATED

    assert engine.start(10) is True
    engine.stop()
    assert engine.join(timeout=5)


def test_context_manager_stops(credentials, handler) -> None:
    engine, _ = make_engine(credentials, handler, set())
    with engine:
        engine.start(10)
    assert engine.state is LifecycleState.STOPPED
    assert engine.join(timeout=5)


def test_loop_survives_listing_failure(credentials, handler) -> None:
    engine, _ = make_engine(
        credentials,
        handler,
        {"A"},
        ListingError("share offline"),
        ListingError("share offline"),
        {"A", "B"},
    )
    engine.start(10)
    try:
        assert wait_until(lambda: handler.created == ["B"])
        assert engine.is_running
    finally:
        engine.stop()
    assert engine.known_files == {"A", "B"}


def test_loop_survives_unexpected_error(credentials, handler) -> None:
    engine, _ = make_engine(credentials, handler, set(), KeyError("odd"), {"x"})
    engine.start(10)
    try:
        assert wait_until(lambda: handler.created == ["x"])
    finally:
        engine.stop()


# ---- accessors ----


def test_replaced_handler_used_from_next_poll(credentials) -> None:
    first = RecordingHandler()
    second = RecordingHandler()
    engine = None

    def swap_on_second_listing(calls):
        # Runs inside the tick, after the handler was picked
        if calls == 2:
            engine.handler = second

    engine, _ = make_engine(
        credentials, first, set(), {"a"}, {"a", "b"}, on_list=swap_on_second_listing
    )

    engine.poll_once()
    assert first.created == ["a"]
    assert second.created == []

    engine.poll_once()
    assert first.created == ["a"]
    assert second.created == ["b"]


def test_handler_setter_rejects_none(credentials, handler) -> None:
    engine, _ = make_engine(credentials, handler, set())
    with pytest.raises(InvalidArgumentError):
        engine.handler = None
    assert engine.handler is handler


def test_authentication_setter_only_stores(credentials, handler) -> None:
    engine, lister = make_engine(credentials, handler, set(), {"a"})
    other = NtlmCredentials(username="bob", password="pw")

    engine.authentication = other
    engine.poll_once()

    assert engine.authentication is other
    assert lister.connects == [(URL, credentials)]
    assert handler.created == ["a"]
