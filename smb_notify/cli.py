"""
Command-line runner for SMB Notifier.

Watches one SMB directory and prints a line for every entry that is
added or deleted, until interrupted:

    smb-notifier "smb://host/share/dir/" "WORKGROUP" "alice" "secret"

The poll interval, port, timeout, name filters and logging options are
read from the JSON config file (see :mod:`smb_notify.config`).
"""

from __future__ import annotations

import logging
import logging.handlers
import signal
import sys
from collections.abc import Sequence
from pathlib import Path

from smb_notify import __app_name__, __version__
from smb_notify.config import Config, get_log_path
from smb_notify.errors import NotifierError
from smb_notify.handlers import ConsoleHandler, FilteredHandler, NotificationHandler
from smb_notify.lister import DirectoryLister, NtlmCredentials, SmbDirectoryLister
from smb_notify.notifier import NotificationEngine

logger = logging.getLogger(__name__)

USAGE = 'Usage: smb-notifier "<smb url>" "<domain>" "<login name>" "<password>"'


def setup_logging(cfg: Config, log_path: Path | None = None) -> None:
    """Configure rotating file log and stderr handler."""
    log_path = log_path or get_log_path()
    level = getattr(logging, cfg.log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    # Rotating file handler
    max_bytes = cfg.max_log_size_mb * 1024 * 1024
    fh = logging.handlers.RotatingFileHandler(
        str(log_path),
        maxBytes=max_bytes,
        backupCount=cfg.log_backup_count,
        encoding="utf-8",
    )
    fh.setLevel(level)
    fh.setFormatter(fmt)
    root_logger.addHandler(fh)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root_logger.addHandler(sh)


def build_handler(cfg: Config) -> NotificationHandler:
    """Return the console handler, filtered when patterns are configured."""
    handler: NotificationHandler = ConsoleHandler()
    if cfg.include_patterns or cfg.exclude_patterns:
        handler = FilteredHandler(handler, cfg.include_patterns, cfg.exclude_patterns)
    return handler


def run(
    url: str,
    domain: str,
    user: str,
    password: str,
    config: Config | None = None,
    lister: DirectoryLister | None = None,
) -> int:
    """Watch *url* until SIGINT/SIGTERM.  Returns the process exit status."""
    cfg = config or Config()
    credentials = NtlmCredentials(username=user, password=password, domain=domain)
    lister = lister or SmbDirectoryLister(
        port=cfg.smb_port, connection_timeout=cfg.connection_timeout
    )

    try:
        notifier = NotificationEngine(url, credentials, build_handler(cfg), lister)
    except NotifierError:
        logger.exception("Could not watch %s", url)
        return 1

    def _handler(sig, frame):
        notifier.stop()

    previous = {
        sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        notifier.start(cfg.poll_interval_ms)
        print(f"{__app_name__} watching {url} (press Ctrl-C to stop)…")
        # Short joins keep the main thread responsive to signals
        while not notifier.join(timeout=1.0):
            pass
    finally:
        notifier.stop()
        for sig, old in previous.items():
            signal.signal(sig, old)
        disconnect = getattr(lister, "disconnect", None)
        if disconnect is not None:
            disconnect(notifier.session)
    print(f"{__app_name__} stopped.")
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for the ``smb-notifier`` command."""
    args = list(sys.argv[1:] if argv is None else argv)
    if args and args[0] in ("-V", "--version"):
        print(f"{__app_name__} {__version__}")
        return
    if len(args) < 4:
        print(USAGE)
        sys.exit(1)

    cfg = Config()
    setup_logging(cfg)
    sys.exit(run(args[0], args[1], args[2], args[3], config=cfg))
