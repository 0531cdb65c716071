"""Directory listers for SMB Notifier.

A lister knows how to reach a directory and return the names it
currently contains.  The notification engine only talks to the
:class:`DirectoryLister` protocol, so the SMB transport can be swapped
for a locally mounted share or a scripted fake in tests.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import urlsplit

import smbclient
from smbprotocol.exceptions import SMBAuthenticationError, SMBException

from smb_notify.errors import (
    ListingError,
    NotifierConnectionError,
    PathFormatError,
)

logger = logging.getLogger(__name__)

SMB_SCHEME = "smb"
DEFAULT_PORT = 445

# Pseudo-entries some servers return in a directory query
_DOT_ENTRIES = frozenset({".", ".."})


@dataclass(frozen=True)
class NtlmCredentials:
    """NTLM user credentials for an SMB session."""

    username: str
    password: str = field(default="", repr=False)
    domain: str = ""

    @classmethod
    def from_user_info(cls, user_info: str) -> NtlmCredentials:
        """Parse the ``DOMAIN;user:password`` form.

        Both the domain and the password are optional, so ``user`` and
        ``user:password`` are accepted as well.
        """
        domain = ""
        rest = user_info
        if ";" in rest:
            domain, rest = rest.split(";", 1)
        username, _, password = rest.partition(":")
        return cls(username=username, password=password, domain=domain)

    @property
    def account(self) -> str:
        """Return the account name as the server expects it."""
        if self.domain:
            return f"{self.domain}\\{self.username}"
        return self.username


@dataclass(frozen=True)
class SmbSession:
    """An authenticated session bound to one remote directory."""

    server: str
    port: int
    unc_path: str


class DirectoryLister(Protocol):
    """Expected interface for anything that can list a watched directory."""

    def connect(self, path: Any, credentials: Any) -> Any:
        """Open a session for *path*.

        Raises :class:`PathFormatError` for a malformed path and
        :class:`NotifierConnectionError` when the target is unreachable
        or rejects the credentials.
        """
        ...

    def list(self, session: Any) -> set[str]:
        """Return the entry names currently in the directory.

        Raises :class:`ListingError` when the listing fails.
        """
        ...


def parse_smb_url(url: Any, default_port: int = DEFAULT_PORT) -> tuple[str, int, str]:
    """
    Split an ``smb://host[:port]/share/dir/`` URL.

    Returns ``(server, port, unc_path)``.  The share component is
    mandatory; the trailing slash is optional.
    """
    if not isinstance(url, str) or not url.strip():
        raise PathFormatError(f"No SMB URL given: {url!r}")

    parts = urlsplit(url.strip())
    if parts.scheme.lower() != SMB_SCHEME:
        raise PathFormatError(f"Not an smb:// URL: {url!r}")
    if not parts.hostname:
        raise PathFormatError(f"SMB URL has no host: {url!r}")
    try:
        port = parts.port or default_port
    except ValueError as exc:
        raise PathFormatError(f"SMB URL has an invalid port: {url!r}") from exc

    segments = [s for s in parts.path.split("/") if s]
    if not segments:
        raise PathFormatError(f"SMB URL has no share name: {url!r}")

    unc_path = "\\\\" + "\\".join([parts.hostname, *segments])
    return parts.hostname, port, unc_path


class SmbDirectoryLister:
    """Lists a remote SMB/CIFS directory through smbprotocol."""

    def __init__(self, port: int = DEFAULT_PORT, connection_timeout: int = 60):
        self._port = port
        self._connection_timeout = connection_timeout

    def connect(self, path: Any, credentials: NtlmCredentials) -> SmbSession:
        server, port, unc_path = parse_smb_url(path, self._port)
        try:
            smbclient.register_session(
                server,
                username=credentials.account,
                password=credentials.password,
                port=port,
                connection_timeout=self._connection_timeout,
            )
        except SMBAuthenticationError as exc:
            raise NotifierConnectionError(
                f"Authentication failed for {credentials.account} on {server}: {exc}"
            ) from exc
        except (SMBException, OSError, ValueError) as exc:
            # smbprotocol reports unreachable hosts as ValueError
            raise NotifierConnectionError(
                f"Could not connect to {server}:{port}: {exc}"
            ) from exc
        logger.info("SMB session established with %s:%d", server, port)
        return SmbSession(server=server, port=port, unc_path=unc_path)

    def list(self, session: SmbSession) -> set[str]:
        try:
            names = smbclient.listdir(session.unc_path, port=session.port)
        except (SMBException, OSError, ValueError) as exc:
            raise ListingError(f"Could not list {session.unc_path}: {exc}") from exc
        return {n for n in names if n not in _DOT_ENTRIES}

    def disconnect(self, session: SmbSession) -> None:
        """Close the cached connection to the session's server."""
        try:
            smbclient.delete_session(session.server, port=session.port)
        except (SMBException, OSError, ValueError):
            logger.debug("Error closing SMB session.", exc_info=True)


class LocalDirectoryLister:
    """Lists a directory on a share that is already mounted locally.

    Credentials are accepted for interface compatibility and ignored;
    the operating system authenticated the mount.
    """

    def connect(self, path: Any, credentials: Any = None) -> Path:
        if path is None or not str(path).strip():
            raise PathFormatError(f"No directory path given: {path!r}")
        directory = Path(path)
        if not directory.is_dir():
            raise NotifierConnectionError(f"Directory is not reachable: {directory}")
        return directory

    def list(self, session: Path) -> set[str]:
        try:
            with os.scandir(session) as entries:
                return {entry.name for entry in entries}
        except OSError as exc:
            raise ListingError(f"Could not list {session}: {exc}") from exc
