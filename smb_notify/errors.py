"""Exception types raised by SMB Notifier."""


class NotifierError(Exception):
    """Base class for all notifier errors."""


class InvalidArgumentError(NotifierError, ValueError):
    """Missing or unusable credentials, handler or interval."""


class PathFormatError(NotifierError, ValueError):
    """The target path is missing or is not a well-formed share path."""


class NotifierConnectionError(NotifierError, ConnectionError):
    """The share could not be reached or rejected the credentials."""


class ListingError(NotifierError, OSError):
    """A single directory listing failed.

    Raised per poll; the polling loop logs it and tries again on the
    next tick.
    """


class IllegalStateError(NotifierError, RuntimeError):
    """The requested lifecycle transition is not allowed."""
