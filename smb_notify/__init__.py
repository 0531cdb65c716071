"""SMB Notifier: creation and deletion notifications for SMB/CIFS shares.

Polls a remote directory listing at a fixed interval, diffs it against the
last known contents and reports every added or removed entry to a handler.
"""

__version__ = "1.0.0"
__app_name__ = "SMB Notifier"
