"""Entry point for SMB Notifier.

Usage:
    python -m smb_notify "<smb url>" "<domain>" "<login name>" "<password>"
"""

from smb_notify.cli import main

if __name__ == "__main__":
    main()
