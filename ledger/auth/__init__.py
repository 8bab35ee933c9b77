"""Identity package: sessions and user records."""

from ledger.auth.sessions import SessionManager
from ledger.auth.users import UserDirectory

__all__ = ["SessionManager", "UserDirectory"]
