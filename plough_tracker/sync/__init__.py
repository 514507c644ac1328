"""HTTP submission of registrations, boundaries and ploughing sessions."""

from .client import SyncClient, SyncResult
from .session import create_default_session, get_default_session

__all__ = [
    "SyncClient",
    "SyncResult",
    "create_default_session",
    "get_default_session",
]
