"""HTTP session factory for sync endpoint calls."""

from __future__ import annotations

import requests
from requests import Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import SYNC_BACKOFF_FACTOR, SYNC_MAX_RETRIES

__all__ = ["create_default_session", "get_default_session"]


def _build_retry() -> Retry:
    return Retry(
        total=SYNC_MAX_RETRIES,
        backoff_factor=SYNC_BACKOFF_FACTOR,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET", "POST"],
    )


def create_default_session() -> Session:
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=_build_retry())
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update(
        {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
    )
    return session


_DEFAULT_SESSION: Session | None = None


def get_default_session() -> Session:
    """Return the shared default sync session, creating it on first use."""

    global _DEFAULT_SESSION
    if _DEFAULT_SESSION is None:
        _DEFAULT_SESSION = create_default_session()
    return _DEFAULT_SESSION
