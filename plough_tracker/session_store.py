"""Key-value stores holding boundary drafts and ploughing session snapshots.

Values are opaque bytes produced by :mod:`plough_tracker.snapshots`. The
in-memory store suits tests and embedding hosts with their own persistence;
the file store keeps one file per key and replaces it atomically so a crash
mid-write never leaves a truncated snapshot behind.
"""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol

from .config import SESSION_STORE_DIR
from .errors import SessionStoreError

_LOGGER = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class SessionStore(Protocol):
    """Minimal persistence interface used by the builder and tracker."""

    def get(self, key: str) -> Optional[bytes]: ...

    def set(self, key: str, value: bytes) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemorySessionStore:
    """Thread-safe dictionary-backed store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: Dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


class FileSessionStore:
    """Directory-backed store writing one ``<key>.snapshot`` file per key."""

    def __init__(self, base_dir: str | Path | None = None) -> None:
        base = Path(base_dir if base_dir is not None else SESSION_STORE_DIR)
        self._base_dir = base if base.is_absolute() else Path.cwd() / base
        self._lock = threading.Lock()
        _LOGGER.debug("Session store directory=%s", self._base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _file_path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid session store key: {key!r}")
        return self._base_dir / f"{key}.snapshot"

    def get(self, key: str) -> Optional[bytes]:
        path = self._file_path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            _LOGGER.error("Failed reading session snapshot %s: %s", path, exc)
            return None

    def set(self, key: str, value: bytes) -> None:
        path = self._file_path(key)
        temp_path = path.with_suffix(".tmp")
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                temp_path.write_bytes(value)
                temp_path.replace(path)
            except OSError as exc:
                raise SessionStoreError(
                    f"Failed writing session snapshot {path}: {exc}"
                ) from exc
        _LOGGER.debug("Stored session snapshot key=%s bytes=%d", key, len(value))

    def remove(self, key: str) -> None:
        path = self._file_path(key)
        with self._lock:
            try:
                path.unlink()
            except FileNotFoundError:
                return
            except OSError as exc:
                raise SessionStoreError(
                    f"Failed removing session snapshot {path}: {exc}"
                ) from exc
        _LOGGER.debug("Removed session snapshot key=%s", key)


__all__ = ["SessionStore", "InMemorySessionStore", "FileSessionStore"]
