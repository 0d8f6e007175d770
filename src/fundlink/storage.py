"""Key-value persistence.

Two store flavours stand in for the browser's storage areas: ``FileStore``
is durable (one JSON file per key under a directory) and ``MemoryStore`` is
session-scoped. ``Persistence`` wraps either with JSON (de)serialization and
the best-effort policy: a failed read yields the caller's fallback and a
failed write is logged and dropped.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Optional

from .errors import PersistenceError

logger = logging.getLogger(__name__)

# Durable keys
BASKET_KEY = "fundlink_basket"
CLIENT_KEY = "fundlink_client"
NAV_KEY = "fundlink_nav"
VIEW_MODE_KEY = "fundlink_view_mode"

# Session key
FUNDS_KEY = "fundlink_funds"

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore:
    """Minimal string store interface (mirrors Web Storage)."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """In-process store, optionally bounded to emulate a storage quota."""

    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(len(k) + len(v) for k, v in self._items.items() if k != key)
            if used + len(key) + len(value) > self.quota_bytes:
                raise PersistenceError(f"Quota of {self.quota_bytes} bytes exceeded writing {key}")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class FileStore(KeyValueStore):
    """Durable store keeping each key in ``<directory>/<key>.json``."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise PersistenceError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Could not read {path}: {e}") from e

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(value, encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise PersistenceError(f"Could not write {path}: {e}") from e

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise PersistenceError(f"Could not remove {path}: {e}") from e


class Persistence:
    """Typed JSON access to a KeyValueStore that never raises."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def read(self, key: str, fallback: Any = None) -> Any:
        """Return the decoded value for key, or fallback if missing/unreadable."""
        try:
            raw = self.store.get_item(key)
        except PersistenceError as e:
            logger.warning(f"Read of {key} failed, using fallback: {e}")
            return fallback
        if not raw:
            return fallback
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Stored value for {key} is not valid JSON, using fallback: {e}")
            return fallback

    def write(self, key: str, value: Any) -> bool:
        """Encode and store value. Returns False if the write was dropped."""
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.warning(f"Could not serialize value for {key}: {e}")
            return False
        try:
            self.store.set_item(key, payload)
        except PersistenceError as e:
            logger.warning(f"Write of {key} dropped: {e}")
            return False
        return True

    def remove(self, key: str) -> bool:
        try:
            self.store.remove_item(key)
        except PersistenceError as e:
            logger.warning(f"Removal of {key} dropped: {e}")
            return False
        return True
