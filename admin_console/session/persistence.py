"""
Persisted session record and cookie jar.

The record is a single JSON object overwritten as a whole. The session
manager is its only writer; the gateway's 401 path may only delete it
through ``SessionStore.invalidate``.
"""

import json
import os
import tempfile
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from ..logging import get_logger

logger = get_logger("session")


class StoreEvent(str, Enum):
    """Change notifications emitted by the session store."""
    SAVED = "saved"
    CLEARED = "cleared"    # Local logout
    EXPIRED = "expired"    # Remote authority rejected the session (401)


StoreListener = Callable[[StoreEvent], None]


def _atomic_write(path: Path, payload: Any) -> None:
    """Write JSON via a temp file + rename so readers never see a partial record."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


class SessionStore:
    """Holds the persisted session record and fans out change events.

    Constructed once per process and passed by reference to the gateway
    client, the session manager and the UI layer. ``path=None`` keeps the
    record in memory only.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else None
        self._memory: Optional[dict] = None
        self._listeners: list[StoreListener] = []

    def load(self) -> Optional[dict]:
        """Return the persisted record, or None if absent or unreadable."""
        if self.path is None:
            return dict(self._memory) if self._memory is not None else None
        try:
            if not self.path.exists():
                return None
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session record {self.path}: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Ignoring session record with unexpected shape in {self.path}")
            return None
        return data

    def save(self, record: dict) -> None:
        """Overwrite the whole record."""
        if self.path is None:
            self._memory = dict(record)
        else:
            _atomic_write(self.path, record)
        self._emit(StoreEvent.SAVED)

    def clear(self) -> None:
        """Delete the record. Idempotent."""
        self._delete()
        self._emit(StoreEvent.CLEARED)

    def invalidate(self) -> None:
        """Delete the record because the backend rejected it."""
        self._delete()
        self._emit(StoreEvent.EXPIRED)

    @property
    def has_record(self) -> bool:
        if self.path is None:
            return self._memory is not None
        return self.path.exists()

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _delete(self) -> None:
        self._memory = None
        if self.path is not None:
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass

    def _emit(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Session store listener failed on {event.value}")


def load_cookies(path: Optional[Path]) -> list[dict]:
    """Read a persisted cookie jar (list of name/value/domain/path dicts)."""
    if path is None:
        return []
    try:
        if path.exists():
            data = json.loads(path.read_text(encoding="utf-8"))
            if isinstance(data, list):
                return [c for c in data if isinstance(c, dict) and "name" in c]
    except (OSError, ValueError) as e:
        logger.debug(f"Cookie jar unreadable, starting empty: {e}")
    return []


def save_cookies(path: Optional[Path], cookies: list[dict]) -> None:
    """Persist the cookie jar; an empty jar removes the file."""
    if path is None:
        return
    if not cookies:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        return
    _atomic_write(path, cookies)
