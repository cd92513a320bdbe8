from __future__ import annotations

import abc
import threading
from typing import Any, Callable, Mapping

from ..errors import StoreError


# Placeholder replaced by the store's clock (epoch ms) when written.
SERVER_TIMESTAMP: Mapping[str, str] = {".sv": "timestamp"}

_FORBIDDEN_KEY_CHARS = set(".$#[]")

ChangeCallback = Callable[[Any], None]


def split_path(path: str) -> list[str]:
    segments = [s for s in (path or "").strip().strip("/").split("/") if s]
    for s in segments:
        if _FORBIDDEN_KEY_CHARS & set(s):
            raise StoreError(f"Invalid path segment {s!r}", code="invalid_path")
    return segments


def join_path(*parts: str) -> str:
    return "/".join(str(p).strip("/") for p in parts if p not in (None, ""))


def room_path(code: str) -> str:
    return join_path("rooms", code)


def players_path(code: str, player_id: str | None = None) -> str:
    return join_path("rooms", code, "players", player_id or "")


def submissions_path(code: str, player_id: str | None = None) -> str:
    return join_path("rooms", code, "submissions", player_id or "")


def is_server_timestamp(value: Any) -> bool:
    return isinstance(value, Mapping) and dict(value) == dict(SERVER_TIMESTAMP)


def normalize_value(value: Any, now: int) -> Any:
    """Return the stored form of ``value``.

    ``None`` children are dropped, empty containers collapse to ``None`` and
    server timestamp placeholders resolve to ``now``.
    """
    if value is None:
        return None
    if is_server_timestamp(value):
        return now
    if isinstance(value, bool) or isinstance(value, (str, int, float)):
        return value
    if isinstance(value, Mapping):
        out = {}
        for k, v in value.items():
            key = str(k)
            if not key or _FORBIDDEN_KEY_CHARS & set(key) or "/" in key:
                raise StoreError(f"Invalid key {key!r}", code="invalid_key")
            nv = normalize_value(v, now)
            if nv is not None:
                out[key] = nv
        return out or None
    if isinstance(value, (list, tuple)):
        items = [normalize_value(v, now) for v in value]
        items = [v for v in items if v is not None]
        return items or None
    raise StoreError(f"Cannot store value of type {type(value).__name__}", code="invalid_value")


class Subscription:
    """Handle for one change listener. ``unsubscribe`` is idempotent."""

    def __init__(self, path: str, on_cancel: Callable[[], None]) -> None:
        self.path = path
        self._on_cancel = on_cancel
        self._lock = threading.Lock()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
        self._on_cancel()

    def __repr__(self) -> str:
        state = "active" if self._active else "closed"
        return f"<Subscription {self.path!r} {state}>"


class Store(abc.ABC):
    """A path-addressed key/value tree with push notifications."""

    # Server clock minus local clock, in ms.
    clock_offset_ms: int = 0

    @abc.abstractmethod
    def set(self, path: str, value: Any) -> None:
        ...

    @abc.abstractmethod
    def update(self, path: str, fields: Mapping[str, Any]) -> None:
        """Write several children of ``path`` at once.

        Keys may be relative paths (``"players/abc"``); a ``None`` value
        removes that child.
        """

    def remove(self, path: str) -> None:
        self.set(path, None)

    @abc.abstractmethod
    def once(self, path: str) -> Any:
        ...

    @abc.abstractmethod
    def on(self, path: str, callback: ChangeCallback) -> Subscription:
        """Call ``callback(value)`` now and after every change under ``path``."""

    @abc.abstractmethod
    def off(self, path: str) -> None:
        """Drop every listener registered on exactly ``path``."""

    def close(self) -> None:
        pass
