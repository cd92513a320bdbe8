from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Mapping

import socketio

from ..errors import StoreError
from ..game.timer import now_ms
from .base import ChangeCallback, Store, Subscription, split_path


log = logging.getLogger(__name__)


class SocketIOStore(Store):
    """Store client talking to the server's ``store:*`` Socket.IO events.

    Listeners for the same path share one server-side subscription; the
    server pushes ``store:value`` and this class fans it out locally.
    """

    def __init__(self, url: str, timeout: float = 5.0, client: socketio.Client | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._sio = client or socketio.Client()
        self._lock = threading.RLock()
        self._listeners: dict[str, dict[int, ChangeCallback]] = {}
        self._tokens = itertools.count()
        self._sio.on("store:value", self._on_value)

    def connect(self) -> SocketIOStore:
        try:
            self._sio.connect(self.url, wait_timeout=self.timeout)
        except socketio.exceptions.SocketIOError as exc:
            raise StoreError(f"Cannot reach store at {self.url}: {exc}", code="store_unreachable") from exc
        self.sync_clock()
        return self

    def close(self) -> None:
        with self._lock:
            self._listeners.clear()
        if self._sio.connected:
            self._sio.disconnect()

    def sync_clock(self) -> int:
        sent = now_ms()
        ack = self._call("store:time")
        received = now_ms()
        self.clock_offset_ms = int(ack.get("nowMs", received)) - (sent + received) // 2
        return self.clock_offset_ms

    def _call(self, event: str, payload: dict | None = None) -> dict:
        try:
            ack = self._sio.call(event, payload or {}, timeout=self.timeout)
        except socketio.exceptions.SocketIOError as exc:
            log.exception("store call %s failed", event)
            raise StoreError(f"{event} failed: {exc}") from exc

        if not isinstance(ack, dict) or not ack.get("ok"):
            code = ack.get("error") if isinstance(ack, dict) else None
            raise StoreError(f"{event} rejected: {code}", code=code or "store_error")
        return ack

    def set(self, path: str, value: Any) -> None:
        self._call("store:set", {"path": "/".join(split_path(path)), "value": value})

    def update(self, path: str, fields: Mapping[str, Any]) -> None:
        self._call("store:update", {"path": "/".join(split_path(path)), "value": dict(fields)})

    def remove(self, path: str) -> None:
        self._call("store:remove", {"path": "/".join(split_path(path))})

    def once(self, path: str) -> Any:
        return self._call("store:once", {"path": "/".join(split_path(path))}).get("value")

    def on(self, path: str, callback: ChangeCallback) -> Subscription:
        key = "/".join(split_path(path))
        token = next(self._tokens)
        with self._lock:
            first = key not in self._listeners
            self._listeners.setdefault(key, {})[token] = callback

        def _cancel() -> None:
            with self._lock:
                callbacks = self._listeners.get(key)
                if callbacks is None:
                    return
                callbacks.pop(token, None)
                last = not callbacks
                if last:
                    del self._listeners[key]
            if last and self._sio.connected:
                self._call("store:unsubscribe", {"path": key})

        subscription = Subscription(key, _cancel)
        if first:
            try:
                # The server answers with the current value as a push.
                self._call("store:subscribe", {"path": key})
            except StoreError:
                with self._lock:
                    self._listeners.pop(key, None)
                raise
        else:
            callback(self.once(key))
        return subscription

    def off(self, path: str) -> None:
        key = "/".join(split_path(path))
        with self._lock:
            had = self._listeners.pop(key, None)
        if had and self._sio.connected:
            self._call("store:unsubscribe", {"path": key})

    def _on_value(self, data: dict) -> None:
        payload = data or {}
        key = "/".join(split_path(str(payload.get("path", ""))))
        with self._lock:
            callbacks = list((self._listeners.get(key) or {}).values())
        for cb in callbacks:
            try:
                cb(payload.get("value"))
            except Exception:
                log.exception("store listener failed for %s", key)
