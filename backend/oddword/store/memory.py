from __future__ import annotations

import collections
import copy
import itertools
import logging
import threading
from typing import Any, Callable, Mapping

from ..game.timer import now_ms
from .base import ChangeCallback, Store, Subscription, normalize_value, split_path


log = logging.getLogger(__name__)


def _related(a: list[str], b: list[str]) -> bool:
    n = min(len(a), len(b))
    return a[:n] == b[:n]


class InMemoryStore(Store):
    """Process-local store.

    Writes are serialized by a lock; listeners run after the lock is released,
    in registration order, and only when the value they watch changed.
    """

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        self._root: dict[str, Any] = {}
        self._listeners: dict[str, dict[int, ChangeCallback]] = {}
        self._tokens = itertools.count()
        self._local = threading.local()

    def _get(self, segments: list[str]) -> Any:
        node: Any = self._root
        for s in segments:
            if not isinstance(node, dict) or s not in node:
                return None
            node = node[s]
        return node

    def _put(self, segments: list[str], value: Any) -> None:
        if not segments:
            self._root = value if isinstance(value, dict) else {}
            return

        if value is None:
            parents: list[tuple[dict, str]] = []
            node: Any = self._root
            for s in segments[:-1]:
                if not isinstance(node, dict) or s not in node:
                    return
                parents.append((node, s))
                node = node[s]
            if isinstance(node, dict):
                node.pop(segments[-1], None)
            # Empty branches disappear.
            for parent, key in reversed(parents):
                child = parent.get(key)
                if isinstance(child, dict) and not child:
                    del parent[key]
            return

        node = self._root
        for s in segments[:-1]:
            child = node.get(s)
            if not isinstance(child, dict):
                child = {}
                node[s] = child
            node = child
        node[segments[-1]] = value

    def _write(self, writes: list[tuple[list[str], Any]]) -> None:
        now = self._clock()
        prepared = [(segments, normalize_value(value, now)) for segments, value in writes]

        notify: list[tuple[list[ChangeCallback], Any]] = []
        with self._lock:
            watched = []
            for path, callbacks in self._listeners.items():
                if not callbacks:
                    continue
                lseg = split_path(path)
                if any(_related(lseg, segments) for segments, _ in prepared):
                    watched.append((lseg, list(callbacks.values()), copy.deepcopy(self._get(lseg))))

            for segments, value in prepared:
                self._put(segments, copy.deepcopy(value))

            for lseg, callbacks, before in watched:
                after = self._get(lseg)
                if after != before:
                    notify.append((callbacks, copy.deepcopy(after)))

        self._deliver(notify)

    def _deliver(self, notify: list[tuple[list[ChangeCallback], Any]]) -> None:
        pending = getattr(self._local, "pending", None)
        if pending is not None:
            # Writes made from inside a listener are delivered after the current batch.
            pending.extend(notify)
            return

        pending = self._local.pending = collections.deque(notify)
        try:
            while pending:
                callbacks, value = pending.popleft()
                self._dispatch(callbacks, value)
        finally:
            self._local.pending = None

    def _dispatch(self, callbacks: list[ChangeCallback], value: Any) -> None:
        for cb in callbacks:
            try:
                cb(copy.deepcopy(value))
            except Exception:
                log.exception("store listener failed")

    def set(self, path: str, value: Any) -> None:
        self._write([(split_path(path), value)])

    def update(self, path: str, fields: Mapping[str, Any]) -> None:
        base = split_path(path)
        self._write([(base + split_path(key), value) for key, value in fields.items()])

    def once(self, path: str) -> Any:
        segments = split_path(path)
        with self._lock:
            return copy.deepcopy(self._get(segments))

    def on(self, path: str, callback: ChangeCallback) -> Subscription:
        segments = split_path(path)
        key = "/".join(segments)
        token = next(self._tokens)
        with self._lock:
            self._listeners.setdefault(key, {})[token] = callback
            current = copy.deepcopy(self._get(segments))

        def _cancel() -> None:
            with self._lock:
                callbacks = self._listeners.get(key)
                if callbacks is not None:
                    callbacks.pop(token, None)
                    if not callbacks:
                        del self._listeners[key]

        subscription = Subscription(key, _cancel)
        try:
            callback(current)
        except Exception:
            subscription.unsubscribe()
            raise
        return subscription

    def off(self, path: str) -> None:
        key = "/".join(split_path(path))
        with self._lock:
            self._listeners.pop(key, None)

    def listener_count(self, path: str | None = None) -> int:
        with self._lock:
            if path is None:
                return sum(len(cbs) for cbs in self._listeners.values())
            return len(self._listeners.get("/".join(split_path(path)), {}))
