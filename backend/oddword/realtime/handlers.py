from __future__ import annotations

import logging
import threading
from typing import Any

from flask import request
from flask_socketio import SocketIO

from ..errors import GameError, ValidationError
from ..game.timer import now_ms
from ..store.base import Store, Subscription, split_path


log = logging.getLogger(__name__)

# Clients may only touch the room tree.
ALLOWED_ROOT = "rooms"


def _path_from(payload: Any) -> str:
    if not isinstance(payload, dict):
        raise ValidationError("Payload must be an object")
    segments = split_path(str(payload.get("path", "")))
    if not segments or segments[0] != ALLOWED_ROOT:
        raise ValidationError("Path must be under rooms/", code="invalid_path")
    return "/".join(segments)


def _fail(exc: GameError) -> dict:
    return {"ok": False, "error": exc.code}


def register_socketio_handlers(socketio: SocketIO, store: Store) -> None:
    # sid -> path -> subscription
    subscriptions: dict[str, dict[str, Subscription]] = {}
    lock = threading.Lock()

    def _push(sid: str, path: str):
        def _callback(value: Any) -> None:
            socketio.emit("store:value", {"path": path, "value": value}, to=sid)

        return _callback

    def _drop_all(sid: str) -> None:
        with lock:
            subs = subscriptions.pop(sid, {})
        for sub in subs.values():
            sub.unsubscribe()
        if subs:
            log.debug("dropped %d subscriptions for sid=%s", len(subs), sid)

    @socketio.on("connect")
    def on_connect(auth=None):
        log.debug("store client connected sid=%s", request.sid)

    @socketio.on("disconnect")
    def on_disconnect(*args):
        _drop_all(request.sid)

    @socketio.on("store:time")
    def store_time(data=None):
        return {"ok": True, "nowMs": now_ms()}

    @socketio.on("store:set")
    def store_set(data):
        try:
            path = _path_from(data)
            store.set(path, data.get("value"))
        except GameError as exc:
            return _fail(exc)
        return {"ok": True}

    @socketio.on("store:update")
    def store_update(data):
        try:
            path = _path_from(data)
            fields = data.get("value")
            if not isinstance(fields, dict):
                raise ValidationError("update needs an object value")
            store.update(path, fields)
        except GameError as exc:
            return _fail(exc)
        return {"ok": True}

    @socketio.on("store:remove")
    def store_remove(data):
        try:
            store.remove(_path_from(data))
        except GameError as exc:
            return _fail(exc)
        return {"ok": True}

    @socketio.on("store:once")
    def store_once(data):
        try:
            value = store.once(_path_from(data))
        except GameError as exc:
            return _fail(exc)
        return {"ok": True, "value": value}

    @socketio.on("store:subscribe")
    def store_subscribe(data):
        sid = request.sid
        try:
            path = _path_from(data)
        except GameError as exc:
            return _fail(exc)

        with lock:
            if path in subscriptions.get(sid, {}):
                return {"ok": True}

        # The store calls back with the current value right away.
        sub = store.on(path, _push(sid, path))
        with lock:
            subscriptions.setdefault(sid, {})[path] = sub
        return {"ok": True}

    @socketio.on("store:unsubscribe")
    def store_unsubscribe(data):
        try:
            path = _path_from(data)
        except GameError as exc:
            return _fail(exc)

        with lock:
            sub = subscriptions.get(request.sid, {}).pop(path, None)
        if sub is not None:
            sub.unsubscribe()
        return {"ok": True}
