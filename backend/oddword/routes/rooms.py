from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from ..errors import GameError
from ..store.base import room_path
from ..sync.controller import normalize_room_code

bp = Blueprint("rooms", __name__)


@bp.get("/rooms/<code>")
def get_room(code: str):
    store = current_app.extensions["oddword.store"]
    try:
        room_code = normalize_room_code(code)
    except GameError as exc:
        return jsonify({"error": exc.code}), 400

    data = store.once(room_path(room_code))
    if data is None:
        return jsonify({"error": "room_not_found"}), 404
    return jsonify(data)
