from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..errors import OutOfRangeError
from ..game.words import pick_random_words

bp = Blueprint("words", __name__)


@bp.get("/words")
def get_words():
    try:
        count = int(request.args.get("count", "3"))
    except ValueError:
        count = 3

    try:
        words = pick_random_words(count)
    except OutOfRangeError as exc:
        return jsonify({"error": exc.code}), 400
    return jsonify({"words": [w.to_dict() for w in words]})
