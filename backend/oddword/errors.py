from __future__ import annotations


class GameError(Exception):
    """Base class for errors surfaced to the local player.

    ``code`` is the short identifier sent back in socket acks and REST bodies.
    """

    code = "game_error"

    def __init__(self, message: str = "", code: str | None = None) -> None:
        super().__init__(message or self.code)
        if code:
            self.code = code


class ValidationError(GameError):
    code = "invalid_payload"


class NotFoundError(GameError):
    code = "room_not_found"


class NotAllowedError(GameError):
    code = "not_allowed"


class StoreError(GameError):
    code = "store_error"


class OutOfRangeError(GameError):
    code = "count_out_of_range"
