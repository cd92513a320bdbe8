"""Round state machine.

Phases are derived from the stored room document and the clock, never
stored. Transitions return the patch to apply to ``rooms/{code}`` with a single
store update; they raise ``NotAllowedError`` when the guard fails.
"""

from __future__ import annotations

import logging
import random
from dataclasses import replace
from typing import Any

from ..config import Config
from ..errors import NotAllowedError
from ..store.base import SERVER_TIMESTAMP
from .models import Room, RoundPhase, RoundResult, Word
from .scoring import score_choices, tally
from .timer import time_left
from .words import WORDS, pick_random_words, pick_secret_word


log = logging.getLogger(__name__)


def expected_choosers(room: Room) -> list[str]:
    """Players whose choice closes the round early.

    Everyone chooses in both rule sets; in secret-word rounds the selected
    player bluffs without knowing the word.
    """
    return list(room.players)


def valid_choices(room: Room) -> dict[str, str]:
    """``{player_id: word}`` for the choices that count this round.

    Choices from players who left or stamped after the deadline are dropped.
    """
    expected = set(expected_choosers(room))
    deadline = room.deadline_ms
    out: dict[str, str] = {}
    for pid, sub in room.choices().items():
        if pid not in expected:
            continue
        if deadline is not None and sub.timestamp is not None and sub.timestamp > deadline:
            log.warning("ignoring late choice room=%s player=%s", room.code, pid)
            continue
        out[pid] = sub.word
    return out


def is_round_closed(room: Room, now: int) -> bool:
    if room.revealed_at is not None:
        return True
    expected = expected_choosers(room)
    if expected:
        chosen = valid_choices(room)
        if all(pid in chosen for pid in expected):
            return True
    if room.start_time is not None and room.duration is not None:
        return time_left(now, room.start_time, room.duration) <= 0
    return False


def derive_phase(room: Room, now: int) -> RoundPhase:
    if room.status != "playing":
        return "waiting"
    if not is_round_closed(room, now):
        return "playing"
    if room.round in room.results:
        return "next_round_pending"
    return "revealed"


def round_result(room: Room) -> RoundResult:
    """Result of the current round, recomputed from the stored choices."""
    stored = room.results.get(room.round)
    if stored is not None:
        return stored
    result = score_choices(valid_choices(room), reward_unique=room.rule_set == "secret_word")
    return replace(result, round=room.round)


def cumulative_scores(room: Room) -> dict[str, dict[str, int]]:
    return tally(room.results.values())


def require_host(room: Room, player_id: str) -> None:
    if not player_id or room.host_id != player_id:
        raise NotAllowedError("Only the host can do that", code="only_host")


def _held_texts(player_words: dict[str, list[Word]]) -> set[str]:
    return {w.text for ws in player_words.values() for w in ws}


def _deal(
    room: Room,
    rng: random.Random | None,
    words_per_player: int,
    keep_private: bool,
) -> dict[str, Any]:
    r = rng or random
    player_ids = list(room.players)
    prompt, secret = pick_secret_word(r)
    patch: dict[str, Any] = {
        "prompt": prompt,
        "secretWord": secret.to_dict(),
        "selectedPlayerId": r.choice(player_ids),
    }
    if room.rule_set != "public_words":
        return patch

    player_words: dict[str, list[Word]] = {}
    if keep_private:
        player_words = {pid: list(ws) for pid, ws in room.player_words.items() if pid in room.players}

    # Fouled players swap the word they picked for a fresh one.
    swaps = {pid: idx for pid, idx in room.replacements.items() if pid in player_words}
    missing = [pid for pid in player_ids if len(player_words.get(pid, ())) < words_per_player]

    taken = _held_texts(player_words) | {secret.text}
    fresh_needed = len(swaps) + words_per_player * len(missing)
    fresh = pick_random_words(fresh_needed, rng=r, catalog=[w for w in WORDS if w.text not in taken])

    for pid, idx in swaps.items():
        if 0 <= idx < len(player_words[pid]):
            player_words[pid][idx] = fresh.pop()
    for pid in missing:
        player_words[pid] = [fresh.pop() for _ in range(words_per_player)]

    taken = _held_texts(player_words) | {secret.text}
    public = pick_random_words(
        len(player_ids) + 1,
        rng=r,
        catalog=[w for w in WORDS if w.text not in taken],
    )

    patch["playerWords"] = {pid: [w.to_dict() for w in ws] for pid, ws in player_words.items()}
    patch["publicWords"] = [w.to_dict() for w in public]
    return patch


def _round_reset(room: Room, duration: int) -> dict[str, Any]:
    return {
        "status": "playing",
        "round": room.round + 1,
        "startTime": SERVER_TIMESTAMP,
        "duration": duration,
        "revealedAt": None,
        "submissions": None,
        "publicWordChoices": None,
        "replacements": None,
    }


def start_round(
    room: Room,
    requester_id: str,
    now: int,
    rng: random.Random | None = None,
    config: type[Config] = Config,
) -> dict[str, Any]:
    """Waiting -> Playing."""
    require_host(room, requester_id)

    phase = derive_phase(room, now)
    if phase != "waiting":
        raise NotAllowedError("A round is already running", code="round_in_progress")

    if len(room.players) < config.MIN_PLAYERS:
        raise NotAllowedError(
            f"At least {config.MIN_PLAYERS} players are required to start",
            code="not_enough_players",
        )
    if len(room.players) > config.MAX_PLAYERS:
        raise NotAllowedError("Too many players", code="room_full")

    patch = _round_reset(room, config.ROUND_DURATION_SEC)
    patch.update(_deal(room, rng, config.PRIVATE_WORDS_PER_PLAYER, keep_private=False))
    log.info("round start room=%s round=%s selected=%s", room.code, patch["round"], patch["selectedPlayerId"])
    return patch


def next_round(
    room: Room,
    requester_id: str,
    now: int,
    rng: random.Random | None = None,
    config: type[Config] = Config,
) -> dict[str, Any]:
    """Revealed -> Playing. Stores this round's result if nobody has yet."""
    require_host(room, requester_id)

    phase = derive_phase(room, now)
    if phase not in ("revealed", "next_round_pending"):
        raise NotAllowedError("The round has not been revealed yet", code="round_not_revealed")

    if len(room.players) < config.MIN_PLAYERS:
        raise NotAllowedError(
            f"At least {config.MIN_PLAYERS} players are required to continue",
            code="not_enough_players",
        )

    patch: dict[str, Any] = {}
    patch.update(results_patch(room, now))
    patch.update(_round_reset(room, config.ROUND_DURATION_SEC))
    patch.update(_deal(room, rng, config.PRIVATE_WORDS_PER_PLAYER, keep_private=True))
    log.info("next round room=%s round=%s selected=%s", room.code, patch["round"], patch["selectedPlayerId"])
    return patch


def reveal_patch(room: Room, now: int) -> dict[str, Any]:
    """Marks the round closed once its timer ran out. Safe to repeat."""
    if room.status != "playing" or room.revealed_at is not None:
        return {}
    if room.start_time is None or room.duration is None:
        return {}
    if time_left(now, room.start_time, room.duration) > 0:
        return {}
    return {"revealedAt": SERVER_TIMESTAMP}


def results_patch(room: Room, now: int) -> dict[str, Any]:
    """Stores the current round's result. Same choices, same payload."""
    if room.round in room.results or derive_phase(room, now) != "revealed":
        return {}
    return {f"results/{room.round}": round_result(room).to_dict()}


def check_can_join(room: Room, config: type[Config] = Config) -> None:
    if room.status == "playing":
        raise NotAllowedError("Game is already in progress", code="round_in_progress")
    if len(room.players) >= config.MAX_PLAYERS:
        raise NotAllowedError("Room is full", code="room_full")


def check_can_choose(room: Room, player_id: str, now: int) -> None:
    if player_id not in room.players:
        raise NotAllowedError("You are not in this room", code="not_in_room")
    if derive_phase(room, now) != "playing":
        raise NotAllowedError("The round is closed", code="round_closed")


def check_can_replace(room: Room, player_id: str, index: int, now: int) -> None:
    if room.rule_set != "public_words":
        raise NotAllowedError("No private words in this game", code="wrong_rule_set")
    if derive_phase(room, now) not in ("revealed", "next_round_pending"):
        raise NotAllowedError("Replacements open after the reveal", code="round_not_revealed")
    if player_id not in round_result(room).fouls_awarded:
        raise NotAllowedError("Only fouled players may replace a word", code="no_foul")
    if not 0 <= index < len(room.player_words.get(player_id, ())):
        raise NotAllowedError("No such word", code="invalid_index")


def leave_patch(room: Room, player_id: str, config: type[Config] = Config) -> dict[str, Any] | None:
    """Patch removing ``player_id``; ``None`` when the room must be deleted."""
    remaining = [pid for pid in room.players if pid != player_id]
    if not remaining:
        return None

    patch: dict[str, Any] = {
        f"players/{player_id}": None,
        f"submissions/{player_id}": None,
        f"publicWordChoices/{player_id}": None,
        f"playerWords/{player_id}": None,
        f"replacements/{player_id}": None,
    }

    if room.host_id == player_id:
        new_host = remaining[0]
        patch["hostId"] = new_host
        patch[f"players/{new_host}/isHost"] = True

    # A round without its selected player, or without enough players, is over.
    if room.status == "playing" and (
        room.selected_player_id == player_id or len(remaining) < config.MIN_PLAYERS
    ):
        patch["status"] = "waiting"

    return patch
