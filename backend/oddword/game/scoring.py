"""Round scoring.

Pure functions over a round's choice set. Nothing here reads local state, so
every client that sees the same stored submissions computes the same result.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Mapping

from .models import RoundResult


def normalize_word(word: str) -> str:
    return (word or "").strip().lower()


def score_choices(choices: Mapping[str, str], reward_unique: bool = True) -> RoundResult:
    """Score ``{player_id: word}``.

    A word picked by two or more players is a foul for each of them and is
    reported in ``duplicate_words``. A word picked by exactly one player earns
    that player a point when ``reward_unique`` is set, and is otherwise simply
    not an error.
    """
    by_word: dict[str, list[str]] = defaultdict(list)
    for player_id, word in choices.items():
        w = normalize_word(word)
        if not w:
            continue
        by_word[w].append(player_id)

    points: dict[str, int] = {}
    fouls: dict[str, int] = {}
    duplicates: set[str] = set()

    for w, player_ids in by_word.items():
        if len(player_ids) >= 2:
            duplicates.add(w)
            for pid in player_ids:
                fouls[pid] = fouls.get(pid, 0) + 1
        elif reward_unique:
            pid = player_ids[0]
            points[pid] = points.get(pid, 0) + 1

    return RoundResult(
        points_awarded=points,
        fouls_awarded=fouls,
        duplicate_words=frozenset(duplicates),
    )


def tally(results: Iterable[RoundResult]) -> dict[str, dict[str, int]]:
    """Fold round results into ``{player_id: {"points": n, "fouls": n}}``."""
    totals: dict[str, dict[str, int]] = {}
    for result in results:
        for pid, delta in result.points_awarded.items():
            totals.setdefault(pid, {"points": 0, "fouls": 0})["points"] += delta
        for pid, delta in result.fouls_awarded.items():
            totals.setdefault(pid, {"points": 0, "fouls": 0})["fouls"] += delta
    return totals
