from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal


RoomStatus = Literal["waiting", "playing", "finished"]
RuleSet = Literal["secret_word", "public_words"]
RoundPhase = Literal["waiting", "playing", "revealed", "next_round_pending"]

RULE_SETS: tuple[str, ...] = ("secret_word", "public_words")
DEFAULT_ROOM_NAME = "Word Battle Room"


def _int_or_none(value: Any) -> int | None:
    # Unresolved server timestamps and garbage both read as "not set".
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


@dataclass(frozen=True)
class Word:
    text: str
    category: str = ""

    def to_dict(self) -> dict:
        return {"text": self.text, "category": self.category}

    @classmethod
    def from_dict(cls, data: Any, category: str = "") -> Word:
        if isinstance(data, str):
            return cls(text=data, category=category)
        data = data or {}
        return cls(text=str(data.get("text", "")), category=str(data.get("category", category)))


@dataclass
class Player:
    id: str
    name: str
    is_host: bool = False

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "isHost": self.is_host}

    @classmethod
    def from_dict(cls, data: dict, player_id: str = "") -> Player:
        return cls(
            id=str(data.get("id") or player_id),
            name=str(data.get("name", "")),
            is_host=bool(data.get("isHost", False)),
        )


@dataclass
class Submission:
    player_id: str
    player_name: str
    word: str
    timestamp: int | None = None

    def to_dict(self) -> dict:
        return {
            "playerId": self.player_id,
            "playerName": self.player_name,
            "word": self.word,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Any, player_id: str = "") -> Submission:
        if isinstance(data, dict) and isinstance(data.get("text"), str):
            # A bare Word stored as a public-word choice.
            return cls(player_id=player_id, player_name="", word=data["text"])
        data = data or {}
        return cls(
            player_id=str(data.get("playerId") or player_id),
            player_name=str(data.get("playerName", "")),
            word=str(data.get("word", "")),
            timestamp=_int_or_none(data.get("timestamp")),
        )


@dataclass(frozen=True)
class RoundResult:
    points_awarded: dict[str, int] = field(default_factory=dict)
    fouls_awarded: dict[str, int] = field(default_factory=dict)
    duplicate_words: frozenset[str] = frozenset()
    round: int = 0

    def to_dict(self) -> dict:
        # "round" keeps the stored entry present even when nobody scored.
        return {
            "round": self.round,
            "pointsAwarded": dict(self.points_awarded),
            "foulsAwarded": dict(self.fouls_awarded),
            "duplicateWords": sorted(self.duplicate_words),
        }

    @classmethod
    def from_dict(cls, data: Any) -> RoundResult:
        data = data or {}
        return cls(
            round=_int_or_none(data.get("round")) or 0,
            points_awarded={str(k): int(v) for k, v in (data.get("pointsAwarded") or {}).items()},
            fouls_awarded={str(k): int(v) for k, v in (data.get("foulsAwarded") or {}).items()},
            duplicate_words=frozenset(data.get("duplicateWords") or ()),
        )


@dataclass
class Room:
    code: str
    host_id: str
    name: str = DEFAULT_ROOM_NAME
    status: RoomStatus = "waiting"
    rule_set: RuleSet = "secret_word"
    created_at: int | None = None
    round: int = 0
    players: dict[str, Player] = field(default_factory=dict)
    prompt: str | None = None
    secret_word: Word | None = None
    selected_player_id: str | None = None
    start_time: int | None = None
    duration: int | None = None
    revealed_at: int | None = None
    submissions: dict[str, Submission] = field(default_factory=dict)
    # Public-word mode
    player_words: dict[str, list[Word]] = field(default_factory=dict)
    public_words: list[Word] = field(default_factory=list)
    public_word_choices: dict[str, Submission] = field(default_factory=dict)
    replacements: dict[str, int] = field(default_factory=dict)
    results: dict[int, RoundResult] = field(default_factory=dict)

    @property
    def deadline_ms(self) -> int | None:
        if self.start_time is None or self.duration is None:
            return None
        return self.start_time + self.duration * 1000

    def choices(self) -> dict[str, Submission]:
        """The choice set the active rule set scores."""
        if self.rule_set == "public_words":
            return self.public_word_choices
        return self.submissions

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {
            "code": self.code,
            "name": self.name,
            "hostId": self.host_id,
            "status": self.status,
            "ruleSet": self.rule_set,
            "createdAt": self.created_at,
            "round": self.round,
            "players": {pid: p.to_dict() for pid, p in self.players.items()},
            "prompt": self.prompt,
            "secretWord": self.secret_word.to_dict() if self.secret_word else None,
            "selectedPlayerId": self.selected_player_id,
            "startTime": self.start_time,
            "duration": self.duration,
            "revealedAt": self.revealed_at,
            "submissions": {pid: s.to_dict() for pid, s in self.submissions.items()},
            "playerWords": {pid: [w.to_dict() for w in ws] for pid, ws in self.player_words.items()},
            "publicWords": [w.to_dict() for w in self.public_words],
            "publicWordChoices": {pid: s.to_dict() for pid, s in self.public_word_choices.items()},
            "replacements": dict(self.replacements),
            "results": {str(n): r.to_dict() for n, r in self.results.items()},
        }
        return {k: v for k, v in payload.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict, code: str = "") -> Room:
        players = {
            pid: Player.from_dict(p or {}, player_id=pid)
            for pid, p in (data.get("players") or {}).items()
        }

        prompt = data.get("prompt")
        secret = data.get("secretWord")

        results: dict[int, RoundResult] = {}
        for key, value in (data.get("results") or {}).items():
            try:
                results[int(key)] = RoundResult.from_dict(value)
            except (TypeError, ValueError):
                continue

        rule_set = data.get("ruleSet")
        if rule_set not in RULE_SETS:
            rule_set = "secret_word"

        return cls(
            code=str(data.get("code") or code),
            host_id=str(data.get("hostId") or data.get("host") or ""),
            name=str(data.get("name") or DEFAULT_ROOM_NAME),
            status=data.get("status") or "waiting",
            rule_set=rule_set,
            created_at=_int_or_none(data.get("createdAt")),
            round=_int_or_none(data.get("round")) or 0,
            players=players,
            prompt=prompt,
            secret_word=Word.from_dict(secret, category=prompt or "") if secret else None,
            selected_player_id=data.get("selectedPlayerId"),
            start_time=_int_or_none(data.get("startTime")),
            duration=_int_or_none(data.get("duration")),
            revealed_at=_int_or_none(data.get("revealedAt")),
            submissions={
                pid: Submission.from_dict(s, player_id=pid)
                for pid, s in (data.get("submissions") or {}).items()
            },
            player_words={
                pid: [Word.from_dict(w) for w in (ws or [])]
                for pid, ws in (data.get("playerWords") or {}).items()
            },
            public_words=[Word.from_dict(w) for w in (data.get("publicWords") or [])],
            public_word_choices={
                pid: Submission.from_dict(s, player_id=pid)
                for pid, s in (data.get("publicWordChoices") or {}).items()
            },
            replacements={
                str(pid): int(idx)
                for pid, idx in (data.get("replacements") or {}).items()
                if _int_or_none(idx) is not None
            },
            results=results,
        )
