from __future__ import annotations

import logging
import random
import string
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

from ..config import Config
from ..errors import NotAllowedError, NotFoundError, StoreError, ValidationError
from ..game import rounds
from ..game.models import DEFAULT_ROOM_NAME, RULE_SETS, Player, Room
from ..game.scoring import normalize_word
from ..game.timer import CountdownTimer, now_ms
from ..store.base import SERVER_TIMESTAMP, Store, Subscription, join_path, players_path, room_path, submissions_path


log = logging.getLogger(__name__)

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
ROOM_CODE_LENGTH = 6

UIListener = Callable[[str, dict], None]
TimerFactory = Callable[..., CountdownTimer]


def validate_name(name: str) -> str:
    n = (name or "").strip()
    if not n:
        raise ValidationError("Please enter your name", code="missing_name")
    if len(n) > 16:
        raise ValidationError("Name is too long", code="invalid_name")
    if "<" in n or ">" in n:
        raise ValidationError("Name contains invalid characters", code="invalid_name")
    for ch in n:
        if ord(ch) < 32:
            raise ValidationError("Name contains invalid characters", code="invalid_name")
    return n


def normalize_room_code(code: str) -> str:
    c = (code or "").strip().upper()
    if len(c) != ROOM_CODE_LENGTH:
        raise ValidationError(f"Room code must be {ROOM_CODE_LENGTH} characters", code="invalid_room_code")
    if not all(ch in ROOM_CODE_ALPHABET for ch in c):
        raise ValidationError("Room code may only contain letters and digits", code="invalid_room_code")
    return c


def new_player_id() -> str:
    return uuid.uuid4().hex


@dataclass
class GameSession:
    """One player's membership in one room.

    Created by ``create_room``/``join_room``; closed by ``leave_room`` or when
    the room disappears. Owns the subscriptions and the round timer.
    """

    room_code: str
    player: Player
    room: Room | None = None
    subscriptions: dict[str, Subscription] = field(default_factory=dict)
    timer: CountdownTimer | None = None
    timer_round: int | None = None
    revealed_rounds: set[int] = field(default_factory=set)
    published_rounds: set[int] = field(default_factory=set)
    closed: bool = False
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    @property
    def player_id(self) -> str:
        return self.player.id

    @property
    def is_host(self) -> bool:
        if self.room is not None:
            return self.room.host_id == self.player.id
        return self.player.is_host


class SyncController:
    """Turns local intents into store writes and store pushes into UI events.

    ``listener(event, payload)`` receives ``players``, ``round_started``,
    ``timer``, ``submissions``, ``reveal``, ``room_closed`` and ``error``.
    """

    def __init__(
        self,
        store: Store,
        listener: UIListener | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], int] | None = None,
        timer_factory: TimerFactory = CountdownTimer,
        config: type[Config] = Config,
        tick_interval: float = 1.0,
    ) -> None:
        self.store = store
        self.listener = listener
        self.rng = rng or random.Random()
        self._clock = clock or now_ms
        self.timer_factory = timer_factory
        self.config = config
        self.tick_interval = tick_interval

    def now(self) -> int:
        return self._clock() + self.store.clock_offset_ms

    # ---- intents ----

    def create_room(
        self,
        player_name: str,
        room_name: str | None = None,
        rule_set: str = "secret_word",
    ) -> GameSession:
        name = validate_name(player_name)
        if rule_set not in RULE_SETS:
            raise ValidationError(f"Unknown rule set {rule_set!r}", code="invalid_rule_set")

        code = self._unique_room_code()
        player = Player(id=new_player_id(), name=name, is_host=True)
        room = Room(
            code=code,
            host_id=player.id,
            name=(room_name or "").strip() or DEFAULT_ROOM_NAME,
            rule_set=rule_set,
            players={player.id: player},
        )
        doc = room.to_dict()
        doc["createdAt"] = SERVER_TIMESTAMP
        self.store.set(room_path(code), doc)
        log.info("room created code=%s host=%s rule_set=%s", code, player.id, rule_set)

        session = GameSession(room_code=code, player=player)
        self._attach_or_undo(session, room_path(code))
        return session

    def join_room(self, code: str, player_name: str) -> GameSession:
        code = normalize_room_code(code)
        name = validate_name(player_name)

        room = self._fetch(code)
        rounds.check_can_join(room, self.config)

        player = Player(id=new_player_id(), name=name, is_host=False)
        self.store.set(players_path(code, player.id), player.to_dict())
        log.info("player joined code=%s player=%s", code, player.id)

        session = GameSession(room_code=code, player=player)
        self._attach_or_undo(session, players_path(code, player.id))
        return session

    def start_round(self, session: GameSession) -> None:
        self._require_open(session)
        room = self._fetch(session.room_code)
        patch = rounds.start_round(room, session.player_id, self.now(), rng=self.rng, config=self.config)
        self.store.update(room_path(session.room_code), patch)

    def next_round(self, session: GameSession) -> None:
        self._require_open(session)
        room = self._fetch(session.room_code)
        patch = rounds.next_round(room, session.player_id, self.now(), rng=self.rng, config=self.config)
        self.store.update(room_path(session.room_code), patch)

    def submit_word(self, session: GameSession, word: str) -> str:
        w = normalize_word(word)
        if not w:
            raise ValidationError("Please enter a word", code="empty_word")
        self._require_open(session)

        room = self._fetch(session.room_code)
        if room.rule_set != "secret_word":
            raise NotAllowedError("Pick from the public words instead", code="wrong_rule_set")
        rounds.check_can_choose(room, session.player_id, self.now())

        self.store.set(
            submissions_path(session.room_code, session.player_id),
            self._choice_payload(session, w),
        )
        return w

    def choose_public_word(self, session: GameSession, word: str) -> str:
        w = normalize_word(word)
        if not w:
            raise ValidationError("Please pick a word", code="empty_word")
        self._require_open(session)

        room = self._fetch(session.room_code)
        if room.rule_set != "public_words":
            raise NotAllowedError("This game has no public words", code="wrong_rule_set")
        rounds.check_can_choose(room, session.player_id, self.now())
        if w not in {normalize_word(pw.text) for pw in room.public_words}:
            raise ValidationError("That word is not in the public pool", code="unknown_word")

        self.store.set(
            join_path(room_path(session.room_code), "publicWordChoices", session.player_id),
            self._choice_payload(session, w),
        )
        return w

    def request_replacement(self, session: GameSession, index: int) -> None:
        self._require_open(session)
        room = self._fetch(session.room_code)
        rounds.check_can_replace(room, session.player_id, index, self.now())
        self.store.set(join_path(room_path(session.room_code), "replacements", session.player_id), index)

    def leave_room(self, session: GameSession) -> None:
        if session.closed and not session.subscriptions and session.timer is None:
            return
        # Our own removal echoes back through the subscriptions; ignore it.
        session.closed = True
        code = session.room_code
        try:
            data = self.store.once(room_path(code))
            if data is not None:
                room = Room.from_dict(data, code=code)
                patch = rounds.leave_patch(room, session.player_id, self.config)
                if patch is None:
                    self.store.remove(room_path(code))
                    log.info("room deleted code=%s (last player left)", code)
                else:
                    self.store.update(room_path(code), patch)
                    log.info("player left code=%s player=%s", code, session.player_id)
        except StoreError:
            log.exception("leave failed code=%s player=%s", code, session.player_id)
            raise
        finally:
            self._teardown(session)

    # ---- store plumbing ----

    def _choice_payload(self, session: GameSession, word: str) -> dict:
        return {
            "playerId": session.player_id,
            "playerName": session.player.name,
            "word": word,
            "timestamp": SERVER_TIMESTAMP,
        }

    def _unique_room_code(self) -> str:
        for _ in range(20):
            code = "".join(self.rng.choices(ROOM_CODE_ALPHABET, k=ROOM_CODE_LENGTH))
            if self.store.once(room_path(code)) is None:
                return code
        raise StoreError("Could not allocate a room code", code="room_code_exhausted")

    def _fetch(self, code: str) -> Room:
        data = self.store.once(room_path(code))
        if data is None:
            raise NotFoundError(f"Room {code} not found")
        return Room.from_dict(data, code=code)

    def _require_open(self, session: GameSession) -> None:
        if session.closed:
            raise NotAllowedError("You already left this room", code="session_closed")

    def _subscribe(self, session: GameSession, topic: str, path: str, callback: Callable[[Any], None]) -> None:
        previous = session.subscriptions.pop(topic, None)
        if previous is not None:
            previous.unsubscribe()
        session.subscriptions[topic] = self.store.on(path, callback)

    def _attach(self, session: GameSession) -> None:
        code = session.room_code
        try:
            self._subscribe(session, "room", room_path(code), lambda value: self._on_room(session, value))
            self._subscribe(
                session,
                "submissions",
                submissions_path(code),
                lambda value: self._on_submissions(session, value),
            )
        except Exception:
            session.closed = True
            self._teardown(session)
            raise

    def _attach_or_undo(self, session: GameSession, written_path: str) -> None:
        try:
            self._attach(session)
        except Exception:
            # Take back the room or player record this session wrote.
            try:
                self.store.remove(written_path)
            except StoreError:
                log.exception("could not remove %s after failed subscribe", written_path)
            raise

    def _teardown(self, session: GameSession) -> None:
        with session.lock:
            session.closed = True
            self._cancel_timer(session)
            subscriptions = list(session.subscriptions.values())
            session.subscriptions.clear()

        first_error: Exception | None = None
        for sub in subscriptions:
            try:
                sub.unsubscribe()
            except Exception as exc:
                first_error = first_error or exc
        if first_error is not None:
            raise first_error

    # ---- notifications ----

    def _emit(self, session: GameSession, event: str, payload: dict) -> None:
        if self.listener is None:
            return
        self.listener(event, {"roomCode": session.room_code, **payload})

    def _on_room(self, session: GameSession, value: Any) -> None:
        with session.lock:
            if session.closed:
                return
            if value is None:
                log.info("room gone code=%s", session.room_code)
                self._teardown(session)
                self._emit(session, "room_closed", {"reason": "deleted"})
                return

            room = Room.from_dict(value, code=session.room_code)
            if session.player_id not in room.players:
                self._teardown(session)
                self._emit(session, "room_closed", {"reason": "removed"})
                return

            session.room = room
            self._emit(
                session,
                "players",
                {
                    "players": [p.to_dict() for p in room.players.values()],
                    "hostId": room.host_id,
                    "isHost": session.is_host,
                    "canStart": session.is_host and len(room.players) >= self.config.MIN_PLAYERS,
                    "selectedPlayerId": room.selected_player_id,
                    "scores": rounds.cumulative_scores(room),
                },
            )
        self._evaluate(session)

    def _on_submissions(self, session: GameSession, value: Any) -> None:
        if session.closed:
            return
        submissions = {
            pid: {"playerName": (s or {}).get("playerName", ""), "word": (s or {}).get("word", "")}
            for pid, s in (value or {}).items()
        }
        self._emit(session, "submissions", {"submissions": submissions})

    def _evaluate(self, session: GameSession) -> None:
        publish = self._advance(session)
        if publish:
            self.store.update(room_path(session.room_code), publish)

    def _advance(self, session: GameSession) -> dict[str, Any]:
        """Reacts to the current phase. Returns the results patch the host owes."""
        with session.lock:
            room = session.room
            if session.closed or room is None:
                return {}

            now = self.now()
            phase = rounds.derive_phase(room, now)

            if phase == "playing":
                timer = session.timer
                if timer is None or session.timer_round != room.round or timer.start_time != room.start_time:
                    self._emit(session, "round_started", self._round_view(session, room))
                    self._start_timer(session, room)
                return {}

            self._cancel_timer(session)
            if phase == "waiting":
                return {}

            if room.round not in session.revealed_rounds:
                session.revealed_rounds.add(room.round)
                result = rounds.round_result(room)
                log.info(
                    "round revealed code=%s round=%s duplicates=%s",
                    room.code,
                    room.round,
                    sorted(result.duplicate_words),
                )
                self._emit(
                    session,
                    "reveal",
                    {
                        "round": room.round,
                        "choices": rounds.valid_choices(room),
                        "secretWord": room.secret_word.to_dict() if room.secret_word else None,
                        "selectedPlayerId": room.selected_player_id,
                        **result.to_dict(),
                    },
                )

            if phase == "revealed" and session.is_host and room.round not in session.published_rounds:
                patch = rounds.results_patch(room, now)
                if patch:
                    session.published_rounds.add(room.round)
                    return patch
            return {}

    def _round_view(self, session: GameSession, room: Room) -> dict:
        selected = room.selected_player_id == session.player_id
        view: dict[str, Any] = {
            "round": room.round,
            "ruleSet": room.rule_set,
            "prompt": room.prompt,
            "selectedPlayerId": room.selected_player_id,
            "isSelected": selected,
            "startTime": room.start_time,
            "duration": room.duration,
            # Hidden from the selected player.
            "secretWord": None if selected or room.secret_word is None else room.secret_word.to_dict(),
        }
        if room.rule_set == "public_words":
            view["publicWords"] = [w.to_dict() for w in room.public_words]
            view["myWords"] = [w.to_dict() for w in room.player_words.get(session.player_id, [])]
        return view

    # ---- timer ----

    def _start_timer(self, session: GameSession, room: Room) -> None:
        self._cancel_timer(session)
        if room.start_time is None or room.duration is None:
            return
        round_no = room.round
        timer = self.timer_factory(
            room.start_time,
            room.duration,
            on_tick=lambda left: self._emit(session, "timer", {"round": round_no, "timeLeft": left}),
            on_expire=lambda: self._on_timer_expired(session, round_no),
            clock=self.now,
        )
        session.timer = timer
        session.timer_round = round_no
        timer.start(self.tick_interval)

    def _cancel_timer(self, session: GameSession) -> None:
        timer = session.timer
        session.timer = None
        session.timer_round = None
        if timer is not None:
            # Called under session.lock, which the runner thread may be waiting on.
            timer.cancel(wait=False)

    def _on_timer_expired(self, session: GameSession, round_no: int) -> None:
        with session.lock:
            room = session.room
            if session.closed or room is None or room.round != round_no:
                return
            patch = rounds.reveal_patch(room, self.now())

        if patch:
            try:
                self.store.update(room_path(room.code), patch)
            except StoreError as exc:
                log.exception("reveal write failed code=%s round=%s", room.code, round_no)
                self._emit(session, "error", {"error": exc.code, "message": str(exc)})
        self._evaluate(session)
