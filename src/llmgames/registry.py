"""
Session registry: at most one active game per channel.

- start_game(): create a session when the channel has no unfinished game.
- route_command(): surrender, move submission, and the oracle's reply move.
- handle_message(): dispatcher entry point; detects start phrases, then routes.
- restore(): reload persisted sessions at startup.

Every mutation is written to the document store before the reply is returned.
Work on one channel is serialised by a per-channel lock; channels are independent.
"""
from __future__ import annotations

import logging
import re
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

from .adapters import GameAdapter, adapter_class, create_adapter, known_game_types
from .config import SETTINGS, Settings
from .errors import (
    ArbitrationExhausted,
    GameAlreadyFinishedError,
    OracleError,
    PersistenceError,
    StateConflictError,
    TurnViolationError,
    UnknownGameTypeError,
    ValidationRejection,
)
from .session import ORACLE_ID, ORACLE_NAME, GameSession, Player

if TYPE_CHECKING:  # pragma: no cover
    from .llm_client import OracleClient
    from .storage import JsonFileStore

log = logging.getLogger("registry")

SURRENDER_PATTERNS = [
    re.compile(p, re.I)
    for p in (
        r"\bsurrender\b",
        r"\bforfeit\b",
        r"\bi\s+resign\b",
        r"^\s*resign\s*$",
        r"\bquit\s+(?:the\s+)?game\b",
        r"\bme\s+rindo\b",
        r"\bme\s+retiro\b",
        r"\babandono\b",
        r"\brenuncio\b",
        r"\bdesisto\b",
        r"\bterminar\s+juego\b",
        r"\bcancelar\s+juego\b",
        r"\bsalir\s+(?:del\s+)?juego\b",
    )
]

# (pattern, strict): strict patterns are explicit start commands, so an unknown game type is an error
START_PATTERNS: List[Tuple[re.Pattern, bool]] = [
    (re.compile(r"^\s*[!/]?start\s+(?:a\s+)?(?:game\s+(?:of\s+)?)?(\w+)", re.I), True),
    (re.compile(r"^\s*[!/]?new\s+game\s+(?:of\s+)?(\w+)", re.I), True),
    (re.compile(r"\bplay\s+(?:a\s+game\s+of\s+)?(\w+)", re.I), False),
    (re.compile(r"\bjugar\s+(?:al\s+|a\s+)?(\w+)", re.I), False),
    (re.compile(r"\bjuego\s+de\s+(\w+)", re.I), False),
    (re.compile(r"\binicio\s+de\s+(\w+)", re.I), False),
]

NUDGE_RE = re.compile(r"\b(continue|your\s+(?:turn|move)|go\s+on|move|sigue|contin[uú]a|juega|mueve)\b", re.I)


class _NotAGameCommand:
    def __repr__(self) -> str:
        return "NOT_A_GAME_COMMAND"

    def __bool__(self) -> bool:
        return False


NOT_A_GAME_COMMAND = _NotAGameCommand()


@dataclass
class CommandReply:
    text: str
    persisted: bool = True  # False: the result is provisional (write failed)
    game_over: bool = False


@dataclass
class _ChannelLock:
    lock: threading.Lock
    users: int = 0  # callers holding or waiting on lock


def is_surrender(text: str) -> bool:
    return any(p.search(text or "") for p in SURRENDER_PATTERNS)


def detect_game_start(text: str) -> Optional[str]:
    """Return the requested game type for a start phrase, or None if the text is not a start request."""
    for pattern, strict in START_PATTERNS:
        m = pattern.search(text or "")
        if not m:
            continue
        game_type = m.group(1).lower()
        if strict or adapter_class(game_type) is not None:
            return game_type
    return None


class SessionRegistry:
    def __init__(
        self,
        store: "JsonFileStore",
        oracle: "OracleClient",
        settings: Settings = SETTINGS,
        adapter_factory: Callable[..., GameAdapter] = create_adapter,
    ):
        self.store = store
        self.oracle = oracle
        self.settings = settings
        self.adapter_factory = adapter_factory
        self._sessions: Dict[str, GameSession] = {}
        self._locks: Dict[str, _ChannelLock] = {}
        self._guard = threading.Lock()

    # ---------------- Lookup -----------------
    @contextmanager
    def _channel(self, channel_id: str):
        """Hold the channel's lock; the entry is dropped once nobody uses it and no game is active."""
        with self._guard:
            entry = self._locks.get(channel_id)
            if entry is None:
                entry = self._locks[channel_id] = _ChannelLock(threading.Lock())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0 and channel_id not in self._sessions:
                    del self._locks[channel_id]

    def active_session(self, channel_id: str) -> Optional[GameSession]:
        with self._guard:
            return self._sessions.get(channel_id)

    def active_channels(self) -> List[str]:
        with self._guard:
            return sorted(self._sessions)

    def _new_adapter(self, game_type: str) -> GameAdapter:
        return self.adapter_factory(game_type, glyphs=self.settings.board_glyphs)

    # ---------------- Startup -----------------
    def restore(self) -> int:
        """Reload persisted sessions; unfinished ones become active. Returns how many were activated."""
        restored = 0
        keys = self.store.keys()
        log.info("Found %d saved games", len(keys))
        for key in keys:
            try:
                doc = self.store.load(key)
            except PersistenceError as e:
                log.warning("Skipping unreadable game document %s: %s", key, e)
                continue
            if not doc:
                continue
            game_type = doc.get("game_type")
            if adapter_class(game_type) is None:
                log.warning("Skipping saved game %s: no adapter for game type %r", key, game_type)
                continue
            try:
                session = GameSession.from_document(doc, self._new_adapter(game_type), channel_id=doc.get("channel_id") or key)
            except (KeyError, TypeError, ValueError) as e:
                log.warning("Skipping malformed game document %s: %s", key, e)
                continue
            if session.is_finished():
                continue
            with self._guard:
                self._sessions[session.channel_id] = session
            restored += 1
            log.info("Restored %s game for channel %s", session.game_type, session.channel_id)
        return restored

    # ---------------- Commands -----------------
    def start_game(
        self,
        channel_id: str,
        initiator_id: str,
        initiator_name: str,
        opponent: Optional[Player],
        game_type: str,
    ) -> GameSession:
        session, _ = self._start_game(channel_id, initiator_id, initiator_name, opponent, game_type)
        return session

    def _start_game(self, channel_id, initiator_id, initiator_name, opponent, game_type) -> Tuple[GameSession, bool]:
        with self._channel(channel_id):
            current = self.active_session(channel_id)
            if current is not None and not current.is_finished():
                raise StateConflictError(
                    "There is already an active game in this channel. Finish it before starting a new one."
                )
            adapter = self._new_adapter(game_type)
            if opponent is not None and opponent.id == initiator_id:
                raise StateConflictError(
                    "You cannot play against yourself. To play against the oracle, start the game without an opponent."
                )
            vs_oracle = opponent is None
            player2 = Player(ORACLE_ID, ORACLE_NAME) if vs_oracle else opponent
            session = GameSession.new(channel_id, adapter, Player(initiator_id, initiator_name), player2, vs_oracle=vs_oracle)
            with self._guard:
                self._sessions[channel_id] = session
            persisted = self._commit(session)
            log.info("Started %s game in channel %s between %s and %s",
                     session.game_type, channel_id, initiator_name, player2.display_name)
            return session, persisted

    def route_command(self, channel_id: str, user_id: str, raw_text: str):
        """Handle text sent in a channel with an active game; NOT_A_GAME_COMMAND if there is none."""
        with self._channel(channel_id):
            session = self.active_session(channel_id)
            if session is None:
                return NOT_A_GAME_COMMAND
            text = (raw_text or "").strip()
            try:
                if is_surrender(text):
                    outcome = session.surrender(user_id)
                    persisted = self._commit(session)
                    return CommandReply(outcome.message, persisted=persisted, game_over=True)

                participant = session.slot_of(user_id) is not None
                if session.is_oracle_turn() and participant:
                    if not (NUDGE_RE.search(text) or session.adapter.looks_like_move(text)):
                        return NOT_A_GAME_COMMAND
                    return self._oracle_reply(session, [])

                if not session.is_player_turn(user_id) and not session.adapter.looks_like_move(text):
                    return NOT_A_GAME_COMMAND

                outcome = session.process_move(user_id, text, self.oracle)
                persisted = self._commit(session)
                if session.is_oracle_turn():
                    return self._oracle_reply(session, [outcome.message], persisted)
                return CommandReply(outcome.message, persisted=persisted, game_over=outcome.game_over)
            except TurnViolationError as e:
                return CommandReply(str(e))
            except GameAlreadyFinishedError as e:
                return CommandReply(str(e), game_over=True)
            except ValidationRejection as e:
                return CommandReply(f"Invalid move: {e.reason}. Please try again.")
            except OracleError as e:
                log.error("[%s] oracle unavailable: %s", channel_id, e)
                return CommandReply("I could not check that move right now. Please send it again.")

    def _oracle_reply(self, session: GameSession, parts: List[str], persisted: bool = True) -> CommandReply:
        try:
            outcome = session.play_oracle_turn(self.oracle, self.settings.max_generation_attempts)
        except ArbitrationExhausted as e:
            log.error("[%s] %s", session.channel_id, e)
            parts.append(
                f"I could not find a valid move after {len(e.attempts)} attempts. "
                "Say 'continue' to let me try again, or restart the game."
            )
            return CommandReply("\n\n".join(parts), persisted=persisted)
        persisted = self._commit(session) and persisted
        parts.append(outcome.message)
        return CommandReply("\n\n".join(parts), persisted=persisted, game_over=outcome.game_over)

    def handle_message(
        self,
        channel_id: str,
        user_id: str,
        display_name: str,
        raw_text: str,
        opponent: Optional[Player] = None,
    ):
        """Dispatcher entry point: returns a CommandReply or NOT_A_GAME_COMMAND."""
        game_type = detect_game_start(raw_text)
        if game_type is None:
            return self.route_command(channel_id, user_id, raw_text)
        try:
            session, persisted = self._start_game(channel_id, user_id, display_name, opponent, game_type)
        except UnknownGameTypeError as e:
            return CommandReply(
                f"Sorry, the game type \"{e.game_type}\" is not available. Available games: {', '.join(known_game_types())}"
            )
        except StateConflictError as e:
            return CommandReply(str(e))
        return CommandReply(session.render(), persisted=persisted)

    # ---------------- Persistence -----------------
    def _commit(self, session: GameSession) -> bool:
        """Write the session document; a finished session then leaves the active set."""
        persisted = True
        try:
            self.store.save(session.channel_id, session.to_document())
        except PersistenceError as e:
            persisted = False
            log.error("[%s] failed to persist game state; result is provisional: %s", session.channel_id, e)
        if session.is_finished():
            with self._guard:
                if self._sessions.get(session.channel_id) is session:
                    del self._sessions[session.channel_id]
            log.info("Game in channel %s finished and was removed from active sessions", session.channel_id)
        return persisted
