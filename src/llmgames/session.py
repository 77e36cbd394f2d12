"""
Game session: one channel's game, its turns, history and outcome.

- process_move(): human path. One oracle validation call, no retries.
- play_oracle_turn(): oracle-as-player path. Up to N generation attempts; every
  well-formed candidate is re-validated through the human path before use.
- surrender(): ends the game in favour of the other player.

Nothing is mutated until a move has been validated; every error path leaves the
session exactly as it was.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from .adapters import GameAdapter, MoveVerdict, RejectedAttempt
from .errors import (
    ArbitrationExhausted,
    GameAlreadyFinishedError,
    OracleError,
    ProtocolError,
    TurnViolationError,
    ValidationRejection,
)

if TYPE_CHECKING:  # pragma: no cover
    from .llm_client import OracleClient

log = logging.getLogger("session")

PLAYER1 = "player1"
PLAYER2 = "player2"
DRAW = "draw"
ORACLE_ID = "oracle"
ORACLE_NAME = "oracle"
MALFORMED_REPLY = "malformed reply"
DEFAULT_MAX_ATTEMPTS = 3


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionState(Enum):
    TURN_PLAYER1 = "turn:player1"
    TURN_PLAYER2 = "turn:player2"
    FINISHED = "finished"


@dataclass
class Player:
    id: str
    display_name: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "display_name": self.display_name}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Player":
        return cls(id=str(d["id"]), display_name=str(d.get("display_name") or d["id"]))


@dataclass
class Move:
    player_id: str
    raw_text: str
    normalized_move: Optional[str]
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "raw_text": self.raw_text,
            "normalized_move": self.normalized_move,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Move":
        return cls(
            player_id=str(d["player_id"]),
            raw_text=str(d.get("raw_text", "")),
            normalized_move=d.get("normalized_move"),
            timestamp=str(d.get("timestamp", "")),
        )


@dataclass
class MoveOutcome:
    move: Move
    message: str
    game_over: bool
    verdict: Optional[MoveVerdict] = None
    attempts: List[RejectedAttempt] = field(default_factory=list)


class GameSession:
    def __init__(
        self,
        channel_id: str,
        adapter: GameAdapter,
        player1: Player,
        player2: Player,
        vs_oracle: bool = False,
        current_turn: str = PLAYER1,
        winner: Optional[str] = None,
        move_history: Optional[List[Move]] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
    ):
        self.channel_id = channel_id
        self.adapter = adapter
        self.player1 = player1
        self.player2 = player2
        self.vs_oracle = vs_oracle
        self.current_turn = current_turn
        self.winner = winner
        self.move_history: List[Move] = list(move_history or [])
        self.start_time = start_time or _now()
        self.end_time = end_time

    @classmethod
    def new(cls, channel_id: str, adapter: GameAdapter, player1: Player, player2: Player, vs_oracle: bool = False) -> "GameSession":
        adapter.initialize_state()
        return cls(channel_id, adapter, player1, player2, vs_oracle=vs_oracle)

    # ---------------- State queries -----------------
    @property
    def game_type(self) -> str:
        return self.adapter.tag

    @property
    def state(self) -> SessionState:
        if self.winner is not None:
            return SessionState.FINISHED
        return SessionState.TURN_PLAYER1 if self.current_turn == PLAYER1 else SessionState.TURN_PLAYER2

    def is_finished(self) -> bool:
        return self.winner is not None

    def player(self, slot: str) -> Player:
        return self.player1 if slot == PLAYER1 else self.player2

    def slot_of(self, player_id: str) -> Optional[str]:
        if player_id == self.player1.id:
            return PLAYER1
        if player_id == self.player2.id:
            return PLAYER2
        return None

    @staticmethod
    def other(slot: str) -> str:
        return PLAYER2 if slot == PLAYER1 else PLAYER1

    def current_player(self) -> Player:
        return self.player(self.current_turn)

    def is_player_turn(self, player_id: str) -> bool:
        return not self.is_finished() and self.current_player().id == player_id

    def is_oracle_turn(self) -> bool:
        return self.vs_oracle and not self.is_finished() and self.current_turn == PLAYER2

    def end_message(self) -> str:
        if not self.is_finished():
            return "The game is still in progress."
        if self.winner == DRAW:
            return "The game ended in a draw!"
        return f"{self.player(self.winner).display_name} wins!"

    def render(self) -> str:
        return self.adapter.render(self)

    # ---------------- Transitions -----------------
    def process_move(self, player_id: str, text: str, oracle: "OracleClient") -> MoveOutcome:
        """Validate a human submission with exactly one oracle call and apply it if accepted."""
        self._require_unfinished()
        if self.slot_of(player_id) is None:
            raise TurnViolationError("You are not playing in this game.")
        if not self.is_player_turn(player_id):
            raise TurnViolationError("It is not your turn.")
        verdict = self._validate(player_id, text, oracle)
        move = self._apply(player_id, text, verdict)
        return MoveOutcome(move=move, message=self.render(), game_over=self.is_finished(), verdict=verdict)

    def play_oracle_turn(self, oracle: "OracleClient", max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> MoveOutcome:
        """Ask the oracle for a move, re-validate it independently, and apply the first one that passes."""
        self._require_unfinished()
        if not self.is_oracle_turn():
            raise TurnViolationError("It is not the oracle's turn.")
        player_id = self.current_player().id
        rejected: List[RejectedAttempt] = []

        for attempt in range(1, max_attempts + 1):
            prompt = self.adapter.build_generate_prompt(self, rejected)
            try:
                raw = oracle.send_prompt(prompt)
            except ValidationRejection as e:
                rejected.append(RejectedAttempt(move_text="(no reply)", reason=e.reason))
                log.warning("[%s] generation attempt %d: %s", self.channel_id, attempt, e.reason)
                continue
            except OracleError as e:
                rejected.append(RejectedAttempt(move_text="(no reply)", reason=str(e)))
                log.warning("[%s] generation attempt %d: %s", self.channel_id, attempt, e)
                continue

            candidate = self.adapter.parse_generated_response(self, raw)
            if not candidate.well_formed:
                rejected.append(RejectedAttempt(move_text="(none)", reason=MALFORMED_REPLY))
                log.info("[%s] generation attempt %d: malformed reply", self.channel_id, attempt)
                continue

            try:
                verdict = self._validate(player_id, candidate.move_text, oracle)
            except ValidationRejection as e:
                rejected.append(RejectedAttempt(move_text=candidate.move_text, reason=e.reason))
                log.info("[%s] generation attempt %d: %s rejected (%s)", self.channel_id, attempt, candidate.move_text, e.reason)
                continue
            except OracleError as e:
                rejected.append(RejectedAttempt(move_text=candidate.move_text, reason=str(e)))
                log.warning("[%s] generation attempt %d: validation call failed: %s", self.channel_id, attempt, e)
                continue

            self._report_disagreement(candidate, verdict)
            move = self._apply(player_id, candidate.move_text, verdict)
            message = f"{self.adapter.announce(verdict)}\n\n{self.render()}"
            return MoveOutcome(move=move, message=message, game_over=self.is_finished(), verdict=verdict, attempts=rejected)

        log.error("[%s] oracle failed to produce a valid move after %d attempts", self.channel_id, max_attempts)
        raise ArbitrationExhausted(rejected)

    def surrender(self, player_id: str) -> MoveOutcome:
        self._require_unfinished()
        slot = self.slot_of(player_id)
        if slot is None:
            raise TurnViolationError("You are not playing in this game.")
        move = Move(player_id=player_id, raw_text="surrender", normalized_move=None, timestamp=_now())
        self.move_history.append(move)
        self._finish(self.other(slot))
        log.info("[%s] %s surrendered", self.channel_id, player_id)
        name = self.player(slot).display_name
        message = f"{name} surrendered. {self.end_message()}\n\n{self.render()}"
        return MoveOutcome(move=move, message=message, game_over=True)

    # ---------------- Internals -----------------
    def _require_unfinished(self) -> None:
        if self.is_finished():
            raise GameAlreadyFinishedError(self.end_message())

    def _validate(self, player_id: str, text: str, oracle: "OracleClient") -> MoveVerdict:
        prompt = self.adapter.build_move_prompt(self, player_id, text)
        raw = oracle.send_prompt(prompt)
        verdict = self.adapter.parse_move_response(self, raw)
        if verdict.protocol_error:
            log.warning("[%s] malformed validation reply for %r: %s", self.channel_id, text, verdict.reason)
            raise ProtocolError(verdict.reason, text)
        if not verdict.valid:
            raise ValidationRejection(verdict.reason, text)
        return verdict

    def _apply(self, player_id: str, raw_text: str, verdict: MoveVerdict) -> Move:
        slot = self.current_turn
        move = Move(player_id=player_id, raw_text=raw_text, normalized_move=verdict.normalized_move, timestamp=_now())
        self.adapter.apply_move(self, verdict)
        self.move_history.append(move)
        if verdict.is_checkmate:
            self._finish(slot)
        elif verdict.is_draw:
            self._finish(DRAW)
        else:
            self.current_turn = self.other(slot)
        log.info("[%s] %s played %s%s", self.channel_id, player_id, verdict.normalized_move,
                 f" ({self.end_message()})" if self.is_finished() else "")
        return move

    def _finish(self, winner: str) -> None:
        self.winner = winner
        self.end_time = _now()

    def _report_disagreement(self, candidate, verdict: MoveVerdict) -> None:
        # data-quality signal only; the validation verdict is what gets applied
        if candidate.move_text != verdict.normalized_move:
            log.warning("[%s] oracle proposed %s but validation normalized it to %s",
                        self.channel_id, candidate.move_text, verdict.normalized_move)
        if candidate.resulting_state and candidate.resulting_state != verdict.resulting_state:
            log.warning("[%s] oracle self-inconsistency on %s: generated state %r, validated state %r",
                        self.channel_id, verdict.normalized_move, candidate.resulting_state, verdict.resulting_state)
        if candidate.is_checkmate is not None and candidate.is_checkmate != verdict.is_checkmate:
            log.warning("[%s] oracle self-inconsistency on checkmate flag for %s",
                        self.channel_id, verdict.normalized_move)

    # ---------------- Persistence -----------------
    def to_document(self) -> Dict[str, Any]:
        return {
            "game_type": self.game_type,
            "channel_id": self.channel_id,
            "player1": self.player1.to_dict(),
            "player2": self.player2.to_dict(),
            "current_turn": self.current_turn,
            "winner": self.winner,
            "move_history": [m.to_dict() for m in self.move_history],
            "start_time": self.start_time,
            "end_time": self.end_time,
            "vs_oracle": self.vs_oracle,
            "adapter_state": self.adapter.dump_state(),
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any], adapter: GameAdapter, channel_id: Optional[str] = None) -> "GameSession":
        """Rebuild a session; raises ValueError/KeyError on a malformed document."""
        current_turn = doc.get("current_turn", PLAYER1)
        winner = doc.get("winner")
        if current_turn not in (PLAYER1, PLAYER2):
            raise ValueError(f"bad current_turn {current_turn!r}")
        if winner not in (None, PLAYER1, PLAYER2, DRAW):
            raise ValueError(f"bad winner {winner!r}")
        if (winner is None) != (doc.get("end_time") is None):
            raise ValueError("winner and end_time must be set together")
        adapter.load_state(doc.get("adapter_state") or {})
        return cls(
            channel_id=channel_id or str(doc["channel_id"]),
            adapter=adapter,
            player1=Player.from_dict(doc["player1"]),
            player2=Player.from_dict(doc["player2"]),
            vs_oracle=bool(doc.get("vs_oracle", False)),
            current_turn=current_turn,
            winner=winner,
            move_history=[Move.from_dict(m) for m in doc.get("move_history") or []],
            start_time=doc.get("start_time"),
            end_time=doc.get("end_time"),
        )
