from __future__ import annotations

from typing import Dict, List, Optional, Type

from ..errors import UnknownGameTypeError
from .base import GameAdapter, GeneratedCandidate, MoveVerdict, RejectedAttempt
from .chess_adapter import ChessAdapter

_ADAPTERS: Dict[str, Type[GameAdapter]] = {
    ChessAdapter.tag: ChessAdapter,
    "ajedrez": ChessAdapter,
}


def adapter_class(tag: str | None) -> Optional[Type[GameAdapter]]:
    return _ADAPTERS.get((tag or "").strip().lower())


def known_game_types() -> List[str]:
    return sorted(_ADAPTERS)


def create_adapter(tag: str | None, **kwargs) -> GameAdapter:
    cls = adapter_class(tag)
    if cls is None:
        raise UnknownGameTypeError(tag or "", known_game_types())
    return cls(**kwargs)


__all__ = [
    "ChessAdapter",
    "GameAdapter",
    "GeneratedCandidate",
    "MoveVerdict",
    "RejectedAttempt",
    "adapter_class",
    "create_adapter",
    "known_game_types",
]
