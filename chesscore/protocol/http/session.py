from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from ...engine.game import Game


@dataclass
class GameSession:
    game: Game
    # Held while a request reads or mutates the game
    lock: threading.Lock = field(default_factory=threading.Lock)


class InMemorySessionStore:
    """Thread-safe in-memory game session store.

    The store lock guards only the session map. Each session carries its own
    lock so one game is touched by one request at a time while other games
    proceed.
    """

    def __init__(self, game_factory: Callable[[], Game] = Game.new) -> None:
        self._lock = threading.RLock()
        self._sessions: Dict[str, GameSession] = {}
        self._game_factory = game_factory

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self, game: Optional[Game] = None) -> str:
        """Create a new game session and return its `game_id`."""
        gid = str(uuid.uuid4())
        session = GameSession(game if game is not None else self._game_factory())
        with self._lock:
            self._sessions[gid] = session
        return gid

    def get(self, game_id: str) -> Optional[GameSession]:
        with self._lock:
            return self._sessions.get(game_id)

    def delete(self, game_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(game_id, None) is not None
