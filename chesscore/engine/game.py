from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from ..search.service import AnalysisResult, SearchEngine

from .board import Board
from .fen import decode
from .move import Move, parse_uci
from .movegen import has_legal_moves, in_check, legal_moves


class IllegalMoveError(ValueError):
    """Raised when a supplied move is not legal in the current position."""


@dataclass
class EngineStats:
    nodes_searched: int
    transposition_entries: int
    side_to_move: str  # "white" or "black"


@dataclass
class Game:
    """Game wrapper around a board with helper operations.

    Responsibility: track board state and move history, expose legal moves,
    apply/undo moves, and run searches on the current position.
    """

    board: Board
    engine: SearchEngine = field(default_factory=SearchEngine)
    move_stack: List[Move] = field(default_factory=list)
    repetition: Dict[int, int] = field(default_factory=dict)
    # Fingerprints of every position reached, current one last
    positions: List[int] = field(default_factory=list)

    @classmethod
    def new(cls, engine: Optional[SearchEngine] = None) -> "Game":
        if engine is None:
            return cls(board=Board.startpos())
        return cls(board=Board.startpos(), engine=engine)

    @classmethod
    def from_fen(cls, fen: str, engine: Optional[SearchEngine] = None) -> "Game":
        if engine is None:
            return cls(board=decode(fen))
        return cls(board=decode(fen), engine=engine)

    def __post_init__(self) -> None:
        self._seed_history()

    def _seed_history(self) -> None:
        h = self.board.zobrist_hash
        self.move_stack = []
        self.repetition = {h: 1}
        self.positions = [h]

    # --- Host operations ---
    def load_position(self, fen: str) -> None:
        """Replace the current position with ``fen``.

        Raises:
            FenError: If ``fen`` is malformed; the game is left unchanged.
        """
        board = decode(fen)
        self.board = board
        self._seed_history()
        self.engine.reset()

    def current_position(self) -> str:
        return self.board.to_fen()

    def to_fen(self) -> str:
        return self.board.to_fen()

    def legal_moves(self) -> List[Move]:
        return legal_moves(self.board)

    def analyze(
        self, depth: Optional[int] = None, time_limit_ms: Optional[int] = None
    ) -> AnalysisResult:
        return self.engine.analyze(
            self.board, depth, time_limit_ms=time_limit_ms, history=self.positions[:-1]
        )

    def stats(self) -> EngineStats:
        last = self.engine.last_result
        return EngineStats(
            nodes_searched=last.nodes if last is not None else 0,
            transposition_entries=len(self.engine.tt),
            side_to_move="white" if self.board.side_to_move == "w" else "black",
        )

    # --- Move application ---
    def find_move(self, move: Union[Move, str]) -> Move:
        """Return the generated legal move matching ``move`` by from/to/promotion."""
        if isinstance(move, str):
            try:
                key = parse_uci(move)
            except ValueError as e:
                raise IllegalMoveError(str(e)) from e
        else:
            key = move.key()
        for m in legal_moves(self.board):
            if m.key() == key:
                return m
        raise IllegalMoveError(f"illegal move: {move if isinstance(move, str) else move.to_uci()}")

    def apply_move(self, move: Union[Move, str]) -> Move:
        legal = self.find_move(move)
        self.board.make_move(legal)
        self.move_stack.append(legal)
        h = self.board.zobrist_hash
        self.repetition[h] = self.repetition.get(h, 0) + 1
        self.positions.append(h)
        return legal

    def undo_move(self) -> Move:
        if not self.move_stack:
            raise ValueError("no moves to undo")
        curr = self.positions.pop()
        self.repetition[curr] -= 1
        if self.repetition[curr] <= 0:
            del self.repetition[curr]
        last = self.move_stack.pop()
        self.board.unmake_move(last)
        return last

    # --- State flags for protocol ---
    def in_check(self) -> bool:
        return in_check(self.board)

    def checkmate(self) -> bool:
        return (not has_legal_moves(self.board)) and in_check(self.board)

    def stalemate(self) -> bool:
        return (not has_legal_moves(self.board)) and (not in_check(self.board))

    def is_draw(self) -> bool:
        # Draw by 50-move rule, stalemate, or threefold repetition
        if self.board.halfmove_clock >= 100 and not self.checkmate():
            return True
        if self.stalemate():
            return True
        return self.repetition.get(self.board.zobrist_hash, 0) >= 3

    def move_history_uci(self) -> List[str]:
        return [m.to_uci() for m in self.move_stack]
