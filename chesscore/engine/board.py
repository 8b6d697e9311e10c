from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from .move import Move
from .zobrist import MASK64, ZOBRIST, compute_hash_from_scratch


STARTPOS_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


# Piece indices for bitboards
WP, WN, WB, WR, WQ, WK, BP, BN, BB, BR, BQ, BK = range(12)
PIECE_ORDER = [WP, WN, WB, WR, WQ, WK, BP, BN, BB, BR, BQ, BK]
WHITE_PIECES = (WP, WN, WB, WR, WQ, WK)
BLACK_PIECES = (BP, BN, BB, BR, BQ, BK)
PIECE_TO_CHAR = {
    WP: "P",
    WN: "N",
    WB: "B",
    WR: "R",
    WQ: "Q",
    WK: "K",
    BP: "p",
    BN: "n",
    BB: "b",
    BR: "r",
    BQ: "q",
    BK: "k",
}
CHAR_TO_PIECE = {v: k for k, v in PIECE_TO_CHAR.items()}
PROMO_TO_PIECE = {
    "w": {"q": WQ, "r": WR, "b": WB, "n": WN},
    "b": {"q": BQ, "r": BR, "b": BB, "n": BN},
}

# Castling rights bits
CASTLE_WK = 1
CASTLE_WQ = 2
CASTLE_BK = 4
CASTLE_BQ = 8
CASTLE_ALL = CASTLE_WK | CASTLE_WQ | CASTLE_BK | CASTLE_BQ
CASTLING_CHARS = (("K", CASTLE_WK), ("Q", CASTLE_WQ), ("k", CASTLE_BK), ("q", CASTLE_BQ))

# King destination -> (rook origin, rook destination)
CASTLE_ROOK_HOPS = {6: (7, 5), 2: (0, 3), 62: (63, 61), 58: (56, 59)}


def _set_bit(bb: int, sq: int) -> int:
    return bb | (1 << sq)


def _get_bit(bb: int, sq: int) -> bool:
    return (bb >> sq) & 1 == 1


def iter_bits(bb: int) -> Iterator[int]:
    """Yield the set square indices of ``bb`` from least to most significant."""
    while bb:
        lsb = bb & -bb
        yield lsb.bit_length() - 1
        bb ^= lsb


def is_white_piece(piece: int) -> bool:
    return piece < BP


@dataclass
class Board:
    """Board state with bitboards and make/unmake primitives.

    Notes:
    - Squares are 0..63 (a1=0 .. h8=63), rank-major from white's perspective.
    - ``castling`` holds the four independent rights bits (``CASTLE_*``).
    - Equality compares the position only; the undo stack and the cached
      hash are excluded.
    """

    # 12 piece bitboards, indexed by constants above
    bb: List[int]
    side_to_move: str  # 'w' or 'b'
    castling: int
    ep_square: Optional[int]
    halfmove_clock: int
    fullmove_number: int
    # undo records, one per make_move
    _history: List[Tuple] = field(default_factory=list, repr=False, compare=False)
    # incremental zobrist hash of current position
    zobrist_hash: int = field(default=0, compare=False)

    def __post_init__(self) -> None:
        if not self.zobrist_hash:
            self.zobrist_hash = compute_hash_from_scratch(self)

    @classmethod
    def startpos(cls) -> "Board":
        """Create a board initialized to the standard chess starting position."""
        return cls.from_fen(STARTPOS_FEN)

    @classmethod
    def from_fen(cls, fen: str) -> "Board":
        """Create a board from a FEN string.

        Raises:
            FenError: If ``fen`` is malformed (see :mod:`chesscore.engine.fen`).
        """
        from .fen import decode

        return decode(fen)

    def to_fen(self) -> str:
        """Serialize the current position into a normalized FEN string."""
        from .fen import encode

        return encode(self)

    def copy(self) -> "Board":
        """Return an independent copy of the position (without undo history)."""
        return Board(
            bb=list(self.bb),
            side_to_move=self.side_to_move,
            castling=self.castling,
            ep_square=self.ep_square,
            halfmove_clock=self.halfmove_clock,
            fullmove_number=self.fullmove_number,
            zobrist_hash=self.zobrist_hash,
        )

    # --- Queries ---
    def piece_at(self, sq: int) -> Optional[int]:
        """Return the piece index occupying ``sq``, or ``None`` when empty."""
        for idx in PIECE_ORDER:
            if _get_bit(self.bb[idx], sq):
                return idx
        return None

    def occupancy(self, white: bool) -> int:
        own = WHITE_PIECES if white else BLACK_PIECES
        occ = 0
        for p in own:
            occ |= self.bb[p]
        return occ

    def occupied(self) -> int:
        occ = 0
        for b in self.bb:
            occ |= b
        return occ

    def king_square(self, white: bool) -> Optional[int]:
        kbb = self.bb[WK] if white else self.bb[BK]
        if kbb == 0:
            return None
        return (kbb & -kbb).bit_length() - 1

    def check_invariants(self) -> None:
        """Raise ``ValueError`` if the bitboards overlap or a side lacks exactly one king."""
        seen = 0
        for p in PIECE_ORDER:
            if seen & self.bb[p]:
                raise ValueError(f"bitboard {PIECE_TO_CHAR[p]!r} overlaps another piece")
            seen |= self.bb[p]
        if self.bb[WK].bit_count() != 1 or self.bb[BK].bit_count() != 1:
            raise ValueError("each side must have exactly one king")
        if self.zobrist_hash != compute_hash_from_scratch(self):
            raise ValueError("incremental hash diverged from position")

    # --- Make / unmake ---
    def make_move(self, move: Move) -> None:
        """Apply ``move`` to this board in-place with reversible state.

        ``move`` must come from the move generator for this exact position:
        its piece, capture and flags are trusted.

        Raises:
            ValueError: If the moving piece is not on ``move.from_sq`` or does
                not belong to the side to move.
        """
        from_sq, to_sq = move.from_sq, move.to_sq
        moved_piece = move.piece
        is_white = self.side_to_move == "w"
        if is_white_piece(moved_piece) != is_white or not _get_bit(self.bb[moved_piece], from_sq):
            raise ValueError("no piece to move from from_sq")

        self._history.append(
            (
                move,
                self.castling,
                self.ep_square,
                self.halfmove_clock,
                self.fullmove_number,
                self.zobrist_hash,
            )
        )

        h = self.zobrist_hash
        if self.ep_square is not None:
            h ^= ZOBRIST.ep_file[self.ep_square % 8]
        h ^= ZOBRIST.castling[self.castling]

        # Remove captured piece (behind the target square for en passant)
        captured_piece = move.captured
        if captured_piece is not None:
            if move.is_en_passant:
                cap_sq = to_sq - 8 if is_white else to_sq + 8
            else:
                cap_sq = to_sq
            self.bb[captured_piece] &= ~(1 << cap_sq)
            h ^= ZOBRIST.piece_square[captured_piece][cap_sq]

        # Move the piece, or replace it by the promotion piece
        self.bb[moved_piece] &= ~(1 << from_sq)
        h ^= ZOBRIST.piece_square[moved_piece][from_sq]
        placed = moved_piece
        if move.promotion:
            placed = PROMO_TO_PIECE[self.side_to_move][move.promotion]
        self.bb[placed] |= 1 << to_sq
        h ^= ZOBRIST.piece_square[placed][to_sq]

        if move.is_castling:
            rook = WR if is_white else BR
            rook_from, rook_to = CASTLE_ROOK_HOPS[to_sq]
            self.bb[rook] &= ~(1 << rook_from)
            self.bb[rook] |= 1 << rook_to
            h ^= ZOBRIST.piece_square[rook][rook_from]
            h ^= ZOBRIST.piece_square[rook][rook_to]

        # Clocks
        if moved_piece in (WP, BP) or captured_piece is not None:
            self.halfmove_clock = 0
        else:
            self.halfmove_clock += 1
        if not is_white:
            self.fullmove_number += 1

        self._update_castling_rights_on_move(moved_piece, from_sq, to_sq, captured_piece)
        h ^= ZOBRIST.castling[self.castling]

        # En passant target only survives for the ply after a double push
        self.ep_square = None
        if moved_piece in (WP, BP) and abs(to_sq - from_sq) == 16:
            self.ep_square = (from_sq + to_sq) // 2
            h ^= ZOBRIST.ep_file[self.ep_square % 8]

        h ^= ZOBRIST.side_to_move
        self.zobrist_hash = h & MASK64
        self.side_to_move = "b" if is_white else "w"

    def unmake_move(self, move: Move) -> None:
        """Undo the last move in-place, restoring the exact previous state.

        Raises:
            ValueError: If there is nothing to undo or ``move`` is not the
                move most recently made.
        """
        if not self._history:
            raise ValueError("no move to unmake")
        last, prev_castling, prev_ep, prev_halfmove, prev_fullmove, prev_hash = self._history[-1]
        if last != move:
            raise ValueError("unmake does not match the last move made")
        self._history.pop()

        from_sq, to_sq = move.from_sq, move.to_sq
        self.side_to_move = "w" if self.side_to_move == "b" else "b"
        is_white = self.side_to_move == "w"

        self.castling = prev_castling
        self.ep_square = prev_ep
        self.halfmove_clock = prev_halfmove
        self.fullmove_number = prev_fullmove
        self.zobrist_hash = prev_hash

        placed = move.piece
        if move.promotion:
            placed = PROMO_TO_PIECE[self.side_to_move][move.promotion]
        self.bb[placed] &= ~(1 << to_sq)
        self.bb[move.piece] |= 1 << from_sq

        if move.is_castling:
            rook = WR if is_white else BR
            rook_from, rook_to = CASTLE_ROOK_HOPS[to_sq]
            self.bb[rook] &= ~(1 << rook_to)
            self.bb[rook] |= 1 << rook_from

        if move.captured is not None:
            if move.is_en_passant:
                cap_sq = to_sq - 8 if is_white else to_sq + 8
            else:
                cap_sq = to_sq
            self.bb[move.captured] |= 1 << cap_sq

    def _update_castling_rights_on_move(
        self, moved_piece: int, from_sq: int, to_sq: int, captured_piece: Optional[int]
    ) -> None:
        """Clear rights on king/rook moves and on rooks captured at home."""
        rights = self.castling
        if moved_piece == WK:
            rights &= ~(CASTLE_WK | CASTLE_WQ)
        elif moved_piece == WR:
            if from_sq == 0:
                rights &= ~CASTLE_WQ
            elif from_sq == 7:
                rights &= ~CASTLE_WK
        elif moved_piece == BK:
            rights &= ~(CASTLE_BK | CASTLE_BQ)
        elif moved_piece == BR:
            if from_sq == 56:
                rights &= ~CASTLE_BQ
            elif from_sq == 63:
                rights &= ~CASTLE_BK
        if captured_piece == WR:
            if to_sq == 0:
                rights &= ~CASTLE_WQ
            elif to_sq == 7:
                rights &= ~CASTLE_WK
        elif captured_piece == BR:
            if to_sq == 56:
                rights &= ~CASTLE_BQ
            elif to_sq == 63:
                rights &= ~CASTLE_BK
        self.castling = rights
