from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


PROMOTION_PIECES = ("q", "r", "b", "n")
FILES = "abcdefgh"


@dataclass(frozen=True)
class Move:
    """Engine-internal move representation.

    Attributes:
        from_sq (int): Origin square index (0-based, a1=0).
        to_sq (int): Destination square index (0-based).
        piece (int): Moving piece index (``WP`` .. ``BK``), encoding type and color.
        captured (Optional[int]): Captured piece index, if any. For en passant
            this is the captured pawn, which does not stand on ``to_sq``.
        promotion (Optional[str]): Lowercase promotion piece, if any.
        is_castling (bool): King move of two files; the rook hop is implied.
        is_en_passant (bool): Pawn capture onto the en-passant target.
    """

    from_sq: int
    to_sq: int
    piece: int
    captured: Optional[int] = None
    promotion: Optional[str] = None
    is_castling: bool = False
    is_en_passant: bool = False

    @property
    def is_capture(self) -> bool:
        return self.captured is not None

    def key(self) -> Tuple[int, int, Optional[str]]:
        """Return the coordinate identity ``(from, to, promotion)`` of the move."""
        return (self.from_sq, self.to_sq, self.promotion)

    def to_uci(self) -> str:
        """Serialize the move into long algebraic UCI form.

        Returns:
            str: Move encoded like ``"e2e4"`` or ``"e7e8q"``.
        """
        return square_to_str(self.from_sq) + square_to_str(self.to_sq) + (self.promotion or "")


def parse_uci(uci: str) -> Tuple[int, int, Optional[str]]:
    """Parse a UCI move string into its coordinates.

    Only the coordinates are known from text; the full :class:`Move` (piece,
    capture, flags) is recovered by matching against the legal move list.

    Args:
        uci (str): Move encoded in long algebraic notation (e.g. ``"e2e4"``).

    Returns:
        Tuple[int, int, Optional[str]]: ``(from_sq, to_sq, promotion)``.

    Raises:
        ValueError: If the string has an invalid length, squares, or promotion
            piece.
    """
    if len(uci) not in (4, 5):
        raise ValueError(f"invalid UCI move length: {uci!r}")
    from_sq = str_to_square(uci[0:2])
    to_sq = str_to_square(uci[2:4])
    promo: Optional[str] = None
    if len(uci) == 5:
        promo = uci[4].lower()
        if promo not in PROMOTION_PIECES:
            raise ValueError(f"invalid promotion piece: {promo!r}")
    return from_sq, to_sq, promo


def str_to_square(s: str) -> int:
    """Map a square name like ``"e4"`` to its index (a1=0, h8=63).

    Raises:
        ValueError: If ``s`` does not name a board square.
    """
    if len(s) != 2 or s[0] not in FILES or s[1] not in "12345678":
        raise ValueError(f"invalid square: {s!r}")
    return (int(s[1]) - 1) * 8 + FILES.index(s[0])


def square_to_str(idx: int) -> str:
    """Inverse of :func:`str_to_square`."""
    if not 0 <= idx < 64:
        raise ValueError(f"invalid square index: {idx}")
    return FILES[idx & 7] + str((idx >> 3) + 1)
