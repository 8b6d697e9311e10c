"""Forsyth-Edwards Notation codec.

``decode`` is the only gate through which external positions enter the
engine; it either returns a fresh :class:`Board` or raises a :class:`FenError`
subclass and touches nothing else.
"""

from __future__ import annotations

from typing import List, Optional

from .board import (
    Board,
    CASTLING_CHARS,
    CHAR_TO_PIECE,
    PIECE_ORDER,
    PIECE_TO_CHAR,
    _get_bit,
    _set_bit,
)
from .move import square_to_str


class FenError(ValueError):
    """Base class for FEN decoding failures."""

    kind = "format"


class FenFormatError(FenError):
    """Too few whitespace-separated fields."""

    kind = "format"


class FenBoardError(FenError):
    """Rank count, rank width, or an unrecognized piece character."""

    kind = "board"


class FenSideError(FenError):
    kind = "side"


class FenCastlingError(FenError):
    kind = "castling"


class FenEnPassantError(FenError):
    kind = "en_passant"


def decode(text: str) -> Board:
    """Create a board from a FEN string.

    Args:
        text (str): FEN with at least the placement, side, castling and
            en-passant fields. Missing or unparsable clocks default to
            half-move 0 and full-move 1.

    Returns:
        Board: Newly built board with its Zobrist hash seeded.

    Raises:
        FenFormatError: Fewer than four fields.
        FenBoardError: Not 8 ranks, a rank not summing to 8 files, or an
            unknown character.
        FenSideError: Side to move other than ``w``/``b``.
        FenCastlingError: Castling field other than ``-`` or letters of ``KQkq``.
        FenEnPassantError: En-passant field other than ``-`` or a square.
    """
    if not isinstance(text, str):
        raise FenFormatError("FEN must be a string")
    parts = text.split()
    if len(parts) < 4:
        raise FenFormatError("FEN must have at least 4 fields")
    placement, stm, castling_field, ep = parts[:4]

    bb = _decode_placement(placement)

    if stm not in ("w", "b"):
        raise FenSideError("side to move must be 'w' or 'b'")

    castling = 0
    if castling_field != "-":
        letters = dict(CASTLING_CHARS)
        for ch in castling_field:
            if ch not in letters:
                raise FenCastlingError(f"invalid castling character: {ch!r}")
            castling |= letters[ch]

    ep_square: Optional[int] = None
    if ep != "-":
        if len(ep) != 2 or not ("a" <= ep[0] <= "h") or not ("1" <= ep[1] <= "8"):
            raise FenEnPassantError(f"invalid en passant square: {ep!r}")
        ep_square = (int(ep[1]) - 1) * 8 + (ord(ep[0]) - ord("a"))

    halfmove_clock = _parse_counter(parts[4] if len(parts) > 4 else None, default=0, minimum=0)
    fullmove_number = _parse_counter(parts[5] if len(parts) > 5 else None, default=1, minimum=1)

    return Board(
        bb=bb,
        side_to_move=stm,
        castling=castling,
        ep_square=ep_square,
        halfmove_clock=halfmove_clock,
        fullmove_number=fullmove_number,
    )


def encode(board: Board) -> str:
    """Serialize a board into a normalized FEN string.

    Empty squares are run-length compressed with minimal digits and castling
    rights are emitted in ``KQkq`` order.
    """
    ranks_str: List[str] = []
    for rank_idx in range(7, -1, -1):  # 7..0 maps to ranks 8..1
        run = 0
        row = []
        for file_idx in range(8):
            ch = _piece_char_at(board, rank_idx * 8 + file_idx)
            if ch is None:
                run += 1
            else:
                if run > 0:
                    row.append(str(run))
                    run = 0
                row.append(ch)
        if run > 0:
            row.append(str(run))
        ranks_str.append("".join(row))
    placement = "/".join(ranks_str)

    castling = "".join(ch for ch, bit in CASTLING_CHARS if board.castling & bit) or "-"
    ep = square_to_str(board.ep_square) if board.ep_square is not None else "-"
    return (
        f"{placement} {board.side_to_move} {castling} {ep} "
        f"{board.halfmove_clock} {board.fullmove_number}"
    )


def _decode_placement(placement: str) -> List[int]:
    ranks = placement.split("/")
    if len(ranks) != 8:
        raise FenBoardError("FEN board must have 8 ranks")
    bb = [0] * 12
    for rank_idx, rank in enumerate(ranks[::-1]):  # start from rank 1 (bottom)
        file_idx = 0
        for ch in rank:
            if "1" <= ch <= "8":
                file_idx += int(ch)
            elif ch in CHAR_TO_PIECE:
                if file_idx < 8:
                    p = CHAR_TO_PIECE[ch]
                    bb[p] = _set_bit(bb[p], rank_idx * 8 + file_idx)
                file_idx += 1
            else:
                raise FenBoardError(f"invalid piece in FEN: {ch!r}")
            if file_idx > 8:
                raise FenBoardError("too many squares in FEN rank")
        if file_idx != 8:
            raise FenBoardError("rank does not sum to 8 squares in FEN")
    return bb


def _parse_counter(field: Optional[str], *, default: int, minimum: int) -> int:
    if field is None:
        return default
    try:
        value = int(field)
    except ValueError:
        return default
    return value if value >= minimum else default


def _piece_char_at(board: Board, sq: int) -> Optional[str]:
    for idx in PIECE_ORDER:
        if _get_bit(board.bb[idx], sq):
            return PIECE_TO_CHAR[idx]
    return None
