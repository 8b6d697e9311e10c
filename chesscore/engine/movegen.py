"""Legal move generation over :class:`Board` bitboards.

Moves are generated pseudo-legally per piece kind and then filtered by making
each one, testing whether the mover's king is attacked, and unmaking it. The
output order is deterministic for a given position: pawns, knights, bishops,
rooks, queens, king steps, castling; ascending origin square within a kind.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .board import (
    BLACK_PIECES,
    Board,
    CASTLE_BK,
    CASTLE_BQ,
    CASTLE_WK,
    CASTLE_WQ,
    WHITE_PIECES,
    iter_bits,
    WP,
    WN,
    WB,
    WR,
    WQ,
    WK,
    BP,
    BN,
    BB,
    BR,
    BQ,
    BK,
)
from .move import Move, PROMOTION_PIECES


KNIGHT_OFFSETS = ((-1, 2), (1, 2), (-2, 1), (2, 1), (-2, -1), (2, -1), (-1, -2), (1, -2))
KING_OFFSETS = ((-1, -1), (0, -1), (1, -1), (-1, 0), (1, 0), (-1, 1), (0, 1), (1, 1))
BISHOP_DIRS = ((-1, -1), (1, -1), (-1, 1), (1, 1))
ROOK_DIRS = ((-1, 0), (1, 0), (0, -1), (0, 1))
QUEEN_DIRS = BISHOP_DIRS + ROOK_DIRS


def _leap_table(offsets: Sequence[Tuple[int, int]]) -> List[Tuple[int, ...]]:
    table: List[Tuple[int, ...]] = []
    for sq in range(64):
        f, r = sq % 8, sq // 8
        targets = []
        for df, dr in offsets:
            tf, tr = f + df, r + dr
            if 0 <= tf < 8 and 0 <= tr < 8:
                targets.append(tr * 8 + tf)
        table.append(tuple(targets))
    return table


def _ray_table(dirs: Sequence[Tuple[int, int]]) -> List[Tuple[Tuple[int, ...], ...]]:
    # For each square, one tuple of squares per direction, nearest first.
    table: List[Tuple[Tuple[int, ...], ...]] = []
    for sq in range(64):
        f, r = sq % 8, sq // 8
        rays = []
        for df, dr in dirs:
            ray = []
            tf, tr = f + df, r + dr
            while 0 <= tf < 8 and 0 <= tr < 8:
                ray.append(tr * 8 + tf)
                tf += df
                tr += dr
            rays.append(tuple(ray))
        table.append(tuple(rays))
    return table


KNIGHT_TARGETS = _leap_table(KNIGHT_OFFSETS)
KING_TARGETS = _leap_table(KING_OFFSETS)
BISHOP_RAYS = _ray_table(BISHOP_DIRS)
ROOK_RAYS = _ray_table(ROOK_DIRS)
QUEEN_RAYS = [b + r for b, r in zip(BISHOP_RAYS, ROOK_RAYS)]


def is_square_attacked(board: Board, sq: int, by_white: bool) -> bool:
    """Return True if ``sq`` is attacked by the given side.

    Covers pawns, knights, king, and slider rays for bishops/rooks/queens.
    """
    bb = board.bb
    f = sq % 8
    if by_white:
        pawns, knights, king = bb[WP], bb[WN], bb[WK]
        diag, ortho = bb[WB] | bb[WQ], bb[WR] | bb[WQ]
        # White pawns attack from one rank below
        if f > 0 and sq >= 9 and (pawns >> (sq - 9)) & 1:
            return True
        if f < 7 and sq >= 7 and (pawns >> (sq - 7)) & 1:
            return True
    else:
        pawns, knights, king = bb[BP], bb[BN], bb[BK]
        diag, ortho = bb[BB] | bb[BQ], bb[BR] | bb[BQ]
        if f < 7 and sq <= 54 and (pawns >> (sq + 9)) & 1:
            return True
        if f > 0 and sq <= 56 and (pawns >> (sq + 7)) & 1:
            return True

    for o in KNIGHT_TARGETS[sq]:
        if (knights >> o) & 1:
            return True
    for o in KING_TARGETS[sq]:
        if (king >> o) & 1:
            return True

    occ = board.occupied()
    if diag:
        for ray in BISHOP_RAYS[sq]:
            for o in ray:
                if (occ >> o) & 1:
                    if (diag >> o) & 1:
                        return True
                    break
    if ortho:
        for ray in ROOK_RAYS[sq]:
            for o in ray:
                if (occ >> o) & 1:
                    if (ortho >> o) & 1:
                        return True
                    break
    return False


def in_check(board: Board, side: Optional[str] = None) -> bool:
    """Return True if ``side`` (default: side to move) has its king attacked."""
    s = board.side_to_move if side is None else side
    if s not in ("w", "b"):
        raise ValueError("side must be 'w' or 'b'")
    ksq = board.king_square(s == "w")
    if ksq is None:
        return False
    return is_square_attacked(board, ksq, by_white=(s == "b"))


def _victim(board: Board, sq: int, opp: Sequence[int]) -> Optional[int]:
    for p in opp:
        if (board.bb[p] >> sq) & 1:
            return p
    return None


def _pawn_moves(board: Board, white: bool, occ_all: int, occ_opp: int, moves: List[Move]) -> None:
    if white:
        pawn, opp, push, home_rank, last_rank = WP, BLACK_PIECES, 8, 1, 7
        captures = ((-1, 7), (1, 9))  # (file delta, square delta)
        ep_rank, enemy_pawn = 5, BP
    else:
        pawn, opp, push, home_rank, last_rank = BP, WHITE_PIECES, -8, 6, 0
        captures = ((-1, -9), (1, -7))
        ep_rank, enemy_pawn = 2, WP

    ep = board.ep_square
    if ep is not None:
        # Only a target behind an enemy pawn that just double-pushed is usable
        cap_sq = ep - push
        if ep // 8 != ep_rank or (occ_all >> ep) & 1 or not (board.bb[enemy_pawn] >> cap_sq) & 1:
            ep = None

    for from_sq in iter_bits(board.bb[pawn]):
        if from_sq // 8 == last_rank:
            # Unreachable in play but accepted by the decoder; such a pawn cannot move.
            continue
        file_idx = from_sq % 8
        to_sq = from_sq + push
        if not (occ_all >> to_sq) & 1:
            if to_sq // 8 == last_rank:
                for promo in PROMOTION_PIECES:
                    moves.append(Move(from_sq, to_sq, pawn, promotion=promo))
            else:
                moves.append(Move(from_sq, to_sq, pawn))
                if from_sq // 8 == home_rank:
                    to2 = to_sq + push
                    if not (occ_all >> to2) & 1:
                        moves.append(Move(from_sq, to2, pawn))
        for df, delta in captures:
            if not 0 <= file_idx + df < 8:
                continue
            cap = from_sq + delta
            if (occ_opp >> cap) & 1:
                victim = _victim(board, cap, opp)
                if cap // 8 == last_rank:
                    for promo in PROMOTION_PIECES:
                        moves.append(Move(from_sq, cap, pawn, captured=victim, promotion=promo))
                else:
                    moves.append(Move(from_sq, cap, pawn, captured=victim))
            elif cap == ep:
                moves.append(Move(from_sq, cap, pawn, captured=enemy_pawn, is_en_passant=True))


def _leaper_moves(
    board: Board,
    piece: int,
    table: List[Tuple[int, ...]],
    occ_own: int,
    occ_opp: int,
    opp: Sequence[int],
    moves: List[Move],
) -> None:
    for from_sq in iter_bits(board.bb[piece]):
        for to_sq in table[from_sq]:
            if (occ_own >> to_sq) & 1:
                continue
            victim = _victim(board, to_sq, opp) if (occ_opp >> to_sq) & 1 else None
            moves.append(Move(from_sq, to_sq, piece, captured=victim))


def _slider_moves(
    board: Board,
    piece: int,
    rays: List[Tuple[Tuple[int, ...], ...]],
    occ_own: int,
    occ_opp: int,
    opp: Sequence[int],
    moves: List[Move],
) -> None:
    for from_sq in iter_bits(board.bb[piece]):
        for ray in rays[from_sq]:
            for to_sq in ray:
                if (occ_own >> to_sq) & 1:
                    break
                if (occ_opp >> to_sq) & 1:
                    moves.append(Move(from_sq, to_sq, piece, captured=_victim(board, to_sq, opp)))
                    break
                moves.append(Move(from_sq, to_sq, piece))


def _castling_moves(board: Board, white: bool, occ_all: int, moves: List[Move]) -> None:
    if white:
        king, rook, home, enemy_white = WK, WR, 4, False
        sides = (
            (CASTLE_WK, 7, (5, 6), (5, 6)),
            (CASTLE_WQ, 0, (1, 2, 3), (3, 2)),
        )
    else:
        king, rook, home, enemy_white = BK, BR, 60, True
        sides = (
            (CASTLE_BK, 63, (61, 62), (61, 62)),
            (CASTLE_BQ, 56, (57, 58, 59), (59, 58)),
        )
    if not board.castling or not (board.bb[king] >> home) & 1:
        return
    if is_square_attacked(board, home, by_white=enemy_white):
        return
    for right, rook_sq, between, path in sides:
        if not board.castling & right or not (board.bb[rook] >> rook_sq) & 1:
            continue
        if any((occ_all >> sq) & 1 for sq in between):
            continue
        if any(is_square_attacked(board, sq, by_white=enemy_white) for sq in path):
            continue
        moves.append(Move(home, path[-1], king, is_castling=True))


def pseudo_legal_moves(board: Board) -> List[Move]:
    """Return all moves obeying piece movement rules, ignoring self-check."""
    white = board.side_to_move == "w"
    own = WHITE_PIECES if white else BLACK_PIECES
    opp = BLACK_PIECES if white else WHITE_PIECES
    occ_own = board.occupancy(white)
    occ_opp = board.occupancy(not white)
    occ_all = occ_own | occ_opp

    moves: List[Move] = []
    _pawn_moves(board, white, occ_all, occ_opp, moves)
    _leaper_moves(board, own[1], KNIGHT_TARGETS, occ_own, occ_opp, opp, moves)
    _slider_moves(board, own[2], BISHOP_RAYS, occ_own, occ_opp, opp, moves)
    _slider_moves(board, own[3], ROOK_RAYS, occ_own, occ_opp, opp, moves)
    _slider_moves(board, own[4], QUEEN_RAYS, occ_own, occ_opp, opp, moves)
    _leaper_moves(board, own[5], KING_TARGETS, occ_own, occ_opp, opp, moves)
    _castling_moves(board, white, occ_all, moves)
    return moves


def _leaves_king_safe(board: Board, move: Move, white: bool) -> bool:
    board.make_move(move)
    try:
        ksq = board.king_square(white)
        return ksq is None or not is_square_attacked(board, ksq, by_white=not white)
    finally:
        board.unmake_move(move)


def legal_moves(board: Board) -> List[Move]:
    """Return the strictly legal moves for the side to move.

    The board is mutated and restored for each candidate; on return it is
    identical to the input.
    """
    white = board.side_to_move == "w"
    return [m for m in pseudo_legal_moves(board) if _leaves_king_safe(board, m, white)]


def captures(board: Board) -> List[Move]:
    """Return the legal captures (including en passant) in generation order."""
    return [m for m in legal_moves(board) if m.captured is not None]


def has_legal_moves(board: Board) -> bool:
    white = board.side_to_move == "w"
    return any(_leaves_king_safe(board, m, white) for m in pseudo_legal_moves(board))


def is_checkmate(board: Board) -> bool:
    return in_check(board) and not has_legal_moves(board)


def is_stalemate(board: Board) -> bool:
    return not in_check(board) and not has_legal_moves(board)
