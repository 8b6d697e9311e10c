"""Static evaluation.

Pure, deterministic, and side-effect free. Scores are centipawns from the
point of view of the side to move.
"""

from __future__ import annotations

from typing import Final, List

from ..engine.board import (
    Board,
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


# Material values in centipawns (1 / 3 / 3 / 5 / 9 pawns)
P_VAL: Final = 100
N_VAL: Final = 300
B_VAL: Final = 300
R_VAL: Final = 500
Q_VAL: Final = 900

# Static scores are clamped well below the search's mate band
EVAL_LIMIT: Final = 30_000

BISHOP_PAIR_MG: Final = 20
BISHOP_PAIR_EG: Final = 40
ROOK_SEMIOPEN_BONUS: Final = 8
ROOK_OPEN_BONUS: Final = 14

# Phase units: knights/bishops 1, rooks 2, queens 4; 24 at the start
PHASE_TOTAL: Final = 24

# fmt: off
# Piece-square tables, white perspective, index 0 = a1
PSQT_P: Final = [
    0, 0, 0, 0, 0, 0, 0, 0,
    5, 10, 10, -20, -20, 10, 10, 5,
    5, -5, -10, 0, 0, -10, -5, 5,
    0, 0, 0, 20, 20, 0, 0, 0,
    5, 5, 10, 25, 25, 10, 5, 5,
    10, 10, 20, 30, 30, 20, 10, 10,
    50, 50, 50, 50, 50, 50, 50, 50,
    0, 0, 0, 0, 0, 0, 0, 0,
]

PSQT_N: Final = [
    -50, -40, -30, -30, -30, -30, -40, -50,
    -40, -20, 0, 0, 0, 0, -20, -40,
    -30, 0, 10, 15, 15, 10, 0, -30,
    -30, 5, 15, 20, 20, 15, 5, -30,
    -30, 0, 15, 20, 20, 15, 0, -30,
    -30, 5, 10, 15, 15, 10, 5, -30,
    -40, -20, 0, 5, 5, 0, -20, -40,
    -50, -40, -30, -30, -30, -30, -40, -50,
]

PSQT_B: Final = [
    -20, -10, -10, -10, -10, -10, -10, -20,
    -10, 5, 0, 0, 0, 0, 5, -10,
    -10, 10, 10, 10, 10, 10, 10, -10,
    -10, 0, 10, 10, 10, 10, 0, -10,
    -10, 5, 5, 10, 10, 5, 5, -10,
    -10, 0, 5, 10, 10, 5, 0, -10,
    -10, 0, 0, 0, 0, 0, 0, -10,
    -20, -10, -10, -10, -10, -10, -10, -20,
]

PSQT_R: Final = [
    0, 0, 5, 10, 10, 5, 0, 0,
    -5, 0, 0, 0, 0, 0, 0, -5,
    -5, 0, 0, 0, 0, 0, 0, -5,
    -5, 0, 0, 0, 0, 0, 0, -5,
    -5, 0, 0, 0, 0, 0, 0, -5,
    -5, 0, 0, 0, 0, 0, 0, -5,
    5, 10, 10, 10, 10, 10, 10, 5,
    0, 0, 0, 0, 0, 0, 0, 0,
]

PSQT_Q: Final = [
    -20, -10, -10, -5, -5, -10, -10, -20,
    -10, 0, 0, 0, 0, 0, 0, -10,
    -10, 0, 5, 5, 5, 5, 0, -10,
    -5, 0, 5, 5, 5, 5, 0, -5,
    -5, 0, 5, 5, 5, 5, 0, -5,
    -10, 0, 5, 5, 5, 5, 0, -10,
    -10, 0, 0, 0, 0, 0, 0, -10,
    -20, -10, -10, -5, -5, -10, -10, -20,
]

PSQT_K: Final = [
    20, 30, 10, 0, 0, 10, 30, 20,
    20, 20, 0, 0, 0, 0, 20, 20,
    -10, -20, -20, -20, -20, -20, -20, -10,
    -20, -30, -30, -40, -40, -30, -30, -20,
    -30, -40, -40, -50, -50, -40, -40, -30,
    -30, -40, -40, -50, -50, -40, -40, -30,
    -30, -40, -40, -50, -50, -40, -40, -30,
    -30, -40, -40, -50, -50, -40, -40, -30,
]

PSQT_K_EG: Final = [
    -50, -30, -30, -30, -30, -30, -30, -50,
    -30, -10, 0, 0, 0, 0, -10, -30,
    -30, 0, 10, 15, 15, 10, 0, -30,
    -30, 0, 15, 20, 20, 15, 0, -30,
    -30, 0, 15, 20, 20, 15, 0, -30,
    -30, 0, 10, 15, 15, 10, 0, -30,
    -30, -10, 0, 0, 0, 0, -10, -30,
    -50, -30, -30, -30, -30, -30, -30, -50,
]
# fmt: on

# (white piece, black piece, value, table)
_MATERIAL_TERMS: Final = (
    (WP, BP, P_VAL, PSQT_P),
    (WN, BN, N_VAL, PSQT_N),
    (WB, BB, B_VAL, PSQT_B),
    (WR, BR, R_VAL, PSQT_R),
    (WQ, BQ, Q_VAL, PSQT_Q),
)


def _mirror_sq(sq: int) -> int:
    # Flip vertically (rank mirror)
    return sq ^ 56


def _file_mask(file_idx: int) -> int:
    mask = 0
    for r in range(8):
        mask |= 1 << (r * 8 + file_idx)
    return mask


FILE_MASKS: Final = tuple(_file_mask(f) for f in range(8))


def material(board: Board) -> int:
    """Return white material minus black material in centipawns (kings excluded)."""
    score = 0
    for wp, bp, val, _ in _MATERIAL_TERMS:
        score += (board.bb[wp].bit_count() - board.bb[bp].bit_count()) * val
    return score


def game_phase(board: Board) -> int:
    """Return the middlegame weight on a 0..128 scale (128 = all pieces on)."""
    knights = (board.bb[WN] | board.bb[BN]).bit_count()
    bishops = (board.bb[WB] | board.bb[BB]).bit_count()
    rooks = (board.bb[WR] | board.bb[BR]).bit_count()
    queens = (board.bb[WQ] | board.bb[BQ]).bit_count()
    phase_units = knights + bishops + 2 * rooks + 4 * queens
    return max(0, min(128, (phase_units * 128) // PHASE_TOTAL))


def _psqt(board: Board, white_piece: int, black_piece: int, table: List[int]) -> int:
    score = 0
    for sq in iter_bits(board.bb[white_piece]):
        score += table[sq]
    for sq in iter_bits(board.bb[black_piece]):
        score -= table[_mirror_sq(sq)]
    return score


def _rook_files(board: Board) -> int:
    score = 0
    wpawns = board.bb[WP]
    bpawns = board.bb[BP]
    for rook, own, opp, sign in ((WR, wpawns, bpawns, 1), (BR, bpawns, wpawns, -1)):
        for sq in iter_bits(board.bb[rook]):
            file_mask = FILE_MASKS[sq % 8]
            if own & file_mask:
                continue
            score += sign * (ROOK_SEMIOPEN_BONUS if opp & file_mask else ROOK_OPEN_BONUS)
    return score


def evaluate_white(board: Board) -> int:
    """Return the evaluation from White's point of view (positive favors White)."""
    score = material(board)
    for wp, bp, _, table in _MATERIAL_TERMS:
        score += _psqt(board, wp, bp, table)

    # King tables: blend middlegame/endgame by phase
    mg = game_phase(board)
    eg = 128 - mg
    for sq in iter_bits(board.bb[WK]):
        score += (mg * PSQT_K[sq] + eg * PSQT_K_EG[sq]) // 128
    for sq in iter_bits(board.bb[BK]):
        idx = _mirror_sq(sq)
        score -= (mg * PSQT_K[idx] + eg * PSQT_K_EG[idx]) // 128

    pair = (mg * BISHOP_PAIR_MG + eg * BISHOP_PAIR_EG) // 128
    if board.bb[WB].bit_count() >= 2:
        score += pair
    if board.bb[BB].bit_count() >= 2:
        score -= pair

    score += _rook_files(board)
    return max(-EVAL_LIMIT, min(EVAL_LIMIT, score))


def evaluate(board: Board) -> int:
    """Return the evaluation in centipawns from the side to move's perspective."""
    score = evaluate_white(board)
    return score if board.side_to_move == "w" else -score
