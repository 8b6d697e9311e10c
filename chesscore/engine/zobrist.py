from __future__ import annotations

from typing import List, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .board import Board


MASK64 = 0xFFFFFFFFFFFFFFFF


class _SplitMix64:
    def __init__(self, seed: int) -> None:
        self.state = seed & MASK64

    def next(self) -> int:
        # Deterministic 64-bit SplitMix64
        self.state = (self.state + 0x9E3779B97F4A7C15) & MASK64
        z = self.state
        z = (z ^ (z >> 30)) * 0xBF58476D1CE4E5B9 & MASK64
        z = (z ^ (z >> 27)) * 0x94D049BB133111EB & MASK64
        z = z ^ (z >> 31)
        return z & MASK64


class Zobrist:
    """Zobrist hashing seeds.

    Table layout:
    - piece_square[12][64]: indices follow Board piece order (WP..BK)
    - side_to_move: toggle for black side to move
    - castling[16]: one key per combination of the four rights bits
    - ep_file[8]: files a..h
    """

    piece_square: List[List[int]]
    side_to_move: int
    castling: List[int]
    ep_file: List[int]

    def __init__(self, seed: int = 0xC0FFEE_F00D_DEAD) -> None:
        prng = _SplitMix64(seed)
        self.piece_square = [[prng.next() for _ in range(64)] for _ in range(12)]
        self.side_to_move = prng.next()
        # Per-bit keys K, Q, k, q; combined keys are their XOR so that a
        # rights change is a single table lookup on either side.
        bits = [prng.next() for _ in range(4)]
        self.castling = [0] * 16
        for rights in range(16):
            h = 0
            for i in range(4):
                if rights & (1 << i):
                    h ^= bits[i]
            self.castling[rights] = h
        self.ep_file = [prng.next() for _ in range(8)]


# Global deterministic table
ZOBRIST = Zobrist()


def compute_hash_from_scratch(board: "Board") -> int:
    """Compute the 64-bit fingerprint of a Board.

    Covers piece placement, side to move, castling rights and the en-passant
    file. Clocks are deliberately excluded. Deterministic across runs given
    the fixed ZOBRIST table.
    """
    h = 0
    for p in range(12):
        bb = board.bb[p]
        while bb:
            lsb = bb & -bb
            sq = lsb.bit_length() - 1
            h ^= ZOBRIST.piece_square[p][sq]
            bb ^= lsb
    if board.side_to_move == "b":
        h ^= ZOBRIST.side_to_move
    h ^= ZOBRIST.castling[board.castling]
    if board.ep_square is not None:
        h ^= ZOBRIST.ep_file[board.ep_square % 8]
    return h & MASK64
