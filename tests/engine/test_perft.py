from __future__ import annotations

import pytest

from chesscore.engine.board import Board, STARTPOS_FEN
from chesscore.engine.perft import divide, perft


KIWIPETE = "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1"
POSITION_3 = "8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1"
POSITION_4 = "r3k2r/Pppp1ppp/1b3nbN/nP6/BBP1P3/q4N2/Pp1P2PP/R2Q1RK1 w kq - 0 1"
POSITION_5 = "rnbq1k1r/pp1Pbppp/2p5/8/2B5/8/PPP1NnPP/RNBQK2R w KQ - 1 8"


@pytest.mark.parametrize(
    "fen, depth, expected",
    [
        (STARTPOS_FEN, 0, 1),
        (STARTPOS_FEN, 1, 20),
        (STARTPOS_FEN, 2, 400),
        (STARTPOS_FEN, 3, 8902),
        (KIWIPETE, 1, 48),
        (KIWIPETE, 2, 2039),
        (POSITION_3, 1, 14),
        (POSITION_3, 2, 191),
        (POSITION_3, 3, 2812),
        (POSITION_4, 1, 6),
        (POSITION_4, 2, 264),
        (POSITION_5, 1, 44),
        (POSITION_5, 2, 1486),
    ],
)
def test_perft_baselines(fen: str, depth: int, expected: int) -> None:
    b = Board.from_fen(fen)
    assert perft(b, depth) == expected
    assert b.to_fen() == fen


def test_divide_sums_to_perft() -> None:
    b = Board.from_fen(KIWIPETE)
    counts = divide(b, 2)
    assert len(counts) == 48
    assert sum(counts.values()) == 2039
    assert counts["e1g1"] == 43


def test_negative_depth_rejected() -> None:
    with pytest.raises(ValueError):
        perft(Board.startpos(), -1)
