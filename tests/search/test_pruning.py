from __future__ import annotations

import pytest

from chesscore.config import SearchConfig
from chesscore.engine.board import Board
from chesscore.search.service import SearchEngine


# (fen, depth) pairs kept small: the unpruned reference search is exhaustive
FIXTURES = [
    ("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1", 3),
    ("r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1", 2),
    ("8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1", 3),
    ("4k3/8/2p5/3n4/8/8/8/3QK3 w - - 0 1", 3),
    ("6k1/5ppp/8/8/8/8/8/R5K1 w - - 0 1", 3),
    ("r1bqkbnr/pppp1ppp/2n5/4p3/2B1P3/5Q2/PPPP1PPP/RNB1K1NR w KQkq - 4 4", 2),
]


@pytest.mark.parametrize("fen, depth", FIXTURES)
def test_alpha_beta_matches_unpruned_search(fen: str, depth: int) -> None:
    pruned = SearchEngine(SearchConfig(use_tt=False)).analyze(Board.from_fen(fen), depth)
    full = SearchEngine(SearchConfig(use_tt=False, pruning=False)).analyze(
        Board.from_fen(fen), depth
    )
    assert pruned.score == full.score
    assert pruned.depth == full.depth == depth
    assert pruned.nodes <= full.nodes


def test_pruning_saves_nodes() -> None:
    fen = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
    pruned = SearchEngine(SearchConfig(use_tt=False)).analyze(Board.from_fen(fen), 3)
    full = SearchEngine(SearchConfig(use_tt=False, pruning=False)).analyze(
        Board.from_fen(fen), 3
    )
    assert pruned.nodes < full.nodes


def test_search_is_deterministic() -> None:
    fen = "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1"
    a = SearchEngine().analyze(Board.from_fen(fen), 3)
    b = SearchEngine().analyze(Board.from_fen(fen), 3)
    assert a.score == b.score
    assert a.nodes == b.nodes
    assert [m.to_uci() for m in a.pv] == [m.to_uci() for m in b.pv]
