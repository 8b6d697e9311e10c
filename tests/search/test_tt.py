from __future__ import annotations

import pytest

from chesscore.config import SearchConfig
from chesscore.engine.board import Board
from chesscore.search.service import SearchEngine
from chesscore.search.tt import Bound, TranspositionTable


def test_capacity_bounds_size() -> None:
    tt = TranspositionTable(8)
    for key in range(1000):
        tt.store(key, depth=key % 5, score=0, bound=Bound.EXACT, best_move=None)
        assert len(tt) <= 8
    assert len(tt) == 8
    assert tt.hashfull() == 1000


def test_probe_requires_exact_key() -> None:
    tt = TranspositionTable(4)
    tt.store(1, depth=3, score=42, bound=Bound.LOWER, best_move=None)
    e = tt.probe(1)
    assert e is not None and e.score == 42 and e.bound == Bound.LOWER
    # 5 maps to the same slot but is a different position
    assert tt.probe(5) is None
    assert tt.probes == 2
    assert tt.hits == 1


def test_shallower_result_does_not_evict_same_generation() -> None:
    tt = TranspositionTable(4)
    assert tt.store(1, depth=5, score=10, bound=Bound.EXACT, best_move=None)
    assert not tt.store(5, depth=3, score=20, bound=Bound.EXACT, best_move=None)
    assert tt.probe(1) is not None
    assert tt.store(5, depth=5, score=20, bound=Bound.EXACT, best_move=None)
    assert tt.probe(1) is None
    assert tt.replacements == 1


def test_same_key_always_overwrites() -> None:
    tt = TranspositionTable(4)
    tt.store(1, depth=6, score=10, bound=Bound.EXACT, best_move=None)
    tt.store(1, depth=1, score=-3, bound=Bound.UPPER, best_move=None)
    e = tt.probe(1)
    assert e is not None and e.depth == 1 and e.score == -3
    assert len(tt) == 1


def test_older_generation_is_replaceable() -> None:
    tt = TranspositionTable(4)
    tt.store(1, depth=9, score=0, bound=Bound.EXACT, best_move=None)
    tt.new_search()
    assert tt.store(5, depth=1, score=0, bound=Bound.EXACT, best_move=None)
    e = tt.probe(5)
    assert e is not None and e.generation == 1


def test_clear_empties_table() -> None:
    tt = TranspositionTable(4)
    tt.store(1, depth=1, score=0, bound=Bound.EXACT, best_move=None)
    tt.clear()
    assert len(tt) == 0
    assert tt.probe(1) is None


def test_zero_capacity_rejected() -> None:
    with pytest.raises(ValueError):
        TranspositionTable(0)


def test_engine_table_is_sized_from_config() -> None:
    assert SearchEngine(SearchConfig(hash_mb=2)).tt.capacity == 2 * 16384
    assert SearchEngine(SearchConfig(tt_entries=100)).tt.capacity == 100


def test_search_respects_small_table() -> None:
    engine = SearchEngine(SearchConfig(tt_entries=16))
    res = engine.analyze(Board.startpos(), 3)
    assert res.tt_size <= 16
    assert len(engine.tt) <= 16
    assert res.best_move is not None


def test_table_cleared_between_searches_by_default() -> None:
    engine = SearchEngine()
    b = Board.startpos()
    first = engine.analyze(b, 3)
    second = engine.analyze(b, 3)
    assert first.nodes == second.nodes
    assert first.score == second.score
    assert [m.to_uci() for m in first.pv] == [m.to_uci() for m in second.pv]


def test_table_persists_when_configured() -> None:
    engine = SearchEngine(SearchConfig(clear_tt_between_searches=False))
    b = Board.startpos()
    engine.analyze(b, 2)
    size = len(engine.tt)
    assert size > 0
    engine.analyze(b, 2)
    assert engine.tt.generation == 2
    assert len(engine.tt) >= size


def test_search_reports_table_activity() -> None:
    res = SearchEngine().analyze(Board.startpos(), 3)
    assert res.tt_probes > 0
    assert res.tt_hits > 0
    assert res.tt_stores > 0
    assert res.tt_size > 0


def test_disabled_table_is_untouched() -> None:
    engine = SearchEngine(SearchConfig(use_tt=False))
    res = engine.analyze(Board.startpos(), 2)
    assert res.tt_probes == 0
    assert len(engine.tt) == 0
