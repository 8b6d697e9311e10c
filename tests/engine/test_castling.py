from __future__ import annotations

from chesscore.engine.board import (
    BR,
    Board,
    CASTLE_BK,
    CASTLE_BQ,
    CASTLE_WK,
    CASTLE_WQ,
    WK,
    WR,
)
from chesscore.engine.move import str_to_square
from chesscore.engine.movegen import legal_moves


def moves_set(b: Board) -> set[str]:
    return {m.to_uci() for m in legal_moves(b)}


def play(b: Board, uci: str) -> None:
    b.make_move(next(m for m in legal_moves(b) if m.to_uci() == uci))


def test_white_castling_available_when_clear_and_not_in_check() -> None:
    ms = moves_set(Board.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"))
    assert "e1g1" in ms
    assert "e1c1" in ms


def test_black_castling_available() -> None:
    ms = moves_set(Board.from_fen("r3k2r/8/8/8/8/8/8/R3K2R b KQkq - 0 1"))
    assert "e8g8" in ms
    assert "e8c8" in ms


def test_castling_blocked_when_in_check() -> None:
    ms = moves_set(Board.from_fen("4r2k/8/8/8/8/8/8/R3K2R w KQ - 0 1"))
    assert "e1g1" not in ms
    assert "e1c1" not in ms


def test_castling_blocked_through_attacked_square() -> None:
    # Black rook on f8 covers f1; queen side still fine
    ms = moves_set(Board.from_fen("5r1k/8/8/8/8/8/8/R3K2R w KQ - 0 1"))
    assert "e1g1" not in ms
    assert "e1c1" in ms


def test_castling_blocked_landing_on_attacked_square() -> None:
    ms = moves_set(Board.from_fen("2r4k/8/8/8/8/8/8/R3K2R w KQ - 0 1"))
    assert "e1c1" not in ms
    assert "e1g1" in ms


def test_queen_side_allows_attacked_b_file_square() -> None:
    # b1 is attacked but the king never crosses it
    ms = moves_set(Board.from_fen("1r5k/8/8/8/8/8/8/R3K2R w KQ - 0 1"))
    assert "e1c1" in ms


def test_castling_blocked_by_piece_between() -> None:
    ms = moves_set(Board.from_fen("4k3/8/8/8/8/8/8/RN2K1NR w KQ - 0 1"))
    assert "e1g1" not in ms
    assert "e1c1" not in ms


def test_castling_requires_rights_bit() -> None:
    ms = moves_set(Board.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w Qkq - 0 1"))
    assert "e1g1" not in ms
    assert "e1c1" in ms


def test_castling_requires_rook_at_home() -> None:
    # Rights claim K but the h1 rook is missing
    ms = moves_set(Board.from_fen("4k3/8/8/8/8/8/8/R3K3 w KQ - 0 1"))
    assert "e1g1" not in ms


def test_castling_moves_rook_and_clears_rights() -> None:
    b = Board.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    mv = next(m for m in legal_moves(b) if m.to_uci() == "e1g1")
    assert mv.is_castling
    b.make_move(mv)
    assert (b.bb[WK] >> str_to_square("g1")) & 1
    assert (b.bb[WR] >> str_to_square("f1")) & 1
    assert not (b.bb[WR] >> str_to_square("h1")) & 1
    assert b.castling == CASTLE_BK | CASTLE_BQ
    b.unmake_move(mv)
    assert b.to_fen() == "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"


def test_black_queen_side_castle_places_rook_on_d8() -> None:
    b = Board.from_fen("r3k2r/8/8/8/8/8/8/R3K2R b KQkq - 0 1")
    play(b, "e8c8")
    assert (b.bb[BR] >> str_to_square("d8")) & 1
    assert b.to_fen() == "2kr3r/8/8/8/8/8/8/R3K2R w KQ - 1 2"


def test_rook_move_clears_only_its_side() -> None:
    b = Board.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    play(b, "a1b1")
    assert b.castling == CASTLE_WK | CASTLE_BK | CASTLE_BQ


def test_capturing_rook_at_home_clears_victims_right() -> None:
    b = Board.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    play(b, "h1h8")
    assert b.castling == CASTLE_WQ | CASTLE_BQ


def test_rights_not_rederived_from_placement() -> None:
    # Rook returns home but the right stays gone
    b = Board.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    play(b, "h1h2")
    play(b, "a8a7")
    play(b, "h2h1")
    assert not b.castling & CASTLE_WK
    assert "e1g1" not in moves_set(b)
    assert b.castling & CASTLE_WQ
    assert not b.castling & CASTLE_BQ
