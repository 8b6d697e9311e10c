from __future__ import annotations

from fastapi.testclient import TestClient

from chesscore.engine.board import STARTPOS_FEN
from chesscore.protocol.http.app import create_app


def _client() -> TestClient:
    return TestClient(create_app())


def _new_game(client: TestClient) -> str:
    r = client.post("/api/games")
    assert r.status_code == 200
    return r.json()["game_id"]


def test_create_game_and_get_state() -> None:
    client = _client()
    r = client.post("/api/games")
    assert r.status_code == 200
    body = r.json()
    game_id = body["game_id"]
    assert isinstance(game_id, str) and game_id
    assert body["fen"] == STARTPOS_FEN

    r2 = client.get(f"/api/games/{game_id}/state")
    assert r2.status_code == 200
    state = r2.json()
    assert state["game_id"] == game_id
    assert state["fen"] == STARTPOS_FEN
    assert state["side_to_move"] == "white"
    assert len(state["legal_moves"]) == 20
    assert state["last_move"] is None


def test_create_game_from_fen() -> None:
    client = _client()
    fen = "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"
    r = client.post("/api/games", json={"fen": fen})
    assert r.status_code == 200
    assert r.json()["fen"] == fen


def test_get_state_unknown_id_404() -> None:
    client = _client()
    r = client.get("/api/games/does-not-exist/state")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_found"


def test_set_position_success() -> None:
    client = _client()
    game_id = _new_game(client)
    fen = "8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1"
    r = client.post(f"/api/games/{game_id}/position", json={"fen": fen})
    assert r.status_code == 200
    state = r.json()
    assert state["fen"] == fen
    assert len(state["legal_moves"]) == 14


def test_moves_endpoint() -> None:
    client = _client()
    game_id = _new_game(client)
    r = client.get(f"/api/games/{game_id}/moves")
    assert r.status_code == 200
    body = r.json()
    assert len(body["moves"]) == 20
    assert "e2e4" in body["moves"]
    assert body["in_check"] is False


def test_move_and_undo() -> None:
    client = _client()
    game_id = _new_game(client)
    r = client.post(f"/api/games/{game_id}/move", json={"move": "e2e4"})
    assert r.status_code == 200
    state = r.json()
    assert state["last_move"] == "e2e4"
    assert state["side_to_move"] == "black"
    assert state["fen"] == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"
    assert len(state["legal_moves"]) == 20

    r = client.post(f"/api/games/{game_id}/undo")
    assert r.status_code == 200
    assert r.json()["fen"] == STARTPOS_FEN
    assert r.json()["move_history"] == []

    r = client.post(f"/api/games/{game_id}/undo")
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "bad_request"


def test_illegal_move_rejected() -> None:
    client = _client()
    game_id = _new_game(client)
    r = client.post(f"/api/games/{game_id}/move", json={"move": "e2e5"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "illegal_move"
    state = client.get(f"/api/games/{game_id}/state").json()
    assert state["fen"] == STARTPOS_FEN


def test_checkmate_state_flags() -> None:
    client = _client()
    game_id = _new_game(client)
    for uci in ("f2f3", "e7e5", "g2g4", "d8h4"):
        assert client.post(f"/api/games/{game_id}/move", json={"move": uci}).status_code == 200
    state = client.get(f"/api/games/{game_id}/state").json()
    assert state["checkmate"] is True
    assert state["in_check"] is True
    assert state["legal_moves"] == []


def test_delete_game() -> None:
    client = _client()
    game_id = _new_game(client)
    assert client.delete(f"/api/games/{game_id}").status_code == 200
    assert client.get(f"/api/games/{game_id}/state").status_code == 404
    assert client.delete(f"/api/games/{game_id}").status_code == 404


def test_sessions_are_independent() -> None:
    client = _client()
    a = _new_game(client)
    b = _new_game(client)
    client.post(f"/api/games/{a}/move", json={"move": "d2d4"})
    assert client.get(f"/api/games/{b}/state").json()["fen"] == STARTPOS_FEN
