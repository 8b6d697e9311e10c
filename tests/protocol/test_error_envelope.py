from __future__ import annotations

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from chesscore.protocol.http.app import create_app


def test_error_envelope_for_http_exception() -> None:
    app: FastAPI = create_app()

    @app.get("/boom")
    def boom():  # type: ignore[no-redef]
        raise HTTPException(status_code=409, detail="oops")

    client = TestClient(app)
    r = client.get("/boom")
    assert r.status_code == 409
    err = r.json()["error"]
    assert err["code"] == "conflict"
    assert err["message"] == "oops"
    assert err["type"] == "client_error"
    assert err["request_id"] == r.headers["x-request-id"]


def test_unhandled_exception_returns_500_envelope() -> None:
    app: FastAPI = create_app()

    @app.get("/crash")
    def crash():  # type: ignore[no-redef]
        raise RuntimeError("kaboom")

    client = TestClient(app, raise_server_exceptions=False)
    r = client.get("/crash")
    assert r.status_code == 500
    err = r.json()["error"]
    assert err["code"] == "internal_error"
    assert err["type"] == "server_error"
    assert "kaboom" not in err["message"]


def test_validation_error_envelope() -> None:
    client = TestClient(create_app())
    game_id = client.post("/api/games").json()["game_id"]
    r = client.post(f"/api/games/{game_id}/analyze", json={"depth": 0})
    assert r.status_code == 422
    err = r.json()["error"]
    assert err["code"] == "unprocessable_entity"
    assert any(fe["field"].endswith("depth") for fe in err["field_errors"])


@pytest.mark.parametrize(
    "fen, code",
    [
        ("", "fen_format_error"),
        ("8/8/8/8/8/8/8 w - - 0 1", "fen_board_error"),
        ("8/8/8/8/8/8/8/8 x - - 0 1", "fen_side_error"),
        ("8/8/8/8/8/8/8/8 w A - 0 1", "fen_castling_error"),
        ("8/8/8/8/8/8/8/8 w - z9 0 1", "fen_en_passant_error"),
    ],
)
def test_fen_errors_map_to_kind_codes(fen: str, code: str) -> None:
    client = TestClient(create_app())
    game_id = client.post("/api/games").json()["game_id"]
    client.post(f"/api/games/{game_id}/move", json={"move": "e2e4"})
    before = client.get(f"/api/games/{game_id}/state").json()

    r = client.post(f"/api/games/{game_id}/position", json={"fen": fen})
    assert r.status_code == 400
    err = r.json()["error"]
    assert err["code"] == code
    assert err["type"] == "client_error"
    # Failed load leaves the session untouched
    assert client.get(f"/api/games/{game_id}/state").json() == before
