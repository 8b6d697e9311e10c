from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Optional
from contextlib import contextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, Field

from .error import (
    exception_handler,
    fen_error_handler,
    http_exception_handler,
    illegal_move_handler,
    request_validation_exception_handler,
)
from .logging_middleware import RequestIDLoggingMiddleware
from .session import InMemorySessionStore
from ...config import SearchConfig, ServerConfig
from ...engine.board import STARTPOS_FEN
from ...engine.fen import FenError, decode
from ...engine.game import Game, IllegalMoveError
from ...engine.perft import divide, perft as perft_nodes
from ...search.service import AnalysisResult, SearchEngine


logger = logging.getLogger(__name__)


class CreateGameRequest(BaseModel):
    fen: Optional[str] = Field(default=None, description="FEN string; start position if omitted")


class CreateGameResponse(BaseModel):
    game_id: str
    fen: str


class SetPositionRequest(BaseModel):
    fen: str = Field(..., description="FEN string")


class MoveRequest(BaseModel):
    move: str = Field(..., description="UCI move string, e.g., e2e4")


class AnalyzeRequest(BaseModel):
    depth: Optional[int] = Field(default=None, ge=1, le=64)
    time_limit_ms: Optional[int] = Field(default=None, ge=0)


class AnalyzeResponse(BaseModel):
    best_move: Optional[str]
    score: Dict[str, int]  # {"cp": n} or {"mate": n}
    pv: list[str]
    nodes: int
    depth: int
    time_ms: int
    timed_out: bool
    tt_hits: int
    tt_size: int


class StatsResponse(BaseModel):
    nodes_searched: int
    transposition_entries: int
    side_to_move: str


class PerftRequest(BaseModel):
    fen: str = Field(default=STARTPOS_FEN)
    depth: int = Field(default=1, ge=0, le=6)
    divide: bool = False


class GameState(BaseModel):
    game_id: str
    fen: str
    side_to_move: str
    legal_moves: list[str]
    in_check: bool
    checkmate: bool
    stalemate: bool
    draw: bool
    last_move: Optional[str]
    move_history: list[str]


def create_app(
    config: Optional[ServerConfig] = None, search_config: Optional[SearchConfig] = None
) -> FastAPI:
    config = config or ServerConfig.from_env()
    search_config = search_config or SearchConfig.from_env()
    app = FastAPI(title="chesscore", version="0.1.0")

    logging.basicConfig(level=config.log_level)

    # Middleware & error handling
    app.add_middleware(RequestIDLoggingMiddleware)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(FenError, fen_error_handler)
    app.add_exception_handler(IllegalMoveError, illegal_move_handler)
    app.add_exception_handler(Exception, exception_handler)

    def new_game(fen: Optional[str] = None) -> Game:
        engine = SearchEngine(search_config)
        if fen is None:
            return Game.new(engine=engine)
        return Game.from_fen(fen, engine=engine)

    store = InMemorySessionStore(game_factory=new_game)
    app.state.store = store
    app.state.config = config

    @contextmanager
    def locked_game(game_id: str) -> Iterator[Game]:
        session = store.get(game_id)
        if session is None:
            raise HTTPException(status_code=404, detail="game not found")
        with session.lock:
            yield session.game

    @app.get("/healthz")
    async def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/games", response_model=CreateGameResponse)
    def create_game(req: Optional[CreateGameRequest] = None) -> CreateGameResponse:
        game = new_game(req.fen if req is not None else None)
        game_id = store.create(game)
        logger.info("created game %s", game_id)
        return CreateGameResponse(game_id=game_id, fen=game.current_position())

    @app.delete("/api/games/{game_id}")
    def delete_game(game_id: str) -> Dict[str, bool]:
        if not store.delete(game_id):
            raise HTTPException(status_code=404, detail="game not found")
        return {"deleted": True}

    @app.get("/api/games/{game_id}/state", response_model=GameState)
    def get_state(game_id: str) -> GameState:
        with locked_game(game_id) as game:
            return _game_state(game_id, game)

    @app.post("/api/games/{game_id}/position", response_model=GameState)
    def set_position(game_id: str, req: SetPositionRequest) -> GameState:
        with locked_game(game_id) as game:
            game.load_position(req.fen)
            return _game_state(game_id, game)

    @app.get("/api/games/{game_id}/moves")
    def get_moves(game_id: str) -> Dict[str, Any]:
        with locked_game(game_id) as game:
            moves = [m.to_uci() for m in game.legal_moves()]
            return {"moves": moves, "in_check": game.in_check()}

    @app.post("/api/games/{game_id}/move", response_model=GameState)
    def make_move(game_id: str, req: MoveRequest) -> GameState:
        with locked_game(game_id) as game:
            game.apply_move(req.move)
            return _game_state(game_id, game)

    @app.post("/api/games/{game_id}/undo", response_model=GameState)
    def undo(game_id: str) -> GameState:
        with locked_game(game_id) as game:
            try:
                game.undo_move()
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return _game_state(game_id, game)

    @app.post("/api/games/{game_id}/analyze", response_model=AnalyzeResponse)
    def analyze(game_id: str, req: AnalyzeRequest) -> AnalyzeResponse:
        depth = min(req.depth or search_config.max_depth, config.max_depth)
        time_limit = req.time_limit_ms
        if time_limit is None:
            time_limit = search_config.time_limit_ms
        if time_limit is None or time_limit > config.max_time_limit_ms:
            time_limit = config.max_time_limit_ms
        with locked_game(game_id) as game:
            res = game.analyze(depth, time_limit_ms=time_limit)
        return _analysis_response(res)

    @app.get("/api/games/{game_id}/stats", response_model=StatsResponse)
    def stats(game_id: str) -> StatsResponse:
        with locked_game(game_id) as game:
            s = game.stats()
        return StatsResponse(
            nodes_searched=s.nodes_searched,
            transposition_entries=s.transposition_entries,
            side_to_move=s.side_to_move,
        )

    @app.post("/api/perft")
    def perft(req: PerftRequest) -> Dict[str, Any]:
        board = decode(req.fen)
        if req.divide and req.depth >= 1:
            counts = divide(board, req.depth)
            return {"nodes": sum(counts.values()), "divide": counts}
        return {"nodes": perft_nodes(board, req.depth)}

    return app


def _game_state(game_id: str, game: Game) -> GameState:
    history = game.move_history_uci()
    return GameState(
        game_id=game_id,
        fen=game.current_position(),
        side_to_move="white" if game.board.side_to_move == "w" else "black",
        legal_moves=[m.to_uci() for m in game.legal_moves()],
        in_check=game.in_check(),
        checkmate=game.checkmate(),
        stalemate=game.stalemate(),
        draw=game.is_draw(),
        last_move=history[-1] if history else None,
        move_history=history,
    )


def _analysis_response(res: AnalysisResult) -> AnalyzeResponse:
    # Score object: either cp or mate (UCI-style)
    score = {"mate": res.mate_in} if res.mate_in is not None else {"cp": res.score}
    return AnalyzeResponse(
        best_move=res.best_move.to_uci() if res.best_move else None,
        score=score,
        pv=[m.to_uci() for m in res.pv],
        nodes=res.nodes,
        depth=res.depth,
        time_ms=res.time_ms,
        timed_out=res.timed_out,
        tt_hits=res.tt_hits,
        tt_size=res.tt_size,
    )
