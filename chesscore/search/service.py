from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ..config import SearchConfig
from ..engine.board import Board
from ..engine.move import Move
from ..engine.movegen import captures, in_check, legal_moves
from ..eval import evaluate
from .tt import Bound, TranspositionTable


logger = logging.getLogger(__name__)

INF = 10_000_000
MATE_SCORE = 100_000
MAX_PLY = 128
# Scores at or beyond this magnitude encode a forced mate
MATE_BOUND = MATE_SCORE - MAX_PLY

# MVV-LVA values indexed by piece (WP..WK, BP..BK)
_ORDER_VALUES = (100, 300, 300, 500, 900, 20000) * 2
_PROMO_VALUES = {"q": 900, "r": 500, "b": 300, "n": 300}


class SearchInvariantError(RuntimeError):
    """Raised when unmaking a move does not restore the prior position."""


@dataclass
class AnalysisResult:
    score: int
    best_move: Optional[Move]
    pv: List[Move]
    nodes: int
    depth: int
    time_ms: int
    mate_in: Optional[int] = None
    tt_hits: int = 0
    tt_probes: int = 0
    tt_stores: int = 0
    tt_size: int = 0
    iters: List[Dict[str, int]] = field(default_factory=list)
    timed_out: bool = False


def is_mate_score(score: int) -> bool:
    return abs(score) >= MATE_BOUND


def mate_in_from_score(score: int) -> Optional[int]:
    """Convert a root mate score into moves to mate.

    Positive: the side to move mates in N moves. Negative: the side to move is
    mated in N moves. Zero: the side to move is already checkmated.
    """
    if not is_mate_score(score):
        return None
    if score > 0:
        return (MATE_SCORE - score + 1) // 2
    return -((MATE_SCORE + score) // 2)


def _score_to_tt(score: int, ply: int) -> int:
    # Mate scores are stored relative to the node, not the root
    if score >= MATE_BOUND:
        return score + ply
    if score <= -MATE_BOUND:
        return score - ply
    return score


def _score_from_tt(score: int, ply: int) -> int:
    if score >= MATE_BOUND:
        return score - ply
    if score <= -MATE_BOUND:
        return score + ply
    return score


def _same_move(a: Optional[Move], b: Move) -> bool:
    return a is not None and a.key() == b.key()


def _snapshot(board: Board) -> Tuple:
    return (
        tuple(board.bb),
        board.side_to_move,
        board.castling,
        board.ep_square,
        board.halfmove_clock,
        board.fullmove_number,
        board.zobrist_hash,
    )


class SearchEngine:
    """Iterative-deepening negamax alpha-beta search.

    The engine owns its transposition table. With the default configuration
    the table is cleared at the start of every :meth:`analyze` call so results
    depend only on the position and the supplied history; set
    ``clear_tt_between_searches=False`` to keep entries across calls.
    """

    def __init__(
        self, config: Optional[SearchConfig] = None, tt: Optional[TranspositionTable] = None
    ) -> None:
        self.config = config or SearchConfig()
        self.tt = tt if tt is not None else TranspositionTable(self.config.tt_capacity)
        self.last_result: Optional[AnalysisResult] = None

    def reset(self) -> None:
        """Empty the transposition table and forget the previous result."""
        self.tt.clear()
        self.last_result = None

    def analyze(
        self,
        board: Board,
        max_depth: Optional[int] = None,
        time_limit_ms: Optional[int] = None,
        history: Optional[Iterable[int]] = None,
    ) -> AnalysisResult:
        """Search ``board`` and return the result of the deepest completed iteration.

        ``max_depth`` and ``time_limit_ms`` default to the engine config's
        ``max_depth`` and ``time_limit_ms``. ``history`` holds the
        fingerprints of game positions that preceded ``board``; reaching any
        of them (or a position already on the current search path) scores as
        a draw. The board is restored before return.
        """
        cfg = self.config
        tt = self.tt
        start = time.perf_counter()
        if max_depth is None:
            max_depth = cfg.max_depth
        if time_limit_ms is None:
            time_limit_ms = cfg.time_limit_ms
        deadline = None if time_limit_ms is None else start + max(0, time_limit_ms) / 1000.0
        max_depth = max(1, int(max_depth))

        if cfg.clear_tt_between_searches:
            tt.clear()
        else:
            tt.new_search()

        root_moves = legal_moves(board)
        if not root_moves:
            score = -MATE_SCORE if in_check(board) else 0
            result = AnalysisResult(
                score=score,
                best_move=None,
                pv=[],
                nodes=1,
                depth=0,
                time_ms=int((time.perf_counter() - start) * 1000),
                mate_in=mate_in_from_score(score),
                tt_size=len(tt),
            )
            logger.info("analyze: no legal moves (score=%d)", score)
            self.last_result = result
            return result

        # Fingerprint -> occurrences on the path plus the prior game
        seen: Dict[int, int] = {}
        for h in history or ():
            seen[h] = seen.get(h, 0) + 1

        nodes = 0
        check_interval = max(1, cfg.time_check_interval)
        check_time = False  # depth 1 always completes
        time_up = False
        killers: Dict[int, List[Move]] = {}
        move_history: Dict[Tuple[str, int, int], int] = {}
        prev_pv: List[Move] = []

        def out_of_time() -> bool:
            nonlocal time_up
            if check_time and not time_up and nodes % check_interval == 0:
                if time.perf_counter() >= deadline:
                    time_up = True
            return time_up

        def order_moves(moves: List[Move], ply: int, tt_move: Optional[Move]) -> List[Move]:
            pv_move = prev_pv[ply] if ply < len(prev_pv) else None
            killer_list = killers.get(ply, [])
            stm = board.side_to_move

            def move_score(mv: Move) -> int:
                if _same_move(tt_move, mv):
                    return 2_000_000
                if _same_move(pv_move, mv):
                    return 1_500_000
                score = 0
                if mv.captured is not None:
                    score += 1_000_000 + _ORDER_VALUES[mv.captured] * 10 - _ORDER_VALUES[mv.piece]
                if mv.promotion is not None:
                    score += 800_000 + _PROMO_VALUES[mv.promotion]
                if score:
                    return score
                for idx, km in enumerate(killer_list):
                    if _same_move(km, mv):
                        return 600_000 - idx * 1000
                return move_history.get((stm, mv.from_sq, mv.to_sq), 0)

            # sorted() is stable, so ties keep generation order
            return sorted(moves, key=move_score, reverse=True)

        def make(m: Move) -> None:
            board.make_move(m)
            seen[board.zobrist_hash] = seen.get(board.zobrist_hash, 0) + 1

        def unmake(m: Move) -> None:
            h = board.zobrist_hash
            cnt = seen.get(h, 0)
            if cnt <= 1:
                seen.pop(h, None)
            else:
                seen[h] = cnt - 1
            board.unmake_move(m)

        def qsearch(alpha: int, beta: int, ply: int) -> Tuple[int, List[Move]]:
            nonlocal nodes
            nodes += 1
            if out_of_time():
                return 0, []
            if ply >= MAX_PLY:
                return evaluate(board), []
            if in_check(board):
                # No standing pat in check: every evasion is searched
                moves = legal_moves(board)
                if not moves:
                    return -MATE_SCORE + ply, []
                best_score, best_line = -INF, []
            else:
                stand_pat = evaluate(board)
                if stand_pat >= beta:
                    return stand_pat, []
                if stand_pat > alpha:
                    alpha = stand_pat
                moves = captures(board)
                best_score, best_line = stand_pat, []
            for m in order_moves(moves, ply, None):
                make(m)
                child_score, child_pv = qsearch(-beta, -alpha, ply + 1)
                unmake(m)
                if time_up:
                    return 0, []
                score = -child_score
                if score > best_score:
                    best_score, best_line = score, [m] + child_pv
                if score > alpha:
                    alpha = score
                if alpha >= beta:
                    break
            return best_score, best_line

        def negamax(d: int, alpha: int, beta: int, ply: int) -> Tuple[int, List[Move]]:
            nonlocal nodes
            nodes += 1
            if out_of_time():
                return 0, []

            # Counted once for this node itself when it was made
            if ply > 0 and seen.get(board.zobrist_hash, 0) > 1:
                return 0, []

            moves = root_moves if ply == 0 else legal_moves(board)
            if not moves:
                if in_check(board):
                    return -MATE_SCORE + ply, []
                return 0, []
            # Checkmate takes precedence over the fifty-move rule
            if ply > 0 and board.halfmove_clock >= 100:
                return 0, []

            if d <= 0 or ply >= MAX_PLY:
                if cfg.quiescence:
                    return qsearch(alpha, beta, ply)
                return evaluate(board), []

            key = board.zobrist_hash
            tt_move: Optional[Move] = None
            if cfg.use_tt:
                e = tt.probe(key)
                if e is not None:
                    tt_move = e.best_move
                    if ply > 0 and e.depth >= d:
                        score = _score_from_tt(e.score, ply)
                        if (
                            e.bound == Bound.EXACT
                            or (e.bound == Bound.LOWER and score >= beta)
                            or (e.bound == Bound.UPPER and score <= alpha)
                        ):
                            return score, ([tt_move] if tt_move is not None else [])

            alpha_orig = alpha
            best_score = -INF
            best_line: List[Move] = []
            best_move: Optional[Move] = None

            for m in order_moves(moves, ply, tt_move):
                before = _snapshot(board) if cfg.verify_unmake else None
                make(m)
                child_score, child_pv = negamax(d - 1, -beta, -alpha, ply + 1)
                unmake(m)
                if before is not None and _snapshot(board) != before:
                    raise SearchInvariantError(f"unmake of {m.to_uci()} did not restore the board")
                if time_up:
                    return 0, []
                score = -child_score
                if score > best_score:
                    best_score = score
                    best_line = [m] + child_pv
                    best_move = m
                if score > alpha:
                    alpha = score
                if alpha >= beta and cfg.pruning:
                    if m.captured is None and m.promotion is None:
                        kl = killers.get(ply, [])
                        if not any(_same_move(km, m) for km in kl):
                            killers[ply] = ([m] + kl)[:2]
                        hkey = (board.side_to_move, m.from_sq, m.to_sq)
                        move_history[hkey] = move_history.get(hkey, 0) + d * d
                    break

            if cfg.use_tt:
                if best_score <= alpha_orig:
                    bound = Bound.UPPER
                elif best_score >= beta:
                    bound = Bound.LOWER
                else:
                    bound = Bound.EXACT
                tt.store(key, d, _score_to_tt(best_score, ply), bound, best_move)
            return best_score, best_line

        seen[board.zobrist_hash] = seen.get(board.zobrist_hash, 0) + 1
        last_score = 0
        last_pv: List[Move] = []
        completed_depth = 0
        iters: List[Dict[str, int]] = []
        try:
            for d in range(1, max_depth + 1):
                check_time = deadline is not None and d > 1
                iter_start = time.perf_counter()
                nodes_before = nodes
                score, pv = negamax(d, -INF, INF, 0)
                if time_up:
                    logger.debug("depth %d abandoned after %d nodes", d, nodes - nodes_before)
                    break
                last_score, last_pv, completed_depth = score, pv, d
                prev_pv = pv
                iter_ms = int((time.perf_counter() - iter_start) * 1000)
                iters.append(
                    {"depth": d, "nodes": nodes - nodes_before, "time_ms": iter_ms, "score": score}
                )
                logger.debug(
                    "depth %d score %d nodes %d time %dms pv %s",
                    d,
                    score,
                    nodes - nodes_before,
                    iter_ms,
                    " ".join(m.to_uci() for m in pv),
                )
                if deadline is not None and time.perf_counter() >= deadline:
                    time_up = True
                    break
        finally:
            seen.clear()

        result = AnalysisResult(
            score=last_score,
            best_move=last_pv[0] if last_pv else root_moves[0],
            pv=last_pv,
            nodes=nodes,
            depth=completed_depth,
            time_ms=int((time.perf_counter() - start) * 1000),
            mate_in=mate_in_from_score(last_score),
            tt_hits=tt.hits,
            tt_probes=tt.probes,
            tt_stores=tt.stores,
            tt_size=len(tt),
            iters=iters,
            timed_out=time_up,
        )
        logger.info(
            "analyze depth=%d score=%d best=%s nodes=%d time=%dms tt=%d timed_out=%s",
            result.depth,
            result.score,
            result.best_move.to_uci() if result.best_move else "-",
            result.nodes,
            result.time_ms,
            result.tt_size,
            result.timed_out,
        )
        self.last_result = result
        return result
