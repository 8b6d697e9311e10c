#!/usr/bin/env python3
# ruff: noqa: E402
from __future__ import annotations

import argparse
import json
import os
import platform
import sys
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

# Ensure the repo root is importable when running directly
REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from chesscore.config import SearchConfig
from chesscore.engine.board import STARTPOS_FEN
from chesscore.engine.fen import decode
from chesscore.search.service import AnalysisResult, SearchEngine


@dataclass
class BenchItem:
    id: str
    name: str
    fen: str
    time_limit_ms: Optional[int] = None
    depth: Optional[int] = None


BUILTIN_POSITIONS = [
    BenchItem("startpos", "Start position", STARTPOS_FEN),
    BenchItem(
        "kiwipete",
        "Kiwipete",
        "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1",
    ),
    BenchItem("endgame", "Rook endgame", "8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1"),
    BenchItem(
        "middlegame",
        "Open middlegame",
        "r1bq1rk1/pp2bppp/2n1pn2/3p4/2PP4/2N1PN2/PP1BBPPP/R2QK2R w KQ - 0 9",
    ),
]


def load_positions(path: Optional[str]) -> List[BenchItem]:
    if path is None:
        return list(BUILTIN_POSITIONS)
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    items: List[BenchItem] = []
    for obj in data.get("positions", []):
        items.append(
            BenchItem(
                id=str(obj.get("id", obj.get("name", "pos"))),
                name=str(obj.get("name", "Unnamed")),
                fen=str(obj["fen"]),
                time_limit_ms=(
                    int(obj["time_limit_ms"]) if obj.get("time_limit_ms") is not None else None
                ),
                depth=(int(obj["depth"]) if obj.get("depth") is not None else None),
            )
        )
    return items


def bench_position(
    engine: SearchEngine,
    item: BenchItem,
    *,
    time_limit_ms: Optional[int],
    depth: int,
    iterations: int,
) -> Dict[str, Any]:
    eff_time = item.time_limit_ms if item.time_limit_ms is not None else time_limit_ms
    eff_depth = item.depth if item.depth is not None else depth

    total_time = 0
    total_nodes = 0
    last: Optional[AnalysisResult] = None
    for _ in range(max(1, iterations)):
        # Fresh board per run; analyze() restores it but a clean start keeps runs comparable
        board = decode(item.fen)
        res = engine.analyze(board, eff_depth, time_limit_ms=eff_time)
        total_time += max(0, res.time_ms)
        total_nodes += max(0, res.nodes)
        last = res
    assert last is not None

    avg_time = total_time // max(1, iterations)
    avg_nodes = total_nodes // max(1, iterations)
    score_obj = {"mate": last.mate_in} if last.mate_in is not None else {"cp": last.score}
    return {
        "id": item.id,
        "name": item.name,
        "fen": item.fen,
        "time_limit_ms": eff_time,
        "depth": last.depth,
        "best_move": last.best_move.to_uci() if last.best_move else None,
        "score": score_obj,
        "pv": [m.to_uci() for m in last.pv],
        "time_ms": avg_time,
        "nodes": avg_nodes,
        "nps": avg_nodes * 1000 // max(1, avg_time),
        "tt_hits": last.tt_hits,
        "tt_probes": last.tt_probes,
        "tt_stores": last.tt_stores,
        "tt_size": last.tt_size,
        "timed_out": last.timed_out,
        "iters": last.iters,
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Run engine benchmarks over a positions suite")
    parser.add_argument(
        "--positions", default=None, help="Path to positions.json (default: built-in suite)"
    )
    parser.add_argument("--time-limit-ms", type=int, default=None, help="Time limit per position")
    parser.add_argument("--depth", type=int, default=4, help="Depth per position (default: 4)")
    parser.add_argument("--hash-mb", type=int, default=16, help="Approximate TT size in MiB")
    parser.add_argument("--tt-entries", type=int, default=None, help="Override TT entry cap")
    parser.add_argument("--quiescence", action="store_true", help="Enable quiescence search")
    parser.add_argument(
        "--iterations", type=int, default=1, help="Repeat runs per position and average"
    )
    parser.add_argument("--out", type=str, default=None, help="Write JSON results to file path")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    args = parser.parse_args()

    items = load_positions(args.positions)
    if not items:
        raise SystemExit("No positions found in positions file")

    config = SearchConfig(
        hash_mb=args.hash_mb, tt_entries=args.tt_entries, quiescence=args.quiescence
    )
    engine = SearchEngine(config)

    results: List[Dict[str, Any]] = []
    t0 = time.perf_counter()
    for idx, it in enumerate(items, start=1):
        sys.stderr.write(f"[{idx}/{len(items)}] {it.id}: running...\n")
        res = bench_position(
            engine,
            it,
            time_limit_ms=args.time_limit_ms,
            depth=args.depth,
            iterations=max(1, args.iterations),
        )
        results.append(res)
        sys.stderr.write(
            f"    depth={res['depth']} time={res['time_ms']}ms nodes={res['nodes']} "
            f"nps={res['nps']} best={res['best_move']}\n"
        )

    dt_ms = int((time.perf_counter() - t0) * 1000)
    total_nodes = sum(r["nodes"] for r in results)
    payload = {
        "meta": {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "python": sys.version.split()[0],
            "platform": platform.platform(),
            "config": {
                "positions_file": args.positions,
                "iterations": max(1, args.iterations),
                "time_limit_ms": args.time_limit_ms,
                "depth": args.depth,
                "tt_entries": config.tt_capacity,
                "quiescence": args.quiescence,
            },
        },
        "results": results,
        "summary": {
            "positions": len(results),
            "total_time_ms": dt_ms,
            "total_nodes": total_nodes,
            "overall_nps": total_nodes * 1000 // max(1, dt_ms),
        },
    }

    text = json.dumps(payload, indent=2 if args.pretty else None)
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(text)
        print(args.out)
    else:
        print(text)


if __name__ == "__main__":
    main()
