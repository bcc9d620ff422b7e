#!/usr/bin/env python3
"""
Probe: run the local engine adapter over fixed positions and print the results.

Use it to check that the configured engine binary starts, answers at the
chosen depth, and reports evaluations with the expected sign (positive
favors White). Each position goes through EngineProcessAdapter exactly as a
/api/get_move request for a localEngine session would.

Usage: python3 tools/probe.py [--depth N] [--engine PATH]
"""
import argparse
import asyncio
import os
import sys
import time

REPO = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if REPO not in sys.path:
    sys.path.insert(0, REPO)

import chess

from opponents.constants import ENGINE_PATH
from opponents.engine_process import EngineProcessAdapter
from opponents.outcome import GameOver, Success

# Opening, middlegame, endgame, and two finished games.
POSITIONS = [
    ("Start",        chess.STARTING_FEN),
    ("After 1.e4",   "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"),
    ("Italian",      "r1bqkbnr/pppp1ppp/2n5/4p3/2B1P3/5N2/PPPP1PPP/RNBQK2R b KQkq - 3 3"),
    ("Mid-open",     "r1bqkb1r/pppp1ppp/2n2n2/4p3/2B1P3/5N2/PPPP1PPP/RNBQK2R w KQkq - 4 4"),
    ("Pawn ending",  "6k1/ppp2ppp/8/3p4/3P4/8/PPP2PPP/6K1 w - - 0 1"),
    ("Pawn chain",   "8/5pk1/6p1/7p/7P/6P1/5PK1/8 w - - 0 1"),
    ("Mated",        "rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3"),
    ("Stalemate",    "7k/5Q2/6K1/8/8/8/8/8 b - - 0 1"),
]


async def run_probe(engine_path: str, depth: int) -> list[dict]:
    """Evaluate every position and return one row per position."""
    adapter = EngineProcessAdapter(engine_path)
    await adapter.start()
    rows = []
    try:
        for label, fen in POSITIONS:
            start = time.monotonic()
            outcome = await adapter.evaluate_position(fen, depth)
            elapsed_ms = int((time.monotonic() - start) * 1000)
            if isinstance(outcome, Success):
                move, detail = outcome.move.uci(), f"{outcome.evaluation:+.2f}"
            elif isinstance(outcome, GameOver):
                move, detail = "-", outcome.result
            else:
                move, detail = "!", outcome.kind.value
            rows.append({"label": label, "move": move, "detail": detail, "time_ms": elapsed_ms})
    finally:
        await adapter.close()
    return rows


def main() -> None:
    """Parse arguments, probe all positions, and print a summary table."""
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--depth", type=int, default=8)
    parser.add_argument("--engine", default=ENGINE_PATH)
    args = parser.parse_args()

    print(f"Engine: {args.engine}  depth {args.depth}")
    print()
    print(f"{'Position':<14} {'Move':<7} {'Eval/Result':>12} {'Time(ms)':>9}")
    print("-" * 46)

    rows = asyncio.run(run_probe(args.engine, args.depth))
    for r in rows:
        print(f"{r['label']:<14} {r['move']:<7} {r['detail']:>12} {r['time_ms']:>9,}")

    failures = [r for r in rows if r["move"] == "!"]
    if failures:
        print()
        print(f"{len(failures)} position(s) failed; is the engine path correct?")
        sys.exit(1)


if __name__ == "__main__":
    main()
