#!/usr/bin/env python3
"""
Swoop Simulation — Run N bot-vs-bot games and report aggregate statistics.

Usage: uv run python simulate.py [--rounds N] [--seed S] [--bot1 NAME] [--bot2 NAME]
       uv run python simulate.py --bot1 pro --bot2 pusher --rounds 20 --workers 4
       uv run python simulate.py --report --report-file swoop_report.json
       uv run python simulate.py --csv --rounds 500
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import random
import statistics
import sys
import tempfile
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from multiprocessing import Pool
from pathlib import Path

from rich.console import Console
from rich.progress import BarColumn, Progress, TimeRemainingColumn
from rich.table import Table

from ai import AggressiveStrategy, BalancedStrategy, ConservativeStrategy, play_game
from game_engine import MAX_PLAYERS, MIN_PLAYERS, VICTORY_TARGET
from game_log import GameLog
from search import ProStrategy, PusherStrategy
from settings import load_settings, save_settings

logger = logging.getLogger(__name__)

VERSION = "1.0.0"
REPORT_FILENAME = "swoop_report.json"

STRATEGIES = {
    "aggressive": AggressiveStrategy,
    "balanced": BalancedStrategy,
    "conservative": ConservativeStrategy,
    "pro": ProStrategy,
    "pusher": PusherStrategy,
}


def make_strategy(token: str):
    """Create a fresh strategy instance from a CLI token.

    Raises:
        ValueError: for an unknown token.
    """
    try:
        return STRATEGIES[token]()
    except KeyError:
        raise ValueError(f"unknown strategy {token!r}; choose from {', '.join(STRATEGIES)}") from None


# ── Running games ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GameTask:
    index: int
    seed: str
    bots: tuple[str, ...]
    max_turns: int
    record_history: bool


def game_seed(base_seed, index: int) -> str:
    """Seed string for game ``index`` of a batch."""
    return f"{base_seed}:{index}"


def _run_single_game(task: GameTask) -> dict:
    rng = random.Random(task.seed)
    strategies = [make_strategy(token) for token in task.bots]
    log = GameLog() if task.record_history else None
    result = play_game(strategies, rng=rng, max_turns=task.max_turns, log=log, game_index=task.index)
    data = {
        "index": task.index,
        "winner": result.winner,
        "final_scores": result.final_scores,
        "capped": result.capped,
        "metrics": result.metrics.to_dict(),
    }
    if log is not None:
        data["history"] = log.to_dicts()
    return data


def _results_iterator(tasks, workers: int):
    if workers <= 1:
        for task in tasks:
            yield _run_single_game(task)
        return
    chunk_size = max(1, len(tasks) // (workers * 20))
    with Pool(processes=workers) as pool:
        # imap keeps game order, so results do not depend on the worker count
        yield from pool.imap(_run_single_game, tasks, chunksize=chunk_size)


@dataclass
class SimulationResult:
    config: dict
    summary: dict
    games: list[dict] = field(default_factory=list)
    report: dict | None = None
    elapsed: float = 0.0


def run_simulation(rounds: int = 100, seed=None, bots=("aggressive", "balanced"),
                   max_turns: int = 1000, report: bool = False, workers: int = 1,
                   progress=None) -> SimulationResult:
    """Play ``rounds`` independent games and aggregate the results.

    Args:
        rounds: Number of games
        seed: Base seed; game i plays on random.Random(f"{seed}:{i}").
            None draws a base seed, which is recorded in the config.
        bots: Strategy token per seat (2-4)
        max_turns: Per-game turn cap
        report: Also build the detailed report, with per-game move history
        workers: Processes to spread games over; 1 runs in-process
        progress: Optional callable invoked once per finished game

    Returns:
        SimulationResult with the summary and, if requested, the report
    """
    bots = tuple(bots)
    if rounds < 1:
        raise ValueError(f"rounds must be at least 1, got {rounds}")
    if not MIN_PLAYERS <= len(bots) <= MAX_PLAYERS:
        raise ValueError(f"need {MIN_PLAYERS}..{MAX_PLAYERS} bots, got {len(bots)}")
    for token in bots:
        if token not in STRATEGIES:
            raise ValueError(f"unknown strategy {token!r}")
    if seed is None:
        seed = random.randrange(2 ** 31)

    config = {
        "rounds": rounds,
        "seed": seed,
        "bots": list(bots),
        "target": VICTORY_TARGET,
        "max_turns": max_turns,
        "workers": workers,
    }
    logger.info("Simulating %d games: %s (seed %s)", rounds, " vs ".join(bots), seed)

    tasks = [GameTask(i, game_seed(seed, i), bots, max_turns, report) for i in range(rounds)]
    games = []
    t0 = time.perf_counter()
    for data in _results_iterator(tasks, workers):
        games.append(data)
        logger.debug("Game %d: winner seat %d, scores %s", data["index"], data["winner"],
                     data["final_scores"])
        if progress is not None:
            progress()
    elapsed = time.perf_counter() - t0

    summary = summarize(games, len(bots))
    logger.info("Finished %d games in %.2fs, bot1 win rate %.3f",
                rounds, elapsed, summary["win_rate_bot1"])

    result = SimulationResult(config=config, summary=summary, games=games, elapsed=elapsed)
    if report:
        result.report = generate_report(config, summary, games)
    return result


# ── Aggregation ─────────────────────────────────────────────────────────────

def _avg(values) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def summarize(games: list[dict], player_count: int) -> dict:
    """Aggregate per-game results into the summary dict."""
    n = len(games)
    wins = [0] * player_count
    for g in games:
        wins[g["winner"]] += 1
    metrics = [g["metrics"] for g in games]
    turns_by_seat = [_avg(m["turns_by_player"][seat] for m in metrics) for seat in range(player_count)]

    return {
        "games_played": n,
        "wins": wins,
        "win_rate_bot1": wins[0] / n if n else 0.0,
        "avg_turns_per_game": _avg(m["turns"] for m in metrics),
        "avg_turns_per_player": _avg(m["turns"] / player_count for m in metrics),
        "avg_rolls_per_game": _avg(m["rolls"] for m in metrics),
        "avg_busts_per_game": _avg(m["busts"] for m in metrics),
        "avg_banks_per_game": _avg(m["banks"] for m in metrics),
        "avg_deliveries_per_game": _avg(m["deliveries"] for m in metrics),
        "avg_transfers_per_game": _avg(m["transfers"] for m in metrics),
        "capped_games": sum(1 for g in games if g["capped"]),
        "wins_bot1": wins[0],
        "wins_bot2": wins[1],
        "avg_turns_bot1": turns_by_seat[0],
        "avg_turns_bot2": turns_by_seat[1],
    }


def analyze_gameplay(games: list[dict]) -> dict:
    """Event, decision and turn-length patterns over recorded move histories.

    A turn's length is the number of decisions logged between its
    ``turn_start`` and the next one.
    """
    move_patterns = Counter()
    decision_patterns = Counter()
    lengths = []
    for g in games:
        current = None
        for event in g.get("history", []):
            kind = event["type"]
            move_patterns[kind] += 1
            if kind == "turn_start":
                if current is not None:
                    lengths.append(current)
                current = 0
            elif kind == "decision":
                decision_patterns[event["decision"]] += 1
                if current is not None:
                    current += 1
        if current is not None:
            lengths.append(current)

    distribution = Counter(lengths)
    return {
        "move_patterns": dict(move_patterns),
        "decision_patterns": dict(decision_patterns),
        "turn_length_distribution": {
            "min": min(lengths) if lengths else 0,
            "max": max(lengths) if lengths else 0,
            "avg": _avg(lengths),
            "distribution": {str(k): distribution[k] for k in sorted(distribution)},
        },
    }


def generate_report(config: dict, summary: dict, games: list[dict]) -> dict:
    return {
        "metadata": {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "simulation_config": config,
            "total_games": len(games),
            "version": VERSION,
        },
        "summary": summary,
        "gameplay_analysis": analyze_gameplay(games),
        "games": [
            {
                "index": g["index"],
                "winner": g["winner"],
                "final_scores": g["final_scores"],
                "capped": g["capped"],
                "metrics": g["metrics"],
                "move_history": g.get("history", []),
            }
            for g in games
        ],
    }


def write_report(report: dict, path) -> Path:
    """Write the report as JSON via a temp file and an atomic rename.

    Raises:
        OSError: if the file cannot be written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    raw = json.dumps(report, indent=2).encode()
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    closed = False
    try:
        os.write(fd, raw)
        os.close(fd)
        closed = True
        os.replace(tmp, path)
    except BaseException:
        if not closed:
            os.close(fd)
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise
    return path


# ── Output ──────────────────────────────────────────────────────────────────

def print_results(console: Console, result: SimulationResult, verbose: bool = False) -> None:
    """Print the summary as a rich table.

    With verbose=True, adds per-seat wins and turn counts.
    """
    s = result.summary
    bots = result.config["bots"]
    table = Table(title=f"Swoop — {' vs '.join(bots)} — {s['games_played']} games "
                        f"(seed {result.config['seed']})")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("bot1 win rate", f"{s['win_rate_bot1']:.3f}")
    table.add_row("turns / game", f"{s['avg_turns_per_game']:.1f}")
    table.add_row("turns / player", f"{s['avg_turns_per_player']:.1f}")
    table.add_row("rolls / game", f"{s['avg_rolls_per_game']:.1f}")
    table.add_row("busts / game", f"{s['avg_busts_per_game']:.2f}")
    table.add_row("banks / game", f"{s['avg_banks_per_game']:.2f}")
    table.add_row("deliveries / game", f"{s['avg_deliveries_per_game']:.2f}")
    table.add_row("transfers / game", f"{s['avg_transfers_per_game']:.2f}")
    table.add_row("capped games", str(s["capped_games"]))
    if verbose:
        turns = [g["metrics"]["turns"] for g in result.games]
        stdev = statistics.stdev(turns) if len(turns) >= 2 else 0.0
        table.add_row("turns stdev", f"{stdev:.1f}")
        table.add_row("turns median", f"{statistics.median(turns):.0f}")
        for seat, token in enumerate(bots):
            table.add_row(f"bot{seat + 1} ({token}) wins", str(s["wins"][seat]))
    per_game = result.elapsed / s["games_played"] * 1000
    table.caption = f"{result.elapsed:.2f}s, {per_game:.1f}ms/game"
    console.print(table)


def print_csv_header():
    """Print CSV header row."""
    print("bots,games,seed,win_rate_bot1,avg_turns,avg_rolls,avg_busts,avg_banks,"
          "avg_deliveries,avg_transfers,capped,elapsed_s")


def print_csv_row(result: SimulationResult):
    """Print one CSV data row."""
    s = result.summary
    bots = "+".join(result.config["bots"])
    print(f"{bots},{s['games_played']},{result.config['seed']},{s['win_rate_bot1']:.3f},"
          f"{s['avg_turns_per_game']:.1f},{s['avg_rolls_per_game']:.1f},"
          f"{s['avg_busts_per_game']:.2f},{s['avg_banks_per_game']:.2f},"
          f"{s['avg_deliveries_per_game']:.2f},{s['avg_transfers_per_game']:.2f},"
          f"{s['capped_games']},{result.elapsed:.2f}")


# ── CLI ─────────────────────────────────────────────────────────────────────

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Options left unset here fall back to the settings file in main().

    Args:
        argv: Optional list of args (for testing). None uses sys.argv.

    Returns:
        Parsed argparse.Namespace.
    """
    parser = argparse.ArgumentParser(description="Swoop bot simulation")
    parser.add_argument("--rounds", type=int, help="Number of games (default: 100)")
    parser.add_argument("--target", type=int, default=VICTORY_TARGET,
                        help=f"Victory target; fixed at {VICTORY_TARGET} in this ruleset")
    parser.add_argument("--seed", help="Base random seed (default: drawn at random)")
    for seat in range(1, MAX_PLAYERS + 1):
        parser.add_argument(f"--bot{seat}", choices=list(STRATEGIES), metavar="NAME",
                            help=f"Strategy for seat {seat} ({', '.join(STRATEGIES)})")
    parser.add_argument("--max-turns", type=int, help="Turn cap per game (default: 1000)")
    parser.add_argument("--report", action="store_true",
                        help="Write a detailed JSON report with move histories")
    parser.add_argument("--report-file", help=f"Report path (default: <report_dir>/{REPORT_FILENAME})")
    parser.add_argument("--workers", type=int, help="Worker processes (default: 1)")
    parser.add_argument("--csv", action="store_true", help="Output results as CSV")
    parser.add_argument("--verbose", action="store_true",
                        help="Show extra statistics and INFO logging")
    parser.add_argument("--config", help="Settings file (default: ~/.swoop_sim.json)")
    parser.add_argument("--save-config", action="store_true",
                        help="Store the resolved rounds, bots, turn cap and workers as new defaults")
    return parser.parse_args(argv)


def _resolve_bots(args, settings) -> list[str]:
    bots = [args.bot1 or settings["bot1"], args.bot2 or settings["bot2"]]
    if args.bot3:
        bots.append(args.bot3)
    if args.bot4:
        if not args.bot3:
            raise ValueError("--bot4 needs --bot3")
        bots.append(args.bot4)
    return bots


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    settings = load_settings(args.config)
    if args.target != VICTORY_TARGET:
        logger.warning("Victory target is fixed at %d; ignoring --target %d",
                       VICTORY_TARGET, args.target)
    rounds = args.rounds if args.rounds is not None else settings["rounds"]
    max_turns = args.max_turns if args.max_turns is not None else settings["max_turns"]
    workers = args.workers if args.workers is not None else settings["workers"]
    console = Console(stderr=args.csv)

    try:
        bots = _resolve_bots(args, settings)
        if args.csv:
            result = run_simulation(rounds, args.seed, bots, max_turns, args.report, workers)
        else:
            with Progress(
                "[progress.description]{task.description}",
                BarColumn(),
                "[progress.percentage]{task.percentage:>3.0f}%",
                TimeRemainingColumn(),
                console=console,
            ) as progress:
                bar = progress.add_task(f"Simulating {' vs '.join(bots)}...", total=rounds)
                result = run_simulation(rounds, args.seed, bots, max_turns, args.report, workers,
                                        progress=lambda: progress.update(bar, advance=1))
    except ValueError as exc:
        console.print(f"[red]error:[/red] {exc}")
        return 2

    if args.save_config:
        settings.update(rounds=rounds, bot1=bots[0], bot2=bots[1],
                        max_turns=max_turns, workers=workers)
        save_settings(settings, args.config)

    if args.csv:
        print_csv_header()
        print_csv_row(result)
    else:
        print_results(console, result, verbose=args.verbose)

    if result.report is not None:
        path = Path(args.report_file) if args.report_file else Path(settings["report_dir"]) / REPORT_FILENAME
        try:
            write_report(result.report, path)
        except OSError as exc:
            console.print(f"[red]error:[/red] could not write report to {path}: {exc}")
            return 1
        console.print(f"Report written to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
