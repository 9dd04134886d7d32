"""
Simulation Driver Test Suite

Sections:
    1. Strategy factory — tokens, fresh instances, errors
    2. run_simulation — summary keys, bounds, seeding, worker independence
    3. Reporting — gameplay analysis, report layout, atomic write
    4. CLI — argument parsing, settings fallback, CSV output, exit codes
"""
import json
import logging

import pytest

import simulate
from ai import AggressiveStrategy
from game_engine import MAX_PIECES, VICTORY_TARGET
from search import ProStrategy
from simulate import (
    STRATEGIES, analyze_gameplay, game_seed, generate_report, main,
    make_strategy, parse_args, run_simulation, summarize, write_report,
)

SUMMARY_KEYS = {
    "games_played", "wins", "win_rate_bot1",
    "avg_turns_per_game", "avg_turns_per_player", "avg_rolls_per_game",
    "avg_busts_per_game", "avg_banks_per_game", "avg_deliveries_per_game",
    "avg_transfers_per_game", "capped_games",
    "wins_bot1", "wins_bot2", "avg_turns_bot1", "avg_turns_bot2",
}


def fake_game(index, winner, history=()):
    return {
        "index": index,
        "winner": winner,
        "final_scores": [2, 0] if winner == 0 else [1, 2],
        "capped": False,
        "metrics": {
            "player_count": 2, "turns": 10, "turns_by_player": [5, 5], "rolls": 30,
            "busts": 4, "banks": 6, "deliveries": 2 if winner == 0 else 3,
            "transfers": 1, "swoops": 2,
        },
        "history": list(history),
    }


def assert_score_cap(game):
    """The game stops at the first bank or bust that lifts a seat to the target.

    Non-winners finish below the target and every point is scored by a bank
    or a bust. A winner can overshoot only within its final bank or bust.
    """
    scores = game["final_scores"]
    endings = [e for e in game["history"] if e["type"] in ("bank", "bust")]
    assert game["metrics"]["deliveries"] == sum(scores) == sum(e["delivered"] for e in endings)
    if game["capped"]:
        assert all(score < VICTORY_TARGET for score in scores)
        return
    winner = game["winner"]
    assert scores[winner] >= VICTORY_TARGET
    assert all(score < VICTORY_TARGET for seat, score in enumerate(scores) if seat != winner)
    last = endings[-1]
    assert last["player"] == winner
    assert scores[winner] - last["delivered"] < VICTORY_TARGET


# ═══════════════════════════════════════════════════════════════════════════════
# 1. STRATEGY FACTORY
# ═══════════════════════════════════════════════════════════════════════════════

class TestStrategyFactory:

    def test_all_tokens(self):
        assert set(STRATEGIES) == {"aggressive", "balanced", "conservative", "pro", "pusher"}
        for token in STRATEGIES:
            assert make_strategy(token).name == token

    def test_fresh_instance_each_call(self):
        assert make_strategy("pusher") is not make_strategy("pusher")

    def test_unknown_token_raises(self):
        with pytest.raises(ValueError):
            make_strategy("human")

    def test_game_seed(self):
        assert game_seed(7, 3) == "7:3"


# ═══════════════════════════════════════════════════════════════════════════════
# 2. RUN_SIMULATION
# ═══════════════════════════════════════════════════════════════════════════════

class TestRunSimulation:

    def test_summary_keys_and_bounds(self):
        result = run_simulation(rounds=8, seed=1, bots=("aggressive", "balanced"))
        s = result.summary
        assert set(s) == SUMMARY_KEYS
        assert s["games_played"] == 8
        assert 0 <= s["win_rate_bot1"] <= 1
        assert s["wins_bot1"] + s["wins_bot2"] == 8
        assert s["avg_turns_per_game"] > 0
        # each seat stays below the target until one final bank delivers at most MAX_PIECES
        assert s["avg_deliveries_per_game"] <= (VICTORY_TARGET - 1) * 2 + MAX_PIECES

    def test_score_cap_per_game(self):
        result = run_simulation(rounds=8, seed=1, bots=("aggressive", "balanced"), report=True)
        for game in result.games:
            assert_score_cap(game)

    def test_pro_against_balanced_quick(self, monkeypatch):
        monkeypatch.setitem(STRATEGIES, "pro", lambda: ProStrategy(roll_samples=1, bank_samples=1))
        result = run_simulation(rounds=4, seed=1, bots=("pro", "balanced"), max_turns=300,
                                report=True)
        s = result.summary
        assert 0 <= s["win_rate_bot1"] <= 1
        assert s["avg_turns_per_game"] > 0
        for game in result.games:
            assert_score_cap(game)

    @pytest.mark.slow
    def test_pro_against_balanced_hundred_rounds(self):
        result = run_simulation(rounds=100, seed=1, bots=("pro", "balanced"), report=True)
        s = result.summary
        assert s["games_played"] == 100
        assert 0 <= s["win_rate_bot1"] <= 1
        assert s["avg_turns_per_game"] > 0
        for game in result.games:
            assert_score_cap(game)

    def test_same_seed_same_summary(self):
        a = run_simulation(rounds=5, seed="abc", bots=("aggressive", "conservative"))
        b = run_simulation(rounds=5, seed="abc", bots=("aggressive", "conservative"))
        assert a.summary == b.summary

    def test_worker_count_does_not_change_results(self):
        serial = run_simulation(rounds=6, seed=3, bots=("aggressive", "balanced"), workers=1)
        pooled = run_simulation(rounds=6, seed=3, bots=("aggressive", "balanced"), workers=2)
        assert serial.summary == pooled.summary
        assert [g["index"] for g in pooled.games] == list(range(6))

    def test_seed_drawn_and_recorded(self):
        result = run_simulation(rounds=2, bots=("aggressive", "aggressive"))
        assert result.config["seed"] is not None
        again = run_simulation(rounds=2, seed=result.config["seed"], bots=("aggressive", "aggressive"))
        assert again.summary == result.summary

    def test_four_seats(self):
        result = run_simulation(rounds=3, seed=2, bots=("aggressive",) * 4)
        assert len(result.summary["wins"]) == 4

    def test_progress_called_per_game(self):
        calls = []
        run_simulation(rounds=3, seed=4, progress=lambda: calls.append(1))
        assert len(calls) == 3

    @pytest.mark.parametrize("kwargs", [
        {"rounds": 0},
        {"bots": ("aggressive",)},
        {"bots": ("aggressive", "human")},
    ])
    def test_bad_config_raises(self, kwargs):
        with pytest.raises(ValueError):
            run_simulation(**kwargs)

    def test_no_report_by_default(self):
        result = run_simulation(rounds=1, seed=0)
        assert result.report is None
        assert "history" not in result.games[0]


# ═══════════════════════════════════════════════════════════════════════════════
# 3. REPORTING
# ═══════════════════════════════════════════════════════════════════════════════

class TestReporting:

    def test_summarize(self):
        s = summarize([fake_game(0, 0), fake_game(1, 1), fake_game(2, 0)], 2)
        assert s["wins"] == [2, 1]
        assert s["win_rate_bot1"] == pytest.approx(2 / 3)
        assert s["avg_turns_per_game"] == 10
        assert s["avg_turns_per_player"] == 5
        assert s["avg_deliveries_per_game"] == pytest.approx(7 / 3)
        assert s["avg_turns_bot2"] == 5

    def test_analyze_gameplay_counts_decisions_per_turn(self):
        history = [
            {"type": "game_start"},
            {"type": "turn_start"},
            {"type": "roll"},
            {"type": "decision", "decision": "move"},
            {"type": "move"},
            {"type": "roll"},
            {"type": "decision", "decision": "swoop"},
            {"type": "bank"},
            {"type": "turn_start"},
            {"type": "roll"},
            {"type": "bust"},
            {"type": "game_end"},
        ]
        analysis = analyze_gameplay([fake_game(0, 0, history)])
        assert analysis["move_patterns"]["roll"] == 3
        assert analysis["decision_patterns"] == {"move": 1, "swoop": 1}
        lengths = analysis["turn_length_distribution"]
        assert (lengths["min"], lengths["max"], lengths["avg"]) == (0, 2, 1.0)
        assert lengths["distribution"] == {"0": 1, "2": 1}

    def test_analyze_without_history(self):
        analysis = analyze_gameplay([])
        assert analysis["turn_length_distribution"]["avg"] == 0.0

    def test_report_layout(self):
        result = run_simulation(rounds=2, seed=5, report=True)
        report = result.report
        assert set(report) == {"metadata", "summary", "gameplay_analysis", "games"}
        assert report["metadata"]["total_games"] == 2
        assert report["metadata"]["simulation_config"]["seed"] == 5
        assert report["games"][0]["move_history"][0]["type"] == "game_start"
        assert report["gameplay_analysis"]["decision_patterns"]

    def test_write_report_round_trip(self, tmp_path):
        report = generate_report({"seed": 1}, {"games_played": 0}, [])
        path = write_report(report, tmp_path / "out" / "report.json")
        assert json.loads(path.read_text()) == report
        assert [p.name for p in path.parent.iterdir()] == ["report.json"]

    def test_write_report_bad_path_raises(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(OSError):
            write_report({}, blocker / "report.json")


# ═══════════════════════════════════════════════════════════════════════════════
# 4. CLI
# ═══════════════════════════════════════════════════════════════════════════════

class TestCLI:

    @pytest.fixture
    def config(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"rounds": 2, "report_dir": str(tmp_path)}))
        return path

    def test_parse_args_defaults(self):
        args = parse_args([])
        assert args.rounds is None
        assert args.target == VICTORY_TARGET
        assert args.bot1 is None
        assert not args.report and not args.csv

    def test_parse_args_rejects_unknown_bot(self):
        with pytest.raises(SystemExit):
            parse_args(["--bot1", "human"])

    def test_csv_output(self, config, capsys):
        assert main(["--csv", "--seed", "3", "--config", str(config)]) == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert lines[0].startswith("bots,games,seed")
        assert lines[1].startswith("aggressive+balanced,2,3,")

    def test_settings_supply_bots(self, tmp_path, capsys):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"rounds": 1, "bot1": "conservative", "bot2": "aggressive"}))
        assert main(["--csv", "--seed", "1", "--config", str(path)]) == 0
        assert "conservative+aggressive,1," in capsys.readouterr().out

    def test_flags_override_settings(self, config, capsys):
        assert main(["--csv", "--rounds", "3", "--bot2", "conservative",
                     "--seed", "1", "--config", str(config)]) == 0
        assert "aggressive+conservative,3," in capsys.readouterr().out

    def test_table_output(self, config, capsys):
        assert main(["--seed", "2", "--verbose", "--config", str(config)]) == 0
        assert "bot1 win rate" in capsys.readouterr().out

    def test_report_written(self, config, tmp_path):
        report_path = tmp_path / "r.json"
        assert main(["--seed", "2", "--report", "--report-file", str(report_path),
                     "--config", str(config)]) == 0
        assert json.loads(report_path.read_text())["metadata"]["total_games"] == 2

    def test_report_defaults_to_report_dir(self, config, tmp_path):
        assert main(["--csv", "--seed", "2", "--report", "--config", str(config)]) == 0
        assert (tmp_path / simulate.REPORT_FILENAME).exists()

    def test_unwritable_report_exits_non_zero(self, config, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        assert main(["--csv", "--seed", "2", "--report", "--report-file",
                     str(blocker / "r.json"), "--config", str(config)]) == 1

    def test_other_target_is_ignored_with_warning(self, config, caplog):
        with caplog.at_level(logging.WARNING, logger="simulate"):
            assert main(["--csv", "--target", "5", "--seed", "1", "--config", str(config)]) == 0
        assert "ignoring --target 5" in caplog.text

    def test_save_config_stores_resolved_flags(self, config, tmp_path):
        assert main(["--csv", "--rounds", "3", "--bot1", "conservative", "--bot2", "aggressive",
                     "--seed", "1", "--save-config", "--config", str(config)]) == 0
        saved = json.loads(config.read_text())
        assert saved["rounds"] == 3
        assert (saved["bot1"], saved["bot2"]) == ("conservative", "aggressive")
        assert saved["report_dir"] == str(tmp_path)

    def test_config_untouched_without_save_flag(self, config):
        before = config.read_text()
        assert main(["--csv", "--rounds", "3", "--seed", "1", "--config", str(config)]) == 0
        assert config.read_text() == before

    def test_bot4_needs_bot3(self, config):
        assert main(["--csv", "--bot4", "aggressive", "--config", str(config)]) == 2

    def test_three_seats(self, config, capsys):
        assert main(["--csv", "--bot3", "aggressive", "--seed", "1", "--config", str(config)]) == 0
        assert "aggressive+balanced+aggressive,2," in capsys.readouterr().out

    def test_fresh_strategies_per_game(self, monkeypatch):
        created = []

        def factory():
            created.append(1)
            return AggressiveStrategy()

        monkeypatch.setitem(STRATEGIES, "aggressive", factory)
        run_simulation(rounds=3, seed=1, bots=("aggressive", "aggressive"))
        assert len(created) == 6
