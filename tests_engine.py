#!/usr/bin/env python3
"""
RaffleLab — Engine Tests

Covers the batch loop end to end: determinism under a seed, money
conservation, win-rate bounds, batch capping, snapshots, cancellation at
batch boundaries, and suggestion ordering.

Run: python tests_engine.py
"""

import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from sim_engine.raffle import (
    AdvancedStats, CancellationToken, Prize, RaffleSimulationEngine,
    SimulationConfig, generate_optimization_suggestions, get_simulation_engine,
)
from sim_engine.raffle.models import Priority, SuggestionType


def _config(total_runs=5000, entry_fee=10.0, batch_size=1000, prizes=None):
    if prizes is None:
        prizes = [
            Prize(id="a", title="Grand", quantity=1, user_value=1000),
            Prize(id="b", title="Blank", quantity=99, user_value=0),
        ]
    return SimulationConfig(
        total_runs=total_runs, entry_fee=entry_fee,
        batch_size=batch_size, prizes=prizes,
    )


class TestDeterminism(unittest.TestCase):

    def test_same_seed_same_result(self):
        cfg = _config()
        r1 = RaffleSimulationEngine(cfg, seed=42).run()
        r2 = RaffleSimulationEngine(cfg, seed=42).run()
        self.assertEqual(r1.profit_loss_history, r2.profit_loss_history)
        self.assertEqual(r1.prize_wins, r2.prize_wins)
        self.assertEqual(r1.final_stats.to_dict(), r2.final_stats.to_dict())

    def test_seed_zero_is_deterministic(self):
        cfg = _config(total_runs=2000)
        r1 = get_simulation_engine(cfg, seed=0).run()
        r2 = get_simulation_engine(cfg, seed=0).run()
        self.assertEqual(r1.prize_wins, r2.prize_wins)
        self.assertEqual(r1.seed, 0)

    def test_injected_random_source(self):
        class AlwaysFirst:
            def random(self):
                return 0.0

        result = RaffleSimulationEngine(_config(total_runs=100, batch_size=50),
                                        rng=AlwaysFirst()).run()
        self.assertEqual(result.prize_wins, {"a": 100, "b": 0})
        self.assertEqual(result.distribution["a"], 100.0)


class TestAccounting(unittest.TestCase):

    def setUp(self):
        self.cfg = _config(total_runs=4000)
        self.result = RaffleSimulationEngine(self.cfg, seed=7).run()

    def test_cost_is_fee_times_trials(self):
        self.assertEqual(self.result.total_runs, 4000)
        self.assertAlmostEqual(self.result.total_cost, 10.0 * 4000)

    def test_value_matches_wins(self):
        wins = self.result.prize_wins
        self.assertAlmostEqual(self.result.total_value, wins["a"] * 1000 + wins["b"] * 0)
        self.assertEqual(sum(wins.values()), 4000)

    def test_history_and_cumulative(self):
        r = self.result
        self.assertEqual(len(r.profit_loss_history), 4000)
        self.assertEqual(len(r.cumulative_returns), 4000)
        self.assertAlmostEqual(r.cumulative_returns[-1], sum(r.profit_loss_history))
        self.assertAlmostEqual(r.cumulative_returns[-1], r.total_value - r.total_cost)
        self.assertTrue(all(x in (-10.0, 990.0) for x in r.profit_loss_history))

    def test_roi_and_win_rate(self):
        r = self.result
        self.assertAlmostEqual(r.roi, (r.total_value - r.total_cost) / r.total_cost * 100)
        self.assertGreaterEqual(r.win_rate, 0)
        self.assertLessEqual(r.win_rate, 100)
        # every trial lands on some prize here
        self.assertAlmostEqual(r.win_rate, 100.0)
        self.assertAlmostEqual(sum(r.distribution.values()), 100.0)

    def test_not_stopped(self):
        self.assertFalse(self.result.stopped_early)


class TestConcreteScenario(unittest.TestCase):
    """1% grand prize worth 100× the fee: theoretical ROI is 0%."""

    def test_seeded_ten_thousand_trials(self):
        cfg = SimulationConfig(
            total_runs=10000, entry_fee=10, batch_size=1000,
            prizes=[Prize(id="a", quantity=1, user_value=1000),
                    Prize(id="b", quantity=99, user_value=0)],
        )
        r1 = RaffleSimulationEngine(cfg, seed=42).run()
        self.assertEqual(r1.total_runs, 10000)
        self.assertAlmostEqual(r1.total_cost, 100_000)
        self.assertLessEqual(abs(r1.distribution["a"] - 1.0), 1.5)
        self.assertLessEqual(abs(r1.roi - 0), 20)

        r2 = RaffleSimulationEngine(cfg, seed=42).run()
        self.assertEqual(r1.prize_wins, r2.prize_wins)
        self.assertEqual(r1.roi, r2.roi)
        self.assertEqual(r1.profit_loss_history, r2.profit_loss_history)
        self.assertEqual(r1.cumulative_returns, r2.cumulative_returns)
        self.assertEqual(r1.final_stats.to_dict(), r2.final_stats.to_dict())


class TestEdgeCases(unittest.TestCase):

    def test_zero_ticket_pool(self):
        cfg = _config(total_runs=1500, prizes=[Prize(id="x", quantity=0, user_value=50)])
        r = RaffleSimulationEngine(cfg, seed=1).run()
        self.assertEqual(r.roi, -100.0)
        self.assertEqual(r.win_rate, 0.0)
        self.assertEqual(r.prize_wins, {"x": 0})
        self.assertEqual(r.final_stats.fairness_index, 1.0)
        self.assertEqual(r.final_stats.mean, -10.0)

    def test_no_prizes(self):
        r = RaffleSimulationEngine(_config(total_runs=100, prizes=[]), seed=1).run()
        self.assertEqual(r.prize_wins, {})
        self.assertEqual(r.distribution, {})
        self.assertEqual(r.win_rate, 0.0)

    def test_zero_entry_fee(self):
        r = RaffleSimulationEngine(_config(total_runs=200, entry_fee=0), seed=3).run()
        self.assertEqual(r.total_cost, 0)
        self.assertEqual(r.roi, 0.0)
        self.assertEqual(r.final_stats.participation_prediction.expected_participants, 0)

    def test_partial_last_batch(self):
        progress = []
        r = RaffleSimulationEngine(_config(total_runs=2500), seed=5).run(
            on_progress=lambda p: progress.append(p.current_run))
        self.assertEqual(progress, [1000, 2000, 2500])
        self.assertEqual(r.total_runs, 2500)


class TestBatching(unittest.TestCase):

    def test_batch_size_capped(self):
        runs = []
        RaffleSimulationEngine(_config(total_runs=3000, batch_size=5000), seed=1).run(
            on_progress=lambda p: runs.append(p.current_run))
        self.assertEqual(runs, [1000, 2000, 3000])

    def test_progress_reports(self):
        reports = []
        RaffleSimulationEngine(_config(total_runs=4000, batch_size=500), seed=2).run(
            on_progress=reports.append)
        self.assertEqual(len(reports), 8)
        self.assertEqual([p.current_run for p in reports], list(range(500, 4001, 500)))
        self.assertEqual(reports[-1].progress, 100.0)
        self.assertTrue(all(a.progress < b.progress for a, b in zip(reports, reports[1:])))
        self.assertIsInstance(reports[0].current_stats, AdvancedStats)

    def test_running_average(self):
        reports = []
        r = RaffleSimulationEngine(_config(total_runs=2000), seed=9).run(
            on_progress=reports.append)
        self.assertAlmostEqual(reports[-1].running_average, r.cumulative_returns[-1] / 2000)

    def test_snapshots_every_interval(self):
        r = RaffleSimulationEngine(_config(total_runs=12000), seed=4).run()
        self.assertEqual(len(r.running_stats), 2)

    def test_snapshots_only_on_exact_multiples(self):
        r = RaffleSimulationEngine(_config(total_runs=3000, batch_size=700), seed=4,
                                   snapshot_interval=1400).run()
        # batch ends: 700, 1400, 2100, 2800, 3000
        self.assertEqual(len(r.running_stats), 2)


class TestCancellation(unittest.TestCase):

    def test_stop_at_batch_boundary(self):
        token = CancellationToken()

        def on_progress(p):
            if p.current_run >= 3000:
                token.stop()

        r = RaffleSimulationEngine(_config(total_runs=10000), seed=1).run(
            on_progress=on_progress, token=token)
        self.assertTrue(r.stopped_early)
        self.assertEqual(r.total_runs, 3000)
        self.assertEqual(len(r.profit_loss_history), 3000)
        self.assertAlmostEqual(r.total_cost, 30000)
        self.assertAlmostEqual(sum(r.distribution.values()), r.win_rate)

    def test_stopped_before_start(self):
        token = CancellationToken()
        token.stop()
        r = RaffleSimulationEngine(_config(), seed=1).run(token=token)
        self.assertEqual(r.total_runs, 0)
        self.assertTrue(r.stopped_early)
        self.assertEqual(r.roi, 0.0)
        self.assertEqual(r.win_rate, 0.0)

    def test_token_flags(self):
        token = CancellationToken()
        self.assertFalse(token.paused)
        token.pause()
        self.assertTrue(token.paused)
        token.resume()
        self.assertFalse(token.paused)
        token.stop()
        token.pause()
        self.assertTrue(token.stopped)
        self.assertFalse(token.paused)

    def test_stop_wakes_paused_wait(self):
        token = CancellationToken()
        token.pause()
        token.stop()
        token.wait_while_paused(0.01)   # returns immediately
        self.assertTrue(token.stopped)


class TestSuggestions(unittest.TestCase):

    def test_all_rules_sorted(self):
        stats = AdvancedStats(mean=-5, fairness_index=0.5, sharpe_ratio=0.1,
                              optimal_entry_fee=8.5)
        sugs = generate_optimization_suggestions(stats)
        self.assertEqual([s.type for s in sugs], [
            SuggestionType.ENTRY_FEE, SuggestionType.PRIZE_QUANTITY, SuggestionType.PRIZE_VALUE,
        ])
        self.assertEqual([s.priority for s in sugs],
                         [Priority.HIGH, Priority.MEDIUM, Priority.MEDIUM])
        self.assertEqual(sugs[0].implementation, {"new_entry_fee": 8.5})
        self.assertEqual(sugs[0].expected_impact["roi_change"], 15)
        self.assertEqual(sugs[1].expected_impact["fairness_change"], 20)
        self.assertAlmostEqual(sugs[2].confidence, 0.7)

    def test_healthy_stats_no_suggestions(self):
        stats = AdvancedStats(mean=5, fairness_index=0.9, sharpe_ratio=1.2)
        self.assertEqual(generate_optimization_suggestions(stats), [])

    def test_result_carries_suggestions(self):
        # Expected value 10 against a fee of 50 → mean < 0
        r = RaffleSimulationEngine(_config(total_runs=1000, entry_fee=50), seed=11).run()
        types = [s.type for s in r.optimization_suggestions]
        self.assertIn(SuggestionType.ENTRY_FEE, types)
        self.assertAlmostEqual(r.final_stats.optimal_entry_fee, 8.5)


class TestResultSerialization(unittest.TestCase):

    def test_to_dict_and_summary(self):
        r = RaffleSimulationEngine(_config(total_runs=1000), seed=8).run()
        d = r.to_dict(include_history=False)
        self.assertNotIn("profit_loss_history", d)
        self.assertEqual(d["total_runs"], 1000)
        self.assertEqual(d["seed"], 8)
        self.assertIn("final_stats", d)
        self.assertIn("profit_loss_history", r.to_dict())
        self.assertIn("Trials:", r.summary())


if __name__ == "__main__":
    unittest.main()
