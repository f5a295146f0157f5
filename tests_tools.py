#!/usr/bin/env python3
"""
RaffleLab — Tools Tests

  TestOptimizer  — goal-driven config tuning, readiness check
  TestConfigIO   — save/load config files, defaults, load errors, result export
  TestCLI        — end-to-end CLI invocation

Run: python tests_tools.py
"""

import json
import sys
import tempfile
import unittest
from pathlib import Path

from pydantic import ValidationError

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from sim_engine.raffle import (
    OptimizationGoals, Prize, RaffleSimulationEngine, RiskTolerance, SimulationConfig,
)
from tools.raffle_cli import main as cli_main
from tools.raffle_export import (
    ConfigLoadError, default_filename, export_results, load_config, save_config,
)
from tools.raffle_optimizer import apply_optimization_goals, can_run_simulation


class HalfRNG:
    def random(self):
        return 0.5


def _config(goals=None, prizes=None, entry_fee=10.0):
    if prizes is None:
        prizes = [Prize(id="a", quantity=1, user_value=1000),
                  Prize(id="b", quantity=99, user_value=0)]
    return SimulationConfig(total_runs=2000, entry_fee=entry_fee,
                            prizes=prizes, optimization_goals=goals)


# ============================================================
# Optimizer
# ============================================================

class TestOptimizer(unittest.TestCase):

    def test_no_goals_returns_same_config(self):
        cfg = _config()
        self.assertIs(apply_optimization_goals(cfg), cfg)

    def test_target_roi_sets_entry_fee(self):
        cfg = _config(OptimizationGoals(target_roi=25))
        tuned = apply_optimization_goals(cfg)
        self.assertAlmostEqual(tuned.entry_fee, 10 / 1.25)
        self.assertEqual(tuned.prizes, cfg.prizes)
        self.assertEqual(cfg.entry_fee, 10.0)

    def test_entry_fee_floor(self):
        prizes = [Prize(id="a", quantity=5, user_value=0)]
        tuned = apply_optimization_goals(_config(OptimizationGoals(target_roi=10), prizes))
        self.assertEqual(tuned.entry_fee, 1.0)

    def test_total_loss_target_roi_rejected(self):
        """A -100% target would need a zero denominator; the goal is refused up front."""
        with self.assertRaises(ValidationError):
            _config(OptimizationGoals(target_roi=-100))
        tuned = apply_optimization_goals(_config(OptimizationGoals(target_roi=-50)))
        self.assertAlmostEqual(tuned.entry_fee, 20.0)

    def test_tuned_prizes_stay_a_tuple(self):
        cfg = _config(OptimizationGoals(risk_tolerance="conservative"))
        self.assertIsInstance(apply_optimization_goals(cfg).prizes, tuple)

    def test_high_fairness_weight_flattens_quantities(self):
        prizes = [Prize(id="a", quantity=10, user_value=5),
                  Prize(id="b", quantity=30, user_value=5)]
        cfg = _config(OptimizationGoals(fairness_weight=0.8), prizes)
        tuned = apply_optimization_goals(cfg, rng=HalfRNG())
        self.assertEqual([p.quantity for p in tuned.prizes], [20, 20])

    def test_conservative_trims_values(self):
        tuned = apply_optimization_goals(
            _config(OptimizationGoals(risk_tolerance=RiskTolerance.CONSERVATIVE)))
        self.assertAlmostEqual(tuned.prizes[0].user_value, 900)

    def test_aggressive_boosts_headline_prize(self):
        prizes = [Prize(id="a", quantity=1, user_value=1000),
                  Prize(id="b", quantity=9, user_value=100)]
        tuned = apply_optimization_goals(
            _config(OptimizationGoals(risk_tolerance="aggressive"), prizes))
        self.assertAlmostEqual(tuned.prizes[0].user_value, 1500)
        self.assertAlmostEqual(tuned.prizes[1].user_value, 80)

    def test_steps_compose(self):
        prizes = [Prize(id="a", quantity=10, user_value=100),
                  Prize(id="b", quantity=30, user_value=100)]
        goals = OptimizationGoals(fairness_weight=0.9, risk_tolerance="conservative")
        tuned = apply_optimization_goals(_config(goals, prizes), rng=HalfRNG())
        self.assertEqual([p.quantity for p in tuned.prizes], [20, 20])
        self.assertTrue(all(abs(p.user_value - 90) < 1e-9 for p in tuned.prizes))

    def test_can_run_simulation(self):
        self.assertTrue(can_run_simulation(_config()))
        self.assertFalse(can_run_simulation(_config(prizes=[])))
        self.assertFalse(can_run_simulation(_config(entry_fee=0)))
        self.assertFalse(can_run_simulation(
            _config(prizes=[Prize(id="a", quantity=0, user_value=5)])))


# ============================================================
# Config & Result Files
# ============================================================

class TestConfigIO(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def _write(self, name, content):
        path = self.tmp / name
        path.write_text(content, encoding="utf-8")
        return path

    def test_save_and_load(self):
        cfg = _config(OptimizationGoals(target_roi=15, risk_tolerance="conservative"))
        path = save_config(cfg, self.tmp / "nested" / "cfg.json", raffle_id="r-7")

        raw = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual(raw["totalRuns"], 2000)
        self.assertEqual(raw["raffleId"], "r-7")
        self.assertIn("timestamp", raw)
        self.assertIn("userValue", raw["prizes"][0])

        self.assertEqual(load_config(path), cfg)

    def test_missing_fields_use_defaults(self):
        path = self._write("cfg.json", json.dumps(
            {"prizes": [{"id": "a", "quantity": 2, "userValue": 5}]}))
        cfg = load_config(path)
        self.assertEqual(cfg.total_runs, 10000)
        self.assertEqual(cfg.entry_fee, 100.0)
        self.assertEqual(cfg.batch_size, 1000)
        self.assertIsNone(cfg.optimization_goals)

    def test_zero_entry_fee_kept(self):
        path = self._write("free.json", json.dumps({
            "entryFee": 0, "prizes": [{"id": "a", "quantity": 1, "userValue": 5}],
        }))
        self.assertEqual(load_config(path).entry_fee, 0)

        path = self._write("null.json", json.dumps({"entryFee": None}))
        self.assertEqual(load_config(path).entry_fee, 100.0)

    def test_unreachable_target_roi_is_a_load_error(self):
        path = self._write("goals.json", json.dumps({
            "prizes": [{"id": "a", "quantity": 1, "userValue": 5}],
            "optimizationGoals": {"targetRoi": -100},
        }))
        with self.assertRaises(ConfigLoadError):
            load_config(path)

    def test_snake_case_keys_accepted(self):
        path = self._write("cfg.json", json.dumps({
            "total_runs": 50, "entry_fee": 3,
            "prizes": [{"id": "a", "quantity": 1, "user_value": 5}],
        }))
        cfg = load_config(path)
        self.assertEqual(cfg.total_runs, 50)
        self.assertEqual(cfg.entry_fee, 3)
        self.assertEqual(cfg.prizes[0].user_value, 5)

    def test_load_errors(self):
        with self.assertRaises(ConfigLoadError):
            load_config(self.tmp / "missing.json")
        with self.assertRaises(ConfigLoadError):
            load_config(self._write("bad.json", "{not json"))
        with self.assertRaises(ConfigLoadError):
            load_config(self._write("list.json", "[1, 2]"))
        with self.assertRaises(ConfigLoadError):
            load_config(self._write("neg.json", json.dumps(
                {"prizes": [{"id": "a", "quantity": -1}]})))

    def test_export_results(self):
        cfg = _config()
        result = RaffleSimulationEngine(cfg, seed=42).run()
        path = export_results(cfg, result, self.tmp / "results.json",
                              raffle_info={"name": "Launch"})
        doc = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual(doc["simulationConfig"]["entryFee"], 10.0)
        self.assertEqual(doc["results"]["total_runs"], 2000)
        self.assertEqual(doc["metadata"]["raffleInfo"], {"name": "Launch"})
        metrics = doc["metadata"]["theoreticalMetrics"]
        self.assertAlmostEqual(metrics["expectedValue"], 10.0)
        self.assertAlmostEqual(metrics["theoreticalROI"], 0.0)
        self.assertLess(metrics["fairnessScore"], 0.1)

    def test_default_filename(self):
        name = default_filename("raffle-config", "r-1")
        self.assertTrue(name.startswith("raffle-config-r-1-"))
        self.assertTrue(name.endswith(".json"))
        self.assertTrue(default_filename("simulation-results").startswith(
            "simulation-results-custom-"))


# ============================================================
# CLI
# ============================================================

class TestCLI(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.cfg_path = save_config(_config(), self.tmp / "cfg.json")

    def tearDown(self):
        self._tmp.cleanup()

    def test_run_and_export(self):
        out = self.tmp / "out.json"
        rc = cli_main([str(self.cfg_path), "--seed", "42", "--runs", "1500",
                       "--export", str(out)])
        self.assertEqual(rc, 0)
        doc = json.loads(out.read_text(encoding="utf-8"))
        self.assertEqual(doc["results"]["total_runs"], 1500)
        self.assertEqual(doc["results"]["seed"], 42)

    def test_dump_config(self):
        self.assertEqual(cli_main([str(self.cfg_path), "--dump-config"]), 0)

    def test_missing_config(self):
        self.assertEqual(cli_main([str(self.tmp / "nope.json")]), 1)

    def test_optimize_with_unreachable_target_exits_cleanly(self):
        path = self.tmp / "goals.json"
        path.write_text(json.dumps({
            "prizes": [{"id": "a", "quantity": 1, "userValue": 5}],
            "optimizationGoals": {"targetRoi": -100},
        }), encoding="utf-8")
        self.assertEqual(cli_main([str(path), "--optimize", "--dump-config"]), 1)


if __name__ == "__main__":
    unittest.main()
