#!/usr/bin/env python3
"""
RaffleLab — Controller Lifecycle Tests

idle → running ⇄ paused → completed / error / idle(stop), single-run guard,
and the stats-only entry point.

Background runs are held at their first batch boundary by a gate event in
the progress callback, so every transition below is deterministic.

Run: python tests_controller.py
"""

import sys
import threading
import time
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from sim_engine.raffle import (
    AdvancedStats, Prize, SimulationBusyError, SimulationConfig,
    SimulationController, SimulationStatus,
)


def _config(total_runs=3000):
    return SimulationConfig(
        total_runs=total_runs, entry_fee=10, batch_size=1000,
        prizes=[Prize(id="a", quantity=1, user_value=1000),
                Prize(id="b", quantity=99, user_value=0)],
    )


class _Gate:
    """Progress callback that blocks until released."""

    def __init__(self):
        self.reached = threading.Event()
        self.release = threading.Event()

    def __call__(self, progress):
        self.reached.set()
        self.release.wait(10)


class TestBlockingRun(unittest.TestCase):

    def test_completes(self):
        ctl = SimulationController()
        seen = []
        state = ctl.run_simulation(_config(), seed=42, on_progress=seen.append)
        self.assertEqual(state.status, SimulationStatus.COMPLETED)
        self.assertEqual(state.progress, 100.0)
        self.assertFalse(state.is_running)
        self.assertIsNone(state.error)
        self.assertEqual(state.result.total_runs, 3000)
        self.assertEqual(len(seen), 3)
        self.assertFalse(ctl.is_active)

    def test_engine_failure_becomes_error_state(self):
        ctl = SimulationController()
        state = ctl.run_simulation(None)
        self.assertEqual(state.status, SimulationStatus.ERROR)
        self.assertTrue(state.error)
        self.assertFalse(state.is_running)
        self.assertIsNone(state.result)
        # controller is usable again
        state = ctl.run_simulation(_config(1000), seed=1)
        self.assertEqual(state.status, SimulationStatus.COMPLETED)

    def test_state_is_a_snapshot(self):
        ctl = SimulationController()
        snap = ctl.state
        snap.progress = 55
        self.assertEqual(ctl.state.progress, 0.0)


class TestBackgroundRun(unittest.TestCase):

    def test_start_and_wait(self):
        ctl = SimulationController()
        thread = ctl.start_simulation(_config(), seed=3)
        self.assertEqual(thread.name, "raffle-simulation")
        self.assertTrue(ctl.wait(30))
        state = ctl.state
        self.assertEqual(state.status, SimulationStatus.COMPLETED)
        self.assertEqual(state.result.total_runs, 3000)

    def test_second_run_rejected_while_active(self):
        ctl = SimulationController()
        gate = _Gate()
        ctl.start_simulation(_config(), seed=1, on_progress=gate)
        self.assertTrue(gate.reached.wait(10))

        with self.assertRaises(SimulationBusyError):
            ctl.run_simulation(_config())
        with self.assertRaises(SimulationBusyError):
            ctl.start_simulation(_config())
        self.assertEqual(ctl.state.status, SimulationStatus.RUNNING)

        gate.release.set()
        self.assertTrue(ctl.wait(30))
        self.assertEqual(ctl.state.status, SimulationStatus.COMPLETED)

    def test_pause_and_resume(self):
        ctl = SimulationController()
        gate = _Gate()
        ctl.start_simulation(_config(), seed=1, on_progress=gate)
        self.assertTrue(gate.reached.wait(10))

        ctl.pause_simulation()
        state = ctl.state
        self.assertEqual(state.status, SimulationStatus.PAUSED)
        self.assertTrue(state.is_paused)

        gate.release.set()
        time.sleep(0.3)
        # parked at the next batch boundary
        self.assertEqual(ctl.state.current_run, 1000)
        self.assertTrue(ctl.is_active)

        ctl.resume_simulation()
        self.assertEqual(ctl.state.status, SimulationStatus.RUNNING)
        self.assertTrue(ctl.wait(30))
        state = ctl.state
        self.assertEqual(state.status, SimulationStatus.COMPLETED)
        self.assertEqual(state.result.total_runs, 3000)
        self.assertFalse(state.result.stopped_early)

    def test_stop_returns_to_idle_with_partial_result(self):
        ctl = SimulationController()
        gate = _Gate()
        ctl.start_simulation(_config(100000), seed=1, on_progress=gate)
        self.assertTrue(gate.reached.wait(10))

        ctl.stop_simulation()
        state = ctl.state
        self.assertEqual(state.status, SimulationStatus.IDLE)
        self.assertEqual(state.progress, 0.0)
        self.assertFalse(state.is_running)
        self.assertFalse(ctl.is_active)

        gate.release.set()
        self.assertTrue(ctl.wait(30))
        state = ctl.state
        self.assertEqual(state.status, SimulationStatus.IDLE)
        result = state.result
        self.assertTrue(result.stopped_early)
        self.assertLess(result.total_runs, 100000)
        self.assertEqual(result.total_runs % 1000, 0)

    def test_stop_while_paused(self):
        ctl = SimulationController()
        gate = _Gate()
        ctl.start_simulation(_config(100000), seed=1, on_progress=gate)
        self.assertTrue(gate.reached.wait(10))
        ctl.pause_simulation()
        gate.release.set()

        ctl.stop_simulation()
        self.assertTrue(ctl.wait(30))
        self.assertEqual(ctl.state.status, SimulationStatus.IDLE)
        self.assertEqual(ctl.state.result.total_runs, 1000)

    def test_new_run_after_stop_not_clobbered(self):
        ctl = SimulationController()
        gate = _Gate()
        ctl.start_simulation(_config(100000), seed=1, on_progress=gate)
        self.assertTrue(gate.reached.wait(10))
        ctl.stop_simulation()

        state = ctl.run_simulation(_config(2000), seed=2)
        self.assertEqual(state.status, SimulationStatus.COMPLETED)

        gate.release.set()
        self.assertTrue(ctl.wait(30))
        state = ctl.state
        self.assertEqual(state.status, SimulationStatus.COMPLETED)
        self.assertEqual(state.result.total_runs, 2000)


class TestIdleControls(unittest.TestCase):

    def test_controls_are_noops_when_idle(self):
        ctl = SimulationController()
        ctl.pause_simulation()
        self.assertEqual(ctl.state.status, SimulationStatus.IDLE)
        self.assertFalse(ctl.state.is_paused)
        ctl.resume_simulation()
        self.assertEqual(ctl.state.status, SimulationStatus.IDLE)
        ctl.stop_simulation()
        self.assertEqual(ctl.state.status, SimulationStatus.IDLE)
        self.assertTrue(ctl.wait(0.1))


class TestCalculateStats(unittest.TestCase):

    def test_stats_for_history(self):
        ctl = SimulationController()
        prizes = [Prize(id="a", quantity=10, user_value=5),
                  Prize(id="b", quantity=10, user_value=50)]
        stats = ctl.calculate_stats([-10, 40, -10, -10], prizes, 10)
        self.assertIsInstance(stats, AdvancedStats)
        self.assertAlmostEqual(stats.mean, 2.5)
        self.assertEqual(stats.fairness_index, 1.0)

    def test_failure_returns_none(self):
        self.assertIsNone(SimulationController().calculate_stats(None))


if __name__ == "__main__":
    unittest.main()
