#!/usr/bin/env python3
"""
RaffleLab — Unit Test Suite

Run: python tests.py
     python tests.py -v              # verbose
     python tests.py TestStatistics  # run specific class

Test categories:
  TestStatistics      — moments, Bayesian posterior, Gini, entropy, Sortino, drawdown, Kelly
  TestAdvancedStats   — full snapshot: VaR/CVaR, fairness, fee, recommendations, demand curve
  TestRandomSources   — seeded determinism, system source selection
  TestDrawSampler     — ticket ranges, zero-ticket pool
  TestModels          — config validation, camelCase aliases
  TestDerivedUtils    — expected value, theoretical ROI, risk level, scores, action items
"""

import math
import sys
import unittest
from pathlib import Path

from pydantic import ValidationError

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from sim_engine.raffle import stats as S
from sim_engine.raffle.models import (
    AdvancedStats, OptimizationGoals, OptimizationSuggestion, Priority, Prize, PrizeType,
    SimulationConfig, SimulationResult, SuggestionType,
)
from sim_engine.raffle.rng import (
    SineRandomSource, SystemRandomSource, make_random_source,
)
from sim_engine.raffle.sampler import DrawSampler
from sim_engine.raffle import utils as U


class FixedRNG:
    """Replays a fixed list of [0, 1) values."""

    def __init__(self, values):
        self.values = list(values)
        self.i = 0

    def random(self) -> float:
        v = self.values[self.i % len(self.values)]
        self.i += 1
        return v


def _prizes(*specs):
    return [Prize(id=pid, quantity=q, user_value=v) for pid, q, v in specs]


# ============================================================
# Statistics Library
# ============================================================

class TestStatistics(unittest.TestCase):

    def test_skewness_symmetric(self):
        self.assertAlmostEqual(S.skewness([1, 2, 3]), 0.0)

    def test_kurtosis_uniform_three_points(self):
        """z⁴ = 2.25 for the outer points → 4.5/3 − 3 = −1.5."""
        self.assertAlmostEqual(S.kurtosis([1, 2, 3]), -1.5)

    def test_moments_nan_without_spread(self):
        self.assertTrue(math.isnan(S.skewness([5, 5, 5])))
        self.assertTrue(math.isnan(S.kurtosis([5, 5, 5])))

    def test_bayesian_conjugate_update(self):
        """Weights are 1/prior_var and n/sample_var (sample var uses n−1)."""
        post = S.bayesian_stats([1, 2, 3])
        expected_var = 1 / (1 / 1000 + 3 / 1)
        expected_mean = expected_var * (0 / 1000 + 3 * 2 / 1)
        self.assertAlmostEqual(post.posterior_variance, expected_var)
        self.assertAlmostEqual(post.posterior_mean, expected_mean)
        lo, hi = post.credible_interval
        self.assertAlmostEqual(lo, expected_mean - 1.96 * math.sqrt(expected_var))
        self.assertAlmostEqual(hi, expected_mean + 1.96 * math.sqrt(expected_var))

    def test_bayesian_custom_prior(self):
        post = S.bayesian_stats([4, 6], prior_mean=10, prior_variance=2)
        # sample mean 5, sample var 2, n 2
        var = 1 / (1 / 2 + 2 / 2)
        self.assertAlmostEqual(post.posterior_variance, var)
        self.assertAlmostEqual(post.posterior_mean, var * (10 / 2 + 2 * 5 / 2))

    def test_bayesian_degenerate_sample(self):
        post = S.bayesian_stats([-10, -10, -10])
        self.assertEqual(post.posterior_mean, -10)
        self.assertEqual(post.posterior_variance, 0.0)
        self.assertEqual(post.credible_interval, (-10, -10))

    def test_gini_equal_values_is_zero(self):
        self.assertEqual(S.gini_coefficient([5, 5, 5, 5]), 0.0)

    def test_gini_concentrated(self):
        """One of four holds everything: 60 / (2·16·2.5) = 0.75."""
        self.assertAlmostEqual(S.gini_coefficient([0, 0, 0, 10]), 0.75)

    def test_gini_empty_and_zero_mean(self):
        self.assertEqual(S.gini_coefficient([]), 0.0)
        self.assertEqual(S.gini_coefficient([0, 0]), 0.0)

    def test_entropy(self):
        self.assertAlmostEqual(S.entropy([0.5, 0.5]), 1.0)
        self.assertAlmostEqual(S.entropy([0.25] * 4), 2.0)
        self.assertEqual(S.entropy([1.0, 0.0]), 0.0)

    def test_sortino_undefined_without_downside(self):
        self.assertIsNone(S.sortino_ratio([1, 2, 3]))
        self.assertIsNone(S.sortino_ratio([]))

    def test_sortino_value(self):
        """mean 1, downside deviation 2 → 0.5."""
        self.assertAlmostEqual(S.sortino_ratio([-2, 4]), 0.5)

    def test_max_drawdown(self):
        self.assertEqual(S.max_drawdown([10, -5, -5, 3]), 10)

    def test_max_drawdown_peak_seeded_with_first_value(self):
        # Peak starts at data[0] = -10, not 0, so the fall is 10 rather than 20.
        self.assertEqual(S.max_drawdown([-10, -10]), 10)

    def test_kelly(self):
        self.assertAlmostEqual(S.kelly_fraction([10, 10, -5, -5]), 0.25)
        self.assertEqual(S.kelly_fraction([10, -5, -5, -5]), 0.0)
        self.assertEqual(S.kelly_fraction([-5, -5]), 0.0)

    def test_mode_ties_prefer_later_value(self):
        self.assertEqual(S.mode([1, 1, 2]), 1.0)
        self.assertEqual(S.mode([1, 2]), 2.0)

    def test_mode_rounds_exact_halves_up(self):
        self.assertEqual(S.mode([0.125]), 0.13)
        self.assertEqual(S.mode([-0.125]), -0.13)
        # 0.125 and 0.13 share the 0.13 bucket
        self.assertEqual(S.mode([0.125, 0.13, 0.5]), 0.13)

    def test_median(self):
        self.assertEqual(S.median([1, 2, 3]), 2)
        self.assertEqual(S.median([1, 2, 3, 4]), 2.5)


# ============================================================
# Full Snapshot
# ============================================================

class TestAdvancedStats(unittest.TestCase):

    def test_empty_history(self):
        stats = S.compute_advanced_stats([])
        self.assertEqual(stats.mean, 0)
        self.assertEqual(stats.fairness_index, 1)
        self.assertEqual(stats.recommended_prize_adjustments, [])
        self.assertEqual(stats.participation_prediction.factors_influence, {})

    def test_var_cvar_tail(self):
        data = list(range(-50, 50))
        stats = S.compute_advanced_stats(data)
        self.assertEqual(stats.value_at_risk_95, -45)
        self.assertAlmostEqual(stats.conditional_var_95, -48)
        self.assertAlmostEqual(stats.expected_shortfall, -48)
        self.assertAlmostEqual(stats.tail_risk, 0.05)

    def test_cvar_small_sample(self):
        """Fewer than 20 trials → empty tail, CVaR 0."""
        stats = S.compute_advanced_stats([-10, 5, 7])
        self.assertEqual(stats.value_at_risk_95, -10)
        self.assertEqual(stats.conditional_var_95, 0)

    def test_constant_history_guards(self):
        stats = S.compute_advanced_stats([-10.0] * 50)
        self.assertEqual(stats.std_dev, 0)
        self.assertEqual(stats.skewness, 0.0)
        self.assertEqual(stats.kurtosis, 0.0)
        self.assertEqual(stats.sharpe_ratio, 0.0)
        self.assertEqual(stats.risk_parity_score, 1.0)
        self.assertEqual(stats.mode, -10.0)

    def test_fairness_equal_quantities(self):
        prizes = _prizes(("a", 10, 5), ("b", 10, 50), ("c", 10, 500), ("d", 10, 0))
        stats = S.compute_advanced_stats([1, -1], prizes, 10)
        self.assertEqual(stats.fairness_index, 1.0)
        self.assertAlmostEqual(stats.entropy_score, 2.0)

    def test_fairness_bounded(self):
        prizes = _prizes(("a", 1, 1000), ("b", 99, 0))
        stats = S.compute_advanced_stats([1, -1], prizes, 10)
        self.assertGreaterEqual(stats.fairness_index, 0)
        self.assertLess(stats.fairness_index, 0.7)

    def test_gini_of_equal_prize_values(self):
        prizes = _prizes(("a", 3, 20), ("b", 7, 20), ("c", 1, 20))
        stats = S.compute_advanced_stats([1, -1], prizes, 10)
        self.assertEqual(stats.gini_coefficient, 0.0)

    def test_optimal_entry_fee(self):
        prizes = _prizes(("a", 1, 1000), ("b", 99, 0))
        stats = S.compute_advanced_stats([-10, 990], prizes, 10)
        self.assertAlmostEqual(stats.optimal_entry_fee, 10 * 0.85)

    def test_prize_recommendations(self):
        prizes = _prizes(("high", 50, 200), ("low", 10, 5), ("mid", 40, 50))
        recs = {r.prize_id: r for r in S.recommend_prize_adjustments(prizes, 10)}
        self.assertEqual(recs["high"].recommended_quantity, 35)
        self.assertAlmostEqual(recs["high"].impact, 0.15)
        self.assertEqual(recs["low"].recommended_quantity, 13)
        self.assertAlmostEqual(recs["low"].impact, 0.08)
        self.assertEqual(recs["mid"].recommended_quantity, 40)
        self.assertEqual(recs["mid"].impact, 0)

    def test_recommendation_floor_of_one(self):
        prizes = _prizes(("a", 1, 500), ("b", 1, 0))
        recs = S.recommend_prize_adjustments(prizes, 10)
        self.assertEqual(recs[0].recommended_quantity, 1)

    def test_recommendations_zero_ticket_pool_unchanged(self):
        prizes = _prizes(("a", 0, 1), ("b", 0, 0))
        recs = S.recommend_prize_adjustments(prizes, 10)
        self.assertTrue(all(r.recommended_quantity == r.current_quantity for r in recs))

    def test_participation_demand_curve(self):
        self.assertAlmostEqual(S.predict_participation(100).expected_participants, 1000)
        self.assertAlmostEqual(S.predict_participation(200).expected_participants,
                               1000 * 2 ** -1.2)
        self.assertEqual(S.predict_participation(0).expected_participants, 0)
        factors = S.predict_participation(50).factors_influence
        self.assertEqual(factors, {"entryFee": -0.8, "prizeValue": 0.6,
                                   "fairness": 0.3, "winRate": 0.4})

    def test_to_dict_handles_undefined_sortino(self):
        stats = S.compute_advanced_stats([1, 2, 3])
        self.assertIsNone(stats.sortino_ratio)
        self.assertIsNone(stats.to_dict()["sortino_ratio"])


# ============================================================
# Random Sources
# ============================================================

class TestRandomSources(unittest.TestCase):

    def test_sine_source_reproducible(self):
        a, b = SineRandomSource(42), SineRandomSource(42)
        self.assertEqual([a.random() for _ in range(100)],
                         [b.random() for _ in range(100)])

    def test_sine_source_range(self):
        rng = SineRandomSource(7)
        for _ in range(1000):
            v = rng.random()
            self.assertGreaterEqual(v, 0.0)
            self.assertLess(v, 1.0)

    def test_different_seeds_differ(self):
        a, b = SineRandomSource(1), SineRandomSource(2)
        self.assertNotEqual([a.random() for _ in range(5)],
                            [b.random() for _ in range(5)])

    def test_factory(self):
        self.assertIsInstance(make_random_source(None), SystemRandomSource)
        self.assertIsInstance(make_random_source(0), SineRandomSource)


# ============================================================
# Draw Sampler
# ============================================================

class TestDrawSampler(unittest.TestCase):

    def test_ticket_ranges_follow_prize_order(self):
        prizes = _prizes(("a", 1, 1000), ("b", 99, 0))
        sampler = DrawSampler(prizes, FixedRNG([0.0, 0.009, 0.5, 0.999]))
        self.assertEqual([sampler.draw().id for _ in range(4)], ["a", "a", "b", "b"])

    def test_zero_quantity_prize_never_wins(self):
        prizes = _prizes(("a", 0, 1000), ("b", 5, 0))
        sampler = DrawSampler(prizes, FixedRNG([0.0]))
        self.assertEqual(sampler.draw().id, "b")

    def test_empty_pool_returns_none(self):
        sampler = DrawSampler(_prizes(("a", 0, 10)), FixedRNG([0.3]))
        self.assertIsNone(sampler.draw())
        self.assertIsNone(DrawSampler([], FixedRNG([0.3])).draw())


# ============================================================
# Models
# ============================================================

class TestModels(unittest.TestCase):

    def test_duplicate_prize_ids_rejected(self):
        with self.assertRaises(ValidationError):
            SimulationConfig(prizes=_prizes(("a", 1, 1), ("a", 2, 2)))

    def test_invalid_numbers_rejected(self):
        with self.assertRaises(ValidationError):
            SimulationConfig(total_runs=0)
        with self.assertRaises(ValidationError):
            Prize(id="x", quantity=-1)
        with self.assertRaises(ValidationError):
            SimulationConfig(entry_fee=-5)

    def test_camel_case_aliases(self):
        cfg = SimulationConfig.model_validate({
            "totalRuns": 500, "entryFee": 2.5, "batchSize": 100,
            "prizes": [{"id": "p", "quantity": 3, "userValue": 9, "prizeType": 2}],
        })
        self.assertEqual(cfg.total_runs, 500)
        self.assertEqual(cfg.prizes[0].user_value, 9)
        self.assertEqual(cfg.prizes[0].prize_type, PrizeType.NFT)
        self.assertEqual(cfg.total_tickets, 3)

    def test_config_is_immutable(self):
        cfg = SimulationConfig()
        with self.assertRaises(ValidationError):
            cfg.entry_fee = 1

    def test_prize_list_is_immutable(self):
        cfg = SimulationConfig(prizes=_prizes(("a", 1, 10)))
        self.assertIsInstance(cfg.prizes, tuple)
        with self.assertRaises(AttributeError):
            cfg.prizes.append(Prize(id="b", quantity=1))

    def test_target_roi_must_exceed_minus_100(self):
        with self.assertRaises(ValidationError):
            OptimizationGoals(target_roi=-100)
        self.assertEqual(OptimizationGoals(target_roi=-50).target_roi, -50)


# ============================================================
# Derived Utilities
# ============================================================

class TestDerivedUtils(unittest.TestCase):

    def test_expected_value_and_roi(self):
        prizes = _prizes(("a", 1, 1000), ("b", 99, 0))
        self.assertAlmostEqual(U.expected_value(prizes), 10)
        self.assertAlmostEqual(U.theoretical_roi(prizes, 10), 0)
        self.assertAlmostEqual(U.theoretical_roi(prizes, 20), -50)
        self.assertEqual(U.theoretical_roi(prizes, 0), 0)

    def test_zero_ticket_pool(self):
        prizes = _prizes(("a", 0, 1000))
        self.assertEqual(U.expected_value(prizes), 0)
        self.assertEqual(U.fairness_score(prizes), 1)

    def test_fairness_score(self):
        self.assertEqual(U.fairness_score(_prizes(("a", 10, 1), ("b", 10, 2))), 1.0)
        self.assertEqual(U.fairness_score(_prizes(("a", 10, 1))), 1.0)
        self.assertLess(U.fairness_score(_prizes(("a", 1, 1), ("b", 99, 2))), 0.1)

    def test_risk_levels(self):
        self.assertEqual(U.assess_risk_level(AdvancedStats(sharpe_ratio=1.5, max_drawdown=50, tail_risk=0.05)),
                         U.RiskLevel.LOW)
        self.assertEqual(U.assess_risk_level(AdvancedStats(sharpe_ratio=0.7, max_drawdown=200, tail_risk=0.15)),
                         U.RiskLevel.MEDIUM)
        self.assertEqual(U.assess_risk_level(AdvancedStats(sharpe_ratio=2, max_drawdown=500, tail_risk=0.01)),
                         U.RiskLevel.HIGH)

    def test_optimization_score(self):
        stats = AdvancedStats(mean=5, fairness_index=1.0, max_drawdown=50, std_dev=4)
        # 15 + 25 + 20 + 16
        self.assertAlmostEqual(U.optimization_score(stats), 76)
        worst = AdvancedStats(mean=-100, fairness_index=0, max_drawdown=1000, std_dev=100)
        self.assertEqual(U.optimization_score(worst), 0)
        best = AdvancedStats(mean=100, fairness_index=1, max_drawdown=0, std_dev=0)
        self.assertEqual(U.optimization_score(best), 100)

    def test_smart_scores(self):
        scores = U.smart_scores(AdvancedStats(mean=0, fairness_index=0.5, std_dev=10, max_drawdown=100))
        self.assertEqual(scores["profitability"], 50)
        self.assertEqual(scores["fairness"], 50)
        self.assertEqual(scores["stability"], 80)
        self.assertEqual(scores["risk"], 90)
        self.assertAlmostEqual(scores["overall"], 67.5)

    def test_action_items_sorted(self):
        stats = AdvancedStats(mean=-60, fairness_index=0.4, optimal_entry_fee=8.5)
        sug = OptimizationSuggestion(
            type=SuggestionType.PRIZE_VALUE, priority=Priority.MEDIUM,
            description="review", roi_change=8, participation_change=5,
        )
        items = U.generate_action_items(stats, [sug])
        self.assertEqual([i.priority for i in items],
                         [Priority.CRITICAL, Priority.HIGH, Priority.MEDIUM])
        self.assertIn("8.50", items[0].implementation)
        self.assertEqual(items[2].impact, "ROI +8%, participation +5%")
        self.assertEqual(items[2].implementation, "Needs detailed analysis")

    def test_insights_capped(self):
        stats = AdvancedStats(
            fairness_index=0.9, sharpe_ratio=2, credible_interval_95=(0, 1),
        )
        stats.participation_prediction.expected_participants = 800
        result = SimulationResult(
            total_runs=10, prize_wins={}, total_value=0, total_cost=0,
            roi=50, win_rate=0, distribution={}, final_stats=stats,
        )
        insights = U.generate_insights(result, theoretical_roi_pct=0)
        self.assertEqual(len(insights), 5)
        self.assertTrue(all(i.kind in ("positive", "info") for i in insights))
        self.assertLessEqual(len(insights), U.MAX_INSIGHTS)


if __name__ == "__main__":
    unittest.main()
