"""
RaffleLab — Advanced Statistics Library

Pure functions over a profit/loss sample and/or a prize configuration.

Sample metrics:
  • Moments: mean, median, mode, variance (population), skewness, excess kurtosis
  • Bayesian: conjugate-normal posterior + 95% credible interval
  • Risk: Sharpe, Sortino, Calmar, max drawdown, VaR95 / CVaR95, tail risk
  • Kelly fraction from win probability and average win / loss

Prize-configuration metrics:
  • Gini coefficient of prize values
  • Shannon entropy of win probabilities → fairness index
  • Expected prize value → optimal entry fee
  • Quantity recommendations and participation demand curve

Usage:
    from sim_engine.raffle.stats import compute_advanced_stats
    stats = compute_advanced_stats(history, config.prizes, config.entry_fee)
    print(stats.sharpe_ratio, stats.fairness_index)

compute_advanced_stats() is a full recomputation over the whole sample; the
engine calls it once per batch.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from config.settings import PolicyConstants as P
from sim_engine.raffle.models import (
    AdvancedStats, ParticipationPrediction, Prize, PrizeAdjustment,
)


# ═══════════════════════════════════════════════════════════════
# Moments
# ═══════════════════════════════════════════════════════════════

_CENT = Decimal("0.01")


def _mean(data: Sequence[float]) -> float:
    return sum(data) / len(data)


def _population_std(data: Sequence[float], mean: float) -> float:
    return math.sqrt(sum((x - mean) ** 2 for x in data) / len(data))


def skewness(data: Sequence[float]) -> float:
    """Third standardized moment. NaN when the sample has no spread."""
    n = len(data)
    if n == 0:
        return float("nan")
    mean = _mean(data)
    std = _population_std(data, mean)
    if std == 0:
        return float("nan")
    return sum(((x - mean) / std) ** 3 for x in data) / n


def kurtosis(data: Sequence[float]) -> float:
    """Excess kurtosis (fourth standardized moment − 3). NaN when std is 0."""
    n = len(data)
    if n == 0:
        return float("nan")
    mean = _mean(data)
    std = _population_std(data, mean)
    if std == 0:
        return float("nan")
    return sum(((x - mean) / std) ** 4 for x in data) / n - 3


def _round_cents(x: float):
    # Half-up on the exact binary value: 0.125 → 0.13, -0.125 → -0.13
    if not math.isfinite(x):
        return x
    return Decimal(x).quantize(_CENT, rounding=ROUND_HALF_UP)


def mode(data: Sequence[float]) -> float:
    """Most frequent value at 2-decimal resolution. Later values win ties."""
    counts: dict[float, int] = {}
    for x in data:
        counts[x] = counts.get(x, 0) + 1
    frequency: dict = {}
    for x, count in counts.items():
        key = _round_cents(x)
        frequency[key] = frequency.get(key, 0) + count
    best_key, best_count = None, -1
    for key, count in frequency.items():
        if count >= best_count:
            best_key, best_count = key, count
    return float(best_key) if best_key is not None else 0.0


def median(sorted_data: Sequence[float]) -> float:
    n = len(sorted_data)
    if n == 0:
        return 0.0
    if n % 2 == 0:
        return (sorted_data[n // 2 - 1] + sorted_data[n // 2]) / 2
    return sorted_data[n // 2]


# ═══════════════════════════════════════════════════════════════
# Bayesian
# ═══════════════════════════════════════════════════════════════

@dataclass
class BayesianPosterior:
    posterior_mean: float
    posterior_variance: float
    credible_interval: tuple


def bayesian_stats(data: Sequence[float],
                   prior_mean: float = P.BAYES_PRIOR_MEAN,
                   prior_variance: float = P.BAYES_PRIOR_VARIANCE) -> BayesianPosterior:
    """Conjugate-normal update with the sample variance treated as known.

    posterior_var  = 1 / (1/prior_var + n/sample_var)
    posterior_mean = posterior_var * (prior_mean/prior_var + n*sample_mean/sample_var)
    interval       = posterior_mean ± 1.96 * sqrt(posterior_var)

    With n < 2 or a zero sample variance the likelihood precision is infinite,
    so the posterior collapses onto the sample mean with zero variance.
    """
    n = len(data)
    if n == 0:
        return BayesianPosterior(prior_mean, prior_variance,
                                 _interval(prior_mean, prior_variance))

    sample_mean = _mean(data)
    sample_variance = (
        sum((x - sample_mean) ** 2 for x in data) / (n - 1) if n > 1 else 0.0
    )
    if sample_variance == 0:
        return BayesianPosterior(sample_mean, 0.0, (sample_mean, sample_mean))

    posterior_variance = 1 / (1 / prior_variance + n / sample_variance)
    posterior_mean = posterior_variance * (
        prior_mean / prior_variance + n * sample_mean / sample_variance
    )
    return BayesianPosterior(posterior_mean, posterior_variance,
                             _interval(posterior_mean, posterior_variance))


def _interval(mean: float, variance: float) -> tuple:
    half = P.CREDIBLE_Z * math.sqrt(variance)
    return (mean - half, mean + half)


# ═══════════════════════════════════════════════════════════════
# Inequality / Information
# ═══════════════════════════════════════════════════════════════

def gini_coefficient(values: Sequence[float]) -> float:
    """Mean absolute pairwise difference / (2 n² mean).

    O(n²) — meant for the prize list, never the trial history.
    """
    n = len(values)
    if n == 0:
        return 0.0
    ordered = sorted(values)
    mean = sum(ordered) / n
    if mean == 0:
        return 0.0
    numerator = 0.0
    for a in ordered:
        for b in ordered:
            numerator += abs(a - b)
    return numerator / (2 * n * n * mean)


def entropy(probabilities: Sequence[float]) -> float:
    """Shannon entropy in bits; zero-probability terms are skipped."""
    return -sum(p * math.log2(p) for p in probabilities if p > 0)


# ═══════════════════════════════════════════════════════════════
# Risk Ratios
# ═══════════════════════════════════════════════════════════════

def sortino_ratio(returns: Sequence[float], target_return: float = 0.0) -> Optional[float]:
    """Mean excess return over downside deviation.

    Returns None when nothing fell below the target (ratio undefined).
    """
    if not returns:
        return None
    mean = _mean(returns)
    downside = [r for r in returns if r < target_return]
    if not downside:
        return None
    downside_dev = math.sqrt(sum((r - target_return) ** 2 for r in downside) / len(downside))
    return (mean - target_return) / downside_dev


def max_drawdown(data: Sequence[float]) -> float:
    """Largest peak-to-trough fall of the cumulative P/L path.

    The peak is seeded with the first trial's P/L, not with zero.
    """
    if not data:
        return 0.0
    worst = 0.0
    peak = data[0]
    cumulative = 0.0
    for value in data:
        cumulative += value
        if cumulative > peak:
            peak = cumulative
        drawdown = peak - cumulative
        if drawdown > worst:
            worst = drawdown
    return worst


def kelly_fraction(data: Sequence[float]) -> float:
    """(p·avgWin − (1−p)·avgLoss) / avgWin, clamped at 0."""
    n = len(data)
    if n == 0:
        return 0.0
    wins = [x for x in data if x > 0]
    losses = [x for x in data if x <= 0]
    p = len(wins) / n
    avg_win = sum(wins) / max(1, len(wins))
    avg_loss = abs(sum(losses) / max(1, len(losses)))
    if avg_loss <= 0 or avg_win <= 0:
        return 0.0
    return max(0.0, (p * avg_win - (1 - p) * avg_loss) / avg_win)


# ═══════════════════════════════════════════════════════════════
# Prize-Configuration Metrics
# ═══════════════════════════════════════════════════════════════

def prize_probabilities(prizes: Sequence[Prize]) -> list[float]:
    total = sum(p.quantity for p in prizes)
    if total == 0:
        return [0.0 for _ in prizes]
    return [p.quantity / total for p in prizes]


def expected_prize_value(prizes: Sequence[Prize]) -> float:
    """Σ P(prize) × user_value. Zero for an empty ticket pool."""
    return sum(prob * p.user_value
               for prob, p in zip(prize_probabilities(prizes), prizes))


def fairness_index(prizes: Sequence[Prize]) -> float:
    """Entropy of win probabilities normalized by log2(#prizes), in [0, 1]."""
    if sum(p.quantity for p in prizes) == 0:
        return 1.0
    max_entropy = math.log2(len(prizes)) if prizes else 0.0
    if max_entropy <= 0:
        return 1.0
    return min(1.0, entropy(prize_probabilities(prizes)) / max_entropy)


def recommend_prize_adjustments(prizes: Sequence[Prize],
                                entry_fee: float) -> list[PrizeAdjustment]:
    """Per-prize quantity recommendation from value ratio and win probability.

    High value and easy to win → shrink 30% (floor, min 1).
    Low value and hard to win  → grow 30% (floor). Applied second, so it wins
    when both rules match.
    """
    total = sum(p.quantity for p in prizes)
    out = []
    for prize in prizes:
        recommended = prize.quantity
        reason = "Current setting is appropriate"
        impact = 0.0

        if total > 0:
            prob = prize.quantity / total
            ratio = _value_ratio(prize.user_value, entry_fee)

            if ratio > P.HIGH_VALUE_RATIO and prob > P.HIGH_VALUE_MIN_PROB:
                recommended = max(1, math.floor(prize.quantity * P.SCARCITY_FACTOR))
                reason = "Increase scarcity of high-value prize to boost participation"
                impact = P.SCARCITY_IMPACT

            if ratio < P.LOW_VALUE_RATIO and prob < P.LOW_VALUE_MAX_PROB:
                recommended = math.floor(prize.quantity * P.ABUNDANCE_FACTOR)
                reason = "Raise win rate of low-value prize to improve satisfaction"
                impact = P.ABUNDANCE_IMPACT

        out.append(PrizeAdjustment(
            prize_id=prize.id,
            current_quantity=prize.quantity,
            recommended_quantity=recommended,
            reason=reason,
            impact=impact,
        ))
    return out


def _value_ratio(user_value: float, entry_fee: float) -> float:
    if entry_fee > 0:
        return user_value / entry_fee
    return math.inf if user_value > 0 else 0.0


def predict_participation(entry_fee: float) -> ParticipationPrediction:
    """Constant-elasticity demand: BASE · (fee / REF)^elasticity.

    Heuristic parameters, not fitted. A zero fee has no finite prediction and
    reports 0.
    """
    if entry_fee > 0:
        expected = max(0.0, P.BASE_DEMAND * (entry_fee / P.REFERENCE_FEE) ** P.PRICE_ELASTICITY)
    else:
        expected = 0.0
    return ParticipationPrediction(
        expected_participants=expected,
        confidence_interval=(0.0, 0.0),
        factors_influence=dict(P.FACTORS_INFLUENCE),
    )


# ═══════════════════════════════════════════════════════════════
# Full Snapshot
# ═══════════════════════════════════════════════════════════════

def empty_stats() -> AdvancedStats:
    return AdvancedStats(
        participation_prediction=ParticipationPrediction(factors_influence={}),
    )


def _finite_or_zero(x: float) -> float:
    return x if math.isfinite(x) else 0.0


def compute_advanced_stats(history: Sequence[float],
                           prizes: Sequence[Prize] = (),
                           entry_fee: float = 0.0) -> AdvancedStats:
    """Stats-only entry point: AdvancedStats from a raw P/L sequence."""
    data = list(history)
    n = len(data)
    if n == 0:
        return empty_stats()

    ordered = sorted(data)
    mean = sum(data) / n
    variance = sum((x - mean) ** 2 for x in data) / n
    std_dev = math.sqrt(variance)

    bayes = bayesian_stats(data)

    tail_n = math.floor(n * P.VAR_CONFIDENCE_TAIL)
    var95 = ordered[tail_n]
    cvar95 = sum(ordered[:tail_n]) / max(1, tail_n)

    drawdown = max_drawdown(data)
    risk_parity = 1 - min(1.0, std_dev / abs(mean)) if mean != 0 else 0.0

    ev = expected_prize_value(prizes)

    return AdvancedStats(
        mean=mean,
        median=median(ordered),
        mode=mode(data),
        std_dev=std_dev,
        variance=variance,
        skewness=_finite_or_zero(skewness(data)),
        kurtosis=_finite_or_zero(kurtosis(data)),
        sharpe_ratio=mean / std_dev if std_dev > 0 else 0.0,
        sortino_ratio=sortino_ratio(data),
        calmar_ratio=mean / drawdown if drawdown > 0 else 0.0,
        max_drawdown=drawdown,
        value_at_risk_95=var95,
        conditional_var_95=cvar95,
        bayesian_confidence_interval=bayes.credible_interval,
        posterior_mean=bayes.posterior_mean,
        credible_interval_95=bayes.credible_interval,
        tail_risk=sum(1 for x in data if x < var95) / n,
        expected_shortfall=cvar95,
        risk_parity_score=risk_parity,
        fairness_index=fairness_index(prizes),
        gini_coefficient=gini_coefficient([p.user_value for p in prizes]),
        entropy_score=entropy(prize_probabilities(prizes)),
        kelly_bet_size=kelly_fraction(data),
        optimal_entry_fee=ev * P.OPTIMAL_FEE_MULTIPLIER,
        recommended_prize_adjustments=recommend_prize_adjustments(prizes, entry_fee),
        participation_prediction=predict_participation(entry_fee),
    )
