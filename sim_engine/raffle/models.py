"""
RaffleLab — Raffle Simulation Data Model

Input side (caller-owned, read-only to the engine) is Pydantic so configs can
be validated and round-tripped to the JSON files the admin tools save:
    Prize, OptimizationGoals, SimulationConfig

Output side is plain dataclasses, entirely derived by the engine:
    AdvancedStats, PrizeAdjustment, ParticipationPrediction,
    OptimizationSuggestion, SimulationProgress, SimulationResult
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# ═══════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════

class PrizeType(IntEnum):
    EMPTY = 0
    ASSET = 1
    NFT   = 2
    TOKEN = 3


class RiskTolerance(str, Enum):
    CONSERVATIVE = "conservative"
    MODERATE     = "moderate"
    AGGRESSIVE   = "aggressive"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH     = "high"
    MEDIUM   = "medium"
    LOW      = "low"


class SuggestionType(str, Enum):
    ENTRY_FEE      = "entry_fee"
    PRIZE_QUANTITY = "prize_quantity"
    PRIZE_VALUE    = "prize_value"
    NEW_PRIZE      = "new_prize"
    REMOVE_PRIZE   = "remove_prize"


PRIORITY_ORDER = {
    Priority.CRITICAL: 4,
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}


# ═══════════════════════════════════════════════════════════════
# Input Models
# ═══════════════════════════════════════════════════════════════

class _FrozenModel(BaseModel):
    # camelCase aliases match the JSON written by the admin simulation suite
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class Prize(_FrozenModel):
    """One configured prize slot. `quantity` is its ticket weight."""
    id: str
    title: str = ""
    quantity: int = Field(0, ge=0)
    user_value: float = Field(0.0, ge=0.0)
    prize_type: PrizeType = PrizeType.ASSET


class OptimizationGoals(_FrozenModel):
    """Tuning hints for tools.raffle_optimizer. The engine ignores them."""
    target_roi: Optional[float] = Field(None, gt=-100.0)   # percent
    target_win_rate: Optional[float] = None     # percent
    risk_tolerance: RiskTolerance = RiskTolerance.MODERATE
    fairness_weight: float = Field(0.6, ge=0.0, le=1.0)
    profitability_weight: float = Field(0.4, ge=0.0, le=1.0)


class SimulationConfig(_FrozenModel):
    """Input to a simulation run."""
    total_runs: int = Field(10000, gt=0)
    entry_fee: float = Field(100.0, ge=0.0)
    prizes: tuple[Prize, ...] = Field(default_factory=tuple)
    batch_size: int = Field(1000, gt=0)
    optimization_goals: Optional[OptimizationGoals] = None

    @field_validator("prizes")
    @classmethod
    def _unique_prize_ids(cls, prizes: tuple[Prize, ...]) -> tuple[Prize, ...]:
        seen = set()
        for p in prizes:
            if p.id in seen:
                raise ValueError(f"Duplicate prize id: {p.id}")
            seen.add(p.id)
        return prizes

    @property
    def total_tickets(self) -> int:
        return sum(p.quantity for p in self.prizes)


# ═══════════════════════════════════════════════════════════════
# Output Structures
# ═══════════════════════════════════════════════════════════════

def _r(x: Optional[float], nd: int = 6):
    """Round for JSON output; keeps None and non-finite values JSON-safe."""
    if x is None:
        return None
    if isinstance(x, float) and not math.isfinite(x):
        return None
    return round(x, nd)


@dataclass
class PrizeAdjustment:
    prize_id: str
    current_quantity: int
    recommended_quantity: int
    reason: str
    impact: float = 0.0

    def to_dict(self) -> dict:
        return {
            "prize_id": self.prize_id,
            "current_quantity": self.current_quantity,
            "recommended_quantity": self.recommended_quantity,
            "reason": self.reason,
            "impact": self.impact,
        }


@dataclass
class ParticipationPrediction:
    expected_participants: float = 0.0
    confidence_interval: tuple = (0.0, 0.0)
    factors_influence: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "expected_participants": _r(self.expected_participants, 2),
            "confidence_interval": list(self.confidence_interval),
            "factors_influence": dict(self.factors_influence),
        }


@dataclass
class AdvancedStats:
    """Statistics snapshot over a profit/loss sample."""
    mean: float = 0.0
    median: float = 0.0
    mode: float = 0.0
    std_dev: float = 0.0
    variance: float = 0.0
    skewness: float = 0.0
    kurtosis: float = 0.0
    sharpe_ratio: float = 0.0
    sortino_ratio: Optional[float] = 0.0     # None = undefined (no downside)
    calmar_ratio: float = 0.0
    max_drawdown: float = 0.0
    value_at_risk_95: float = 0.0
    conditional_var_95: float = 0.0
    bayesian_confidence_interval: tuple = (0.0, 0.0)
    posterior_mean: float = 0.0
    credible_interval_95: tuple = (0.0, 0.0)
    tail_risk: float = 0.0
    expected_shortfall: float = 0.0
    risk_parity_score: float = 0.0
    fairness_index: float = 1.0
    gini_coefficient: float = 0.0
    entropy_score: float = 0.0
    kelly_bet_size: float = 0.0
    optimal_entry_fee: float = 0.0
    recommended_prize_adjustments: list[PrizeAdjustment] = field(default_factory=list)
    participation_prediction: ParticipationPrediction = field(default_factory=ParticipationPrediction)

    def to_dict(self) -> dict:
        return {
            "mean": _r(self.mean),
            "median": _r(self.median),
            "mode": _r(self.mode),
            "std_dev": _r(self.std_dev),
            "variance": _r(self.variance),
            "skewness": _r(self.skewness),
            "kurtosis": _r(self.kurtosis),
            "sharpe_ratio": _r(self.sharpe_ratio),
            "sortino_ratio": _r(self.sortino_ratio),
            "calmar_ratio": _r(self.calmar_ratio),
            "max_drawdown": _r(self.max_drawdown),
            "value_at_risk_95": _r(self.value_at_risk_95),
            "conditional_var_95": _r(self.conditional_var_95),
            "bayesian_confidence_interval": [_r(x) for x in self.bayesian_confidence_interval],
            "posterior_mean": _r(self.posterior_mean),
            "credible_interval_95": [_r(x) for x in self.credible_interval_95],
            "tail_risk": _r(self.tail_risk),
            "expected_shortfall": _r(self.expected_shortfall),
            "risk_parity_score": _r(self.risk_parity_score),
            "fairness_index": _r(self.fairness_index),
            "gini_coefficient": _r(self.gini_coefficient),
            "entropy_score": _r(self.entropy_score),
            "kelly_bet_size": _r(self.kelly_bet_size),
            "optimal_entry_fee": _r(self.optimal_entry_fee, 4),
            "recommended_prize_adjustments": [a.to_dict() for a in self.recommended_prize_adjustments],
            "participation_prediction": self.participation_prediction.to_dict(),
        }


@dataclass
class OptimizationSuggestion:
    type: SuggestionType
    priority: Priority
    description: str
    roi_change: float = 0.0
    win_rate_change: float = 0.0
    fairness_change: float = 0.0
    participation_change: float = 0.0
    implementation: dict = field(default_factory=dict)   # prize_id/new_value/new_quantity/new_entry_fee
    confidence: float = 0.0

    @property
    def expected_impact(self) -> dict:
        return {
            "roi_change": self.roi_change,
            "win_rate_change": self.win_rate_change,
            "fairness_change": self.fairness_change,
            "participation_change": self.participation_change,
        }

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "priority": self.priority.value,
            "description": self.description,
            "expected_impact": self.expected_impact,
            "implementation": {k: v for k, v in self.implementation.items() if v is not None},
            "confidence": self.confidence,
        }


@dataclass
class SimulationProgress:
    """Reported to the progress callback after every batch."""
    progress: float
    current_run: int
    current_stats: AdvancedStats
    running_average: float


@dataclass
class SimulationResult:
    """Terminal output of a simulation run (complete or stopped early)."""
    total_runs: int
    prize_wins: dict
    total_value: float
    total_cost: float
    roi: float
    win_rate: float
    distribution: dict
    profit_loss_history: list[float] = field(default_factory=list)
    cumulative_returns: list[float] = field(default_factory=list)
    running_stats: list[AdvancedStats] = field(default_factory=list)
    final_stats: AdvancedStats = field(default_factory=AdvancedStats)
    optimization_suggestions: list[OptimizationSuggestion] = field(default_factory=list)
    stopped_early: bool = False
    seed: Optional[int] = None

    def summary(self) -> str:
        s = self.final_stats
        sortino = "undefined" if s.sortino_ratio is None else f"{s.sortino_ratio:.4f}"
        lines = [
            f"═══ Raffle Simulation ({'stopped early' if self.stopped_early else 'complete'}) ═══",
            f"  Trials:      {self.total_runs:,}",
            f"  Total Cost:  {self.total_cost:,.2f}",
            f"  Total Value: {self.total_value:,.2f}",
            f"  ROI:         {self.roi:.2f}%",
            f"  Win Rate:    {self.win_rate:.2f}%",
            f"  Mean P/L:    {s.mean:.4f}  (σ={s.std_dev:.4f})",
            f"  Sharpe:      {s.sharpe_ratio:.4f}   Sortino: {sortino}",
            f"  VaR95:       {s.value_at_risk_95:.2f}   CVaR95: {s.conditional_var_95:.2f}",
            f"  Max DD:      {s.max_drawdown:.2f}",
            f"  Fairness:    {s.fairness_index:.4f}   Gini: {s.gini_coefficient:.4f}",
        ]
        for sug in self.optimization_suggestions:
            lines.append(f"  [{sug.priority.value}] {sug.description}")
        return "\n".join(lines)

    def to_dict(self, include_history: bool = True) -> dict:
        data = {
            "total_runs": self.total_runs,
            "prize_wins": dict(self.prize_wins),
            "total_value": _r(self.total_value, 4),
            "total_cost": _r(self.total_cost, 4),
            "roi": _r(self.roi, 4),
            "win_rate": _r(self.win_rate, 4),
            "distribution": {k: _r(v, 4) for k, v in self.distribution.items()},
            "running_stats": [s.to_dict() for s in self.running_stats],
            "final_stats": self.final_stats.to_dict(),
            "optimization_suggestions": [s.to_dict() for s in self.optimization_suggestions],
            "stopped_early": self.stopped_early,
            "seed": self.seed,
        }
        if include_history:
            data["profit_loss_history"] = list(self.profit_loss_history)
            data["cumulative_returns"] = list(self.cumulative_returns)
        return data
