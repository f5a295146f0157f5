"""
RaffleLab — Derived Raffle Utilities

Closed-form helpers shared by the engine, the CLI and callers that only need
theoretical numbers (no simulation):

    expected_value(prizes)               Σ P(prize) × value
    theoretical_roi(prizes, entry_fee)   (EV − fee) / fee × 100
    fairness_score(prizes)               normalized entropy, 1 = uniform
    assess_risk_level(stats)             low / medium / high
    optimization_score(stats)            0–100 composite

Dashboard helpers:
    smart_scores(stats), generate_insights(result, theoretical_roi),
    generate_action_items(stats, suggestions)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from sim_engine.raffle.models import (
    PRIORITY_ORDER, AdvancedStats, OptimizationSuggestion, Priority, Prize,
    SimulationResult,
)
from sim_engine.raffle.stats import expected_prize_value, fairness_index


class RiskLevel(str, Enum):
    LOW    = "low"
    MEDIUM = "medium"
    HIGH   = "high"


# ═══════════════════════════════════════════════════════════════
# Theoretical Metrics
# ═══════════════════════════════════════════════════════════════

def expected_value(prizes: Sequence[Prize]) -> float:
    return expected_prize_value(prizes)


def theoretical_roi(prizes: Sequence[Prize], entry_fee: float) -> float:
    if entry_fee == 0:
        return 0.0
    return (expected_value(prizes) - entry_fee) / entry_fee * 100


def fairness_score(prizes: Sequence[Prize]) -> float:
    return fairness_index(prizes)


# ═══════════════════════════════════════════════════════════════
# Stats-Derived Scores
# ═══════════════════════════════════════════════════════════════

def assess_risk_level(stats: AdvancedStats) -> RiskLevel:
    dd = abs(stats.max_drawdown)
    if stats.sharpe_ratio > 1 and dd < 100 and stats.tail_risk < 0.1:
        return RiskLevel.LOW
    if stats.sharpe_ratio > 0.5 and dd < 300 and stats.tail_risk < 0.2:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def optimization_score(stats: AdvancedStats) -> float:
    """0–100: ROI (0–30) + fairness (0–25) + drawdown (0–25) + stability (0–20)."""
    roi_score = max(0.0, min(30.0, stats.mean + 10))
    fairness = stats.fairness_index * 25
    risk = max(0.0, 25 - stats.max_drawdown / 10)
    stability = max(0.0, 20 - stats.std_dev)
    return min(100.0, roi_score + fairness + risk + stability)


def smart_scores(stats: AdvancedStats) -> dict:
    """Per-dimension 0–100 scores and their average."""
    profitability = max(0.0, min(100.0, 50 + stats.mean * 2))
    fairness = stats.fairness_index * 100
    stability = max(0.0, 100 - stats.std_dev * 2)
    risk = max(0.0, 100 - abs(stats.max_drawdown) / 10)
    return {
        "overall": (profitability + fairness + stability + risk) / 4,
        "profitability": profitability,
        "fairness": fairness,
        "stability": stability,
        "risk": risk,
    }


# ═══════════════════════════════════════════════════════════════
# Insights & Action Items
# ═══════════════════════════════════════════════════════════════

@dataclass
class Insight:
    kind: str          # positive | warning | info
    title: str
    description: str
    action: str

    def to_dict(self) -> dict:
        return {"kind": self.kind, "title": self.title,
                "description": self.description, "action": self.action}


@dataclass
class ActionItem:
    priority: Priority
    action: str
    impact: str
    implementation: str
    steps: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "priority": self.priority.value,
            "action": self.action,
            "impact": self.impact,
            "implementation": self.implementation,
            "steps": list(self.steps),
        }


MAX_INSIGHTS = 6


def generate_insights(result: SimulationResult, theoretical_roi_pct: float) -> list[Insight]:
    """Plain-language observations on a finished run (at most six)."""
    s = result.final_stats
    out = []

    if result.roi > theoretical_roi_pct + 2:
        out.append(Insight(
            "positive", "Outperforming expectations",
            f"Simulated ROI ({result.roi:.2f}%) is above the theoretical value ({theoretical_roi_pct:.2f}%).",
            "Keep the current setup and focus on attracting more participants.",
        ))
    elif result.roi < theoretical_roi_pct - 5:
        out.append(Insight(
            "warning", "Underperforming the theoretical value",
            f"Simulated ROI is {abs(result.roi - theoretical_roi_pct):.2f}pp below the theoretical value.",
            "Review prize composition or the entry fee.",
        ))

    if s.fairness_index > 0.8:
        out.append(Insight(
            "positive", "High fairness",
            f"Fairness index is {s.fairness_index * 100:.1f}%.",
            "Keep the current even probability distribution.",
        ))
    elif s.fairness_index < 0.6:
        out.append(Insight(
            "warning", "Fairness needs work",
            f"Fairness index is {s.fairness_index * 100:.1f}%.",
            "Spread prize win probabilities more evenly.",
        ))

    if s.sharpe_ratio > 1:
        out.append(Insight(
            "positive", "Strong risk-adjusted return",
            f"Sharpe ratio {s.sharpe_ratio:.3f}.",
            "Keep the current risk profile.",
        ))
    elif s.sharpe_ratio < 0.5:
        out.append(Insight(
            "warning", "Low return for the risk",
            f"Sharpe ratio {s.sharpe_ratio:.3f}.",
            "Reduce variance or raise the expected return.",
        ))

    width = s.credible_interval_95[1] - s.credible_interval_95[0]
    if width < 50:
        out.append(Insight(
            "info", "Stable estimate",
            f"Bayesian 95% credible interval spans {width:.1f}.",
            "The configuration is statistically reliable.",
        ))

    participants = s.participation_prediction.expected_participants
    if participants > 500:
        out.append(Insight(
            "positive", "High expected participation",
            f"About {participants:.0f} participants expected.",
            "Make sure prize inventory can cover demand.",
        ))
    elif participants < 100:
        out.append(Insight(
            "warning", "Low expected participation",
            f"About {participants:.0f} participants expected.",
            "Consider a lower entry fee or more promotion.",
        ))

    return out[:MAX_INSIGHTS]


def _signed(x: float) -> str:
    return f"+{x:g}" if x > 0 else f"{x:g}"


def generate_action_items(stats: AdvancedStats,
                          suggestions: Sequence[OptimizationSuggestion]) -> list[ActionItem]:
    """Critical checks plus one item per suggestion, most urgent first."""
    actions = []

    if stats.mean < -50:
        actions.append(ActionItem(
            Priority.CRITICAL,
            "Review entry fee or prize composition immediately",
            "Current structure carries severe loss risk",
            f"Adjust entry fee to {stats.optimal_entry_fee:.2f}",
        ))

    if stats.fairness_index < 0.5:
        actions.append(ActionItem(
            Priority.HIGH,
            "Improve fairness",
            "Risk of losing participant trust",
            "Redistribute prize win probabilities",
        ))

    for sug in suggestions:
        impl = ", ".join(f"{k}: {v}" for k, v in sug.implementation.items() if v is not None)
        actions.append(ActionItem(
            sug.priority,
            sug.description,
            f"ROI {_signed(sug.roi_change)}%, participation {_signed(sug.participation_change)}%",
            impl or "Needs detailed analysis",
            steps=[f"{k}: {v}" for k, v in sug.implementation.items() if v is not None],
        ))

    return sorted(actions, key=lambda a: PRIORITY_ORDER[a.priority], reverse=True)
