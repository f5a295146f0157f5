"""
RaffleLab — Raffle Monte Carlo Simulation Engine

Ticket-weighted raffle draws simulated in batches, with a full risk/fairness
statistics snapshot after every batch.

Usage:
    from sim_engine.raffle import SimulationConfig, Prize, get_simulation_engine
    config = SimulationConfig(
        total_runs=10_000, entry_fee=10,
        prizes=[Prize(id="a", quantity=1, user_value=1000),
                Prize(id="b", quantity=99, user_value=0)],
    )
    result = get_simulation_engine(config, seed=42).run()
"""

from typing import Optional

from sim_engine.raffle.controller import (
    SimulationBusyError, SimulationController, SimulationState, SimulationStatus,
)
from sim_engine.raffle.engine import (
    CancellationToken, RaffleSimulationEngine, generate_optimization_suggestions,
)
from sim_engine.raffle.models import (
    AdvancedStats, OptimizationGoals, OptimizationSuggestion, Prize, PrizeType,
    RiskTolerance, SimulationConfig, SimulationProgress, SimulationResult,
)
from sim_engine.raffle.stats import compute_advanced_stats


def get_simulation_engine(config: SimulationConfig,
                          seed: Optional[int] = None) -> RaffleSimulationEngine:
    """Fresh engine for one run."""
    return RaffleSimulationEngine(config, seed=seed)


__all__ = [
    "AdvancedStats", "CancellationToken", "OptimizationGoals",
    "OptimizationSuggestion", "Prize", "PrizeType", "RaffleSimulationEngine",
    "RiskTolerance", "SimulationBusyError", "SimulationConfig",
    "SimulationController", "SimulationProgress", "SimulationResult",
    "SimulationState", "SimulationStatus", "compute_advanced_stats",
    "generate_optimization_suggestions", "get_simulation_engine",
]
