"""
RaffleLab — Raffle Monte Carlo Engine

Runs `total_runs` independent ticket draws in batches:
  • per-trial P/L = -entry_fee + value of the prize won (if any)
  • after each batch: full AdvancedStats recompute, progress callback,
    running_stats snapshot every SNAPSHOT_INTERVAL trials, then yield
  • stop / pause are honoured only at batch boundaries

Usage:
    from sim_engine.raffle import RaffleSimulationEngine, SimulationConfig
    engine = RaffleSimulationEngine(config, seed=42)
    result = engine.run(on_progress=lambda p: print(p.progress))
    print(result.summary())

One engine per run; discard it afterwards.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable, Optional

from config.settings import SimulationSettings
from sim_engine.raffle.models import (
    PRIORITY_ORDER, AdvancedStats, OptimizationSuggestion, Priority,
    SimulationConfig, SimulationProgress, SimulationResult, SuggestionType,
)
from sim_engine.raffle.rng import RandomSource, make_random_source
from sim_engine.raffle.sampler import DrawSampler
from sim_engine.raffle.stats import compute_advanced_stats

logger = logging.getLogger("rafflelab.engine")

ProgressCallback = Callable[[SimulationProgress], None]


# ═══════════════════════════════════════════════════════════════
# Cancellation
# ═══════════════════════════════════════════════════════════════

class CancellationToken:
    """Stop / pause signals shared between a run and its controller.

    Safe to signal from any thread; the run only looks at it between batches.
    """

    def __init__(self):
        self._stop = threading.Event()
        self._resume = threading.Event()
        self._resume.set()

    def stop(self):
        self._stop.set()
        self._resume.set()  # wake a paused run so it can exit

    def pause(self):
        if not self._stop.is_set():
            self._resume.clear()

    def resume(self):
        self._resume.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    @property
    def paused(self) -> bool:
        return not self._resume.is_set()

    def wait_while_paused(self, poll_seconds: float):
        """Block until resumed or stopped, re-checking every poll_seconds."""
        while self.paused and not self.stopped:
            self._resume.wait(poll_seconds)


# ═══════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════

class RaffleSimulationEngine:
    """Batch-wise Monte Carlo simulation of one raffle configuration."""

    def __init__(self, config: SimulationConfig, seed: Optional[int] = None,
                 rng: Optional[RandomSource] = None,
                 snapshot_interval: Optional[int] = None):
        self.config = config
        self.seed = seed
        self.rng = rng if rng is not None else make_random_source(seed)
        self.sampler = DrawSampler(config.prizes, self.rng)
        self.snapshot_interval = snapshot_interval or SimulationSettings.SNAPSHOT_INTERVAL

    def calculate_advanced_stats(self, profit_loss_history: list[float]) -> AdvancedStats:
        return compute_advanced_stats(
            profit_loss_history, self.config.prizes, self.config.entry_fee)

    def run(self, on_progress: Optional[ProgressCallback] = None,
            token: Optional[CancellationToken] = None) -> SimulationResult:
        """Run the simulation to completion or until the token is stopped."""
        token = token or CancellationToken()
        cfg = self.config
        total_runs = cfg.total_runs
        entry_fee = cfg.entry_fee
        batch_size = SimulationSettings.effective_batch_size(cfg.batch_size)
        n_batches = math.ceil(total_runs / batch_size)

        prize_wins = {p.id: 0 for p in cfg.prizes}
        profit_loss_history: list[float] = []
        cumulative_returns: list[float] = []
        running_stats: list[AdvancedStats] = []

        total_value = 0.0
        total_cost = 0.0
        cumulative = 0.0

        logger.info(
            f"Raffle simulation starting: runs={total_runs:,} batch={batch_size} "
            f"prizes={len(cfg.prizes)} tickets={self.sampler.total_tickets} seed={self.seed}"
        )
        t0 = time.time()

        for batch in range(n_batches):
            if token.stopped:
                break
            token.wait_while_paused(SimulationSettings.PAUSE_POLL_SECONDS)
            if token.stopped:
                break

            batch_start = batch * batch_size
            batch_end = min(batch_start + batch_size, total_runs)

            for _ in range(batch_start, batch_end):
                won = self.sampler.draw()
                profit = -entry_fee
                if won is not None:
                    prize_wins[won.id] += 1
                    total_value += won.user_value
                    profit += won.user_value

                total_cost += entry_fee
                cumulative += profit
                profit_loss_history.append(profit)
                cumulative_returns.append(cumulative)

            current_stats = self.calculate_advanced_stats(profit_loss_history)
            if on_progress is not None:
                on_progress(SimulationProgress(
                    progress=batch_end / total_runs * 100,
                    current_run=batch_end,
                    current_stats=current_stats,
                    running_average=cumulative / batch_end,
                ))

            if batch_end % self.snapshot_interval == 0:
                running_stats.append(current_stats)

            logger.debug(f"Batch {batch + 1}/{n_batches} done ({batch_end:,} trials)")
            time.sleep(0)

        completed = len(profit_loss_history)
        stopped_early = completed < total_runs

        final_stats = self.calculate_advanced_stats(profit_loss_history)
        suggestions = generate_optimization_suggestions(final_stats)

        roi = (total_value - total_cost) / total_cost * 100 if total_cost > 0 else 0.0
        wins = sum(prize_wins.values())
        win_rate = wins / completed * 100 if completed else 0.0
        distribution = {
            pid: (count / completed * 100 if completed else 0.0)
            for pid, count in prize_wins.items()
        }

        logger.info(
            f"Raffle simulation {'stopped' if stopped_early else 'complete'}: "
            f"{completed:,}/{total_runs:,} trials in {time.time() - t0:.2f}s "
            f"roi={roi:.2f}% win_rate={win_rate:.2f}%"
        )

        return SimulationResult(
            total_runs=completed,
            prize_wins=prize_wins,
            total_value=total_value,
            total_cost=total_cost,
            roi=roi,
            win_rate=win_rate,
            distribution=distribution,
            profit_loss_history=profit_loss_history,
            cumulative_returns=cumulative_returns,
            running_stats=running_stats,
            final_stats=final_stats,
            optimization_suggestions=suggestions,
            stopped_early=stopped_early,
            seed=self.seed,
        )


# ═══════════════════════════════════════════════════════════════
# Optimization Suggestions
# ═══════════════════════════════════════════════════════════════

def generate_optimization_suggestions(stats: AdvancedStats) -> list[OptimizationSuggestion]:
    """Rule-based suggestions, highest priority first (stable within a priority)."""
    suggestions = []

    if stats.mean < 0:
        suggestions.append(OptimizationSuggestion(
            type=SuggestionType.ENTRY_FEE,
            priority=Priority.HIGH,
            description=f"Adjust entry fee to {stats.optimal_entry_fee:.2f} to improve profitability",
            roi_change=15,
            participation_change=10,
            implementation={"new_entry_fee": stats.optimal_entry_fee},
            confidence=0.85,
        ))

    if stats.fairness_index < 0.7:
        suggestions.append(OptimizationSuggestion(
            type=SuggestionType.PRIZE_QUANTITY,
            priority=Priority.MEDIUM,
            description="Distribute prize win probabilities more evenly to improve fairness",
            roi_change=-2,
            win_rate_change=5,
            fairness_change=20,
            participation_change=8,
            confidence=0.75,
        ))

    if stats.sharpe_ratio < 0.5:
        suggestions.append(OptimizationSuggestion(
            type=SuggestionType.PRIZE_VALUE,
            priority=Priority.MEDIUM,
            description="Low return for the risk taken - review prize value composition",
            roi_change=8,
            win_rate_change=3,
            participation_change=5,
            confidence=0.7,
        ))

    return sorted(suggestions, key=lambda s: PRIORITY_ORDER[s.priority], reverse=True)
