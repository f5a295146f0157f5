"""
RaffleLab — Simulation Controller

Owns the run lifecycle around a RaffleSimulationEngine:

    idle ─▶ running ⇄ paused
              │
              ├─▶ completed   (result populated)
              ├─▶ error       (message in state.error, never raised)
              └─▶ idle        (after stop)

Usage:
    ctl = SimulationController()
    ctl.start_simulation(config, seed=42)     # background thread
    ctl.pause_simulation(); ctl.resume_simulation()
    ctl.wait()
    print(ctl.state.result.summary())

Only one run at a time: a second run_simulation/start_simulation while one is
active raises SimulationBusyError and leaves the active run untouched.
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from sim_engine.raffle.engine import (
    CancellationToken, ProgressCallback, RaffleSimulationEngine,
)
from sim_engine.raffle.models import (
    AdvancedStats, Prize, SimulationConfig, SimulationProgress, SimulationResult,
)
from sim_engine.raffle.stats import compute_advanced_stats

logger = logging.getLogger("rafflelab.controller")

DEFAULT_ERROR_MESSAGE = "An error occurred while running the simulation."


class SimulationBusyError(RuntimeError):
    """A run was requested while another run is still active."""


class SimulationStatus(str, Enum):
    IDLE      = "idle"
    RUNNING   = "running"
    PAUSED    = "paused"
    COMPLETED = "completed"
    ERROR     = "error"


@dataclass
class SimulationState:
    status: SimulationStatus = SimulationStatus.IDLE
    is_running: bool = False
    is_paused: bool = False
    progress: float = 0.0
    current_run: int = 0
    result: Optional[SimulationResult] = None
    error: Optional[str] = None
    progress_data: Optional[SimulationProgress] = None


class SimulationController:
    """Stateful wrapper: one engine per run, state surfaced as snapshots."""

    def __init__(self):
        self._lock = threading.Lock()
        self._state = SimulationState()
        self._token: Optional[CancellationToken] = None
        self._thread: Optional[threading.Thread] = None
        self._stopped_token: Optional[CancellationToken] = None

    @property
    def state(self) -> SimulationState:
        with self._lock:
            return copy.copy(self._state)

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._token is not None

    # ── Run ──────────────────────────────────────────────────

    def _begin(self) -> CancellationToken:
        with self._lock:
            if self._token is not None:
                raise SimulationBusyError("A simulation is already running")
            token = CancellationToken()
            self._token = token
            self._stopped_token = None
            self._state = SimulationState(
                status=SimulationStatus.RUNNING,
                is_running=True,
            )
        return token

    def run_simulation(self, config: SimulationConfig, seed: Optional[int] = None,
                       on_progress: Optional[ProgressCallback] = None) -> SimulationState:
        """Run to completion on the calling thread; returns the final state.

        Engine failures become state.error. Only SimulationBusyError escapes.
        """
        token = self._begin()
        self._execute(config, seed, token, on_progress)
        return self.state

    def start_simulation(self, config: SimulationConfig, seed: Optional[int] = None,
                         on_progress: Optional[ProgressCallback] = None) -> threading.Thread:
        """Like run_simulation but on a daemon thread."""
        token = self._begin()
        thread = threading.Thread(
            target=self._execute, args=(config, seed, token, on_progress),
            name="raffle-simulation", daemon=True,
        )
        with self._lock:
            self._thread = thread
        thread.start()
        return thread

    def _execute(self, config: SimulationConfig, seed: Optional[int],
                 token: CancellationToken, on_progress: Optional[ProgressCallback]):

        def _progress(p: SimulationProgress):
            with self._lock:
                if self._token is token:
                    self._state.progress = p.progress
                    self._state.current_run = p.current_run
                    self._state.progress_data = p
            if on_progress is not None:
                on_progress(p)

        try:
            engine = RaffleSimulationEngine(config, seed=seed)
            result = engine.run(on_progress=_progress, token=token)
        except Exception as e:
            logger.error(f"Raffle simulation failed: {e}", exc_info=True)
            with self._lock:
                if self._token is token:
                    self._state.status = SimulationStatus.ERROR
                    self._state.is_running = False
                    self._state.is_paused = False
                    self._state.error = str(e) or DEFAULT_ERROR_MESSAGE
                    self._release()
            return

        with self._lock:
            if self._stopped_token is token and self._token is None:
                # Stopped run unwound: expose the partial result, stay idle.
                self._state.result = result
                self._stopped_token = None
            elif self._token is token and not token.stopped:
                self._state.status = SimulationStatus.COMPLETED
                self._state.is_running = False
                self._state.is_paused = False
                self._state.progress = 100.0
                self._state.result = result
                self._state.error = None
                self._release()

    def _release(self):
        self._token = None

    # ── Controls ─────────────────────────────────────────────

    def pause_simulation(self):
        with self._lock:
            if self._token is None:
                return
            self._token.pause()
            self._state.is_paused = True
            self._state.status = SimulationStatus.PAUSED

    def resume_simulation(self):
        with self._lock:
            if self._token is None:
                return
            self._token.resume()
            self._state.is_paused = False
            self._state.status = SimulationStatus.RUNNING

    def stop_simulation(self):
        """Signal the run to stop and reset to idle without waiting for it."""
        with self._lock:
            if self._token is not None:
                self._token.stop()
                self._stopped_token = self._token
            self._release()
            self._state.status = SimulationStatus.IDLE
            self._state.is_running = False
            self._state.is_paused = False
            self._state.progress = 0.0
            self._state.current_run = 0
            self._state.error = None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join the background run. True if it has finished."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    # ── Stats only ───────────────────────────────────────────

    def calculate_stats(self, profit_loss_history: Sequence[float],
                        prizes: Sequence[Prize] = (),
                        entry_fee: float = 0.0) -> Optional[AdvancedStats]:
        """AdvancedStats for an existing P/L sequence, or None on failure."""
        try:
            return compute_advanced_stats(profit_loss_history, prizes, entry_fee)
        except Exception as e:
            logger.error(f"Stats calculation failed: {e}")
            return None
