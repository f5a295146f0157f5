"""
RaffleLab - Simulation Configuration & Policy Constants

Runtime knobs are read from the environment (or a local .env file).
Policy constants are product heuristics used by the simulation engine:
  - prize recommendation thresholds (value ratio / win probability)
  - optimal entry fee multiplier
  - constant-elasticity participation demand curve
None of the policy numbers are fitted against real raffle data; they are kept
here so they can be tuned in one place.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent.parent
OUTPUT_DIR = Path(os.getenv("OUTPUT_DIR", "./output"))


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


# ============================================================
# RUNTIME SETTINGS
#
#   MAX_BATCH_SIZE     → hard cap on trials per batch (progress + cancel granularity)
#   SNAPSHOT_INTERVAL  → running_stats snapshot every N completed trials
#   PAUSE_POLL_SECONDS → sleep between pause-flag checks
# ============================================================

class SimulationSettings:

    MAX_BATCH_SIZE = _env_int("RAFFLE_MAX_BATCH_SIZE", 1000)
    SNAPSHOT_INTERVAL = _env_int("RAFFLE_SNAPSHOT_INTERVAL", 5000)
    PAUSE_POLL_SECONDS = _env_float("RAFFLE_PAUSE_POLL_SECONDS", 0.1)

    DEFAULT_RUNS = _env_int("RAFFLE_DEFAULT_RUNS", 10000)
    DEFAULT_ENTRY_FEE = _env_float("RAFFLE_DEFAULT_ENTRY_FEE", 100.0)
    DEFAULT_BATCH_SIZE = _env_int("RAFFLE_DEFAULT_BATCH_SIZE", 1000)

    @classmethod
    def effective_batch_size(cls, batch_size: int) -> int:
        """Batch size actually used by the engine."""
        return max(1, min(batch_size or cls.DEFAULT_BATCH_SIZE, cls.MAX_BATCH_SIZE))


# ============================================================
# POLICY CONSTANTS
# ============================================================

class PolicyConstants:

    # --- Prize quantity recommendations ---
    HIGH_VALUE_RATIO = 10.0          # value / entry fee above this = "high value"
    HIGH_VALUE_MIN_PROB = 0.1        # ...and already easy to win
    SCARCITY_FACTOR = 0.7            # reduce quantity by 30%
    SCARCITY_IMPACT = 0.15

    LOW_VALUE_RATIO = 2.0
    LOW_VALUE_MAX_PROB = 0.3
    ABUNDANCE_FACTOR = 1.3           # increase quantity by 30%
    ABUNDANCE_IMPACT = 0.08

    # --- Entry fee ---
    OPTIMAL_FEE_MULTIPLIER = 0.85    # optimal fee = 85% of expected prize value

    # --- Participation demand curve ---
    BASE_DEMAND = 1000.0
    REFERENCE_FEE = 100.0
    PRICE_ELASTICITY = -1.2
    FACTORS_INFLUENCE = {
        "entryFee": -0.8,
        "prizeValue": 0.6,
        "fairness": 0.3,
        "winRate": 0.4,
    }

    # --- Statistics ---
    VAR_CONFIDENCE_TAIL = 0.05
    BAYES_PRIOR_MEAN = 0.0
    BAYES_PRIOR_VARIANCE = 1000.0
    CREDIBLE_Z = 1.96
