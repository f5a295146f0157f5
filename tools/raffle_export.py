"""
RaffleLab — Config & Result Files

JSON files compatible with the admin simulation suite:
    raffle-config-<id>-<date>.json         save_config / load_config
    simulation-results-<id>-<date>.json    export_results

Configs are written with camelCase keys (totalRuns, entryFee, userValue, …).
load_config fills missing top-level fields with the suite defaults; a saved
entry fee of 0 is kept.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from config.settings import SimulationSettings
from sim_engine.raffle.models import SimulationConfig, SimulationResult
from sim_engine.raffle.utils import expected_value, fairness_score, theoretical_roi

logger = logging.getLogger("rafflelab.export")


class ConfigLoadError(ValueError):
    """A config file could not be read or parsed."""


def default_filename(kind: str, raffle_id: Optional[str] = None) -> str:
    """`raffle-config` / `simulation-results` + raffle id + UTC date."""
    date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    return f"{kind}-{raffle_id or 'custom'}-{date}.json"


def save_config(config: SimulationConfig, path, raffle_id: Optional[str] = None) -> Path:
    path = Path(path)
    data = config.model_dump(mode="json", by_alias=True)
    data["timestamp"] = int(time.time() * 1000)
    data["raffleId"] = raffle_id
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    logger.info(f"Saved raffle config → {path}")
    return path


def load_config(path) -> SimulationConfig:
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigLoadError(f"Failed to read config {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigLoadError(f"Config {path} must be a JSON object")

    entry_fee = raw.get("entryFee", raw.get("entry_fee"))
    if entry_fee is None:
        entry_fee = SimulationSettings.DEFAULT_ENTRY_FEE

    data = {
        "totalRuns": raw.get("totalRuns") or raw.get("total_runs") or SimulationSettings.DEFAULT_RUNS,
        "entryFee": entry_fee,
        "prizes": raw.get("prizes") or [],
        "batchSize": raw.get("batchSize") or raw.get("batch_size") or SimulationSettings.DEFAULT_BATCH_SIZE,
        "optimizationGoals": raw.get("optimizationGoals", raw.get("optimization_goals")),
    }
    try:
        return SimulationConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigLoadError(f"Invalid config {path}: {e}") from e


def export_results(config: SimulationConfig, result: SimulationResult, path,
                   raffle_info: Optional[dict] = None) -> Path:
    """Write config + result + theoretical metrics to one JSON document."""
    path = Path(path)
    payload = {
        "simulationConfig": config.model_dump(mode="json", by_alias=True),
        "results": result.to_dict(),
        "metadata": {
            "timestamp": int(time.time() * 1000),
            "raffleInfo": raffle_info,
            "theoreticalMetrics": {
                "expectedValue": expected_value(config.prizes),
                "theoreticalROI": theoretical_roi(config.prizes, config.entry_fee),
                "fairnessScore": fairness_score(config.prizes),
            },
        },
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    logger.info(f"Exported simulation results ({result.total_runs:,} trials) → {path}")
    return path
