#!/usr/bin/env python3
"""
RaffleLab — Raffle Simulation CLI

Usage:
    python -m tools.raffle_cli raffle-config.json
    python -m tools.raffle_cli raffle-config.json --seed 42 --runs 50000
    python -m tools.raffle_cli raffle-config.json --optimize --export out.json
    python -m tools.raffle_cli raffle-config.json --dump-config
"""

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from rich.console import Console
from rich.panel import Panel

from config.settings import OUTPUT_DIR
from sim_engine.raffle import SimulationController, SimulationStatus
from sim_engine.raffle.utils import (
    assess_risk_level, generate_action_items, generate_insights,
    optimization_score, theoretical_roi,
)
from tools.raffle_export import ConfigLoadError, default_filename, export_results, load_config
from tools.raffle_optimizer import apply_optimization_goals, can_run_simulation

logger = logging.getLogger("rafflelab")
console = Console()


def _setup_logging(verbose: bool):
    if not logger.handlers:
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s %(message)s", datefmt="%H:%M:%S"))
        logger.addHandler(h)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Monte Carlo raffle simulation")
    parser.add_argument("config", type=str, help="Raffle config JSON file")
    parser.add_argument("--seed", type=int, default=None, help="Deterministic seed")
    parser.add_argument("--runs", type=int, default=None, help="Override total runs")
    parser.add_argument("--optimize", action="store_true", help="Apply optimization goals first")
    parser.add_argument("--export", type=str, default=None, help="Write results JSON here")
    parser.add_argument("--export-dir", action="store_true",
                        help="Write results JSON to OUTPUT_DIR with the default name")
    parser.add_argument("--dump-config", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    try:
        config = load_config(args.config)
    except ConfigLoadError as e:
        console.print(f"[red]❌ {e}[/red]")
        return 1

    if args.runs:
        config = config.model_copy(update={"total_runs": args.runs})
    if args.optimize:
        config = apply_optimization_goals(config)

    if args.dump_config:
        print(config.model_dump_json(indent=2, by_alias=True))
        return 0

    if not can_run_simulation(config):
        console.print("[yellow]⚠️  Config is not ready: needs prizes with tickets and a positive entry fee[/yellow]")

    theo_roi = theoretical_roi(config.prizes, config.entry_fee)
    console.print(Panel(
        f"[bold]🎟️  Raffle Simulation[/bold]\n\n"
        f"Runs: {config.total_runs:,}\n"
        f"Entry Fee: {config.entry_fee}\n"
        f"Prizes: {len(config.prizes)} ({config.total_tickets:,} tickets)\n"
        f"Theoretical ROI: {theo_roi:.2f}%\n"
        f"Seed: {args.seed if args.seed is not None else 'random'}",
        title="Simulation Starting", border_style="cyan",
    ))

    ctl = SimulationController()
    state = ctl.run_simulation(config, seed=args.seed)

    if state.status == SimulationStatus.ERROR:
        console.print(f"[red]❌ Simulation failed: {state.error}[/red]")
        return 1

    result = state.result
    stats = result.final_stats
    console.print(result.summary())
    console.print(
        f"\nRisk level: [bold]{assess_risk_level(stats).value}[/bold]   "
        f"Optimization score: [bold]{optimization_score(stats):.1f}[/bold]/100"
    )
    for insight in generate_insights(result, theo_roi):
        color = {"positive": "green", "warning": "yellow"}.get(insight.kind, "cyan")
        console.print(f"[{color}]• {insight.title}:[/{color}] {insight.description}")
    for item in generate_action_items(stats, result.optimization_suggestions):
        console.print(f"  [{item.priority.value}] {item.action} — {item.implementation}")

    out = None
    if args.export:
        out = Path(args.export)
    elif args.export_dir:
        out = OUTPUT_DIR / default_filename("simulation-results")
    if out is not None:
        export_results(config, result, out)
        console.print(f"[green]✅ Results written: {out}[/green]")

    return 0


if __name__ == "__main__":
    sys.exit(main())
