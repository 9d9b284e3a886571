"""Batch analysis: run many seeded tribes and aggregate how they fare."""

from __future__ import annotations

import asyncio
import csv
import os
import time
from dataclasses import dataclass

import numpy as np

from civling_sim.core.config import INITIAL_CIVLINGS, MAX_CIVLINGS, MILESTONES
from civling_sim.core.rules import GAME_RULES, GameRules
from civling_sim.decision.deterministic import DeterministicProvider


@dataclass
class RunResult:
    """Summary of a single simulation run."""
    seed: int
    ticks_survived: int
    extinct: bool
    final_population: int
    peak_population: int
    total_births: int
    total_deaths: int
    milestones: list[str]
    final_food: int
    final_shelter_capacity: int
    fallback_decisions: int
    elapsed_seconds: float


async def run_single(
    seed: int,
    ticks: int,
    civlings: int = INITIAL_CIVLINGS,
    max_civlings: int = MAX_CIVLINGS,
    rules: GameRules = GAME_RULES,
) -> RunResult:
    """Run one simulation with the rule-based provider and return a summary."""
    from civling_sim.simulation.engine import SimulationEngine

    engine = SimulationEngine(
        provider=DeterministicProvider(rules),
        seed=seed,
        rules=rules,
        max_civlings=max_civlings,
        initial_civlings=civlings,
    )

    t0 = time.time()
    await engine.run(ticks)
    elapsed = time.time() - t0

    snaps = engine.metrics.snapshots
    world = engine.world
    return RunResult(
        seed=seed,
        ticks_survived=world.tick,
        extinct=world.extinction.ended,
        final_population=world.alive_count(),
        peak_population=max((s.population for s in snaps), default=civlings),
        total_births=sum(s.births for s in snaps),
        total_deaths=sum(s.deaths for s in snaps),
        milestones=list(world.milestones),
        final_food=world.resources.food,
        final_shelter_capacity=world.resources.shelter_capacity,
        fallback_decisions=sum(s.fallback_count for s in snaps),
        elapsed_seconds=elapsed,
    )


def stat_line(label: str, values: list[float], fmt: str = ".1f") -> str:
    if not values:
        return f"  {label}: no data"
    arr = np.asarray(values, dtype=float)
    std = arr.std(ddof=1) if len(arr) > 1 else 0.0
    return (
        f"  {label:<24s}  mean={arr.mean():{fmt}}  median={np.median(arr):{fmt}}  "
        f"std={std:{fmt}}  min={arr.min():{fmt}}  max={arr.max():{fmt}}"
    )


def export_results(results: list[RunResult], csv_path: str) -> None:
    os.makedirs(os.path.dirname(csv_path) if os.path.dirname(csv_path) else ".", exist_ok=True)
    with open(csv_path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow([
            "seed", "ticks", "extinct", "final_pop", "peak_pop", "births",
            "deaths", "milestones", "final_food", "shelter_capacity",
            "fallbacks", "elapsed_s",
        ])
        for r in results:
            writer.writerow([
                r.seed, r.ticks_survived, int(r.extinct), r.final_population,
                r.peak_population, r.total_births, r.total_deaths,
                "|".join(r.milestones), r.final_food, r.final_shelter_capacity,
                r.fallback_decisions, f"{r.elapsed_seconds:.2f}",
            ])


def batch_run(
    n_runs: int = 20,
    ticks: int = 960,
    civlings: int = INITIAL_CIVLINGS,
    output_dir: str = "results/batch",
    master_seed: int = 0,
) -> list[RunResult]:
    """Run N simulations with seeds drawn from ``master_seed`` and report aggregates."""
    rng = np.random.default_rng(master_seed)
    seeds = [int(s) for s in rng.integers(0, 100_000, size=n_runs)]

    print("=== Civling Batch Run ===")
    print(f"Runs: {n_runs} | Ticks/run: {ticks} | Civlings: {civlings}")
    print(f"Seeds: {seeds[:5]}{'...' if n_runs > 5 else ''}")
    print()

    results: list[RunResult] = []
    for i, seed in enumerate(seeds):
        result = asyncio.run(run_single(seed, ticks, civlings))
        results.append(result)
        status = "EXTINCT" if result.extinct else "SURVIVED"
        print(
            f"  Run {i+1:>3}/{n_runs} | seed={seed:>5} | "
            f"ticks={result.ticks_survived:>5} | pop {civlings}->{result.final_population:>2} | "
            f"births={result.total_births:>2} | milestones={len(result.milestones)} | "
            f"{status} | {result.elapsed_seconds:.1f}s"
        )

    print("\n" + "=" * 70)
    print("AGGREGATE RESULTS")
    print("=" * 70)
    print(stat_line("Ticks survived", [r.ticks_survived for r in results]))
    print(stat_line("Final population", [r.final_population for r in results]))
    print(stat_line("Peak population", [r.peak_population for r in results]))
    print(stat_line("Births", [r.total_births for r in results]))
    print(stat_line("Deaths", [r.total_deaths for r in results]))
    print(stat_line("Fallback decisions", [r.fallback_decisions for r in results]))

    extinct = sum(1 for r in results if r.extinct)
    print(f"  Extinction rate: {extinct}/{n_runs} ({extinct / max(1, n_runs) * 100:.0f}%)")

    print("\nMILESTONES")
    for name in MILESTONES:
        reached = sum(1 for r in results if name in r.milestones)
        print(f"  {name:<12s} {reached}/{n_runs} runs")

    csv_path = os.path.join(output_dir, "batch_results.csv")
    export_results(results, csv_path)
    print(f"\nResults exported to {csv_path}")
    return results


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Batch civling simulation")
    parser.add_argument("--runs", type=int, default=20, help="Number of runs")
    parser.add_argument("--ticks", type=int, default=960, help="Ticks per run")
    parser.add_argument("--civlings", type=int, default=INITIAL_CIVLINGS, help="Founding civlings")
    parser.add_argument("--seed", type=int, default=0, help="Master seed")
    parser.add_argument("--output-dir", type=str, default="results/batch")
    args = parser.parse_args()

    batch_run(
        n_runs=args.runs,
        ticks=args.ticks,
        civlings=args.civlings,
        output_dir=args.output_dir,
        master_seed=args.seed,
    )


if __name__ == "__main__":
    main()
