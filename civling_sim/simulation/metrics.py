"""Per-tick data collection, summary report, and CSV export."""

from __future__ import annotations

import csv
import os
from dataclasses import dataclass, field
from typing import Optional

from civling_sim.decision.context import food_reserve_target


@dataclass
class TickSnapshot:
    """A snapshot of simulation state for one tick."""

    tick: int = 0
    run_id: str = ""
    population: int = 0
    births: int = 0
    deaths: int = 0
    food: int = 0
    food_reserve_target: float = 0.0
    wood: int = 0
    fiber: int = 0
    shelter_capacity: int = 0
    storage_capacity: int = 0
    avg_health: float = 0.0
    avg_hunger: float = 0.0
    avg_energy: float = 0.0
    milestones: int = 0
    weather: str = ""
    phase: str = ""
    fallback_count: int = 0
    action_counts: dict[str, int] = field(default_factory=dict)


class MetricsCollector:
    """Collects time-series data every tick."""

    def __init__(self) -> None:
        self.snapshots: list[TickSnapshot] = []
        self._tick_births: int = 0
        self._tick_deaths: int = 0

    def record_birth(self) -> None:
        self._tick_births += 1

    def record_death(self) -> None:
        self._tick_deaths += 1

    def collect_tick(
        self,
        world: "WorldState",  # noqa: F821
        records: list["DecisionRecord"],  # noqa: F821
    ) -> TickSnapshot:
        """Collect all metrics for this tick."""
        alive = world.alive_civlings()
        n = len(alive)

        action_counts: dict[str, int] = {}
        for c in alive:
            act = c.current_task.action if c.current_task else "idle"
            action_counts[act] = action_counts.get(act, 0) + 1

        res = world.resources
        snapshot = TickSnapshot(
            tick=world.tick,
            run_id=world.run_id,
            population=n,
            births=self._tick_births,
            deaths=self._tick_deaths,
            food=res.food,
            food_reserve_target=food_reserve_target(world),
            wood=res.wood,
            fiber=res.fiber,
            shelter_capacity=res.shelter_capacity,
            storage_capacity=res.storage_capacity,
            avg_health=sum(c.health for c in alive) / max(1, n),
            avg_hunger=sum(c.hunger for c in alive) / max(1, n),
            avg_energy=sum(c.energy for c in alive) / max(1, n),
            milestones=len(world.milestones),
            weather=world.environment.weather,
            phase=world.time.phase,
            fallback_count=sum(1 for r in records if r.fallback),
            action_counts=action_counts,
        )
        self.snapshots.append(snapshot)

        # Reset tick counters
        self._tick_births = 0
        self._tick_deaths = 0

        return snapshot

    def export_csv(self, filepath: str) -> None:
        """Export all snapshots to CSV."""
        os.makedirs(os.path.dirname(filepath) if os.path.dirname(filepath) else ".", exist_ok=True)
        with open(filepath, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow([
                "run_id", "tick", "population", "births", "deaths", "food", "food_reserve_target",
                "wood", "fiber", "shelter_capacity", "storage_capacity",
                "avg_health", "avg_hunger", "avg_energy", "milestones",
                "weather", "phase", "fallbacks",
            ])
            for s in self.snapshots:
                writer.writerow([
                    s.run_id, s.tick, s.population, s.births, s.deaths, s.food, f"{s.food_reserve_target:.1f}",
                    s.wood, s.fiber, s.shelter_capacity, s.storage_capacity,
                    f"{s.avg_health:.1f}", f"{s.avg_hunger:.1f}",
                    f"{s.avg_energy:.1f}", s.milestones, s.weather, s.phase,
                    s.fallback_count,
                ])

    def summary_report(self, start_tick: int = 0, end_tick: Optional[int] = None) -> str:
        """Generate a human-readable summary of the simulation period."""
        relevant = [
            s for s in self.snapshots
            if s.tick >= start_tick and (end_tick is None or s.tick <= end_tick)
        ]
        if not relevant:
            return "No data available for the specified period."

        first = relevant[0]
        last = relevant[-1]
        total_births = sum(s.births for s in relevant)
        total_deaths = sum(s.deaths for s in relevant)
        total_fallbacks = sum(s.fallback_count for s in relevant)
        peak_population = max(s.population for s in relevant)

        lines = [
            f"=== Simulation Summary: Tick {first.tick} to Tick {last.tick} ===",
            f"Duration: {last.tick - first.tick + 1} ticks",
            "",
            f"Population: {first.population} -> {last.population} (peak {peak_population})",
            f"  Total births: {total_births}",
            f"  Total deaths: {total_deaths}",
            "",
            "Stockpile (final tick):",
            f"  Food: {last.food} (reserve target {last.food_reserve_target:.0f})",
            f"  Wood: {last.wood}",
            f"  Fiber: {last.fiber}",
            f"  Shelter capacity: {last.shelter_capacity}",
            f"  Storage capacity: {last.storage_capacity}",
            "",
            "Final Vitals:",
            f"  Avg health: {last.avg_health:.1f}/100",
            f"  Avg hunger: {last.avg_hunger:.1f}/100",
            f"  Avg energy: {last.avg_energy:.1f}/100",
            f"  Milestones unlocked: {last.milestones}",
            f"  Fallback decisions: {total_fallbacks}",
        ]

        if last.action_counts:
            lines.append("")
            lines.append("Task Distribution (final tick):")
            total_acts = sum(last.action_counts.values())
            for act, count in sorted(last.action_counts.items(), key=lambda x: -x[1]):
                pct = count / max(1, total_acts) * 100
                lines.append(f"  {act}: {count} ({pct:.0f}%)")

        return "\n".join(lines)
