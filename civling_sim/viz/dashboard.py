"""Matplotlib dashboard: live view during a run and static reports after it."""

from __future__ import annotations

import os

import matplotlib.pyplot as plt

from civling_sim.core.config import DASHBOARD_UPDATE_INTERVAL, REPORT_DPI


class Dashboard:
    """Live dashboard with six panels, redrawn every few ticks."""

    def __init__(self) -> None:
        self._initialized = False
        self._fig = None
        self._axes = None
        self._update_counter = 0

    def initialize(self) -> None:
        """Set up the matplotlib figure and subplots."""
        plt.ion()
        self._fig, axes = plt.subplots(2, 3, figsize=(16, 8))
        self._fig.suptitle("Civling Simulation", fontsize=14)
        self._axes = {
            "population": axes[0, 0],
            "food": axes[0, 1],
            "wood": axes[0, 2],
            "vitals": axes[1, 0],
            "shelter": axes[1, 1],
            "tasks": axes[1, 2],
        }
        for ax in axes.flat:
            ax.grid(True, alpha=0.3)
        plt.tight_layout()
        self._initialized = True
        plt.pause(0.01)

    def _draw_lines(self, key: str, title: str, ticks: list[int], series: dict, ylim=None, reference=None) -> None:
        ax = self._axes[key]
        ax.clear()
        ax.set_title(title)
        for label, (values, style) in series.items():
            ax.plot(ticks, values, style, label=label, linewidth=1.5)
        if reference is not None:
            ax.axhline(y=reference[1], color="r", linestyle="--", alpha=0.5, label=reference[0])
        if ylim is not None:
            ax.set_ylim(*ylim)
        if len(series) > 1 or reference is not None:
            ax.legend(fontsize=8)
        ax.grid(True, alpha=0.3)

    def update(self, tick: int, metrics: "MetricsCollector") -> None:  # noqa: F821
        """Redraw every ``DASHBOARD_UPDATE_INTERVAL`` calls."""
        self._update_counter += 1
        if self._update_counter % DASHBOARD_UPDATE_INTERVAL != 0:
            return
        if not self._initialized:
            self.initialize()

        snaps = metrics.snapshots
        if not snaps:
            return
        ticks = [s.tick for s in snaps]

        self._draw_lines("population", "Population", ticks, {
            "Alive": ([s.population for s in snaps], "b-"),
        })
        self._draw_lines("food", "Food Stock", ticks, {
            "Food": ([s.food for s in snaps], "g-"),
        }, reference=("Reserve target", snaps[-1].food_reserve_target))
        self._draw_lines("wood", "Wood & Fiber", ticks, {
            "Wood": ([s.wood for s in snaps], "C5-"),
            "Fiber": ([s.fiber for s in snaps], "C8-"),
        })
        self._draw_lines("vitals", "Average Vitals", ticks, {
            "Health": ([s.avg_health for s in snaps], "b-"),
            "Energy": ([s.avg_energy for s in snaps], "g-"),
            "Hunger": ([s.avg_hunger for s in snaps], "C1-"),
        }, ylim=(0, 100))
        self._draw_lines("shelter", "Shelter Capacity vs Population", ticks, {
            "Capacity": ([s.shelter_capacity for s in snaps], "k-"),
            "Alive": ([s.population for s in snaps], "b--"),
        })

        ax = self._axes["tasks"]
        ax.clear()
        ax.set_title("Current Tasks")
        counts = snaps[-1].action_counts
        if counts:
            items = sorted(counts.items(), key=lambda x: -x[1])
            ax.pie([c for _, c in items], labels=[a.replace("_", " ") for a, _ in items],
                   autopct="%1.0f%%", textprops={"fontsize": 7})

        self._fig.suptitle(f"Civling Simulation: Tick {tick} ({snaps[-1].run_id})", fontsize=14)
        plt.tight_layout()
        plt.pause(0.01)

    def save(self, filepath: str) -> None:
        """Save the current dashboard as an image."""
        if self._fig:
            self._fig.savefig(filepath, dpi=REPORT_DPI, bbox_inches="tight")

    def close(self) -> None:
        """Close the dashboard."""
        if self._fig:
            plt.close(self._fig)

    # ------------------------------------------------------------------
    # Post-hoc static plots
    # ------------------------------------------------------------------

    @staticmethod
    def comprehensive_report(metrics: "MetricsCollector", output_dir: str) -> list[str]:  # noqa: F821
        """Generate all plots and save to output directory. Returns the file paths."""
        os.makedirs(output_dir, exist_ok=True)

        snapshots = metrics.snapshots
        if not snapshots:
            return []

        ticks = [s.tick for s in snapshots]
        charts = [
            ("population.png", "Population Over Time", "Civlings",
             {"Alive": [s.population for s in snapshots]}),
            ("stockpile.png", "Stockpile Over Time", "Units",
             {"Food": [s.food for s in snapshots],
              "Wood": [s.wood for s in snapshots],
              "Fiber": [s.fiber for s in snapshots]}),
            ("vitals.png", "Average Vitals Over Time", "0-100",
             {"Health": [s.avg_health for s in snapshots],
              "Energy": [s.avg_energy for s in snapshots],
              "Hunger": [s.avg_hunger for s in snapshots]}),
            ("infrastructure.png", "Shelter and Storage", "Capacity",
             {"Shelter": [s.shelter_capacity for s in snapshots],
              "Storage": [s.storage_capacity for s in snapshots]}),
        ]

        paths = []
        for filename, title, ylabel, series in charts:
            fig, ax = plt.subplots(figsize=(10, 5))
            for label, values in series.items():
                ax.plot(ticks, values, linewidth=1.5, label=label)
            ax.set_title(title)
            ax.set_xlabel("Tick")
            ax.set_ylabel(ylabel)
            if len(series) > 1:
                ax.legend(fontsize=8)
            ax.grid(True, alpha=0.3)
            path = os.path.join(output_dir, filename)
            fig.savefig(path, dpi=REPORT_DPI)
            plt.close(fig)
            paths.append(path)

        print(f"Reports saved to {output_dir}/")
        return paths
