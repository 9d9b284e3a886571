"""Timed run loop: interval ticking, snapshots, auto-restart, run history."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Optional

from civling_sim.core.settings import Settings
from civling_sim.decision.protocol import DecisionRecord
from civling_sim.simulation.engine import SimulationEngine
from civling_sim.simulation.snapshots import write_snapshot
from civling_sim.viz.logger import SimLogger
from civling_sim.world.state import create_initial_world_state


@dataclass
class RunSummary:
    run_id: str
    restart_count: int
    ticks: int
    milestones: list[str] = field(default_factory=list)
    cause: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "runId": self.run_id,
            "restartCount": self.restart_count,
            "ticks": self.ticks,
            "milestones": list(self.milestones),
            "cause": self.cause,
        }


class SimulationRunner:
    """Drives an engine on a wall-clock interval and restarts extinct tribes."""

    def __init__(
        self,
        engine: SimulationEngine,
        settings: Optional[Settings] = None,
        snapshot_dir: Optional[str] = None,
        on_tick: Optional[Callable[[dict, list[dict]], None]] = None,
    ) -> None:
        self.engine = engine
        self.settings = settings or Settings()
        self.snapshot_dir = snapshot_dir
        self.history: list[RunSummary] = []
        self.snapshot_paths: list[str] = []
        self._on_tick = on_tick
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def stop(self) -> None:
        self._running = False

    def restart(self) -> None:
        """Replace the extinct world with a fresh tribe."""
        old = self.engine.world
        world = create_initial_world_state(
            self.engine.rng,
            self.settings.initial_civlings,
            restart_count=old.restart_count + 1,
        )
        self.engine.reset(world)
        self.engine.logger.log(
            SimLogger.LIFECYCLE,
            f"Restarting as run {world.run_id} (restart #{world.restart_count})",
            tick=world.tick,
        )

    def reset(self) -> None:
        """Throw away the current run and history and start over."""
        self.history.clear()
        world = create_initial_world_state(self.engine.rng, self.settings.initial_civlings)
        self.engine.reset(world)

    def _snapshot(self) -> None:
        if not self.snapshot_dir:
            return
        path = write_snapshot(self.snapshot_dir, self.engine.world)
        if not self.snapshot_paths or self.snapshot_paths[-1] != path:
            self.snapshot_paths.append(path)

    def _deliver(self, records: list[DecisionRecord]) -> None:
        """Hand a copy of the state to the presentation layer without waiting on it."""
        if self._on_tick is None:
            return
        payload = self.engine.world.to_dict()
        recent = [r.to_dict() for r in records]
        asyncio.get_running_loop().call_soon(self._on_tick, payload, recent)

    def _close_run(self) -> None:
        world = self.engine.world
        self.history.append(RunSummary(
            run_id=world.run_id,
            restart_count=world.restart_count,
            ticks=world.tick,
            milestones=list(world.milestones),
            cause=world.extinction.cause,
        ))
        self._snapshot()

    async def run(self, max_ticks: Optional[int] = None, max_runs: Optional[int] = None) -> list[RunSummary]:
        """Tick until stopped, ``max_ticks`` ticks pass, or ``max_runs`` runs end."""
        self._running = True
        interval = self.settings.tick_ms / 1000.0
        every = max(1, self.settings.snapshot_every_ticks)
        ticks_done = 0

        while self._running:
            records = await self.engine.tick()
            ticks_done += 1
            self._deliver(records)

            if self.engine.is_extinct:
                self._close_run()
                if not self.settings.auto_restart or (max_runs is not None and len(self.history) >= max_runs):
                    break
                await asyncio.sleep(self.settings.restart_delay_ms / 1000.0)
                self.restart()
            elif self.engine.world.tick % every == 0:
                self._snapshot()

            if max_ticks is not None and ticks_done >= max_ticks:
                break
            await asyncio.sleep(interval)

        if not self.engine.is_extinct and self.snapshot_dir:
            self._snapshot()
        self._running = False
        return self.history
