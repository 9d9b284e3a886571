import asyncio
import os
import tempfile
import unittest

import numpy as np

from civling_sim.core.settings import Settings
from civling_sim.decision.protocol import ActionEnvelope, DecisionProvider
from civling_sim.simulation.engine import SimulationEngine
from civling_sim.simulation.runner import SimulationRunner
from civling_sim.simulation.snapshots import read_snapshot, snapshot_filename, write_snapshot
from civling_sim.world.state import create_initial_world_state


class RestingProvider(DecisionProvider):
    async def decide(self, civling, world):
        return ActionEnvelope("rest", "wait", "test")


def doomed_engine():
    """A tribe that starves on the first tick."""
    rng = np.random.default_rng(2)
    world = create_initial_world_state(rng, 2)
    world.resources.food = 0
    for civ in world.civlings:
        civ.health = 1
        civ.hunger = 100
    return SimulationEngine(RestingProvider(), world=world, rng=rng)


def fast_settings(**kwargs):
    kwargs.setdefault("tick_ms", 0)
    kwargs.setdefault("restart_delay_ms", 0)
    kwargs.setdefault("snapshot_every_ticks", 1)
    kwargs.setdefault("initial_civlings", 2)
    return Settings(**kwargs)


class TestSnapshots(unittest.TestCase):
    def test_filename(self):
        world = create_initial_world_state(np.random.default_rng(0), 2, run_id="run-abc123")
        world.tick = 42
        self.assertEqual(snapshot_filename(world), "run-abc123-tick-00042.json")

    def test_write_and_read(self):
        world = create_initial_world_state(np.random.default_rng(0), 3)
        world.tick = 5
        with tempfile.TemporaryDirectory() as tmp:
            path = write_snapshot(os.path.join(tmp, "snaps"), world)
            self.assertTrue(os.path.exists(path))
            self.assertEqual(read_snapshot(path).to_dict(), world.to_dict())


class TestRunner(unittest.IsolatedAsyncioTestCase):
    async def test_stops_after_extinction_without_restart(self):
        runner = SimulationRunner(doomed_engine(), settings=fast_settings(auto_restart=False))
        history = await runner.run(max_ticks=10)

        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].cause, "all_civlings_dead")
        self.assertEqual(history[0].ticks, 1)
        self.assertFalse(runner.running)

    async def test_auto_restart_starts_new_run(self):
        engine = doomed_engine()
        first_run = engine.world.run_id
        received = []
        with tempfile.TemporaryDirectory() as tmp:
            runner = SimulationRunner(
                engine,
                settings=fast_settings(auto_restart=True),
                snapshot_dir=tmp,
                on_tick=lambda world, records: received.append((world["runId"], world["tick"], records)),
            )
            await runner.run(max_ticks=3)
            await asyncio.sleep(0)

            self.assertEqual(len(runner.history), 1)
            self.assertEqual(runner.history[0].run_id, first_run)
            self.assertNotEqual(engine.world.run_id, first_run)
            self.assertEqual(engine.world.restart_count, 1)
            self.assertEqual(engine.world.tick, 2)
            self.assertEqual(engine.world.alive_count(), 2)
            self.assertEqual(engine.logger.run_id, engine.world.run_id)

            files = sorted(os.listdir(tmp))
            self.assertIn(f"{first_run}-tick-00001.json", files)
            self.assertIn(f"{engine.world.run_id}-tick-00002.json", files)

        self.assertEqual([(r, t) for r, t, _ in received], [
            (first_run, 1), (engine.world.run_id, 1), (engine.world.run_id, 2),
        ])
        self.assertEqual(received[1][2][0]["reason"], "wait")

    async def test_max_runs(self):
        runner = SimulationRunner(doomed_engine(), settings=fast_settings(auto_restart=True))
        history = await runner.run(max_runs=1)
        self.assertEqual(len(history), 1)

    async def test_stop(self):
        engine = doomed_engine()
        for civ in engine.world.civlings:
            civ.health = 100
            civ.hunger = 30
        engine.world.resources.food = 12
        runner = SimulationRunner(engine, settings=fast_settings())

        def stop_after_two(world, records):
            if world["tick"] >= 2:
                runner.stop()

        runner._on_tick = stop_after_two
        await asyncio.wait_for(runner.run(), timeout=5)
        self.assertLessEqual(engine.world.tick, 3)

    async def test_reset(self):
        engine = doomed_engine()
        runner = SimulationRunner(engine, settings=fast_settings(auto_restart=False))
        await runner.run(max_ticks=1)
        runner.reset()
        self.assertEqual(runner.history, [])
        self.assertEqual(engine.world.tick, 0)
        self.assertFalse(engine.is_extinct)


if __name__ == "__main__":
    unittest.main()
