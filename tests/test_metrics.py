import json
import os
import tempfile
import unittest

import numpy as np

from civling_sim.batch import RunResult, export_results, run_single, stat_line
from civling_sim.decision.protocol import DecisionRecord
from civling_sim.main import build_parser
from civling_sim.simulation.metrics import MetricsCollector
from civling_sim.viz.logger import SimLogger
from civling_sim.world.state import create_initial_world_state


def record(fallback):
    return DecisionRecord(1, "civ-1", "Ari", "rest", "r", fallback)


class TestMetricsCollector(unittest.TestCase):
    def setUp(self):
        self.world = create_initial_world_state(np.random.default_rng(0), 4)
        self.metrics = MetricsCollector()

    def test_collect_tick(self):
        self.metrics.record_birth()
        self.metrics.record_death()
        self.world.civlings[0].status = "dead"
        snap = self.metrics.collect_tick(self.world, [record(True), record(False)])

        self.assertEqual(snap.population, 3)
        self.assertEqual((snap.births, snap.deaths), (1, 1))
        self.assertEqual(snap.fallback_count, 1)
        self.assertEqual(snap.food, 12)
        self.assertEqual(snap.action_counts, {"idle": 3})

        # Counters reset for the next tick
        snap = self.metrics.collect_tick(self.world, [])
        self.assertEqual((snap.births, snap.deaths), (0, 0))

    def test_export_and_summary(self):
        for tick in range(1, 4):
            self.world.tick = tick
            self.metrics.collect_tick(self.world, [])
        report = self.metrics.summary_report()
        self.assertIn("Tick 1 to Tick 3", report)
        self.assertIn("Population: 4 -> 4", report)
        self.assertEqual(MetricsCollector().summary_report(), "No data available for the specified period.")

        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "out", "metrics.csv")
            self.metrics.export_csv(path)
            with open(path) as f:
                lines = f.read().splitlines()
        self.assertTrue(lines[0].startswith("run_id,tick,population"))
        self.assertEqual(len(lines), 4)


class TestSimLogger(unittest.TestCase):
    def test_verbosity_filters_output_not_history(self):
        with tempfile.TemporaryDirectory() as tmp:
            log_path = os.path.join(tmp, "sim.log")
            logger = SimLogger(verbosity=0, log_file=log_path, stdout=False)
            logger.log(SimLogger.DECISION, "Ari -> rest", tick=1)
            logger.log(SimLogger.LIFECYCLE, "Ari died", tick=1)
            logger.flush_tick(1)
            logger.close()
            with open(log_path) as f:
                text = f.read()

            self.assertIn("Ari died", text)
            self.assertNotIn("Ari -> rest", text)
            self.assertEqual(len(logger.entries()), 2)
            self.assertEqual(len(logger.entries(SimLogger.DECISION)), 1)

    def test_narrative_and_json(self):
        logger = SimLogger(stdout=False)
        logger.log(SimLogger.MILESTONE, "Milestone unlocked: fire", tick=4, extra=1)
        logger.flush_tick(4)
        self.assertIn("fire", logger.get_narrative(4))
        self.assertIn("Nothing notable", logger.get_narrative(5))
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "events.json")
            logger.export_json(path)
            with open(path) as f:
                data = json.load(f)
        self.assertEqual(data[0]["data"], {"extra": 1})

    def test_entries_carry_run_id(self):
        logger = SimLogger(stdout=False)
        logger.set_run("run-a")
        logger.log(SimLogger.LIFECYCLE, "Ari was born", civling_ids=["civ-1"], tick=1)
        logger.flush_tick(1)
        logger.set_run("run-b")
        logger.log(SimLogger.LIFECYCLE, "Bex was born", tick=1)
        logger.flush_tick(1)

        self.assertIn("Ari was born", logger.get_narrative(1, "run-a"))
        self.assertNotIn("Ari was born", logger.get_narrative(1))
        self.assertIn("(run-b)", logger.get_narrative(1))
        self.assertEqual([e.message for e in logger.for_civling("civ-1")], ["Ari was born"])


class TestBatch(unittest.IsolatedAsyncioTestCase):
    async def test_run_single(self):
        result = await run_single(seed=3, ticks=20, civlings=4)
        self.assertEqual(result.seed, 3)
        self.assertLessEqual(result.ticks_survived, 20)
        self.assertGreaterEqual(result.peak_population, result.final_population)

    async def test_export_and_stats(self):
        self.assertIn("mean=2.0", stat_line("x", [1, 2, 3]))
        self.assertIn("no data", stat_line("x", []))
        result = RunResult(1, 10, False, 4, 4, 0, 0, ["tools"], 12, 2, 0, 0.1)
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "batch.csv")
            export_results([result], path)
            with open(path) as f:
                self.assertEqual(len(f.read().splitlines()), 2)


class TestCli(unittest.TestCase):
    def test_parser_defaults(self):
        args = build_parser().parse_args([])
        self.assertEqual(args.ticks, 960)
        self.assertIsNone(args.provider)
        self.assertFalse(args.auto_restart)

    def test_parser_flags(self):
        args = build_parser().parse_args(["--provider", "local_api", "--escalation", "hybrid", "--tick-ms", "5"])
        self.assertEqual((args.provider, args.escalation, args.tick_ms), ("local_api", "hybrid", 5))


class TestReport(unittest.TestCase):
    def test_comprehensive_report_writes_pngs(self):
        import matplotlib
        matplotlib.use("Agg")
        from civling_sim.viz.dashboard import Dashboard

        world = create_initial_world_state(np.random.default_rng(0), 2)
        metrics = MetricsCollector()
        for tick in range(1, 6):
            world.tick = tick
            metrics.collect_tick(world, [])
        with tempfile.TemporaryDirectory() as tmp:
            paths = Dashboard.comprehensive_report(metrics, tmp)
            self.assertEqual(len(paths), 4)
            self.assertTrue(all(os.path.exists(p) for p in paths))


if __name__ == "__main__":
    unittest.main()
