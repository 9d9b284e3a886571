"""Entry point for the civling tribe simulation."""

from __future__ import annotations

import argparse
import asyncio
import os
import time


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Civling Tribe Simulation",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--ticks", type=int, default=960, help="Number of ticks to simulate (0 = until stopped)")
    parser.add_argument("--civlings", type=int, default=None, help="Founding civlings (default: SIM_INITIAL_CIVLINGS)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed for reproducibility")
    parser.add_argument("--provider", choices=["deterministic", "local_api"], default=None,
                        help="Decision provider (default: AI_PROVIDER)")
    parser.add_argument("--escalation", choices=["direct", "hybrid"], default=None,
                        help="How the remote provider is used (default: AI_ESCALATION_MODE)")
    parser.add_argument("--rules", type=str, default=None, help="JSON file with game rule overrides")
    parser.add_argument("--tick-ms", type=int, default=0, help="Wall-clock delay between ticks")
    parser.add_argument("--snapshot-every", type=int, default=None, help="Ticks between world snapshots")
    parser.add_argument("--auto-restart", action="store_true", help="Start a new tribe after extinction")
    parser.add_argument("--max-runs", type=int, default=None, help="Stop after this many finished runs")
    parser.add_argument("--verbosity", type=int, default=0, choices=[0, 1, 2, 3], help="Log verbosity level")
    parser.add_argument("--output-dir", type=str, default="results", help="Output directory for results")
    parser.add_argument("--dashboard", action="store_true", help="Show the live matplotlib dashboard")
    parser.add_argument("--no-plots", action="store_true", help="Skip static report plots")
    parser.add_argument("--log-file", type=str, default=None, help="Path to log file")
    return parser


async def run(args: argparse.Namespace) -> None:
    # Import here to allow --help without loading everything
    from civling_sim.core.rules import load_game_rules
    from civling_sim.core.settings import Settings
    from civling_sim.decision.factory import create_provider
    from civling_sim.simulation.engine import SimulationEngine
    from civling_sim.simulation.runner import SimulationRunner
    from civling_sim.viz.logger import SimLogger

    settings = Settings.from_env()
    if args.civlings is not None:
        settings.initial_civlings = args.civlings
    if args.provider is not None:
        settings.ai_provider = args.provider
    if args.escalation is not None:
        settings.ai_escalation_mode = args.escalation
    if args.snapshot_every is not None:
        settings.snapshot_every_ticks = args.snapshot_every
    settings.tick_ms = args.tick_ms
    settings.auto_restart = args.auto_restart

    rules = load_game_rules(args.rules)
    logger = SimLogger(
        verbosity=args.verbosity,
        log_file=args.log_file or os.path.join(args.output_dir, "simulation.log"),
        stdout=(args.verbosity > 0),
    )
    provider = create_provider(settings, rules=rules, logger=logger)

    print("=== Civling Tribe Simulation ===")
    print(f"Civlings: {settings.initial_civlings} | Ticks: {args.ticks or 'unbounded'} | Seed: {args.seed}")
    print(f"Provider: {settings.ai_provider} ({settings.ai_escalation_mode}) | Output: {args.output_dir}")
    print()

    engine = SimulationEngine(
        provider=provider,
        seed=args.seed,
        rules=rules,
        logger=logger,
        max_civlings=settings.max_civlings,
        initial_civlings=settings.initial_civlings,
    )

    dashboard = None
    if args.dashboard:
        try:
            import matplotlib
            matplotlib.use("TkAgg")  # Use interactive backend
            from civling_sim.viz.dashboard import Dashboard
            dashboard = Dashboard()
            dashboard.initialize()
            print("Real-time dashboard enabled")
        except Exception as e:
            print(f"Dashboard unavailable ({e}), continuing without visualization")
            dashboard = None

    def on_tick(world: dict, records: list[dict]) -> None:
        if dashboard:
            dashboard.update(world["tick"], engine.metrics)

    runner = SimulationRunner(
        engine,
        settings=settings,
        snapshot_dir=os.path.join(args.output_dir, "snapshots"),
        on_tick=on_tick,
    )

    print(f"Running run {engine.world.run_id}...")
    t0 = time.time()
    try:
        await runner.run(max_ticks=args.ticks or None, max_runs=args.max_runs)
    except (KeyboardInterrupt, asyncio.CancelledError):
        print("\nSimulation interrupted by user")
    finally:
        await provider.aclose()

    elapsed = time.time() - t0
    ticks_run = len(engine.metrics.snapshots)
    print(f"\nSimulation complete: {ticks_run} ticks in {elapsed:.2f}s ({ticks_run / max(0.01, elapsed):.0f} ticks/sec)")
    for summary in runner.history:
        print(f"  Run {summary.run_id}: {summary.ticks} ticks, milestones {summary.milestones or 'none'}")

    os.makedirs(args.output_dir, exist_ok=True)
    csv_path = os.path.join(args.output_dir, "metrics.csv")
    engine.metrics.export_csv(csv_path)
    print(f"Metrics exported to {csv_path}")

    if not args.no_plots:
        try:
            from civling_sim.viz.dashboard import Dashboard as DashClass
            DashClass.comprehensive_report(engine.metrics, args.output_dir)
        except Exception as e:
            print(f"Could not generate plots: {e}")

    print()
    print(engine.metrics.summary_report())

    if dashboard:
        dashboard.save(os.path.join(args.output_dir, "dashboard_final.png"))
        dashboard.close()

    logger.export_json(os.path.join(args.output_dir, "events.json"))
    logger.close()

    print(f"\nAll results saved to {args.output_dir}/")


def main() -> None:
    args = build_parser().parse_args()
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
