"""JSON snapshots of the world, one file per saved tick."""

from __future__ import annotations

import json
import os

from civling_sim.world.state import WorldState


def snapshot_filename(world: WorldState) -> str:
    return f"{world.run_id}-tick-{world.tick:05d}.json"


def write_snapshot(root_dir: str, world: WorldState) -> str:
    """Write the full world state and return the file path."""
    os.makedirs(root_dir, exist_ok=True)
    path = os.path.join(root_dir, snapshot_filename(world))
    with open(path, "w", encoding="utf-8") as f:
        json.dump(world.to_dict(), f, indent=2)
    return path


def read_snapshot(path: str) -> WorldState:
    with open(path, "r", encoding="utf-8") as f:
        return WorldState.from_dict(json.load(f))
