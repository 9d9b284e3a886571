"""Prompt text for the remote decision model."""

from __future__ import annotations

import json

from civling_sim.agents.civling import Civling
from civling_sim.core.config import PROMPT_MEMORY_ENTRIES
from civling_sim.core.rules import GAME_RULES, GameRules
from civling_sim.decision.context import (
    allowed_actions,
    food_reserve_target,
    reproduction_context,
    shelter_target,
)
from civling_sim.world.state import WorldState


def build_decision_context(civling: Civling, world: WorldState, rules: GameRules = GAME_RULES) -> dict:
    res = world.resources
    return {
        "civling": {
            "name": civling.name,
            "gender": civling.gender,
            "age": round(civling.age, 2),
            "health": round(civling.health, 1),
            "energy": round(civling.energy, 1),
            "hunger": round(civling.hunger, 1),
            "warmMealTicks": civling.warm_meal_ticks,
            "gearCharges": civling.gear_charges,
            "sheltered": world.is_sheltered(civling),
            "personality": civling.personality.to_dict(),
            "recentMemory": civling.memory.recent(PROMPT_MEMORY_ENTRIES),
        },
        "world": {
            "tick": world.tick,
            "time": world.time.to_dict(),
            "environment": world.environment.to_dict(),
            "resources": res.to_dict(),
            "aliveCivlings": world.alive_count(),
            "foodReserveTarget": food_reserve_target(world, rules),
            "shelterTarget": shelter_target(world, rules),
            "milestones": list(world.milestones),
        },
        "reproduction": reproduction_context(civling, world, rules).to_dict(),
        "allowedActions": allowed_actions(civling, world, rules),
    }


def build_decision_prompt(civling: Civling, world: WorldState, rules: GameRules = GAME_RULES) -> str:
    context = build_decision_context(civling, world, rules)
    lines = [
        f"You are deciding the next action for {civling.name}, a member of a small tribe.",
        "Keep the tribe alive first: eat when hungry, keep food above the reserve target,",
        "get under shelter or prepare before cold nights and snow, rest when exhausted.",
        "Then grow: build storage and shelter, stockpile wood, care for the injured,",
        "and try for children only when reproduction readiness says ready.",
        "Choose exactly one action from allowedActions.",
        'Respond with a JSON object: {"action": "<action>", "reason": "<short reason>"}.',
        "",
        "Context:",
        json.dumps(context, indent=2),
    ]
    return "\n".join(lines)
