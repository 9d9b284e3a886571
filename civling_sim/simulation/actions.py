"""Task lifecycle and the effect of each completed action."""

from __future__ import annotations

from typing import Callable, Optional

from numpy.random import Generator

from civling_sim.agents.civling import Civling, Task
from civling_sim.core.config import (
    ACTION_DURATION_MINUTES,
    ACTION_VALUES,
    BUILD_SHELTER,
    BUILD_STORAGE,
    CARE,
    CRAFT_CLOTHES,
    EAT,
    EXPLORE,
    EXPLORE_STEP,
    GATHER_FOOD,
    GATHER_WOOD,
    INDOOR_ACTIONS,
    LEARN,
    MINUTES_PER_TICK,
    PLAY,
    PREPARE_WARM_MEAL,
    REPRODUCE,
    REST,
    SHELTER_SITE,
    WORK_SITE_OFFSET,
    WORLD_HEIGHT,
    WORLD_WIDTH,
)
from civling_sim.core.rules import GAME_RULES, GameRules
from civling_sim.decision.context import most_injured_other
from civling_sim.world.state import WorldState


def resolve_duration(action: str, rng: Generator) -> int:
    """Fixed minutes, or a uniform pick from a range in tick-sized steps."""
    duration = ACTION_DURATION_MINUTES[action]
    if isinstance(duration, tuple):
        low, high = duration
        steps = list(range(low, high + 1, MINUTES_PER_TICK))
        return int(steps[int(rng.integers(0, len(steps)))])
    return int(duration)


def _clamp_position(x: int, y: int) -> tuple[int, int]:
    return (
        int(max(0, min(WORLD_WIDTH - 1, x))),
        int(max(0, min(WORLD_HEIGHT - 1, y))),
    )


def move_for_task(world: WorldState, civling: Civling, action: str, rng: Generator) -> None:
    """Indoor work happens at the shelter site once one exists; outdoor work leaves it."""
    if action in INDOOR_ACTIONS:
        if world.resources.shelter_capacity > 0:
            civling.x, civling.y = SHELTER_SITE
        return
    if civling.position == SHELTER_SITE:
        dx = int(rng.choice([-WORK_SITE_OFFSET, WORK_SITE_OFFSET]))
        dy = int(rng.choice([-WORK_SITE_OFFSET, WORK_SITE_OFFSET]))
        civling.x, civling.y = _clamp_position(civling.x + dx, civling.y + dy)


def start_task(world: WorldState, civling: Civling, action: str, rng: Generator) -> Task:
    minutes = resolve_duration(action, rng)
    task = Task(action=action, total_minutes=minutes, remaining_minutes=minutes, started_at_tick=world.tick)
    civling.current_task = task
    move_for_task(world, civling, action, rng)
    return task


def progress_task(
    world: WorldState,
    civling: Civling,
    rng: Generator,
    rules: GameRules = GAME_RULES,
) -> Optional[str]:
    """Run the current task for one tick. Returns the action if it completed."""
    task = civling.current_task
    if task is None:
        return None
    task.remaining_minutes -= MINUTES_PER_TICK
    if task.remaining_minutes > 0:
        return None
    civling.current_task = None
    apply_action(world, civling, task.action, rng, rules)
    return task.action


# ------------------------------------------------------------------
# Effects
# ------------------------------------------------------------------


def _roll(rng: Generator, chance: float) -> bool:
    return float(rng.random()) < chance


def _work_costs(civling: Civling, values: dict) -> None:
    civling.adjust_vitals(
        hunger=values.get("hunger_delta", 0),
        energy=values.get("energy_gain", 0) - values.get("energy_cost", 0),
    )


def _scavenge(world: WorldState, values: dict, rng: Generator) -> list[str]:
    found = []
    if _roll(rng, values.get("chance_food", 0.0)):
        world.resources.food += 1
        found.append("food")
    if _roll(rng, values.get("chance_wood", 0.0)) and world.resources.add_wood(1):
        found.append("wood")
    if _roll(rng, values.get("chance_fiber", 0.0)):
        world.resources.fiber += 1
        found.append("fiber")
    return found


def _is_supervised(world: WorldState, civling: Civling, rules: GameRules) -> bool:
    if civling.is_adult(rules):
        return True
    return any(a.id != civling.id for a in world.alive_adults(rules))


def _gather_food(world: WorldState, civling: Civling, rng: Generator, rules: GameRules) -> None:
    values = ACTION_VALUES[GATHER_FOOD]
    world.resources.food += int(values["food"])
    _work_costs(civling, values)
    civling.add_memory("Gathered food.")


def _gather_wood(world: WorldState, civling: Civling, rng: Generator, rules: GameRules) -> None:
    values = ACTION_VALUES[GATHER_WOOD]
    amount = int(values["wood"])
    stored = world.resources.add_wood(amount)
    if _roll(rng, values["chance_fiber"]):
        world.resources.fiber += 1
    _work_costs(civling, values)
    if stored < amount:
        civling.add_memory("Collected wood, but storage is full.")
    else:
        civling.add_memory("Collected wood.")


def _build_shelter(world: WorldState, civling: Civling, rng: Generator, rules: GameRules) -> None:
    civling.shelter_build_attempts += 1
    _work_costs(civling, ACTION_VALUES[BUILD_SHELTER])
    if world.resources.spend("wood", rules.shelter.wood_cost_per_unit):
        world.resources.shelter_capacity += rules.shelter.capacity_per_unit
        civling.shelter_build_successes += 1
        civling.add_memory("Expanded shelter.")
    else:
        civling.shelter_build_failures += 1
        civling.add_memory("Failed to build shelter (no wood).")


def _build_storage(world: WorldState, civling: Civling, rng: Generator, rules: GameRules) -> None:
    _work_costs(civling, ACTION_VALUES[BUILD_STORAGE])
    if world.resources.spend("wood", rules.storage.wood_cost_per_unit):
        world.resources.storage_capacity += rules.storage.wood_capacity_per_unit
        civling.add_memory("Built storage.")
    else:
        civling.add_memory("Failed to build storage (no wood).")


def _eat(world: WorldState, civling: Civling, rng: Generator, rules: GameRules) -> None:
    if not world.resources.spend("food", int(ACTION_VALUES[EAT]["food_cost"])):
        civling.add_memory("Failed to eat (no food).")
        return
    civling.adjust_vitals(hunger=-rules.food.eat_hunger_relief, energy=rules.food.eat_energy_gain)
    civling.food_eaten_last_tick += 1
    civling.add_memory("Ate a meal.")


def _prepare_warm_meal(world: WorldState, civling: Civling, rng: Generator, rules: GameRules) -> None:
    values = ACTION_VALUES[PREPARE_WARM_MEAL]
    food_cost = int(values["food_cost"])
    wood_cost = int(values["wood_cost"])
    res = world.resources
    if res.food < food_cost or res.wood < wood_cost:
        civling.add_memory("Failed to prepare a warm meal (no supplies).")
        return
    res.spend("food", food_cost)
    res.spend("wood", wood_cost)
    _work_costs(civling, values)
    civling.warm_meal_ticks = rules.weather.warm_meal_ticks
    civling.food_eaten_last_tick += 1
    civling.add_memory("Prepared a warm meal.")


def _craft_clothes(world: WorldState, civling: Civling, rng: Generator, rules: GameRules) -> None:
    values = ACTION_VALUES[CRAFT_CLOTHES]
    _work_costs(civling, values)
    if world.resources.spend("fiber", int(values["fiber_cost"])):
        civling.gear_charges += rules.weather.gear_charges_per_craft
        civling.add_memory("Crafted warm clothes.")
    else:
        civling.add_memory("Failed to craft clothes (no fiber).")


def _rest(world: WorldState, civling: Civling, rng: Generator, rules: GameRules) -> None:
    values = ACTION_VALUES[REST]
    bonus = rules.shelter.rest_energy_bonus_when_sheltered if world.shelter_covers_everyone() else 0.0
    civling.adjust_vitals(hunger=values["hunger_delta"], energy=values["energy_gain"] + bonus)
    civling.add_memory("Rested to recover energy.")


def _explore(world: WorldState, civling: Civling, rng: Generator, rules: GameRules) -> None:
    values = ACTION_VALUES[EXPLORE]
    found = _scavenge(world, values, rng)
    _work_costs(civling, values)
    dx = int(rng.integers(-EXPLORE_STEP, EXPLORE_STEP + 1))
    dy = int(rng.integers(-EXPLORE_STEP, EXPLORE_STEP + 1))
    civling.x, civling.y = _clamp_position(civling.x + dx, civling.y + dy)
    if found:
        civling.add_memory(f"Explored nearby terrain and found {', '.join(found)}.")
    else:
        civling.add_memory("Explored nearby terrain.")


def _learn(world: WorldState, civling: Civling, rng: Generator, rules: GameRules) -> None:
    values = ACTION_VALUES[LEARN]
    _scavenge(world, values, rng)
    _work_costs(civling, values)
    if _is_supervised(world, civling, rules):
        civling.adjust_vitals(health=values["supervised_heal"])
        civling.add_memory("Learned from the elders.")
    else:
        civling.adjust_vitals(health=-values["alone_damage"])
        civling.add_memory("Tried to learn alone.")


def _play(world: WorldState, civling: Civling, rng: Generator, rules: GameRules) -> None:
    values = ACTION_VALUES[PLAY]
    _work_costs(civling, values)
    if _is_supervised(world, civling, rules):
        civling.adjust_vitals(health=values["supervised_heal"])
        civling.add_memory("Played near the camp.")
    else:
        civling.adjust_vitals(health=-values["alone_damage"])
        civling.add_memory("Played alone without anyone watching.")


def _care(world: WorldState, civling: Civling, rng: Generator, rules: GameRules) -> None:
    values = ACTION_VALUES[CARE]
    _work_costs(civling, values)
    target = most_injured_other(civling, world, below=rules.healing.care_target_health)
    if target is None:
        civling.add_memory("Found no one needing care.")
        return
    target.adjust_vitals(health=values["heal_target"])
    target.add_memory(f"Was cared for by {civling.name}.")
    civling.add_memory(f"Cared for {target.name}.")


def _reproduce(world: WorldState, civling: Civling, rng: Generator, rules: GameRules) -> None:
    _work_costs(civling, ACTION_VALUES[REPRODUCE])
    civling.reproduce_intent_tick = world.tick
    civling.add_memory("Attempted to reproduce.")


_HANDLERS: dict[str, Callable[[WorldState, Civling, Generator, GameRules], None]] = {
    GATHER_FOOD: _gather_food,
    GATHER_WOOD: _gather_wood,
    BUILD_SHELTER: _build_shelter,
    BUILD_STORAGE: _build_storage,
    EAT: _eat,
    PREPARE_WARM_MEAL: _prepare_warm_meal,
    CRAFT_CLOTHES: _craft_clothes,
    REST: _rest,
    EXPLORE: _explore,
    LEARN: _learn,
    PLAY: _play,
    CARE: _care,
    REPRODUCE: _reproduce,
}


def apply_action(
    world: WorldState,
    civling: Civling,
    action: str,
    rng: Generator,
    rules: GameRules = GAME_RULES,
) -> None:
    """Apply the completed action's effects to the world and the civling."""
    _HANDLERS[action](world, civling, rng, rules)
