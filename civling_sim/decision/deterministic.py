"""Rule-based decision policy: an ordered cascade of survival and growth checks.

The first matching branch wins. Every branch returns a fixed reason code so
runs can be audited and compared across providers.
"""

from __future__ import annotations

from civling_sim.agents.civling import Civling
from civling_sim.agents.personality import pick_personality_action
from civling_sim.core.config import (
    BUILD_SHELTER,
    BUILD_STORAGE,
    CARE,
    CRAFT_CLOTHES,
    EAT,
    EXPLORE,
    FOOD_PRESSURE_HUNGER,
    GATHER_FOOD,
    GATHER_WOOD,
    LEARN,
    PLAY,
    PREPARE_WARM_MEAL,
    REPRODUCE,
    REST,
    WOOD_TARGET,
)
from civling_sim.core.rules import GAME_RULES, GameRules
from civling_sim.decision.context import (
    can_craft_clothes,
    can_prepare_warm_meal,
    can_use_care,
    food_reserve_target,
    most_injured_other,
    reproduction_context,
    shelter_short,
    shelter_target,
)
from civling_sim.decision.protocol import ActionEnvelope, DecisionProvider
from civling_sim.world.climate import is_harsh
from civling_sim.world.state import WorldState


def _envelope(action: str, reason: str) -> ActionEnvelope:
    return ActionEnvelope(action=action, reason=reason, source="deterministic")


def decide_deterministic_action(
    civling: Civling,
    world: WorldState,
    rules: GameRules = GAME_RULES,
) -> ActionEnvelope:
    """Pick the next action for ``civling``. Pure given the world state."""
    survival = rules.survival
    res = world.resources
    minor = civling.is_minor(rules)
    sheltered = world.is_sheltered(civling)
    protected = civling.has_temporary_protection
    coverage_short = shelter_short(world)
    shelter_cost = rules.shelter.wood_cost_per_unit
    reserve_target = food_reserve_target(world, rules)
    harsh_now = is_harsh(
        world.environment.weather, world.time.phase, world.environment.night_temperature,
    )

    # 1-3. Hard survival interrupts
    if civling.hunger >= survival.collapse_hunger_threshold and res.food > 0:
        return _envelope(EAT, "starvation_collapse_emergency_eat")
    if civling.hunger >= survival.critical_hunger_threshold and res.food <= 0:
        if minor:
            return _envelope(REST, "starvation_critical_minor_rest")
        return _envelope(GATHER_FOOD, "starvation_critical_food_priority")
    if civling.energy <= survival.emergency_energy_threshold:
        return _envelope(REST, "emergency_low_energy_rest")

    # 4. Get ready before a cold winter night falls
    if (
        not minor
        and not sheltered
        and world.time.in_winter_prep_window()
        and world.environment.night_temperature == "cold"
    ):
        if coverage_short and res.wood >= shelter_cost:
            return _envelope(BUILD_SHELTER, "winter_night_prep_build_shelter")
        if not protected and can_prepare_warm_meal(world):
            return _envelope(PREPARE_WARM_MEAL, "winter_night_prep_warm_meal")
        if not protected and can_craft_clothes(world):
            return _envelope(CRAFT_CLOTHES, "winter_night_prep_craft_clothes")
        if coverage_short and not protected:
            return _envelope(REST, "winter_night_prep_hold_rest")

    # 5. Caught outside in bad weather right now
    if not minor and not sheltered and harsh_now:
        if coverage_short and res.wood >= shelter_cost:
            return _envelope(BUILD_SHELTER, "weather_risk_build_shelter")
        if not protected and can_prepare_warm_meal(world):
            return _envelope(PREPARE_WARM_MEAL, "weather_risk_warm_meal")
        if not protected and can_craft_clothes(world):
            return _envelope(CRAFT_CLOTHES, "weather_risk_craft_clothes")
        if protected and coverage_short and res.wood < shelter_cost:
            return _envelope(GATHER_WOOD, "weather_risk_protected_gather_wood")
        return _envelope(REST, "weather_risk_hold_rest")

    # 6. Someone grown must be working on food when stores run thin
    if not minor and res.food < reserve_target:
        others_gathering = any(
            c.current_task is not None and c.current_task.action == GATHER_FOOD
            for c in world.alive_adults(rules)
            if c.id != civling.id
        )
        if not others_gathering:
            return _envelope(GATHER_FOOD, "adult_survival_guardrail_gather_food")

    # 7. Minors
    if minor:
        if harsh_now and not sheltered:
            return _envelope(REST, "minor_weather_wait")
        if civling.energy <= survival.minor_low_energy_threshold:
            return _envelope(REST, "minor_low_energy_rest")
        action = pick_personality_action(civling.personality, [LEARN, PLAY, REST], LEARN)
        return _envelope(action, f"minor_personality_{action}")

    # 8. Tired
    if civling.energy <= survival.low_energy_risk_threshold:
        return _envelope(REST, "low_energy")

    # 9. Weak vitals: stay close to food
    if (
        civling.health <= survival.weak_health_threshold
        or civling.hunger >= survival.wood_block_hunger_threshold
    ):
        if res.food > 0 and civling.hunger >= rules.food.eat_hunger_threshold:
            return _envelope(EAT, "weak_vitals_guardrail_eat")
        if civling.hunger < rules.food.eat_hunger_threshold and res.food >= reserve_target:
            return _envelope(REST, "weak_vitals_guardrail_rest")
        return _envelope(GATHER_FOOD, "weak_vitals_guardrail_gather_food")

    # 10. Food pressure
    if civling.hunger >= FOOD_PRESSURE_HUNGER or res.food < reserve_target:
        return _envelope(GATHER_FOOD, "food_pressure")

    # 11-13. Construction
    storage_missing = res.storage_capacity <= 0
    needs_shelter = res.shelter_capacity < shelter_target(world, rules)
    storage_cost = rules.storage.wood_cost_per_unit
    if storage_missing and res.wood >= storage_cost:
        return _envelope(BUILD_STORAGE, "missing_storage_build")
    if needs_shelter and res.wood >= shelter_cost:
        return _envelope(BUILD_SHELTER, "insufficient_shelter")
    if storage_missing or needs_shelter:
        return _envelope(GATHER_WOOD, "wood_stockpile_for_construction")

    # 14. Look after the injured
    if can_use_care(civling, world, rules):
        target = most_injured_other(civling, world, below=rules.healing.care_target_health)
        if target is not None:
            return _envelope(CARE, "community_care")

    # 15. Keep some wood around
    if res.wood < WOOD_TARGET:
        return _envelope(GATHER_WOOD, "wood_target")

    # 16. Grow the tribe
    readiness = reproduction_context(civling, world, rules)
    if readiness.ready and sheltered:
        if readiness.first_attempt_urgent:
            return _envelope(REPRODUCE, "reproduction_window_first_attempt")
        if civling.energy >= rules.reproduction.energy_threshold:
            return _envelope(REPRODUCE, "reproduction_window")

    # 17. Personality
    action = pick_personality_action(civling.personality, [EXPLORE, GATHER_WOOD, REST], EXPLORE)
    return _envelope(action, f"personality_default_{action}")


class DeterministicProvider(DecisionProvider):
    """Provider wrapper around :func:`decide_deterministic_action`."""

    name = "deterministic"

    def __init__(self, rules: GameRules = GAME_RULES) -> None:
        self.rules = rules

    async def decide(self, civling: Civling, world: WorldState) -> ActionEnvelope:
        return decide_deterministic_action(civling, world, self.rules)
