"""Derived quantities every decision maker needs: targets, allow-lists, readiness."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from civling_sim.agents.civling import Civling
from civling_sim.core.config import (
    ACTION_VALUES,
    ADULT_ACTIONS,
    CARE,
    CRAFT_CLOTHES,
    LEARN,
    MILESTONE_TOOLS,
    MINOR_ACTIONS,
    PREPARE_WARM_MEAL,
    REST,
)
from civling_sim.core.rules import GAME_RULES, GameRules
from civling_sim.world.state import WorldState


def food_reserve_target(world: WorldState, rules: GameRules = GAME_RULES) -> float:
    food = rules.food
    per_capita = world.alive_count() * food.reserve_per_alive_civling * food.reserve_safety_multiplier
    return max(food.reserve_minimum, per_capita)


def shelter_target(world: WorldState, rules: GameRules = GAME_RULES) -> int:
    """Alive count, plus a spare slot when births need free capacity."""
    target = world.alive_count()
    repro = rules.reproduction
    if repro.enabled and repro.requires_shelter_capacity_available:
        target += 1
    return target


def shelter_short(world: WorldState) -> bool:
    return world.resources.shelter_capacity < world.alive_count()


def can_use_care(civling: Civling, world: WorldState, rules: GameRules = GAME_RULES) -> bool:
    healing = rules.healing
    return (
        world.has_milestone(MILESTONE_TOOLS)
        and civling.energy >= healing.care_min_energy
        and civling.hunger <= healing.care_max_hunger
    )


def allowed_actions(civling: Civling, world: WorldState, rules: GameRules = GAME_RULES) -> list[str]:
    if civling.is_minor(rules):
        return list(MINOR_ACTIONS)
    actions = list(ADULT_ACTIONS)
    if not can_use_care(civling, world, rules):
        actions.remove(CARE)
    return actions


def default_safe_action(civling: Civling, rules: GameRules = GAME_RULES) -> str:
    return LEARN if civling.is_minor(rules) else REST


def can_prepare_warm_meal(world: WorldState) -> bool:
    values = ACTION_VALUES[PREPARE_WARM_MEAL]
    return (
        world.resources.food >= values["food_cost"]
        and world.resources.wood >= values["wood_cost"]
    )


def can_craft_clothes(world: WorldState) -> bool:
    return world.resources.fiber >= ACTION_VALUES[CRAFT_CLOTHES]["fiber_cost"]


def most_injured_other(
    civling: Civling,
    world: WorldState,
    below: Optional[float] = None,
) -> Optional[Civling]:
    """Lowest-health alive civling other than ``civling``."""
    others = [c for c in world.alive_civlings() if c.id != civling.id]
    if below is not None:
        others = [c for c in others if c.health < below]
    if not others:
        return None
    return min(others, key=lambda c: c.health)


@dataclass
class ReproductionContext:
    ready: bool
    reason: str
    first_attempt_urgent: bool = False
    partner_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "ready": self.ready,
            "reason": self.reason,
            "firstAttemptUrgent": self.first_attempt_urgent,
            "eligiblePartners": len(self.partner_ids),
        }


def eligible_partners(civling: Civling, world: WorldState, rules: GameRules = GAME_RULES) -> list[Civling]:
    partners = []
    for other in world.alive_adults(rules):
        if other.id == civling.id:
            continue
        if rules.reproduction.requires_male_and_female and other.gender == civling.gender:
            continue
        partners.append(other)
    return partners


def reproduction_context(
    civling: Civling,
    world: WorldState,
    rules: GameRules = GAME_RULES,
) -> ReproductionContext:
    """Why this civling can or cannot try for a child right now."""
    repro = rules.reproduction
    urgent = (
        civling.age >= repro.min_adult_age + repro.first_attempt_age_offset
        and civling.reproduction_attempts == 0
    )
    if not repro.enabled:
        return ReproductionContext(False, "disabled", urgent)
    if civling.is_minor(rules):
        return ReproductionContext(False, "underage", urgent)
    if (
        civling.energy < repro.min_energy
        or civling.hunger > repro.max_hunger
        or civling.health < repro.min_health
    ):
        return ReproductionContext(False, "low_vitals", urgent)
    if world.resources.food < food_reserve_target(world, rules):
        return ReproductionContext(False, "food_reserve_low", urgent)
    if (
        repro.requires_shelter_capacity_available
        and world.resources.shelter_capacity <= world.alive_count()
    ):
        return ReproductionContext(False, "no_shelter_capacity", urgent)
    partners = eligible_partners(civling, world, rules)
    if not partners:
        return ReproductionContext(False, "no_eligible_partner", urgent)
    return ReproductionContext(True, "ready", urgent, [p.id for p in partners])
