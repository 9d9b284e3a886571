"""Game rule tree: thresholds and costs that a run may override from JSON."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Optional


@dataclass(frozen=True)
class FoodRules:
    reserve_per_alive_civling: float = 4.0
    reserve_minimum: float = 6.0
    reserve_safety_multiplier: float = 1.25
    eat_hunger_threshold: float = 60.0
    eat_hunger_relief: float = 25.0
    eat_energy_gain: float = 8.0


@dataclass(frozen=True)
class ShelterRules:
    wood_cost_per_unit: int = 4
    capacity_per_unit: int = 2
    rest_energy_bonus_when_sheltered: float = 8.0


@dataclass(frozen=True)
class StorageRules:
    wood_cost_per_unit: int = 8
    wood_capacity_per_unit: int = 24


@dataclass(frozen=True)
class SurvivalRules:
    collapse_hunger_threshold: float = 90.0
    critical_hunger_threshold: float = 80.0
    wood_block_hunger_threshold: float = 70.0
    starvation_hunger_risk_threshold: float = 70.0
    food_risk_threshold: float = 0.0
    low_energy_risk_threshold: float = 20.0
    emergency_energy_threshold: float = 10.0
    weak_health_threshold: float = 40.0
    starvation_damage_hunger: float = 85.0
    starvation_damage: float = 4.0
    minor_low_energy_threshold: float = 35.0
    unsupervised_minor_damage: float = 2.0


@dataclass(frozen=True)
class ReproductionRules:
    enabled: bool = True
    requires_male_and_female: bool = True
    requires_shelter_capacity_available: bool = True
    min_adult_age: float = 18.0
    conception_chance: float = 0.35
    min_energy: float = 45.0
    max_hunger: float = 70.0
    min_health: float = 60.0
    first_attempt_age_offset: float = 8.0
    energy_threshold: float = 60.0


@dataclass(frozen=True)
class HealingRules:
    fire_night_shelter_heal: float = 2.0
    agriculture_nutrition_heal: float = 2.0
    agriculture_hunger_threshold: float = 40.0
    care_min_energy: float = 30.0
    care_max_hunger: float = 75.0
    care_target_health: float = 80.0


@dataclass(frozen=True)
class WeatherRules:
    snow_health_damage: float = 10.0
    snow_energy_damage: float = 8.0
    snow_weak_extra_damage: float = 6.0
    snow_weak_energy: float = 25.0
    snow_weak_hunger: float = 80.0
    snow_extra_hunger: float = 1.0
    cold_night_health_damage: float = 4.0
    cold_night_energy_damage: float = 6.0
    cold_night_sheltered_energy_cost: float = 1.0
    rain_energy_damage: float = 3.0
    warm_meal_ticks: int = 16
    gear_charges_per_craft: int = 3


@dataclass(frozen=True)
class GameRules:
    """The complete rule tree handed to the engine and the providers."""

    food: FoodRules = field(default_factory=FoodRules)
    shelter: ShelterRules = field(default_factory=ShelterRules)
    storage: StorageRules = field(default_factory=StorageRules)
    survival: SurvivalRules = field(default_factory=SurvivalRules)
    reproduction: ReproductionRules = field(default_factory=ReproductionRules)
    healing: HealingRules = field(default_factory=HealingRules)
    weather: WeatherRules = field(default_factory=WeatherRules)

    def to_dict(self) -> dict:
        return asdict(self)

    def with_overrides(self, overrides: dict) -> "GameRules":
        """Return a copy with the given ``{section: {key: value}}`` merged in.

        Unknown sections and keys are ignored.
        """
        updated = {}
        for section in fields(self):
            patch = overrides.get(section.name)
            if not isinstance(patch, dict):
                continue
            current = getattr(self, section.name)
            known = {f.name for f in fields(current)}
            values = {k: v for k, v in patch.items() if k in known}
            if values:
                updated[section.name] = replace(current, **values)
        return replace(self, **updated)


GAME_RULES = GameRules()


def load_game_rules(path: Optional[str] = None) -> GameRules:
    """Load rule overrides from a JSON file on top of the defaults.

    A missing or unreadable file yields the defaults.
    """
    if not path or not os.path.exists(path):
        return GAME_RULES
    try:
        with open(path, "r", encoding="utf-8") as f:
            overrides = json.load(f)
    except (OSError, ValueError):
        return GAME_RULES
    if not isinstance(overrides, dict):
        return GAME_RULES
    return GAME_RULES.with_overrides(overrides)
