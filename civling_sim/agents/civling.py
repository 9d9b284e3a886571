"""Civling agent: vitals, task, memory, and lifecycle status."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from numpy.random import Generator

from civling_sim.agents.memory import MemoryLog
from civling_sim.agents.personality import Personality, create_random_personality
from civling_sim.core.config import (
    INITIAL_ENERGY,
    INITIAL_HEALTH,
    INITIAL_HUNGER,
    VITAL_MAX,
    VITAL_MIN,
)
from civling_sim.core.rules import GAME_RULES, GameRules


def clamp_vital(value: float) -> float:
    return float(max(VITAL_MIN, min(VITAL_MAX, value)))


@dataclass
class Task:
    """A queued action and how long it still runs."""

    action: str
    total_minutes: int
    remaining_minutes: int
    started_at_tick: int

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "totalMinutes": self.total_minutes,
            "remainingMinutes": self.remaining_minutes,
            "startedAtTick": self.started_at_tick,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        return cls(
            action=data["action"],
            total_minutes=int(data["totalMinutes"]),
            remaining_minutes=int(data["remainingMinutes"]),
            started_at_tick=int(data["startedAtTick"]),
        )


@dataclass
class Civling:
    """A single agent of the tribe."""

    id: str
    name: str
    gender: str
    age: float
    personality: Personality
    health: float = INITIAL_HEALTH
    energy: float = INITIAL_ENERGY
    hunger: float = INITIAL_HUNGER
    status: str = "alive"
    current_task: Optional[Task] = None
    memory: MemoryLog = field(default_factory=MemoryLog)
    reproduction_attempts: int = 0
    babies_born: int = 0
    baby_chance: float = GAME_RULES.reproduction.conception_chance
    reproduce_intent_tick: Optional[int] = None
    food_eaten_last_tick: int = 0
    warm_meal_ticks: int = 0
    gear_charges: int = 0
    shelter_build_attempts: int = 0
    shelter_build_successes: int = 0
    shelter_build_failures: int = 0
    x: int = 0
    y: int = 0

    @property
    def is_alive(self) -> bool:
        return self.status == "alive"

    @property
    def position(self) -> tuple[int, int]:
        return (self.x, self.y)

    @property
    def has_temporary_protection(self) -> bool:
        return self.warm_meal_ticks > 0 or self.gear_charges > 0

    def is_minor(self, rules: GameRules = GAME_RULES) -> bool:
        return self.age < rules.reproduction.min_adult_age

    def is_adult(self, rules: GameRules = GAME_RULES) -> bool:
        return not self.is_minor(rules)

    def add_memory(self, entry: str) -> None:
        self.memory.add(entry)

    def adjust_vitals(
        self,
        hunger: float = 0.0,
        energy: float = 0.0,
        health: float = 0.0,
    ) -> None:
        """Apply deltas and clamp every vital into [0, 100]."""
        self.hunger = clamp_vital(self.hunger + hunger)
        self.energy = clamp_vital(self.energy + energy)
        self.health = clamp_vital(self.health + health)

    def mark_dead_if_needed(self) -> bool:
        """Transition to dead on zero health or full hunger. Returns True on the transition."""
        if self.is_alive and (self.health <= 0 or self.hunger >= VITAL_MAX):
            self.health = 0.0
            self.status = "dead"
            self.current_task = None
            return True
        return False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "gender": self.gender,
            "age": self.age,
            "health": self.health,
            "energy": self.energy,
            "hunger": self.hunger,
            "status": self.status,
            "personality": self.personality.to_dict(),
            "currentTask": self.current_task.to_dict() if self.current_task else None,
            "memory": self.memory.to_list(),
            "reproductionAttempts": self.reproduction_attempts,
            "babiesBorn": self.babies_born,
            "babyChance": self.baby_chance,
            "reproduceIntentTick": self.reproduce_intent_tick,
            "foodEatenLastTick": self.food_eaten_last_tick,
            "warmMealTicks": self.warm_meal_ticks,
            "gearCharges": self.gear_charges,
            "shelterBuildAttempts": self.shelter_build_attempts,
            "shelterBuildSuccesses": self.shelter_build_successes,
            "shelterBuildFailures": self.shelter_build_failures,
            "x": self.x,
            "y": self.y,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Civling":
        task = data.get("currentTask")
        return cls(
            id=data["id"],
            name=data["name"],
            gender=data["gender"],
            age=float(data["age"]),
            personality=Personality.from_dict(data["personality"]),
            health=float(data["health"]),
            energy=float(data["energy"]),
            hunger=float(data["hunger"]),
            status=data["status"],
            current_task=Task.from_dict(task) if task else None,
            memory=MemoryLog(data.get("memory", [])),
            reproduction_attempts=int(data.get("reproductionAttempts", 0)),
            babies_born=int(data.get("babiesBorn", 0)),
            baby_chance=float(data.get("babyChance", GAME_RULES.reproduction.conception_chance)),
            reproduce_intent_tick=data.get("reproduceIntentTick"),
            food_eaten_last_tick=int(data.get("foodEatenLastTick", 0)),
            warm_meal_ticks=int(data.get("warmMealTicks", 0)),
            gear_charges=int(data.get("gearCharges", 0)),
            shelter_build_attempts=int(data.get("shelterBuildAttempts", 0)),
            shelter_build_successes=int(data.get("shelterBuildSuccesses", 0)),
            shelter_build_failures=int(data.get("shelterBuildFailures", 0)),
            x=int(data.get("x", 0)),
            y=int(data.get("y", 0)),
        )


def generate_id(prefix: str, rng: Generator, taken: Optional[set[str]] = None) -> str:
    """Random hex id drawn from the run's generator, unique within ``taken``."""
    taken = taken or set()
    while True:
        candidate = f"{prefix}-{int(rng.integers(0, 16 ** 6)):06x}"
        if candidate not in taken:
            return candidate


def create_civling(
    name: str,
    gender: str,
    age: float,
    rng: Generator,
    taken_ids: Optional[set[str]] = None,
    hunger: float = INITIAL_HUNGER,
    baby_chance: Optional[float] = None,
    position: tuple[int, int] = (0, 0),
) -> Civling:
    """Create a healthy civling with a random personality."""
    personality = create_random_personality(rng)
    civling = Civling(
        id=generate_id("civ", rng, taken_ids),
        name=name,
        gender=gender,
        age=age,
        personality=personality,
        hunger=hunger,
        baby_chance=(
            GAME_RULES.reproduction.conception_chance if baby_chance is None else baby_chance
        ),
        x=position[0],
        y=position[1],
    )
    civling.add_memory(f"Personality: {personality.archetype} ({personality.way_to_act}).")
    return civling
