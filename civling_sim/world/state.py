"""World state: shared resources, calendar, environment, roster, milestones."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from numpy.random import Generator

from civling_sim.agents.civling import Civling, create_civling, generate_id
from civling_sim.core.clock import WorldTime
from civling_sim.core.config import (
    BASE_NAMES,
    BASE_WOOD_CAPACITY,
    INITIAL_ADULT_AGE,
    INITIAL_CIVLINGS,
    INITIAL_NIGHT_TEMPERATURE,
    INITIAL_WEATHER,
    SHELTER_SITE,
    STARTING_FIBER,
    STARTING_FOOD,
    STARTING_WOOD,
    WOOD_CAPACITY_PER_SHELTER_SLOT,
)
from civling_sim.core.rules import GAME_RULES, GameRules


@dataclass
class Resources:
    """Communal stockpile. Counts never go negative."""

    food: int = STARTING_FOOD
    wood: int = STARTING_WOOD
    fiber: int = STARTING_FIBER
    shelter_capacity: int = 0
    storage_capacity: int = 0

    @property
    def wood_capacity(self) -> int:
        return (
            BASE_WOOD_CAPACITY
            + self.storage_capacity
            + self.shelter_capacity * WOOD_CAPACITY_PER_SHELTER_SLOT
        )

    def spend(self, kind: str, amount: int) -> bool:
        """Deduct ``amount`` of ``kind`` if the stock covers it."""
        current = getattr(self, kind)
        if current < amount:
            return False
        setattr(self, kind, current - amount)
        return True

    def add_wood(self, amount: int) -> int:
        """Add wood up to capacity. Returns how much was actually stored."""
        room = max(0, self.wood_capacity - self.wood)
        stored = min(room, amount)
        self.wood += stored
        return stored

    def to_dict(self) -> dict:
        return {
            "food": self.food,
            "wood": self.wood,
            "fiber": self.fiber,
            "shelterCapacity": self.shelter_capacity,
            "storageCapacity": self.storage_capacity,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Resources":
        return cls(
            food=int(data["food"]),
            wood=int(data["wood"]),
            fiber=int(data.get("fiber", 0)),
            shelter_capacity=int(data["shelterCapacity"]),
            storage_capacity=int(data.get("storageCapacity", 0)),
        )


@dataclass
class Environment:
    weather: str = INITIAL_WEATHER
    night_temperature: str = INITIAL_NIGHT_TEMPERATURE

    def to_dict(self) -> dict:
        return {"weather": self.weather, "nightTemperature": self.night_temperature}

    @classmethod
    def from_dict(cls, data: dict) -> "Environment":
        return cls(weather=data["weather"], night_temperature=data["nightTemperature"])


@dataclass
class Extinction:
    ended: bool = False
    cause: Optional[str] = None
    tick: Optional[int] = None

    def to_dict(self) -> dict:
        return {"ended": self.ended, "cause": self.cause, "tick": self.tick}

    @classmethod
    def from_dict(cls, data: dict) -> "Extinction":
        return cls(ended=bool(data["ended"]), cause=data.get("cause"), tick=data.get("tick"))


@dataclass
class WorldState:
    """Everything one run owns. Serialises losslessly via to_dict/from_dict."""

    run_id: str
    tick: int = 0
    restart_count: int = 0
    resources: Resources = field(default_factory=Resources)
    time: WorldTime = field(default_factory=WorldTime)
    environment: Environment = field(default_factory=Environment)
    milestones: list[str] = field(default_factory=list)
    civlings: list[Civling] = field(default_factory=list)
    extinction: Extinction = field(default_factory=Extinction)

    # ------------------------------------------------------------------
    # Roster queries
    # ------------------------------------------------------------------

    def alive_civlings(self) -> list[Civling]:
        return [c for c in self.civlings if c.is_alive]

    def alive_count(self) -> int:
        return sum(1 for c in self.civlings if c.is_alive)

    def alive_adults(self, rules: GameRules = GAME_RULES) -> list[Civling]:
        return [c for c in self.civlings if c.is_alive and c.is_adult(rules)]

    def find(self, civling_id: str) -> Optional[Civling]:
        for c in self.civlings:
            if c.id == civling_id:
                return c
        return None

    def taken_ids(self) -> set[str]:
        return {c.id for c in self.civlings}

    # ------------------------------------------------------------------
    # Shelter occupancy
    # ------------------------------------------------------------------

    def sheltered_ids(self) -> set[str]:
        """Civlings on the shelter site, up to capacity, in roster order."""
        capacity = self.resources.shelter_capacity
        if capacity <= 0:
            return set()
        on_site = [c.id for c in self.civlings if c.is_alive and c.position == SHELTER_SITE]
        return set(on_site[:capacity])

    def is_sheltered(self, civling: Civling) -> bool:
        return civling.id in self.sheltered_ids()

    def shelter_covers_everyone(self) -> bool:
        return self.resources.shelter_capacity >= self.alive_count()

    # ------------------------------------------------------------------
    # Milestones
    # ------------------------------------------------------------------

    def has_milestone(self, name: str) -> bool:
        return name in self.milestones

    def unlock_milestone(self, name: str) -> bool:
        """Append once. Returns True when newly unlocked."""
        if name in self.milestones:
            return False
        self.milestones.append(name)
        return True

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "runId": self.run_id,
            "tick": self.tick,
            "restartCount": self.restart_count,
            "resources": self.resources.to_dict(),
            "time": self.time.to_dict(),
            "environment": self.environment.to_dict(),
            "milestones": list(self.milestones),
            "civlings": [c.to_dict() for c in self.civlings],
            "extinction": self.extinction.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WorldState":
        return cls(
            run_id=data["runId"],
            tick=int(data["tick"]),
            restart_count=int(data.get("restartCount", 0)),
            resources=Resources.from_dict(data["resources"]),
            time=WorldTime.from_dict(data["time"]),
            environment=Environment.from_dict(data["environment"]),
            milestones=list(data.get("milestones", [])),
            civlings=[Civling.from_dict(c) for c in data.get("civlings", [])],
            extinction=Extinction.from_dict(data["extinction"]),
        )


def create_initial_world_state(
    rng: Generator,
    civling_count: int = INITIAL_CIVLINGS,
    run_id: Optional[str] = None,
    restart_count: int = 0,
) -> WorldState:
    """Found a new tribe: adults of alternating gender with a small stockpile."""
    world = WorldState(
        run_id=run_id or generate_id("run", rng),
        restart_count=restart_count,
    )
    for idx in range(civling_count):
        civling = create_civling(
            name=BASE_NAMES[idx % len(BASE_NAMES)],
            gender="male" if idx % 2 == 0 else "female",
            age=INITIAL_ADULT_AGE + idx,
            rng=rng,
            taken_ids=world.taken_ids(),
            position=(idx * 2, 0),
        )
        world.civlings.append(civling)
    return world
