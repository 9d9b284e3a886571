"""Personality archetypes and bias-weighted action picking."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from numpy.random import Generator

from civling_sim.core.config import (
    BUILD_SHELTER,
    CARE,
    EXPLORE,
    GATHER_FOOD,
    GATHER_WOOD,
    LEARN,
    PLAY,
    REPRODUCE,
    REST,
)


@dataclass
class Personality:
    """Archetype, behaviour style, goals, and per-action bias weights."""

    archetype: str
    way_to_act: str
    goals: list[str] = field(default_factory=list)
    action_biases: dict[str, float] = field(default_factory=dict)

    def bias(self, action: str) -> float:
        """Bias for an action; actions outside the table weigh 1.0."""
        return float(self.action_biases.get(action, 1.0))

    def label(self) -> str:
        return f"{self.archetype} ({self.way_to_act})"

    def to_dict(self) -> dict:
        return {
            "archetype": self.archetype,
            "wayToAct": self.way_to_act,
            "goals": list(self.goals),
            "actionBiases": dict(self.action_biases),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Personality":
        return cls(
            archetype=data["archetype"],
            way_to_act=data["wayToAct"],
            goals=list(data.get("goals", [])),
            action_biases={k: float(v) for k, v in data.get("actionBiases", {}).items()},
        )


# (archetype, way to act, goals, biases)
_ARCHETYPES: list[tuple[str, str, tuple[str, str], dict[str, float]]] = [
    ("Steward", "methodical", ("Keep the tribe fed", "Maintain reliable shelter"), {
        PLAY: 0.9, LEARN: 1.05, GATHER_FOOD: 1.35, GATHER_WOOD: 1.1,
        BUILD_SHELTER: 1.2, CARE: 1.25, REST: 0.9, EXPLORE: 0.7, REPRODUCE: 1.0,
    }),
    ("Trailblazer", "bold", ("Discover useful terrain", "Push growth opportunities"), {
        PLAY: 1.05, LEARN: 1.15, GATHER_FOOD: 0.9, GATHER_WOOD: 0.9,
        BUILD_SHELTER: 0.8, CARE: 0.8, REST: 0.7, EXPLORE: 1.45, REPRODUCE: 1.1,
    }),
    ("Builder", "deliberate", ("Expand shelter capacity", "Stockpile wood for projects"), {
        PLAY: 0.8, LEARN: 1.3, GATHER_FOOD: 0.95, GATHER_WOOD: 1.35,
        BUILD_SHELTER: 1.45, CARE: 0.9, REST: 0.85, EXPLORE: 0.75, REPRODUCE: 0.95,
    }),
    ("Caretaker", "protective", ("Keep everyone healthy", "Create stable family growth"), {
        PLAY: 1.2, LEARN: 1.2, GATHER_FOOD: 1.25, GATHER_WOOD: 0.9,
        BUILD_SHELTER: 1.1, CARE: 1.45, REST: 1.0, EXPLORE: 0.65, REPRODUCE: 1.25,
    }),
    ("Opportunist", "adaptive", ("Exploit momentum quickly", "Balance risk and reward"), {
        PLAY: 1.1, LEARN: 1.25, GATHER_FOOD: 1.0, GATHER_WOOD: 1.0,
        BUILD_SHELTER: 1.0, CARE: 1.0, REST: 0.85, EXPLORE: 1.2, REPRODUCE: 1.1,
    }),
    ("Sage", "patient", ("Avoid avoidable losses", "Sustain long-term reserves"), {
        PLAY: 0.75, LEARN: 1.4, GATHER_FOOD: 1.2, GATHER_WOOD: 1.0,
        BUILD_SHELTER: 1.15, CARE: 1.2, REST: 1.05, EXPLORE: 0.7, REPRODUCE: 0.9,
    }),
]

ARCHETYPE_NAMES: list[str] = [a[0] for a in _ARCHETYPES]


def create_personality(archetype: str) -> Personality:
    """Build the personality for a named archetype with its goals in table order."""
    for name, way, goals, biases in _ARCHETYPES:
        if name == archetype:
            return Personality(name, way, list(goals), dict(biases))
    raise KeyError(f"Unknown archetype: {archetype}")


def create_random_personality(rng: Generator) -> Personality:
    """Pick an archetype at random and shuffle its two goals."""
    name, way, goals, biases = _ARCHETYPES[int(rng.integers(0, len(_ARCHETYPES)))]
    goal_a, goal_b = goals
    ordered = [goal_a, goal_b] if rng.random() < 0.5 else [goal_b, goal_a]
    return Personality(name, way, ordered, dict(biases))


def pick_personality_action(
    personality: Personality,
    candidates: Sequence[str],
    fallback: str,
) -> str:
    """Highest-bias candidate; the first one wins ties."""
    best_action = fallback
    best_score = float("-inf")
    for action in candidates:
        score = personality.bias(action)
        if score > best_score:
            best_score = score
            best_action = action
    return best_action
