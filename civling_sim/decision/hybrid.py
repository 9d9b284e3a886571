"""Rule-based by default; escalate to the remote model when it matters."""

from __future__ import annotations

import time
from collections import deque
from typing import Callable

from civling_sim.agents.civling import Civling
from civling_sim.core.config import (
    BUDGET_WINDOW_SECONDS,
    DEFAULT_MAX_CALLS_PER_HOUR,
    EXTINCTION_RISK_HEALTH,
    EXTINCTION_RISK_HUNGER,
    FAILURE_STREAK_LENGTH,
    INNOVATION_PULSE_TICKS,
)
from civling_sim.decision.protocol import ActionEnvelope, DecisionProvider
from civling_sim.world.state import WorldState


class HybridProvider(DecisionProvider):
    """Routes to ``remote`` on extinction risk, failure streaks or innovation
    pulses, within an hourly call budget; otherwise uses ``local``.
    """

    name = "hybrid"

    def __init__(
        self,
        remote: DecisionProvider,
        local: DecisionProvider,
        max_calls_per_hour: int = DEFAULT_MAX_CALLS_PER_HOUR,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.remote = remote
        self.local = local
        self.max_calls_per_hour = max_calls_per_hour
        self._clock = clock
        self._calls: deque[float] = deque()

    def escalation_reason(self, civling: Civling, world: WorldState) -> str:
        """Why the remote model should be asked, or '' when it should not."""
        if civling.health <= EXTINCTION_RISK_HEALTH or civling.hunger >= EXTINCTION_RISK_HUNGER:
            return "extinction_risk"
        if civling.memory.all_contain("Failed", FAILURE_STREAK_LENGTH):
            return "failure_streak"
        if world.tick > 0 and world.tick % INNOVATION_PULSE_TICKS == 0:
            return "innovation_pulse"
        return ""

    def _prune(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= BUDGET_WINDOW_SECONDS:
            self._calls.popleft()

    def calls_in_window(self) -> int:
        self._prune(self._clock())
        return len(self._calls)

    def has_budget(self) -> bool:
        return self.calls_in_window() < self.max_calls_per_hour

    async def decide(self, civling: Civling, world: WorldState) -> ActionEnvelope:
        if self.escalation_reason(civling, world) and self.has_budget():
            self._calls.append(self._clock())
            return await self.remote.decide(civling, world)
        return await self.local.decide(civling, world)

    async def aclose(self) -> None:
        await self.remote.aclose()
        await self.local.aclose()
