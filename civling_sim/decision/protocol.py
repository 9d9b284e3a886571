"""Decision protocol shared by every provider and the tick engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class ActionEnvelope:
    """A provider's answer: what to do and why."""

    action: str
    reason: str
    source: Optional[str] = None
    llm_trace: Optional[dict] = None

    def to_dict(self) -> dict:
        data = {"action": self.action, "reason": self.reason}
        if self.source is not None:
            data["source"] = self.source
        if self.llm_trace is not None:
            data["llmTrace"] = dict(self.llm_trace)
        return data


@dataclass
class DecisionRecord:
    """One audit line per civling per tick."""

    tick: int
    civling_id: str
    civling_name: str
    action: str
    reason: str
    fallback: bool
    source: Optional[str] = None
    llm_trace: Optional[dict] = None

    def to_dict(self) -> dict:
        return {
            "tick": self.tick,
            "civlingId": self.civling_id,
            "civlingName": self.civling_name,
            "action": self.action,
            "reason": self.reason,
            "fallback": self.fallback,
            "source": self.source,
            "llmTrace": self.llm_trace,
        }


class DecisionProvider:
    """Anything that can choose the next action for a civling.

    ``decide`` may suspend (remote calls) and may raise; the engine turns an
    exception into a fallback action.
    """

    name = "provider"

    async def decide(
        self,
        civling: "Civling",  # noqa: F821
        world: "WorldState",  # noqa: F821
    ) -> ActionEnvelope:
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release any held connections."""
        return None
