"""Build the configured decision provider."""

from __future__ import annotations

import time
from typing import Callable, Optional

from civling_sim.core.rules import GAME_RULES, GameRules
from civling_sim.core.settings import Settings
from civling_sim.decision.deterministic import DeterministicProvider
from civling_sim.decision.hybrid import HybridProvider
from civling_sim.decision.protocol import DecisionProvider
from civling_sim.decision.remote import RemoteDecisionProvider
from civling_sim.viz.logger import SimLogger


def create_provider(
    settings: Settings,
    rules: GameRules = GAME_RULES,
    logger: Optional[SimLogger] = None,
    clock: Callable[[], float] = time.time,
) -> DecisionProvider:
    deterministic = DeterministicProvider(rules)
    if settings.ai_provider != "local_api":
        return deterministic

    remote = RemoteDecisionProvider(
        base_url=settings.llm_base_url,
        model=settings.llm_model,
        api_key=settings.llm_api_key,
        timeout_s=settings.decision_timeout_ms / 1000.0,
        max_retries=settings.max_retries,
        rules=rules,
        logger=logger,
    )
    if settings.ai_escalation_mode == "hybrid":
        return HybridProvider(
            remote=remote,
            local=deterministic,
            max_calls_per_hour=settings.ai_max_calls_per_hour,
            clock=clock,
        )
    return remote
