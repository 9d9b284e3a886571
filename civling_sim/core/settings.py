"""Runtime settings read from the environment (CLI flags override these)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from civling_sim.core.config import (
    DEFAULT_AI_PROVIDER,
    DEFAULT_DECISION_TIMEOUT_MS,
    DEFAULT_ESCALATION_MODE,
    DEFAULT_LLM_BASE_URL,
    DEFAULT_LLM_MODEL,
    DEFAULT_MAX_CALLS_PER_HOUR,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RESTART_DELAY_MS,
    DEFAULT_SNAPSHOT_EVERY_TICKS,
    DEFAULT_TICK_MS,
    INITIAL_CIVLINGS,
    MAX_CIVLINGS,
)


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _str(env: Mapping[str, str], key: str, default: str) -> str:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


@dataclass
class Settings:
    tick_ms: int = DEFAULT_TICK_MS
    max_civlings: int = MAX_CIVLINGS
    snapshot_every_ticks: int = DEFAULT_SNAPSHOT_EVERY_TICKS
    initial_civlings: int = INITIAL_CIVLINGS
    auto_restart: bool = True
    restart_delay_ms: int = DEFAULT_RESTART_DELAY_MS
    ai_provider: str = DEFAULT_AI_PROVIDER
    ai_escalation_mode: str = DEFAULT_ESCALATION_MODE
    ai_max_calls_per_hour: int = DEFAULT_MAX_CALLS_PER_HOUR
    llm_base_url: str = DEFAULT_LLM_BASE_URL
    llm_model: str = DEFAULT_LLM_MODEL
    llm_api_key: str = ""
    decision_timeout_ms: int = DEFAULT_DECISION_TIMEOUT_MS
    max_retries: int = DEFAULT_MAX_RETRIES

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``SIM_*`` / ``AI_*`` / ``LOCAL_LLM_*`` variables.

        Unparseable values fall back to the defaults.
        """
        env = os.environ if environ is None else environ
        return cls(
            tick_ms=_int(env, "SIM_TICK_MS", DEFAULT_TICK_MS),
            max_civlings=_int(env, "SIM_MAX_CIVLINGS", MAX_CIVLINGS),
            snapshot_every_ticks=_int(env, "SIM_SNAPSHOT_EVERY_TICKS", DEFAULT_SNAPSHOT_EVERY_TICKS),
            initial_civlings=_int(env, "SIM_INITIAL_CIVLINGS", INITIAL_CIVLINGS),
            auto_restart=_bool(env, "SIM_AUTO_RESTART", True),
            restart_delay_ms=_int(env, "SIM_RESTART_DELAY_MS", DEFAULT_RESTART_DELAY_MS),
            ai_provider=_str(env, "AI_PROVIDER", DEFAULT_AI_PROVIDER).lower(),
            ai_escalation_mode=_str(env, "AI_ESCALATION_MODE", DEFAULT_ESCALATION_MODE).lower(),
            ai_max_calls_per_hour=_int(env, "AI_MAX_CALLS_PER_HOUR", DEFAULT_MAX_CALLS_PER_HOUR),
            llm_base_url=_str(env, "LOCAL_LLM_BASE_URL", DEFAULT_LLM_BASE_URL),
            llm_model=_str(env, "LOCAL_LLM_MODEL", DEFAULT_LLM_MODEL),
            llm_api_key=env.get("LOCAL_LLM_API_KEY", "") or "",
            decision_timeout_ms=_int(env, "AI_DECISION_TIMEOUT_MS", DEFAULT_DECISION_TIMEOUT_MS),
            max_retries=_int(env, "AI_MAX_RETRIES", DEFAULT_MAX_RETRIES),
        )
