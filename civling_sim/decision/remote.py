"""Decision provider backed by an OpenAI-compatible chat-completions endpoint."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

import httpx

from civling_sim.agents.civling import Civling
from civling_sim.core.config import (
    ACTIONS,
    ANTI_LOOP_MAX_HUNGER,
    ANTI_LOOP_MEMORY_WINDOW,
    ANTI_LOOP_MIN_REPEATS,
    DEFAULT_DECISION_TIMEOUT_MS,
    DEFAULT_LLM_BASE_URL,
    DEFAULT_LLM_MODEL,
    DEFAULT_MAX_RETRIES,
    EAT,
    GATHER_FOOD,
    PREPARE_WARM_MEAL,
    REMOTE_SYSTEM_MESSAGE,
    REMOTE_TEMPERATURE,
    REST,
    TRACE_CLIP_CHARS,
)
from civling_sim.core.rules import GAME_RULES, GameRules
from civling_sim.decision.context import food_reserve_target
from civling_sim.decision.deterministic import decide_deterministic_action
from civling_sim.decision.parsing import parse_action_envelope
from civling_sim.decision.prompt import build_decision_prompt
from civling_sim.decision.protocol import ActionEnvelope, DecisionProvider
from civling_sim.viz.logger import SimLogger
from civling_sim.world.state import WorldState

# Actions that never need a survival override
_SURVIVAL_SAFE_ACTIONS = frozenset({EAT, REST, PREPARE_WARM_MEAL, GATHER_FOOD})


def clip(text: Optional[str], limit: int = TRACE_CLIP_CHARS) -> str:
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class RemoteDecisionProvider(DecisionProvider):
    """Asks a chat model for the next action, with retries and safety overrides."""

    name = "local_api"

    def __init__(
        self,
        base_url: str = DEFAULT_LLM_BASE_URL,
        model: str = DEFAULT_LLM_MODEL,
        api_key: str = "",
        timeout_s: float = DEFAULT_DECISION_TIMEOUT_MS / 1000.0,
        max_retries: int = DEFAULT_MAX_RETRIES,
        rules: GameRules = GAME_RULES,
        logger: Optional[SimLogger] = None,
        client: Optional[httpx.AsyncClient] = None,
        policy: Callable[[Civling, WorldState, GameRules], ActionEnvelope] = decide_deterministic_action,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.timeout_s = timeout_s
        self.max_retries = max(0, max_retries)
        self.rules = rules
        self.logger = logger or SimLogger(stdout=False)
        self._client = client
        self._owns_client = client is None
        self._policy = policy

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _body(self, prompt: str, json_mode: bool) -> dict:
        body = {
            "model": self.model,
            "temperature": REMOTE_TEMPERATURE,
            "messages": [
                {"role": "system", "content": REMOTE_SYSTEM_MESSAGE},
                {"role": "user", "content": prompt},
            ],
        }
        if json_mode:
            body["response_format"] = {"type": "json_object"}
        return body

    async def _post(self, body: dict) -> httpx.Response:
        client = self._get_client()
        return await asyncio.wait_for(
            client.post(self.endpoint, json=body, headers=self._headers(), timeout=self.timeout_s),
            timeout=self.timeout_s,
        )

    async def _request(self, prompt: str) -> httpx.Response:
        """One attempt. A 400 is retried once without JSON mode."""
        response = await self._post(self._body(prompt, json_mode=True))
        if response.status_code == 400:
            response = await self._post(self._body(prompt, json_mode=False))
        return response

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------

    async def decide(self, civling: Civling, world: WorldState) -> ActionEnvelope:
        prompt = build_decision_prompt(civling, world, self.rules)
        error = ""
        raw_text = ""

        for attempt in range(1, self.max_retries + 2):
            try:
                response = await self._request(prompt)
            except (httpx.HTTPError, asyncio.TimeoutError) as exc:
                error = f"{type(exc).__name__}: {exc}"
                self._log_failure(civling, world, attempt, error)
                continue

            raw_text = response.text
            if not response.is_success:
                error = f"http_status_{response.status_code}"
                self._log_failure(civling, world, attempt, error)
                continue

            try:
                content = response.json()["choices"][0]["message"]["content"]
            except (ValueError, KeyError, IndexError, TypeError):
                error = "unexpected_response_shape"
                self._log_failure(civling, world, attempt, error)
                continue

            parsed = parse_action_envelope(content)
            if not parsed.ok:
                error = f"parse_{parsed.status}"
                self._log_failure(civling, world, attempt, error)
                continue
            if parsed.action not in ACTIONS:
                error = f"unknown_action:{parsed.action}"
                self._log_failure(civling, world, attempt, error)
                continue

            trace = {
                "status": "ok",
                "attempts": attempt,
                "prompt": clip(prompt),
                "response": clip(raw_text),
            }
            envelope = ActionEnvelope(parsed.action, parsed.reason, "local_api", trace)
            return self.apply_overrides(envelope, civling, world)

        self.logger.log(
            SimLogger.PROVIDER,
            f"{civling.name}: remote decision failed, resting ({error})",
            civling_ids=[civling.id],
            tick=world.tick,
            error=error,
        )
        trace = {
            "status": "fallback",
            "attempts": self.max_retries + 1,
            "error": error,
            "prompt": clip(prompt),
            "response": clip(raw_text),
        }
        return ActionEnvelope(REST, "local_api_fallback_rest", "local_api", trace)

    def _log_failure(self, civling: Civling, world: WorldState, attempt: int, error: str) -> None:
        self.logger.log(
            SimLogger.PROVIDER,
            f"{civling.name}: attempt {attempt} failed ({error})",
            civling_ids=[civling.id],
            tick=world.tick,
            attempt=attempt,
            error=error,
        )

    # ------------------------------------------------------------------
    # Overrides
    # ------------------------------------------------------------------

    def _is_food_loop(self, envelope: ActionEnvelope, civling: Civling, world: WorldState) -> bool:
        return (
            envelope.action == GATHER_FOOD
            and civling.hunger <= ANTI_LOOP_MAX_HUNGER
            and world.resources.food >= food_reserve_target(world, self.rules)
            and civling.memory.count_prefix("Gathered food", ANTI_LOOP_MEMORY_WINDOW) >= ANTI_LOOP_MIN_REPEATS
        )

    def _is_survival_risk(self, envelope: ActionEnvelope, civling: Civling, world: WorldState) -> bool:
        survival = self.rules.survival
        at_risk = (
            civling.hunger >= survival.starvation_hunger_risk_threshold
            or world.resources.food <= survival.food_risk_threshold
            or civling.energy <= survival.low_energy_risk_threshold
        )
        return at_risk and envelope.action not in _SURVIVAL_SAFE_ACTIONS

    def apply_overrides(self, envelope: ActionEnvelope, civling: Civling, world: WorldState) -> ActionEnvelope:
        """Swap in the rule-based choice when the model loops or ignores danger."""
        if self._is_food_loop(envelope, civling, world):
            alternative = self._policy(civling, world, self.rules)
            if alternative.action != GATHER_FOOD:
                envelope = ActionEnvelope(
                    alternative.action,
                    f"anti_loop_override: {envelope.reason}",
                    "local_api_adjusted",
                    envelope.llm_trace,
                )
        if self._is_survival_risk(envelope, civling, world):
            alternative = self._policy(civling, world, self.rules)
            if alternative.action != envelope.action:
                envelope = ActionEnvelope(
                    alternative.action,
                    f"survival_override: {envelope.reason}",
                    "local_api_adjusted",
                    envelope.llm_trace,
                )
        return envelope
