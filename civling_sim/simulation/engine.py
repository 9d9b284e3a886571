"""Main simulation loop: the eight-step tick cycle."""

from __future__ import annotations

from collections import deque
from typing import Callable, Optional

import numpy as np
from numpy.random import Generator

from civling_sim.agents.civling import Civling, create_civling
from civling_sim.core.config import (
    AGE_YEARS_PER_TICK,
    AGRICULTURE_FOOD_THRESHOLD,
    BASE_NAMES,
    DECISION_LOG_LIMIT,
    EAT,
    HUNGER_PER_TICK,
    INITIAL_CIVLINGS,
    MAX_CIVLINGS,
    MILESTONE_AGRICULTURE,
    MILESTONE_FIRE,
    MILESTONE_SHELTER,
    MILESTONE_TOOLS,
    MINUTES_PER_TICK,
    NEWBORN_HUNGER,
    REST,
    TOOLS_WOOD_THRESHOLD,
)
from civling_sim.core.rules import GAME_RULES, GameRules
from civling_sim.decision.context import allowed_actions, default_safe_action
from civling_sim.decision.protocol import ActionEnvelope, DecisionProvider, DecisionRecord
from civling_sim.simulation.actions import progress_task, start_task
from civling_sim.simulation.metrics import MetricsCollector
from civling_sim.viz.logger import SimLogger
from civling_sim.world.climate import Climate, is_harsh
from civling_sim.world.state import Extinction, WorldState, create_initial_world_state


class SimulationEngine:
    """Advances one world, tick by tick, asking ``provider`` for decisions."""

    def __init__(
        self,
        provider: DecisionProvider,
        world: Optional[WorldState] = None,
        rng: Optional[Generator] = None,
        seed: int = 42,
        rules: GameRules = GAME_RULES,
        logger: Optional[SimLogger] = None,
        max_civlings: int = MAX_CIVLINGS,
        initial_civlings: int = INITIAL_CIVLINGS,
        on_decision: Optional[Callable[[DecisionRecord], None]] = None,
    ) -> None:
        self.rng: Generator = rng if rng is not None else np.random.default_rng(seed)
        self.provider = provider
        self.rules = rules
        self.max_civlings = max_civlings
        self.climate = Climate(self.rng)
        self.metrics = MetricsCollector()
        self.logger = logger or SimLogger(stdout=False)
        self.decision_log: deque[DecisionRecord] = deque(maxlen=DECISION_LOG_LIMIT)
        self._on_decision = on_decision
        self.world = world or create_initial_world_state(self.rng, initial_civlings)
        self.logger.set_run(self.world.run_id)

    def reset(self, world: WorldState) -> None:
        """Start owning a fresh world (a restart)."""
        self.world = world
        self.decision_log.clear()
        self.logger.set_run(world.run_id)

    @property
    def is_extinct(self) -> bool:
        return self.world.extinction.ended

    async def run(self, ticks: int) -> None:
        """Run up to ``ticks`` ticks, stopping early on extinction."""
        for _ in range(ticks):
            if self.is_extinct:
                break
            await self.tick()

    async def tick(self) -> list[DecisionRecord]:
        """One tick of simulation. A no-op once the tribe is extinct."""
        world = self.world
        if world.extinction.ended:
            return []

        # 1. CLOCK: calendar and daily weather
        world.tick += 1
        if world.time.advance(MINUTES_PER_TICK):
            self.climate.advance_day(world.environment, world.time.month)
            self.logger.log(
                SimLogger.WEATHER,
                f"New day {world.time.label()}: {world.environment.weather}, "
                f"{world.environment.night_temperature} night ahead",
                tick=world.tick,
            )

        # 2. AGENTS: decisions and task progress (newborns wait a tick)
        roster = world.alive_civlings()
        for c in roster:
            c.reproduce_intent_tick = None
            c.food_eaten_last_tick = 0
        records: list[DecisionRecord] = []
        for c in roster:
            if not c.is_alive:
                continue
            records.append(await self._process_civling(c))

        # 3. PASSIVE: hunger, ageing, background eating
        for c in world.alive_civlings():
            self._apply_passive_effects(c)

        # 4. WEATHER: exposure and shelter
        self._apply_weather_exposure()

        # 5. STATUS
        for c in world.civlings:
            if c.mark_dead_if_needed():
                self.metrics.record_death()
                self.logger.log(
                    SimLogger.LIFECYCLE,
                    f"{c.name} died (hunger {c.hunger:.0f}, energy {c.energy:.0f})",
                    civling_ids=[c.id],
                    tick=world.tick,
                )

        # 6. EXTINCTION
        if world.alive_count() == 0:
            world.extinction = Extinction(ended=True, cause="all_civlings_dead", tick=world.tick)
            self.logger.log(
                SimLogger.EXTINCTION,
                f"The tribe of run {world.run_id} is gone after {world.tick} ticks",
                tick=world.tick,
                milestones=list(world.milestones),
            )
            self._finish_tick(records)
            return records

        # 7. REPRODUCTION
        self._resolve_reproduction()

        # 8. MILESTONES
        self._check_milestones()

        self._finish_tick(records)
        return records

    def _finish_tick(self, records: list[DecisionRecord]) -> None:
        self.metrics.collect_tick(self.world, records)
        self.logger.flush_tick(self.world.tick)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def _safety_interrupt(self, civling: Civling) -> Optional[ActionEnvelope]:
        """Conditions that override whatever is queued or would be chosen."""
        survival = self.rules.survival
        if civling.hunger >= survival.collapse_hunger_threshold and self.world.resources.food > 0:
            return ActionEnvelope(EAT, "starvation_collapse_emergency_eat", "system")
        if civling.energy <= survival.emergency_energy_threshold:
            return ActionEnvelope(REST, "emergency_low_energy_rest", "system")
        return None

    async def _request_decision(self, civling: Civling) -> tuple[ActionEnvelope, bool]:
        """Ask the provider, then validate. Returns (envelope, fallback)."""
        world = self.world
        safe_action = default_safe_action(civling, self.rules)
        try:
            envelope = await self.provider.decide(civling, world)
        except Exception as exc:
            self.logger.log(
                SimLogger.PROVIDER,
                f"{civling.name}: decision failed ({type(exc).__name__}: {exc})",
                civling_ids=[civling.id],
                tick=world.tick,
            )
            return ActionEnvelope(safe_action, "fallback_after_decision_error", "fallback"), True

        if not isinstance(envelope, ActionEnvelope):
            return ActionEnvelope(safe_action, "invalid_envelope", "fallback"), True
        if envelope.action not in allowed_actions(civling, world, self.rules):
            return ActionEnvelope(
                safe_action,
                envelope.reason or "invalid_action",
                envelope.source,
                envelope.llm_trace,
            ), True
        return envelope, False

    def _record(self, civling: Civling, envelope: ActionEnvelope, fallback: bool) -> DecisionRecord:
        record = DecisionRecord(
            tick=self.world.tick,
            civling_id=civling.id,
            civling_name=civling.name,
            action=envelope.action,
            reason=envelope.reason,
            fallback=fallback,
            source=envelope.source,
            llm_trace=envelope.llm_trace,
        )
        self.decision_log.append(record)
        self.logger.log(
            SimLogger.DECISION,
            f"{civling.name} -> {envelope.action} ({envelope.reason})",
            civling_ids=[civling.id],
            tick=self.world.tick,
            source=envelope.source,
            fallback=fallback,
        )
        if self._on_decision is not None:
            self._on_decision(record)
        return record

    async def _process_civling(self, civling: Civling) -> DecisionRecord:
        world = self.world
        task = civling.current_task
        forced = self._safety_interrupt(civling)

        if forced is not None and (task is None or task.action != forced.action):
            if task is not None:
                civling.add_memory(f"Dropped {task.action} to {forced.action}.")
            start_task(world, civling, forced.action, self.rng)
            record = self._record(civling, forced, fallback=True)
        elif task is None:
            envelope, fallback = await self._request_decision(civling)
            start_task(world, civling, envelope.action, self.rng)
            record = self._record(civling, envelope, fallback)
        else:
            record = self._record(
                civling, ActionEnvelope(task.action, "task_in_progress", "task"), fallback=False,
            )

        completed = progress_task(world, civling, self.rng, self.rules)
        if completed is not None:
            self.logger.log(
                SimLogger.TASK,
                f"{civling.name} finished {completed}",
                civling_ids=[civling.id],
                tick=world.tick,
            )
        return record

    # ------------------------------------------------------------------
    # Passive effects
    # ------------------------------------------------------------------

    def _apply_passive_effects(self, civling: Civling) -> None:
        rules = self.rules
        was_minor = civling.is_minor(rules)
        civling.age += AGE_YEARS_PER_TICK
        civling.adjust_vitals(hunger=HUNGER_PER_TICK)
        if was_minor and civling.is_adult(rules):
            civling.add_memory("Came of age.")
            self.logger.log(
                SimLogger.LIFECYCLE, f"{civling.name} came of age",
                civling_ids=[civling.id], tick=self.world.tick,
            )

        # Background eating from the shared stores
        if civling.hunger >= rules.food.eat_hunger_threshold and self.world.resources.spend("food", 1):
            civling.adjust_vitals(hunger=-rules.food.eat_hunger_relief, energy=rules.food.eat_energy_gain)
            civling.food_eaten_last_tick += 1

        if civling.hunger >= rules.survival.starvation_damage_hunger:
            civling.adjust_vitals(health=-rules.survival.starvation_damage)

        if civling.is_minor(rules) and not self.world.alive_adults(rules):
            civling.adjust_vitals(health=-rules.survival.unsupervised_minor_damage)

        healing = rules.healing
        if (
            self.world.has_milestone(MILESTONE_AGRICULTURE)
            and civling.food_eaten_last_tick > 0
            and civling.hunger <= healing.agriculture_hunger_threshold
        ):
            civling.adjust_vitals(health=healing.agriculture_nutrition_heal)

    def _apply_weather_exposure(self) -> None:
        world = self.world
        weather_rules = self.rules.weather
        env = world.environment
        night = world.time.is_night
        cold_night = night and env.night_temperature == "cold"
        harsh = is_harsh(env.weather, world.time.phase, env.night_temperature)
        inside = world.sheltered_ids()

        for c in world.alive_civlings():
            if env.weather == "snowy":
                c.adjust_vitals(hunger=weather_rules.snow_extra_hunger)

            if c.id in inside:
                if night and world.has_milestone(MILESTONE_FIRE):
                    c.adjust_vitals(health=self.rules.healing.fire_night_shelter_heal)
                elif cold_night:
                    c.adjust_vitals(energy=-weather_rules.cold_night_sheltered_energy_cost)
            elif harsh:
                if c.gear_charges > 0 and not c.warm_meal_ticks:
                    c.gear_charges -= 1
                elif not c.has_temporary_protection:
                    self._expose(c, snowy=env.weather == "snowy", cold_night=cold_night)
            elif env.weather == "rainy" and not c.has_temporary_protection:
                c.adjust_vitals(energy=-weather_rules.rain_energy_damage)

            if c.warm_meal_ticks > 0:
                c.warm_meal_ticks -= 1

    def _expose(self, civling: Civling, snowy: bool, cold_night: bool) -> None:
        w = self.rules.weather
        if snowy:
            civling.adjust_vitals(health=-w.snow_health_damage, energy=-w.snow_energy_damage)
            if civling.energy <= w.snow_weak_energy or civling.hunger >= w.snow_weak_hunger:
                civling.adjust_vitals(health=-w.snow_weak_extra_damage)
            note = "Suffered snow exposure without shelter."
        else:
            note = "Shivered through a cold night outside."
        if cold_night:
            civling.adjust_vitals(health=-w.cold_night_health_damage, energy=-w.cold_night_energy_damage)
        recent = civling.memory.recent(1)
        if not recent or recent[0] != note:
            civling.add_memory(note)

    # ------------------------------------------------------------------
    # Reproduction
    # ------------------------------------------------------------------

    def _next_pair(self, intents: list[Civling]) -> Optional[tuple[Civling, Civling]]:
        """(mother, father) from the civlings that tried this tick."""
        if self.rules.reproduction.requires_male_and_female:
            mother = next((c for c in intents if c.gender == "female"), None)
            father = next((c for c in intents if c.gender == "male"), None)
            if mother is None or father is None:
                return None
            return mother, father
        if len(intents) < 2:
            return None
        first, second = intents[0], intents[1]
        if second.gender == "female" and first.gender != "female":
            return second, first
        return first, second

    def _resolve_reproduction(self) -> None:
        world = self.world
        repro = self.rules.reproduction
        if not repro.enabled:
            return
        intents = [
            c for c in world.alive_civlings()
            if c.reproduce_intent_tick == world.tick and c.is_adult(self.rules)
        ]
        # One pair, one roll per tick
        pair = self._next_pair(intents)
        if pair is None:
            return
        mother, father = pair

        if world.alive_count() >= self.max_civlings:
            for parent in pair:
                parent.add_memory("The tribe is already at its limit.")
            return
        if (
            repro.requires_shelter_capacity_available
            and world.resources.shelter_capacity <= world.alive_count()
        ):
            for parent in pair:
                parent.add_memory("No room in the shelter for a child.")
            return

        mother.reproduction_attempts += 1
        father.reproduction_attempts += 1
        chance = (mother.baby_chance + father.baby_chance) / 2.0
        if float(self.rng.random()) >= chance:
            for parent in pair:
                parent.add_memory("No baby this time.")
            return
        self._birth(mother, father, chance)

    def _birth(self, mother: Civling, father: Civling, chance: float) -> Civling:
        world = self.world
        name = f"{BASE_NAMES[len(world.civlings) % len(BASE_NAMES)]}-{world.tick}"
        baby = create_civling(
            name=name,
            gender="female" if self.rng.random() < 0.5 else "male",
            age=0.0,
            rng=self.rng,
            taken_ids=world.taken_ids(),
            hunger=NEWBORN_HUNGER,
            baby_chance=chance,
            position=mother.position,
        )
        baby.add_memory("Born this tick.")
        world.civlings.append(baby)
        for parent in (mother, father):
            parent.babies_born += 1
            parent.add_memory(f"Had a child ({name}).")
        self.metrics.record_birth()
        self.logger.log(
            SimLogger.LIFECYCLE,
            f"{name} was born to {mother.name} and {father.name}",
            civling_ids=[baby.id, mother.id, father.id],
            tick=world.tick,
        )
        return baby

    # ------------------------------------------------------------------
    # Milestones
    # ------------------------------------------------------------------

    def _check_milestones(self) -> None:
        world = self.world
        res = world.resources
        checks = [
            (MILESTONE_SHELTER, res.shelter_capacity > 0),
            (MILESTONE_TOOLS, res.wood >= TOOLS_WOOD_THRESHOLD),
            (MILESTONE_AGRICULTURE, res.food >= AGRICULTURE_FOOD_THRESHOLD),
        ]
        for name, reached in checks:
            if reached and world.unlock_milestone(name):
                self._log_milestone(name)
        if (
            world.has_milestone(MILESTONE_SHELTER)
            and world.has_milestone(MILESTONE_TOOLS)
            and world.unlock_milestone(MILESTONE_FIRE)
        ):
            self._log_milestone(MILESTONE_FIRE)

    def _log_milestone(self, name: str) -> None:
        self.logger.log(
            SimLogger.MILESTONE,
            f"Milestone unlocked: {name}",
            tick=self.world.tick,
        )
