import unittest

import numpy as np

from civling_sim.agents.civling import Task
from civling_sim.core.config import GATHER_WOOD, MILESTONE_FIRE, SHELTER_SITE
from civling_sim.decision.deterministic import DeterministicProvider
from civling_sim.decision.protocol import ActionEnvelope, DecisionProvider
from civling_sim.simulation.engine import SimulationEngine
from civling_sim.viz.logger import SimLogger
from civling_sim.world.state import create_initial_world_state


class FixedProvider(DecisionProvider):
    """Always answers with the same envelope (or whatever object it was given)."""

    def __init__(self, answer):
        self.answer = answer
        self.calls = 0

    async def decide(self, civling, world):
        self.calls += 1
        return self.answer


class BrokenProvider(DecisionProvider):
    async def decide(self, civling, world):
        raise RuntimeError("model exploded")


def make_engine(provider, count=4, **kwargs):
    rng = np.random.default_rng(7)
    world = create_initial_world_state(rng, count)
    return SimulationEngine(provider, world=world, rng=rng, **kwargs)


class TestDecisions(unittest.IsolatedAsyncioTestCase):
    async def test_collapse_forces_eating(self):
        engine = make_engine(FixedProvider(ActionEnvelope("explore", "wander", "test")))
        civ = engine.world.civlings[0]
        civ.hunger = 95

        records = await engine.tick()

        self.assertEqual(records[0].civling_id, civ.id)
        self.assertEqual(records[0].action, "eat")
        self.assertEqual(records[0].reason, "starvation_collapse_emergency_eat")
        self.assertTrue(records[0].fallback)
        self.assertEqual(records[0].source, "system")
        # One meal from the task, one from passive eating at hunger 72
        self.assertEqual(engine.world.resources.food, 10)
        self.assertEqual(civ.food_eaten_last_tick, 2)
        self.assertFalse(records[1].fallback)

    async def test_emergency_interrupts_running_task(self):
        engine = make_engine(FixedProvider(ActionEnvelope("explore", "wander", "test")))
        civ = engine.world.civlings[0]
        civ.current_task = Task(GATHER_WOOD, 90, 90, 0)
        civ.energy = 5

        records = await engine.tick()

        self.assertEqual(records[0].reason, "emergency_low_energy_rest")
        self.assertIn("Dropped gather_wood to rest.", civ.memory.to_list())
        self.assertEqual(civ.current_task.action, "rest")

    async def test_provider_error_falls_back(self):
        engine = make_engine(BrokenProvider())
        records = await engine.tick()

        self.assertEqual(len(records), 4)
        for record in records:
            self.assertEqual(record.action, "rest")
            self.assertEqual(record.reason, "fallback_after_decision_error")
            self.assertTrue(record.fallback)
        self.assertEqual(len(engine.logger.entries(SimLogger.PROVIDER)), 4)

    async def test_disallowed_action_becomes_safe_action(self):
        engine = make_engine(FixedProvider(ActionEnvelope("play", "fun", "test")))
        minor = engine.world.civlings[3]
        minor.age = 8

        records = await engine.tick()

        adult = records[0]
        self.assertEqual((adult.action, adult.reason, adult.fallback), ("rest", "fun", True))
        # play is allowed for minors
        self.assertEqual((records[3].action, records[3].fallback), ("play", False))

    async def test_minor_gets_learn_as_safe_action(self):
        engine = make_engine(FixedProvider(ActionEnvelope("build_shelter", "ambitious", "test")))
        engine.world.civlings[3].age = 8
        records = await engine.tick()
        self.assertEqual((records[3].action, records[3].fallback), ("learn", True))

    async def test_non_envelope_answer(self):
        engine = make_engine(FixedProvider("eat"))
        records = await engine.tick()
        self.assertEqual(records[0].reason, "invalid_envelope")
        self.assertEqual(records[0].action, "rest")

    async def test_running_task_is_not_redecided(self):
        provider = FixedProvider(ActionEnvelope("gather_wood", "wood", "test"))
        engine = make_engine(provider, count=1)
        await engine.tick()
        records = await engine.tick()
        self.assertEqual(provider.calls, 1)
        self.assertEqual((records[0].reason, records[0].source), ("task_in_progress", "task"))

    async def test_decision_callback_and_log(self):
        seen = []
        engine = make_engine(DeterministicProvider(), on_decision=seen.append)
        await engine.tick()
        self.assertEqual(len(seen), 4)
        self.assertEqual(list(engine.decision_log), seen)


class TestTaskTiming(unittest.IsolatedAsyncioTestCase):
    async def test_food_arrives_when_gathering_completes(self):
        engine = make_engine(FixedProvider(ActionEnvelope("gather_food", "hungry", "test")), count=1)
        civ = engine.world.civlings[0]

        await engine.tick()
        self.assertEqual(engine.world.resources.food, 12)
        self.assertEqual(civ.current_task.action, "gather_food")

        for _ in range(3):
            await engine.tick()
            if engine.world.resources.food != 12:
                break
        self.assertEqual(engine.world.resources.food, 15)
        self.assertIn("Gathered food.", civ.memory.to_list())

    async def test_clock_advances_thirty_minutes(self):
        engine = make_engine(DeterministicProvider())
        start = engine.world.time.minute_of_day
        await engine.tick()
        self.assertEqual(engine.world.tick, 1)
        self.assertEqual(engine.world.time.minute_of_day, start + 30)


class TestExtinction(unittest.IsolatedAsyncioTestCase):
    def starving_engine(self):
        engine = make_engine(FixedProvider(ActionEnvelope("rest", "wait", "test")))
        engine.world.resources.food = 0
        for civ in engine.world.civlings:
            civ.health = 1
            civ.hunger = 100
        return engine

    async def test_tribe_dies_out(self):
        engine = self.starving_engine()
        await engine.tick()

        world = engine.world
        self.assertEqual(world.alive_count(), 0)
        self.assertTrue(engine.is_extinct)
        self.assertEqual(world.extinction.cause, "all_civlings_dead")
        self.assertEqual(world.extinction.tick, 1)
        self.assertTrue(all(c.current_task is None for c in world.civlings))
        self.assertEqual(engine.metrics.snapshots[-1].deaths, 4)

    async def test_full_hunger_kills_healthy_civling(self):
        engine = make_engine(FixedProvider(ActionEnvelope("rest", "wait", "test")), count=1)
        engine.world.resources.food = 0
        civ = engine.world.civlings[0]
        civ.hunger = 100
        civ.health = 100

        await engine.tick()

        self.assertFalse(civ.is_alive)
        self.assertEqual(civ.health, 0.0)
        self.assertTrue(engine.is_extinct)
        self.assertEqual(engine.world.extinction.cause, "all_civlings_dead")

    async def test_tick_after_extinction_is_noop(self):
        engine = self.starving_engine()
        await engine.tick()
        before = engine.world.to_dict()

        records = await engine.tick()

        self.assertEqual(records, [])
        self.assertEqual(engine.world.to_dict(), before)

    async def test_run_stops_at_extinction(self):
        engine = self.starving_engine()
        await engine.run(10)
        self.assertEqual(engine.world.tick, 1)


class TestWeatherExposure(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine(DeterministicProvider(), count=2)
        self.world = self.engine.world
        self.outside, self.inside = self.world.civlings
        for civ in (self.outside, self.inside):
            civ.health, civ.energy, civ.hunger = 100.0, 100.0, 20.0
        self.inside.x, self.inside.y = SHELTER_SITE
        self.world.resources.shelter_capacity = 1

    def expose(self, weather, phase="day", night_temperature="cold"):
        self.world.environment.weather = weather
        self.world.environment.night_temperature = night_temperature
        self.world.time.phase = phase
        self.engine._apply_weather_exposure()

    def test_snow_hurts_civlings_outside(self):
        self.expose("snowy")
        self.assertEqual((self.outside.health, self.outside.energy), (90.0, 92.0))
        self.assertEqual(self.outside.hunger, 21.0)
        self.assertIn("Suffered snow exposure without shelter.", self.outside.memory.to_list())

    def test_snow_spares_the_sheltered(self):
        self.expose("snowy")
        self.assertEqual((self.inside.health, self.inside.energy), (100.0, 100.0))
        self.assertEqual(self.inside.hunger, 21.0)

    def test_weak_civling_takes_extra_snow_damage(self):
        self.outside.energy = 30.0
        self.expose("snowy")
        self.assertEqual(self.outside.health, 84.0)

    def test_cold_night_outside(self):
        self.expose("cold", phase="night")
        self.assertEqual((self.outside.health, self.outside.energy), (96.0, 94.0))
        self.assertEqual(self.inside.energy, 99.0)
        self.assertIn("Shivered through a cold night outside.", self.outside.memory.to_list())

    def test_warm_night_is_harmless(self):
        self.expose("cold", phase="night", night_temperature="warm")
        self.assertEqual((self.outside.health, self.outside.energy), (100.0, 100.0))

    def test_fire_heals_sheltered_at_night(self):
        self.inside.health = 90.0
        self.world.milestones.append(MILESTONE_FIRE)
        self.expose("cold", phase="night")
        self.assertEqual((self.inside.health, self.inside.energy), (92.0, 100.0))

    def test_warm_meal_protects_and_wears_off(self):
        self.outside.warm_meal_ticks = 2
        self.outside.gear_charges = 1
        self.expose("snowy")
        self.assertEqual(self.outside.health, 100.0)
        self.assertEqual(self.outside.warm_meal_ticks, 1)
        self.assertEqual(self.outside.gear_charges, 1)

    def test_gear_charge_is_spent(self):
        self.outside.gear_charges = 2
        self.expose("snowy")
        self.assertEqual(self.outside.health, 100.0)
        self.assertEqual(self.outside.gear_charges, 1)

    def test_rain_drains_energy_without_protection(self):
        self.expose("rainy")
        self.assertEqual((self.outside.health, self.outside.energy), (100.0, 97.0))
        self.outside.gear_charges = 1
        self.expose("rainy")
        self.assertEqual(self.outside.energy, 97.0)
        self.assertEqual(self.outside.gear_charges, 1)


class TestReproduction(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine(DeterministicProvider())
        world = self.engine.world
        world.tick = 7
        world.resources.shelter_capacity = 6
        self.father, self.mother = world.civlings[0], world.civlings[1]
        for parent in (self.father, self.mother):
            parent.reproduce_intent_tick = 7
            parent.baby_chance = 1.0
            parent.x, parent.y = SHELTER_SITE

    def test_birth(self):
        self.engine._resolve_reproduction()

        world = self.engine.world
        self.assertEqual(world.alive_count(), 5)
        baby = world.civlings[-1]
        self.assertEqual(baby.name, "Ena-7")
        self.assertEqual(baby.age, 0.0)
        self.assertEqual(baby.hunger, 25.0)
        self.assertEqual(baby.baby_chance, 1.0)
        self.assertEqual(baby.position, SHELTER_SITE)
        self.assertIn("Born this tick.", baby.memory.to_list())
        for parent in (self.father, self.mother):
            self.assertEqual(parent.babies_born, 1)
            self.assertEqual(parent.reproduction_attempts, 1)
            self.assertIn("Had a child (Ena-7).", parent.memory.to_list())

    def test_no_luck(self):
        self.father.baby_chance = 0.0
        self.mother.baby_chance = 0.0
        self.engine._resolve_reproduction()
        self.assertEqual(self.engine.world.alive_count(), 4)
        self.assertEqual(self.mother.reproduction_attempts, 1)
        self.assertIn("No baby this time.", self.mother.memory.to_list())

    def test_full_shelter_blocks_birth(self):
        self.engine.world.resources.shelter_capacity = 4
        self.engine._resolve_reproduction()
        self.assertEqual(self.engine.world.alive_count(), 4)
        self.assertEqual(self.father.reproduction_attempts, 0)
        self.assertIn("No room in the shelter for a child.", self.father.memory.to_list())

    def test_population_cap(self):
        self.engine.max_civlings = 4
        self.engine._resolve_reproduction()
        self.assertEqual(self.engine.world.alive_count(), 4)
        self.assertIn("The tribe is already at its limit.", self.mother.memory.to_list())

    def test_same_gender_pair_is_ignored(self):
        self.mother.reproduce_intent_tick = None
        self.engine.world.civlings[2].reproduce_intent_tick = 7  # another male
        self.engine._resolve_reproduction()
        self.assertEqual(self.engine.world.alive_count(), 4)

    def test_stale_intent_is_ignored(self):
        self.mother.reproduce_intent_tick = 6
        self.engine._resolve_reproduction()
        self.assertEqual(self.engine.world.alive_count(), 4)

    def test_one_newborn_per_tick(self):
        for civ in self.engine.world.civlings:
            civ.reproduce_intent_tick = 7
            civ.baby_chance = 1.0
        self.engine.world.resources.shelter_capacity = 10
        self.engine.max_civlings = 10

        self.engine._resolve_reproduction()

        self.assertEqual(self.engine.world.alive_count(), 5)

    def test_failed_roll_ends_the_tick(self):
        for civ in self.engine.world.civlings:
            civ.reproduce_intent_tick = 7
            civ.baby_chance = 0.0
        self.engine._resolve_reproduction()

        attempts = [c.reproduction_attempts for c in self.engine.world.civlings]
        self.assertEqual(attempts, [1, 1, 0, 0])
        self.assertEqual(self.engine.world.alive_count(), 4)


class TestMilestones(unittest.TestCase):
    def test_unlock_order_and_fire(self):
        engine = make_engine(DeterministicProvider())
        res = engine.world.resources
        res.shelter_capacity = 2
        res.wood = 18
        res.food = 30

        engine._check_milestones()

        self.assertEqual(engine.world.milestones, ["shelter", "tools", "agriculture", "fire"])
        self.assertEqual(len(engine.logger.entries(SimLogger.MILESTONE)), 4)

        engine._check_milestones()
        self.assertEqual(len(engine.logger.entries(SimLogger.MILESTONE)), 4)

    def test_fire_needs_shelter_and_tools(self):
        engine = make_engine(DeterministicProvider())
        engine.world.resources.wood = 18
        engine._check_milestones()
        self.assertEqual(engine.world.milestones, ["tools"])


class TestLongRun(unittest.IsolatedAsyncioTestCase):
    async def test_vitals_stay_in_bounds(self):
        engine = make_engine(DeterministicProvider())
        await engine.run(200)
        for civ in engine.world.civlings:
            for vital in (civ.health, civ.energy, civ.hunger):
                self.assertGreaterEqual(vital, 0.0)
                self.assertLessEqual(vital, 100.0)
        res = engine.world.resources
        self.assertGreaterEqual(min(res.food, res.wood, res.fiber), 0)
        self.assertLessEqual(res.wood, res.wood_capacity)
        self.assertLessEqual(len(engine.world.milestones), 4)

    async def test_same_seed_same_run(self):
        first = make_engine(DeterministicProvider())
        second = make_engine(DeterministicProvider())
        await first.run(50)
        await second.run(50)
        self.assertEqual(first.world.to_dict(), second.world.to_dict())


if __name__ == "__main__":
    unittest.main()
