import unittest

import numpy as np

from civling_sim.core.config import SHELTER_SITE
from civling_sim.decision.context import (
    allowed_actions,
    food_reserve_target,
    reproduction_context,
    shelter_target,
)
from civling_sim.decision.prompt import build_decision_context, build_decision_prompt
from civling_sim.world.climate import Climate, is_harsh
from civling_sim.world.state import Environment, Resources, WorldState, create_initial_world_state


def make_world(count=4):
    return create_initial_world_state(np.random.default_rng(3), count)


class TestInitialWorld(unittest.TestCase):
    def test_founders(self):
        world = make_world()
        self.assertEqual([c.name for c in world.civlings], ["Ari", "Bex", "Cori", "Dax"])
        self.assertEqual([c.gender for c in world.civlings], ["male", "female", "male", "female"])
        self.assertEqual(len(world.taken_ids()), 4)
        self.assertTrue(all(c.is_adult() for c in world.civlings))
        self.assertTrue(world.run_id.startswith("run-"))
        self.assertEqual(world.resources.food, 12)
        self.assertEqual(world.resources.wood, 6)
        self.assertEqual(world.resources.shelter_capacity, 0)
        self.assertFalse(world.extinction.ended)

    def test_round_trip(self):
        world = make_world()
        world.tick = 12
        world.unlock_milestone("tools")
        world.civlings[0].add_memory("Gathered food.")
        restored = WorldState.from_dict(world.to_dict())
        self.assertEqual(restored.to_dict(), world.to_dict())


class TestShelterOccupancy(unittest.TestCase):
    def test_capacity_limits_who_is_inside(self):
        world = make_world()
        world.resources.shelter_capacity = 2
        for civ in world.civlings[:3]:
            civ.x, civ.y = SHELTER_SITE
        inside = world.sheltered_ids()
        self.assertEqual(inside, {world.civlings[0].id, world.civlings[1].id})
        self.assertFalse(world.is_sheltered(world.civlings[2]))
        self.assertFalse(world.shelter_covers_everyone())

    def test_no_shelter_no_one_inside(self):
        world = make_world()
        world.civlings[0].x, world.civlings[0].y = SHELTER_SITE
        self.assertEqual(world.sheltered_ids(), set())


class TestResources(unittest.TestCase):
    def test_spend_never_goes_negative(self):
        res = Resources(food=1)
        self.assertTrue(res.spend("food", 1))
        self.assertFalse(res.spend("food", 1))
        self.assertEqual(res.food, 0)

    def test_wood_is_capped(self):
        res = Resources(wood=10)
        self.assertEqual(res.wood_capacity, 12)
        self.assertEqual(res.add_wood(5), 2)
        self.assertEqual(res.wood, 12)
        res.storage_capacity = 24
        res.shelter_capacity = 2
        self.assertEqual(res.wood_capacity, 40)

    def test_milestones_unlock_once(self):
        world = make_world()
        self.assertTrue(world.unlock_milestone("fire"))
        self.assertFalse(world.unlock_milestone("fire"))
        self.assertEqual(world.milestones, ["fire"])


class TestClimate(unittest.TestCase):
    def test_weather_comes_from_season_pool(self):
        climate = Climate(np.random.default_rng(1))
        for _ in range(50):
            self.assertIn(climate.roll_weather(7), {"warm", "rainy", "cold"})
            self.assertIn(climate.roll_night_temperature(), {"warm", "cold"})

    def test_advance_day_updates_environment(self):
        env = Environment(weather="", night_temperature="")
        Climate(np.random.default_rng(1)).advance_day(env, 1)
        self.assertIn(env.weather, {"snowy", "cold", "rainy", "warm"})
        self.assertIn(env.night_temperature, {"warm", "cold"})

    def test_harsh(self):
        self.assertTrue(is_harsh("snowy", "day", "warm"))
        self.assertTrue(is_harsh("warm", "night", "cold"))
        self.assertFalse(is_harsh("cold", "day", "cold"))
        self.assertFalse(is_harsh("rainy", "night", "warm"))


class TestDecisionContext(unittest.TestCase):
    def test_food_reserve_target(self):
        self.assertEqual(food_reserve_target(make_world(4)), 20.0)
        self.assertEqual(food_reserve_target(make_world(1)), 6.0)

    def test_shelter_target_leaves_room_for_a_child(self):
        self.assertEqual(shelter_target(make_world(4)), 5)

    def test_allowed_actions(self):
        world = make_world()
        adult = world.civlings[0]
        self.assertNotIn("care", allowed_actions(adult, world))
        self.assertNotIn("play", allowed_actions(adult, world))
        world.unlock_milestone("tools")
        self.assertIn("care", allowed_actions(adult, world))
        adult.age = 5
        self.assertEqual(allowed_actions(adult, world), ["play", "learn", "rest", "eat"])

    def test_reproduction_readiness_reasons(self):
        world = make_world()
        civ = world.civlings[0]
        self.assertEqual(reproduction_context(civ, world).reason, "food_reserve_low")
        world.resources.food = 30
        self.assertEqual(reproduction_context(civ, world).reason, "no_shelter_capacity")
        world.resources.shelter_capacity = 6
        ready = reproduction_context(civ, world)
        self.assertTrue(ready.ready)
        self.assertEqual(len(ready.partner_ids), 2)
        civ.energy = 20
        self.assertEqual(reproduction_context(civ, world).reason, "low_vitals")
        civ.age = 12
        self.assertEqual(reproduction_context(civ, world).reason, "underage")

    def test_prompt_carries_context(self):
        world = make_world()
        civ = world.civlings[0]
        context = build_decision_context(civ, world)
        self.assertEqual(context["civling"]["name"], "Ari")
        self.assertEqual(context["world"]["foodReserveTarget"], 20.0)
        self.assertEqual(context["reproduction"]["reason"], "food_reserve_low")
        self.assertIn("gather_food", context["allowedActions"])
        prompt = build_decision_prompt(civ, world)
        self.assertIn("Ari", prompt)
        self.assertIn('"allowedActions"', prompt)


if __name__ == "__main__":
    unittest.main()
