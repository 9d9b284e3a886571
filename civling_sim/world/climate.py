"""Daily weather and night temperature rolls."""

from __future__ import annotations

from numpy.random import Generator

from civling_sim.core.config import MONTH_SEASONS, WARM_NIGHT_CHANCE, WEATHER_POOLS


class Climate:
    """Resamples the environment at every day rollover."""

    def __init__(self, rng: Generator) -> None:
        self._rng = rng

    def roll_weather(self, month: int) -> str:
        pool = WEATHER_POOLS[MONTH_SEASONS[month]]
        return str(pool[int(self._rng.integers(0, len(pool)))])

    def roll_night_temperature(self) -> str:
        return "warm" if self._rng.random() < WARM_NIGHT_CHANCE else "cold"

    def advance_day(self, environment: "Environment", month: int) -> None:  # noqa: F821
        """Draw the new day's weather and night temperature."""
        environment.weather = self.roll_weather(month)
        environment.night_temperature = self.roll_night_temperature()


def is_harsh(weather: str, phase: str, night_temperature: str) -> bool:
    """Snow, or a cold night, hurts anyone caught outside."""
    return weather == "snowy" or (phase == "night" and night_temperature == "cold")
