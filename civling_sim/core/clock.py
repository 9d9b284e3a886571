"""Calendar for the simulation: minute of day, day, month, year, phase."""

from __future__ import annotations

from dataclasses import dataclass

from civling_sim.core.config import (
    DAY_START_MINUTE,
    DAYS_PER_MONTH,
    MINUTES_PER_DAY,
    MONTH_SEASONS,
    MONTHS_PER_YEAR,
    NIGHT_START_MINUTE,
    WINTER_MONTHS,
    WINTER_PREP_WINDOW_MINUTES,
)


def phase_for(minute_of_day: int) -> str:
    """``day`` between dawn and nightfall, ``night`` otherwise."""
    if DAY_START_MINUTE <= minute_of_day < NIGHT_START_MINUTE:
        return "day"
    return "night"


@dataclass
class WorldTime:
    """Manages simulation time."""

    minute_of_day: int = DAY_START_MINUTE
    day: int = 1
    month: int = 1
    year: int = 1
    phase: str = "day"

    @property
    def season(self) -> str:
        return MONTH_SEASONS[self.month]

    @property
    def is_night(self) -> bool:
        return self.phase == "night"

    def is_winter_month(self) -> bool:
        return self.month in WINTER_MONTHS

    def minutes_until_night(self) -> int:
        """Minutes left before nightfall, or 0 once night has started."""
        if self.phase == "night":
            return 0
        return max(0, NIGHT_START_MINUTE - self.minute_of_day)

    def in_winter_prep_window(self) -> bool:
        """True in the last hours of a winter day."""
        if not self.is_winter_month() or self.phase != "day":
            return False
        return self.minutes_until_night() <= WINTER_PREP_WINDOW_MINUTES

    def advance(self, minutes: int) -> int:
        """Advance the clock. Returns the number of day rollovers."""
        self.minute_of_day += minutes
        rollovers = 0
        while self.minute_of_day >= MINUTES_PER_DAY:
            self.minute_of_day -= MINUTES_PER_DAY
            rollovers += 1
            self.day += 1
            if self.day > DAYS_PER_MONTH:
                self.day = 1
                self.month += 1
                if self.month > MONTHS_PER_YEAR:
                    self.month = 1
                    self.year += 1
        self.phase = phase_for(self.minute_of_day)
        return rollovers

    def label(self) -> str:
        hours, minutes = divmod(self.minute_of_day, 60)
        return f"Y{self.year} M{self.month:02d} D{self.day:02d} {hours:02d}:{minutes:02d}"

    def to_dict(self) -> dict:
        return {
            "minuteOfDay": self.minute_of_day,
            "day": self.day,
            "month": self.month,
            "year": self.year,
            "phase": self.phase,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WorldTime":
        return cls(
            minute_of_day=int(data["minuteOfDay"]),
            day=int(data["day"]),
            month=int(data["month"]),
            year=int(data["year"]),
            phase=str(data["phase"]),
        )
