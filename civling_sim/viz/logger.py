"""Per-tick event log for the tribe: decisions, lifecycle, weather, provider trouble."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Optional, TextIO


def _ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    os.makedirs(parent or ".", exist_ok=True)


@dataclass
class LogEntry:
    """One logged event, tagged with the run it happened in."""

    tick: int
    category: str
    message: str
    civling_ids: list[str] = field(default_factory=list)
    data: dict = field(default_factory=dict)
    run_id: str = ""

    def format(self) -> str:
        return f"[Tick {self.tick:>5}] [{self.category:<10}] {self.message}"

    def to_dict(self) -> dict:
        return {
            "runId": self.run_id,
            "tick": self.tick,
            "category": self.category,
            "message": self.message,
            "civlingIds": list(self.civling_ids),
            "data": self.data,
        }


class SimLogger:
    """Buffers events during a tick and writes the ones the verbosity allows at flush."""

    DECISION = "DECISION"
    TASK = "TASK"
    LIFECYCLE = "LIFECYCLE"
    WEATHER = "WEATHER"
    MILESTONE = "MILESTONE"
    PROVIDER = "PROVIDER"
    EXTINCTION = "EXTINCTION"

    # Minimum verbosity at which a category is printed
    _VERBOSITY_MAP = {
        LIFECYCLE: 0,
        MILESTONE: 0,
        EXTINCTION: 0,
        PROVIDER: 1,
        WEATHER: 1,
        TASK: 2,
        DECISION: 3,
    }

    def __init__(
        self,
        verbosity: int = 1,
        log_file: Optional[str] = None,
        stdout: bool = True,
    ) -> None:
        """
        verbosity levels:
            0 = births, deaths, milestones, extinction
            1 = + provider failures and daily weather
            2 = + finished tasks
            3 = + every decision
        """
        self.verbosity = verbosity
        self.run_id = ""
        self._stdout = stdout
        self._pending: list[LogEntry] = []
        self._history: list[LogEntry] = []
        self._file: Optional[TextIO] = None
        if log_file:
            _ensure_parent(log_file)
            self._file = open(log_file, "w", encoding="utf-8")

    def set_run(self, run_id: str) -> None:
        """Tag subsequent entries with ``run_id`` (called on start and restart)."""
        self.run_id = run_id

    def log(
        self,
        category: str,
        message: str,
        civling_ids: Optional[list[str]] = None,
        tick: int = 0,
        **data,
    ) -> None:
        self._pending.append(LogEntry(
            tick=tick,
            category=category,
            message=message,
            civling_ids=list(civling_ids or []),
            data=data,
            run_id=self.run_id,
        ))

    def _visible(self, entry: LogEntry) -> bool:
        return self._VERBOSITY_MAP.get(entry.category, 1) <= self.verbosity

    def flush_tick(self, tick: int) -> None:
        """Emit pending entries for ``tick`` and move them into history."""
        lines = [e.format() for e in self._pending if self._visible(e)]
        for line in lines:
            if self._stdout:
                print(line)
            if self._file:
                self._file.write(line + "\n")
        if self._file and lines:
            self._file.flush()
        self._history.extend(self._pending)
        self._pending.clear()

    def entries(self, category: Optional[str] = None) -> list[LogEntry]:
        """History plus anything still pending, optionally for one category."""
        everything = self._history + self._pending
        if category is None:
            return everything
        return [e for e in everything if e.category == category]

    def for_civling(self, civling_id: str) -> list[LogEntry]:
        return [e for e in self.entries() if civling_id in e.civling_ids]

    def get_narrative(self, tick: int, run_id: Optional[str] = None) -> str:
        """Readable account of one tick of the current (or given) run."""
        run = self.run_id if run_id is None else run_id
        happened = [e for e in self._history if e.tick == tick and e.run_id == run]
        if not happened:
            return f"Tick {tick}: Nothing notable happened."
        header = f"=== Tick {tick} ({run}) ===" if run else f"=== Tick {tick} ==="
        return "\n".join([header] + [f"  [{e.category}] {e.message}" for e in happened])

    def export_json(self, filepath: str) -> None:
        _ensure_parent(filepath)
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump([e.to_dict() for e in self._history], f, indent=2)

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None
