"""Counting and reporting of detected data races."""

from __future__ import annotations

from collections import Counter
from enum import Enum
from typing import TextIO


class RaceType(Enum):
    """Which pair of accesses formed the race."""

    WW = "W-W"
    WR = "W-R"
    RW = "R-W"


def _format_pointer(addr: int) -> str:
    return "(nil)" if addr == 0 else f"{addr:#x}"


class RaceStats:
    """Counts races per (thread, other thread, address) for each race type."""

    def __init__(self) -> None:
        self._races: dict[RaceType, Counter[tuple[int, int, int]]] = {
            race_type: Counter() for race_type in RaceType
        }

    def add_race(self, tid1: int, tid2: int, addr: int, race_type: RaceType) -> None:
        """Record one more occurrence of the given race."""
        self._races[race_type][(tid1, tid2, addr)] += 1

    def count(self, tid1: int, tid2: int, addr: int, race_type: RaceType) -> int:
        """How often the given race was recorded."""
        return self._races[race_type][(tid1, tid2, addr)]

    def lines(self) -> list[str]:
        """Report lines: W-W races first, then W-R, then R-W, each sorted by key."""
        return [
            f"{_format_pointer(addr)} {race_type.value} TID: {tid1} TID: {tid2} Count: {n}"
            for race_type in RaceType
            for (tid1, tid2, addr), n in sorted(self._races[race_type].items())
        ]

    def write(self, file: TextIO) -> None:
        """Write the report lines to a text file."""
        for line in self.lines():
            file.write(line + "\n")

    def __bool__(self) -> bool:
        return any(self._races.values())