"""Locks, variables and the per-lock and per-variable analysis metadata."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from .vector_clock import VectorClock

GRANULARITY = 4

_ADDRESS_MASK = (1 << 62) - 1


def align_address(addr: int) -> int:
    """Drop the two top bits of a 64-bit address."""
    return addr & _ADDRESS_MASK


@dataclass(frozen=True)
class Lock:
    """A lock identified by its address."""

    addr: int


@dataclass(frozen=True, order=True)
class Variable:
    """A memory location identified by its address."""

    addr: int


@dataclass(frozen=True, order=True)
class MemRegion:
    """A memory region ordered by address, then size."""

    addr: int
    size: int


@dataclass(eq=False)
class LockMetadata:
    """WCP state kept for one lock."""

    h_l: VectorClock
    p_l: VectorClock
    acq: list[deque[VectorClock]]
    rel: list[deque[VectorClock]]
    lock: Lock
    l_r: dict[Variable, VectorClock] = field(default_factory=dict)
    l_w: dict[Variable, VectorClock] = field(default_factory=dict)

    def __init__(self, max_threads: int, lock: Lock) -> None:
        self.h_l = VectorClock(max_threads, 0)
        self.p_l = VectorClock(max_threads, 0)
        self.acq = [deque() for _ in range(max_threads)]
        self.rel = [deque() for _ in range(max_threads)]
        self.l_r = {}
        self.l_w = {}
        self.lock = lock


@dataclass(eq=False)
class VariableMetadata:
    """Last read and write timestamps kept for one variable."""

    r: VectorClock
    w: VectorClock
    variable: Variable

    def __init__(self, max_threads: int, variable: Variable) -> None:
        self.r = VectorClock(max_threads, 0)
        self.w = VectorClock(max_threads, 0)
        self.variable = variable