"""Race detection driven by program events, on top of the WCP clocks."""

from __future__ import annotations

import threading
from collections import deque
from typing import TextIO

from .model import Lock, Variable, align_address
from .race_stats import RaceStats, RaceType
from .shadow_memory import ShadowMemory
from .vector_clock import VectorClock
from .wcp import WCP


class LockNestingError(RuntimeError):
    """A lock was released without being held, or out of nesting order."""


def _pointer(addr: int) -> str:
    return "(nil)" if addr == 0 else f"{addr:#x}"


class WCPEngine:
    """Consumes lock, memory and thread events and counts WCP races per thread."""

    def __init__(self, max_threads: int) -> None:
        self._max_threads = max_threads
        self._wcp = WCP(max_threads)
        self._shadow = ShadowMemory(max_threads)
        self._lock_sets: list[list[Lock]] = [[] for _ in range(max_threads)]
        self._reads: list[list[Variable]] = [[] for _ in range(max_threads)]
        self._writes: list[list[Variable]] = [[] for _ in range(max_threads)]
        self._read_starts: list[list[int]] = [[] for _ in range(max_threads)]
        self._write_starts: list[list[int]] = [[] for _ in range(max_threads)]
        self._race_stats = [RaceStats() for _ in range(max_threads)]
        self._num_children = [0] * max_threads
        self._joinable: list[deque[int]] = [deque() for _ in range(max_threads)]
        self._joinable_guards = [threading.Lock() for _ in range(max_threads)]

    @property
    def max_threads(self) -> int:
        return self._max_threads

    def acquire(self, t: int, lock: Lock, check_thread_join: bool = True) -> None:
        """Thread t acquired a lock."""
        if check_thread_join:
            self.check_and_do_thread_join(t)
        lock = Lock(align_address(lock.addr))

        self._wcp.acquire(t, self._shadow.lock_metadata(lock))

        self._lock_sets[t].append(lock)
        self._read_starts[t].append(len(self._reads[t]))
        self._write_starts[t].append(len(self._writes[t]))

    def release(self, t: int, lock: Lock, check_thread_join: bool = True) -> None:
        """Thread t is releasing a lock; it must be the innermost one it holds."""
        if check_thread_join:
            self.check_and_do_thread_join(t)
        lock = Lock(align_address(lock.addr))

        held = self._lock_sets[t]
        if not held:
            raise LockNestingError(
                f"Release of Lock {_pointer(lock.addr)} without acquiring it first"
            )
        if held[-1] != lock:
            raise LockNestingError(
                "Lock acquires and releases not well nested. "
                f"Lock {_pointer(lock.addr)} acquired later than "
                f"{_pointer(held[-1].addr)} but released earlier"
            )

        reads = self._reads[t][self._read_starts[t][-1]:]
        writes = self._writes[t][self._write_starts[t][-1]:]
        self._wcp.release(t, self._shadow.lock_metadata(lock), reads, writes)

        held.pop()
        self._read_starts[t].pop()
        self._write_starts[t].pop()
        if not held:
            self._reads[t].clear()
            self._writes[t].clear()

    def _report(
        self, t: int, last: VectorClock, c_t: VectorClock, variable: Variable, race_type: RaceType
    ) -> None:
        for i, (seen_at, known) in enumerate(zip(last, c_t)):
            if i != t and seen_at > known:
                self._race_stats[t].add_race(t, i, variable.addr, race_type)

    def read(self, t: int, variable: Variable, check_thread_join: bool = True) -> None:
        """Thread t read a variable."""
        if check_thread_join:
            self.check_and_do_thread_join(t)
        variable = Variable(align_address(variable.addr))

        self._wcp.read(t, variable, self._lock_sets[t], self._shadow)
        c_t = self._wcp.thread_vc(t)

        md = self._shadow.variable_metadata(variable)
        md.r[t] = c_t[t]
        self._report(t, md.w, c_t, variable, RaceType.WR)

        if self._lock_sets[t]:
            self._reads[t].append(variable)

    def write(self, t: int, variable: Variable, check_thread_join: bool = True) -> None:
        """Thread t wrote a variable."""
        if check_thread_join:
            self.check_and_do_thread_join(t)
        variable = Variable(align_address(variable.addr))

        self._wcp.write(t, variable, self._lock_sets[t], self._shadow)
        c_t = self._wcp.thread_vc(t)

        md = self._shadow.variable_metadata(variable)
        md.w[t] = c_t[t]
        self._report(t, md.w, c_t, variable, RaceType.WW)
        self._report(t, md.r, c_t, variable, RaceType.RW)

        if self._lock_sets[t]:
            self._writes[t].append(variable)

    def _pseudo(self, first: int, second: int) -> tuple[Lock, Variable]:
        base = (first * self._max_threads + second) * 8
        return Lock(base), Variable(base + 4)

    def _handoff(self, source: int, target: int, lock: Lock, variable: Variable) -> None:
        self.acquire(source, lock, False)
        self.write(source, variable, False)
        self.release(source, lock, False)

        self.acquire(target, lock, False)
        self.read(target, variable, False)
        self.release(target, lock, False)

    def thread_begin(self, t: int, parent: int) -> None:
        """Order everything the parent did so far before the new thread t."""
        lock, variable = self._pseudo(parent, t)
        self._handoff(parent, t, lock, variable)

    def thread_end(self, t: int, parent: int) -> None:
        """Mark thread t as finished and ready to be joined by its parent."""
        with self._joinable_guards[parent]:
            self._joinable[parent].append(t)

    def before_pthread_create(self, t: int) -> None:
        """Thread t is about to create a child."""
        self._num_children[t] += 1

    def check_and_do_thread_join(self, t: int) -> None:
        """Order every finished child of t before t's next event."""
        if self._num_children[t] == 0:
            return
        with self._joinable_guards[t]:
            pending = self._joinable[t]
            while pending:
                child = pending.popleft()
                self._num_children[t] -= 1
                lock, variable = self._pseudo(child, t)
                self._handoff(child, t, lock, variable)

    def race_stats(self) -> tuple[RaceStats, ...]:
        """The race counts, one entry per thread that observed them."""
        return tuple(self._race_stats)

    def write_stats(self, file: TextIO) -> None:
        """Write every thread's race report to a text file."""
        for stats in self._race_stats:
            stats.write(file)