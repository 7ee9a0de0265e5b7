"""The weak-causally-precedes (WCP) clock updates for lock, read and write events."""

from __future__ import annotations

from collections.abc import Iterable

from .model import LockMetadata, Variable
from .shadow_memory import ShadowMemory
from .vector_clock import VectorClock


class WCP:
    """Per-thread WCP state: the P and H clocks and the local epoch N."""

    def __init__(self, max_threads: int) -> None:
        if max_threads < 1:
            raise ValueError("max_threads must be at least 1")
        self._max_threads = max_threads
        self._p = [VectorClock(max_threads, 0) for _ in range(max_threads)]
        self._h = [VectorClock(max_threads, 0) for _ in range(max_threads)]
        for tid, clock in enumerate(self._h):
            clock.increment(tid)
        self._n = [1] * max_threads
        self._prev_release = [False] * max_threads

    @property
    def max_threads(self) -> int:
        return self._max_threads

    def _begin_event(self, t: int) -> None:
        if self._prev_release[t]:
            self._n[t] += 1
            self._h[t].increment(t)

    def _others(self, t: int) -> Iterable[int]:
        return (i for i in range(self._max_threads) if i != t)

    def acquire(self, t: int, lock_md: LockMetadata) -> None:
        """Handle thread t acquiring the lock described by lock_md."""
        self._begin_event(t)

        self._h[t].join(lock_md.h_l)
        self._p[t].join(lock_md.p_l)

        c_t = self.thread_vc(t)
        for i in self._others(t):
            lock_md.acq[i].append(c_t)

        self._prev_release[t] = False

    def release(
        self,
        t: int,
        lock_md: LockMetadata,
        reads: Iterable[Variable],
        writes: Iterable[Variable],
    ) -> None:
        """Handle thread t releasing a lock, given what its critical section read and wrote."""
        self._begin_event(t)

        c_t = self.thread_vc(t)
        acq, rel = lock_md.acq[t], lock_md.rel[t]
        while acq and rel and acq[0] <= c_t:
            acq.popleft()
            self._p[t].join(rel.popleft())

        h_t = self._h[t]
        for table, variables in ((lock_md.l_r, reads), (lock_md.l_w, writes)):
            for x in variables:
                if x in table:
                    table[x].join(h_t)
                else:
                    table[x] = h_t.copy()

        lock_md.h_l = h_t.copy()
        lock_md.p_l = self._p[t].copy()

        released = h_t.copy()
        for i in self._others(t):
            lock_md.rel[i].append(released)

        self._prev_release[t] = True

    def read(
        self,
        t: int,
        variable: Variable,
        locks: Iterable,
        shadow_memory: ShadowMemory,
    ) -> None:
        """Handle thread t reading a variable while holding the given locks."""
        self._begin_event(t)

        for lock in locks:
            last_writes = shadow_memory.lock_metadata(lock).l_w
            if variable in last_writes:
                self._p[t].join(last_writes[variable])

        self._prev_release[t] = False

    def write(
        self,
        t: int,
        variable: Variable,
        locks: Iterable,
        shadow_memory: ShadowMemory,
    ) -> None:
        """Handle thread t writing a variable while holding the given locks."""
        self._begin_event(t)

        for lock in locks:
            lock_md = shadow_memory.lock_metadata(lock)
            if variable in lock_md.l_r:
                self._p[t].join(lock_md.l_r[variable])
            if variable in lock_md.l_w:
                self._p[t].join(lock_md.l_w[variable])

        self._prev_release[t] = False

    def thread_vc(self, t: int) -> VectorClock:
        """The clock C_t of thread t: its P clock with its own epoch in its slot."""
        c_t = self._p[t].copy()
        c_t[t] = self._n[t]
        return c_t