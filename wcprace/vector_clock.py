"""Vector clocks indexed by thread id."""

from __future__ import annotations

from collections.abc import Iterable, Iterator


class VectorClock:
    """A fixed-width vector of logical timestamps, one slot per thread."""

    __slots__ = ("_v",)

    def __init__(self, max_threads: int, init_value: int = 0) -> None:
        if max_threads < 0:
            raise ValueError("max_threads must not be negative")
        self._v = [init_value] * max_threads

    @classmethod
    def from_values(cls, values: Iterable[int]) -> VectorClock:
        """Build a clock holding exactly the given timestamps."""
        clock = cls(0, 0)
        clock._v = list(values)
        return clock

    def join(self, other: VectorClock) -> None:
        """Raise every slot to the larger of its own and the other clock's value."""
        if len(other._v) < len(self._v):
            raise ValueError("cannot join with a narrower vector clock")
        self._v = [max(mine, theirs) for mine, theirs in zip(self._v, other._v)]

    def __getitem__(self, i: int) -> int:
        return self._v[i]

    def __setitem__(self, i: int, value: int) -> None:
        self._v[i] = value

    def __le__(self, other: VectorClock) -> bool:
        return all(mine <= theirs for mine, theirs in zip(self._v, other._v))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VectorClock):
            return NotImplemented
        return self._v == other._v

    __hash__ = None  # type: ignore[assignment]

    def __len__(self) -> int:
        return len(self._v)

    def __iter__(self) -> Iterator[int]:
        return iter(self._v)

    def __str__(self) -> str:
        return "".join(f"{e}, " for e in self._v)

    def __repr__(self) -> str:
        return f"VectorClock({self._v!r})"

    def increment(self, tid: int) -> None:
        """Advance the given thread's own timestamp by one."""
        self._v[tid] += 1

    def copy(self) -> VectorClock:
        """Return an independent clock with the same timestamps."""
        return VectorClock.from_values(self._v)