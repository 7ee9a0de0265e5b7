"""Replay a recorded event trace through the WCP race detector."""

from __future__ import annotations

import argparse
import contextlib
import sys
from collections import Counter
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from .engine import LockNestingError, WCPEngine
from .model import Lock, Variable

DEFAULT_OUTPUT = "wcp_analysis.out"
DEFAULT_MAX_THREADS = 8


class EventKind(Enum):
    """The kinds of events a trace line can describe."""

    THREAD_START = "start"
    THREAD_FINI = "end"
    CREATE = "create"
    READ = "read"
    WRITE = "write"
    LOCK = "lock"
    UNLOCK = "unlock"
    TRYLOCK = "trylock"
    WRLOCK = "wrlock"
    TRYWRLOCK = "trywrlock"
    RWUNLOCK = "rwunlock"


_THREAD_KINDS = frozenset({EventKind.THREAD_START, EventKind.THREAD_FINI})
_TRY_KINDS = frozenset({EventKind.TRYLOCK, EventKind.TRYWRLOCK})


@dataclass(frozen=True)
class Event:
    """One event of a thread: a memory access, a lock operation or a thread change."""

    kind: EventKind
    tid: int
    addr: int | None = None
    parent: int | None = None
    result: int | None = None


class ThreadLimitError(RuntimeError):
    """The trace uses more threads than the analysis was configured for."""

    def __init__(self, max_threads: int) -> None:
        super().__init__(f"Number of threads in target process exceeded {max_threads}")
        self.max_threads = max_threads


def _parse_int(text: str, what: str) -> int:
    try:
        return int(text, 0)
    except ValueError:
        raise ValueError(f"invalid {what}: {text!r}") from None


def _parse_non_negative(text: str, what: str) -> int:
    value = _parse_int(text, what)
    if value < 0:
        raise ValueError(f"{what} must not be negative: {text!r}")
    return value


def parse_event(line: str) -> Event:
    """Parse one trace line of the form '<tid> <event> [arguments]'."""
    tokens = line.split()
    if len(tokens) < 2:
        raise ValueError(f"expected '<tid> <event> ...', got {line.strip()!r}")
    tid = _parse_non_negative(tokens[0], "thread id")
    try:
        kind = EventKind(tokens[1].lower())
    except ValueError:
        raise ValueError(f"unknown event {tokens[1]!r}") from None
    args = tokens[2:]

    if kind in _THREAD_KINDS:
        if len(args) > 1:
            raise ValueError(f"'{kind.value}' takes at most a parent thread id")
        parent = _parse_non_negative(args[0], "parent thread id") if args else None
        return Event(kind, tid, parent=parent)
    if kind is EventKind.CREATE:
        if args:
            raise ValueError("'create' takes no arguments")
        return Event(kind, tid)
    if kind in _TRY_KINDS:
        if len(args) != 2:
            raise ValueError(f"'{kind.value}' takes an address and a return value")
        return Event(
            kind,
            tid,
            addr=_parse_non_negative(args[0], "address"),
            result=_parse_int(args[1], "return value"),
        )
    if len(args) != 1:
        raise ValueError(f"'{kind.value}' takes exactly one address")
    return Event(kind, tid, addr=_parse_non_negative(args[0], "address"))


def parse_trace(lines: Iterable[str]) -> Iterator[Event]:
    """Parse trace lines, skipping blank lines and '#' comments."""
    for lineno, raw in enumerate(lines, 1):
        text = raw.split("#", 1)[0].strip()
        if not text:
            continue
        try:
            yield parse_event(text)
        except ValueError as exc:
            raise ValueError(f"line {lineno}: {exc}") from None


class TraceReplayer:
    """Feeds trace events to a WCP engine the way an instrumented program would."""

    def __init__(self, max_threads: int = DEFAULT_MAX_THREADS) -> None:
        if max_threads < 1:
            raise ValueError("max_threads must be at least 1")
        self._max_threads = max_threads
        self._engine = WCPEngine(max_threads)
        self._started: set[int] = set()
        self._rwlocks: list[Counter[int]] = [Counter() for _ in range(max_threads)]

    @property
    def engine(self) -> WCPEngine:
        return self._engine

    def _check_tid(self, tid: int) -> None:
        if not 0 <= tid < self._max_threads:
            raise ThreadLimitError(self._max_threads)

    def thread_start(self, tid: int, parent: int | None = None) -> None:
        """A thread began; a known parent's history is ordered before it."""
        self._check_tid(tid)
        has_parent = parent is not None and parent in self._started
        self._started.add(tid)
        if has_parent:
            self._engine.thread_begin(tid, parent)

    def thread_fini(self, tid: int, parent: int | None = None) -> None:
        """A thread finished; a known parent may join it."""
        self._check_tid(tid)
        if parent is not None and parent in self._started:
            self._engine.thread_end(tid, parent)
        self._rwlocks[tid].clear()

    def _acquire_write_lock(self, tid: int, addr: int) -> None:
        self._rwlocks[tid][addr] += 1
        self._engine.acquire(tid, Lock(addr))

    def handle(self, event: Event) -> None:
        """Apply a single event."""
        tid = event.tid
        self._check_tid(tid)
        kind = event.kind
        if kind is EventKind.THREAD_START:
            self.thread_start(tid, event.parent)
        elif kind is EventKind.THREAD_FINI:
            self.thread_fini(tid, event.parent)
        elif kind is EventKind.CREATE:
            self._engine.before_pthread_create(tid)
        elif kind is EventKind.READ:
            self._engine.read(tid, Variable(event.addr))
        elif kind is EventKind.WRITE:
            self._engine.write(tid, Variable(event.addr))
        elif kind is EventKind.LOCK:
            self._engine.acquire(tid, Lock(event.addr))
        elif kind is EventKind.UNLOCK:
            self._engine.release(tid, Lock(event.addr))
        elif kind is EventKind.TRYLOCK:
            if event.result == 0:
                self._engine.acquire(tid, Lock(event.addr))
        elif kind is EventKind.WRLOCK:
            self._acquire_write_lock(tid, event.addr)
        elif kind is EventKind.TRYWRLOCK:
            if event.result == 0:
                self._acquire_write_lock(tid, event.addr)
        elif kind is EventKind.RWUNLOCK:
            held = self._rwlocks[tid]
            if held[event.addr]:
                held[event.addr] -= 1
                if not held[event.addr]:
                    del held[event.addr]
                self._engine.release(tid, Lock(event.addr))

    def replay(self, events: Iterable[Event]) -> None:
        """Apply every event in order."""
        for event in events:
            self.handle(event)

    def write_stats(self, file: TextIO) -> None:
        """Write the race report to a text file."""
        self._engine.write_stats(file)


def _open_trace(path: str) -> contextlib.AbstractContextManager[TextIO]:
    if path == "-":
        return contextlib.nullcontext(sys.stdin)
    return open(path, encoding="utf-8")


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="wcprace", description="Detect WCP data races in a recorded event trace."
    )
    parser.add_argument("trace", help="trace file, or - for standard input")
    parser.add_argument(
        "-o", dest="output", default=DEFAULT_OUTPUT, help="Specify output file name"
    )
    parser.add_argument(
        "-t",
        dest="max_threads",
        type=int,
        default=DEFAULT_MAX_THREADS,
        help="Specify maximum number of threads used by target process",
    )
    args = parser.parse_args(argv)
    if args.max_threads < 1:
        parser.error("-t must be at least 1")

    print("----- Starting WCP Analysis -----")
    replayer = TraceReplayer(args.max_threads)
    try:
        with _open_trace(args.trace) as stream:
            replayer.replay(parse_trace(stream))
    except ThreadLimitError as exc:
        print(f"ERROR: {exc}")
        print("HINT: Pass number of threads used by target process using -t flag")
        return 1
    except LockNestingError as exc:
        print(f"ERROR: {exc}")
        return 1
    except (ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    with open(args.output, "w", encoding="utf-8") as out:
        replayer.write_stats(out)
    print(f"----- WCP Analysis stats written to {args.output} -----")
    return 0


if __name__ == "__main__":
    sys.exit(main())