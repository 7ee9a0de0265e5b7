# wcprace

`wcprace` finds data races in multithreaded programs by analysing a trace of
their thread, lock and memory events. It implements the Weak-Causally-Precedes
(WCP) relation, which catches *predictable* races: races that did not happen in
the observed run but could in another schedule of the same program.

Each thread carries vector clocks. Lock acquires and releases, reads and
writes, thread start and thread end update them, and an access that is not
ordered after a conflicting access by another thread is counted as a race of
one of three kinds:

- **W-W**: a write not ordered after another thread's write,
- **W-R**: a read not ordered after another thread's write,
- **R-W**: a write not ordered after another thread's read.

Lock acquires and releases must be well nested within each thread; releasing a
lock that is not held, or that is not the most recently acquired one, raises
`LockNestingError`.

## Installation

```
pip install .
```

Python 3.10 or newer is required; there are no other dependencies.

## Command line

```
wcprace TRACE [-o OUTPUT] [-t MAX_THREADS]
```

- `TRACE`: the trace file, or `-` to read standard input.
- `-o OUTPUT`: the statistics file to write (default `wcp_analysis.out`).
- `-t MAX_THREADS`: the largest number of threads the trace may use
  (default 8). Thread ids must be below this number.

The command prints `----- Starting WCP Analysis -----`, replays the trace,
writes the race report to the output file and prints where it was written.
It exits with status 0 on success, 1 if the trace uses too many threads
(with a hint to raise `-t`) or releases locks out of order, and 2 if the trace
cannot be read or parsed.

### Trace format

One event per line: `<tid> <event> [arguments]`. Numbers may be written in
decimal or with a `0x`, `0o` or `0b` prefix. Blank lines and everything after
`#` are ignored.

| event                  | arguments          | meaning                                              |
|------------------------|--------------------|------------------------------------------------------|
| `start`                | `[parent]`         | thread begins; a started parent is ordered before it |
| `end`                  | `[parent]`         | thread finishes; a started parent may join it        |
| `create`               |                    | thread is about to create a child                    |
| `read`                 | `addr`             | memory read                                          |
| `write`                | `addr`             | memory write                                         |
| `lock`                 | `addr`             | mutex acquired                                       |
| `unlock`               | `addr`             | mutex released                                       |
| `trylock`              | `addr result`      | acquired only if `result` is 0                       |
| `wrlock`               | `addr`             | write lock of a read-write lock acquired             |
| `trywrlock`            | `addr result`      | write lock acquired only if `result` is 0            |
| `rwunlock`             | `addr`             | released only if the thread holds that write lock    |

A parent joins its finished children at its next event, provided it announced
them with `create`.

Example:

```
0 start
0 create
1 start 0
0 create
2 start 0
1 write 0x1000
2 write 0x1000    # not ordered after thread 1's write
```

gives the report

```
0x1000 W-W TID: 2 TID: 1 Count: 1
```

## Output

Every race is reported once per (reporting thread, other thread, address,
kind), with the number of times it was seen. The address 0 is shown as
`(nil)`. Lines are grouped by the reporting thread in thread id order; within
a thread W-W races come first, then W-R, then R-W, each sorted by thread ids
and address.

## Library use

```python
import sys

from wcprace.engine import WCPEngine
from wcprace.model import Lock, Variable

engine = WCPEngine(4)

# Thread 0 creates threads 1 and 2.
engine.before_pthread_create(0)
engine.thread_begin(1, 0)
engine.before_pthread_create(0)
engine.thread_begin(2, 0)

shared = Variable(0x1000)
guard = Lock(0x2000)

engine.acquire(1, guard)
engine.write(1, shared)
engine.release(1, guard)

engine.write(2, shared)   # unprotected: a W-W race with thread 1's write

engine.write_stats(sys.stdout)
```

`engine.race_stats()` returns one `RaceStats` per thread; `RaceStats.count`
and `RaceStats.lines` give the counts and report lines directly.

The modules:

- `wcprace.vector_clock`: `VectorClock`, fixed-width clocks with `join`,
  `increment`, `copy` and pointwise `<=`;
- `wcprace.model`: `Lock`, `Variable`, `MemRegion`, `LockMetadata`,
  `VariableMetadata` and `align_address`;
- `wcprace.shadow_memory`: `ShadowMemory`, metadata created on first lookup
  by address, and `bucket_index`;
- `wcprace.wcp`: `WCP`, the clock rules for acquire, release, read and write;
- `wcprace.race_stats`: `RaceType` and `RaceStats`;
- `wcprace.engine`: `WCPEngine`, which ties these together and handles thread
  start, end and joins, and `LockNestingError`;
- `wcprace.cli`: `EventKind`, `Event`, `parse_event`, `parse_trace`,
  `TraceReplayer`, `ThreadLimitError` and `main`, behind the `wcprace` command.

## What it does not do

`wcprace` does not observe running programs. It works only from an event trace
that has already been recorded in the format above; producing that trace from
a program is left to other tools.

## Running the tests

```
pip install .[test]
pytest
```