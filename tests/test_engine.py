import io

import pytest

from wcprace.engine import LockNestingError, WCPEngine
from wcprace.model import Lock, Variable
from wcprace.race_stats import RaceType

MAIN = 0
V1 = 0x7FFD1000
V2 = 0x7FFD1004
V3 = 0x7FFD1008
V4 = 0x7FFD100C
M1 = 0x7FFD2000
M2 = 0x7FFD2040


def spawn(engine, *children):
    for child in children:
        engine.before_pthread_create(MAIN)
        engine.thread_begin(child, MAIN)


def finish(engine, *children):
    for child in children:
        engine.thread_end(child, MAIN)


def update(engine, t, addr):
    engine.read(t, Variable(addr))
    engine.write(t, Variable(addr))


def locked_update(engine, t, lock_addr, *addrs):
    engine.acquire(t, Lock(lock_addr))
    for addr in addrs:
        update(engine, t, addr)
    engine.release(t, Lock(lock_addr))


def main_init(engine, *addrs):
    for addr in addrs:
        engine.write(MAIN, Variable(addr))


def main_reads(engine, *addrs):
    for addr in addrs:
        engine.read(MAIN, Variable(addr))


def report(engine):
    out = io.StringIO()
    engine.write_stats(out)
    return out.getvalue().splitlines()


def test_norace1_separate_mutexes():
    engine = WCPEngine(8)
    main_init(engine, V1, V2)
    spawn(engine, 1, 2, 3, 4)
    locked_update(engine, 1, M1, V1)
    locked_update(engine, 2, M2, V2)
    locked_update(engine, 3, M1, V1)
    locked_update(engine, 4, M2, V2)
    finish(engine, 1, 2, 3, 4)
    main_reads(engine, V1, V2)
    assert report(engine) == []


def test_norace4_struct_guarded_by_mutex():
    engine = WCPEngine(8)
    main_init(engine, V1, V2)
    spawn(engine, 1, 2)
    locked_update(engine, 1, V3, V1, V2)
    locked_update(engine, 2, V3, V1, V2)
    finish(engine, 1, 2)
    main_reads(engine, V1, V2)
    assert report(engine) == []


def test_norace5_only_reads():
    engine = WCPEngine(8)
    main_init(engine, V1, V2)
    spawn(engine, 1, 2)
    for t in (1, 2):
        engine.read(t, Variable(V1))
        engine.read(t, Variable(V2))
    finish(engine, 1, 2)
    assert report(engine) == []


def test_norace6_single_mutex_bank():
    engine = WCPEngine(8)
    balance, transactions = V1, V2
    main_init(engine, balance, transactions)
    spawn(engine, 1, 2, 3, 4)

    def deposit(t):
        locked_update(engine, t, M1, balance, transactions)

    def withdraw(t):
        engine.acquire(t, Lock(M1))
        engine.read(t, Variable(balance))
        update(engine, t, balance)
        update(engine, t, transactions)
        engine.release(t, Lock(M1))

    deposit(1)
    withdraw(2)
    deposit(3)
    withdraw(4)
    finish(engine, 1, 2, 3, 4)
    main_reads(engine, balance, transactions)
    assert report(engine) == []


def test_racy1_writer_then_reader():
    engine = WCPEngine(8)
    main_init(engine, V1, V2)
    spawn(engine, 1, 2)
    update(engine, 1, V1)
    update(engine, 1, V2)
    engine.read(2, Variable(V1))
    engine.read(2, Variable(V2))
    finish(engine, 1, 2)
    main_reads(engine, V1, V2)
    assert report(engine) == [
        f"{V1:#x} W-R TID: 2 TID: 1 Count: 1",
        f"{V2:#x} W-R TID: 2 TID: 1 Count: 1",
    ]


def test_racy1_reader_then_writer():
    engine = WCPEngine(8)
    main_init(engine, V1, V2)
    spawn(engine, 1, 2)
    engine.read(2, Variable(V1))
    engine.read(2, Variable(V2))
    update(engine, 1, V1)
    update(engine, 1, V2)
    finish(engine, 1, 2)
    main_reads(engine, V1, V2)
    assert report(engine) == [
        f"{V1:#x} R-W TID: 1 TID: 2 Count: 1",
        f"{V2:#x} R-W TID: 1 TID: 2 Count: 1",
    ]


def three_way(addr):
    return [
        f"{addr:#x} W-W TID: 2 TID: 1 Count: 1",
        f"{addr:#x} W-R TID: 2 TID: 1 Count: 1",
        f"{addr:#x} R-W TID: 2 TID: 1 Count: 1",
    ]


def test_racy3_only_one_thread_locks():
    engine = WCPEngine(8)
    main_init(engine, V1)
    spawn(engine, 1, 2)
    locked_update(engine, 1, M1, V1)
    update(engine, 2, V1)
    finish(engine, 1, 2)
    main_reads(engine, V1)
    assert report(engine) == three_way(V1)


def test_racy3_unlocked_first():
    engine = WCPEngine(8)
    main_init(engine, V1)
    spawn(engine, 1, 2)
    update(engine, 2, V1)
    locked_update(engine, 1, M1, V1)
    stats = engine.race_stats()
    assert stats[1].count(1, 2, V1, RaceType.WR) == 1
    assert stats[1].count(1, 2, V1, RaceType.WW) == 1


def test_racy4_write_write():
    engine = WCPEngine(8)
    main_init(engine, V1)
    spawn(engine, 1, 2)
    update(engine, 1, V1)
    update(engine, 2, V1)
    finish(engine, 1, 2)
    main_reads(engine, V1)
    assert report(engine) == three_way(V1)


def test_racy5_different_mutexes():
    engine = WCPEngine(8)
    main_init(engine, V1)
    spawn(engine, 1, 2)
    locked_update(engine, 1, M1, V1)
    locked_update(engine, 2, M2, V1)
    finish(engine, 1, 2)
    main_reads(engine, V1)
    assert report(engine) == three_way(V1)


def test_racy7_writer_and_reader():
    engine = WCPEngine(8)
    main_init(engine, V1)
    spawn(engine, 1, 2)
    engine.write(1, Variable(V1))
    engine.read(2, Variable(V1))
    finish(engine, 1, 2)
    main_reads(engine, V1)
    assert report(engine) == [f"{V1:#x} W-R TID: 2 TID: 1 Count: 1"]


def test_racy8_predictable_race():
    engine = WCPEngine(8)
    px, py, a, b, m = V1, V2, V3, V4, M1
    main_init(engine, px, py, a, b)
    spawn(engine, 1, 2)

    engine.write(1, Variable(py))
    engine.acquire(1, Lock(m))
    engine.write(1, Variable(px))
    engine.release(1, Lock(m))

    engine.acquire(2, Lock(m))
    engine.read(2, Variable(py))
    engine.write(2, Variable(b))
    engine.read(2, Variable(px))
    engine.write(2, Variable(a))
    engine.release(2, Lock(m))

    finish(engine, 1, 2)
    main_reads(engine, px, py, a, b)
    assert report(engine) == [f"{py:#x} W-R TID: 2 TID: 1 Count: 1"]
    assert engine.race_stats()[2].count(2, 1, px, RaceType.WR) == 0


def test_join_happens_only_after_thread_end():
    engine = WCPEngine(8)
    spawn(engine, 1)
    engine.write(1, Variable(V1))
    engine.read(MAIN, Variable(V1))
    finish(engine, 1)
    engine.read(MAIN, Variable(V1))
    assert engine.race_stats()[MAIN].count(MAIN, 1, V1, RaceType.WR) == 1


def test_addresses_are_aligned():
    engine = WCPEngine(8)
    spawn(engine, 1, 2)
    engine.write(1, Variable(0xC000_0000_0000_0000 | V1))
    engine.write(2, Variable(0x4000_0000_0000_0000 | V1))
    assert engine.race_stats()[2].count(2, 1, V1, RaceType.WW) == 1


def test_race_stats_one_per_thread():
    assert len(WCPEngine(5).race_stats()) == 5


def test_release_without_acquire():
    engine = WCPEngine(4)
    with pytest.raises(LockNestingError, match="without acquiring"):
        engine.release(1, Lock(M1))


def test_release_out_of_order():
    engine = WCPEngine(4)
    engine.acquire(1, Lock(M1))
    engine.acquire(1, Lock(M2))
    with pytest.raises(LockNestingError, match="not well nested"):
        engine.release(1, Lock(M1))


def test_nested_locks_order_accesses():
    engine = WCPEngine(4)
    spawn(engine, 1, 2)
    engine.acquire(1, Lock(M1))
    engine.acquire(1, Lock(M2))
    update(engine, 1, V1)
    engine.release(1, Lock(M2))
    engine.release(1, Lock(M1))
    locked_update(engine, 2, M1, V1)
    assert report(engine) == []