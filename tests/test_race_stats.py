import io

from wcprace.race_stats import RaceStats, RaceType


def test_new_stats_are_empty():
    stats = RaceStats()
    assert stats.lines() == []
    assert not stats


def test_add_race_counts_repeats():
    stats = RaceStats()
    for _ in range(3):
        stats.add_race(1, 2, 0x1000, RaceType.WW)
    assert stats.count(1, 2, 0x1000, RaceType.WW) == 3
    assert stats.count(1, 2, 0x1000, RaceType.WR) == 0


def test_line_format():
    stats = RaceStats()
    stats.add_race(1, 2, 0x1000, RaceType.WW)
    assert stats.lines() == ["0x1000 W-W TID: 1 TID: 2 Count: 1"]


def test_null_address_printed_as_nil():
    stats = RaceStats()
    stats.add_race(0, 1, 0, RaceType.RW)
    assert stats.lines()[0].startswith("(nil) R-W")


def test_types_reported_in_fixed_order():
    stats = RaceStats()
    stats.add_race(1, 0, 0x10, RaceType.RW)
    stats.add_race(1, 0, 0x10, RaceType.WR)
    stats.add_race(1, 0, 0x10, RaceType.WW)
    labels = [line.split()[1] for line in stats.lines()]
    assert labels == ["W-W", "W-R", "R-W"]


def test_lines_sorted_within_type():
    stats = RaceStats()
    stats.add_race(2, 0, 0x20, RaceType.WW)
    stats.add_race(1, 3, 0x40, RaceType.WW)
    stats.add_race(1, 3, 0x30, RaceType.WW)
    lines = stats.lines()
    assert lines[0].startswith("0x30 W-W TID: 1 TID: 3")
    assert lines[1].startswith("0x40 W-W TID: 1 TID: 3")
    assert lines[2].startswith("0x20 W-W TID: 2 TID: 0")


def test_write_matches_lines():
    stats = RaceStats()
    stats.add_race(1, 2, 0x1000, RaceType.WR)
    stats.add_race(2, 1, 0x1004, RaceType.RW)
    out = io.StringIO()
    stats.write(out)
    assert out.getvalue() == "".join(line + "\n" for line in stats.lines())
    assert out.getvalue().count("\n") == 2