import pytest

from conftest import POOL, FakeLedger, swap_log
from poolstream.application.catch_up import CatchUpCoordinator
from poolstream.application.faults import FaultReporter, empty_stats
from poolstream.application.scanner import LogChunkScanner
from poolstream.domain.models import IngestionCursor


def _coordinator(ledger, start, chunk_size=7, target=None):
    stats = empty_stats()
    cursor = IngestionCursor(next_block=start)
    coord = CatchUpCoordinator(
        ledger, LogChunkScanner(ledger, stats=stats), FaultReporter(stats),
        address=POOL, cursor=cursor, chunk_size=chunk_size, target_block=target,
    )
    return coord, cursor, stats


async def _drain(coord):
    return [ev async for ev in coord.run()]


def _assert_contiguous(calls, first, last):
    assert calls[0][0] == first
    assert calls[-1][1] == last
    for prev, nxt in zip(calls, calls[1:]):
        assert nxt[0] == prev[1] + 1


def test_follows_advancing_head_until_caught_up(run):
    logs = [swap_log(b) for b in (100, 115, 125, 130)]
    ledger = FakeLedger([110, 120, 130], logs)
    coord, cursor, _ = _coordinator(ledger, 100)
    events = run(_drain(coord))
    assert cursor.next_block == 131
    assert cursor.mode == "live"
    _assert_contiguous(ledger.calls, 100, 130)
    assert all(tb - fb + 1 <= 7 for fb, tb in ledger.calls)
    assert [e.block_number for e in events] == [100, 115, 125, 130]


def test_fixed_target_never_scanned_past(run):
    ledger = FakeLedger([200], [swap_log(150), swap_log(151)])
    coord, cursor, _ = _coordinator(ledger, 100, chunk_size=20, target=150)
    events = run(_drain(coord))
    assert cursor.next_block == 151
    assert cursor.mode == "live"
    assert max(tb for _, tb in ledger.calls) == 150
    assert [e.block_number for e in events] == [150]


def test_target_ahead_of_head_goes_live_at_head(run):
    ledger = FakeLedger([120])
    coord, cursor, _ = _coordinator(ledger, 100, chunk_size=50, target=500)
    run(_drain(coord))
    assert cursor.next_block == 121
    assert ledger.calls == [(100, 120)]


def test_start_past_head_goes_live_without_scanning(run):
    ledger = FakeLedger([99])
    coord, cursor, _ = _coordinator(ledger, 100)
    assert run(_drain(coord)) == []
    assert ledger.calls == []
    assert cursor.mode == "live"


def test_faults_are_reported_and_dropped(run):
    logs = [swap_log(100), swap_log(101, 5, 7), swap_log(103)]
    ledger = FakeLedger([103], logs, failures={(102, 102): 1})
    coord, cursor, stats = _coordinator(ledger, 100, chunk_size=1)
    events = run(_drain(coord))
    assert [e.block_number for e in events] == [100, 103]
    assert stats["decode_failed"] == 1
    assert stats["chunks_failed"] == 1
    # a skipped chunk still advances the cursor (documented gap)
    assert cursor.next_block == 104


def test_single_shot(run):
    ledger = FakeLedger([100])
    coord, _, _ = _coordinator(ledger, 100)
    run(_drain(coord))
    with pytest.raises(RuntimeError):
        run(_drain(coord))
