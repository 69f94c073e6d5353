import pytest

from poolstream.application.planning import plan_chunks
from poolstream.domain.models import BlockRange


@pytest.mark.parametrize("fb,tb,size", [
    (0, 0, 1), (100, 105, 2), (100, 104, 2), (7, 7, 2_000),
    (1, 10_000, 2_000), (19_577_616, 19_589_958, 2_000), (50, 60, 1),
])
def test_chunks_cover_range_exactly_once(fb, tb, size):
    chunks = plan_chunks(BlockRange(fb, tb), size)
    assert chunks[0].from_block == fb
    assert chunks[-1].to_block == tb
    for prev, nxt in zip(chunks, chunks[1:]):
        assert nxt.from_block == prev.to_block + 1
    assert all(1 <= c.span() <= size for c in chunks)
    assert sum(c.span() for c in chunks) == tb - fb + 1


def test_example_partition():
    assert plan_chunks(BlockRange(100, 105), 2) == [
        BlockRange(100, 101), BlockRange(102, 103), BlockRange(104, 105),
    ]


def test_last_chunk_is_short():
    assert plan_chunks(BlockRange(0, 4), 2)[-1] == BlockRange(4, 4)


def test_rejects_zero_chunk_size():
    with pytest.raises(ValueError):
        plan_chunks(BlockRange(0, 10), 0)


def test_block_range_invariant():
    with pytest.raises(ValueError):
        BlockRange(10, 9)
    with pytest.raises(ValueError):
        BlockRange(-1, 3)
    assert BlockRange(3, 3).span() == 1
    assert BlockRange(0, 9).halves() == (BlockRange(0, 4), BlockRange(5, 9))
