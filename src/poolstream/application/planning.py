from __future__ import annotations
from ..domain.models import BlockRange

def plan_chunks(block_range: BlockRange, chunk_size: int) -> list[BlockRange]:
    """Split an inclusive range into consecutive sub-ranges of at most `chunk_size` blocks."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    out: list[BlockRange] = []
    b = block_range.from_block
    while b <= block_range.to_block:
        fb, tb = b, min(block_range.to_block, b + chunk_size - 1)
        out.append(BlockRange(fb, tb))
        b = tb + 1
    return out
