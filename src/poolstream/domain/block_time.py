from __future__ import annotations
import math

AVG_BLOCK_SECONDS = 14.0   # mainnet pre-merge average


def estimate_block(
    target_timestamp: int,
    current_block: int,
    current_timestamp: int,
    avg_block_seconds: float = AVG_BLOCK_SECONDS,
) -> int:
    """
    Approximate the block mined at `target_timestamp` by walking back from the
    current head at a constant block interval.

    Timestamps in the future give a block >= `current_block`; clamping is up to the caller.
    """
    if avg_block_seconds <= 0:
        raise ValueError(f"avg_block_seconds must be > 0, got {avg_block_seconds}")
    blocks_ago = math.floor((current_timestamp - target_timestamp) / avg_block_seconds)
    return max(current_block - blocks_ago, 0)
