from __future__ import annotations
from dataclasses import dataclass, field

from ..domain.block_time import AVG_BLOCK_SECONDS
from ..domain.value_types import Address, OnDisconnect, OnExhausted


@dataclass(slots=True, frozen=True)
class FetchPolicy:
    """
    What the scanner does when a chunk's log query fails.

    - max_attempts: 1 means no retry; n > 1 retries with exponential back-off.
    - on_exhausted: "skip" reports the range as a ChunkFault and keeps going
      (the stream then has a gap only visible through the fault channel);
      "abort" raises TransientFetchError.
    - split_on_error: halve a failing range until `min_split_span` before giving up
      (providers reject responses that are too large).
    """
    max_attempts: int = 1
    backoff_s: float = 1.0
    on_exhausted: OnExhausted = "skip"
    split_on_error: bool = False
    min_split_span: int = 100

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.backoff_s < 0:
            raise ValueError(f"backoff_s must be >= 0, got {self.backoff_s}")
        if self.on_exhausted not in ("skip", "abort"):
            raise ValueError(f"on_exhausted must be 'skip' or 'abort', got {self.on_exhausted!r}")
        if self.min_split_span < 1:
            raise ValueError(f"min_split_span must be >= 1, got {self.min_split_span}")


@dataclass(slots=True, frozen=True)
class IngestionConfig:
    pool: Address
    start_block: int | None = None
    start_timestamp: int | None = None     # ignored when start_block is set
    target_block: int | None = None        # backfill ceiling, only without follow_live
    chunk_size: int = 2_000
    avg_block_seconds: float = AVG_BLOCK_SECONDS
    poll_interval_s: float = 1.0
    fetch: FetchPolicy = field(default_factory=FetchPolicy)
    follow_live: bool = True
    on_disconnect: OnDisconnect = "resubscribe"
    max_resubscribes: int = 5
    dedupe_window: int = 10_000
    resubscribe_backoff_s: float = 1.0    # doubled per consecutive failure

    def __post_init__(self) -> None:
        if not (isinstance(self.pool, str) and self.pool.startswith("0x") and len(self.pool) == 42):
            raise ValueError(f"pool must be a 0x-prefixed 20-byte address, got {self.pool!r}")
        if self.start_block is not None and self.start_block < 0:
            raise ValueError(f"start_block must be >= 0, got {self.start_block}")
        if self.target_block is not None and self.target_block < 0:
            raise ValueError(f"target_block must be >= 0, got {self.target_block}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if self.poll_interval_s <= 0:
            raise ValueError(f"poll_interval_s must be > 0, got {self.poll_interval_s}")
        if self.on_disconnect not in ("abort", "resubscribe"):
            raise ValueError(f"on_disconnect must be 'abort' or 'resubscribe', got {self.on_disconnect!r}")
        if self.max_resubscribes < 0:
            raise ValueError(f"max_resubscribes must be >= 0, got {self.max_resubscribes}")
        if self.resubscribe_backoff_s < 0:
            raise ValueError(f"resubscribe_backoff_s must be >= 0, got {self.resubscribe_backoff_s}")
        if self.target_block is not None and self.follow_live:
            raise ValueError("target_block stops the backfill short of the head; it cannot be combined with follow_live")
        if self.dedupe_window < 1:
            raise ValueError(f"dedupe_window must be >= 1, got {self.dedupe_window}")
