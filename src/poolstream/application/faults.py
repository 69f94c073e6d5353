from __future__ import annotations
import logging

from ..domain.models import BlockRange, ChunkFault, DecodeFault, RawLog
from ..ports.faults import FaultSink

log = logging.getLogger(__name__)

STAT_KEYS: tuple[str, ...] = (
    "chunks_ok", "chunks_failed", "logs", "swaps", "decode_failed",
    "live_events", "live_duplicates", "resubscribes",
)

def empty_stats() -> dict[str, int]: return {k: 0 for k in STAT_KEYS}


class FaultReporter:
    """Counts faults into the pipeline stats, logs them and forwards them to an optional sink."""

    def __init__(self, stats: dict[str, int], sink: FaultSink | None = None) -> None:
        self.stats = stats
        self.sink = sink
        self.skipped: list[BlockRange] = []

    async def chunk_failed(self, fault: ChunkFault) -> None:
        self.stats["chunks_failed"] += 1
        self.skipped.append(fault.range)
        log.warning("skipped blocks %d-%d after %d attempt(s): %s",
                    fault.range.from_block, fault.range.to_block, fault.attempts, fault.error)
        if self.sink is not None:
            await self.sink.report(fault)

    async def decode_failed(self, raw: RawLog, reason: str) -> None:
        self.stats["decode_failed"] += 1
        log.warning("dropped malformed log %s#%d in block %d: %s",
                    raw.transaction_hash, raw.log_index, raw.block_number, reason)
        if self.sink is not None:
            await self.sink.report(DecodeFault(raw.block_number, raw.transaction_hash, raw.log_index, reason))
