from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from ..domain.decoding import SWAP_TOPIC0
from ..domain.errors import TransientFetchError
from ..domain.models import BlockRange, ChunkFault, RawLog
from ..domain.value_types import Address, Topic0
from ..ports.ledger import LedgerClient
from .config import FetchPolicy
from .faults import empty_stats
from .planning import plan_chunks

log = logging.getLogger(__name__)


class LogChunkScanner:
    """
    Fetches a pool's logs over an inclusive block range, one bounded query per chunk.

    Chunks are fetched strictly in order. Logs come out sorted by (block, log index);
    a chunk that cannot be fetched comes out as a ChunkFault in its place unless the
    policy aborts.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        policy: FetchPolicy | None = None,
        *,
        topic0: Topic0 = SWAP_TOPIC0,
        stats: dict[str, int] | None = None,
    ) -> None:
        self.ledger = ledger
        self.policy = policy or FetchPolicy()
        self.topic0 = topic0
        self.stats = stats if stats is not None else empty_stats()

    async def scan(
        self, address: Address, block_range: BlockRange, chunk_size: int,
    ) -> AsyncIterator[RawLog | ChunkFault]:
        for chunk in plan_chunks(block_range, chunk_size):
            stack: list[BlockRange] = [chunk]
            while stack:
                part = stack.pop()
                try:
                    logs = await self._fetch(address, part)
                except Exception as e:
                    if self.policy.split_on_error and part.span() > self.policy.min_split_span:
                        left, right = part.halves()
                        log.info("splitting blocks %d-%d after error: %s", part.from_block, part.to_block, e)
                        stack.append(right); stack.append(left)
                        continue
                    fault = ChunkFault(part, f"{type(e).__name__}: {e}", self.policy.max_attempts)
                    if self.policy.on_exhausted == "abort":
                        raise TransientFetchError(fault) from e
                    yield fault
                    continue

                self.stats["chunks_ok"] += 1
                self.stats["logs"] += len(logs)
                log.info("fetched %d logs from blocks %d to %d", len(logs), part.from_block, part.to_block)
                for rl in sorted(logs, key=lambda x: (x.block_number, x.log_index)):
                    yield rl

    async def _fetch(self, address: Address, part: BlockRange) -> list[RawLog]:
        attempt = 1
        while True:
            try:
                return await self.ledger.get_logs(address, [self.topic0], part.from_block, part.to_block)
            except Exception as e:
                if attempt >= self.policy.max_attempts:
                    raise
                delay = self.policy.backoff_s * (2 ** (attempt - 1))
                log.info("blocks %d-%d attempt %d failed (%s); retrying in %.1fs",
                         part.from_block, part.to_block, attempt, e, delay)
                await asyncio.sleep(delay)
                attempt += 1
