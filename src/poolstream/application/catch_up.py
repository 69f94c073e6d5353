from __future__ import annotations

import logging
import time
from typing import AsyncIterator

from ..domain.decoding import decode_swap
from ..domain.errors import DecodeError
from ..domain.models import BlockRange, ChunkFault, IngestionCursor, SwapEvent
from ..domain.value_types import Address
from ..ports.ledger import LedgerClient
from .faults import FaultReporter
from .scanner import LogChunkScanner

log = logging.getLogger(__name__)


class CatchUpCoordinator:
    """
    Backfill loop: scan [cursor.next_block, head] repeatedly until the cursor passes the
    head (or the fixed target), then flip the cursor to "live".

    Single-shot; the cursor is lent by the pipeline and only ever moves forward.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        scanner: LogChunkScanner,
        faults: FaultReporter,
        *,
        address: Address,
        cursor: IngestionCursor,
        chunk_size: int,
        target_block: int | None = None,
    ) -> None:
        self.ledger = ledger
        self.scanner = scanner
        self.faults = faults
        self.address = address
        self.cursor = cursor
        self.chunk_size = chunk_size
        self.target_block = target_block

    def _reached_target(self) -> bool:
        return self.target_block is not None and self.cursor.next_block > self.target_block

    async def run(self) -> AsyncIterator[SwapEvent]:
        if self.cursor.mode != "backfilling":
            raise RuntimeError("catch-up already completed for this cursor")
        t0 = time.monotonic()
        iterations = 0
        while True:
            if self._reached_target():
                break
            head = (await self.ledger.chain_head()).number
            if self.cursor.next_block > head:
                break
            upper = head if self.target_block is None else min(head, self.target_block)
            iterations += 1
            log.info("backfilling blocks %d to %d (head %d)", self.cursor.next_block, upper, head)

            async for item in self.scanner.scan(self.address, BlockRange(self.cursor.next_block, upper), self.chunk_size):
                if isinstance(item, ChunkFault):
                    await self.faults.chunk_failed(item)
                    continue
                try:
                    ev = decode_swap(item)
                except DecodeError as e:
                    await self.faults.decode_failed(item, str(e))
                    continue
                yield ev

            self.cursor.next_block = upper + 1

        self.cursor.mode = "live"
        log.info("caught up at block %d after %d iteration(s) in %.2fs",
                 self.cursor.next_block - 1, iterations, time.monotonic() - t0)
