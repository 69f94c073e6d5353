from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import AsyncIterator

from ..domain.block_time import estimate_block
from ..domain.decoding import SWAP_TOPIC0, decode_swap
from ..domain.errors import DecodeError, FatalStartupError, SubscriptionError
from ..domain.models import ChainHead, IngestionCursor, RawLog, SwapEvent
from ..ports.faults import FaultSink
from ..ports.ledger import LedgerClient
from ..ports.subscription import LogSubscription
from .catch_up import CatchUpCoordinator
from .config import IngestionConfig
from .faults import FaultReporter, empty_stats
from .live import LiveEventSource
from .scanner import LogChunkScanner

log = logging.getLogger(__name__)


class _RecentKeys:
    """Bounded set of the most recently yielded log keys."""

    def __init__(self, maxlen: int) -> None:
        self.maxlen = maxlen
        self._keys: OrderedDict[tuple[int, str, int], None] = OrderedDict()

    def __contains__(self, key: tuple[int, str, int]) -> bool:
        return key in self._keys

    def add(self, key: tuple[int, str, int]) -> None:
        self._keys[key] = None
        self._keys.move_to_end(key)
        while len(self._keys) > self.maxlen:
            self._keys.popitem(last=False)


class IngestionPipeline:
    """
    Backfill from a start block, then follow the live subscription, as one stream.

    The subscription is opened before the first backfill query so that every log mined
    after the backfill's last head read is already being buffered. Live events below the
    block where the backfill stopped are dropped, except inside ranges the scanner skipped;
    those are recovered from the live feed and arrive out of block order. Within the
    overlap block, duplicates are removed by log key.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        subscription: LogSubscription | None,
        config: IngestionConfig,
        fault_sink: FaultSink | None = None,
    ) -> None:
        if config.follow_live and subscription is None:
            raise ValueError("follow_live requires a subscription")
        self.ledger = ledger
        self.subscription = subscription
        self.config = config
        self.stats = empty_stats()
        self.faults = FaultReporter(self.stats, fault_sink)
        self.scanner = LogChunkScanner(ledger, config.fetch, stats=self.stats)
        self.cursor: IngestionCursor | None = None
        self._recent = _RecentKeys(config.dedupe_window)

    # ---------- startup -------------------------------------------------------

    def resolve_start_block(self, head: ChainHead) -> int:
        cfg = self.config
        if cfg.start_block is not None:
            return cfg.start_block
        if cfg.start_timestamp is not None:
            est = estimate_block(cfg.start_timestamp, head.number, head.timestamp, cfg.avg_block_seconds)
            return min(est, head.number)
        return head.number

    async def _activate_live(self) -> LiveEventSource[RawLog]:
        assert self.subscription is not None
        source: LiveEventSource[RawLog] = LiveEventSource(self.config.poll_interval_s)
        handle = await self.subscription.subscribe(self.config.pool, SWAP_TOPIC0, source.push, source.fail)
        source.attach(handle.unsubscribe)
        log.info("live subscription active for %s", self.config.pool)
        return source

    # ---------- stream --------------------------------------------------------

    async def stream(self) -> AsyncIterator[SwapEvent]:
        try:
            head = await self.ledger.chain_head()
        except Exception as e:
            raise FatalStartupError(f"cannot read chain head: {e}") from e
        start = self.resolve_start_block(head)
        self.cursor = IngestionCursor(next_block=start)
        log.info("starting at block %d (head %d)", start, head.number)

        source: LiveEventSource[RawLog] | None = None
        if self.config.follow_live:
            try:
                source = await self._activate_live()
            except Exception as e:
                raise FatalStartupError(f"cannot subscribe to {self.config.pool}: {e}") from e

        try:
            async for ev in self._backfill(self.cursor):
                yield ev
            if source is None:
                return

            floor = self.cursor.next_block
            log.info("handing off to live feed at block %d", floor)
            failures = 0
            while True:
                try:
                    async for ev in self._drain(source, floor):
                        failures = 0
                        yield ev
                    return
                except SubscriptionError as e:
                    source.close()
                    failures += 1
                    if self.config.on_disconnect == "abort" or failures > self.config.max_resubscribes:
                        raise
                    reason: BaseException = e

                while True:
                    log.warning("live feed dropped (%s); resubscribing (%d/%d)",
                                reason, failures, self.config.max_resubscribes)
                    await asyncio.sleep(self.config.resubscribe_backoff_s * 2 ** (failures - 1))
                    self.stats["resubscribes"] += 1
                    try:
                        source = await self._activate_live()
                        break
                    except Exception as e:
                        failures += 1
                        if failures > self.config.max_resubscribes:
                            raise SubscriptionError(f"cannot resubscribe to {self.config.pool}: {e}") from e
                        reason = e

                gap = IngestionCursor(next_block=self.cursor.next_block)
                async for ev in self._backfill(gap):
                    yield ev
                self.cursor.next_block = max(self.cursor.next_block, gap.next_block)
                floor = self.cursor.next_block
        finally:
            if source is not None:
                source.close()

    async def _backfill(self, cursor: IngestionCursor) -> AsyncIterator[SwapEvent]:
        coordinator = CatchUpCoordinator(
            self.ledger, self.scanner, self.faults,
            address=self.config.pool, cursor=cursor,
            chunk_size=self.config.chunk_size, target_block=self.config.target_block,
        )
        async for ev in coordinator.run():
            if ev.key in self._recent:
                continue
            self._recent.add(ev.key)
            self.stats["swaps"] += 1
            yield ev

    def _already_scanned(self, block: int, floor: int) -> bool:
        # blocks below the floor were covered by a backfill, except skipped chunks
        return block < floor and not any(r.from_block <= block <= r.to_block for r in self.faults.skipped)

    async def _drain(self, source: LiveEventSource[RawLog], floor: int) -> AsyncIterator[SwapEvent]:
        async for raw in source:
            self.stats["live_events"] += 1
            try:
                ev = decode_swap(raw)
            except DecodeError as e:
                await self.faults.decode_failed(raw, str(e))
                continue
            if ev.key in self._recent or self._already_scanned(ev.block_number, floor):
                self.stats["live_duplicates"] += 1
                continue
            self._recent.add(ev.key)
            assert self.cursor is not None
            self.cursor.next_block = max(self.cursor.next_block, ev.block_number)
            self.stats["swaps"] += 1
            yield ev
