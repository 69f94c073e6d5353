from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable, Sequence

import pytest

from poolstream.domain.decoding import SWAP_TOPIC0
from poolstream.domain.models import ChainHead, RawLog
from poolstream.domain.value_types import Address, Topic0, TxHash

POOL = Address("0x" + "11" * 20)
SENDER = "0x" + "22" * 20
RECIPIENT = "0x" + "33" * 20

ERROR = object()   # FakeSubscription script marker: drop the feed here


def _w(v: int) -> bytes: return v.to_bytes(32, "big", signed=True)
def _topic_addr(a: str) -> str: return "0x" + "00" * 12 + a[2:]


def swap_log(
    block: int, amount0: int = 500, amount1: int = -480, *,
    log_index: int = 0, tx: int | None = None, tick: int = -5, topic0: str = SWAP_TOPIC0,
) -> RawLog:
    data = _w(amount0) + _w(amount1) + _w(2**96) + _w(10**18) + _w(tick)
    return RawLog(
        block_number=block,
        transaction_hash=TxHash("0x" + format(tx if tx is not None else block * 1000 + log_index, "064x")),
        log_index=log_index,
        address=POOL,
        topics=(topic0, _topic_addr(SENDER), _topic_addr(RECIPIENT)),
        data=data,
    )


class FakeLedger:
    """
    In-memory chain: `heads` are returned one per chain_head() call (the last repeats);
    `failures` maps an exact (from, to) range to how many times it fails;
    `max_span` makes any wider query fail like an oversized provider response.
    """

    def __init__(
        self,
        heads: Sequence[int],
        logs: Sequence[RawLog] = (),
        *,
        failures: dict[tuple[int, int], int] | None = None,
        max_span: int | None = None,
        head_error: Exception | None = None,
    ) -> None:
        self.heads = list(heads)
        self.logs = list(logs)
        self.failures = dict(failures or {})
        self.max_span = max_span
        self.head_error = head_error
        self.calls: list[tuple[int, int]] = []
        self.head_reads = 0

    async def chain_head(self) -> ChainHead:
        if self.head_error is not None:
            raise self.head_error
        self.head_reads += 1
        n = self.heads.pop(0) if len(self.heads) > 1 else self.heads[0]
        return ChainHead(number=n, timestamp=n * 12)

    async def get_logs(self, address: Address, topic0s: Sequence[Topic0], from_block: int, to_block: int) -> list[RawLog]:
        self.calls.append((from_block, to_block))
        if self.max_span is not None and to_block - from_block + 1 > self.max_span:
            raise RuntimeError("query returned more than 10000 results")
        left = self.failures.get((from_block, to_block), 0)
        if left:
            self.failures[(from_block, to_block)] = left - 1
            raise RuntimeError(f"upstream timeout for {from_block}-{to_block}")
        # providers return in chain order but we do not rely on it
        return [l for l in reversed(self.logs) if from_block <= l.block_number <= to_block]


class FakeHandle:
    def __init__(self) -> None:
        self.unsubscribed = 0

    def unsubscribe(self) -> None:
        self.unsubscribed += 1


class FakeSubscription:
    """
    Each subscribe() call plays the next script: logs are delivered as soon as the
    subscription is active, and an ERROR marker drops the feed.
    """

    def __init__(
        self, *scripts: Sequence[object], refuse: Exception | None = None, refuse_at: Sequence[int] = (),
    ) -> None:
        self.scripts = [list(s) for s in scripts] or [[]]
        self.refuse = refuse
        self.refuse_at = set(refuse_at)   # 1-based subscribe() calls that are refused
        self.attempts = 0
        self.handles: list[FakeHandle] = []
        self.on_log: Callable[[RawLog], object] | None = None
        self.on_error: Callable[[BaseException], object] | None = None

    async def subscribe(self, address, topic0, on_log, on_error) -> FakeHandle:
        self.attempts += 1
        if self.refuse is not None:
            raise self.refuse
        if self.attempts in self.refuse_at:
            raise ConnectionRefusedError(f"subscribe attempt {self.attempts} refused")
        self.on_log, self.on_error = on_log, on_error
        script = self.scripts.pop(0) if self.scripts else []
        for item in script:
            if item is ERROR:
                on_error(ConnectionError("socket closed"))
            else:
                on_log(item)
        handle = FakeHandle()
        self.handles.append(handle)
        return handle


async def take(agen: AsyncIterator, n: int, timeout: float = 5.0) -> list:
    """Pull `n` items from an async generator, then close it."""
    out: list = []

    async def _pull() -> None:
        async for item in agen:
            out.append(item)
            if len(out) == n:
                break

    try:
        await asyncio.wait_for(_pull(), timeout)
    finally:
        await agen.aclose()
    return out


@pytest.fixture
def run():
    return asyncio.run


def log_json(**over) -> dict:
    """A provider-shaped log object (eth_getLogs item / eth_subscription result)."""
    rl = {
        "address": POOL,
        "topics": [SWAP_TOPIC0, _topic_addr(SENDER), _topic_addr(RECIPIENT)],
        "data": "0x" + "00" * 160,
        "blockNumber": "0x64",
        "transactionHash": "0x" + "AB" * 32,
        "logIndex": "0x3",
        "removed": False,
    }
    rl.update(over)
    return rl
