# poolstream/ports/ledger.py
from __future__ import annotations

from typing import Protocol, Sequence
from ..domain.models import ChainHead, RawLog
from ..domain.value_types import Address, Topic0


class LedgerClient(Protocol):
    """Port defining the contract for the chain provider used by backfill."""

    async def chain_head(self) -> ChainHead:
        """Return the latest block number and its timestamp."""

    async def get_logs(
        self,
        address: Address,
        topic0s: Sequence[Topic0],
        from_block: int,
        to_block: int,
    ) -> list[RawLog]:
        """Return normalized, typed logs for [from_block, to_block] inclusive."""
