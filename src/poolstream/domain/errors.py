from __future__ import annotations
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ChunkFault


class PoolStreamError(Exception):
    """Base class for ingestion failures."""


class DecodeError(PoolStreamError):
    """A log payload could not be turned into a SwapEvent."""


class TransientFetchError(PoolStreamError):
    """A chunk's log query failed and the fetch policy says abort."""

    def __init__(self, fault: ChunkFault) -> None:
        super().__init__(f"logs for blocks {fault.range.from_block}-{fault.range.to_block} "
                         f"failed after {fault.attempts} attempt(s): {fault.error}")
        self.fault = fault


class SubscriptionError(PoolStreamError):
    """The live feed disconnected or refused the subscription."""


class FatalStartupError(PoolStreamError):
    """The provider could not be reached when the pipeline started."""
