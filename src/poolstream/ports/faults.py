# poolstream/ports/faults.py
from __future__ import annotations
from typing import Protocol

from ..domain.models import ChunkFault, DecodeFault


class FaultSink(Protocol):
    """Port receiving out-of-band fault records (skipped ranges, dropped logs)."""

    async def report(self, fault: ChunkFault | DecodeFault) -> None:
        """Persist or forward a single fault record."""
