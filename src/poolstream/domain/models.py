from __future__ import annotations
from dataclasses import dataclass
from .value_types import Address, Mode, TxHash

@dataclass(slots=True, frozen=True)
class BlockRange:
    from_block: int
    to_block: int

    def __post_init__(self) -> None:
        if self.from_block < 0 or self.from_block > self.to_block:
            raise ValueError(f"invalid block range [{self.from_block}, {self.to_block}]")

    def span(self) -> int: return self.to_block - self.from_block + 1

    def halves(self) -> tuple[BlockRange, BlockRange]:
        mid = (self.from_block + self.to_block) // 2
        return BlockRange(self.from_block, mid), BlockRange(mid + 1, self.to_block)

@dataclass(slots=True, frozen=True)
class ChainHead:
    number: int
    timestamp: int

@dataclass(slots=True, frozen=True)
class RawLog:
    block_number: int
    transaction_hash: TxHash
    log_index: int
    address: Address
    topics: tuple[str, ...]            # lowercased with 0x
    data: bytes

    @property
    def key(self) -> tuple[int, str, int]:
        return (self.block_number, self.transaction_hash, self.log_index)

@dataclass(slots=True, frozen=True)
class SwapEvent:
    sender: str                        # checksum address
    recipient: str                     # checksum address
    amount_in: int
    amount_out: int
    zero_for_one: bool
    transaction_hash: TxHash
    block_number: int
    log_index: int
    pool: str
    amount0: int                       # raw signed pool deltas
    amount1: int
    sqrt_price_x96: int
    liquidity: int
    tick: int

    @property
    def key(self) -> tuple[int, str, int]:
        return (self.block_number, self.transaction_hash, self.log_index)

@dataclass(slots=True)
class IngestionCursor:
    next_block: int
    mode: Mode = "backfilling"

@dataclass(slots=True, frozen=True)
class ChunkFault:
    range: BlockRange
    error: str
    attempts: int

@dataclass(slots=True, frozen=True)
class DecodeFault:
    block_number: int
    transaction_hash: str
    log_index: int
    reason: str
