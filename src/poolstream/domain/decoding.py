from __future__ import annotations

from eth_utils import to_checksum_address

from .errors import DecodeError
from .models import RawLog, SwapEvent
from .value_types import Topic0


# Uniswap V3 Swap(address indexed sender, address indexed recipient,
#                 int256 amount0, int256 amount1, uint160 sqrtPriceX96, uint128 liquidity, int24 tick)
SWAP_SIGNATURE = "Swap(address,address,int256,int256,uint160,uint128,int24)"
SWAP_TOPIC0 = Topic0("0xc42079f94a6350d7e6235f29174924f928cc2ac818eb64fed8004e115fbcca67")

_WORDS = 5

# ---------- word helpers ------------------------------------------------------

def _word(b: bytes, i: int) -> bytes: o = i*32; return b[o:o+32]
def _uint(w: bytes) -> int: return int.from_bytes(w, "big")
def _int(w: bytes) -> int: return int.from_bytes(w, "big", signed=True)
def _addr_from_topic(t: str) -> str: return to_checksum_address("0x" + t[-40:])


def _checked_int24(w: bytes) -> int:
    v = _int(w)
    if not -(1 << 23) <= v < (1 << 23):
        raise DecodeError(f"tick out of int24 range: {v}")
    return v


def split_deltas(amount0: int, amount1: int) -> tuple[bool, int, int]:
    """
    Return (zero_for_one, amount_in, amount_out) for the two signed pool deltas.

    Exactly one delta must be positive (tokens paid into the pool); the other
    is the non-positive leg paid out. Anything else is not a real swap.
    """
    if (amount0 > 0) == (amount1 > 0):
        raise DecodeError(f"swap deltas must have exactly one positive leg: amount0={amount0} amount1={amount1}")
    zero_for_one = amount0 > 0
    if zero_for_one:
        return True, amount0, -amount1
    return False, amount1, -amount0


def decode_swap(raw: RawLog) -> SwapEvent:
    if not raw.topics or raw.topics[0].lower() != SWAP_TOPIC0:
        raise DecodeError(f"not a Swap log (topic0={raw.topics[0] if raw.topics else None})")
    if len(raw.topics) < 3:
        raise DecodeError(f"Swap log needs 3 topics, got {len(raw.topics)}")
    if len(raw.data) < 32 * _WORDS:
        raise DecodeError(f"Swap payload too short: {len(raw.data)} bytes")

    amount0 = _int(_word(raw.data, 0))
    amount1 = _int(_word(raw.data, 1))
    zero_for_one, amount_in, amount_out = split_deltas(amount0, amount1)

    try:
        sender = _addr_from_topic(raw.topics[1])
        recipient = _addr_from_topic(raw.topics[2])
        pool = to_checksum_address(raw.address)
    except ValueError as e:
        raise DecodeError(f"bad address: {e}") from e

    return SwapEvent(
        sender          = sender,
        recipient       = recipient,
        amount_in       = amount_in,
        amount_out      = amount_out,
        zero_for_one    = zero_for_one,
        transaction_hash= raw.transaction_hash,
        block_number    = raw.block_number,
        log_index       = raw.log_index,
        pool            = pool,
        amount0         = amount0,
        amount1         = amount1,
        sqrt_price_x96  = _uint(_word(raw.data, 2)),
        liquidity       = _uint(_word(raw.data, 3)),
        tick            = _checked_int24(_word(raw.data, 4)),
    )
