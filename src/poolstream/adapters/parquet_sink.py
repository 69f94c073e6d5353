from __future__ import annotations
import os, glob, logging
import pyarrow as pa, pyarrow.parquet as pq

from ..domain.models import SwapEvent

log = logging.getLogger(__name__)

SWAP_SCHEMA = pa.schema([
    pa.field("block_number",     pa.int64()),
    pa.field("tx_hash",          pa.large_string()),
    pa.field("log_index",        pa.int32()),
    pa.field("pool",             pa.large_string()),
    pa.field("sender",           pa.large_string()),
    pa.field("recipient",        pa.large_string()),
    pa.field("zero_for_one",     pa.bool_()),
    pa.field("amount_in",        pa.large_string()),   # big ints as strings
    pa.field("amount_out",       pa.large_string()),
    pa.field("amount0",          pa.large_string()),
    pa.field("amount1",          pa.large_string()),
    pa.field("sqrt_price_x96",   pa.large_string()),
    pa.field("liquidity",        pa.large_string()),
    pa.field("tick",             pa.int32()),
])

SWAP_COLS: tuple[str, ...] = tuple(f.name for f in SWAP_SCHEMA)


def _row(ev: SwapEvent) -> dict[str, object]:
    return {
        "block_number":   ev.block_number,
        "tx_hash":        ev.transaction_hash,
        "log_index":      ev.log_index,
        "pool":           ev.pool,
        "sender":         ev.sender,
        "recipient":      ev.recipient,
        "zero_for_one":   ev.zero_for_one,
        "amount_in":      str(ev.amount_in),
        "amount_out":     str(ev.amount_out),
        "amount0":        str(ev.amount0),
        "amount1":        str(ev.amount1),
        "sqrt_price_x96": str(ev.sqrt_price_x96),
        "liquidity":      str(ev.liquidity),
        "tick":           ev.tick,
    }


class SwapShardWriter:
    """
    Buffers decoded swaps and writes a Parquet shard every `rows_per_shard` rows.
    Shards are numbered after any already present in `out_dir/shards`.
    """
    def __init__(self, out_dir: str, *, rows_per_shard: int = 50_000, codec: str = "zstd") -> None:
        if rows_per_shard < 1:
            raise ValueError(f"rows_per_shard must be >= 1, got {rows_per_shard}")
        self.rows_per_shard = rows_per_shard
        self.codec = codec
        self.shards_dir = os.path.join(out_dir, "shards")
        os.makedirs(self.shards_dir, exist_ok=True)
        self.buf: dict[str, list] = {name: [] for name in SWAP_COLS}
        self.buffered = 0
        self.shard_idx = self._next_shard_index()
        self.written: list[str] = []

    def _next_shard_index(self) -> int:
        existing = sorted(glob.glob(os.path.join(self.shards_dir, "shard_*.parquet")))
        return 1 if not existing else int(os.path.basename(existing[-1]).split("_")[1].split(".")[0]) + 1

    def _flush(self) -> str | None:
        if self.buffered == 0:
            return None
        arrays = {k: pa.array(v, type=SWAP_SCHEMA.field(k).type) for k, v in self.buf.items()}
        table = pa.Table.from_pydict(arrays, schema=SWAP_SCHEMA).sort_by([
            ("block_number", "ascending"),
            ("tx_hash", "ascending"),
            ("log_index", "ascending"),
        ])
        out_path = os.path.join(self.shards_dir, f"shard_{self.shard_idx:05d}.parquet")
        pq.write_table(table, out_path, compression=self.codec)
        log.info("wrote shard %05d -> %s (rows=%d)", self.shard_idx, out_path, len(table))
        self.written.append(out_path)
        self.buf = {name: [] for name in SWAP_COLS}
        self.buffered = 0
        self.shard_idx += 1
        return out_path

    def add(self, ev: SwapEvent) -> str | None:
        for k, v in _row(ev).items():
            self.buf[k].append(v)
        self.buffered += 1
        if self.buffered >= self.rows_per_shard:
            return self._flush()
        return None

    def close(self) -> str | None:
        """Flush the remainder (partial shard)."""
        return self._flush()
