import asyncio, logging, time
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from ..adapters.faults_jsonl import JSONLFaultLog
from ..adapters.parquet_sink import SwapShardWriter
from ..adapters.rpc_httpx import HttpxLedger
from ..adapters.subscription_ws import WebSocketLogSubscription
from ..application.config import FetchPolicy, IngestionConfig
from ..application.pipeline import IngestionPipeline
from ..domain.block_time import AVG_BLOCK_SECONDS, estimate_block
from ..domain.errors import PoolStreamError
from ..domain.models import SwapEvent
from ..domain.value_types import Address

app = typer.Typer(help="poolstream: one ordered stream of a pool's swaps, history first, then live.")
console = Console()

def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(), format="%(message)s", datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)], force=True,
    )

def _fmt_swap(ev: SwapEvent) -> str:
    arrow = "0→1" if ev.zero_for_one else "1→0"
    return (f"[bold]{ev.block_number:,}[/] {ev.transaction_hash[:10]}… "
            f"[cyan]{arrow}[/] in=[green]{ev.amount_in}[/] out=[red]{ev.amount_out}[/] "
            f"sender={ev.sender} recipient={ev.recipient}")

@app.command()
def stream(
    pool: str = typer.Argument(..., help="Pool contract address"),
    rpc_url: str = typer.Option(..., envvar="POOLSTREAM_RPC_URL", help="HTTP JSON-RPC endpoint"),
    ws_url: Optional[str] = typer.Option(None, envvar="POOLSTREAM_WS_URL", help="WebSocket endpoint for live swaps"),
    start_block: Optional[int] = typer.Option(None, help="First block to backfill"),
    start_timestamp: Optional[int] = typer.Option(None, help="Unix time to estimate the first block from"),
    since_hours: Optional[float] = typer.Option(None, help="Shortcut for --start-timestamp now-H hours"),
    target_block: Optional[int] = typer.Option(None, help="Stop at this block instead of the head (requires --no-follow)"),
    chunk_size: int = typer.Option(2_000, help="Blocks per eth_getLogs request"),
    avg_block_seconds: float = typer.Option(AVG_BLOCK_SECONDS, help="Average block interval for estimates"),
    max_attempts: int = typer.Option(1, help="Attempts per chunk (1 = no retry)"),
    backoff: float = typer.Option(1.0, help="Initial retry back-off in seconds"),
    on_exhausted: str = typer.Option("skip", help="skip | abort when a chunk keeps failing"),
    split_on_error: bool = typer.Option(False, help="Halve failing chunks before giving up"),
    follow: bool = typer.Option(True, help="Keep streaming live swaps after the backfill"),
    on_disconnect: str = typer.Option("resubscribe", help="resubscribe | abort when the live feed drops"),
    faults_out: Optional[str] = typer.Option(None, help="JSONL file receiving skipped ranges and dropped logs"),
    parquet_out: Optional[str] = typer.Option(None, help="Directory for Parquet swap shards"),
    timeout: int = typer.Option(20, help="HTTP timeout in seconds"),
    log_level: str = typer.Option("INFO", help="Logging level"),
):
    """Backfill a pool's swaps and follow them live."""
    _setup_logging(log_level)
    if since_hours is not None and start_timestamp is None:
        start_timestamp = int(time.time() - since_hours * 3600)
    if follow and not ws_url:
        raise typer.BadParameter("--ws-url (or POOLSTREAM_WS_URL) is required unless --no-follow", param_hint="--ws-url")
    try:
        config = IngestionConfig(
            pool=Address(pool.lower()),
            start_block=start_block, start_timestamp=start_timestamp, target_block=target_block,
            chunk_size=chunk_size, avg_block_seconds=avg_block_seconds,
            fetch=FetchPolicy(max_attempts=max_attempts, backoff_s=backoff,
                              on_exhausted=on_exhausted, split_on_error=split_on_error),  # type: ignore[arg-type]
            follow_live=follow, on_disconnect=on_disconnect,  # type: ignore[arg-type]
        )
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e

    async def main() -> dict[str, int]:
        ledger = HttpxLedger(rpc_url, timeout_s=timeout)
        subscription = WebSocketLogSubscription(ws_url) if ws_url else None
        sink = JSONLFaultLog(faults_out) if faults_out else None
        writer = SwapShardWriter(parquet_out) if parquet_out else None
        pipeline = IngestionPipeline(ledger, subscription, config, fault_sink=sink)
        try:
            async for ev in pipeline.stream():
                console.print(_fmt_swap(ev), highlight=False)
                if writer is not None:
                    writer.add(ev)
        finally:
            if writer is not None:
                writer.close()
            await ledger.aclose()
        return pipeline.stats

    t0 = time.time()
    try:
        stats = asyncio.run(main())
    except KeyboardInterrupt:
        console.print("[yellow]interrupted[/]")
        return
    except PoolStreamError as e:
        console.print(f"[bold red]error[/]: {e}")
        raise typer.Exit(code=1)
    console.print(f"[bold]done[/]: {stats['swaps']} swaps • {time.time() - t0:.2f}s")
    console.print(
        f"[bold]summary[/]: [green]chunks_ok[/]={stats['chunks_ok']}  "
        f"[red]chunks_failed[/]={stats['chunks_failed']}  "
        f"[red]decode_failed[/]={stats['decode_failed']}  "
        f"[yellow]live_duplicates[/]={stats['live_duplicates']}"
    )

@app.command("estimate-block")
def estimate_block_cmd(
    timestamp: int = typer.Argument(..., help="Unix timestamp"),
    rpc_url: str = typer.Option(..., envvar="POOLSTREAM_RPC_URL"),
    avg_block_seconds: float = typer.Option(AVG_BLOCK_SECONDS),
):
    """Estimate the block mined at TIMESTAMP from the current head."""
    async def main() -> int:
        ledger = HttpxLedger(rpc_url)
        try:
            head = await ledger.chain_head()
        finally:
            await ledger.aclose()
        return estimate_block(timestamp, head.number, head.timestamp, avg_block_seconds)

    typer.echo(asyncio.run(main()))

if __name__ == "__main__":
    app()
