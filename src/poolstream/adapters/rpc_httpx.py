from __future__ import annotations
import asyncio, logging, httpx
from typing import Sequence
from ..domain.models import ChainHead, RawLog
from ..domain.value_types import Address, Topic0
from ..ports.ledger import LedgerClient
from .jsonrpc import get_logs_params, raw_log_from_json, rpc_request, rpc_result

log = logging.getLogger(__name__)

class HttpxLedger(LedgerClient):
    def __init__(
        self,
        rpc_url: str,
        timeout_s: int = 20,
        max_conn: int = 16,
        *,
        max_429_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.max_429_retries = max_429_retries
        self.client = httpx.AsyncClient(
            http2=True,
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(max_connections=max_conn, max_keepalive_connections=max(1, max_conn//2)),
            transport=transport,
        )

    async def _call(self, method: str, params: list) -> object:
        payload = rpc_request(method, params)
        # retry on 429 with simple backoff
        for attempt in range(self.max_429_retries):
            r = await self.client.post(self.rpc_url, json=payload)
            if r.status_code == 429:
                ra = r.headers.get("Retry-After")
                delay = max(1.0, float(ra)) if ra and ra.isdigit() else (1.0 * (2**attempt))
                log.debug("%s rate limited; sleeping %.1fs", method, delay)
                await asyncio.sleep(delay); continue
            r.raise_for_status()
            return rpc_result(r.json(), method)
        raise RuntimeError(f"Retries exhausted for {method}")

    async def chain_head(self) -> ChainHead:
        block = await self._call("eth_getBlockByNumber", ["latest", False])
        if not isinstance(block, dict):
            raise RuntimeError(f"eth_getBlockByNumber returned {block!r}")
        return ChainHead(number=int(block["number"], 16), timestamp=int(block["timestamp"], 16))

    async def get_logs(self, address: Address, topic0s: Sequence[Topic0], from_block: int, to_block: int) -> list[RawLog]:
        res = await self._call("eth_getLogs", get_logs_params(address, topic0s, from_block, to_block))
        return [raw_log_from_json(rl) for rl in (res or [])]

    async def aclose(self) -> None:
        await self.client.aclose()
