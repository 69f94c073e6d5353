from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable

import websockets
from websockets.exceptions import ConnectionClosed

from ..domain.errors import DecodeError, SubscriptionError
from ..domain.models import RawLog
from ..domain.value_types import Address, Topic0
from ..ports.subscription import LogSubscription, SubscriptionHandle
from .jsonrpc import build_topics_param, raw_log_from_json, rpc_request

log = logging.getLogger(__name__)


class WebSocketSubscriptionHandle(SubscriptionHandle):
    def __init__(self, subscription_id: str) -> None:
        self.task: asyncio.Task[None] | None = None
        self.subscription_id = subscription_id
        self.rejected = 0          # notifications that failed validation

    def unsubscribe(self) -> None:
        if self.task is not None and not self.task.done():
            self.task.cancel()


class WebSocketLogSubscription(LogSubscription):
    """eth_subscribe("logs", …) over a websocket; one connection per subscription."""

    def __init__(self, ws_url: str, *, open_timeout_s: float = 20, ping_interval_s: float = 20) -> None:
        self.ws_url = ws_url
        self.open_timeout_s = open_timeout_s
        self.ping_interval_s = ping_interval_s

    async def subscribe(
        self,
        address: Address,
        topic0: Topic0,
        on_log: Callable[[RawLog], object],
        on_error: Callable[[BaseException], object],
    ) -> WebSocketSubscriptionHandle:
        ws = await websockets.connect(
            self.ws_url,
            open_timeout=self.open_timeout_s,
            ping_interval=self.ping_interval_s,
            max_size=10 * 1024 * 1024,
        )
        try:
            await ws.send(json.dumps(rpc_request("eth_subscribe", [
                "logs", {"address": str(address).lower(), "topics": build_topics_param([topic0])},
            ])))
            resp = json.loads(await asyncio.wait_for(ws.recv(), timeout=self.open_timeout_s))
            if "error" in resp or not isinstance(resp.get("result"), str):
                raise SubscriptionError(f"eth_subscribe refused: {resp.get('error', resp)}")
        except BaseException:
            await ws.close()
            raise

        sub_id: str = resp["result"]
        log.info("subscribed to %s logs (subscription %s)", address, sub_id)
        handle = WebSocketSubscriptionHandle(sub_id)
        handle.task = asyncio.create_task(self._pump(ws, handle, on_log, on_error))
        # a task cancelled before its first step never reaches the pump's finally
        handle.task.add_done_callback(lambda t: asyncio.ensure_future(ws.close()) if t.cancelled() else None)
        return handle

    async def _pump(
        self,
        ws: Any,
        handle: WebSocketSubscriptionHandle,
        on_log: Callable[[RawLog], object],
        on_error: Callable[[BaseException], object],
    ) -> None:
        try:
            async for message in ws:
                try:
                    msg = json.loads(message)
                except json.JSONDecodeError as e:
                    log.warning("ignoring non-JSON websocket message: %s", e)
                    continue
                if not isinstance(msg, dict) or msg.get("method") != "eth_subscription":
                    continue
                params = msg.get("params")
                if not isinstance(params, dict) or params.get("subscription") != handle.subscription_id:
                    continue
                try:
                    raw = raw_log_from_json(params.get("result"))
                except DecodeError as e:
                    handle.rejected += 1
                    log.warning("rejected malformed subscription payload: %s", e)
                    continue
                on_log(raw)
            on_error(SubscriptionError("websocket closed by server"))
        except ConnectionClosed as e:
            on_error(SubscriptionError(f"websocket connection lost: {e}"))
        finally:
            await ws.close()
