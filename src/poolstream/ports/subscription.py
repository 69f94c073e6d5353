# poolstream/ports/subscription.py
from __future__ import annotations

from typing import Callable, Protocol
from ..domain.models import RawLog
from ..domain.value_types import Address, Topic0


class SubscriptionHandle(Protocol):
    def unsubscribe(self) -> None:
        """Stop delivering logs; safe to call more than once."""


class LogSubscription(Protocol):
    """Port for a push-based log feed (e.g. eth_subscribe over a websocket)."""

    async def subscribe(
        self,
        address: Address,
        topic0: Topic0,
        on_log: Callable[[RawLog], object],
        on_error: Callable[[BaseException], object],
    ) -> SubscriptionHandle:
        """
        Start delivering matching logs to `on_log` once this returns.
        `on_error` is called at most once when the feed drops; no logs follow it.
        """
