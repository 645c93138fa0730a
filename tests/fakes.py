"""Hand-written fakes for driving the engine deterministically."""
from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Optional

from orb_trader.clock import Clock
from orb_trader.feed import PriceStream, StreamClosed
from orb_trader.interfaces import Failure, MarketDataSource, OrderExecutor, Result, Success
from orb_trader.models import Candle, OrderResponse, Side

DAY = datetime(2024, 12, 2)


def at(hour: int, minute: int, second: int = 0) -> datetime:
    return DAY.replace(hour=hour, minute=minute, second=second)


class FakeClock(Clock):
    def __init__(self, start: datetime) -> None:
        self._now = start
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, when: datetime) -> None:
        with self._lock:
            self._now = when

    def advance(self, **kwargs) -> None:
        with self._lock:
            self._now += timedelta(**kwargs)


class ScriptedStream(PriceStream):
    """Each get() moves the clock to the next tick's time and returns its price.

    Raises StreamClosed once the script runs out.
    """

    def __init__(self, clock: FakeClock, ticks: list[tuple[datetime, float]], symbol: str = "") -> None:
        super().__init__(symbol)
        self._clock = clock
        self._ticks = list(ticks)

    def get(self, timeout: Optional[float] = None) -> Optional[float]:
        if self.closed or not self._ticks:
            raise StreamClosed(self.symbol)
        when, price = self._ticks.pop(0)
        self._clock.set(when)
        return price


class ScriptedFeed(MarketDataSource):
    """Successive subscribe_price() calls replay successive scripts.

    Once the scripts run out, subscriptions either end at once or, with
    ``block_when_exhausted``, stay silent until the caller closes them.
    """

    def __init__(
        self,
        clock: FakeClock,
        scripts: list[list[tuple[datetime, float]]] | None = None,
        candles: list[Candle] | None = None,
        block_when_exhausted: bool = False,
        market_open: bool = True,
    ) -> None:
        self._clock = clock
        self._scripts = list(scripts or [])
        self._candles = list(candles or [])
        self._block = block_when_exhausted
        self._market_open = market_open
        self.subscriptions = 0
        self.candle_requests: list[tuple[datetime, datetime]] = []

    def add_script(self, ticks: list[tuple[datetime, float]]) -> None:
        self._scripts.append(ticks)

    def subscribe_price(self, symbol: str) -> PriceStream:
        self.subscriptions += 1
        if self._scripts:
            return ScriptedStream(self._clock, self._scripts.pop(0), symbol)
        if self._block:
            return PriceStream(symbol)
        return ScriptedStream(self._clock, [], symbol)

    def get_candles(self, symbol, start, end, interval="minute"):
        self.candle_requests.append((start, end))
        return list(self._candles)

    def get_current_price(self, symbol: str) -> float:
        return 0.0

    def is_market_open(self) -> bool:
        return self._market_open


class RecordingExecutor(OrderExecutor):
    """Records every call. Results are served from queues, defaulting to fills."""

    def __init__(
        self,
        entry_results: list[Result] | None = None,
        close_results: list[Result] | None = None,
        fill_price: Optional[float] = None,
    ) -> None:
        self.entry_results = list(entry_results or [])
        self.close_results = list(close_results or [])
        self.fill_price = fill_price
        self.calls: list[tuple] = []
        self._counter = 0

    def _entry(self) -> Result:
        if self.entry_results:
            return self.entry_results.pop(0)
        self._counter += 1
        return Success(OrderResponse(
            order_id=f"ORD-{self._counter}", status="COMPLETE", price=self.fill_price
        ))

    def place_market_order(self, symbol: str, side: Side, quantity: int, tag=None) -> Result:
        self.calls.append(("market", symbol, side, quantity, tag))
        return self._entry()

    def place_limit_order(self, symbol: str, side: Side, quantity: int, price: float, tag=None) -> Result:
        self.calls.append(("limit", symbol, side, quantity, price, tag))
        return self._entry()

    def cancel_order(self, order_id: str) -> Result:
        self.calls.append(("cancel", order_id))
        return Success()

    def get_open_positions(self) -> Result:
        return Success([])

    def close_position(self, position_id: str) -> Result:
        self.calls.append(("close", position_id))
        if self.close_results:
            return self.close_results.pop(0)
        return Success()

    @property
    def entries(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("market", "limit")]

    @property
    def closes(self) -> list[tuple]:
        return [c for c in self.calls if c[0] == "close"]


def failed(reason: str = "rejected") -> Failure:
    return Failure(reason)
