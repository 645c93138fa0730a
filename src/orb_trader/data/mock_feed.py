"""Random-walk market data for paper sessions and demos."""
from __future__ import annotations

import logging
import random
import threading
from datetime import datetime, time, timedelta
from typing import Optional

from orb_trader.config import StrategyConfig
from orb_trader.feed import PriceStream
from orb_trader.interfaces import MarketDataSource
from orb_trader.models import Candle, Instrument

logger = logging.getLogger(__name__)

_MARKET_OPEN = time(9, 15)
_MARKET_CLOSE = time(15, 30)


class MockMarketDataSource(MarketDataSource):
    """Generates a jittery random walk around *base_price*.

    Each ``subscribe_price`` call starts its own producer thread that pushes a
    new LTP every *interval_seconds* until the returned stream is closed. All
    subscriptions share one current price, so ``get_current_price`` matches
    whatever the streams last emitted.
    """

    def __init__(
        self,
        base_price: float = 185.0,
        volatility: float = 0.5,
        interval_seconds: float = 1.0,
        seed: Optional[int] = None,
    ) -> None:
        self._base_price = base_price
        self._volatility = volatility
        self._interval = interval_seconds
        self._rng = random.Random(seed)
        self._lock = threading.Lock()
        self._price = base_price

    def set_price(self, price: float) -> None:
        with self._lock:
            self._price = price

    def next_price(self) -> float:
        """Advance the walk by one step and return the new LTP."""
        with self._lock:
            self._price += self._rng.uniform(-self._volatility, self._volatility)
            # Occasional jump
            if self._rng.randrange(100) < 20:
                self._price += self._rng.uniform(-2.0, 2.0)
            self._price = max(self._price, 1.0)
            return self._price

    # ------------------------------------------------------------------
    # MarketDataSource
    # ------------------------------------------------------------------

    def subscribe_price(self, symbol: str) -> PriceStream:
        logger.debug(f"Mock: subscribing to {symbol}")
        stream = PriceStream(symbol, maxsize=256)
        t = threading.Thread(
            target=self._produce,
            args=(stream,),
            name=f"mock-feed-{symbol}",
            daemon=True,
        )
        t.start()
        return stream

    def get_candles(
        self,
        symbol: str,
        start: datetime,
        end: datetime,
        interval: str = "minute",
    ) -> list[Candle]:
        candles: list[Candle] = []
        ts = start
        price = self._base_price
        while ts < end:
            close = price + self._rng.uniform(-0.5, 0.5)
            candles.append(Candle(
                timestamp=ts,
                open=price,
                high=price + self._rng.uniform(0.0, 1.5),
                low=price - self._rng.uniform(0.0, 1.0),
                close=close,
                volume=self._rng.randrange(1000, 10000),
            ))
            price = close
            ts += timedelta(minutes=1)
        return candles

    def get_current_price(self, symbol: str) -> float:
        with self._lock:
            return self._price

    def is_market_open(self) -> bool:
        return _MARKET_OPEN <= datetime.now().time() <= _MARKET_CLOSE

    def _produce(self, stream: PriceStream) -> None:
        # Stops as soon as the consumer closes the stream.
        while stream.push(self.next_price()):
            if stream.wait_closed(self._interval):
                break
        logger.debug(f"Mock: producer for {stream.symbol} finished")


# ----------------------------------------------------------------------
# Demo scenarios
# ----------------------------------------------------------------------

_DEMO_INSTRUMENT = Instrument("NIFTY24DEC22000CE", "NFO", 50, 0.05, "NIFTY 22000 CE")


def high_breakout_scenario() -> tuple[MockMarketDataSource, StrategyConfig]:
    """Volatile walk from 185 with a wide target: tends to break out and run."""
    feed = MockMarketDataSource(base_price=185.0, volatility=1.5)
    config = StrategyConfig(
        instrument=_DEMO_INSTRUMENT,
        breakout_buffer=2,
        target_points=15.0,
        stop_loss_points=8.0,
    )
    return feed, config


def stop_loss_scenario() -> tuple[MockMarketDataSource, StrategyConfig]:
    """Same volatility with a tight stop: tends to get stopped out."""
    feed = MockMarketDataSource(base_price=189.0, volatility=1.5)
    config = StrategyConfig(
        instrument=_DEMO_INSTRUMENT,
        breakout_buffer=2,
        target_points=15.0,
        stop_loss_points=5.0,
    )
    return feed, config


SCENARIOS = {
    "breakout": high_breakout_scenario,
    "stop_loss": stop_loss_scenario,
}
