"""Opening range high/low from the candles inside the capture window."""
from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Callable, Iterable, Optional

from orb_trader.interfaces import MarketDataSource
from orb_trader.models import Candle, Instrument, OrbLevels

logger = logging.getLogger(__name__)


class OrbLevelsCalculator:
    """Computes H/L of the opening range.

    Only candles whose time-of-day falls in ``[start, end)`` count. The result
    depends on the inputs alone; ``now`` only stamps the capture time.
    """

    def __init__(self, now: Callable[[], datetime] = datetime.now) -> None:
        self._now = now

    def calculate(
        self,
        candles: Iterable[Candle],
        start: time,
        end: time,
        instrument: Instrument,
        breakout_buffer: int,
    ) -> Optional[OrbLevels]:
        """Return the levels, or None when no candle falls inside the window."""
        window = [c for c in candles if start <= c.timestamp.time() < end]
        if not window:
            return None

        return OrbLevels(
            instrument=instrument,
            high=max(c.high for c in window),
            low=min(c.low for c in window),
            ltp=window[-1].close,
            breakout_buffer=breakout_buffer,
            captured_at=self._now(),
        )


def levels_from_history(
    market_data: MarketDataSource,
    instrument: Instrument,
    start: time,
    end: time,
    breakout_buffer: int,
    trading_day: Optional[date] = None,
    interval: str = "minute",
    calculator: Optional[OrbLevelsCalculator] = None,
) -> Optional[OrbLevels]:
    """Build the opening range from historical candles instead of live ticks.

    Used when the live window was missed (late start) or to recompute the range
    of a past session.
    """
    day = trading_day or date.today()
    candles = market_data.get_candles(
        instrument.symbol,
        datetime.combine(day, start),
        datetime.combine(day, end),
        interval,
    )
    logger.info(f"Fetched {len(candles)} {interval} candles for {instrument.symbol} {day}")
    calc = calculator or OrbLevelsCalculator()
    return calc.calculate(candles, start, end, instrument, breakout_buffer)
