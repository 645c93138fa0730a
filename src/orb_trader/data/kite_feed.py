"""Kite Connect market data: websocket LTP streams and historical candles."""
from __future__ import annotations

import logging
import threading
import time as _time
from datetime import datetime, time, timedelta
from typing import Optional

from kiteconnect import KiteConnect, KiteTicker

from orb_trader.feed import PriceStream
from orb_trader.interfaces import MarketDataSource
from orb_trader.models import Candle

logger = logging.getLogger(__name__)

# Market hours
_MARKET_OPEN = time(9, 15)
_MARKET_CLOSE = time(15, 30)

# Kite allows max 60 days of minute data per request.
_MAX_MINUTE_DAYS = 60
# Rate limit: max 3 requests/sec → sleep at least 0.34 s between calls.
_MIN_REQUEST_INTERVAL = 0.34


class KiteMarketDataSource(MarketDataSource):
    """Fans Kite websocket ticks out to per-subscriber PriceStreams.

    One KiteTicker connection serves every subscription. Symbols are resolved
    to instrument tokens through ``kite.ltp`` and cached. Closed streams are
    dropped from the fan-out on the next tick for their token.

    Usage::

        feed = KiteMarketDataSource(session.get_kite(), session.access_token)
        feed.connect()
        stream = feed.subscribe_price("NIFTY24DEC22000CE")
    """

    def __init__(
        self,
        kite: KiteConnect,
        access_token: str,
        exchange: str = "NFO",
        stream_size: int = 1024,
    ) -> None:
        self._kite = kite
        self._access_token = access_token
        self._exchange = exchange
        self._stream_size = stream_size

        self._kws: Optional[KiteTicker] = None
        self._connected = threading.Event()
        self._lock = threading.Lock()

        self._tokens: dict[str, int] = {}           # symbol → instrument token
        self._streams: dict[int, list[PriceStream]] = {}
        self._ltp: dict[int, float] = {}
        self._last_request_ts = 0.0

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def connect(self, timeout: float = 30.0) -> bool:
        """Open the websocket in the background. Returns True once connected."""
        self._kws = KiteTicker(self._kite.api_key, self._access_token)
        self._kws.on_ticks = self._on_ticks
        self._kws.on_connect = self._on_connect
        self._kws.on_close = self._on_close
        self._kws.on_error = self._on_error
        self._kws.on_reconnect = self._on_reconnect

        logger.info("Starting WebSocket connection...")
        self._kws.connect(threaded=True)
        connected = self._connected.wait(timeout=timeout)
        if not connected:
            logger.error(f"WebSocket not connected after {timeout:.0f}s")
        return connected

    def disconnect(self) -> None:
        with self._lock:
            streams = [s for subs in self._streams.values() for s in subs]
            self._streams.clear()
        for stream in streams:
            stream.close()
        if self._kws:
            self._kws.close()
            logger.info("WebSocket disconnected.")

    # ------------------------------------------------------------------
    # MarketDataSource
    # ------------------------------------------------------------------

    def subscribe_price(self, symbol: str) -> PriceStream:
        token = self.token_for(symbol)
        stream = PriceStream(symbol, maxsize=self._stream_size)
        with self._lock:
            subs = self._streams.setdefault(token, [])
            first = not subs
            subs.append(stream)
        if first and self._connected.is_set() and self._kws is not None:
            self._kws.subscribe([token])
            self._kws.set_mode(self._kws.MODE_LTP, [token])
        logger.debug(f"Subscribed {symbol} (token {token})")
        return stream

    def get_candles(
        self,
        symbol: str,
        start: datetime,
        end: datetime,
        interval: str = "minute",
    ) -> list[Candle]:
        """Historical OHLCV candles, fetched in chunks Kite accepts."""
        token = self.token_for(symbol)
        max_days = _max_days_for_interval(interval)

        candles: list[Candle] = []
        chunk_start = start
        while chunk_start <= end:
            chunk_end = min(chunk_start + timedelta(days=max_days), end)
            self._throttle()
            rows = self._kite.historical_data(
                token,
                from_date=chunk_start,
                to_date=chunk_end,
                interval=interval,
            )
            for row in rows:
                ts = row["date"]
                if isinstance(ts, str):
                    ts = datetime.fromisoformat(ts)
                candles.append(Candle(
                    timestamp=ts.replace(tzinfo=None),
                    open=float(row["open"]),
                    high=float(row["high"]),
                    low=float(row["low"]),
                    close=float(row["close"]),
                    volume=int(row.get("volume", 0)),
                ))
            if chunk_end >= end:
                break
            chunk_start = chunk_end
        return candles

    def get_current_price(self, symbol: str) -> float:
        token = self.token_for(symbol)
        ltp = self._ltp.get(token)
        if ltp is not None:
            return ltp
        key = self._quote_key(symbol)
        self._throttle()
        return float(self._kite.ltp([key])[key]["last_price"])

    def is_market_open(self) -> bool:
        now = datetime.now()
        return now.weekday() < 5 and _MARKET_OPEN <= now.time() <= _MARKET_CLOSE

    # ------------------------------------------------------------------
    # Token resolution
    # ------------------------------------------------------------------

    def token_for(self, symbol: str) -> int:
        """Instrument token for *symbol* on this source's exchange."""
        token = self._tokens.get(symbol)
        if token is not None:
            return token
        key = self._quote_key(symbol)
        self._throttle()
        quote = self._kite.ltp([key]).get(key)
        if not quote:
            raise KeyError(f"Unknown instrument {key}")
        token = int(quote["instrument_token"])
        self._tokens[symbol] = token
        self._ltp[token] = float(quote["last_price"])
        return token

    def _quote_key(self, symbol: str) -> str:
        return symbol if ":" in symbol else f"{self._exchange}:{symbol}"

    def _throttle(self) -> None:
        """Enforce rate limit of ~3 requests/sec."""
        elapsed = _time.monotonic() - self._last_request_ts
        if elapsed < _MIN_REQUEST_INTERVAL:
            _time.sleep(_MIN_REQUEST_INTERVAL - elapsed)
        self._last_request_ts = _time.monotonic()

    # ------------------------------------------------------------------
    # KiteTicker callbacks
    # ------------------------------------------------------------------

    def _on_connect(self, ws, response) -> None:
        with self._lock:
            tokens = list(self._streams)
        logger.info(f"WebSocket connected. Subscribing to {len(tokens)} tokens.")
        if tokens:
            ws.subscribe(tokens)
            ws.set_mode(ws.MODE_LTP, tokens)
        self._connected.set()

    def _on_close(self, ws, code, reason) -> None:
        logger.info(f"WebSocket closed: code={code}, reason={reason}")
        self._connected.clear()

    def _on_error(self, ws, code, reason) -> None:
        logger.error(f"WebSocket error: code={code}, reason={reason}")

    def _on_reconnect(self, ws, attempts_count) -> None:
        logger.warning(f"WebSocket reconnecting, attempt {attempts_count}")

    def _on_ticks(self, ws, ticks: list[dict]) -> None:
        for tick in ticks:
            token = tick["instrument_token"]
            ltp = tick.get("last_price")
            if ltp is None:
                continue
            self._ltp[token] = ltp

            with self._lock:
                subs = self._streams.get(token, [])
                live = [s for s in subs if s.push(ltp)]
                if len(live) != len(subs):
                    self._streams[token] = live
                    if not live:
                        del self._streams[token]
                        ws.unsubscribe([token])


def _max_days_for_interval(interval: str) -> int:
    """Return the maximum number of days Kite allows per request for *interval*."""
    if interval in ("minute", "2minute", "3minute"):
        return _MAX_MINUTE_DAYS
    if interval in ("5minute", "10minute", "15minute", "30minute", "60minute"):
        return 100
    return 2000
