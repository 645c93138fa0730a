"""Closeable, ordered channel of LTP ticks for a single subscription."""
from __future__ import annotations

import queue
import threading
from typing import Optional

_CLOSED = object()


class StreamClosed(Exception):
    """Raised by ``PriceStream.get`` once the stream is closed and drained."""


class PriceStream:
    """Single-consumer tick channel fed by a market-data adapter.

    Producers call ``push()`` from their own thread (websocket callback, mock
    generator). The consumer pulls with ``get(timeout)``, which returns ``None``
    on timeout so the caller can re-check its own stop conditions between ticks.

    ``close()`` wakes a blocked consumer immediately. Ticks already queued are
    still delivered before ``StreamClosed`` is raised.
    """

    def __init__(self, symbol: str = "", maxsize: int = 0) -> None:
        self.symbol = symbol
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def push(self, price: float) -> bool:
        """Queue a tick. Returns False if the stream is already closed."""
        if self._closed.is_set():
            return False
        try:
            self._queue.put_nowait(float(price))
        except queue.Full:
            # Slow consumer: keep the newest price.
            try:
                self._queue.get_nowait()
            except queue.Empty:
                pass
            self._queue.put_nowait(float(price))
        return True

    def get(self, timeout: Optional[float] = None) -> Optional[float]:
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            if self._closed.is_set():
                raise StreamClosed(self.symbol)
            return None
        if item is _CLOSED:
            # Leave the marker for any later get() call.
            self._queue.put_nowait(_CLOSED)
            raise StreamClosed(self.symbol)
        return item

    def wait_closed(self, timeout: Optional[float] = None) -> bool:
        """Block until the stream is closed or *timeout* elapses."""
        return self._closed.wait(timeout)

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        while True:
            try:
                self._queue.put_nowait(_CLOSED)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    pass
