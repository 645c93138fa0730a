"""Strategy events and the broadcast bus that carries them to subscribers.

Events are immutable records of engine decisions. The engine is the only
publisher; UI, notifier, journal and risk tracking consume them through
independent subscriptions.
"""
from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from orb_trader.models import OrbLevels, Position, Trade

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StrategyEvent:
    at: datetime = field(default_factory=datetime.now, kw_only=True)

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class Started(StrategyEvent):
    config: object = None  # StrategyConfig; typed loosely to avoid an import cycle


@dataclass(frozen=True)
class Stopped(StrategyEvent):
    pass


@dataclass(frozen=True)
class OrbCaptured(StrategyEvent):
    levels: OrbLevels


@dataclass(frozen=True)
class PriceUpdate(StrategyEvent):
    ltp: float


@dataclass(frozen=True)
class PositionOpened(StrategyEvent):
    position: Position


@dataclass(frozen=True)
class PositionUpdate(StrategyEvent):
    position: Position


@dataclass(frozen=True)
class PositionClosed(StrategyEvent):
    trade: Trade


@dataclass(frozen=True)
class OrderFailed(StrategyEvent):
    message: str


@dataclass(frozen=True)
class RiskLimitReached(StrategyEvent):
    reason: str = ""


@dataclass(frozen=True)
class Error(StrategyEvent):
    message: str


class EventSubscription:
    """Bounded per-subscriber buffer. When full, the oldest event is dropped."""

    def __init__(self, bus: "EventBus", maxsize: int) -> None:
        self._bus = bus
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._dropped = 0
        self._closed = False

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def closed(self) -> bool:
        return self._closed

    def _offer(self, event: StrategyEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            try:
                self._queue.get_nowait()
                self._dropped += 1
            except queue.Empty:
                pass
            self._queue.put_nowait(event)

    def get(self, timeout: Optional[float] = None) -> Optional[StrategyEvent]:
        """Next event, or None if nothing arrived within *timeout* seconds."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[StrategyEvent]:
        """Return every buffered event without blocking."""
        out: list[StrategyEvent] = []
        while True:
            try:
                out.append(self._queue.get_nowait())
            except queue.Empty:
                return out

    def close(self) -> None:
        self._closed = True
        self._bus.unsubscribe(self)


class EventBus:
    """Single-producer, multi-consumer fan-out with no replay.

    ``publish`` never blocks on a slow subscriber; each subscription has its own
    bounded queue and sheds its oldest entries when it falls behind.
    """

    def __init__(self, queue_size: int = 1024) -> None:
        self._queue_size = queue_size
        self._subs: list[EventSubscription] = []
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subs)

    def subscribe(self, maxsize: Optional[int] = None) -> EventSubscription:
        sub = EventSubscription(self, maxsize or self._queue_size)
        with self._lock:
            self._subs.append(sub)
        return sub

    def unsubscribe(self, sub: EventSubscription) -> None:
        with self._lock:
            if sub in self._subs:
                self._subs.remove(sub)

    def publish(self, event: StrategyEvent) -> None:
        # Fan-out under the lock: every subscriber sees one publish order.
        with self._lock:
            for sub in self._subs:
                sub._offer(event)
        logger.debug(f"event {event.name}")
