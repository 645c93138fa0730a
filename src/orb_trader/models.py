"""Core domain models."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Optional


class Side(Enum):
    BUY = "BUY"
    SELL = "SELL"

    @property
    def opposite(self) -> "Side":
        return Side.SELL if self is Side.BUY else Side.BUY


class OrderType(Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"


class ExitReason(Enum):
    TARGET_HIT = auto()
    SL_HIT = auto()
    TIME_EXIT = auto()
    MANUAL = auto()
    EMERGENCY_EXIT = auto()
    CIRCUIT_BREAKER = auto()


class PositionStatus(Enum):
    OPEN = auto()
    CLOSED = auto()


class EnginePhase(Enum):
    IDLE = auto()
    CAPTURING_RANGE = auto()
    MONITORING_BREAKOUT = auto()
    IN_POSITION = auto()
    STOPPED = auto()


@dataclass(frozen=True)
class Instrument:
    symbol: str
    exchange: str
    lot_size: int
    tick_size: float
    display_name: str = ""

    @property
    def label(self) -> str:
        return self.display_name or self.symbol


@dataclass(frozen=True)
class Candle:
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: int = 0

    @classmethod
    def from_tick(cls, price: float, timestamp: datetime) -> "Candle":
        """Zero-range candle for a single LTP tick."""
        return cls(timestamp=timestamp, open=price, high=price, low=price, close=price, volume=0)


@dataclass(frozen=True)
class OrbLevels:
    instrument: Instrument
    high: float
    low: float
    ltp: float
    breakout_buffer: int
    captured_at: datetime = field(default_factory=datetime.now)

    @property
    def buy_trigger(self) -> float:
        return self.high + self.breakout_buffer * self.instrument.tick_size

    @property
    def sell_trigger(self) -> float:
        return self.low - self.breakout_buffer * self.instrument.tick_size

    @property
    def range_width(self) -> float:
        return self.high - self.low


@dataclass
class Position:
    """Open position. Only `current_price` changes while it is held."""
    id: str
    instrument: Instrument
    side: Side
    quantity: int
    entry_price: float
    current_price: float
    stop_loss: float
    target: float
    entry_time: datetime
    status: PositionStatus = PositionStatus.OPEN

    @property
    def pnl(self) -> float:
        if self.side is Side.BUY:
            return (self.current_price - self.entry_price) * self.quantity
        return (self.entry_price - self.current_price) * self.quantity

    @property
    def pnl_percentage(self) -> float:
        notional = self.entry_price * self.quantity
        return self.pnl / notional * 100 if notional else 0.0

    @property
    def is_profit(self) -> bool:
        return self.pnl > 0


@dataclass(frozen=True)
class Trade:
    id: str
    instrument: Instrument
    side: Side
    quantity: int
    entry_price: float
    exit_price: float
    entry_time: datetime
    exit_time: datetime
    exit_reason: ExitReason
    pnl: float
    charges: float = 0.0

    @property
    def net_pnl(self) -> float:
        return self.pnl - self.charges

    @property
    def pnl_percentage(self) -> float:
        notional = self.entry_price * self.quantity
        return self.pnl / notional * 100 if notional else 0.0

    @property
    def is_profit(self) -> bool:
        return self.net_pnl > 0

    @property
    def duration_minutes(self) -> int:
        return int((self.exit_time - self.entry_time).total_seconds() // 60)


@dataclass(frozen=True)
class RiskSettings:
    max_daily_loss: float = 100.0
    current_daily_loss: float = 0.0
    max_daily_trades: int = 10
    current_daily_trades: int = 0
    max_positions: int = 3
    max_per_instrument: int = 1
    circuit_breaker_loss_percent: float = 5.0
    cooldown_minutes: int = 30
    order_throttle_per_minute: int = 10

    @property
    def daily_loss_percentage(self) -> float:
        if self.max_daily_loss > 0:
            return self.current_daily_loss / self.max_daily_loss * 100
        return 0.0

    @property
    def trades_percentage(self) -> float:
        if self.max_daily_trades > 0:
            return self.current_daily_trades / self.max_daily_trades * 100
        return 0.0

    @property
    def circuit_breaker_triggered(self) -> bool:
        return self.daily_loss_percentage >= self.circuit_breaker_loss_percent


@dataclass(frozen=True)
class OrderResponse:
    """Broker acknowledgement of a placed order."""
    order_id: str
    status: str
    message: str = ""
    price: Optional[float] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class DailyStats:
    total_pnl: float = 0.0
    active_positions: int = 0
    win_rate: float = 0.0
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
