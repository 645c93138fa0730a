"""Market-data and order-execution capabilities the engine is written against.

Concrete adapters (paper, mock, Kite) implement these. Broker failures that are
part of normal operation (rejection, network error) come back as ``Failure``
rather than as exceptions.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar, Union

from orb_trader.feed import PriceStream
from orb_trader.models import Candle, OrderResponse, Side

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T = None


@dataclass(frozen=True)
class Failure:
    reason: str


Result = Union[Success[Any], Failure]


class MarketDataSource(ABC):

    @abstractmethod
    def subscribe_price(self, symbol: str) -> PriceStream:
        """Open an independent LTP stream starting from the current moment.

        The caller owns the returned stream and closes it when done.
        """
        ...

    @abstractmethod
    def get_candles(
        self,
        symbol: str,
        start: datetime,
        end: datetime,
        interval: str = "minute",
    ) -> list[Candle]:
        ...

    @abstractmethod
    def get_current_price(self, symbol: str) -> float:
        ...

    @abstractmethod
    def is_market_open(self) -> bool:
        ...


class OrderExecutor(ABC):

    @abstractmethod
    def place_market_order(
        self, symbol: str, side: Side, quantity: int, tag: Optional[str] = None
    ) -> Result:
        """Returns ``Success(OrderResponse)`` or ``Failure``."""
        ...

    @abstractmethod
    def place_limit_order(
        self,
        symbol: str,
        side: Side,
        quantity: int,
        price: float,
        tag: Optional[str] = None,
    ) -> Result:
        """Returns ``Success(OrderResponse)`` or ``Failure``."""
        ...

    @abstractmethod
    def cancel_order(self, order_id: str) -> Result:
        ...

    @abstractmethod
    def get_open_positions(self) -> Result:
        """Returns ``Success(list[dict])`` with symbol, side and quantity keys."""
        ...

    @abstractmethod
    def close_position(self, position_id: str) -> Result:
        ...


def order_response(result: Result) -> Optional[OrderResponse]:
    """The OrderResponse carried by a successful placement, if any."""
    if isinstance(result, Success) and isinstance(result.value, OrderResponse):
        return result.value
    return None
