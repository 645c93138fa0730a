"""Paper order execution: in-memory fills at live LTP, logged to CSV."""
from __future__ import annotations

import csv
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from orb_trader.interfaces import Failure, OrderExecutor, Result, Success
from orb_trader.models import OrderResponse, OrderType, Side

logger = logging.getLogger(__name__)


@dataclass
class OrderRecord:
    """Lightweight record of an order placed (real or paper)."""
    order_id: str
    symbol: str
    side: Side
    qty: int
    price: float
    order_type: OrderType
    status: str = "PENDING"
    fill_price: float = 0.0
    filled_at: Optional[datetime] = None
    tag: str = ""
    is_paper: bool = True


class PaperOrderExecutor(OrderExecutor):
    """Simulates a broker without sending anything to the exchange.

    Market orders fill immediately at ``price_source(symbol)`` (usually the
    feed's current LTP); limit orders fill at their limit price. Every fill is
    appended to a CSV order log. Opening fills create a paper position keyed by
    the order id, which ``close_position`` flattens with an opposite fill.

    ``fail_next(n)`` makes the next *n* placements return ``Failure``.
    """

    def __init__(
        self,
        price_source: Optional[Callable[[str], float]] = None,
        log_file: Optional[str] = "output/order_log.csv",
    ) -> None:
        self._price_source = price_source
        self._log_file = Path(log_file) if log_file else None
        self._lock = threading.Lock()
        self._orders: dict[str, OrderRecord] = {}
        self._positions: dict[str, OrderRecord] = {}  # position id → opening order
        self._counter = 0
        self._fail_next = 0

        if self._log_file is not None:
            self._log_file.parent.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # OrderExecutor
    # ------------------------------------------------------------------

    def place_market_order(
        self, symbol: str, side: Side, quantity: int, tag: Optional[str] = None
    ) -> Result:
        if self._price_source is None:
            return Failure("No price source for paper market fills")
        try:
            price = float(self._price_source(symbol))
        except Exception as e:
            logger.exception(f"[PAPER] Could not price {symbol}")
            return Failure(f"No price for {symbol}: {e}")
        return self._place(symbol, side, quantity, price, OrderType.MARKET, tag)

    def place_limit_order(
        self,
        symbol: str,
        side: Side,
        quantity: int,
        price: float,
        tag: Optional[str] = None,
    ) -> Result:
        return self._place(symbol, side, quantity, price, OrderType.LIMIT, tag)

    def cancel_order(self, order_id: str) -> Result:
        with self._lock:
            rec = self._orders.get(order_id)
            if rec is None:
                logger.warning(f"[PAPER] cancel_order: unknown order_id={order_id}")
                return Failure(f"Unknown order {order_id}")
            if rec.status == "COMPLETE":
                return Failure(f"Order {order_id} already filled")
            rec.status = "CANCELLED"
        logger.info(f"[PAPER] Cancelled order {order_id}")
        return Success()

    def get_open_positions(self) -> Result:
        with self._lock:
            return Success([
                {
                    "position_id": pid,
                    "symbol": rec.symbol,
                    "side": rec.side.value,
                    "quantity": rec.qty,
                    "entry_price": rec.fill_price,
                }
                for pid, rec in self._positions.items()
            ])

    def close_position(self, position_id: str) -> Result:
        with self._lock:
            opening = self._positions.get(position_id)
        if opening is None:
            return Failure(f"Unknown position {position_id}")

        price = opening.fill_price
        if self._price_source is not None:
            try:
                price = float(self._price_source(opening.symbol))
            except Exception:
                logger.exception(f"[PAPER] Could not price {opening.symbol}, closing at entry")

        result = self._place(
            opening.symbol, opening.side.opposite, opening.qty, price, OrderType.MARKET, "ORB_EXIT",
            opens_position=False,
        )
        if isinstance(result, Failure):
            return result
        with self._lock:
            self._positions.pop(position_id, None)
        return Success()

    # ------------------------------------------------------------------
    # Paper helpers
    # ------------------------------------------------------------------

    def fail_next(self, count: int = 1) -> None:
        with self._lock:
            self._fail_next = count

    def get_order(self, order_id: str) -> Optional[OrderRecord]:
        with self._lock:
            return self._orders.get(order_id)

    def _place(
        self,
        symbol: str,
        side: Side,
        qty: int,
        price: float,
        order_type: OrderType,
        tag: Optional[str],
        opens_position: bool = True,
    ) -> Result:
        with self._lock:
            if self._fail_next > 0:
                self._fail_next -= 1
                logger.warning(f"[PAPER] Rejecting {side.value} {qty} × {symbol} (injected failure)")
                return Failure("Paper order rejected")

            self._counter += 1
            order_id = f"PAPER-{self._counter:06d}"
            rec = OrderRecord(
                order_id=order_id,
                symbol=symbol,
                side=side,
                qty=qty,
                price=price,
                order_type=order_type,
                status="COMPLETE",
                fill_price=price,
                filled_at=datetime.now(),
                tag=tag or "",
            )
            self._orders[order_id] = rec
            if opens_position:
                self._positions[order_id] = rec

        logger.info(
            f"[PAPER] {side.value} {qty} × {symbol} @ {price:.2f} ({order_type.value}) → {order_id}"
        )
        self._log_order(rec)
        return Success(OrderResponse(
            order_id=order_id,
            status=rec.status,
            message="Paper fill",
            price=price,
        ))

    def _log_order(self, rec: OrderRecord) -> None:
        """Append a filled order to the CSV log."""
        if self._log_file is None:
            return
        file_exists = self._log_file.exists()
        with open(self._log_file, "a", newline="") as f:
            writer = csv.DictWriter(
                f,
                fieldnames=[
                    "timestamp", "order_id", "symbol", "side",
                    "qty", "price", "fill_price", "order_type",
                    "status", "tag", "is_paper",
                ],
            )
            if not file_exists:
                writer.writeheader()
            writer.writerow({
                "timestamp": rec.filled_at.isoformat() if rec.filled_at else "",
                "order_id": rec.order_id,
                "symbol": rec.symbol,
                "side": rec.side.value,
                "qty": rec.qty,
                "price": rec.price,
                "fill_price": rec.fill_price,
                "order_type": rec.order_type.value,
                "status": rec.status,
                "tag": rec.tag,
                "is_paper": rec.is_paper,
            })
