"""Real intraday (MIS) orders through Kite Connect."""
from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Optional

from kiteconnect import KiteConnect

from orb_trader.execution.paper import OrderRecord
from orb_trader.interfaces import Failure, OrderExecutor, Result, Success
from orb_trader.models import OrderResponse, OrderType, Side

logger = logging.getLogger(__name__)


class KiteOrderExecutor(OrderExecutor):
    """Places real orders and flattens positions with opposite market orders.

    Every Kite exception is caught at this boundary, logged, and returned as a
    ``Failure`` so the engine can report it as an event.
    """

    def __init__(self, kite: KiteConnect, exchange: str = "NFO") -> None:
        self._kite = kite
        self._exchange = exchange
        self._lock = threading.Lock()
        self._orders: dict[str, OrderRecord] = {}
        self._open: dict[str, OrderRecord] = {}  # entry order id → entry record

    # ------------------------------------------------------------------
    # OrderExecutor
    # ------------------------------------------------------------------

    def place_market_order(
        self, symbol: str, side: Side, quantity: int, tag: Optional[str] = None
    ) -> Result:
        return self._place(symbol, side, quantity, OrderType.MARKET, 0.0, tag)

    def place_limit_order(
        self,
        symbol: str,
        side: Side,
        quantity: int,
        price: float,
        tag: Optional[str] = None,
    ) -> Result:
        return self._place(symbol, side, quantity, OrderType.LIMIT, price, tag)

    def cancel_order(self, order_id: str) -> Result:
        try:
            self._kite.cancel_order(
                variety=self._kite.VARIETY_REGULAR, order_id=order_id
            )
        except Exception as e:
            logger.exception(f"Failed to cancel order {order_id}")
            return Failure(f"Cancel failed: {e}")
        with self._lock:
            rec = self._orders.get(order_id)
            if rec is not None:
                rec.status = "CANCELLED"
            self._open.pop(order_id, None)
        logger.info(f"Cancelled order {order_id}")
        return Success()

    def get_open_positions(self) -> Result:
        try:
            net = self._kite.positions().get("net", [])
        except Exception as e:
            logger.exception("Failed to fetch positions")
            return Failure(f"Positions unavailable: {e}")
        return Success([
            {
                "symbol": p["tradingsymbol"],
                "exchange": p.get("exchange", self._exchange),
                "side": Side.BUY.value if p.get("quantity", 0) > 0 else Side.SELL.value,
                "quantity": abs(p.get("quantity", 0)),
                "entry_price": float(p.get("average_price", 0.0)),
            }
            for p in net
            if p.get("quantity", 0) != 0
        ])

    def close_position(self, position_id: str) -> Result:
        with self._lock:
            entry = self._open.get(position_id)
        if entry is None:
            return Failure(f"Unknown position {position_id}")

        result = self._place(
            entry.symbol, entry.side.opposite, entry.qty, OrderType.MARKET, 0.0, "ORB_EXIT",
            opens_position=False,
        )
        if isinstance(result, Failure):
            return result
        with self._lock:
            self._open.pop(position_id, None)
        return Success()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _place(
        self,
        symbol: str,
        side: Side,
        qty: int,
        order_type: OrderType,
        price: float,
        tag: Optional[str],
        opens_position: bool = True,
    ) -> Result:
        params = {
            "variety": self._kite.VARIETY_REGULAR,
            "exchange": self._exchange,
            "tradingsymbol": symbol,
            "transaction_type": side.value,
            "quantity": qty,
            "product": self._kite.PRODUCT_MIS,  # Intraday
            "order_type": order_type.value,
        }
        if order_type is OrderType.LIMIT:
            params["price"] = price
        if tag:
            params["tag"] = tag

        try:
            order_id = str(self._kite.place_order(**params))
        except Exception as e:
            logger.exception(f"[LIVE] {side.value} {qty} × {symbol} rejected")
            return Failure(str(e) or "Order rejected")

        logger.info(
            f"[LIVE] {side.value} {qty} × {symbol} @ {price:.2f} "
            f"({order_type.value}) → order_id={order_id}"
        )
        rec = OrderRecord(
            order_id=order_id,
            symbol=symbol,
            side=side,
            qty=qty,
            price=price,
            order_type=order_type,
            tag=tag or "",
            is_paper=False,
        )
        self._refresh(rec)
        with self._lock:
            self._orders[order_id] = rec
            if opens_position:
                self._open[order_id] = rec

        return Success(OrderResponse(
            order_id=order_id,
            status=rec.status,
            price=rec.fill_price or None,
        ))

    def _refresh(self, rec: OrderRecord) -> None:
        try:
            history = self._kite.order_history(rec.order_id)
        except Exception:
            logger.exception(f"Failed to fetch order status for {rec.order_id}")
            return
        if not history:
            return
        latest = history[-1]
        rec.status = latest.get("status", rec.status)
        if rec.status == "COMPLETE":
            rec.fill_price = float(latest.get("average_price", 0))
            rec.filled_at = datetime.now()
