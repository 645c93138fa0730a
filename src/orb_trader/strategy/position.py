"""Single-position lifecycle: open → mark-to-market → close into a Trade."""
from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import Optional

from orb_trader.config import StrategyConfig
from orb_trader.models import ExitReason, Position, PositionStatus, Side, Trade
from orb_trader.strategy.exit import realized_pnl, stop_loss_for, target_for


class PositionManager:
    """Owns at most one open Position for one strategy run."""

    def __init__(self, config: StrategyConfig):
        self._config = config
        self._position: Optional[Position] = None
        self._trades: list[Trade] = []

    @property
    def position(self) -> Optional[Position]:
        return self._position

    @property
    def is_open(self) -> bool:
        return self._position is not None

    @property
    def trades(self) -> list[Trade]:
        return list(self._trades)

    def open(
        self,
        position_id: str,
        side: Side,
        entry_price: float,
        ltp: float,
        entry_time: datetime,
    ) -> Position:
        """Record a filled entry. Stop and target are measured from *entry_price*."""
        if self._position is not None:
            raise RuntimeError(f"Position {self._position.id} is already open")

        cfg = self._config
        self._position = Position(
            id=position_id,
            instrument=cfg.instrument,
            side=side,
            quantity=cfg.quantity,
            entry_price=entry_price,
            current_price=ltp,
            stop_loss=stop_loss_for(side, entry_price, cfg.stop_loss_points),
            target=target_for(side, entry_price, cfg.target_points),
            entry_time=entry_time,
        )
        return self._position

    def mark(self, price: float) -> Position:
        """Update the open position's current price."""
        if self._position is None:
            raise RuntimeError("No open position to mark")
        self._position.current_price = price
        return self._position

    def snapshot(self) -> Optional[Position]:
        """Copy of the open position, safe to hand to other threads."""
        if self._position is None:
            return None
        return dataclasses.replace(self._position)

    def close(
        self,
        exit_price: float,
        exit_time: datetime,
        exit_reason: ExitReason,
    ) -> Trade:
        """Close the open position and return its Trade record."""
        pos = self._position
        if pos is None:
            raise RuntimeError("No open position to close")

        trade = Trade(
            id=pos.id,
            instrument=pos.instrument,
            side=pos.side,
            quantity=pos.quantity,
            entry_price=pos.entry_price,
            exit_price=exit_price,
            entry_time=pos.entry_time,
            exit_time=exit_time,
            exit_reason=exit_reason,
            pnl=realized_pnl(pos.side, pos.entry_price, exit_price, pos.quantity),
        )
        pos.status = PositionStatus.CLOSED
        self._position = None
        self._trades.append(trade)
        return trade

    def record_charges(self, trade: Trade, charges: float) -> Trade:
        """Replace the last recorded trade with one carrying *charges*."""
        charged = dataclasses.replace(trade, charges=charges)
        if self._trades and self._trades[-1] is trade:
            self._trades[-1] = charged
        return charged
