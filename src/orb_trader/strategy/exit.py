"""Fixed stop-loss / target / time exit rules."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from typing import Optional

from orb_trader.models import ExitReason, Position, Side


@dataclass
class ExitSignal:
    reason: ExitReason
    exit_price: float


def stop_loss_for(side: Side, entry_price: float, stop_loss_points: float) -> float:
    if side is Side.BUY:
        return entry_price - stop_loss_points
    return entry_price + stop_loss_points


def target_for(side: Side, entry_price: float, target_points: float) -> float:
    if side is Side.BUY:
        return entry_price + target_points
    return entry_price - target_points


def is_stop_loss_hit(position: Position, price: float) -> bool:
    if position.side is Side.BUY:
        return price <= position.stop_loss
    return price >= position.stop_loss


def is_target_hit(position: Position, price: float) -> bool:
    if position.side is Side.BUY:
        return price >= position.target
    return price <= position.target


def realized_pnl(side: Side, entry_price: float, exit_price: float, quantity: int) -> float:
    if side is Side.BUY:
        return (exit_price - entry_price) * quantity
    return (entry_price - exit_price) * quantity


class ExitManager:
    """Checks an open position against its exits on every tick.

    Precedence when several hold on the same tick: stop-loss, then target,
    then the time-based auto exit.
    """

    def __init__(self, auto_exit_time: time, enable_auto_exit: bool = True):
        self._auto_exit_time = auto_exit_time
        self._enable_auto_exit = enable_auto_exit

    def check_exit(
        self, position: Position, price: float, now: time
    ) -> Optional[ExitSignal]:
        if is_stop_loss_hit(position, price):
            return ExitSignal(reason=ExitReason.SL_HIT, exit_price=price)
        if is_target_hit(position, price):
            return ExitSignal(reason=ExitReason.TARGET_HIT, exit_price=price)
        if self._enable_auto_exit and now >= self._auto_exit_time:
            return ExitSignal(reason=ExitReason.TIME_EXIT, exit_price=price)
        return None
