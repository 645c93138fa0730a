"""New-trade admission and daily risk counters."""
from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Optional

from orb_trader.models import RiskSettings, Trade

logger = logging.getLogger(__name__)


class RiskGate:
    """Stateless admission check over a RiskSettings snapshot.

    A new trade is allowed only if the circuit breaker is not tripped, the daily
    loss is below its limit and the daily trade count is below its limit.
    """

    @staticmethod
    def denial_reason(settings: RiskSettings) -> Optional[str]:
        """Why a new trade would be refused, or None if it is admitted."""
        if settings.circuit_breaker_triggered:
            return (
                f"circuit breaker: daily loss at {settings.daily_loss_percentage:.1f}% "
                f"(limit {settings.circuit_breaker_loss_percent:.1f}%)"
            )
        if settings.current_daily_loss >= settings.max_daily_loss:
            return (
                f"daily loss {settings.current_daily_loss:.2f} "
                f">= max {settings.max_daily_loss:.2f}"
            )
        if settings.current_daily_trades >= settings.max_daily_trades:
            return (
                f"daily trades {settings.current_daily_trades} "
                f">= max {settings.max_daily_trades}"
            )
        return None

    @classmethod
    def can_take_new_trade(cls, settings: RiskSettings) -> bool:
        return cls.denial_reason(settings) is None


class RiskTracker:
    """Holds the current RiskSettings and folds closed trades into its counters.

    Written by the event consumer, read by the engine thread through
    ``snapshot()``. Each snapshot is an immutable RiskSettings.
    """

    def __init__(self, settings: RiskSettings) -> None:
        self._lock = threading.Lock()
        self._settings = settings
        self._realized_pnl = -settings.current_daily_loss

    def snapshot(self) -> RiskSettings:
        with self._lock:
            return self._settings

    @property
    def realized_pnl(self) -> float:
        with self._lock:
            return self._realized_pnl

    def record_trade(self, trade: Trade) -> RiskSettings:
        """Count a closed trade and update the daily loss from net P&L."""
        with self._lock:
            self._realized_pnl += trade.net_pnl
            self._settings = dataclasses.replace(
                self._settings,
                current_daily_trades=self._settings.current_daily_trades + 1,
                current_daily_loss=max(0.0, -self._realized_pnl),
            )
            settings = self._settings

        logger.info(
            f"Risk counters: trades={settings.current_daily_trades}/{settings.max_daily_trades}, "
            f"loss={settings.current_daily_loss:.2f}/{settings.max_daily_loss:.2f}"
        )
        if settings.circuit_breaker_triggered:
            logger.warning(
                f"Circuit breaker tripped at {settings.daily_loss_percentage:.1f}% of max daily loss"
            )
        return settings

    def restore(self, daily_trades: int, realized_pnl: float) -> None:
        """Reapply counters persisted earlier in the same day."""
        with self._lock:
            self._realized_pnl = realized_pnl
            self._settings = dataclasses.replace(
                self._settings,
                current_daily_trades=daily_trades,
                current_daily_loss=max(0.0, -realized_pnl),
            )

    def reset_day(self) -> None:
        with self._lock:
            self._realized_pnl = 0.0
            self._settings = dataclasses.replace(
                self._settings, current_daily_trades=0, current_daily_loss=0.0
            )
