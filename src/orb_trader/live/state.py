"""Session state persistence for crash recovery."""
from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from orb_trader.models import ExitReason, Instrument, OrbLevels, Position, Side, Trade

logger = logging.getLogger(__name__)


def trade_to_dict(trade: Trade) -> dict[str, Any]:
    return {
        "id": trade.id,
        "symbol": trade.instrument.symbol,
        "side": trade.side.value,
        "quantity": trade.quantity,
        "entry_price": trade.entry_price,
        "exit_price": trade.exit_price,
        "entry_time": trade.entry_time.isoformat(),
        "exit_time": trade.exit_time.isoformat(),
        "exit_reason": trade.exit_reason.name,
        "pnl": trade.pnl,
        "charges": trade.charges,
    }


def trade_from_dict(data: dict[str, Any], instrument: Instrument) -> Trade:
    return Trade(
        id=data["id"],
        instrument=instrument,
        side=Side(data["side"]),
        quantity=int(data["quantity"]),
        entry_price=float(data["entry_price"]),
        exit_price=float(data["exit_price"]),
        entry_time=datetime.fromisoformat(data["entry_time"]),
        exit_time=datetime.fromisoformat(data["exit_time"]),
        exit_reason=ExitReason[data["exit_reason"]],
        pnl=float(data["pnl"]),
        charges=float(data.get("charges", 0.0)),
    )


class SessionState:
    """Persist and restore the live session to/from a JSON file.

    Saved fields:
    - ORB levels (H, L, triggers)
    - Open position (id, side, entry, SL, target)
    - Trades closed today
    - Daily risk counters (trade count, realized net P&L)
    - Timestamp of last save

    Only a file saved today is ever restored.
    """

    def __init__(self, state_file: str = "data/live_state.json") -> None:
        self._path = Path(state_file)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._state: dict[str, Any] = {}

    @property
    def path(self) -> Path:
        return self._path

    @property
    def has_saved_state(self) -> bool:
        """True if a state file exists and was saved today."""
        if not self._path.exists():
            return False
        try:
            data = json.loads(self._path.read_text())
        except json.JSONDecodeError:
            return False
        return data.get("date", "") == datetime.now().strftime("%Y-%m-%d")

    def save(
        self,
        *,
        levels: Optional[OrbLevels] = None,
        position: Optional[Position] = None,
        trades: list[Trade] | None = None,
        daily_trades: int = 0,
        realized_pnl: float = 0.0,
    ) -> None:
        """Persist current session state to disk."""
        self._state = {
            "date": datetime.now().strftime("%Y-%m-%d"),
            "saved_at": datetime.now().isoformat(),
            "orb": None if levels is None else {
                "high": levels.high,
                "low": levels.low,
                "buy_trigger": levels.buy_trigger,
                "sell_trigger": levels.sell_trigger,
                "captured_at": levels.captured_at.isoformat(),
            },
            "position": None if position is None else {
                "id": position.id,
                "symbol": position.instrument.symbol,
                "side": position.side.value,
                "quantity": position.quantity,
                "entry_price": position.entry_price,
                "stop_loss": position.stop_loss,
                "target": position.target,
                "entry_time": position.entry_time.isoformat(),
            },
            "trades_today": [trade_to_dict(t) for t in trades or []],
            "counters": {
                "daily_trades": daily_trades,
                "realized_pnl": realized_pnl,
            },
        }

        self._path.write_text(json.dumps(self._state, indent=2))
        logger.debug(f"State saved to {self._path}")

    def load(self) -> dict[str, Any]:
        """Load saved state from disk. Returns empty dict if unavailable."""
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text())
        except json.JSONDecodeError:
            logger.warning(f"Corrupt state file at {self._path}")
            return {}
        if data.get("date") != datetime.now().strftime("%Y-%m-%d"):
            logger.info("State file is from a previous day, ignoring.")
            return {}
        self._state = data
        logger.info(f"State loaded from {self._path}")
        return data

    @property
    def saved_position(self) -> Optional[dict[str, Any]]:
        """Open position recorded in the loaded state, if any."""
        return self._state.get("position") or None

    def restored_counters(self) -> tuple[int, float]:
        """(daily trade count, realized net P&L) from the loaded state."""
        counters = self._state.get("counters") or {}
        return int(counters.get("daily_trades", 0)), float(counters.get("realized_pnl", 0.0))

    def restored_trades(self, instrument: Instrument) -> list[Trade]:
        return [trade_from_dict(d, instrument) for d in self._state.get("trades_today", [])]

    def clear(self) -> None:
        """Remove the state file (clean start for a new day)."""
        if self._path.exists():
            self._path.unlink()
            logger.info(f"State file cleared: {self._path}")
        self._state = {}

    def reconcile_with_broker(
        self, broker_positions: list[dict]
    ) -> tuple[bool, str]:
        """Compare saved state with actual broker positions.

        *broker_positions* is the list from ``OrderExecutor.get_open_positions``.
        Returns (is_consistent, message). If inconsistent, the caller should
        alert and wait for manual intervention.
        """
        held = {p["symbol"]: p.get("quantity", 0) for p in broker_positions}
        pos = self._state.get("position")

        if not self._state:
            if held:
                return False, f"No saved state but broker has positions: {held}"
            return True, "No state and no positions, clean start."

        if pos:
            symbol = pos["symbol"]
            if symbol not in held:
                return False, (
                    f"State says we hold {symbol} but broker positions are: {held}"
                )
            return True, f"Position {symbol} confirmed with broker."

        if held:
            return False, f"State says no position but broker has: {held}"
        return True, "No position expected, none found."
