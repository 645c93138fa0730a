"""Telegram alerts for strategy events."""
from __future__ import annotations

import json
import logging
from urllib.request import Request, urlopen

from orb_trader.events import (
    Error,
    OrbCaptured,
    OrderFailed,
    PositionClosed,
    PositionOpened,
    RiskLimitReached,
    Started,
    Stopped,
    StrategyEvent,
)
from orb_trader.models import DailyStats, OrbLevels, Position, Trade

logger = logging.getLogger(__name__)

_TELEGRAM_API = "https://api.telegram.org/bot{token}/sendMessage"


class TelegramNotifier:
    """Send alerts via Telegram Bot API.

    If ``bot_token`` or ``chat_id`` are empty, all send calls are silently
    skipped (paper sessions without Telegram configured).
    """

    def __init__(self, bot_token: str = "", chat_id: str = "") -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._enabled = bool(bot_token and chat_id)
        if not self._enabled:
            logger.info("Telegram notifier disabled (no token/chat_id).")

    @property
    def enabled(self) -> bool:
        return self._enabled

    def notify(self, event: StrategyEvent) -> None:
        """Send the alert matching *event*. Ticks and position marks are skipped."""
        if isinstance(event, Started):
            name = getattr(event.config, "name", "ORB")
            self._send(f"🟢 *Strategy started*\n{name}")
        elif isinstance(event, Stopped):
            self._send("⏹ *Strategy stopped*")
        elif isinstance(event, OrbCaptured):
            self.orb_captured(event.levels)
        elif isinstance(event, PositionOpened):
            self.entry(event.position)
        elif isinstance(event, PositionClosed):
            self.exit(event.trade)
        elif isinstance(event, OrderFailed):
            self.warning(f"Order failed: {event.message}")
        elif isinstance(event, RiskLimitReached):
            self.warning(f"Risk limit reached: {event.reason or 'new entries blocked'}")
        elif isinstance(event, Error):
            self.error(event.message)

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def orb_captured(self, levels: OrbLevels) -> None:
        self._send(
            f"📊 *ORB captured* `{levels.instrument.label}`\n"
            f"H = {levels.high:.2f}  |  L = {levels.low:.2f}\n"
            f"Buy ≥ {levels.buy_trigger:.2f}  |  Sell ≤ {levels.sell_trigger:.2f}"
        )

    def entry(self, position: Position) -> None:
        emoji = "🟩" if position.side.value == "BUY" else "🟥"
        self._send(
            f"{emoji} *Entry: {position.side.value}*\n"
            f"Symbol: `{position.instrument.symbol}`\n"
            f"Price: {position.entry_price:.2f}  |  Qty: {position.quantity}\n"
            f"SL: {position.stop_loss:.2f}  |  Target: {position.target:.2f}\n"
            f"Order: `{position.id}`"
        )

    def exit(self, trade: Trade) -> None:
        pnl_emoji = "✅" if trade.net_pnl >= 0 else "❌"
        self._send(
            f"📤 *Exit: {trade.exit_reason.name}* {pnl_emoji}\n"
            f"Symbol: `{trade.instrument.symbol}`\n"
            f"Entry: {trade.entry_price:.2f} → Exit: {trade.exit_price:.2f}\n"
            f"Gross P&L: ₹{trade.pnl:.0f}  |  Charges: ₹{trade.charges:.0f}"
        )

    def daily_summary(self, stats: DailyStats, charges: float = 0.0) -> None:
        emoji = "📈" if stats.total_pnl >= 0 else "📉"
        self._send(
            f"{emoji} *Daily Summary*\n"
            f"Trades: {stats.total_trades} (W {stats.winning_trades} / L {stats.losing_trades})\n"
            f"Win rate: {stats.win_rate:.0f}%\n"
            f"Charges: ₹{charges:.0f}\n"
            f"Net P&L: ₹{stats.total_pnl:.0f}"
        )

    def error(self, message: str) -> None:
        self._send(f"🚨 *ERROR*\n{message}")

    def warning(self, message: str) -> None:
        self._send(f"⚠️ *WARNING*\n{message}")

    def info(self, message: str) -> None:
        self._send(f"ℹ️ {message}")

    # ------------------------------------------------------------------
    # Low-level send
    # ------------------------------------------------------------------

    def _send(self, text: str) -> None:
        """Send a Markdown-formatted message via Telegram Bot API."""
        if not self._enabled:
            logger.debug(f"[TELEGRAM-DISABLED] {text}")
            return

        url = _TELEGRAM_API.format(token=self._bot_token)
        payload = json.dumps({
            "chat_id": self._chat_id,
            "text": text,
            "parse_mode": "Markdown",
            "disable_web_page_preview": True,
        }).encode("utf-8")

        req = Request(url, data=payload, method="POST")
        req.add_header("Content-Type", "application/json")

        try:
            with urlopen(req, timeout=10) as resp:
                if resp.status != 200:
                    logger.warning(f"Telegram API returned {resp.status}")
        except Exception:
            logger.exception("Failed to send Telegram notification")
