"""Estimated Indian-market charges for a closed trade."""
from __future__ import annotations

from dataclasses import dataclass

from orb_trader.config import ChargesConfig
from orb_trader.models import Side, Trade


@dataclass
class TradeCosts:
    brokerage: float = 0.0
    stt: float = 0.0
    gst: float = 0.0
    sebi_charges: float = 0.0
    stamp_duty: float = 0.0
    exchange_txn: float = 0.0
    total: float = 0.0


class ChargeCalculator:
    """Brokerage, STT, GST, SEBI, stamp duty and exchange charges.

    - Brokerage: flat per order × 2 (entry + exit)
    - STT: on the sell-side turnover
    - GST: on brokerage
    - SEBI, exchange charges: on total turnover
    - Stamp duty: on the buy-side turnover
    """

    def __init__(self, config: ChargesConfig):
        self._config = config

    def calculate(self, trade: Trade) -> TradeCosts:
        cfg = self._config
        entry_turnover = trade.entry_price * trade.quantity
        exit_turnover = trade.exit_price * trade.quantity
        # A short position sells on entry and buys on exit.
        if trade.side is Side.BUY:
            buy_turnover, sell_turnover = entry_turnover, exit_turnover
        else:
            buy_turnover, sell_turnover = exit_turnover, entry_turnover
        total_turnover = buy_turnover + sell_turnover

        brokerage = cfg.brokerage_per_order * 2
        stt = sell_turnover * cfg.stt_rate
        gst = brokerage * cfg.gst_rate
        sebi = total_turnover * cfg.sebi_charges
        stamp = buy_turnover * cfg.stamp_duty
        exchange_txn = total_turnover * cfg.exchange_txn_charge

        return TradeCosts(
            brokerage=brokerage,
            stt=stt,
            gst=gst,
            sebi_charges=sebi,
            stamp_duty=stamp,
            exchange_txn=exchange_txn,
            total=brokerage + stt + gst + sebi + stamp + exchange_txn,
        )

    def __call__(self, trade: Trade) -> float:
        return self.calculate(trade).total
