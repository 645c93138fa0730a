"""Tests for trade charge estimation."""
import pytest

from fakes import at
from orb_trader.config import ChargesConfig
from orb_trader.execution.charges import ChargeCalculator
from orb_trader.models import ExitReason, Instrument, Side, Trade

INSTRUMENT = Instrument("NIFTY24DEC22000CE", "NFO", 50, 0.05)


def _make_trade(side, entry=100.0, exit_=110.0, qty=50):
    return Trade(
        id="ORD-1", instrument=INSTRUMENT, side=side, quantity=qty,
        entry_price=entry, exit_price=exit_,
        entry_time=at(9, 31), exit_time=at(10, 0),
        exit_reason=ExitReason.TARGET_HIT, pnl=0.0,
    )


def test_long_trade_charges():
    costs = ChargeCalculator(ChargesConfig()).calculate(_make_trade(Side.BUY))
    # buy turnover 5000, sell turnover 5500
    assert costs.brokerage == 40.0
    assert costs.stt == pytest.approx(5500 * 0.000625)
    assert costs.gst == pytest.approx(7.2)
    assert costs.stamp_duty == pytest.approx(5000 * 0.00003)
    assert costs.exchange_txn == pytest.approx(10500 * 0.00053)
    assert costs.total == pytest.approx(56.363)


def test_short_trade_sells_on_entry():
    costs = ChargeCalculator(ChargesConfig()).calculate(_make_trade(Side.SELL))
    assert costs.stt == pytest.approx(5000 * 0.000625)
    assert costs.stamp_duty == pytest.approx(5500 * 0.00003)


def test_callable_returns_total():
    calc = ChargeCalculator(ChargesConfig(brokerage_per_order=0, stt_rate=0, gst_rate=0,
                                          sebi_charges=0, stamp_duty=0, exchange_txn_charge=0))
    assert calc(_make_trade(Side.BUY)) == 0.0
