"""Tests for stop-loss / target / time exit rules."""
from datetime import time

import pytest

from fakes import at
from orb_trader.models import ExitReason, Instrument, Position, Side
from orb_trader.strategy.exit import (
    ExitManager,
    is_stop_loss_hit,
    is_target_hit,
    realized_pnl,
    stop_loss_for,
    target_for,
)

INSTRUMENT = Instrument("NIFTY24DEC22000CE", "NFO", 50, 0.05)


def _make_position(side, entry=100.0, sl_pts=3.0, tgt_pts=5.0):
    return Position(
        id="ORD-1",
        instrument=INSTRUMENT,
        side=side,
        quantity=1,
        entry_price=entry,
        current_price=entry,
        stop_loss=stop_loss_for(side, entry, sl_pts),
        target=target_for(side, entry, tgt_pts),
        entry_time=at(9, 31),
    )


def test_levels_by_side():
    assert stop_loss_for(Side.BUY, 100, 3) == 97
    assert target_for(Side.BUY, 100, 5) == 105
    assert stop_loss_for(Side.SELL, 100, 3) == 103
    assert target_for(Side.SELL, 100, 5) == 95


def test_hits_are_inclusive():
    buy = _make_position(Side.BUY)
    assert is_stop_loss_hit(buy, 97.0)
    assert not is_stop_loss_hit(buy, 97.05)
    assert is_target_hit(buy, 105.0)

    sell = _make_position(Side.SELL)
    assert is_stop_loss_hit(sell, 103.0)
    assert is_target_hit(sell, 95.0)
    assert not is_target_hit(sell, 95.05)


def test_realized_pnl_by_side():
    assert realized_pnl(Side.BUY, 100, 105, 2) == 10
    assert realized_pnl(Side.SELL, 100, 105, 2) == -10


@pytest.mark.parametrize("side,price,now,expected", [
    (Side.BUY, 96.0, time(15, 20), ExitReason.SL_HIT),
    (Side.BUY, 106.0, time(15, 20), ExitReason.TARGET_HIT),
    (Side.BUY, 101.0, time(15, 15), ExitReason.TIME_EXIT),
    (Side.SELL, 104.0, time(15, 30), ExitReason.SL_HIT),
    (Side.SELL, 94.0, time(15, 30), ExitReason.TARGET_HIT),
    (Side.BUY, 101.0, time(15, 14), None),
])
def test_exit_precedence(side, price, now, expected):
    signal = ExitManager(time(15, 15)).check_exit(_make_position(side), price, now)
    if expected is None:
        assert signal is None
    else:
        assert signal.reason == expected
        assert signal.exit_price == price


def test_time_exit_disabled():
    mgr = ExitManager(time(15, 15), enable_auto_exit=False)
    assert mgr.check_exit(_make_position(Side.BUY), 101.0, time(15, 25)) is None
