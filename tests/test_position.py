"""Tests for the single-position lifecycle."""
import pytest

from fakes import at
from orb_trader.config import StrategyConfig
from orb_trader.models import ExitReason, Instrument, PositionStatus, Side
from orb_trader.strategy.position import PositionManager

INSTRUMENT = Instrument("NIFTY24DEC22000CE", "NFO", 50, 0.05)


def _make_manager(**kwargs):
    return PositionManager(StrategyConfig(instrument=INSTRUMENT, **kwargs))


def test_lifecycle():
    pm = _make_manager(lot_size=2, target_points=15.0, stop_loss_points=8.0)
    assert not pm.is_open

    pos = pm.open("ORD-1", Side.BUY, entry_price=186.0, ltp=185.9, entry_time=at(9, 35))
    assert pm.is_open
    assert pos.quantity == 2
    assert pos.stop_loss == 178.0
    assert pos.target == 201.0
    assert pos.status == PositionStatus.OPEN

    pm.mark(190.0)
    assert pm.position.pnl == pytest.approx(8.0)
    assert pm.position.is_profit

    trade = pm.close(201.0, at(10, 5), ExitReason.TARGET_HIT)
    assert not pm.is_open
    assert pos.status == PositionStatus.CLOSED
    assert trade.pnl == pytest.approx(30.0)
    assert trade.duration_minutes == 30
    assert trade.id == "ORD-1"
    assert pm.trades == [trade]


def test_sell_pnl():
    pm = _make_manager()
    pm.open("ORD-2", Side.SELL, entry_price=100.0, ltp=100.0, entry_time=at(9, 40))
    pm.mark(98.0)
    assert pm.position.pnl == pytest.approx(2.0)
    assert pm.position.pnl_percentage == pytest.approx(2.0)
    trade = pm.close(103.0, at(9, 50), ExitReason.SL_HIT)
    assert trade.pnl == pytest.approx(-3.0)
    assert not trade.is_profit


def test_only_one_open_position():
    pm = _make_manager()
    pm.open("ORD-1", Side.BUY, 100.0, 100.0, at(9, 31))
    with pytest.raises(RuntimeError):
        pm.open("ORD-2", Side.SELL, 97.0, 97.0, at(9, 32))


def test_close_without_position_raises():
    with pytest.raises(RuntimeError):
        _make_manager().close(100.0, at(10, 0), ExitReason.MANUAL)


def test_snapshot_is_a_copy():
    pm = _make_manager()
    pm.open("ORD-1", Side.BUY, 100.0, 100.0, at(9, 31))
    snap = pm.snapshot()
    pm.mark(104.0)
    assert snap.current_price == 100.0
    assert pm.position.current_price == 104.0


def test_record_charges_replaces_trade():
    pm = _make_manager()
    pm.open("ORD-1", Side.BUY, 100.0, 100.0, at(9, 31))
    trade = pm.close(105.0, at(9, 45), ExitReason.TARGET_HIT)
    charged = pm.record_charges(trade, 1.5)
    assert charged.charges == 1.5
    assert charged.net_pnl == pytest.approx(3.5)
    assert pm.trades == [charged]
