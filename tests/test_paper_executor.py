"""Tests for the paper order executor."""
import csv

from orb_trader.execution.paper import PaperOrderExecutor
from orb_trader.interfaces import Failure, Success, order_response
from orb_trader.models import Side


def _make_executor(tmp_path, prices):
    return PaperOrderExecutor(
        price_source=lambda symbol: prices[symbol],
        log_file=str(tmp_path / "orders.csv"),
    )


def test_market_order_fills_at_ltp(tmp_path):
    prices = {"X": 185.5}
    ex = _make_executor(tmp_path, prices)

    result = ex.place_market_order("X", Side.BUY, 2, tag="ORB_ENTRY")
    resp = order_response(result)
    assert resp.order_id == "PAPER-000001"
    assert resp.price == 185.5
    assert resp.status == "COMPLETE"
    assert ex.get_order(resp.order_id).tag == "ORB_ENTRY"

    positions = ex.get_open_positions()
    assert isinstance(positions, Success)
    assert positions.value == [{
        "position_id": "PAPER-000001", "symbol": "X", "side": "BUY",
        "quantity": 2, "entry_price": 185.5,
    }]


def test_limit_order_fills_at_limit(tmp_path):
    ex = _make_executor(tmp_path, {"X": 185.5})
    resp = order_response(ex.place_limit_order("X", Side.SELL, 1, 184.0))
    assert resp.price == 184.0


def test_close_position_places_opposite_fill(tmp_path):
    prices = {"X": 100.0}
    ex = _make_executor(tmp_path, prices)
    resp = order_response(ex.place_market_order("X", Side.SELL, 1))

    prices["X"] = 95.0
    assert isinstance(ex.close_position(resp.order_id), Success)
    assert ex.get_open_positions().value == []

    exit_order = ex.get_order("PAPER-000002")
    assert exit_order.side == Side.BUY
    assert exit_order.fill_price == 95.0

    with open(tmp_path / "orders.csv") as f:
        rows = list(csv.DictReader(f))
    assert [r["side"] for r in rows] == ["SELL", "BUY"]


def test_close_unknown_position_fails(tmp_path):
    ex = _make_executor(tmp_path, {})
    assert isinstance(ex.close_position("nope"), Failure)


def test_injected_failures(tmp_path):
    ex = _make_executor(tmp_path, {"X": 100.0})
    ex.fail_next(1)
    assert isinstance(ex.place_market_order("X", Side.BUY, 1), Failure)
    assert isinstance(ex.place_market_order("X", Side.BUY, 1), Success)


def test_missing_price_is_a_failure(tmp_path):
    ex = _make_executor(tmp_path, {})
    result = ex.place_market_order("UNKNOWN", Side.BUY, 1)
    assert isinstance(result, Failure)
    assert order_response(result) is None


def test_cancel_filled_order_fails(tmp_path):
    ex = _make_executor(tmp_path, {"X": 100.0})
    resp = order_response(ex.place_market_order("X", Side.BUY, 1))
    assert isinstance(ex.cancel_order(resp.order_id), Failure)
    assert isinstance(ex.cancel_order("PAPER-999999"), Failure)
