"""Tests for opening range level calculation."""
from datetime import date, datetime, time

import pytest

from fakes import FakeClock, ScriptedFeed, at
from orb_trader.models import Candle, Instrument
from orb_trader.strategy.levels import OrbLevelsCalculator, levels_from_history

INSTRUMENT = Instrument("NIFTY24DEC22000CE", "NFO", 50, 0.05)


def _make_candle(hour, minute, o, h, l, c):
    return Candle(timestamp=at(hour, minute), open=o, high=h, low=l, close=c, volume=1000)


def _calc(candles, buffer=2):
    calc = OrbLevelsCalculator(now=lambda: at(9, 30))
    return calc.calculate(candles, time(9, 15), time(9, 30), INSTRUMENT, buffer)


def test_high_low_over_window():
    levels = _calc([
        _make_candle(9, 15, 185.0, 186.0, 184.5, 185.5),
        _make_candle(9, 20, 185.5, 187.2, 185.0, 186.8),
        _make_candle(9, 29, 186.8, 186.9, 183.9, 184.2),
    ])
    assert levels.high == 187.2
    assert levels.low == 183.9
    assert levels.ltp == 184.2
    assert levels.captured_at == at(9, 30)
    assert levels.range_width == pytest.approx(3.3)


def test_triggers_include_buffer_ticks():
    levels = _calc([_make_candle(9, 15, 100, 100, 98, 99)], buffer=2)
    assert levels.buy_trigger == pytest.approx(100.10)
    assert levels.sell_trigger == pytest.approx(97.90)


def test_zero_buffer_triggers_at_range():
    levels = _calc([_make_candle(9, 15, 100, 100, 98, 99)], buffer=0)
    assert levels.buy_trigger == 100
    assert levels.sell_trigger == 98


def test_window_is_half_open():
    """Candles at the end time or before the start time are ignored."""
    levels = _calc([
        _make_candle(9, 14, 150, 200, 50, 150),
        _make_candle(9, 15, 100, 101, 99, 100),
        _make_candle(9, 30, 150, 200, 50, 150),
    ])
    assert levels.high == 101
    assert levels.low == 99
    assert levels.ltp == 100


def test_empty_window_returns_none():
    assert _calc([]) is None
    assert _calc([_make_candle(10, 0, 100, 101, 99, 100)]) is None


def test_same_inputs_same_levels():
    candles = [_make_candle(9, 16, 100, 102, 97, 101), _make_candle(9, 17, 101, 103, 100, 102)]
    first, second = _calc(candles), _calc(candles)
    assert (first.high, first.low, first.ltp) == (second.high, second.low, second.ltp)


def test_levels_from_history_requests_day_window():
    clock = FakeClock(at(11, 0))
    feed = ScriptedFeed(clock, candles=[
        _make_candle(9, 15, 100, 104, 99, 103),
        _make_candle(9, 25, 103, 105, 101, 102),
    ])
    levels = levels_from_history(
        feed, INSTRUMENT, time(9, 15), time(9, 30), 1, trading_day=date(2024, 12, 2)
    )
    assert feed.candle_requests == [(datetime(2024, 12, 2, 9, 15), datetime(2024, 12, 2, 9, 30))]
    assert levels.high == 105
    assert levels.low == 99
    assert levels.buy_trigger == pytest.approx(105.05)
