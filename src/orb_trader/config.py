"""YAML config loader → dataclasses."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import time
from pathlib import Path

import yaml
from dotenv import load_dotenv

from orb_trader.models import Instrument, OrderType, RiskSettings

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Invalid or inconsistent configuration."""


@dataclass(frozen=True)
class StrategyConfig:
    instrument: Instrument
    name: str = "ORB 15-Min"
    orb_start_time: time = time(9, 15)
    orb_end_time: time = time(9, 30)
    auto_exit_time: time = time(15, 15)
    no_reentry_time: time = time(15, 0)
    breakout_buffer: int = 1
    order_type: OrderType = OrderType.MARKET
    target_points: float = 5.0
    stop_loss_points: float = 3.0
    lot_size: int = 1
    max_positions: int = 1
    enable_auto_exit: bool = True
    allow_reentry: bool = False
    backfill_on_late_start: bool = False
    enabled: bool = True

    @property
    def quantity(self) -> int:
        return self.lot_size


@dataclass(frozen=True)
class ChargesConfig:
    brokerage_per_order: float = 20.0
    stt_rate: float = 0.000625
    gst_rate: float = 0.18
    sebi_charges: float = 0.000001
    stamp_duty: float = 0.00003
    exchange_txn_charge: float = 0.00053


@dataclass(frozen=True)
class EngineConfig:
    poll_interval_seconds: float = 1.0
    event_queue_size: int = 1024


@dataclass
class LiveConfig:
    paper: bool = True
    state_file: str = "data/live_state.json"
    order_log_file: str = "output/order_log.csv"
    trade_log_file: str = "output/trades.csv"
    apply_charges: bool = True
    shutdown_grace_minutes: int = 5
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""


@dataclass
class AppConfig:
    strategy: StrategyConfig
    risk: RiskSettings = field(default_factory=RiskSettings)
    charges: ChargesConfig = field(default_factory=ChargesConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    live: LiveConfig = field(default_factory=LiveConfig)
    kite_api_key: str = ""
    kite_api_secret: str = ""


def _parse_time(val: str | time) -> time:
    if isinstance(val, time):
        return val
    parts = str(val).split(":")
    try:
        return time(int(parts[0]), int(parts[1]))
    except (IndexError, ValueError):
        raise ConfigError(f"Expected HH:MM time, got {val!r}")


def _parse_order_type(val: str) -> OrderType:
    try:
        return OrderType(str(val).upper())
    except ValueError:
        raise ConfigError(f"Unknown order_type {val!r} (expected MARKET or LIMIT)")


def validate_strategy(cfg: StrategyConfig) -> StrategyConfig:
    """Raise ConfigError if *cfg* cannot drive a session."""
    if cfg.instrument.tick_size <= 0:
        raise ConfigError("instrument.tick_size must be positive")
    if cfg.orb_end_time <= cfg.orb_start_time:
        raise ConfigError("orb_end must be after orb_start")
    if cfg.auto_exit_time <= cfg.orb_end_time:
        raise ConfigError("auto_exit must be after orb_end")
    if cfg.target_points <= 0 or cfg.stop_loss_points <= 0:
        raise ConfigError("target_points and stop_loss_points must be positive")
    if cfg.lot_size < 1:
        raise ConfigError("lot_size must be at least 1")
    if cfg.breakout_buffer < 0:
        logger.warning(
            f"Negative breakout buffer ({cfg.breakout_buffer}) places triggers inside the range"
        )
    return cfg


def load_config(config_path: str | Path = "config/default_config.yaml") -> AppConfig:
    """Load YAML config and merge with environment variables."""
    load_dotenv()

    with open(config_path, "r") as f:
        raw = yaml.safe_load(f) or {}

    inst = raw.get("instrument", {})
    if "symbol" not in inst:
        raise ConfigError("instrument.symbol is required")
    instrument = Instrument(
        symbol=inst["symbol"],
        exchange=inst.get("exchange", "NSE"),
        lot_size=int(inst.get("lot_size", 1)),
        tick_size=float(inst.get("tick_size", 0.05)),
        display_name=inst.get("display_name", ""),
    )

    strat = raw.get("strategy", {})
    strategy = validate_strategy(StrategyConfig(
        instrument=instrument,
        name=strat.get("name", "ORB 15-Min"),
        orb_start_time=_parse_time(strat.get("orb_start", "09:15")),
        orb_end_time=_parse_time(strat.get("orb_end", "09:30")),
        auto_exit_time=_parse_time(strat.get("auto_exit", "15:15")),
        no_reentry_time=_parse_time(strat.get("no_reentry", "15:00")),
        breakout_buffer=int(strat.get("breakout_buffer", 1)),
        order_type=_parse_order_type(strat.get("order_type", "MARKET")),
        target_points=float(strat.get("target_points", 5.0)),
        stop_loss_points=float(strat.get("stop_loss_points", 3.0)),
        lot_size=int(strat.get("lot_size", 1)),
        max_positions=int(strat.get("max_positions", 1)),
        enable_auto_exit=bool(strat.get("enable_auto_exit", True)),
        allow_reentry=bool(strat.get("allow_reentry", False)),
        backfill_on_late_start=bool(strat.get("backfill_on_late_start", False)),
        enabled=bool(strat.get("enabled", True)),
    ))

    rk = raw.get("risk", {})
    risk = RiskSettings(
        max_daily_loss=float(rk.get("max_daily_loss", 100.0)),
        max_daily_trades=int(rk.get("max_daily_trades", 10)),
        max_positions=int(rk.get("max_positions", 3)),
        max_per_instrument=int(rk.get("max_per_instrument", 1)),
        circuit_breaker_loss_percent=float(rk.get("circuit_breaker_loss_percent", 5.0)),
        cooldown_minutes=int(rk.get("cooldown_minutes", 30)),
        order_throttle_per_minute=int(rk.get("order_throttle_per_minute", 10)),
    )

    ch = raw.get("charges", {})
    charges = ChargesConfig(
        brokerage_per_order=float(ch.get("brokerage_per_order", 20.0)),
        stt_rate=float(ch.get("stt_rate", 0.000625)),
        gst_rate=float(ch.get("gst_rate", 0.18)),
        sebi_charges=float(ch.get("sebi_charges", 0.000001)),
        stamp_duty=float(ch.get("stamp_duty", 0.00003)),
        exchange_txn_charge=float(ch.get("exchange_txn_charge", 0.00053)),
    )

    eng = raw.get("engine", {})
    engine = EngineConfig(
        poll_interval_seconds=float(eng.get("poll_interval_seconds", 1.0)),
        event_queue_size=int(eng.get("event_queue_size", 1024)),
    )

    lv = raw.get("live", {})
    live = LiveConfig(
        paper=bool(lv.get("paper", True)),
        state_file=lv.get("state_file", "data/live_state.json"),
        order_log_file=lv.get("order_log_file", "output/order_log.csv"),
        trade_log_file=lv.get("trade_log_file", "output/trades.csv"),
        apply_charges=bool(lv.get("apply_charges", True)),
        shutdown_grace_minutes=int(lv.get("shutdown_grace_minutes", 5)),
        telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN", lv.get("telegram_bot_token", "")),
        telegram_chat_id=os.getenv("TELEGRAM_CHAT_ID", lv.get("telegram_chat_id", "")),
    )

    return AppConfig(
        strategy=strategy,
        risk=risk,
        charges=charges,
        engine=engine,
        live=live,
        kite_api_key=os.getenv("KITE_API_KEY", ""),
        kite_api_secret=os.getenv("KITE_API_SECRET", ""),
    )
