#!/usr/bin/env python3
"""ORB trading CLI: runs one opening range breakout session for today.

Usage:
    python scripts/live_trade.py [--paper | --live] [--mock] [--scenario NAME] [--config CONFIG_PATH] [--lots N]

Options:
    --paper     Paper trading mode (no real orders). Default.
    --live      Real orders through Kite (requires confirmation).
    --mock      Random-walk price feed instead of Kite (paper only).
    --scenario  Demo scenario on the mock feed (breakout, stop_loss); implies --mock
    --config    Path to config file (default: config/default_config.yaml)
    --lots      Order quantity, overrides strategy.lot_size
"""
from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

# Ensure project root is on sys.path
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_PROJECT_ROOT / "src"))

from orb_trader.config import ConfigError, load_config, validate_strategy
from orb_trader.data.kite_auth import KiteSession
from orb_trader.data.kite_feed import KiteMarketDataSource
from orb_trader.data.mock_feed import SCENARIOS, MockMarketDataSource
from orb_trader.execution.paper import PaperOrderExecutor
from orb_trader.live.kite_executor import KiteOrderExecutor
from orb_trader.live.live_session import LiveSessionRunner
from orb_trader.live.notifier import TelegramNotifier


def main() -> None:
    parser = argparse.ArgumentParser(description="ORB Intraday Trading")
    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--paper", action="store_true", default=True,
        help="Paper trading mode (default)",
    )
    mode_group.add_argument(
        "--live", action="store_true",
        help="Real trading mode",
    )
    parser.add_argument(
        "--mock", action="store_true",
        help="Use a random-walk price feed instead of Kite",
    )
    parser.add_argument(
        "--scenario", choices=sorted(SCENARIOS), default=None,
        help="Run a demo scenario on the mock feed (implies --mock)",
    )
    parser.add_argument(
        "--config", default="config/default_config.yaml",
        help="Config file path",
    )
    parser.add_argument(
        "--lots", type=int, default=None,
        help="Order quantity (overrides config)",
    )
    args = parser.parse_args()

    paper_mode = not args.live
    if args.scenario:
        args.mock = True
    if args.mock and not paper_mode:
        parser.error("--mock can only be used in paper mode")

    # Setup logging
    Path("output").mkdir(exist_ok=True)
    log_level = logging.DEBUG if paper_mode else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler("output/live_session.log", mode="a"),
        ],
    )
    logger = logging.getLogger(__name__)

    scenario_feed = None
    try:
        config = load_config(args.config)
        if args.scenario:
            scenario_feed, config.strategy = SCENARIOS[args.scenario]()
        if args.lots:
            config.strategy = validate_strategy(
                dataclasses.replace(config.strategy, lot_size=args.lots)
            )
    except ConfigError as e:
        logger.error(f"Invalid config: {e}")
        sys.exit(1)
    config.live.paper = paper_mode

    strategy = config.strategy
    risk = config.risk

    # Safety confirmation for live mode
    if not paper_mode:
        print("\n" + "=" * 60)
        print("  WARNING: LIVE TRADING MODE")
        print("  Real orders will be placed with real money!")
        print(f"  {strategy.instrument.label} | Qty: {strategy.quantity} | "
              f"Max daily loss: ₹{risk.max_daily_loss:.0f}")
        print("=" * 60)
        confirm = input("\nType 'YES' to confirm: ").strip()
        if confirm != "YES":
            print("Aborted.")
            sys.exit(0)

    feed = None
    if args.mock:
        market_data = scenario_feed or MockMarketDataSource(
            interval_seconds=config.engine.poll_interval_seconds,
        )
        executor = PaperOrderExecutor(
            price_source=market_data.get_current_price,
            log_file=config.live.order_log_file,
        )
    else:
        # Authenticate with Kite
        logger.info("Authenticating with Kite Connect...")
        kite_session = KiteSession(config.kite_api_key, config.kite_api_secret)

        if not kite_session.is_authenticated:
            print(f"\nPlease login at: {kite_session.get_login_url()}")
            request_token = input("Enter request token from redirect URL: ").strip()
            kite_session.generate_session(request_token)

        kite = kite_session.get_kite()
        logger.info("Kite authenticated successfully.")

        feed = KiteMarketDataSource(
            kite, kite_session.access_token, exchange=strategy.instrument.exchange
        )
        if not feed.connect(timeout=30):
            logger.error("WebSocket failed to connect within 30 seconds")
            sys.exit(1)
        market_data = feed

        if paper_mode:
            executor = PaperOrderExecutor(
                price_source=feed.get_current_price,
                log_file=config.live.order_log_file,
            )
        else:
            executor = KiteOrderExecutor(kite, exchange=strategy.instrument.exchange)

    notifier = TelegramNotifier(config.live.telegram_bot_token, config.live.telegram_chat_id)
    runner = LiveSessionRunner(config, market_data, executor, notifier=notifier)
    try:
        runner.run()
    finally:
        if feed is not None:
            feed.disconnect()


if __name__ == "__main__":
    main()
