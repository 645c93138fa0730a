"""Live trading session orchestrator: runs one ORB session for one trading day."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from orb_trader.clock import Clock, SystemClock
from orb_trader.config import AppConfig
from orb_trader.events import (
    EventSubscription,
    OrbCaptured,
    PositionClosed,
    PositionOpened,
    StrategyEvent,
)
from orb_trader.execution.charges import ChargeCalculator
from orb_trader.interfaces import MarketDataSource, OrderExecutor, Success
from orb_trader.live.notifier import TelegramNotifier
from orb_trader.live.state import SessionState
from orb_trader.models import Trade
from orb_trader.reports.metrics import compute_daily_stats, format_daily_stats
from orb_trader.reports.trade_log import export_trades_csv
from orb_trader.strategy.engine import OrbStrategyEngine
from orb_trader.strategy.risk import RiskGate, RiskTracker

logger = logging.getLogger(__name__)


class LiveSessionRunner:
    """Wires the engine to a feed, an executor and the session's side effects.

    Daily flow:
        1. Restore today's risk counters and trades from the state file
        2. Reconcile the saved position with the broker; refuse to start while
           a position from an earlier run is still open
        3. Start the engine, then pump its events: alerts, risk counters,
           trade journal, state snapshot
        4. Stop after auto-exit plus the shutdown grace period (or Ctrl-C),
           then log and send the daily summary
    """

    def __init__(
        self,
        config: AppConfig,
        market_data: MarketDataSource,
        executor: OrderExecutor,
        notifier: Optional[TelegramNotifier] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = config
        self._market_data = market_data
        self._executor = executor
        self._notifier = notifier or TelegramNotifier(
            config.live.telegram_bot_token, config.live.telegram_chat_id
        )
        self._clock = clock or SystemClock()

        self._tracker = RiskTracker(config.risk)
        self._charges = ChargeCalculator(config.charges)
        self._state = SessionState(config.live.state_file)
        self._engine = OrbStrategyEngine(
            market_data,
            executor,
            config.strategy,
            self._tracker.snapshot,
            clock=self._clock,
            engine_config=config.engine,
            charges=self._charges if config.live.apply_charges else None,
        )

        self._sub: Optional[EventSubscription] = None
        self._trades: list[Trade] = []

    @property
    def engine(self) -> OrbStrategyEngine:
        return self._engine

    @property
    def tracker(self) -> RiskTracker:
        return self._tracker

    @property
    def trades(self) -> list[Trade]:
        return list(self._trades)

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self) -> list[Trade]:
        """Run the session. Blocks until shutdown time, the run ends, or Ctrl-C."""
        mode = "PAPER" if self._config.live.paper else "LIVE"
        logger.info(f"{'='*60}")
        logger.info(f"ORB session starting: {self._config.strategy.name} [{mode}]")
        logger.info(f"{'='*60}")

        try:
            if self._setup():
                self._pump()
        except KeyboardInterrupt:
            logger.info("Interrupted by user.")
        except Exception:
            logger.exception("Fatal error in live session")
            self._notifier.error("Fatal error, session stopped. Check logs.")
        finally:
            self._shutdown()
        return self.trades

    def _shutdown_at(self) -> datetime:
        cfg = self._config
        auto_exit = datetime.combine(self._clock.now().date(), cfg.strategy.auto_exit_time)
        return auto_exit + timedelta(minutes=cfg.live.shutdown_grace_minutes)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _setup(self) -> bool:
        strategy = self._config.strategy
        if not strategy.enabled:
            logger.warning(f"Strategy {strategy.name} is disabled in config, not starting.")
            return False

        if not self._market_data.is_market_open():
            logger.warning("Market is not open yet, the engine will wait for the ORB window.")

        if self._state.load():
            daily_trades, realized = self._state.restored_counters()
            self._tracker.restore(daily_trades, realized)
            self._trades = self._state.restored_trades(strategy.instrument)
            logger.info(
                f"Restored {len(self._trades)} trades, "
                f"{daily_trades} counted, realized P&L {realized:.2f}"
            )

        positions = self._executor.get_open_positions()
        if isinstance(positions, Success):
            ok, message = self._state.reconcile_with_broker(positions.value or [])
            logger.info(f"Reconciliation: {message}")
            if not ok:
                logger.error(f"State does not match broker, manual intervention needed: {message}")
                self._notifier.error(f"Reconciliation failed: {message}")
                return False
        else:
            logger.warning(f"Could not fetch broker positions: {positions.reason}")

        saved = self._state.saved_position
        if saved is not None:
            logger.error(
                f"Position {saved['id']} ({saved['symbol']}) from an earlier run is still open, "
                f"not starting. Close it at the broker and clear {self._state.path}."
            )
            self._notifier.error(
                f"Not starting: position `{saved['id']}` from an earlier run is still open."
            )
            return False

        reason = RiskGate.denial_reason(self._tracker.snapshot())
        if reason is not None:
            logger.warning(f"Risk limits already reached today ({reason}), not starting.")
            self._notifier.warning(f"Not starting: {reason}")
            return False

        self._sub = self._engine.events.subscribe()
        return self._engine.start()

    # ------------------------------------------------------------------
    # Event pump
    # ------------------------------------------------------------------

    def _pump(self) -> None:
        """Consume engine events on the calling thread until shutdown."""
        shutdown_at = self._shutdown_at()
        poll = self._config.engine.poll_interval_seconds

        while True:
            event = self._sub.get(timeout=poll)
            if event is not None:
                self.handle_event(event)
            if self._clock.now() >= shutdown_at:
                logger.info(f"Past {shutdown_at:%H:%M}, shutting down.")
                return
            # Idle and finished: everything it published has been handled.
            if event is None and not self._engine.is_running:
                logger.info("Engine run finished.")
                return

    def handle_event(self, event: StrategyEvent) -> None:
        self._notifier.notify(event)

        if isinstance(event, PositionClosed):
            trade = event.trade
            self._trades.append(trade)
            settings = self._tracker.record_trade(trade)
            export_trades_csv([trade], self._config.live.trade_log_file, append=True)
            reason = RiskGate.denial_reason(settings)
            if reason is not None:
                self._notifier.warning(f"No new entries today: {reason}")

        if isinstance(event, (OrbCaptured, PositionOpened, PositionClosed)):
            self._save_state()

    def _save_state(self) -> None:
        risk = self._tracker.snapshot()
        self._state.save(
            levels=self._engine.orb_levels,
            position=self._engine.active_position,
            trades=self._trades,
            daily_trades=risk.current_daily_trades,
            realized_pnl=self._tracker.realized_pnl,
        )

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def _shutdown(self) -> None:
        """Stop the engine, flush pending events, log and send the summary."""
        self._engine.stop()
        if not self._engine.join(timeout=10):
            logger.warning("Engine thread did not finish within 10s")

        if self._sub is not None:
            for event in self._sub.drain():
                self.handle_event(event)
            self._sub.close()

        open_position = self._engine.active_position
        if open_position is not None:
            logger.warning(f"Position {open_position.id} still open at shutdown, state kept.")
            self._notifier.warning(
                f"Position `{open_position.id}` still open at shutdown. Check the broker."
            )
            self._save_state()

        stats = compute_daily_stats(self._trades, 1 if open_position else 0)
        charges = sum(t.charges for t in self._trades)
        for line in format_daily_stats(stats, charges).splitlines():
            logger.info(line)
        self._notifier.daily_summary(stats, charges)
