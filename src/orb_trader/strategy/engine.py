"""ORB strategy engine: range capture → breakout monitoring → position management."""
from __future__ import annotations

import logging
import threading
from datetime import time
from typing import Callable, Optional, Union

from orb_trader.clock import Clock, SystemClock
from orb_trader.config import EngineConfig, StrategyConfig
from orb_trader.events import (
    Error,
    EventBus,
    OrbCaptured,
    OrderFailed,
    PositionClosed,
    PositionOpened,
    PositionUpdate,
    PriceUpdate,
    RiskLimitReached,
    Started,
    Stopped,
    StrategyEvent,
)
from orb_trader.feed import PriceStream, StreamClosed
from orb_trader.interfaces import Failure, MarketDataSource, OrderExecutor, order_response
from orb_trader.models import (
    Candle,
    EnginePhase,
    OrbLevels,
    OrderType,
    Position,
    RiskSettings,
    Side,
    Trade,
)
from orb_trader.strategy.exit import ExitManager, ExitSignal
from orb_trader.strategy.levels import OrbLevelsCalculator, levels_from_history
from orb_trader.strategy.position import PositionManager
from orb_trader.strategy.risk import RiskGate

logger = logging.getLogger(__name__)

ORB_ENTRY_TAG = "ORB_ENTRY"

RiskSource = Union[RiskSettings, Callable[[], RiskSettings]]


class _Run:
    """State of one start() → stop() cycle. Only its own thread writes it."""

    def __init__(self, config: StrategyConfig) -> None:
        self.running = True
        self.stop_event = threading.Event()
        self.phase = EnginePhase.IDLE
        self.levels: Optional[OrbLevels] = None
        self.range_captured = False
        self.positions = PositionManager(config)
        self.stream: Optional[PriceStream] = None
        self.thread: Optional[threading.Thread] = None


class OrbStrategyEngine:
    """Trades the opening range breakout of one instrument.

    Lifecycle per ``start()``::

        IDLE → CAPTURING_RANGE → MONITORING_BREAKOUT → IN_POSITION → IDLE

    ``stop()`` moves any phase to STOPPED. Each phase opens its own price
    subscription and consumes ticks strictly in order on the engine's
    background thread. Every decision is published on ``events``.

    The engine never raises into its host: broker failures become
    ``OrderFailed``/``Error`` events, risk denials become ``RiskLimitReached``,
    and anything unexpected ends the run with an ``Error`` event. A new
    ``start()`` is accepted once the run has ended.
    """

    def __init__(
        self,
        market_data: MarketDataSource,
        executor: OrderExecutor,
        config: StrategyConfig,
        risk: RiskSource,
        clock: Optional[Clock] = None,
        engine_config: Optional[EngineConfig] = None,
        charges: Optional[Callable[[Trade], float]] = None,
    ) -> None:
        self._market_data = market_data
        self._executor = executor
        self._config = config
        if isinstance(risk, RiskSettings):
            self._risk: Callable[[], RiskSettings] = lambda: risk
        else:
            self._risk = risk
        self._clock = clock or SystemClock()
        self._engine_config = engine_config or EngineConfig()
        self._charges = charges

        self._calculator = OrbLevelsCalculator(now=self._clock.now)
        self._exits = ExitManager(config.auto_exit_time, config.enable_auto_exit)
        self._events = EventBus(self._engine_config.event_queue_size)

        # Serializes start/stop and event publication against each other.
        self._lock = threading.Lock()
        self._run: Optional[_Run] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def config(self) -> StrategyConfig:
        return self._config

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def is_running(self) -> bool:
        run = self._run
        return run is not None and run.running

    @property
    def phase(self) -> EnginePhase:
        run = self._run
        return run.phase if run is not None else EnginePhase.IDLE

    @property
    def orb_levels(self) -> Optional[OrbLevels]:
        run = self._run
        return run.levels if run is not None else None

    @property
    def range_captured(self) -> bool:
        run = self._run
        return run.range_captured if run is not None else False

    @property
    def active_position(self) -> Optional[Position]:
        run = self._run
        return run.positions.snapshot() if run is not None else None

    @property
    def trades(self) -> list[Trade]:
        """Trades closed during the current (or last) run."""
        run = self._run
        return run.positions.trades if run is not None else []

    def start(self) -> bool:
        """Begin a new run in the background. Returns False if already running."""
        symbol = self._config.instrument.symbol
        with self._lock:
            if self._run is not None and self._run.running:
                logger.debug(f"start() ignored, {symbol} engine already running")
                return False
            run = _Run(self._config)
            self._run = run
            self._events.publish(Started(config=self._config))
            run.thread = threading.Thread(
                target=self._run_strategy,
                args=(run,),
                name=f"orb-engine-{symbol}",
                daemon=True,
            )
            run.thread.start()
        logger.info(f"ORB strategy started for {symbol}")
        return True

    def stop(self) -> bool:
        """Stop the current run. Returns False if nothing was running."""
        with self._lock:
            run = self._run
            if run is None or not run.running:
                return False
            run.running = False
            run.phase = EnginePhase.STOPPED
            run.stop_event.set()
            if run.stream is not None:
                run.stream.close()
            self._events.publish(Stopped())
        logger.info(f"ORB strategy stopped for {self._config.instrument.symbol}")
        return True

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the background thread. Returns True once it has finished."""
        run = self._run
        if run is None or run.thread is None:
            return True
        run.thread.join(timeout)
        return not run.thread.is_alive()

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def _run_strategy(self, run: _Run) -> None:
        try:
            self._capture_range(run)

            while run.running and run.levels is not None:
                closed_before = len(run.positions.trades)
                self._monitor_breakout(run)
                if run.positions.is_open:
                    self._manage_position(run)

                closed_now = len(run.positions.trades) > closed_before
                if not (closed_now and not run.positions.is_open and self._reentry_allowed()):
                    break
                logger.info("Position closed, re-entry allowed: resuming breakout monitoring")
        except Exception as e:
            logger.exception("Strategy run failed")
            self._emit(run, Error(message=str(e) or type(e).__name__))
        finally:
            with self._lock:
                if run.running:
                    run.running = False
                    run.phase = EnginePhase.IDLE
            logger.info(f"Strategy run finished ({run.phase.name})")

    def _emit(self, run: _Run, event: StrategyEvent) -> None:
        with self._lock:
            if not run.running:
                logger.debug(f"Dropping {event.name} from a stopped run")
                return
            self._events.publish(event)

    def _consume(
        self,
        run: _Run,
        keep_going: Callable[[], bool],
        on_tick: Callable[[float], None],
    ) -> None:
        """Feed ticks to *on_tick* one at a time while *keep_going* holds."""
        stream = self._market_data.subscribe_price(self._config.instrument.symbol)
        run.stream = stream
        poll = self._engine_config.poll_interval_seconds
        try:
            while run.running and keep_going():
                try:
                    ltp = stream.get(timeout=poll)
                except StreamClosed:
                    logger.info("Price stream closed")
                    break
                if ltp is None:
                    continue
                if not (run.running and keep_going()):
                    break
                on_tick(ltp)
        finally:
            run.stream = None
            stream.close()

    def _wait_until(self, run: _Run, target: time) -> None:
        while run.running and self._clock.time_of_day() < target:
            run.stop_event.wait(self._engine_config.poll_interval_seconds)

    def _reentry_allowed(self) -> bool:
        cfg = self._config
        return cfg.allow_reentry and self._clock.time_of_day() < cfg.no_reentry_time

    def _entries_closed(self) -> bool:
        cfg = self._config
        return cfg.enable_auto_exit and self._clock.time_of_day() >= cfg.auto_exit_time

    # ------------------------------------------------------------------
    # Phase 1: range capture
    # ------------------------------------------------------------------

    def _capture_range(self, run: _Run) -> None:
        cfg = self._config
        start, end = cfg.orb_start_time, cfg.orb_end_time
        run.phase = EnginePhase.CAPTURING_RANGE

        if cfg.backfill_on_late_start and self._clock.time_of_day() >= end:
            self._backfill_range(run)
            return

        logger.info(f"Waiting for ORB window {start:%H:%M}-{end:%H:%M}")
        self._wait_until(run, start)
        if not run.running:
            return
        logger.info("ORB capture window open")

        candles: list[Candle] = []

        def on_tick(ltp: float) -> None:
            logger.debug(f"ORB capture LTP {ltp:.2f}")
            candles.append(Candle.from_tick(ltp, self._clock.now()))
            self._emit(run, PriceUpdate(ltp=ltp))

        self._consume(run, lambda: start <= self._clock.time_of_day() < end, on_tick)

        if not run.running:
            return
        if not candles:
            logger.info("No ticks during the ORB window, no levels captured")
            return

        levels = self._calculator.calculate(
            candles, start, end, cfg.instrument, cfg.breakout_buffer
        )
        if levels is None:
            logger.info("ORB ticks fell outside the window, no levels captured")
            return
        self._set_levels(run, levels)

    def _backfill_range(self, run: _Run) -> None:
        cfg = self._config
        logger.info("Started after the ORB window closed, rebuilding levels from history")
        levels = levels_from_history(
            self._market_data,
            cfg.instrument,
            cfg.orb_start_time,
            cfg.orb_end_time,
            cfg.breakout_buffer,
            trading_day=self._clock.now().date(),
            calculator=self._calculator,
        )
        if levels is None:
            logger.info("No historical candles in the ORB window, no levels captured")
            return
        self._set_levels(run, levels)

    def _set_levels(self, run: _Run, levels: OrbLevels) -> None:
        run.levels = levels
        run.range_captured = True
        logger.info(
            f"ORB captured: H={levels.high:.2f}, L={levels.low:.2f}, "
            f"buy>={levels.buy_trigger:.2f}, sell<={levels.sell_trigger:.2f}"
        )
        self._emit(run, OrbCaptured(levels=levels))

    # ------------------------------------------------------------------
    # Phase 2: breakout monitoring
    # ------------------------------------------------------------------

    def _monitor_breakout(self, run: _Run) -> None:
        levels = run.levels
        run.phase = EnginePhase.MONITORING_BREAKOUT
        buy_trigger, sell_trigger = levels.buy_trigger, levels.sell_trigger

        def on_tick(ltp: float) -> None:
            self._emit(run, PriceUpdate(ltp=ltp))
            logger.debug(f"LTP {ltp:.2f} (buy>={buy_trigger:.2f}, sell<={sell_trigger:.2f})")
            if ltp >= buy_trigger:
                logger.info(f"BUY breakout: LTP {ltp:.2f} >= {buy_trigger:.2f}")
                self._enter(run, Side.BUY, ltp)
            elif ltp <= sell_trigger:
                logger.info(f"SELL breakout: LTP {ltp:.2f} <= {sell_trigger:.2f}")
                self._enter(run, Side.SELL, ltp)

        self._consume(
            run, lambda: not run.positions.is_open and not self._entries_closed(), on_tick
        )
        if run.running and self._entries_closed():
            logger.info(
                f"Past auto-exit {self._config.auto_exit_time:%H:%M}, no new entries today"
            )

    def _enter(self, run: _Run, side: Side, ltp: float) -> None:
        reason = RiskGate.denial_reason(self._risk())
        if reason is not None:
            logger.warning(f"{side.value} entry skipped, risk limit reached: {reason}")
            self._emit(run, RiskLimitReached(reason=reason))
            return

        cfg = self._config
        symbol = cfg.instrument.symbol
        if cfg.order_type is OrderType.LIMIT:
            result = self._executor.place_limit_order(
                symbol, side, cfg.quantity, ltp, ORB_ENTRY_TAG
            )
        else:
            result = self._executor.place_market_order(
                symbol, side, cfg.quantity, ORB_ENTRY_TAG
            )

        if not run.running:
            logger.warning(f"Ignoring {side.value} entry result received after stop: {result}")
            return
        if isinstance(result, Failure):
            logger.error(f"{side.value} entry order failed: {result.reason}")
            self._emit(run, OrderFailed(message=result.reason or "Order failed"))
            return
        response = order_response(result)
        if response is None:
            logger.error(f"{side.value} entry order returned no order id: {result}")
            self._emit(run, OrderFailed(message="Broker returned no order id"))
            return

        entry_price = response.price if response.price is not None else ltp
        position = run.positions.open(
            position_id=response.order_id,
            side=side,
            entry_price=entry_price,
            ltp=ltp,
            entry_time=self._clock.now(),
        )
        logger.info(
            f"Position opened: {side.value} {position.quantity} × {symbol} @ {entry_price:.2f}, "
            f"SL={position.stop_loss:.2f}, target={position.target:.2f} ({position.id})"
        )
        self._emit(run, PositionOpened(position=run.positions.snapshot()))

    # ------------------------------------------------------------------
    # Phase 3: position management
    # ------------------------------------------------------------------

    def _manage_position(self, run: _Run) -> None:
        run.phase = EnginePhase.IN_POSITION

        def on_tick(ltp: float) -> None:
            position = run.positions.mark(ltp)
            logger.debug(f"Position LTP {ltp:.2f}, P&L {position.pnl:.2f}")
            self._emit(run, PositionUpdate(position=run.positions.snapshot()))
            signal = self._exits.check_exit(position, ltp, self._clock.time_of_day())
            if signal is not None:
                self._exit(run, signal)

        self._consume(run, lambda: run.positions.is_open, on_tick)

    def _exit(self, run: _Run, signal: ExitSignal) -> None:
        position = run.positions.position
        logger.info(
            f"Exit signal {signal.reason.name} @ {signal.exit_price:.2f} for {position.id}"
        )
        result = self._executor.close_position(position.id)

        if not run.running:
            logger.warning(f"Ignoring close result for {position.id} received after stop: {result}")
            return
        if isinstance(result, Failure):
            # Position stays open; the exit is re-evaluated on the next tick.
            logger.error(f"Close of {position.id} failed: {result.reason}")
            self._emit(run, Error(message=f"Failed to close position {position.id}: {result.reason}"))
            return

        trade = run.positions.close(signal.exit_price, self._clock.now(), signal.reason)
        if self._charges is not None:
            trade = run.positions.record_charges(trade, self._charges(trade))
        logger.info(
            f"Position closed: {trade.exit_reason.name}, {trade.side.value} "
            f"{trade.entry_price:.2f} → {trade.exit_price:.2f}, P&L {trade.pnl:.2f}"
        )
        self._emit(run, PositionClosed(trade=trade))
