"""
Crypto Hunter — Market Monitor
Periodic fetch → evaluate → format → dedup → notify cycle.
"""
import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional

from crypto_hunter.alerts.dedup import NotificationDeduplicator
from crypto_hunter.alerts.evaluator import AlertConfig, AlertEvaluator
from crypto_hunter.alerts.models import Alert
from crypto_hunter.alerts.store import LevelStore, ThresholdStore
from crypto_hunter.config.settings import AppSettings, get_settings
from crypto_hunter.data.adapters.base import BaseDataSource
from crypto_hunter.data.adapters.crypto_adapter import CoinGeckoSource
from crypto_hunter.data.adapters.mock_adapter import MockSource
from crypto_hunter.data.models import CoinSnapshot, PricePoint
from crypto_hunter.errors import FetchError
from crypto_hunter.indicators.registry import TechnicalAnalyzer
from crypto_hunter.notifications.hub import NotificationHub
from crypto_hunter.prediction.trend_estimator import TrendEstimator
from crypto_hunter.reporting.formatter import ReportFormatter
from crypto_hunter.utils.helpers import normalize_symbol, utc_now
from crypto_hunter.utils.logger import get_logger

logger = get_logger("market_monitor")


@dataclass
class CycleResult:
    """Outcome of one monitor cycle."""
    started_at: datetime
    snapshots: List[CoinSnapshot] = field(default_factory=list)
    alerts: List[Alert] = field(default_factory=list)
    notified: List[Alert] = field(default_factory=list)
    report: str = ""
    channel_results: Dict[str, bool] = field(default_factory=dict)
    skipped: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "skipped": self.skipped,
            "error": self.error,
            "snapshots": len(self.snapshots),
            "alerts": [a.to_dict() for a in self.alerts],
            "notified": len(self.notified),
            "channel_results": self.channel_results,
            "report": self.report,
        }


def build_source(settings: Optional[AppSettings] = None) -> BaseDataSource:
    settings = settings or get_settings()
    if settings.monitor.data_source == "mock":
        return MockSource()
    return CoinGeckoSource(settings.monitor)


class MarketMonitor:
    """
    Owns the evaluator and everything around it.
    Cycles and evaluator mutations are serialized through one asyncio.Lock.
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        source: Optional[BaseDataSource] = None,
        evaluator: Optional[AlertEvaluator] = None,
        hub: Optional[NotificationHub] = None,
        deduplicator: Optional[NotificationDeduplicator] = None,
        formatter: Optional[ReportFormatter] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings or get_settings()
        self._clock = clock or utc_now
        self.source = source or build_source(self.settings)
        if evaluator is None:
            storage = self.settings.storage
            data_dir = Path(storage.data_dir)
            evaluator = AlertEvaluator(
                AlertConfig.from_settings(self.settings.alerts),
                clock=self._clock,
                store=ThresholdStore(data_dir / storage.thresholds_file),
                level_store=LevelStore(data_dir / storage.levels_file),
            )
        self.evaluator = evaluator
        self.hub = hub if hub is not None else NotificationHub()
        self.deduplicator = deduplicator or NotificationDeduplicator(
            self.settings.alerts.notification_cooldown_seconds, clock=self._clock,
        )
        self.formatter = formatter or ReportFormatter()
        self.analyzer = TechnicalAnalyzer(self.settings.technical)

        self.lock = asyncio.Lock()
        self.previous_prices: Dict[str, float] = {}
        self._price_history: Dict[str, Deque[PricePoint]] = {}
        self.cycles = 0
        self.skipped_cycles = 0
        self.last_cycle_at: Optional[datetime] = None
        self.last_result: Optional[CycleResult] = None

    async def start(self) -> None:
        await self.source.connect()
        await self.hub.start()
        logger.info("monitor_started", source=self.source.source.value,
                    channels=self.hub.channel_names)

    async def close(self) -> None:
        await self.source.disconnect()
        await self.hub.close()
        logger.info("monitor_stopped", cycles=self.cycles)

    # ─── Cycle ───────────────────────────────────────────────────

    async def run_cycle(self, notify: bool = True) -> CycleResult:
        """
        One full pass. A FetchError skips the cycle and leaves cooldowns,
        history and thresholds untouched.
        """
        async with self.lock:
            result = CycleResult(started_at=self._clock())
            self.last_cycle_at = result.started_at

            try:
                snapshots = await self.source.fetch_snapshots()
            except FetchError as e:
                self.skipped_cycles += 1
                logger.warning("monitor_cycle_skipped", error=str(e))
                result.skipped = True
                result.error = str(e)
                self.last_result = result
                return result

            result.snapshots = snapshots
            previous = self.previous_prices if self.settings.monitor.volatility_base == "cycle" else None
            result.alerts = self.evaluator.evaluate_batch(snapshots, previous)
            for snap in snapshots:
                self.record_price(snap.symbol, snap.price, snap.timestamp or result.started_at)
                self.previous_prices[snap.symbol] = snap.price

            result.report = self.formatter.format_report(result.alerts, result.started_at)
            if notify:
                result.notified = self.deduplicator.filter(result.alerts)
                if result.notified:
                    text = self.formatter.format_notification(result.notified)
                    result.channel_results = await self.hub.dispatch(text)
                elif result.alerts:
                    logger.info("notifications_deduplicated", alerts=len(result.alerts))

            self.cycles += 1
            self.last_result = result
            logger.info("monitor_cycle_complete", snapshots=len(snapshots),
                        alerts=len(result.alerts), notified=len(result.notified))
            return result

    async def run_forever(self, stop_event: Optional[asyncio.Event] = None,
                          on_result: Optional[Callable[[CycleResult], None]] = None) -> None:
        """Run cycles on a fixed interval until stop_event is set."""
        stop_event = stop_event or asyncio.Event()
        interval = self.settings.monitor.interval_seconds
        logger.info("monitor_loop_started", interval_seconds=interval)

        while not stop_event.is_set():
            try:
                result = await self.run_cycle()
                if on_result is not None:
                    on_result(result)
            except Exception as e:
                logger.error("monitor_cycle_error", error=str(e), error_type=type(e).__name__)

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

        logger.info("monitor_loop_stopped")

    # ─── Price history & analysis ────────────────────────────────

    def record_price(self, symbol: str, price: float, timestamp: datetime) -> None:
        key = normalize_symbol(symbol)
        history = self._price_history.get(key)
        if history is None:
            history = deque(maxlen=self.settings.monitor.price_history_size)
            self._price_history[key] = history
        history.append(PricePoint(timestamp=timestamp, price=price))

    def price_history(self, symbol: str) -> List[PricePoint]:
        return list(self._price_history.get(normalize_symbol(symbol), ()))

    @property
    def tracked_symbols(self) -> List[str]:
        return list(self._price_history.keys())

    def predict(self, symbol: str) -> Dict[str, Any]:
        """Trend prediction summary over the recorded price history."""
        estimator = TrendEstimator(self.settings.prediction)
        summary = estimator.get_prediction_summary(self.price_history(symbol))
        summary["symbol"] = normalize_symbol(symbol)
        return summary

    def analyze(self, symbol: str) -> Dict[str, Any]:
        """Indicator report over the recorded closes."""
        if not self.analyzer.enabled:
            return {"enabled": False, "symbol": normalize_symbol(symbol)}
        prices = [p.price for p in self.price_history(symbol)]
        report = self.analyzer.get_analysis_report(prices).to_dict()
        report["symbol"] = normalize_symbol(symbol)
        report["data_points"] = len(prices)
        return report

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "cycles": self.cycles,
            "skipped_cycles": self.skipped_cycles,
            "last_cycle_at": self.last_cycle_at.isoformat() if self.last_cycle_at else None,
            "tracked_symbols": len(self._price_history),
            "alerts": self.evaluator.get_alert_stats(),
            "channels": self.hub.channel_names,
        }


# Singleton
_monitor: Optional[MarketMonitor] = None


def get_monitor() -> MarketMonitor:
    global _monitor
    if _monitor is None:
        _monitor = MarketMonitor()
    return _monitor
