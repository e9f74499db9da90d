"""
Crypto Hunter — Alert Evaluator

Turns coin snapshots into typed, leveled alerts:
- Price threshold crossings or touches (custom thresholds override defaults)
- Volatility levels (warning / critical)
- 24h gainers
- Volume spikes relative to market cap
- Proximity to watched support / resistance levels

Owns the per-(symbol, condition) cooldown table, the custom thresholds,
the watched levels and a bounded newest-first alert history.
"""
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Deque, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from crypto_hunter.alerts.models import (
    Alert, AlertType, ConditionKind, Direction, LevelKind, LevelWatch, Severity, Threshold,
    TriggerCondition,
)
from crypto_hunter.alerts.store import LevelStore, ThresholdStore
from crypto_hunter.config.settings import AlertSettings, get_settings
from crypto_hunter.data.models import CoinSnapshot
from crypto_hunter.errors import InvalidSnapshotError
from crypto_hunter.utils.helpers import (
    format_pct, format_price, is_finite_number, normalize_symbol, pct_change, utc_now,
)
from crypto_hunter.utils.logger import get_logger

logger = get_logger("alert_evaluator")

Clock = Callable[[], datetime]
SnapshotInput = Union[CoinSnapshot, Mapping[str, Any]]

STABLECOINS = ("USDT", "USDC", "DAI", "BUSD", "TUSD", "USDD", "USDP")


@dataclass
class AlertConfig:
    """Thresholds, tolerances and windows for the alert checks."""
    min_gainer_pct: float = 15.0
    high_gainer_pct: float = 30.0
    # volume_24h / market_cap as a plain ratio (0.05 == volume is 5% of cap)
    volume_ratio_threshold: float = 0.05
    volatility_warning_pct: float = 5.0
    volatility_critical_pct: float = 10.0
    price_cooldown_seconds: float = 300.0
    volatility_cooldown_seconds: float = 0.0
    history_size: int = 100
    touch_tolerance_pct: float = 0.1
    level_tolerance_pct: float = 2.0
    excluded_symbols: Set[str] = field(default_factory=lambda: set(STABLECOINS))
    excluded_categories: Set[str] = field(default_factory=lambda: {"stablecoin"})
    default_thresholds: Dict[str, Threshold] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Optional[AlertSettings] = None) -> "AlertConfig":
        s = settings or get_settings().alerts
        return cls(
            min_gainer_pct=s.min_gainer_pct,
            high_gainer_pct=s.high_gainer_pct,
            volume_ratio_threshold=s.volume_ratio_threshold,
            volatility_warning_pct=s.volatility_warning_pct,
            volatility_critical_pct=s.volatility_critical_pct,
            price_cooldown_seconds=s.price_cooldown_seconds,
            volatility_cooldown_seconds=s.volatility_cooldown_seconds,
            history_size=s.history_size,
            touch_tolerance_pct=s.touch_tolerance_pct,
            level_tolerance_pct=s.level_tolerance_pct,
            excluded_symbols={sym.upper() for sym in s.excluded_symbols},
            excluded_categories={c.lower() for c in s.excluded_categories},
            default_thresholds={
                sym.upper(): Threshold(symbol=sym, target=t.target, direction=Direction(t.direction))
                for sym, t in s.default_thresholds.items()
            },
        )


def _symbol_of(snapshot: Any) -> Optional[str]:
    if isinstance(snapshot, CoinSnapshot):
        return normalize_symbol(snapshot.symbol)
    if isinstance(snapshot, Mapping) and isinstance(snapshot.get("symbol"), str):
        return normalize_symbol(snapshot["symbol"])
    return None


class AlertEvaluator:
    """
    Stateful alert evaluation core.

    Not safe for concurrent callers: serialize evaluate() and the threshold
    setters behind a single writer (the monitor loop or an asyncio.Lock).
    """

    def __init__(
        self,
        config: Optional[AlertConfig] = None,
        clock: Optional[Clock] = None,
        store: Optional[ThresholdStore] = None,
        level_store: Optional[LevelStore] = None,
    ):
        self.config = config or AlertConfig()
        self._clock: Clock = clock or utc_now
        self._store = store
        self._custom: Dict[str, Threshold] = store.load() if store else {}
        self._level_store = level_store
        self._levels: Dict[str, LevelWatch] = level_store.load() if level_store else {}
        self._cooldowns: Dict[Tuple[str, ConditionKind], datetime] = {}
        self._history: Deque[Alert] = deque(maxlen=self.config.history_size)

    # ─── Evaluation ──────────────────────────────────────────────

    def is_excluded(self, snapshot: CoinSnapshot) -> bool:
        if snapshot.symbol in self.config.excluded_symbols:
            return True
        return bool(snapshot.category) and snapshot.category.lower() in self.config.excluded_categories

    def evaluate(self, snapshot: SnapshotInput, previous_price: Optional[float] = None) -> List[Alert]:
        """
        Run the price, volatility, gainer, volume and level checks for one snapshot.
        Malformed snapshots are logged and produce no alerts.
        """
        try:
            snap = snapshot if isinstance(snapshot, CoinSnapshot) else CoinSnapshot.from_raw(snapshot)
        except InvalidSnapshotError as e:
            logger.warning("snapshot_skipped", symbol=e.symbol, error=str(e))
            return []

        if self.is_excluded(snap):
            return []

        now = self._clock()
        checks = (
            self._check_price(snap, now),
            self._check_volatility(snap, previous_price, now),
            self._check_gainer(snap, now),
            self._check_volume(snap, now),
            self._check_levels(snap, now),
        )
        alerts = [alert for alert in checks if alert is not None]

        if alerts:
            self._history.extendleft(reversed(alerts))
            logger.debug("alerts_emitted", symbol=snap.symbol,
                         types=[a.type.value for a in alerts])
        return alerts

    def evaluate_batch(
        self,
        snapshots: Iterable[SnapshotInput],
        previous_prices: Optional[Mapping[str, float]] = None,
    ) -> List[Alert]:
        """
        Evaluate snapshots in input order and concatenate their alerts.
        previous_prices switches volatility to the change since those prices;
        entries that are not snapshots or mappings are skipped by evaluate().
        """
        previous = {normalize_symbol(s): p for s, p in (previous_prices or {}).items()}
        alerts: List[Alert] = []
        for snapshot in snapshots:
            alerts.extend(self.evaluate(snapshot, previous.get(_symbol_of(snapshot))))
        return alerts

    def _fire(self, key: Tuple[str, ConditionKind], window_seconds: float, now: datetime) -> bool:
        """Stamp the cooldown and return True, unless the key is still cooling down."""
        last = self._cooldowns.get(key)
        if last is not None and now - last < timedelta(seconds=window_seconds):
            logger.debug("alert_cooldown_active", symbol=key[0], condition=key[1].value)
            return False
        self._cooldowns[key] = now
        return True

    def _check_price(self, snap: CoinSnapshot, now: datetime) -> Optional[Alert]:
        threshold = self.get_threshold(snap.symbol)
        if threshold is None or not threshold.is_triggered(snap.price, self.config.touch_tolerance_pct):
            return None

        key = (snap.symbol, ConditionKind.for_threshold(threshold))
        if not self._fire(key, self.config.price_cooldown_seconds, now):
            return None

        if threshold.condition == TriggerCondition.TOUCH:
            verb = "touched"
        elif threshold.direction == Direction.ABOVE:
            verb = "broke above"
        else:
            verb = "fell below"
        return Alert(
            type=AlertType.PRICE_ALERT,
            severity=Severity.WARNING,
            symbol=snap.symbol,
            name=snap.name,
            message=f"💰 {snap.symbol} {verb} {format_price(threshold.target)} (now {format_price(snap.price)})",
            timestamp=now,
            current=snap.price,
            target=threshold.target,
            direction=threshold.direction,
        )

    def volatility_level(self, volatility: float) -> Severity:
        if volatility >= self.config.volatility_critical_pct:
            return Severity.CRITICAL
        if volatility >= self.config.volatility_warning_pct:
            return Severity.WARNING
        return Severity.NORMAL

    def _check_volatility(self, snap: CoinSnapshot, previous_price: Optional[float],
                          now: datetime) -> Optional[Alert]:
        if is_finite_number(previous_price) and previous_price > 0:
            change = pct_change(previous_price, snap.price)
        else:
            change = snap.percent_change_24h
        volatility = abs(change)

        level = self.volatility_level(volatility)
        if level == Severity.NORMAL:
            return None

        key = (snap.symbol, ConditionKind.VOLATILITY)
        if not self._fire(key, self.config.volatility_cooldown_seconds, now):
            return None

        emoji, label = ("🚨", "critical") if level == Severity.CRITICAL else ("⚠️", "warning")
        return Alert(
            type=AlertType.VOLATILITY,
            severity=level,
            symbol=snap.symbol,
            name=snap.name,
            message=f"{emoji} {snap.symbol} volatility {label}: {format_pct(change)}",
            timestamp=now,
            current=snap.price,
            change=change,
            value=volatility,
        )

    def _check_gainer(self, snap: CoinSnapshot, now: datetime) -> Optional[Alert]:
        change = snap.percent_change_24h
        if change < self.config.min_gainer_pct:
            return None

        severity = Severity.CRITICAL if change >= self.config.high_gainer_pct else Severity.WARNING
        return Alert(
            type=AlertType.GAINER,
            severity=severity,
            symbol=snap.symbol,
            name=snap.name,
            message=f"🚀 {snap.symbol} ({snap.name}) 24h {format_pct(change)} 📈",
            timestamp=now,
            current=snap.price,
            change=change,
            value=change,
        )

    def _check_volume(self, snap: CoinSnapshot, now: datetime) -> Optional[Alert]:
        ratio = snap.volume_ratio
        if ratio < self.config.volume_ratio_threshold or snap.percent_change_24h <= 0:
            return None

        return Alert(
            type=AlertType.VOLUME_SPIKE,
            severity=Severity.WARNING,
            symbol=snap.symbol,
            name=snap.name,
            message=f"📊 {snap.symbol} volume spike: {ratio * 100:.0f}% of market cap",
            timestamp=now,
            current=snap.price,
            change=snap.percent_change_24h,
            value=ratio,
        )

    def _check_levels(self, snap: CoinSnapshot, now: datetime) -> Optional[Alert]:
        watch = self._levels.get(snap.symbol)
        if watch is None or not watch.enabled:
            return None
        level = watch.nearest(snap.price, self.config.level_tolerance_pct)
        if level is None:
            return None

        key = (snap.symbol, ConditionKind.LEVEL)
        if not self._fire(key, self.config.price_cooldown_seconds, now):
            return None

        kind = watch.classify(snap.price, level)
        distance = abs(pct_change(level, snap.price))
        return Alert(
            type=AlertType.SUPPORT_RESISTANCE,
            severity=Severity.WARNING,
            symbol=snap.symbol,
            name=snap.name,
            message=f"🧱 {snap.symbol} near {kind.value} {format_price(level)} (now {format_price(snap.price)})",
            timestamp=now,
            current=snap.price,
            target=level,
            value=distance,
            level_kind=kind,
        )

    # ─── Thresholds ──────────────────────────────────────────────

    def set_threshold(self, symbol: str, target: float,
                      direction: Union[Direction, str] = Direction.ABOVE,
                      condition: Union[TriggerCondition, str] = TriggerCondition.CROSS) -> Threshold:
        """Add or replace the custom threshold for a symbol."""
        threshold = Threshold(
            symbol=normalize_symbol(symbol),
            target=float(target),
            direction=Direction(direction),
            condition=TriggerCondition(condition),
            enabled=True,
            updated_at=self._clock(),
        )
        self._custom[threshold.symbol] = threshold
        self._persist()
        logger.info("threshold_set", symbol=threshold.symbol, target=threshold.target,
                    direction=threshold.direction.value, condition=threshold.condition.value)
        return threshold

    def delete_threshold(self, symbol: str) -> bool:
        """Remove a custom threshold. Defaults for the symbol apply again."""
        removed = self._custom.pop(normalize_symbol(symbol), None) is not None
        if removed:
            self._persist()
            logger.info("threshold_deleted", symbol=normalize_symbol(symbol))
        return removed

    def get_threshold(self, symbol: str) -> Optional[Threshold]:
        """Effective threshold: an enabled custom one, else the default, else None."""
        key = normalize_symbol(symbol)
        custom = self._custom.get(key)
        if custom is not None and custom.enabled:
            return custom
        return self.config.default_thresholds.get(key)

    def get_watched_symbols(self) -> List[str]:
        custom = [s for s, t in self._custom.items() if t.enabled]
        return list(dict.fromkeys(custom + list(self.config.default_thresholds)))

    def list_thresholds(self) -> Dict[str, Threshold]:
        return {s: self.get_threshold(s) for s in self.get_watched_symbols()}

    def _persist(self) -> None:
        if self._store is not None:
            self._store.save(self._custom)

    # ─── Support / resistance levels ─────────────────────────────

    def set_levels(self, symbol: str, levels: Iterable[float],
                   kind: Union[LevelKind, str] = LevelKind.BOTH) -> LevelWatch:
        """Replace the watched levels for a symbol."""
        watch = LevelWatch(
            symbol=normalize_symbol(symbol),
            levels=[float(level) for level in levels],
            kind=LevelKind(kind),
            enabled=True,
            updated_at=self._clock(),
        )
        self._levels[watch.symbol] = watch
        self._persist_levels()
        logger.info("levels_set", symbol=watch.symbol, levels=watch.levels, kind=watch.kind.value)
        return watch

    def delete_levels(self, symbol: str) -> bool:
        removed = self._levels.pop(normalize_symbol(symbol), None) is not None
        if removed:
            self._persist_levels()
            logger.info("levels_deleted", symbol=normalize_symbol(symbol))
        return removed

    def get_levels(self, symbol: str) -> Optional[LevelWatch]:
        return self._levels.get(normalize_symbol(symbol))

    def list_levels(self) -> Dict[str, LevelWatch]:
        return dict(self._levels)

    def _persist_levels(self) -> None:
        if self._level_store is not None:
            self._level_store.save(self._levels)

    # ─── Cooldowns & history ─────────────────────────────────────

    def reset_cooldowns(self) -> None:
        self._cooldowns.clear()
        logger.info("cooldowns_reset")

    @property
    def cooldowns(self) -> Dict[Tuple[str, ConditionKind], datetime]:
        return dict(self._cooldowns)

    def get_alert_history(self, limit: Optional[int] = None) -> List[Alert]:
        """Most recent alerts first."""
        history = list(self._history)
        return history if limit is None else history[:max(limit, 0)]

    def get_alert_stats(self) -> Dict[str, Any]:
        cutoff = self._clock() - timedelta(hours=24)
        recent = [a for a in self._history if a.timestamp >= cutoff]
        return {
            "total": len(self._history),
            "last_24h": len(recent),
            "by_severity": {s.value: sum(1 for a in recent if a.severity == s)
                            for s in (Severity.WARNING, Severity.CRITICAL)},
            "by_type": {t.value: sum(1 for a in recent if a.type == t) for t in AlertType},
        }

    def export_config(self) -> Dict[str, Any]:
        return {
            "custom_thresholds": {s: t.to_record() for s, t in self._custom.items()},
            "volatility_thresholds": {
                "warning": self.config.volatility_warning_pct,
                "critical": self.config.volatility_critical_pct,
            },
            "watched_symbols": self.get_watched_symbols(),
            "levels": {s: w.to_record() for s, w in self._levels.items()},
        }
