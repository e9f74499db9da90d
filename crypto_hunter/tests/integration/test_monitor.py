"""
Crypto Hunter — Integration Tests for the Monitor Cycle
Fetch → evaluate → format → dedup → notify with fixture data.
"""
import asyncio
from datetime import timedelta

import pytest
from unittest.mock import AsyncMock, MagicMock

from crypto_hunter.alerts.evaluator import AlertConfig, AlertEvaluator
from crypto_hunter.alerts.models import AlertType
from crypto_hunter.config.settings import (
    AppSettings, MonitorSettings, PredictionSettings, StorageSettings, TechnicalSettings,
)
from crypto_hunter.data.adapters.mock_adapter import MockSource
from crypto_hunter.errors import FetchError, NotificationChannelError
from crypto_hunter.monitor.service import MarketMonitor
from crypto_hunter.notifications.base import NotificationChannel
from crypto_hunter.notifications.hub import NotificationHub

SOL_ROW = {"symbol": "SOL", "name": "Solana", "price": 100.0, "percent_change_24h": 13.63,
           "volume_24h": 3.76e9, "market_cap": 4.98e10}
USDT_ROW = {"symbol": "USDT", "name": "Tether", "price": 1.0, "percent_change_24h": 12.0,
            "volume_24h": 9e10, "market_cap": 1e11}


def fake_hub(results=None):
    hub = MagicMock(spec=NotificationHub)
    hub.dispatch = AsyncMock(return_value=results if results is not None else {"fake": True})
    hub.start = AsyncMock()
    hub.close = AsyncMock()
    hub.channel_names = ["fake"]
    return hub


@pytest.fixture
def settings(tmp_path):
    return AppSettings(
        monitor=MonitorSettings(interval_seconds=0.01, data_source="mock"),
        storage=StorageSettings(data_dir=str(tmp_path)),
    )


@pytest.fixture
def monitor(settings, clock):
    return MarketMonitor(
        settings=settings,
        source=MockSource(rows=[SOL_ROW, USDT_ROW]),
        evaluator=AlertEvaluator(AlertConfig(), clock=clock),
        hub=fake_hub(),
        clock=clock,
    )


class TestRunCycle:
    @pytest.mark.asyncio
    async def test_cycle_produces_alerts_and_report(self, monitor):
        result = await monitor.run_cycle()
        assert not result.skipped
        assert len(result.snapshots) == 2
        assert [a.type for a in result.alerts] == [AlertType.VOLATILITY, AlertType.VOLUME_SPIKE]
        assert all(a.symbol == "SOL" for a in result.alerts)
        assert "Volume spikes: 1" in result.report
        assert result.channel_results == {"fake": True}

        text = monitor.hub.dispatch.await_args.args[0]
        assert "SOL" in text
        assert monitor.cycles == 1
        assert monitor.previous_prices == {"SOL": 100.0, "USDT": 1.0}

    @pytest.mark.asyncio
    async def test_second_cycle_deduplicated(self, monitor, clock):
        await monitor.run_cycle()
        clock.advance(60)
        result = await monitor.run_cycle()
        assert [a.type for a in result.alerts] == [AlertType.VOLATILITY, AlertType.VOLUME_SPIKE]
        assert result.notified == []
        assert monitor.hub.dispatch.await_count == 1

    @pytest.mark.asyncio
    async def test_volatility_persists_across_cycles(self, settings, clock):
        monitor = MarketMonitor(settings=settings, source=MockSource(),
                                evaluator=AlertEvaluator(AlertConfig(), clock=clock),
                                hub=fake_hub(), clock=clock)
        first = await monitor.run_cycle(notify=False)
        clock.advance(3600)
        second = await monitor.run_cycle(notify=False)

        def volatile(result):
            return {a.symbol for a in result.alerts if a.type == AlertType.VOLATILITY}

        assert volatile(second) == volatile(first)
        assert {"SOL", "BNB", "PEPE"} <= volatile(second)

    @pytest.mark.asyncio
    async def test_cycle_volatility_base(self, tmp_path, clock):
        settings = AppSettings(
            monitor=MonitorSettings(data_source="mock", volatility_base="cycle"),
            storage=StorageSettings(data_dir=str(tmp_path)),
        )
        source = MockSource(rows=[dict(SOL_ROW)])
        monitor = MarketMonitor(settings=settings, source=source,
                                evaluator=AlertEvaluator(AlertConfig(), clock=clock),
                                hub=fake_hub(), clock=clock)
        first = await monitor.run_cycle(notify=False)
        assert first.alerts[0].change == pytest.approx(13.63)

        clock.advance(60)
        assert [a.type for a in (await monitor.run_cycle(notify=False)).alerts] == [AlertType.VOLUME_SPIKE]

        source.rows[0]["price"] = 89.0
        clock.advance(60)
        third = await monitor.run_cycle(notify=False)
        assert third.alerts[0].type == AlertType.VOLATILITY
        assert third.alerts[0].change == pytest.approx(-11.0)

    @pytest.mark.asyncio
    async def test_notify_false_keeps_dedup_window(self, monitor):
        result = await monitor.run_cycle(notify=False)
        assert result.alerts and result.notified == []
        monitor.hub.dispatch.assert_not_awaited()

        result = await monitor.run_cycle()
        assert len(result.notified) == 2

    @pytest.mark.asyncio
    async def test_fetch_error_skips_cycle(self, settings, clock):
        source = MockSource(rows=[SOL_ROW])
        evaluator = AlertEvaluator(AlertConfig(), clock=clock)
        monitor = MarketMonitor(settings=settings, source=source, evaluator=evaluator,
                                hub=fake_hub(), clock=clock)
        evaluator.set_threshold("SOL", 90.0)
        await monitor.run_cycle()

        cooldowns = evaluator.cooldowns
        history = evaluator.get_alert_history()
        thresholds = evaluator.list_thresholds()
        previous = dict(monitor.previous_prices)
        assert cooldowns and history

        clock.advance(600)
        source.fetch_snapshots = AsyncMock(side_effect=FetchError("HTTP 429"))
        result = await monitor.run_cycle()
        assert result.skipped
        assert result.error == "HTTP 429"
        assert monitor.skipped_cycles == 1
        assert monitor.cycles == 1
        assert evaluator.cooldowns == cooldowns
        assert evaluator.get_alert_history() == history
        assert evaluator.list_thresholds() == thresholds
        assert monitor.previous_prices == previous
        assert monitor.hub.dispatch.await_count == 1

    @pytest.mark.asyncio
    async def test_failing_channel_does_not_fail_cycle(self, settings, clock):
        bad = MagicMock(spec=NotificationChannel)
        bad.name = "bad"
        bad.send = AsyncMock(side_effect=NotificationChannelError("bad", "HTTP 500"))
        monitor = MarketMonitor(settings=settings, source=MockSource(rows=[SOL_ROW]),
                                evaluator=AlertEvaluator(AlertConfig(), clock=clock),
                                hub=NotificationHub([bad]), clock=clock)

        result = await monitor.run_cycle()
        assert not result.skipped
        assert result.channel_results == {"bad": False}
        assert len(result.alerts) == 2

    @pytest.mark.asyncio
    async def test_default_evaluator_uses_settings_thresholds(self, settings, clock):
        monitor = MarketMonitor(settings=settings, source=MockSource(rows=[SOL_ROW]),
                                hub=fake_hub(), clock=clock)
        result = await monitor.run_cycle(notify=False)
        assert result.alerts[0].type == AlertType.PRICE_ALERT
        assert result.alerts[0].target == 100.0

    @pytest.mark.asyncio
    async def test_fixture_source_cycle(self, settings, clock):
        monitor = MarketMonitor(settings=settings, source=MockSource(seed=7),
                                evaluator=AlertEvaluator(AlertConfig(), clock=clock),
                                hub=fake_hub(), clock=clock)
        result = await monitor.run_cycle(notify=False)
        assert len(result.snapshots) == 10
        assert any(a.type == AlertType.GAINER for a in result.alerts)


class TestRunForever:
    @pytest.mark.asyncio
    async def test_stops_on_event(self, monitor):
        stop = asyncio.Event()
        results = []

        def on_result(result):
            results.append(result)
            stop.set()

        await asyncio.wait_for(monitor.run_forever(stop, on_result=on_result), timeout=5)
        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_cycle_errors_do_not_stop_loop(self, monitor):
        stop = asyncio.Event()
        calls = []

        async def flaky(notify=True):
            calls.append(notify)
            if len(calls) == 1:
                raise RuntimeError("boom")
            stop.set()

        monitor.run_cycle = flaky
        await asyncio.wait_for(monitor.run_forever(stop), timeout=5)
        assert len(calls) == 2


class TestHistoryAnalysis:
    def test_predict_and_analyze(self, monitor, clock):
        for h in range(30):
            monitor.record_price("sol", 80.0 + h, clock.now + timedelta(hours=h))

        assert monitor.tracked_symbols == ["SOL"]
        summary = monitor.predict("SOL")
        assert summary["symbol"] == "SOL"
        assert summary["signal"]["signal"] == "BUY"
        assert "24h" in summary["predictions"]

        report = monitor.analyze("sol")
        assert report["data_points"] == 30
        assert report["symbol"] == "SOL"

    def test_unknown_symbol_insufficient(self, monitor):
        summary = monitor.predict("XYZ")
        assert summary["predictions"] == {}
        assert monitor.analyze("XYZ")["data_points"] == 0

    def test_stats(self, monitor):
        stats = monitor.stats
        assert stats["cycles"] == 0
        assert stats["channels"] == ["fake"]
        assert stats["alerts"]["total"] == 0

    def test_disabled_analysis_and_prediction(self, tmp_path, clock):
        settings = AppSettings(
            storage=StorageSettings(data_dir=str(tmp_path)),
            technical=TechnicalSettings(enabled=False),
            prediction=PredictionSettings(enabled=False),
        )
        monitor = MarketMonitor(settings=settings, source=MockSource(rows=[SOL_ROW]),
                                evaluator=AlertEvaluator(AlertConfig(), clock=clock),
                                hub=fake_hub(), clock=clock)
        for h in range(30):
            monitor.record_price("SOL", 80.0 + h, clock.now + timedelta(hours=h))

        assert monitor.analyze("SOL") == {"enabled": False, "symbol": "SOL"}
        assert monitor.predict("SOL") == {"enabled": False, "predictions": {}, "symbol": "SOL"}
