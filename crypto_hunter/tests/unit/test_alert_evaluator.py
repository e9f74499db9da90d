"""
Crypto Hunter — Unit Tests for the Alert Evaluator
Checks, ordering, cooldowns, exclusions, thresholds, levels and history.
"""
import pytest

from crypto_hunter.alerts.evaluator import AlertConfig, AlertEvaluator
from crypto_hunter.alerts.models import AlertType, ConditionKind, Direction, LevelKind, Severity, TriggerCondition
from crypto_hunter.alerts.store import LevelStore, ThresholdStore
from crypto_hunter.config.settings import AlertSettings


class TestExclusions:
    @pytest.mark.parametrize("symbol", ["USDT", "USDC", "DAI", "BUSD", "TUSD", "USDD", "USDP"])
    def test_stablecoins_never_alert(self, evaluator, make_snapshot, symbol):
        snap = make_snapshot(symbol, price=1.5, change=50.0, volume=5e9, market_cap=1e9)
        assert evaluator.evaluate(snap) == []
        assert evaluator.get_alert_history() == []

    def test_excluded_category(self, evaluator, make_snapshot):
        snap = make_snapshot("FDUSD", price=1.0, change=40.0, category="Stablecoin")
        assert evaluator.evaluate(snap) == []

    def test_excluded_symbol_with_threshold(self, clock, make_snapshot):
        evaluator = AlertEvaluator(AlertConfig(), clock=clock)
        evaluator.set_threshold("USDT", 0.5)
        assert evaluator.evaluate(make_snapshot("USDT", price=1.0)) == []


class TestScenarios:
    def test_sol_example(self, evaluator, sol_snapshot):
        alerts = evaluator.evaluate(sol_snapshot)
        assert [a.type for a in alerts] == [AlertType.VOLATILITY, AlertType.VOLUME_SPIKE]
        assert alerts[0].severity == Severity.WARNING
        assert alerts[0].priority == "MEDIUM"
        assert alerts[1].value == pytest.approx(3.76e9 / 4.98e10)

    def test_sol_example_higher_volume_threshold(self, clock, sol_snapshot):
        evaluator = AlertEvaluator(AlertConfig(volume_ratio_threshold=0.1), clock=clock)
        alerts = evaluator.evaluate(sol_snapshot)
        assert [a.type for a in alerts] == [AlertType.VOLATILITY]

    def test_btc_crosses_threshold(self, btc_evaluator, make_snapshot):
        assert btc_evaluator.evaluate(make_snapshot("BTC", price=74000.0)) == []
        alerts = btc_evaluator.evaluate(make_snapshot("BTC", price=75500.0), previous_price=74000.0)
        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.type == AlertType.PRICE_ALERT
        assert alert.target == 75000
        assert alert.current == 75500
        assert alert.direction == Direction.ABOVE
        assert "broke above" in alert.message

    def test_check_order(self, btc_evaluator, make_snapshot):
        snap = make_snapshot("BTC", price=80000.0, change=35.0, volume=1e11, market_cap=1e12)
        alerts = btc_evaluator.evaluate(snap)
        assert [a.type for a in alerts] == [
            AlertType.PRICE_ALERT, AlertType.VOLATILITY, AlertType.GAINER, AlertType.VOLUME_SPIKE,
        ]
        assert btc_evaluator.get_alert_history()[:4] == alerts


class TestPriceCooldown:
    def test_fires_once_within_window(self, btc_evaluator, make_snapshot, clock):
        snap = make_snapshot("BTC", price=76000.0)
        start = clock()
        assert len(btc_evaluator.evaluate(snap)) == 1

        for seconds in (1, 60, 200, 299):
            clock.now = start
            clock.advance(seconds)
            assert btc_evaluator.evaluate(snap) == []

        clock.now = start
        clock.advance(300)
        alerts = btc_evaluator.evaluate(snap)
        assert [a.type for a in alerts] == [AlertType.PRICE_ALERT]

    def test_suppressed_trigger_keeps_stamp(self, btc_evaluator, make_snapshot, clock):
        snap = make_snapshot("BTC", price=76000.0)
        start = clock()
        btc_evaluator.evaluate(snap)
        clock.advance(250)
        assert btc_evaluator.evaluate(snap) == []
        assert btc_evaluator.cooldowns[("BTC", ConditionKind.PRICE_ABOVE)] == start

        clock.advance(60)
        assert len(btc_evaluator.evaluate(snap)) == 1

    def test_directions_cool_down_independently(self, btc_evaluator, make_snapshot):
        btc_evaluator.evaluate(make_snapshot("BTC", price=76000.0))
        btc_evaluator.set_threshold("BTC", 77000.0, Direction.BELOW)
        alerts = btc_evaluator.evaluate(make_snapshot("BTC", price=76500.0))
        assert [a.type for a in alerts] == [AlertType.PRICE_ALERT]
        assert alerts[0].direction == Direction.BELOW

    def test_reset_cooldowns(self, btc_evaluator, make_snapshot):
        snap = make_snapshot("BTC", price=76000.0)
        btc_evaluator.evaluate(snap)
        assert btc_evaluator.evaluate(snap) == []
        btc_evaluator.reset_cooldowns()
        assert btc_evaluator.cooldowns == {}
        assert len(btc_evaluator.evaluate(snap)) == 1

    def test_volatility_cooldown_when_configured(self, clock, make_snapshot):
        evaluator = AlertEvaluator(AlertConfig(volatility_cooldown_seconds=600), clock=clock)
        snap = make_snapshot("ETH", price=2000.0, change=-7.0)
        assert len(evaluator.evaluate(snap)) == 1
        clock.advance(300)
        assert evaluator.evaluate(snap) == []
        clock.advance(300)
        assert len(evaluator.evaluate(snap)) == 1


class TestChecks:
    def test_below_threshold(self, evaluator, make_snapshot):
        evaluator.set_threshold("eth", 2000.0, "below")
        alerts = evaluator.evaluate(make_snapshot("ETH", price=1990.0))
        assert alerts[0].type == AlertType.PRICE_ALERT
        assert "fell below" in alerts[0].message

    def test_threshold_edge_inclusive(self, evaluator, make_snapshot):
        evaluator.set_threshold("SOL", 100.0)
        assert len(evaluator.evaluate(make_snapshot("SOL", price=100.0))) == 1

    @pytest.mark.parametrize("change,expected", [
        (4.99, None), (5.0, Severity.WARNING), (-9.99, Severity.WARNING),
        (10.0, Severity.CRITICAL), (-12.0, Severity.CRITICAL),
    ])
    def test_volatility_levels(self, evaluator, make_snapshot, change, expected):
        alerts = [a for a in evaluator.evaluate(make_snapshot("ADA", price=1.0, change=change))
                  if a.type == AlertType.VOLATILITY]
        if expected is None:
            assert alerts == []
        else:
            assert alerts[0].severity == expected
            assert alerts[0].value == pytest.approx(abs(change))

    def test_volatility_uses_previous_price(self, evaluator, make_snapshot):
        alerts = evaluator.evaluate(make_snapshot("ADA", price=106.0, change=0.0), previous_price=100.0)
        assert alerts[0].type == AlertType.VOLATILITY
        assert alerts[0].change == pytest.approx(6.0)

    @pytest.mark.parametrize("previous", [0.0, float("nan"), None])
    def test_unusable_previous_price_falls_back(self, evaluator, make_snapshot, previous):
        alerts = evaluator.evaluate(make_snapshot("ADA", price=106.0, change=1.0), previous_price=previous)
        assert alerts == []

    def test_gainer_levels(self, evaluator, make_snapshot):
        medium = evaluator.evaluate(make_snapshot("PEPE", price=0.00001, change=20.0))
        high = evaluator.evaluate(make_snapshot("BONK", price=0.00002, change=35.0))
        gainers = [a for a in medium + high if a.type == AlertType.GAINER]
        assert [a.severity for a in gainers] == [Severity.WARNING, Severity.CRITICAL]
        assert [a.priority for a in gainers] == ["MEDIUM", "HIGH"]

    def test_below_gainer_threshold(self, evaluator, make_snapshot):
        alerts = evaluator.evaluate(make_snapshot("SOL", price=90.0, change=14.99))
        assert AlertType.GAINER not in [a.type for a in alerts]

    def test_volume_spike_requires_positive_change(self, evaluator, make_snapshot):
        snap = make_snapshot("DOGE", price=0.1, change=-1.0, volume=2e8, market_cap=1e9)
        assert evaluator.evaluate(snap) == []

    def test_zero_market_cap_no_spike(self, evaluator, make_snapshot):
        snap = make_snapshot("NEW", price=1.0, change=1.0, volume=5e6, market_cap=0.0)
        assert snap.volume_ratio == 0.0
        assert evaluator.evaluate(snap) == []


class TestInputs:
    def test_raw_mapping(self, evaluator):
        alerts = evaluator.evaluate({
            "symbol": "sol", "name": "Solana", "price": 100.0,
            "percent_change_24h": 13.63, "volume_24h": 3.76e9, "market_cap": 4.98e10,
        })
        assert [a.symbol for a in alerts] == ["SOL", "SOL"]

    @pytest.mark.parametrize("raw", [
        {"symbol": "BAD", "price": float("nan"), "market_cap": 1e9},
        {"symbol": "BAD", "market_cap": 1e9},
        {"symbol": "BAD", "price": 1.0},
        {"symbol": "BAD", "price": -5.0, "market_cap": 1e9},
        {"price": 1.0, "market_cap": 1e9},
    ])
    def test_malformed_snapshot_skipped(self, evaluator, raw):
        assert evaluator.evaluate(raw) == []

    def test_batch_preserves_order_and_skips_invalid(self, btc_evaluator, make_snapshot):
        batch = [
            make_snapshot("BTC", price=76000.0),
            {"symbol": "BAD", "price": None, "market_cap": 1.0},
            make_snapshot("ETH", price=2000.0, change=25.0),
        ]
        alerts = btc_evaluator.evaluate_batch(batch)
        assert [(a.symbol, a.type) for a in alerts] == [
            ("BTC", AlertType.PRICE_ALERT),
            ("ETH", AlertType.VOLATILITY),
            ("ETH", AlertType.GAINER),
        ]

    def test_batch_previous_prices(self, evaluator, make_snapshot):
        alerts = evaluator.evaluate_batch([make_snapshot("ADA", price=90.0)], {"ADA": 100.0})
        assert alerts[0].change == pytest.approx(-10.0)
        assert alerts[0].severity == Severity.CRITICAL

    def test_batch_skips_non_mapping_entries(self, evaluator, make_snapshot):
        alerts = evaluator.evaluate_batch([None, 42, "BTC", make_snapshot("ETH", change=25.0)])
        assert [(a.symbol, a.type) for a in alerts] == [
            ("ETH", AlertType.VOLATILITY),
            ("ETH", AlertType.GAINER),
        ]

    def test_batch_previous_price_keys_normalized(self, evaluator, make_snapshot):
        batch = [make_snapshot("ADA", price=90.0), {"symbol": " dot ", "price": 5.5, "market_cap": 1e9}]
        alerts = evaluator.evaluate_batch(batch, {" ada ": 100.0, "Dot": 5.0})
        assert [(a.symbol, a.change) for a in alerts] == [
            ("ADA", pytest.approx(-10.0)),
            ("DOT", pytest.approx(10.0)),
        ]


class TestHistory:
    def test_bounded_to_capacity(self, evaluator, make_snapshot, clock):
        for i in range(150):
            clock.advance(1)
            evaluator.evaluate(make_snapshot("ADA", price=1.0, change=6.0))
            assert len(evaluator.get_alert_history()) <= 100
        history = evaluator.get_alert_history()
        assert len(history) == 100
        assert history[0].timestamp == clock()
        assert history[0].timestamp > history[-1].timestamp

    def test_limit(self, evaluator, make_snapshot):
        for _ in range(5):
            evaluator.evaluate(make_snapshot("ADA", price=1.0, change=6.0))
        assert len(evaluator.get_alert_history(3)) == 3
        assert evaluator.get_alert_history(0) == []

    def test_stats(self, btc_evaluator, make_snapshot):
        btc_evaluator.evaluate(make_snapshot("BTC", price=80000.0, change=35.0))
        stats = btc_evaluator.get_alert_stats()
        assert stats["total"] == 3
        assert stats["by_type"]["GAINER"] == 1
        assert stats["by_severity"]["critical"] == 2
        assert stats["by_severity"]["warning"] == 1


class TestThresholds:
    def test_custom_overrides_default(self, btc_evaluator, make_snapshot):
        btc_evaluator.set_threshold("btc", 80000.0)
        assert btc_evaluator.get_threshold("BTC").target == 80000.0
        assert btc_evaluator.evaluate(make_snapshot("BTC", price=76000.0)) == []

    def test_delete_restores_default(self, btc_evaluator):
        btc_evaluator.set_threshold("BTC", 80000.0)
        assert btc_evaluator.delete_threshold("BTC") is True
        assert btc_evaluator.get_threshold("BTC").target == 75000
        assert btc_evaluator.delete_threshold("BTC") is False

    def test_unknown_symbol(self, evaluator):
        assert evaluator.get_threshold("XYZ") is None

    def test_invalid_target_rejected(self, evaluator):
        with pytest.raises(ValueError):
            evaluator.set_threshold("BTC", -1.0)

    def test_watched_symbols(self, btc_evaluator):
        btc_evaluator.set_threshold("ETH", 3000.0)
        assert btc_evaluator.get_watched_symbols() == ["ETH", "BTC"]

    def test_export_config(self, evaluator):
        evaluator.set_threshold("ETH", 3000.0, Direction.BELOW)
        exported = evaluator.export_config()
        assert exported["custom_thresholds"]["ETH"]["direction"] == "below"
        assert exported["volatility_thresholds"] == {"warning": 5.0, "critical": 10.0}

    def test_thresholds_persist(self, tmp_path, clock):
        store = ThresholdStore(tmp_path / "thresholds.json")
        AlertEvaluator(AlertConfig(), clock=clock, store=store).set_threshold("SOL", 150.0)

        reloaded = AlertEvaluator(AlertConfig(), clock=clock, store=store)
        threshold = reloaded.get_threshold("SOL")
        assert threshold.target == 150.0
        assert threshold.updated_at == clock()

    def test_from_settings(self):
        config = AlertConfig.from_settings(AlertSettings())
        assert set(config.default_thresholds) == {"BTC", "ETH", "SOL", "BNB", "HYPE"}
        assert config.default_thresholds["HYPE"].target == 35
        assert "USDT" in config.excluded_symbols
        assert config.price_cooldown_seconds == 300


class TestTouchThresholds:
    def test_touch_within_band(self, evaluator, make_snapshot):
        evaluator.set_threshold("ETH", 2000.0, condition="touch")
        alerts = evaluator.evaluate(make_snapshot("ETH", price=2001.5))
        assert [a.type for a in alerts] == [AlertType.PRICE_ALERT]
        assert "touched" in alerts[0].message
        assert ("ETH", ConditionKind.PRICE_TOUCH) in evaluator.cooldowns

    @pytest.mark.parametrize("price", [2003.0, 1997.0, 2100.0])
    def test_no_touch_outside_band(self, evaluator, make_snapshot, price):
        evaluator.set_threshold("ETH", 2000.0, Direction.ABOVE, TriggerCondition.TOUCH)
        assert evaluator.evaluate(make_snapshot("ETH", price=price)) == []

    def test_custom_tolerance(self, clock, make_snapshot):
        evaluator = AlertEvaluator(AlertConfig(touch_tolerance_pct=0.5), clock=clock)
        evaluator.set_threshold("ETH", 2000.0, condition=TriggerCondition.TOUCH)
        assert len(evaluator.evaluate(make_snapshot("ETH", price=2009.0))) == 1

    def test_condition_persisted(self, tmp_path, clock):
        store = ThresholdStore(tmp_path / "thresholds.json")
        AlertEvaluator(AlertConfig(), clock=clock, store=store).set_threshold("SOL", 150.0, condition="touch")
        reloaded = AlertEvaluator(AlertConfig(), clock=clock, store=store)
        assert reloaded.get_threshold("SOL").condition == TriggerCondition.TOUCH


class TestLevels:
    def test_near_resistance(self, evaluator, make_snapshot):
        evaluator.set_levels("btc", [60000.0, 70000.0])
        alerts = evaluator.evaluate(make_snapshot("BTC", price=70500.0))
        assert [a.type for a in alerts] == [AlertType.SUPPORT_RESISTANCE]
        alert = alerts[0]
        assert alert.target == 70000.0
        assert alert.level_kind == LevelKind.RESISTANCE
        assert alert.value == pytest.approx(500 / 70000 * 100)
        assert "resistance" in alert.message

    def test_below_level_reads_as_support(self, evaluator, make_snapshot):
        evaluator.set_levels("BTC", [70000.0])
        alerts = evaluator.evaluate(make_snapshot("BTC", price=69000.0))
        assert alerts[0].level_kind == LevelKind.SUPPORT

    def test_explicit_kind_kept(self, evaluator, make_snapshot):
        evaluator.set_levels("BTC", [70000.0], LevelKind.SUPPORT)
        alerts = evaluator.evaluate(make_snapshot("BTC", price=71000.0))
        assert alerts[0].level_kind == LevelKind.SUPPORT

    def test_nearest_level_chosen(self, evaluator, make_snapshot):
        evaluator.set_levels("BTC", [100.0, 101.0, 103.0])
        alerts = evaluator.evaluate(make_snapshot("BTC", price=101.2))
        assert alerts[0].target == 101.0

    def test_outside_tolerance(self, evaluator, make_snapshot):
        evaluator.set_levels("BTC", [60000.0, 70000.0])
        assert evaluator.evaluate(make_snapshot("BTC", price=65000.0)) == []

    def test_level_cooldown(self, evaluator, make_snapshot, clock):
        evaluator.set_levels("BTC", [70000.0])
        snap = make_snapshot("BTC", price=70100.0)
        assert len(evaluator.evaluate(snap)) == 1
        clock.advance(299)
        assert evaluator.evaluate(snap) == []
        clock.advance(2)
        assert len(evaluator.evaluate(snap)) == 1

    @pytest.mark.parametrize("levels", [[], [-1.0], [float("nan")], [0.0, 10.0]])
    def test_invalid_levels_rejected(self, evaluator, levels):
        with pytest.raises(ValueError):
            evaluator.set_levels("BTC", levels)

    def test_levels_sorted_and_deduplicated(self, evaluator):
        watch = evaluator.set_levels("BTC", [70000, 60000, 70000])
        assert watch.levels == [60000.0, 70000.0]

    def test_delete_levels(self, evaluator):
        evaluator.set_levels("BTC", [70000.0])
        assert evaluator.delete_levels("btc") is True
        assert evaluator.get_levels("BTC") is None
        assert evaluator.delete_levels("BTC") is False

    def test_levels_persist(self, tmp_path, clock):
        store = LevelStore(tmp_path / "levels.json")
        AlertEvaluator(AlertConfig(), clock=clock, level_store=store).set_levels("ETH", [3000.0], "resistance")

        reloaded = AlertEvaluator(AlertConfig(), clock=clock, level_store=store)
        watch = reloaded.get_levels("ETH")
        assert watch.levels == [3000.0]
        assert watch.kind == LevelKind.RESISTANCE
        assert set(reloaded.list_levels()) == {"ETH"}

    def test_exported(self, evaluator):
        evaluator.set_levels("ETH", [3000.0])
        assert evaluator.export_config()["levels"]["ETH"]["kind"] == "both"
