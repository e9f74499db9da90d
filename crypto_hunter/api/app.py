"""
Crypto Hunter — FastAPI Application
Health, metrics, alert history, threshold and level management, on-demand
scans, exchange price aggregation, analysis/prediction and the portfolio
ledgers.
"""
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from crypto_hunter.alerts.models import Direction, LevelKind, TriggerCondition
from crypto_hunter.config.settings import get_settings
from crypto_hunter.data.adapters.aggregator import get_price_aggregator
from crypto_hunter.data.models import OHLC, PricePoint
from crypto_hunter.errors import (
    CryptoHunterError, FetchError, InsufficientDataError, InvalidSnapshotError,
    LedgerError, ModelNotFittedError,
)
from crypto_hunter.indicators.registry import get_technical_analyzer
from crypto_hunter.indicators.structural import calculate_pivot_points
from crypto_hunter.monitor.service import get_monitor
from crypto_hunter.portfolio.ledger import get_portfolio_ledger
from crypto_hunter.portfolio.paper_trading import get_paper_account
from crypto_hunter.prediction.trend_estimator import TrendEstimator
from crypto_hunter.utils.helpers import normalize_symbol, utc_timestamp
from crypto_hunter.utils.logger import get_logger, setup_logging

logger = get_logger("api")

# Application state
app_state: Dict[str, Any] = {
    "instance_id": str(uuid.uuid4())[:8],
    "started_at": None,
    "scans": 0,
    "last_scan_time": None,
    "errors": 0,
}

ERROR_STATUS = {
    LedgerError: 400,
    InvalidSnapshotError: 422,
    InsufficientDataError: 422,
    ModelNotFittedError: 409,
    FetchError: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown."""
    setup_logging()
    settings = get_settings()
    app_state["started_at"] = utc_timestamp()

    logger.info("crypto_hunter_starting", version=settings.version,
                instance=app_state["instance_id"])

    monitor = get_monitor()
    await monitor.start()
    logger.info("crypto_hunter_ready")

    yield

    logger.info("crypto_hunter_shutting_down")
    await monitor.close()
    await get_price_aggregator().disconnect()


app = FastAPI(
    title="Crypto Hunter",
    description="Crypto market movement monitor",
    version=get_settings().version,
    lifespan=lifespan,
)


@app.exception_handler(CryptoHunterError)
async def crypto_hunter_error_handler(request: Request, exc: CryptoHunterError):
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400)
    app_state["errors"] += 1
    logger.warning("request_failed", path=request.url.path, error=str(exc),
                   error_type=type(exc).__name__, status=status)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


# ─── Health & Metrics ───────────────────────────────────────────

@app.get("/healthz", tags=["System"])
async def health_check():
    """Fast health check endpoint."""
    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "instance": app_state["instance_id"],
            "uptime_since": app_state["started_at"],
            "timestamp": utc_timestamp(),
        },
    )


@app.get("/metrics", tags=["System"])
async def metrics():
    settings = get_settings()
    monitor = get_monitor()
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.version,
            "instance_id": app_state["instance_id"],
            "started_at": app_state["started_at"],
        },
        "scans": {
            "total": app_state["scans"],
            "last_scan_time": app_state["last_scan_time"],
            "errors": app_state["errors"],
        },
        "monitor": monitor.stats,
        "components": {
            "indicators_registered": get_technical_analyzer().count,
            "watched_symbols": monitor.evaluator.get_watched_symbols(),
        },
        "timestamp": utc_timestamp(),
    }


# ─── Alerts & Thresholds ────────────────────────────────────────

class ThresholdRequest(BaseModel):
    target: float = Field(..., gt=0, allow_inf_nan=False)
    direction: Direction = Direction.ABOVE
    condition: TriggerCondition = TriggerCondition.CROSS


@app.get("/api/v1/alerts", tags=["Alerts"])
async def alert_history(limit: int = Query(default=50, ge=0, le=100)):
    """Most recent alerts first."""
    alerts = get_monitor().evaluator.get_alert_history(limit)
    return {"alerts": [a.to_dict() for a in alerts], "count": len(alerts)}


@app.get("/api/v1/alerts/stats", tags=["Alerts"])
async def alert_stats():
    return get_monitor().evaluator.get_alert_stats()


@app.get("/api/v1/thresholds", tags=["Alerts"])
async def list_thresholds():
    evaluator = get_monitor().evaluator
    return {
        "thresholds": {s: t.to_record() for s, t in evaluator.list_thresholds().items()},
        "config": evaluator.export_config(),
    }


@app.get("/api/v1/thresholds/{symbol}", tags=["Alerts"])
async def get_threshold(symbol: str):
    threshold = get_monitor().evaluator.get_threshold(symbol)
    if threshold is None:
        raise HTTPException(status_code=404, detail=f"No threshold for {normalize_symbol(symbol)}")
    return threshold.to_record()


@app.put("/api/v1/thresholds/{symbol}", tags=["Alerts"])
async def set_threshold(symbol: str, request: ThresholdRequest):
    monitor = get_monitor()
    async with monitor.lock:
        threshold = monitor.evaluator.set_threshold(symbol, request.target, request.direction,
                                                    request.condition)
    return threshold.to_record()


@app.delete("/api/v1/thresholds/{symbol}", tags=["Alerts"])
async def delete_threshold(symbol: str):
    monitor = get_monitor()
    async with monitor.lock:
        removed = monitor.evaluator.delete_threshold(symbol)
    if not removed:
        raise HTTPException(status_code=404, detail=f"No custom threshold for {normalize_symbol(symbol)}")
    return {"status": "deleted", "symbol": normalize_symbol(symbol)}


class LevelsRequest(BaseModel):
    levels: Optional[List[float]] = None
    ohlc: Optional[OHLC] = None
    kind: LevelKind = LevelKind.BOTH


@app.get("/api/v1/levels", tags=["Alerts"])
async def list_levels():
    return {"levels": {s: w.to_record() for s, w in get_monitor().evaluator.list_levels().items()}}


@app.get("/api/v1/levels/{symbol}", tags=["Alerts"])
async def get_levels(symbol: str):
    watch = get_monitor().evaluator.get_levels(symbol)
    if watch is None:
        raise HTTPException(status_code=404, detail=f"No levels for {normalize_symbol(symbol)}")
    return watch.to_record()


@app.put("/api/v1/levels/{symbol}", tags=["Alerts"])
async def set_levels(symbol: str, request: LevelsRequest):
    """Watch explicit levels, or the pivot levels of a prior OHLC bar."""
    if request.levels:
        levels = request.levels
    elif request.ohlc is not None:
        pivots = calculate_pivot_points(request.ohlc.high, request.ohlc.low, request.ohlc.close)
        levels = [pivots.s3, pivots.s2, pivots.s1, pivots.pivot, pivots.r1, pivots.r2, pivots.r3]
        levels = [level for level in levels if level > 0]
    else:
        raise HTTPException(status_code=422, detail="Provide levels or ohlc")

    monitor = get_monitor()
    try:
        async with monitor.lock:
            watch = monitor.evaluator.set_levels(symbol, levels, request.kind)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return watch.to_record()


@app.delete("/api/v1/levels/{symbol}", tags=["Alerts"])
async def delete_levels(symbol: str):
    monitor = get_monitor()
    async with monitor.lock:
        removed = monitor.evaluator.delete_levels(symbol)
    if not removed:
        raise HTTPException(status_code=404, detail=f"No levels for {normalize_symbol(symbol)}")
    return {"status": "deleted", "symbol": normalize_symbol(symbol)}


@app.post("/api/v1/cooldowns/reset", tags=["Alerts"])
async def reset_cooldowns():
    monitor = get_monitor()
    async with monitor.lock:
        monitor.evaluator.reset_cooldowns()
    return {"status": "cooldowns_reset", "timestamp": utc_timestamp()}


class ScanRequest(BaseModel):
    notify: bool = True


@app.post("/api/v1/scan", tags=["Alerts"])
async def scan(request: Optional[ScanRequest] = None):
    """Run one monitor cycle now."""
    request = request or ScanRequest()
    result = await get_monitor().run_cycle(notify=request.notify)
    app_state["scans"] += 1
    app_state["last_scan_time"] = utc_timestamp()
    if result.skipped:
        app_state["errors"] += 1
    return result.to_dict()


# ─── Exchange Prices ────────────────────────────────────────────

@app.get("/api/v1/prices", tags=["Prices"])
async def prices(symbols: str = Query(default="BTC,ETH,SOL")):
    """Binance and CoinGecko prices averaged per symbol."""
    requested = [s for s in symbols.split(",") if s.strip()]
    aggregated = await get_price_aggregator().aggregate_prices(requested)
    return {"success": True, "data": {s: p.to_dict() for s, p in aggregated.items()}}


@app.get("/api/v1/prices/top", tags=["Prices"])
async def top_prices():
    top = await get_price_aggregator().get_top_coins()
    return {"success": True, "data": [p.to_dict() for p in top]}


# ─── Analysis & Prediction ──────────────────────────────────────

class AnalysisRequest(BaseModel):
    symbol: Optional[str] = None
    prices: Optional[List[float]] = None
    ohlc: Optional[OHLC] = None
    timeframes: Optional[Dict[str, List[float]]] = None


class PricePointIn(BaseModel):
    timestamp: datetime
    price: float = Field(..., allow_inf_nan=False)


class PredictionRequest(BaseModel):
    symbol: Optional[str] = None
    series: Optional[List[PricePointIn]] = None
    horizon_hours: Optional[float] = Field(default=None, gt=0)


@app.post("/api/v1/analysis", tags=["Analysis"])
async def analysis(request: AnalysisRequest):
    """Indicator report over supplied closes, or over a tracked symbol's history."""
    analyzer = get_technical_analyzer()
    if not analyzer.enabled:
        return {"enabled": False}
    if request.timeframes:
        return analyzer.analyze_multiple_timeframes(request.timeframes)
    if request.prices is not None:
        return analyzer.get_analysis_report(request.prices, request.ohlc).to_dict()
    if request.symbol:
        return get_monitor().analyze(request.symbol)
    raise HTTPException(status_code=422, detail="Provide prices, timeframes or symbol")


@app.post("/api/v1/prediction", tags=["Analysis"])
async def prediction(request: PredictionRequest):
    """Trend prediction summary, plus a single-horizon forecast when requested."""
    if request.series is not None:
        series = [PricePoint(timestamp=p.timestamp, price=p.price) for p in request.series]
        estimator = TrendEstimator()
        summary = estimator.get_prediction_summary(series)
        if request.horizon_hours is not None and estimator.is_fitted:
            summary["forecast"] = estimator.predict(request.horizon_hours).to_dict()
        return summary
    if request.symbol:
        return get_monitor().predict(request.symbol)
    raise HTTPException(status_code=422, detail="Provide series or symbol")


# ─── Portfolio & Paper Trading ──────────────────────────────────

class TradeRequest(BaseModel):
    action: Literal["buy", "sell"]
    symbol: str
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    price: float = Field(..., gt=0, allow_inf_nan=False)
    exchange: str = "Binance"


@app.get("/api/v1/portfolio", tags=["Portfolio"])
async def portfolio():
    return get_portfolio_ledger().get_portfolio_value(get_monitor().previous_prices)


@app.post("/api/v1/portfolio", tags=["Portfolio"])
async def portfolio_trade(request: TradeRequest):
    ledger = get_portfolio_ledger()
    if request.action == "buy":
        ledger.add_holding(request.symbol, request.amount, request.price, request.exchange)
    else:
        ledger.sell_holding(request.symbol, request.amount, request.price, request.exchange)
    return {"success": True, "portfolio": ledger.get_portfolio_value(get_monitor().previous_prices)}


@app.get("/api/v1/portfolio/history", tags=["Portfolio"])
async def portfolio_history(limit: int = Query(default=50, ge=0)):
    return {"transactions": get_portfolio_ledger().get_transaction_history(limit)}


@app.get("/api/v1/paper-trading", tags=["Paper Trading"])
async def paper_stats():
    return get_paper_account().get_stats()


@app.post("/api/v1/paper-trading/trade", tags=["Paper Trading"])
async def paper_trade(request: TradeRequest):
    account = get_paper_account()
    if request.action == "buy":
        account.market_buy(request.symbol, request.amount, request.price)
    else:
        account.market_sell(request.symbol, request.amount, request.price)
    return {"success": True, "state": account.get_stats()}


@app.post("/api/v1/paper-trading/reset", tags=["Paper Trading"])
async def paper_reset():
    account = get_paper_account()
    account.reset()
    return {"success": True, "state": account.get_stats()}


@app.get("/api/v1/paper-trading/history", tags=["Paper Trading"])
async def paper_history(limit: int = Query(default=50, ge=0)):
    return {"trades": get_paper_account().get_trade_history(limit)}
