"""
Crypto Hunter — Main Entry Point
Runs the API server, the periodic monitor, or a single cycle.
"""
import asyncio
import click
import uvicorn
from crypto_hunter.config.settings import get_settings
from crypto_hunter.monitor.service import CycleResult, MarketMonitor
from crypto_hunter.utils.logger import setup_logging, get_logger

logger = get_logger("main")

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(context_settings=CONTEXT_SETTINGS)
def cli() -> None:
    """Crypto Hunter - crypto market movement monitor.

    \b
    Quick Start:
      python main.py once      # One cycle, print the report
      python main.py monitor   # Poll on the configured interval
      python main.py api       # Serve the HTTP API
    """
    setup_logging()


@cli.command()
def api() -> None:
    """Run the FastAPI application."""
    settings = get_settings()
    logger.info("starting_crypto_hunter", version=settings.version, port=settings.port)
    uvicorn.run(
        "crypto_hunter.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


def _print_report(result: CycleResult) -> None:
    if result.skipped:
        click.echo(f"Cycle skipped: {result.error}", err=True)
    else:
        click.echo(result.report)


async def _run(once: bool, notify: bool) -> None:
    monitor = MarketMonitor()
    await monitor.start()
    try:
        if once:
            _print_report(await monitor.run_cycle(notify=notify))
        else:
            await monitor.run_forever(on_result=_print_report)
    finally:
        await monitor.close()


@cli.command()
def monitor() -> None:
    """Poll market data forever on the configured interval."""
    try:
        asyncio.run(_run(once=False, notify=True))
    except KeyboardInterrupt:
        logger.info("monitor_interrupted")


@cli.command()
@click.option("--notify/--no-notify", default=True, help="Send notifications for new alerts.")
def once(notify: bool) -> None:
    """Run a single cycle and print the report."""
    asyncio.run(_run(once=True, notify=notify))


if __name__ == "__main__":
    cli()
