"""Entry point for manual runs: one-shot analysis or a timed live watch."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Sequence

from market_signals.core.config import Config
from market_signals.core.errors import ConnectionFailure, MarketSignalsError
from market_signals.core.models import Analysis, IndicatorKind
from market_signals.monitoring.logger import SignalReporter, setup_logging
from market_signals.scheduler.tasks import SignalPipeline

logger = logging.getLogger(__name__)


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    data_updates = {}
    if args.symbol:
        data_updates["symbol"] = args.symbol.upper()
    if args.interval:
        data_updates["interval"] = args.interval
    if args.limit:
        data_updates["history_limit"] = args.limit
    if data_updates:
        config = config.model_copy(update={"data": config.data.model_copy(update=data_updates)})
    if args.indicators:
        active = dict(config.signals.active)
        for name in args.indicators:
            active[name] = True
        config = config.model_copy(update={"signals": config.signals.model_copy(update={"active": active})})
    return config


def indicator_list(raw: str) -> Sequence[str]:
    names = [part.strip().lower() for part in raw.split(",") if part.strip()]
    known = {kind.value for kind in IndicatorKind}
    unknown = [name for name in names if name not in known]
    if unknown:
        raise argparse.ArgumentTypeError(f"Unknown indicators: {', '.join(unknown)}")
    return names


async def run(config: Config, watch_minutes: float | None, show_ticker: bool) -> None:
    reporter = SignalReporter()
    async with SignalPipeline(config) as pipeline:
        if show_ticker:
            reporter.log_ticker(await pipeline.ticker())

        analysis = await pipeline.analyze()
        reporter.log_analysis(analysis)
        if not watch_minutes:
            return

        def _on_analysis(update: Analysis) -> None:
            reporter.log_analysis(update)

        def _on_fatal(exc: ConnectionFailure) -> None:
            reporter.error("Live stream stopped", details={"symbol": exc.symbol, "attempts": exc.attempts})

        subscription = await pipeline.watch(_on_analysis, on_fatal=_on_fatal)
        try:
            await asyncio.wait_for(subscription.wait_closed(), timeout=watch_minutes * 60)
        except asyncio.TimeoutError:
            pass
        finally:
            subscription.unsubscribe()


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Indicator signals for an exchange symbol")
    parser.add_argument("--config", type=str, help="Path to YAML config", default=None)
    parser.add_argument("--symbol", type=str, default=None)
    parser.add_argument("--interval", type=str, default=None)
    parser.add_argument("--limit", type=int, default=None)
    parser.add_argument(
        "--indicators",
        type=indicator_list,
        default=None,
        help="Comma separated optional indicators to activate (sma,ema,kdj,roc,obv,atr,adx,cci)",
    )
    parser.add_argument("--ticker", action="store_true", help="Show the 24h ticker first")
    parser.add_argument(
        "--watch",
        type=float,
        default=None,
        metavar="MINUTES",
        help="Keep re-evaluating on live 1m candles for this many minutes",
    )
    return parser.parse_args(argv)


def cli(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    config = apply_overrides(Config.load(args.config), args)
    setup_logging(config.logging)
    try:
        asyncio.run(run(config, args.watch, args.ticker))
    except ConnectionFailure as exc:
        logger.error("%s", exc)
        return 2
    except MarketSignalsError as exc:
        logger.error("Analysis failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(cli())
