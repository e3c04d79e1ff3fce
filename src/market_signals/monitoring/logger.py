"""Logging setup and Rich rendering of verdicts and tickers."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from market_signals.core.config import LoggingConfig
from market_signals.core.models import Analysis, Signal, TickerSnapshot


def setup_logging(config: LoggingConfig) -> None:
    logging.basicConfig(level=getattr(logging, config.level.upper(), logging.INFO), format=config.format)


class SignalReporter:
    _LEVEL_STYLES = {
        "info": "cyan",
        "error": "red",
    }
    _SIGNAL_STYLES = {
        Signal.BUY: "green",
        Signal.SELL: "red",
        Signal.NEUTRAL: "white",
    }

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def log_event(
        self,
        message: str,
        *,
        level: str = "info",
        details: Mapping[str, Any] | None = None,
    ) -> None:
        """Render a short status message (optionally with structured details)."""
        style = self._LEVEL_STYLES.get(level, "white")
        if details:
            table = Table.grid(expand=True)
            table.add_column(justify="right", style="bold")
            table.add_column(ratio=1)
            for key, value in details.items():
                table.add_row(str(key), str(value))
            self._console.print(Panel(table, title=f"[bold]{message}", border_style=style))
            return
        self._console.print(f"[bold {style}]{message}[/bold {style}]")

    def error(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        self.log_event(message, level="error", details=details)

    def log_analysis(self, analysis: Analysis) -> None:
        verdict = analysis.verdict
        table = Table(title=f"Signals {analysis.symbol} {analysis.interval}", show_lines=True)
        table.add_column("Indicator")
        table.add_column("Latest")
        table.add_column("Signal")
        for kind, signal in verdict.signals.items():
            series = analysis.indicators.get(kind)
            latest = _format_value(series.last) if series is not None and len(series) else "-"
            style = self._SIGNAL_STYLES[signal]
            table.add_row(kind.value, latest, f"[{style}]{signal.value}[/{style}]")
        summary = verdict.summary
        table.add_row(
            "Summary",
            f"buy {summary.buy} / sell {summary.sell} / neutral {summary.neutral}",
            self._styled(verdict.recommendation),
        )
        if analysis.last_price is not None:
            table.add_row("Price", f"{analysis.last_price:.2f}", "")
        self._console.print(table)

    def log_ticker(self, ticker: TickerSnapshot) -> None:
        table = Table(title=f"24h {ticker.symbol}", show_lines=True)
        table.add_column("Field")
        table.add_column("Value")
        for field, value in [
            ("Last", f"{ticker.last_price:.2f}"),
            ("Change", f"{ticker.price_change:.2f} ({ticker.price_change_percent:.2f}%)"),
            ("High", f"{ticker.high_price:.2f}"),
            ("Low", f"{ticker.low_price:.2f}"),
            ("Volume", f"{ticker.volume:.4f}"),
            ("Trades", str(ticker.count)),
        ]:
            table.add_row(field, value)
        self._console.print(table)

    def _styled(self, signal: Signal) -> str:
        style = self._SIGNAL_STYLES[signal]
        return f"[bold {style}]{signal.value.upper()}[/bold {style}]"


def _format_value(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.4f}"
    fields = getattr(value, "__dataclass_fields__", None)
    if fields:
        return " ".join(f"{name}={getattr(value, name):.2f}" for name in fields)
    return str(value)
