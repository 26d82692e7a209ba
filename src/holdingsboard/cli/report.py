#!/usr/bin/env python3
"""Report subcommand - Display open/closed positions and P/L in EUR."""

import os
import warnings
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

from ..portfolio import load_transactions_from_json
from ..pricingdata import FixedPricingDataManager, YFinancePricingDataManager
from ..currency import FixedExchangeRateSource, YFinanceExchangeRateSource
from ..valuation import (
    ClosedPositionValuation,
    Dashboard,
    OpenPositionValuation,
    PortfolioSummary,
    build_dashboard,
)
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.markup import escape

DEFAULT_TRANSACTIONS_FILE = "data/transactions.json"


def format_currency(value: Decimal | None, symbol: str = "€", precision: int = 2) -> str:
    """Format a reporting-currency amount, or "N/A" if unknown."""
    if value is None:
        return "N/A"
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.{precision}f}"


def format_number(value: Decimal | None, precision: int = 2) -> str:
    if value is None:
        return "N/A"
    return f"{value:,.{precision}f}"


def format_percent(value: Decimal | None, precision: int = 2) -> str:
    """Format a percentage with an explicit sign (e.g. "+1.23%")."""
    if value is None:
        return "N/A"
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:,.{precision}f}%"


def colorize(text: str, value: Decimal | None) -> str:
    """Wrap text in green for a gain or red for a loss."""
    if value is None:
        return text
    color = "green" if value >= 0 else "red"
    return f"[{color}]{text}[/{color}]"


def build_open_positions_table(valuations: list[OpenPositionValuation]) -> Table:
    table = Table(title="Open Positions")
    table.add_column("Ticker", style="cyan", justify="left")
    table.add_column("Name", justify="left")
    table.add_column("Qty", style="magenta", justify="right")
    table.add_column("Avg Buy", style="yellow", justify="right")
    table.add_column("Current", justify="right")
    table.add_column("Value", style="green", justify="right")
    table.add_column("P/L", justify="right")
    table.add_column("P/L %", justify="right")
    table.add_column("Weight", justify="right")

    if not valuations:
        table.add_row("No open positions", *[""] * 8)
        return table

    for v in valuations:
        table.add_row(
            escape(v.symbol),
            escape(v.name),
            format_number(v.quantity, 0),
            format_currency(v.avg_buy_price),
            format_currency(v.current_price),
            format_currency(v.current_value),
            colorize(format_currency(v.pl), v.pl),
            colorize(format_percent(v.pl_percent), v.pl),
            format_percent(v.portfolio_percent),
        )

    return table


def build_closed_positions_table(valuations: list[ClosedPositionValuation]) -> Table:
    table = Table(title="Closed Positions")
    table.add_column("Ticker", style="cyan", justify="left")
    table.add_column("Name", justify="left")
    table.add_column("Qty Traded", style="magenta", justify="right")
    table.add_column("Avg Buy", style="yellow", justify="right")
    table.add_column("Avg Sell", justify="right")
    table.add_column("Costs", justify="right")
    table.add_column("Realized P/L", justify="right")

    if not valuations:
        table.add_row("No closed positions", *[""] * 6)
        return table

    for v in valuations:
        table.add_row(
            escape(v.symbol),
            escape(v.name),
            format_number(v.quantity_traded, 0),
            format_currency(v.avg_buy_price),
            format_currency(v.avg_sell_price),
            format_currency(v.total_costs),
            colorize(format_currency(v.realized_pl), v.realized_pl),
        )

    return table


def build_summary_panel(summary: PortfolioSummary) -> Panel:
    lines = [
        f"[bold]Total Portfolio Value:[/bold] {format_currency(summary.total_portfolio_value)}",
        f"[bold]Total Invested:[/bold] {format_currency(summary.total_invested)}",
        f"[bold]Total P/L:[/bold] {colorize(format_currency(summary.total_pl), summary.total_pl)} "
        f"({colorize(format_percent(summary.total_pl_percent), summary.total_pl_percent)})",
        f"[bold]Unrealized P/L:[/bold] {colorize(format_currency(summary.total_unrealized_pl), summary.total_unrealized_pl)}",
        f"[bold]Realized P/L:[/bold] {colorize(format_currency(summary.total_realized_pl), summary.total_realized_pl)}",
    ]
    return Panel("\n".join(lines), title="Summary")


def render_dashboard(console: Console, dashboard: Dashboard) -> None:
    console.print(build_summary_panel(dashboard.summary))
    console.print(build_open_positions_table(dashboard.open_positions))
    console.print(build_closed_positions_table(dashboard.closed_positions))
    console.print(f"Last updated: {dashboard.as_of.strftime('%d/%m/%Y, %H:%M:%S')}")


def register_subcommand(subparsers):
    """Register the report subcommand with the argument parser.

    Args:
        subparsers: The argparse subparsers action to add the command to.
    """
    parser = subparsers.add_parser(
        "report",
        help="Display portfolio holdings and P/L report",
        description="Display open and closed positions with P/L in EUR from a JSON transaction ledger.",
    )
    parser.add_argument(
        "filename",
        nargs="?",
        default=None,
        help=f"Path to the JSON transactions file (default: $HOLDINGSBOARD_TRANSACTIONS or {DEFAULT_TRANSACTIONS_FILE})",
    )
    parser.add_argument(
        "--no-live",
        action="store_true",
        help="Skip Yahoo Finance; use fallback exchange rates and leave prices unknown",
    )
    parser.add_argument(
        "--ignore-errors",
        action="store_true",
        help="Suppress data-quality warnings (unknown transaction types, missing rates)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on transaction types other than buy/sell instead of ignoring them",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=8,
        help="Maximum number of concurrent price lookups (default: 8)",
    )
    parser.set_defaults(func=run)


def run(args):
    """Load the ledger, value it, and print the report.

    Args:
        args: Parsed argparse namespace with filename, no_live,
            ignore_errors, strict, and max_workers attributes.

    Returns:
        int: Exit code (0 for success, 1 for errors).
    """
    if args.ignore_errors:
        warnings.filterwarnings("ignore", category=UserWarning)

    filename = args.filename or os.getenv("HOLDINGSBOARD_TRANSACTIONS", DEFAULT_TRANSACTIONS_FILE)

    if args.no_live:
        pricing_manager = FixedPricingDataManager()
        rate_source = FixedExchangeRateSource()
    else:
        pricing_manager = YFinancePricingDataManager()
        rate_source = YFinanceExchangeRateSource()

    console = Console()

    try:
        transactions = load_transactions_from_json(filename)
        dashboard = build_dashboard(
            transactions,
            pricing_manager,
            rate_source,
            max_workers=args.max_workers,
            strict=args.strict,
        )
    except (OSError, ValueError) as e:
        console.print(f"[red]Error loading data: {escape(str(e))}[/red]")
        return 1

    render_dashboard(console, dashboard)
    return 0
