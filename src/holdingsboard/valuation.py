"""Open/closed position valuation and the portfolio summary.

All amounts are in the reporting currency. Unknown prices never raise; they
propagate as None through every dependent field so a report can show N/A.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
import concurrent.futures

from .currency import ExchangeRateSource, convert_to_reporting, currency_from_ticker
from .portfolio import Lot, Position, Transaction, aggregate_positions, split_positions
from .pricingdata import PricingDataManager, fetch_current_prices

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class EmptyTransactionsError(ValueError):
    """Raised when there are no transactions to build a dashboard from."""

    def __init__(self, message: str = "No transactions found"):
        super().__init__(message)


@dataclass
class OpenPositionValuation:
    """Metrics for a currently held position, marked to the current price."""

    symbol: str
    name: str
    quantity: Decimal
    avg_buy_price: Decimal
    invested: Decimal
    current_price: Decimal | None
    current_value: Decimal | None
    pl: Decimal | None
    pl_percent: Decimal | None
    portfolio_percent: Decimal | None = None


@dataclass
class ClosedPositionValuation:
    """Metrics for a fully sold position."""

    symbol: str
    name: str
    quantity_traded: Decimal
    avg_buy_price: Decimal
    avg_sell_price: Decimal
    total_costs: Decimal
    realized_pl: Decimal


@dataclass
class PortfolioSummary:
    total_portfolio_value: Decimal
    total_invested: Decimal
    total_unrealized_pl: Decimal
    total_realized_pl: Decimal
    total_pl: Decimal
    total_pl_percent: Decimal


@dataclass
class Dashboard:
    """Everything the report shows, from one run of the pipeline."""

    open_positions: list[OpenPositionValuation]
    closed_positions: list[ClosedPositionValuation]
    summary: PortfolioSummary
    as_of: datetime


def calculate_avg_buy_price(buys: list[Lot]) -> Decimal:
    """Average cost per unit, including transaction costs (uses total_eur)."""
    total_cost = sum((lot.total_eur for lot in buys), ZERO)
    total_quantity = sum((lot.quantity for lot in buys), ZERO)
    return total_cost / total_quantity if total_quantity > 0 else ZERO


def calculate_avg_sell_price(sells: list[Lot]) -> Decimal:
    """Average proceeds per unit, before costs (uses eur_value)."""
    total_value = sum((lot.eur_value for lot in sells), ZERO)
    total_quantity = sum((lot.quantity for lot in sells), ZERO)
    return total_value / total_quantity if total_quantity > 0 else ZERO


def calculate_total_costs(buys: list[Lot], sells: list[Lot]) -> Decimal:
    return sum((lot.total_costs for lot in buys), ZERO) + sum((lot.total_costs for lot in sells), ZERO)


def value_open_positions(
    positions: list[Position],
    prices: dict[str, Decimal | None],
    rates: dict[str, Decimal]
) -> list[OpenPositionValuation]:
    """
    Value open positions at current prices.

    The portfolio weight of each position needs the total value of all
    positions, so weights are filled in a second pass.

    Args:
        positions: Open positions (quantity > 0).
        prices: Current local-currency price per ticker. Missing or None
            entries mean the price is unknown.
        rates: Conversion factors into the reporting currency.

    Returns:
        One valuation per position, in input order.
    """
    valuations: list[OpenPositionValuation] = []
    total_portfolio_value = ZERO

    for pos in positions:
        avg_buy_price = calculate_avg_buy_price(pos.buys)
        local_currency = currency_from_ticker(pos.symbol)
        current_price = convert_to_reporting(prices.get(pos.symbol), local_currency, rates)

        invested = avg_buy_price * pos.quantity
        current_value = current_price * pos.quantity if current_price is not None else None
        pl = current_value - invested if current_value is not None else None
        pl_percent = (pl / invested) * HUNDRED if pl is not None and invested > 0 else None

        if current_value is not None:
            total_portfolio_value += current_value

        valuations.append(OpenPositionValuation(
            symbol=pos.symbol,
            name=pos.name,
            quantity=pos.quantity,
            avg_buy_price=avg_buy_price,
            invested=invested,
            current_price=current_price,
            current_value=current_value,
            pl=pl,
            pl_percent=pl_percent,
        ))

    for valuation in valuations:
        if valuation.current_value is not None and total_portfolio_value > 0:
            valuation.portfolio_percent = (valuation.current_value / total_portfolio_value) * HUNDRED

    return valuations


def value_closed_positions(positions: list[Position]) -> list[ClosedPositionValuation]:
    """
    Compute realized P/L for closed positions.

    Buy-side costs are already part of the average buy price (via total_eur),
    while sell proceeds are before costs, so sell costs are subtracted here.

    Args:
        positions: Closed positions (quantity <= 0 with at least one sell).

    Returns:
        One valuation per position, in input order.
    """
    valuations: list[ClosedPositionValuation] = []

    for pos in positions:
        avg_buy_price = calculate_avg_buy_price(pos.buys)
        avg_sell_price = calculate_avg_sell_price(pos.sells)
        quantity_traded = sum((lot.quantity for lot in pos.sells), ZERO)
        sell_costs = sum((lot.total_costs for lot in pos.sells), ZERO)

        realized_pl = (avg_sell_price - avg_buy_price) * quantity_traded - sell_costs

        valuations.append(ClosedPositionValuation(
            symbol=pos.symbol,
            name=pos.name,
            quantity_traded=quantity_traded,
            avg_buy_price=avg_buy_price,
            avg_sell_price=avg_sell_price,
            total_costs=calculate_total_costs(pos.buys, pos.sells),
            realized_pl=realized_pl,
        ))

    return valuations


def summarize(
    open_valuations: list[OpenPositionValuation],
    closed_valuations: list[ClosedPositionValuation]
) -> PortfolioSummary:
    """Aggregate portfolio totals from open and closed valuations.

    Positions with an unknown price still count towards total_invested but
    contribute nothing to value or unrealized P/L.
    """
    total_portfolio_value = sum((v.current_value for v in open_valuations if v.current_value is not None), ZERO)
    total_invested = sum((v.invested for v in open_valuations), ZERO)
    total_unrealized_pl = sum((v.pl for v in open_valuations if v.pl is not None), ZERO)
    total_realized_pl = sum((v.realized_pl for v in closed_valuations), ZERO)

    total_pl = total_unrealized_pl + total_realized_pl
    total_pl_percent = (total_pl / total_invested) * HUNDRED if total_invested > 0 else ZERO

    return PortfolioSummary(
        total_portfolio_value=total_portfolio_value,
        total_invested=total_invested,
        total_unrealized_pl=total_unrealized_pl,
        total_realized_pl=total_realized_pl,
        total_pl=total_pl,
        total_pl_percent=total_pl_percent,
    )


def build_dashboard(
    transactions: list[Transaction],
    pricing_manager: PricingDataManager,
    rate_source: ExchangeRateSource,
    max_workers: int = 8,
    strict: bool = False
) -> Dashboard:
    """
    Run the full pipeline: transactions -> positions -> valuations.

    Exchange rates and the current price of every ticker are fetched
    concurrently, and valuation starts once all lookups have resolved.

    Args:
        transactions: The transaction ledger, in order.
        pricing_manager: Source of current local-currency prices.
        rate_source: Source of conversion factors into the reporting currency.
        max_workers: Upper bound on concurrent price lookups.
        strict: Passed to aggregate_positions.

    Returns:
        The Dashboard, with open positions sorted by current value (largest first).

    Raises:
        EmptyTransactionsError: If ``transactions`` is empty.
    """
    if not transactions:
        raise EmptyTransactionsError()

    positions = aggregate_positions(transactions, strict=strict)
    symbols = list(positions)

    with concurrent.futures.ThreadPoolExecutor(max_workers=2) as pool:
        rates_future = pool.submit(rate_source.get_rates)
        prices_future = pool.submit(fetch_current_prices, symbols, pricing_manager, max_workers)
        rates = rates_future.result()
        prices = prices_future.result()

    open_positions, closed_positions = split_positions(positions)

    open_valuations = value_open_positions(open_positions, prices, rates)
    open_valuations.sort(key=lambda v: v.current_value if v.current_value is not None else ZERO, reverse=True)
    closed_valuations = value_closed_positions(closed_positions)

    return Dashboard(
        open_positions=open_valuations,
        closed_positions=closed_valuations,
        summary=summarize(open_valuations, closed_valuations),
        as_of=datetime.now().astimezone(),
    )
