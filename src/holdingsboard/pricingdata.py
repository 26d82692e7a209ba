from abc import ABC, abstractmethod
from decimal import Decimal
from datetime import datetime
import concurrent.futures
import sys

import yfinance as yf  # type: ignore[import-untyped]

from .currency import Currency, currency_from_ticker, quote_to_decimal

# When True, print status messages during data fetching (e.g. "Fetching AAPL …").
# Defaults to False so the report output isn't polluted.
verbose: bool = False


class PricePoint:
    """A single current-price observation for a ticker, in its local currency."""

    def __init__(self, symbol: str, price_datetime: datetime, price: Decimal, base_currency: Currency | None = None):
        """Initialize a PricePoint.

        Args:
            symbol: Yahoo Finance ticker (e.g., "AAPL", "VUSA.L").
            price_datetime: The datetime the price was observed.
            price: The observed price as a Decimal.
            base_currency: Currency the price is denominated in. Defaults to
                the currency implied by the ticker suffix.
        """
        self.symbol: str = symbol
        self.price_datetime: datetime = price_datetime
        self.price: Decimal = price
        self.base_currency: Currency = base_currency if base_currency is not None else currency_from_ticker(symbol)

    def __repr__(self):
        return f"PricePoint(ticker={self.symbol}, price={self.price}, currency={self.base_currency.value})"


class PricingDataManager(ABC):
    """Abstract base class for all current-price providers.

    Implementations never raise for an unavailable price; they return None.
    """

    @abstractmethod
    def get_price_point(self, symbol: str) -> PricePoint | None:
        raise NotImplementedError("This method should be overridden by subclasses.")

    def get_current_price(self, symbol: str) -> Decimal | None:
        """Return the current local-currency price for a ticker, or None."""
        price_point = self.get_price_point(symbol)
        if price_point is None:
            return None
        return price_point.price


class FixedPricingDataManager(PricingDataManager):
    """Pricing manager serving prices from a fixed table.

    Symbols missing from the table have no price.
    """

    def __init__(self, prices: dict[str, Decimal] | None = None):
        """Initialize with a fixed price table.

        Args:
            prices: Local-currency price per ticker.
        """
        self.prices: dict[str, Decimal] = dict(prices) if prices else {}

    def get_price_point(self, symbol: str) -> PricePoint | None:
        price = self.prices.get(symbol)
        if price is None:
            return None
        return PricePoint(symbol=symbol, price_datetime=datetime.now(), price=price)


class YFinancePricingDataManager(PricingDataManager):
    """Pricing manager reading live quotes from Yahoo Finance."""

    def get_price_point(self, symbol: str) -> PricePoint | None:
        """Get the most recent market price for a ticker.

        Uses fast_info['lastPrice'], which includes pre-market and after-hours
        trading. Any failure (network error, unknown ticker, missing field) is
        reported on stderr and yields None.
        """
        if verbose:
            print(f"  Fetching {symbol} …", flush=True)
        try:
            last_price = yf.Ticker(symbol).fast_info.get("lastPrice")
        except Exception as e:
            print(f"Warning: failed to fetch {symbol}: {e}", file=sys.stderr)
            return None

        price = quote_to_decimal(last_price)
        if price is None:
            print(f"Warning: no price data for {symbol} (got {last_price!r})", file=sys.stderr)
            return None

        return PricePoint(
            symbol=symbol,
            price_datetime=datetime.now(),
            price=price
        )


def fetch_current_prices(
    symbols: list[str],
    pricing_manager: PricingDataManager,
    max_workers: int = 8
) -> dict[str, Decimal | None]:
    """Fetch current prices for many tickers concurrently.

    Every symbol gets a single independent lookup. A lookup that raises is
    reported on stderr and resolves to None without affecting its siblings.
    The call returns once every lookup has resolved.

    Args:
        symbols: Tickers to price. Duplicates are fetched once.
        pricing_manager: Source of current prices.
        max_workers: Upper bound on concurrent lookups.

    Returns:
        Mapping from every requested ticker to its price, or None if unknown.
    """
    unique_symbols = list(dict.fromkeys(symbols))
    prices: dict[str, Decimal | None] = {}

    if not unique_symbols:
        return prices

    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {
            pool.submit(pricing_manager.get_current_price, symbol): symbol
            for symbol in unique_symbols
        }
        for future in concurrent.futures.as_completed(futures):
            symbol = futures[future]
            try:
                prices[symbol] = future.result()
            except Exception as e:
                print(f"Warning: price lookup failed for {symbol}: {e}", file=sys.stderr)
                prices[symbol] = None

    return prices
