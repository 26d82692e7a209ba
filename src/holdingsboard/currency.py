from enum import Enum
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
import concurrent.futures
import sys
import warnings

import yfinance as yf  # type: ignore[import-untyped]

class Currency(Enum):
    """Currencies the dashboard knows how to quote and convert."""

    EUR = "EUR"
    USD = "USD"
    GBP = "GBP"
    GBX = "GBX" # Pence. Quoted prices are divided by 100 and converted with the GBP rate.
    SEK = "SEK"
    PLN = "PLN"

REPORTING_CURRENCY = Currency.EUR

# Used for GBX conversions when the rate table has no GBP entry.
GBP_FALLBACK_RATE = Decimal("1.17")

# Yahoo Finance FX tickers quoting 1 unit of the currency in EUR
EXCHANGE_RATE_TICKERS = {
    Currency.GBP: "GBPEUR=X",
    Currency.USD: "USDEUR=X",
    Currency.SEK: "SEKEUR=X",
    Currency.PLN: "PLNEUR=X",
}

FALLBACK_EXCHANGE_RATES = {
    Currency.GBP: Decimal("1.17"),
    Currency.USD: Decimal("0.92"),
    Currency.SEK: Decimal("0.088"),
    Currency.PLN: Decimal("0.23"),
}

# Exchange suffix -> currency prices are quoted in. Anything else is USD (NYSE, NASDAQ).
TICKER_SUFFIX_CURRENCIES = {
    ".L": Currency.GBX,
    ".AS": Currency.EUR,
    ".DE": Currency.EUR,
    ".ST": Currency.SEK,
    ".WA": Currency.PLN,
}
DEFAULT_TICKER_CURRENCY = Currency.USD


class MissingExchangeRateWarning(UserWarning):
    """Emitted when a price cannot be converted because its currency has no rate."""


def currency_from_ticker(symbol: str) -> Currency:
    """Determine the currency a ticker is quoted in from its exchange suffix.

    Args:
        symbol: Yahoo Finance ticker (e.g., "VUSA.L", "ASML.AS", "AAPL").

    Returns:
        The quoting currency. Unrecognized suffixes default to USD.
    """
    for suffix, currency in TICKER_SUFFIX_CURRENCIES.items():
        if symbol.endswith(suffix):
            return currency
    return DEFAULT_TICKER_CURRENCY


def quote_to_decimal(value: object) -> Decimal | None:
    """Convert a raw quote (e.g. fast_info['lastPrice']) to a Decimal.

    Returns:
        The quote as a Decimal, or None if it is missing, zero, not a
        number, or not finite (NaN/inf).
    """
    if not value or isinstance(value, bool):
        return None
    try:
        quote = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not quote.is_finite() or quote == 0:
        return None
    return quote


def convert_to_reporting(price: Decimal | None, local_currency: Currency | str, rates: dict[str, Decimal]) -> Decimal | None:
    """Convert a local-currency price into the reporting currency.

    Unknown prices propagate as None. A currency with no entry in ``rates``
    is passed through unconverted and a MissingExchangeRateWarning is emitted.

    Args:
        price: Price in ``local_currency``, or None if unavailable.
        local_currency: Currency (or currency code) the price is quoted in.
        rates: Mapping from currency code to its multiplicative factor into
            the reporting currency.

    Returns:
        The price in the reporting currency, or None if ``price`` is None.
    """
    if price is None:
        return None

    code = local_currency.value if isinstance(local_currency, Currency) else str(local_currency).upper()

    if code == Currency.GBX.value:
        return (price / 100) * (rates.get(Currency.GBP.value) or GBP_FALLBACK_RATE)

    if code == REPORTING_CURRENCY.value:
        return price

    rate = rates.get(code)
    if rate:
        return price * rate

    warnings.warn(
        f"No exchange rate for {code}, returning original price",
        MissingExchangeRateWarning
    )
    return price


class ExchangeRateSource(ABC):
    """Abstract base class for providers of reporting-currency conversion factors."""

    @abstractmethod
    def get_rates(self) -> dict[str, Decimal]:
        """Get conversion factors into the reporting currency.

        Returns:
            Mapping from currency code to rate. Always contains the reporting
            currency (rate 1) and every configured currency.
        """
        raise NotImplementedError("This method should be overridden by subclasses.")


class FixedExchangeRateSource(ExchangeRateSource):
    """Exchange rate source using fixed, hardcoded rates.

    Useful for testing or when live rates are not needed.
    """

    def __init__(self, exchange_rates: dict[Currency, Decimal] | None = None):
        """Initialize with optional custom exchange rates.

        Args:
            exchange_rates: Custom rates to use. Missing currencies are filled
                from FALLBACK_EXCHANGE_RATES.
        """
        self.exchange_rates: dict[Currency, Decimal] = dict(FALLBACK_EXCHANGE_RATES)
        if exchange_rates:
            self.exchange_rates.update(exchange_rates)

    def set_exchange_rate(self, currency: Currency, rate: Decimal):
        self.exchange_rates[currency] = rate

    def get_rates(self) -> dict[str, Decimal]:
        rates = {REPORTING_CURRENCY.value: Decimal("1")}
        for currency, rate in self.exchange_rates.items():
            rates[currency.value] = rate
        return rates


class YFinanceExchangeRateSource(ExchangeRateSource):
    """Exchange rate source reading live FX quotes from Yahoo Finance.

    Each configured currency is fetched concurrently with a single attempt.
    A currency whose quote cannot be fetched falls back to its entry in
    FALLBACK_EXCHANGE_RATES, so every configured currency is always covered.
    """

    def __init__(
        self,
        tickers: dict[Currency, str] | None = None,
        fallback_rates: dict[Currency, Decimal] | None = None,
        max_workers: int = 4
    ):
        """Initialize the Yahoo Finance rate source.

        Args:
            tickers: FX ticker per currency. Defaults to EXCHANGE_RATE_TICKERS.
            fallback_rates: Rates used when a fetch fails. Defaults to
                FALLBACK_EXCHANGE_RATES.
            max_workers: Upper bound on concurrent FX lookups.
        """
        self.tickers = tickers if tickers is not None else dict(EXCHANGE_RATE_TICKERS)
        self.fallback_rates = fallback_rates if fallback_rates is not None else dict(FALLBACK_EXCHANGE_RATES)
        self.max_workers = max_workers

    def _fetch_rate(self, ticker: str) -> Decimal | None:
        """Fetch the last traded FX rate for a ticker.

        Returns:
            The rate as a Decimal, or None if the quote is unavailable.
        """
        try:
            last_price = yf.Ticker(ticker).fast_info.get("lastPrice")
        except Exception as e:
            print(f"Warning: failed to fetch exchange rate {ticker}: {e}", file=sys.stderr)
            return None

        rate = quote_to_decimal(last_price)
        if rate is None:
            print(f"Warning: no exchange rate data for {ticker} (got {last_price!r})", file=sys.stderr)
        return rate

    def get_rates(self) -> dict[str, Decimal]:
        """Fetch all configured rates concurrently, falling back per currency.

        Returns:
            Mapping from currency code to rate, including the reporting currency.
        """
        rates = {REPORTING_CURRENCY.value: Decimal("1")}

        if not self.tickers:
            return rates

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {
                pool.submit(self._fetch_rate, ticker): currency
                for currency, ticker in self.tickers.items()
            }
            fetched: dict[Currency, Decimal | None] = {}
            for future in concurrent.futures.as_completed(futures):
                fetched[futures[future]] = future.result()

        for currency, rate in fetched.items():
            if rate is None:
                rate = self.fallback_rates.get(currency, Decimal("1"))
                print(f"Warning: using fallback rate for {currency.value}: {rate}", file=sys.stderr)
            rates[currency.value] = rate

        return rates
