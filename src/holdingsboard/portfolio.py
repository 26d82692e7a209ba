from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Union
import json
import os
import warnings


class TransactionType(Enum):
    """Enumeration of supported ledger transaction types."""

    BUY = "buy"
    SELL = "sell"


class UnknownTransactionTypeWarning(UserWarning):
    """Emitted when a ledger record has a type other than buy or sell."""


@dataclass(frozen=True)
class Transaction:
    """A single buy or sell from the transaction ledger.

    ``transaction_type`` holds the raw kind string when the ledger contains a
    type other than buy/sell; such transactions do not affect positions.
    """

    symbol: str
    name: str
    local_currency: str
    transaction_type: Union[TransactionType, str]
    quantity: Decimal
    price_per_share: Decimal
    eur_value: Decimal
    total_eur: Decimal
    total_costs: Decimal = Decimal("0")

    def __repr__(self):
        kind = self.transaction_type.value if isinstance(self.transaction_type, TransactionType) else self.transaction_type
        return f"Transaction(ticker={self.symbol}, type={kind}, quantity={self.quantity}, total_eur={self.total_eur})"


@dataclass(frozen=True)
class Lot:
    """The quantity, price and cost data of one transaction within a Position."""

    quantity: Decimal
    price_per_share: Decimal
    local_currency: str
    eur_value: Decimal
    total_costs: Decimal
    total_eur: Decimal

    @classmethod
    def from_transaction(cls, txn: Transaction) -> "Lot":
        return cls(
            quantity=txn.quantity,
            price_per_share=txn.price_per_share,
            local_currency=txn.local_currency,
            eur_value=txn.eur_value,
            total_costs=txn.total_costs,
            total_eur=txn.total_eur,
        )


@dataclass
class Position:
    """All lots held or traded for one ticker, with the running quantity."""

    symbol: str
    name: str
    local_currency: str
    buys: list[Lot] = field(default_factory=list)
    sells: list[Lot] = field(default_factory=list)
    quantity: Decimal = Decimal("0")

    @property
    def is_open(self) -> bool:
        return self.quantity > 0

    @property
    def is_closed(self) -> bool:
        """Fully sold (or oversold) and at least one sell was recorded."""
        return self.quantity <= 0 and len(self.sells) > 0

    def __repr__(self):
        return f"Position(ticker={self.symbol}, quantity={self.quantity}, buys={len(self.buys)}, sells={len(self.sells)})"


_REQUIRED_FIELDS = ("yahooTicker", "name", "type", "quantity", "pricePerShare", "localCurrency", "eurValue", "totalEur")


def _to_decimal(item: dict[str, Any], key: str, index: int) -> Decimal:
    value = item[key]
    if isinstance(value, bool):
        raise ValueError(f"Transaction {index}: field '{key}' must be a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Transaction {index}: field '{key}' must be a number, got {value!r}")
    if not result.is_finite():
        raise ValueError(f"Transaction {index}: field '{key}' must be a finite number, got {value!r}")
    return result


def _parse_transaction_type(raw: Any) -> Union[TransactionType, str]:
    # Exact match only: "BUY" or " sell" are not buys/sells.
    kind = str(raw)
    try:
        return TransactionType(kind)
    except ValueError:
        return kind


def parse_transaction(item: Any, index: int = 0) -> Transaction:
    """
    Build a Transaction from one record of the ledger JSON.

    Args:
        item: A decoded JSON object from the ``transactions`` array.
        index: Position of the record in the array, used in error messages.

    Returns:
        The validated Transaction.

    Raises:
        ValueError: If the record is not an object, a required field is
            missing, a numeric field is not a number, or quantity is not positive.
    """
    if not isinstance(item, dict):
        raise ValueError(f"Transaction {index}: expected an object, got {type(item).__name__}")

    missing = [key for key in _REQUIRED_FIELDS if item.get(key) is None]
    if missing:
        raise ValueError(f"Transaction {index}: missing required fields: {', '.join(missing)}")

    quantity = _to_decimal(item, "quantity", index)
    if quantity <= 0:
        raise ValueError(f"Transaction {index}: quantity must be positive, got {quantity}")

    total_costs = Decimal("0")
    if item.get("totalCosts") is not None:
        total_costs = _to_decimal(item, "totalCosts", index)

    return Transaction(
        symbol=str(item["yahooTicker"]),
        name=str(item["name"]),
        local_currency=str(item["localCurrency"]),
        transaction_type=_parse_transaction_type(item["type"]),
        quantity=quantity,
        price_per_share=_to_decimal(item, "pricePerShare", index),
        eur_value=_to_decimal(item, "eurValue", index),
        total_eur=_to_decimal(item, "totalEur", index),
        total_costs=total_costs,
    )


def load_transactions_from_json(file_path: str) -> list[Transaction]:
    """
    Load the transaction ledger from a JSON file.

    Args:
        file_path: Path to the JSON ledger.

    Returns:
        The transactions in file order. A document without a ``transactions``
        array yields an empty list.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the document is not a JSON object or a record is invalid.

    Expected JSON structure:
        {
            "transactions": [
                {
                    "yahooTicker": "VUSA.L",
                    "name": "Vanguard S&P 500",
                    "type": "buy",
                    "quantity": 10,
                    "pricePerShare": 8500,
                    "localCurrency": "GBX",
                    "eurValue": 994.5,
                    "totalCosts": 2,
                    "totalEur": 996.5
                },
                ...
            ]
        }
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Transactions file not found: {file_path}")

    with open(file_path, "r") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError("JSON file must contain an object with a 'transactions' array")

    items = data.get("transactions") or []
    if not isinstance(items, list):
        raise ValueError("'transactions' must be an array")

    transactions = [parse_transaction(item, index) for index, item in enumerate(items)]

    unknown_kinds = sorted({
        txn.transaction_type for txn in transactions
        if not isinstance(txn.transaction_type, TransactionType)
    })
    if unknown_kinds:
        warnings.warn(
            f"Transactions in '{file_path}' have unsupported types {unknown_kinds}. "
            f"These transactions are ignored.",
            UnknownTransactionTypeWarning
        )

    return transactions


def save_transactions_to_json(transactions: list[Transaction], file_path: str) -> None:
    """
    Save transactions to a JSON ledger readable by load_transactions_from_json.

    Args:
        transactions: Transactions to write, in order.
        file_path: Path to the JSON file to write.
    """
    records = []
    for txn in transactions:
        kind = txn.transaction_type.value if isinstance(txn.transaction_type, TransactionType) else txn.transaction_type
        records.append({
            "yahooTicker": txn.symbol,
            "name": txn.name,
            "type": kind,
            "quantity": float(txn.quantity),
            "pricePerShare": float(txn.price_per_share),
            "localCurrency": txn.local_currency,
            "eurValue": float(txn.eur_value),
            "totalCosts": float(txn.total_costs),
            "totalEur": float(txn.total_eur),
        })

    with open(file_path, "w") as f:
        json.dump({"transactions": records}, f, indent=2)


def aggregate_positions(transactions: list[Transaction], strict: bool = False) -> dict[str, Position]:
    """
    Fold a transaction ledger into one Position per ticker.

    Transactions are processed in the given order, which fixes the order of
    lots within each position. The first transaction seen for a ticker sets
    the position's name and local currency.

    Args:
        transactions: The ledger, in order.
        strict: If True, raise on transaction types other than buy/sell
            instead of ignoring them.

    Returns:
        A dictionary mapping ticker to Position, in first-seen order.

    Raises:
        ValueError: If strict is True and a transaction has an unsupported type.
    """
    positions: dict[str, Position] = {}

    for txn in transactions:
        position = positions.get(txn.symbol)
        if position is None:
            position = Position(symbol=txn.symbol, name=txn.name, local_currency=txn.local_currency)
            positions[txn.symbol] = position

        if txn.transaction_type == TransactionType.BUY:
            position.buys.append(Lot.from_transaction(txn))
            position.quantity += txn.quantity

        elif txn.transaction_type == TransactionType.SELL:
            position.sells.append(Lot.from_transaction(txn))
            position.quantity -= txn.quantity

        elif strict:
            raise ValueError(f"Unsupported transaction type: {txn}")

    return positions


def split_positions(positions: dict[str, Position]) -> tuple[list[Position], list[Position]]:
    """
    Classify positions as open or closed.

    Positions that are neither (no quantity left and never sold) are dropped.

    Returns:
        A tuple of (open_positions, closed_positions).
    """
    open_positions: list[Position] = []
    closed_positions: list[Position] = []

    for position in positions.values():
        if position.is_open:
            open_positions.append(position)
        elif position.is_closed:
            closed_positions.append(position)

    return open_positions, closed_positions
