"""Tests for loading the transaction ledger and aggregating it into positions."""

import json
from decimal import Decimal

import pytest

from holdingsboard.portfolio import (
    Transaction,
    TransactionType,
    UnknownTransactionTypeWarning,
    aggregate_positions,
    load_transactions_from_json,
    parse_transaction,
    save_transactions_to_json,
    split_positions,
)


def make_txn(
    symbol: str,
    transaction_type: TransactionType | str,
    quantity: str,
    total_eur: str = "0",
    eur_value: str = "0",
    total_costs: str = "0",
    name: str | None = None,
    local_currency: str = "EUR",
) -> Transaction:
    return Transaction(
        symbol=symbol,
        name=name or f"{symbol} Corp",
        local_currency=local_currency,
        transaction_type=transaction_type,
        quantity=Decimal(quantity),
        price_per_share=Decimal("1"),
        eur_value=Decimal(eur_value),
        total_eur=Decimal(total_eur),
        total_costs=Decimal(total_costs),
    )


def record(**overrides):
    base = {
        "yahooTicker": "ASML.AS",
        "name": "ASML Holding",
        "type": "buy",
        "quantity": 2,
        "pricePerShare": 650.5,
        "localCurrency": "EUR",
        "eurValue": 1301,
        "totalCosts": 3,
        "totalEur": 1304,
    }
    base.update(overrides)
    return base


def write_ledger(tmp_path, records):
    path = tmp_path / "transactions.json"
    path.write_text(json.dumps({"transactions": records}))
    return str(path)


def test_load_transactions_from_json(tmp_path):
    """Verify ledger records are parsed into Transactions in file order."""
    path = write_ledger(tmp_path, [
        record(),
        record(yahooTicker="VUSA.L", name="Vanguard S&P 500", type="sell", quantity=1.5,
               pricePerShare=8500, localCurrency="GBX", eurValue=149.18, totalEur=147.18),
    ])

    transactions = load_transactions_from_json(path)

    assert len(transactions) == 2
    first, second = transactions
    assert first.symbol == "ASML.AS"
    assert first.transaction_type == TransactionType.BUY
    assert first.quantity == Decimal("2")
    assert first.price_per_share == Decimal("650.5")
    assert first.total_costs == Decimal("3")
    assert first.total_eur == Decimal("1304")
    assert second.transaction_type == TransactionType.SELL
    assert second.local_currency == "GBX"
    assert second.quantity == Decimal("1.5")
    assert second.eur_value == Decimal("149.18")


def test_total_costs_defaults_to_zero():
    item = record()
    del item["totalCosts"]
    assert parse_transaction(item).total_costs == Decimal("0")


def test_load_transactions_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_transactions_from_json(str(tmp_path / "missing.json"))


def test_load_transactions_without_array_is_empty(tmp_path):
    """Verify a document without a transactions array yields no transactions."""
    path = tmp_path / "transactions.json"
    path.write_text("{}")
    assert load_transactions_from_json(str(path)) == []


def test_load_transactions_rejects_non_object(tmp_path):
    path = tmp_path / "transactions.json"
    path.write_text("[]")
    with pytest.raises(ValueError, match="must contain an object"):
        load_transactions_from_json(str(path))


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"totalEur": None}, "missing required fields: totalEur"),
        ({"quantity": "ten"}, "field 'quantity' must be a number"),
        ({"quantity": 0}, "quantity must be positive"),
        ({"quantity": -3}, "quantity must be positive"),
        ({"eurValue": True}, "field 'eurValue' must be a number"),
    ],
)
def test_parse_transaction_rejects_invalid_records(overrides, message):
    """Verify malformed records are rejected instead of producing bad numbers."""
    with pytest.raises(ValueError, match=message):
        parse_transaction(record(**overrides), index=4)


def test_unknown_transaction_type_warns_and_is_kept(tmp_path):
    """Verify unsupported types are kept as raw strings and reported once."""
    path = write_ledger(tmp_path, [record(), record(type="dividend")])

    with pytest.warns(UnknownTransactionTypeWarning, match="dividend"):
        transactions = load_transactions_from_json(path)

    assert transactions[1].transaction_type == "dividend"


def test_save_and_load_preserves_ledger(tmp_path):
    path = str(tmp_path / "out.json")
    original = [make_txn("AAA", TransactionType.BUY, "10", total_eur="1020", eur_value="1000", total_costs="20")]

    save_transactions_to_json(original, path)

    assert load_transactions_from_json(path) == original


def test_aggregate_running_quantity_and_lot_order():
    """Verify the running quantity is buys minus sells and lots keep ledger order."""
    transactions = [
        make_txn("AAA", TransactionType.BUY, "10", total_eur="1000"),
        make_txn("BBB", TransactionType.BUY, "5", total_eur="50"),
        make_txn("AAA", TransactionType.SELL, "4", eur_value="480"),
        make_txn("AAA", TransactionType.BUY, "2.5", total_eur="300"),
    ]

    positions = aggregate_positions(transactions)

    assert list(positions) == ["AAA", "BBB"]
    aaa = positions["AAA"]
    assert aaa.quantity == Decimal("8.5")
    assert [lot.quantity for lot in aaa.buys] == [Decimal("10"), Decimal("2.5")]
    assert [lot.eur_value for lot in aaa.sells] == [Decimal("480")]
    assert positions["BBB"].quantity == Decimal("5")


def test_aggregate_first_seen_name_and_currency_win():
    transactions = [
        make_txn("AAA", TransactionType.BUY, "1", name="Original Name", local_currency="USD"),
        make_txn("AAA", TransactionType.BUY, "1", name="Renamed", local_currency="EUR"),
    ]

    position = aggregate_positions(transactions)["AAA"]

    assert position.name == "Original Name"
    assert position.local_currency == "USD"


def test_aggregate_ignores_unknown_types():
    """Verify unsupported types leave quantity and lots untouched."""
    transactions = [
        make_txn("AAA", TransactionType.BUY, "3"),
        make_txn("AAA", "split", "100"),
    ]

    position = aggregate_positions(transactions)["AAA"]

    assert position.quantity == Decimal("3")
    assert len(position.buys) == 1
    assert position.sells == []


def test_aggregate_strict_rejects_unknown_types():
    with pytest.raises(ValueError, match="Unsupported transaction type"):
        aggregate_positions([make_txn("AAA", "split", "100")], strict=True)


def test_split_positions_classification():
    """Verify open, closed and excluded positions are disjoint and correctly classified."""
    transactions = [
        make_txn("OPEN", TransactionType.BUY, "10"),
        make_txn("OPEN", TransactionType.SELL, "4"),
        make_txn("CLOSED", TransactionType.BUY, "10"),
        make_txn("CLOSED", TransactionType.SELL, "10"),
        make_txn("SHORT", TransactionType.SELL, "2"),
        make_txn("NOTHING", "dividend", "1"),
    ]

    positions = aggregate_positions(transactions)
    open_positions, closed_positions = split_positions(positions)

    open_symbols = {p.symbol for p in open_positions}
    closed_symbols = {p.symbol for p in closed_positions}

    assert open_symbols == {"OPEN"}
    assert closed_symbols == {"CLOSED", "SHORT"}
    assert open_symbols.isdisjoint(closed_symbols)
    assert (open_symbols | closed_symbols) <= set(positions)
    assert "NOTHING" in positions


@pytest.mark.parametrize("kind", ["BUY", "Sell", " buy "])
def test_transaction_type_matching_is_exact(tmp_path, kind):
    """Verify differently spelled kinds are unknown types and do not change the position."""
    path = write_ledger(tmp_path, [record(yahooTicker="AAA", type=kind, quantity=5)])

    with pytest.warns(UnknownTransactionTypeWarning):
        transactions = load_transactions_from_json(path)

    assert transactions[0].transaction_type == kind
    position = aggregate_positions(transactions)["AAA"]
    assert position.quantity == Decimal("0")
    assert position.buys == [] and position.sells == []
