"""Portfolio holdings and profit/loss from a ledger of buy/sell transactions.

All valuations are reported in a single reporting currency (EUR).
"""
