#!/usr/bin/env python3
"""Main entry point for the holdingsboard CLI."""

import argparse
import sys


def main():
    """Parse CLI arguments and dispatch to the appropriate subcommand.

    Returns:
        int: Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="holdingsboard",
        description="holdingsboard - portfolio holdings and P/L in EUR from a transaction ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  holdingsboard report                            Report on data/transactions.json
  holdingsboard report my_transactions.json       Report on a specific ledger
  holdingsboard report --no-live                  Use fallback rates, skip price fetching
        """,
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        help="Available commands",
    )

    from .report import register_subcommand as register_report
    from .version import register_subcommand as register_version

    register_report(subparsers)
    register_version(subparsers)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
