"""Version subcommand for the holdingsboard CLI."""

from importlib.metadata import version


def register_subcommand(subparsers):
    """Register the version subcommand with the argument parser.

    Args:
        subparsers: The argparse subparsers object to register with.
    """
    parser = subparsers.add_parser(
        "version",
        help="Display holdingsboard version information",
        description="Display the installed holdingsboard version.",
    )
    parser.set_defaults(func=run)


def run(args):
    try:
        ver = version("holdingsboard")
    except Exception:
        ver = "unknown"

    print(f" Version: {ver}")
    return 0
