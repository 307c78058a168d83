"""
GeoProx CLI - Main entry point.

Runs encrypted closer-of-two comparisons, prints per-stage timings, and
aggregates the timings of pipeline variants.
"""

import logging
import sys

import click
from dotenv import load_dotenv

from . import __version__
from .output import console, print_error
from .commands import aggregate, budget, compare, config as config_cmd


@click.group()
@click.version_option(version=__version__, prog_name="geoprox")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """
    GeoProx CLI - Privacy-preserving proximity comparison.

    Decide which of two points is closer to a reference point using
    Fully Homomorphic Encryption: the computing side only ever sees
    ciphertexts.

    \b
    Quick Start:
      1. Compare the defaults: geoprox compare
      2. Your own points:      geoprox compare A 1.0 2.0 B 3.0 4.0 C 5.0 6.0
      3. Check a config fits:  geoprox budget --scale 1000000 --width 64
      4. Compare variants:     geoprox aggregate

    For more help on a command: geoprox <command> --help
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


# Register commands
cli.add_command(compare)
cli.add_command(aggregate)
cli.add_command(budget)
cli.add_command(config_cmd)


def main():
    """Main entry point for the CLI."""
    load_dotenv()
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled[/yellow]")
        sys.exit(130)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
