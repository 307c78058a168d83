"""Timing aggregation across pipeline variants."""

import subprocess
import sys
from typing import Dict, List, Optional, Sequence

import click

from config.pipeline import BackendKind
from services.geo.pipeline import (
    ARCSIN_LABEL,
    CLIENT_TOTAL_LABEL,
    COMBINE_LABEL,
    COMPARE_LABEL,
    DECRYPT_LABEL,
    DELTAS_LABEL,
    ENCRYPT_LABEL,
    PAIR_LABEL,
    RADIUS_LABEL,
    SERIES_LABEL,
    SERVER_TOTAL_LABEL,
)

from ..output import console, print_error, timing_table
from .compare import DEFAULT_POINTS, USAGE

VARIANTS = ("a-term", "full-distance")


def parse_timings(stdout: str) -> Dict[str, float]:
    """Collect `<label> = <seconds> s` lines; anything else is ignored."""
    timings = {}
    for line in stdout.splitlines():
        label, sep, rest = line.partition(" = ")
        if not sep or not rest.endswith(" s"):
            continue
        try:
            timings[label.strip()] = float(rest[:-2].strip())
        except ValueError:
            continue
    return timings


def preferred_order(names: Sequence[str]) -> List[str]:
    """Display order of the well-known labels for points X, Y, Z."""
    x, y, z = names
    return [
        ENCRYPT_LABEL.format(x),
        ENCRYPT_LABEL.format(y),
        ENCRYPT_LABEL.format(z),
        PAIR_LABEL.format(x, z),
        PAIR_LABEL.format(y, z),
        DELTAS_LABEL,
        SERIES_LABEL,
        COMBINE_LABEL,
        ARCSIN_LABEL,
        RADIUS_LABEL,
        COMPARE_LABEL,
        CLIENT_TOTAL_LABEL,
        SERVER_TOTAL_LABEL,
        DECRYPT_LABEL,
    ]


def ordered_labels(names: Sequence[str], *timings: Dict[str, float]) -> List[str]:
    """Preferred labels first, then every other label seen, sorted."""
    ordered = preferred_order(names)
    seen = set()
    for column in timings:
        seen.update(column)
    return ordered + sorted(seen - set(ordered))


def run_variant(variant: str, points: Sequence[str], options: Sequence[str] = ()) -> str:
    """
    Run one variant as a separate process and return its stdout.

    Raises:
        click.ClickException: if the process fails
    """
    cmd = [sys.executable, "-m", "geoprox_cli.main", "compare", "--mode", variant, *options]
    if points:
        cmd += ["--", *points]

    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        raise click.ClickException(
            f"{variant} exited with status {result.returncode}\n"
            f"stdout:\n{result.stdout}\nstderr:\n{result.stderr}"
        )
    return result.stdout


@click.command(context_settings={"ignore_unknown_options": True})
@click.argument("points", nargs=-1, type=click.UNPROCESSED)
@click.option("--scale", type=int, help="Fixed-point scale factor M")
@click.option("--width", type=int, help="Ciphertext integer width in bits")
@click.option("--backend", type=click.Choice([b.value for b in BackendKind]), help="Encryption backend")
def aggregate(points: Sequence[str], scale: Optional[int], width: Optional[int], backend: Optional[str]):
    """Run the a-term and full-distance variants and tabulate their timings.

    \b
    POINTS is passed through to each run: empty, or nine values
      NAME_X LAT_X LON_X NAME_Y LAT_Y LON_Y NAME_Z LAT_Z LON_Z
    """
    if len(points) not in (0, 9):
        print_error(USAGE)
        sys.exit(2)

    options = []
    if scale is not None:
        options += ["--scale", str(scale)]
    if width is not None:
        options += ["--width", str(width)]
    if backend is not None:
        options += ["--backend", backend]

    columns = {}
    for variant in VARIANTS:
        console.print(f"Running {variant}...")
        columns[f"{variant} (s)"] = parse_timings(run_variant(variant, points, options))

    names = points[0::3] if points else [p.label for p in DEFAULT_POINTS]
    labels = ordered_labels(names, *columns.values())

    console.print()
    console.print(timing_table(labels, columns, title="Aggregated timings (seconds)"))
