"""Circuit budget command."""

import sys
from typing import Optional

import click

from config.pipeline import MAX_SERIES_DEGREE, CompareMode
from services.errors import GeoProximityError
from services.geo import CircuitBudget

from ..config import build_config
from ..output import console, dict_table, print_error, print_success, print_warning


@click.command()
@click.option("--mode", type=click.Choice([m.value for m in CompareMode]), help="Circuit variant")
@click.option("--scale", type=int, help="Fixed-point scale factor M")
@click.option("--degree", type=click.IntRange(1, MAX_SERIES_DEGREE), help="sin^2(x/2) series terms")
@click.option("--width", type=int, help="Ciphertext integer width in bits")
@click.option("--samples", type=click.IntRange(2, None), default=2049, show_default=True,
              help="Points in the series sweep")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="YAML profiles file")
@click.option("--profile", "-p", help="Profile name inside the profiles file")
def budget(
    mode: Optional[str],
    scale: Optional[int],
    degree: Optional[int],
    width: Optional[int],
    samples: int,
    config_path: Optional[str],
    profile: Optional[str],
):
    """Check that a configuration fits its integer width.

    \b
    Reports the bits the largest intermediate needs, the multiplicative
    depth, and the measured series error over the whole delta domain.

    \b
    Examples:
      geoprox budget
      geoprox budget --scale 1000000 --width 64 --degree 3
    """
    overrides = {
        "compare_mode": CompareMode(mode) if mode else None,
        "scale": scale,
        "series_degree": degree,
        "width": width,
    }

    try:
        config = build_config(config_path, profile, overrides)
        for issue in config.validate():
            print_warning(issue)
        circuit_budget = CircuitBudget()
        bounds = circuit_budget.analyse(config)
        report = circuit_budget.verify_series_domain(config, samples=samples)
    except GeoProximityError as e:
        print_error(f"{type(e).__name__}: {e}")
        sys.exit(1)

    summary = bounds.to_dict()
    summary["series_max_error"] = report.max_error
    summary["series_samples"] = report.samples
    console.print(dict_table(summary, title=f"Circuit budget ({config.variant_name})"))

    if report.within_bound:
        print_success(f"Fits: {bounds.required_bits} of {bounds.width} bits, depth {bounds.max_depth}")
    else:
        print_warning(
            f"Series error {report.max_error:.3e} exceeds documented bound {report.error_bound:.3e}"
        )
        sys.exit(1)
