"""Encrypted comparison command."""

import sys
from typing import List, Optional, Sequence

import click

from config.pipeline import (
    MAX_SERIES_DEGREE,
    BackendKind,
    CompareMode,
    LongitudeConvention,
)
from services.errors import ArgumentError, CoordinateError, GeoProximityError
from services.geo import ComparisonReport, GeoPoint, ProximityPipeline

from ..config import build_config
from ..output import console, dict_table, print_error, print_timing_lines, print_warning

USAGE = "Expected either 0 args or 9 args: name1 lat1 lon1 name2 lat2 lon2 name3 lat3 lon3"

DEFAULT_POINTS = (
    GeoPoint("Basel", 47.5596, 7.5886),
    GeoPoint("Lugano", 46.0037, 8.9511),
    GeoPoint("Zurich", 47.3769, 8.5417),
)


def parse_points(args: Sequence[str]) -> List[GeoPoint]:
    """
    Turn 0 or 9 positional arguments into X, Y and Z.

    Raises:
        ArgumentError: on any other count or an unparsable coordinate
    """
    if not args:
        return list(DEFAULT_POINTS)
    if len(args) != 9:
        raise ArgumentError(f"Got {len(args)} arguments. {USAGE}")

    points = []
    for i in range(0, 9, 3):
        name, lat, lon = args[i:i + 3]
        try:
            latitude, longitude = float(lat), float(lon)
        except ValueError:
            raise ArgumentError(f"Invalid coordinate for '{name}': {lat} {lon}")
        points.append(GeoPoint(name, latitude, longitude))
    return points


def format_result(report: ComparisonReport) -> str:
    relation = "closer to" if report.x_closer else "farther from"
    return f"Result (FHE): {report.x_label} is {relation} {report.z_label} than {report.y_label}"


def format_baseline(report: ComparisonReport) -> str:
    baseline = report.baseline
    return (
        f"Baseline (haversine): {report.x_label}-{report.z_label} = {baseline.xz_km:.3f} km, "
        f"{report.y_label}-{report.z_label} = {baseline.yz_km:.3f} km "
        f"({baseline.seconds * 1000:.3f} ms)"
    )


@click.command(context_settings={"ignore_unknown_options": True})
@click.argument("points", nargs=-1, type=click.UNPROCESSED)
@click.option(
    "--mode",
    type=click.Choice([m.value for m in CompareMode]),
    help="Compare haversine 'a' terms or full distances",
)
@click.option("--scale", type=int, help="Fixed-point scale factor M")
@click.option("--degree", type=click.IntRange(1, MAX_SERIES_DEGREE), help="sin^2(x/2) series terms")
@click.option("--width", type=int, help="Ciphertext integer width in bits")
@click.option("--backend", type=click.Choice([b.value for b in BackendKind]), help="Encryption backend")
@click.option(
    "--convention",
    type=click.Choice([c.value for c in LongitudeConvention]),
    help="Longitude normalisation range",
)
@click.option("--no-fold", is_flag=True, help="Do not fold longitude deltas across the antimeridian")
@click.option("--parallel", is_flag=True, help="Evaluate both candidate pairs in worker threads")
@click.option("--no-baseline", is_flag=True, help="Skip the plaintext haversine baseline")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="YAML profiles file")
@click.option("--profile", "-p", help="Profile name inside the profiles file")
@click.pass_context
def compare(
    ctx: click.Context,
    points: Sequence[str],
    mode: Optional[str],
    scale: Optional[int],
    degree: Optional[int],
    width: Optional[int],
    backend: Optional[str],
    convention: Optional[str],
    no_fold: bool,
    parallel: bool,
    no_baseline: bool,
    config_path: Optional[str],
    profile: Optional[str],
):
    """Decide under encryption whether X or Y is closer to Z.

    \b
    POINTS is empty (Basel, Lugano, Zurich) or nine values:
      NAME_X LAT_X LON_X NAME_Y LAT_Y LON_Y NAME_Z LAT_Z LON_Z

    \b
    Examples:
      geoprox compare
      geoprox compare Tokyo 35.6762 139.6503 NewYork 40.7128 -74.0060 London 51.5074 -0.1278
      geoprox compare --mode full-distance --parallel
    """
    obj = ctx.obj or {}
    verbose = obj.get("verbose", False)

    try:
        x, y, z = parse_points(points)
    except (ArgumentError, CoordinateError) as e:
        print_error(str(e))
        click.echo(ctx.get_usage(), err=True)
        sys.exit(2)

    overrides = {
        "compare_mode": CompareMode(mode) if mode else None,
        "scale": scale,
        "series_degree": degree,
        "width": width,
        "backend": BackendKind(backend) if backend else None,
        "longitude_convention": LongitudeConvention(convention) if convention else None,
        "fold_antimeridian": False if no_fold else None,
        "parallel": True if parallel else None,
        "include_baseline": False if no_baseline else None,
    }

    try:
        config = build_config(config_path, profile, overrides)
        pipeline = ProximityPipeline(config)
        report = pipeline.compare(x, y, z)
    except GeoProximityError as e:
        print_error(f"{type(e).__name__}: {e}")
        if verbose:
            console.print_exception()
        sys.exit(1)

    print_timing_lines(report.timing_lines())
    click.echo("")
    click.echo(format_result(report))

    if report.baseline is not None:
        click.echo(format_baseline(report))
        if not report.agrees_with_baseline:
            print_warning("Encrypted ordering disagrees with the plaintext haversine baseline")

    if verbose:
        console.print(dict_table(report.stats.to_dict(), title="Circuit statistics"))
