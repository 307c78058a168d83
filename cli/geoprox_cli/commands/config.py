"""Configuration profile commands."""

import sys
from pathlib import Path
from typing import Optional

import click

from config.pipeline import CompareMode
from services.errors import ConfigError

from ..config import ProfileConfig, ProfilesFile, build_config, write_profiles
from ..output import console, dict_table, print_error, print_success


@click.group()
def config():
    """Manage pipeline configuration profiles."""


@config.command()
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file")
def init(path: str, force: bool):
    """Write a starter profiles file.

    \b
    Profiles:
      default        compare haversine 'a' terms
      full-distance  also run square root, arcsin and radius multiply
      small-angle    single-term sin^2(x/2) series
    """
    target = Path(path)
    if target.exists() and not force:
        print_error(f"{target} already exists (use --force to overwrite)")
        sys.exit(1)

    profiles = ProfilesFile(
        default_profile="default",
        profiles={
            "default": ProfileConfig(compare_mode=CompareMode.A_TERM),
            "full-distance": ProfileConfig(compare_mode=CompareMode.FULL_DISTANCE),
            "small-angle": ProfileConfig(variant="small-angle"),
        },
    )

    try:
        write_profiles(target, profiles)
    except ConfigError as e:
        print_error(str(e))
        sys.exit(1)
    print_success(f"Profiles written to {target}")


@config.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="YAML profiles file")
@click.option("--profile", "-p", help="Profile name inside the profiles file")
def show(config_path: Optional[str], profile: Optional[str]):
    """Show the resolved pipeline configuration."""
    try:
        resolved = build_config(config_path, profile)
    except ConfigError as e:
        print_error(str(e))
        sys.exit(1)
    console.print(dict_table(resolved.to_dict(), title="Pipeline configuration"))
