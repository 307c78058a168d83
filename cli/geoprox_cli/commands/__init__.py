"""
GeoProx CLI Commands.

This module contains all CLI commands of the GeoProx tool.
"""

from geoprox_cli.commands.compare import compare
from geoprox_cli.commands.aggregate import aggregate
from geoprox_cli.commands.budget import budget
from geoprox_cli.commands.config import config

__all__ = ["compare", "aggregate", "budget", "config"]
