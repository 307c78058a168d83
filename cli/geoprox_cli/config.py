"""
Configuration profiles for the GeoProx CLI.

Pipeline settings are resolved from (lowest to highest priority):
- PipelineConfig defaults
- a profile in a YAML file (--config)
- GEOPROX_* environment variables
- command line options
"""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from config.pipeline import (
    MAX_ARCSIN_TERMS,
    MAX_SERIES_DEGREE,
    BackendKind,
    CompareMode,
    LongitudeConvention,
    PipelineConfig,
)
from services.errors import ConfigError


class ProfileConfig(BaseModel):
    """Pipeline settings of one profile; unset fields keep their defaults."""

    model_config = ConfigDict(extra="forbid")

    variant: Optional[str] = Field(default=None, description="Named variant: a-term, full-distance, small-angle")
    scale: Optional[int] = Field(default=None, ge=2, description="Fixed-point scale factor M")
    width: Optional[int] = Field(default=None, ge=8, description="Ciphertext integer width in bits")
    series_degree: Optional[int] = Field(default=None, ge=1, le=MAX_SERIES_DEGREE)
    arcsin_terms: Optional[int] = Field(default=None, ge=1, le=MAX_ARCSIN_TERMS)
    longitude_convention: Optional[LongitudeConvention] = None
    fold_antimeridian: Optional[bool] = None
    compare_mode: Optional[CompareMode] = None
    backend: Optional[BackendKind] = None
    parallel: Optional[bool] = None
    include_baseline: Optional[bool] = None

    def apply(self, base: PipelineConfig) -> PipelineConfig:
        """Overlay the fields this profile sets onto a configuration."""
        config = base
        if self.variant:
            try:
                config = PipelineConfig.for_variant(self.variant, base=config)
            except ValueError as e:
                raise ConfigError(str(e)) from e
        overrides = self.model_dump(exclude_none=True, exclude={"variant"})
        return PipelineConfig(**{**_config_fields(config), **overrides})


class ProfilesFile(BaseModel):
    """Top-level layout of a profiles file."""

    model_config = ConfigDict(extra="forbid")

    default_profile: str = Field(default="default", description="Profile used when none is named")
    profiles: Dict[str, ProfileConfig] = Field(default_factory=lambda: {"default": ProfileConfig()})


def _config_fields(config: PipelineConfig) -> Dict[str, Any]:
    return {name: getattr(config, name) for name in PipelineConfig.__dataclass_fields__}


def load_profiles(path: Path) -> ProfilesFile:
    """Read and validate a profiles file."""
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}")
    except IOError as e:
        raise ConfigError(f"Failed to read config file: {e}")

    try:
        return ProfilesFile(**data)
    except (TypeError, ValidationError) as e:
        raise ConfigError(f"Invalid config file {path}: {e}")


def get_profile(profiles: ProfilesFile, profile_name: Optional[str] = None) -> ProfileConfig:
    """Get a specific profile configuration."""
    name = profile_name or profiles.default_profile

    if name not in profiles.profiles:
        raise ConfigError(f"Profile '{name}' not found. Available profiles: {list(profiles.profiles.keys())}")

    return profiles.profiles[name]


def build_config(
    config_path: Optional[str] = None,
    profile: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> PipelineConfig:
    """
    Resolve the pipeline configuration for one command invocation.

    Args:
        config_path: Optional YAML profiles file
        profile: Profile name inside the file
        overrides: Command line values; None entries are ignored

    Returns:
        The resolved PipelineConfig
    """
    config = PipelineConfig()

    if config_path:
        config = get_profile(load_profiles(Path(config_path)), profile).apply(config)

    try:
        config = PipelineConfig.from_env(base=config)
    except ValueError as e:
        raise ConfigError(f"Invalid GEOPROX_* environment value: {e}") from e

    values = {k: v for k, v in (overrides or {}).items() if v is not None}
    if values:
        config = PipelineConfig(**{**_config_fields(config), **values})

    return config


def write_profiles(path: Path, profiles: ProfilesFile) -> None:
    """Save a profiles file."""
    try:
        data = profiles.model_dump(mode="json", exclude_none=True)
        with open(path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    except IOError as e:
        raise ConfigError(f"Failed to write config file: {e}")
