"""
Profile — platform profiles and the build configuration.

The configuration is loaded once and is immutable afterwards, so a single
instance can be shared by any number of concurrently running pipelines.
Every command line, library path, library and framework the pipeline
passes to the toolchain comes from here; pipeline code holds no literals.

Command templates come in two explicit shapes:

  - a single string: rendered, then split on whitespace (legacy mode;
    substituted values containing spaces become several arguments);
  - a list of strings: each element rendered on its own, one argument per
    element (token mode).
"""
from __future__ import annotations

from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from extender import MANIFEST_NAME
from extender.errors import ConfigurationError

CommandTemplate = Union[str, Tuple[str, ...]]

RESOURCES_DIR = Path(__file__).resolve().parent.parent / "resources"
DEFAULT_CONFIG_PATH = RESOURCES_DIR / "build.yml"


def _freeze(value: Any) -> Any:
    """Read-only copy: mappings become MappingProxyType, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


class PlatformProfile(BaseModel):
    """Toolchain templates and fixed link inputs for one target platform."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    compile: CommandTemplate
    lib: CommandTemplate
    link: CommandTemplate
    includes: Tuple[str, ...] = Field(default_factory=tuple)
    exe_ext: str = Field("", alias="exeExt")

    # Fixed link inputs, exposed to the link template context
    lib_paths: Tuple[str, ...] = Field(default_factory=tuple, alias="libPaths")
    libs: Tuple[str, ...] = Field(default_factory=tuple)
    frameworks: Tuple[str, ...] = Field(default_factory=tuple)


class Configuration(BaseModel):
    """Build configuration: platform profiles plus global template inputs."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    platforms: Mapping[str, PlatformProfile]
    context: Mapping[str, Any] = Field(default_factory=lambda: MappingProxyType({}))
    exported_symbols: Tuple[str, ...] = Field(default_factory=tuple, alias="exportedSymbols")
    binary_name: str = Field("engine", alias="binaryName")
    manifest_name: str = Field(MANIFEST_NAME, alias="manifestName")

    @field_validator("platforms", "context", mode="after")
    @classmethod
    def _read_only(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return _freeze(value)

    def platform(self, name: str) -> PlatformProfile:
        """Return the profile for *name* or raise ConfigurationError."""
        try:
            return self.platforms[name]
        except KeyError:
            known = ", ".join(sorted(self.platforms)) or "(none)"
            raise ConfigurationError(
                f"Unknown platform '{name}' (configured: {known})"
            ) from None

    @classmethod
    def default(cls) -> "Configuration":
        """The bundled configuration (resources/build.yml)."""
        return load_configuration(DEFAULT_CONFIG_PATH)


def load_configuration(path: Path) -> Configuration:
    """
    Decode and validate a YAML configuration file.

    Raises
    ------
    ConfigurationError
        If the file cannot be read, is not valid YAML, or does not match
        the configuration schema.
    """
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration {path} must be a mapping")

    try:
        return Configuration.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration {path}: {e}") from e
