"""
Config system - Layered typed settings for the facet engine.

Settings are merged with the following precedence (later wins):

    defaults < .env file < environment variables < explicit overrides

Environment variables use the ``FACETCRAFT_`` prefix, e.g.
``FACETCRAFT_DEFAULT_MAX_DEPTH=3``.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, get_type_hints

from dotenv import dotenv_values

from .faults.core import Fault, FaultDomain

logger = logging.getLogger("facetcraft.config")

__all__ = [
    "FacetSettings",
    "ConfigLoader",
    "ConfigFault",
    "get_settings",
    "configure",
    "reset_settings",
]


class ConfigFault(Fault):
    """Raised when configuration validation fails."""

    code = "CONFIG_INVALID"
    domain = FaultDomain.CONFIG

    def __init__(self, key: str, message: str):
        super().__init__(
            message=f"Invalid setting '{key}': {message}",
            metadata={"key": key},
        )
        self.key = key


@dataclass(frozen=True)
class FacetSettings:
    """
    Process-wide engine settings.

    Attributes:
        default_max_depth: Nesting depth used when a facet declares none.
            ``0`` disables the depth guard.
        default_preserve_references: Whether converters track visited
            objects when a facet declares nothing.
        flatten_max_depth: Cap for widening single-valued nested members
            into flat row columns.
        strict_declarations: Raise declaration faults while the facet
            class statement executes instead of deferring them to first use.
    """

    default_max_depth: int = 10
    default_preserve_references: bool = True
    flatten_max_depth: int = 5
    strict_declarations: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class ConfigLoader:
    """
    Loads and merges settings from multiple sources with precedence:
    overrides > environment variables > .env file > defaults
    """

    def __init__(self, env_prefix: str = "FACETCRAFT_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        env_prefix: str = "FACETCRAFT_",
        env_file: Optional[str] = ".env",
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load settings from every source.

        Args:
            env_prefix: Prefix for environment variables
            env_file: Path to .env file (skipped if it does not exist)
            overrides: Manual overrides (highest precedence)
        """
        loader = cls(env_prefix=env_prefix)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env()

        if overrides:
            loader.config_data.update(overrides)

        return loader

    def _load_env_file(self, path: str):
        """Load prefixed keys from a .env file."""
        env_path = Path(path)
        if not env_path.exists():
            return

        for key, value in dotenv_values(env_path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_key(key, value)

    def _load_from_env(self):
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_key(key, value)

    def _set_key(self, key: str, value: str):
        """Convert FACETCRAFT_DEFAULT_MAX_DEPTH to default_max_depth."""
        key = key[len(self.env_prefix):].lower()
        self.config_data[key] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        # Boolean
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        # Number
        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        # JSON
        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def get(self, key: str, default: Any = None) -> Any:
        return self.config_data.get(key, default)

    def build_settings(self) -> FacetSettings:
        """Instantiate FacetSettings, checking the type of every known key."""
        hints = get_type_hints(FacetSettings)
        kwargs: Dict[str, Any] = {}
        for f in fields(FacetSettings):
            if f.name not in self.config_data:
                continue
            value = self.config_data[f.name]
            expected = hints[f.name]
            if expected is bool and isinstance(value, int) and not isinstance(value, bool):
                # "1"/"0" parse as ints
                value = bool(value)
            if expected is int and (isinstance(value, bool) or not isinstance(value, int)):
                raise ConfigFault(f.name, f"expected int, got {value!r}")
            if expected is bool and not isinstance(value, bool):
                raise ConfigFault(f.name, f"expected bool, got {value!r}")
            kwargs[f.name] = value

        unknown = set(self.config_data) - set(hints)
        if unknown:
            logger.debug("Ignoring unknown settings: %s", sorted(unknown))

        settings = FacetSettings(**kwargs)
        if settings.default_max_depth < 0:
            raise ConfigFault("default_max_depth", "must be >= 0")
        if settings.flatten_max_depth < 1:
            raise ConfigFault("flatten_max_depth", "must be >= 1")
        return settings


# ── Process-wide settings ────────────────────────────────────────────────

_settings: Optional[FacetSettings] = None
_settings_lock = threading.Lock()


def get_settings() -> FacetSettings:
    """Return the active settings, loading them on first access."""
    global _settings
    if _settings is None:
        with _settings_lock:
            if _settings is None:
                _settings = ConfigLoader.load().build_settings()
                logger.debug("Loaded settings: %s", _settings.to_dict())
    return _settings


def configure(**overrides: Any) -> FacetSettings:
    """
    Replace individual settings for the current process.

    Built facet models are discarded so the new defaults apply to
    subsequent conversions.
    """
    global _settings
    current = get_settings()
    loader = ConfigLoader()
    loader.config_data.update(current.to_dict())
    loader.config_data.update(overrides)
    with _settings_lock:
        _settings = loader.build_settings()

    from .facets.cache import synthesis_cache

    synthesis_cache.clear()
    return _settings


def reset_settings() -> None:
    """Forget loaded settings; the next access reloads them."""
    global _settings
    with _settings_lock:
        _settings = None

    from .facets.cache import synthesis_cache

    synthesis_cache.clear()
