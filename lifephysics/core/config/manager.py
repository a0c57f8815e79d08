"""
Game balance configuration for Life Physics.

Purpose
-------
Loads every YAML file under ``Config.CONFIG_DIR`` into an in-memory cache and
serves values with dot-notation lookup (e.g. ``rewards.task.critical_chance``).
All reward tuning is externalized here so balance changes never need code
edits.

Responsibilities
----------------
- Recursively load ``*.yaml`` / ``*.yml`` files (merged in path order)
- Dot-notation access with defaults
- Runtime overrides for tests and live tuning (``set``)
- Simple usage metrics

Non-Responsibilities
--------------------
- Environment configuration (handled by Config)
- Interpreting values (domain factories such as ``RewardTable.from_mapping``)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from lifephysics.core.config.config import Config
from lifephysics.core.exceptions import ConfigurationError
from lifephysics.core.logging.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


class ConfigManager:
    """
    YAML-backed configuration with dot-notation access.

    Usage
    -----
    >>> ConfigManager.initialize()
    >>> ConfigManager.get("rewards.task.critical_chance", 0.2)
    0.2
    """

    _cache: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Optional[Path] = None

    _metrics: Dict[str, int] = {
        "gets": 0,
        "sets": 0,
        "fallback_to_defaults": 0,
        "files_loaded": 0,
    }

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """
        Load all YAML files from the config directory into the cache.

        A missing directory is not an error: every lookup then falls back to
        its default. A malformed YAML file is.

        Raises
        ------
        ConfigurationError
            If a YAML file cannot be parsed or its top level is not a mapping.
        """
        directory = Path(config_dir) if config_dir is not None else Config.CONFIG_DIR
        cls._config_dir = directory
        cls._cache = {}
        cls._metrics["files_loaded"] = 0

        if not directory.exists():
            logger.warning(
                "Config directory not found, using built-in defaults",
                extra={"config_dir": str(directory)},
            )
            cls._initialized = True
            return

        yaml_files = sorted(directory.rglob("*.yaml")) + sorted(directory.rglob("*.yml"))
        for yaml_file in yaml_files:
            relative = str(yaml_file.relative_to(directory))
            try:
                with open(yaml_file, "r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except yaml.YAMLError as exc:
                raise ConfigurationError(relative, f"invalid YAML: {exc}") from exc

            if data is None:
                continue
            if not isinstance(data, dict):
                raise ConfigurationError(relative, "top level must be a mapping")

            cls._deep_merge(cls._cache, data)
            cls._metrics["files_loaded"] += 1
            logger.debug("Loaded YAML config", extra={"file": relative})

        cls._initialized = True
        logger.info(
            "ConfigManager initialized",
            extra={
                "config_dir": str(directory),
                "yaml_count": cls._metrics["files_loaded"],
                "top_level_keys": sorted(cls._cache.keys()),
            },
        )

    @classmethod
    def reset(cls) -> None:
        cls._cache = {}
        cls._initialized = False
        cls._config_dir = None

    @staticmethod
    def _deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> None:
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge(target[key], value)
            else:
                target[key] = value

    # =========================================================================
    # ACCESS
    # =========================================================================

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """Return the value at a dotted key, or ``default`` when absent."""
        if not cls._initialized:
            cls.initialize()

        cls._metrics["gets"] += 1
        node: Any = cls._cache
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                cls._metrics["fallback_to_defaults"] += 1
                return default
            node = node[part]
        return node

    @classmethod
    def get_section(cls, key: str) -> Dict[str, Any]:
        """Return a mapping section (empty dict when missing or not a mapping)."""
        value = cls.get(key, _MISSING)
        if value is _MISSING or not isinstance(value, dict):
            return {}
        return value

    @classmethod
    def set(cls, key: str, value: Any) -> None:
        """Override a value in memory (not persisted)."""
        if not cls._initialized:
            cls.initialize()

        cls._metrics["sets"] += 1
        parts = key.split(".")
        node = cls._cache
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

        logger.info("Config value overridden", extra={"config_key": key})

    @classmethod
    def get_metrics(cls) -> Dict[str, int]:
        return dict(cls._metrics)
