"""
Static configuration for Life Physics.

Values come from environment variables (``.env`` supported through
python-dotenv) and are read once at import time. Reward balance does not
live here; it is YAML loaded by ``ConfigManager``.

Environment Variables
---------------------
All optional:

- ENVIRONMENT: development | testing | staging | production
- LOG_LEVEL, LOG_JSON: logging verbosity and output format
- DATABASE_URL: async SQLAlchemy URL of the cloud store; empty means
  device-only trackers
- DATABASE_POOL_SIZE, DATABASE_MAX_OVERFLOW, DATABASE_POOL_RECYCLE,
  DATABASE_POOL_TIMEOUT, DATABASE_ECHO: engine tuning
- SYNC_ENABLED: master switch for cloud sync (default: true)
- DATA_DIR, LOGS_DIR, CONFIG_DIR: directories, relative to the project root
  unless absolute
- STORAGE_PREFIX: file-name prefix of local snapshots
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()


class Environment(Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        >>> Environment.from_string("Production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("nope") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            # The structured logger reads Config, so it is not up yet.
            logging.warning(f"Unknown environment '{value}', defaulting to development")
            return cls.DEVELOPMENT


class Config:
    """
    Class-level settings; never instantiated.

    >>> Config.sync_configured()
    False
    """

    _validated: bool = False

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None

    # Cloud sync store
    DATABASE_URL: str = ""
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 5
    DATABASE_POOL_RECYCLE: int = 1800
    DATABASE_POOL_TIMEOUT: int = 30
    DATABASE_ECHO: bool = False

    SYNC_ENABLED: bool = True

    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"
    DATA_DIR = PROJECT_ROOT / "data"
    CONFIG_DIR = PROJECT_ROOT / "config"

    # Matches the key prefix of snapshots written by earlier releases.
    STORAGE_PREFIX: str = "life_physics_v1_"

    APP_VERSION: str = "1.0.0"

    # =========================================================================
    # Environment parsing
    # =========================================================================

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Integer from the environment; unparsable or out-of-range values fall
        back to ``default`` with a warning.
        """
        raw = os.getenv(key)
        if raw is None:
            return default

        try:
            value = int(raw)
        except ValueError:
            logging.warning(f"{key}='{raw}' is not an integer, using {default}")
            return default

        if (min_val is not None and value < min_val) or (max_val is not None and value > max_val):
            logging.warning(f"{key}={value} outside [{min_val}, {max_val}], using {default}")
            return default
        return value

    @classmethod
    def _safe_bool(cls, key: str, default: bool) -> bool:
        raw = os.getenv(key)
        if raw is None:
            return default

        normalized = raw.strip().lower()
        if normalized in {"true", "yes", "1", "on"}:
            return True
        if normalized in {"false", "no", "0", "off"}:
            return False

        logging.warning(f"{key}='{raw}' is not a boolean, using {default}")
        return default

    @classmethod
    def _safe_optional_bool(cls, key: str) -> Optional[bool]:
        if os.getenv(key) is None:
            return None
        return cls._safe_bool(key, False)

    @classmethod
    def _safe_path(cls, key: str, default: Path) -> Path:
        raw = os.getenv(key, "")
        if not raw:
            return default
        path = Path(raw)
        return path if path.is_absolute() else cls.PROJECT_ROOT / path

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        cls.ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
        cls.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._safe_optional_bool("LOG_JSON")

        cls.DATABASE_URL = os.getenv("DATABASE_URL", "")
        cls.DATABASE_POOL_SIZE = cls._safe_int("DATABASE_POOL_SIZE", 5, min_val=1, max_val=100)
        cls.DATABASE_MAX_OVERFLOW = cls._safe_int("DATABASE_MAX_OVERFLOW", 5, min_val=0, max_val=100)
        cls.DATABASE_POOL_RECYCLE = cls._safe_int("DATABASE_POOL_RECYCLE", 1800, min_val=60)
        cls.DATABASE_POOL_TIMEOUT = cls._safe_int("DATABASE_POOL_TIMEOUT", 30, min_val=1, max_val=300)
        cls.DATABASE_ECHO = cls._safe_bool("DATABASE_ECHO", False)

        cls.SYNC_ENABLED = cls._safe_bool("SYNC_ENABLED", True)

        cls.LOGS_DIR = cls._safe_path("LOGS_DIR", cls.PROJECT_ROOT / "logs")
        cls.DATA_DIR = cls._safe_path("DATA_DIR", cls.PROJECT_ROOT / "data")
        cls.CONFIG_DIR = cls._safe_path("CONFIG_DIR", cls.PROJECT_ROOT / "config")
        cls.STORAGE_PREFIX = os.getenv("STORAGE_PREFIX", "life_physics_v1_")

    @classmethod
    def validate(cls) -> None:
        """
        Load and sanity-check the settings. Only production refuses to start
        on an unexpected error; elsewhere it is logged.
        """
        if cls._validated:
            return

        logger = logging.getLogger(__name__)

        try:
            cls.load()

            if cls.LOG_LEVEL.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
                logger.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
                cls.LOG_LEVEL = "INFO"

            if cls.DATABASE_URL and "+" not in cls.DATABASE_URL.split("://", 1)[0]:
                logger.warning("DATABASE_URL has no async driver (e.g. postgresql+asyncpg://)")

            if cls.is_production() and not cls.DATABASE_URL:
                logger.warning("Production environment without DATABASE_URL; cloud sync disabled")

            cls.DATA_DIR.mkdir(parents=True, exist_ok=True)
            cls._validated = True

        except Exception as e:
            logger.warning(f"Config validation failed: {e}")
            if cls.is_production():
                raise

    # =========================================================================
    # Queries
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        return Environment.from_string(cls.ENVIRONMENT) == Environment.PRODUCTION

    @classmethod
    def is_testing(cls) -> bool:
        return Environment.from_string(cls.ENVIRONMENT) == Environment.TESTING

    @classmethod
    def sync_configured(cls) -> bool:
        """Cloud sync needs both the master switch and a database URL."""
        return cls.SYNC_ENABLED and bool(cls.DATABASE_URL)

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """Non-sensitive settings, for startup logs."""
        return {
            "environment": cls.ENVIRONMENT,
            "log_level": cls.LOG_LEVEL,
            "database_url_set": bool(cls.DATABASE_URL),
            "database_pool_size": cls.DATABASE_POOL_SIZE,
            "sync_enabled": cls.SYNC_ENABLED,
            "storage_prefix": cls.STORAGE_PREFIX,
            "app_version": cls.APP_VERSION,
        }


Config.validate()
