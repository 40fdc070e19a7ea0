# neon/config.py
"""
Configuration management for the NEON network engine.
Loads from .env, exposes typed defaults for the compensation and territory engines.
"""
import os
import logging
from typing import Any, Dict
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Configuration error exception."""
    pass


class Config:
    """
    Configuration manager with static and dynamic values.

    Usage:
        # Load from .env
        Config.initialize_from_env()

        # Get value
        url = Config.get(Config.DATABASE_URL)

        # Override at runtime (tests, admin tooling)
        Config.set(Config.BINARY_DAILY_CAP_CENTS, 100_000)
    """

    # ═══════════════════════════════════════════════════════════════════════
    # CONFIGURATION KEYS
    # ═══════════════════════════════════════════════════════════════════════

    # Database
    DATABASE_URL = "DATABASE_URL"
    DATABASE_ECHO = "DATABASE_ECHO"

    # Logging
    LOG_LEVEL = "LOG_LEVEL"
    LOG_FILE = "LOG_FILE"

    # Distributor network
    DISTRIBUTOR_CODE_PREFIX = "DISTRIBUTOR_CODE_PREFIX"
    DISTRIBUTOR_CODE_LENGTH = "DISTRIBUTOR_CODE_LENGTH"
    CODE_GENERATION_ATTEMPTS = "CODE_GENERATION_ATTEMPTS"

    # Compensation plan
    BINARY_DAILY_CAP_CENTS = "BINARY_DAILY_CAP_CENTS"
    FAST_START_DURATION_DAYS = "FAST_START_DURATION_DAYS"

    # ═══════════════════════════════════════════════════════════════════════
    # DEFAULTS (used when a key is not set, also before initialization)
    # ═══════════════════════════════════════════════════════════════════════

    DEFAULTS: Dict[str, Any] = {
        DATABASE_URL: "sqlite:///neon.db",
        DATABASE_ECHO: False,
        LOG_LEVEL: "INFO",
        LOG_FILE: None,
        DISTRIBUTOR_CODE_PREFIX: "NEON",
        DISTRIBUTOR_CODE_LENGTH: 6,
        CODE_GENERATION_ATTEMPTS: 5,
        BINARY_DAILY_CAP_CENTS: 250_000,
        FAST_START_DURATION_DAYS: 30,
    }

    # ═══════════════════════════════════════════════════════════════════════
    # STORAGE
    # ═══════════════════════════════════════════════════════════════════════

    _config: Dict[str, Any] = {}
    _initialized: bool = False

    # ═══════════════════════════════════════════════════════════════════════
    # METHODS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def initialize_from_env(cls) -> None:
        """
        Load configuration from .env file and process environment.

        Raises:
            ConfigurationError: If a value cannot be parsed
        """
        load_dotenv()

        logger.info("Loading configuration from environment...")

        try:
            # Database
            cls._config[cls.DATABASE_URL] = os.getenv(
                "DATABASE_URL",
                cls.DEFAULTS[cls.DATABASE_URL]
            )
            cls._config[cls.DATABASE_ECHO] = os.getenv("DATABASE_ECHO", "false").lower() == "true"

            # Logging
            cls._config[cls.LOG_LEVEL] = os.getenv("LOG_LEVEL", cls.DEFAULTS[cls.LOG_LEVEL]).upper()
            cls._config[cls.LOG_FILE] = os.getenv("LOG_FILE") or None

            # Distributor network
            cls._config[cls.DISTRIBUTOR_CODE_PREFIX] = os.getenv(
                "DISTRIBUTOR_CODE_PREFIX",
                cls.DEFAULTS[cls.DISTRIBUTOR_CODE_PREFIX]
            ).upper()
            cls._config[cls.DISTRIBUTOR_CODE_LENGTH] = int(
                os.getenv("DISTRIBUTOR_CODE_LENGTH", str(cls.DEFAULTS[cls.DISTRIBUTOR_CODE_LENGTH]))
            )
            cls._config[cls.CODE_GENERATION_ATTEMPTS] = int(
                os.getenv("CODE_GENERATION_ATTEMPTS", str(cls.DEFAULTS[cls.CODE_GENERATION_ATTEMPTS]))
            )

            # Compensation plan
            cls._config[cls.BINARY_DAILY_CAP_CENTS] = int(
                os.getenv("BINARY_DAILY_CAP_CENTS", str(cls.DEFAULTS[cls.BINARY_DAILY_CAP_CENTS]))
            )
            cls._config[cls.FAST_START_DURATION_DAYS] = int(
                os.getenv("FAST_START_DURATION_DAYS", str(cls.DEFAULTS[cls.FAST_START_DURATION_DAYS]))
            )

            cls._initialized = True
            logger.info("Configuration loaded from environment successfully")

        except ValueError as e:
            logger.error(f"Failed to load configuration: {e}")
            raise ConfigurationError(f"Configuration loading failed: {e}")

        cls.validate()

    @classmethod
    def validate(cls) -> None:
        """
        Validate numeric ranges of loaded values.

        Raises:
            ConfigurationError: If any value is out of range
        """
        problems = []

        if cls.get(cls.DISTRIBUTOR_CODE_LENGTH) < 4:
            problems.append("DISTRIBUTOR_CODE_LENGTH must be at least 4")
        if cls.get(cls.CODE_GENERATION_ATTEMPTS) < 1:
            problems.append("CODE_GENERATION_ATTEMPTS must be positive")
        if cls.get(cls.BINARY_DAILY_CAP_CENTS) < 0:
            problems.append("BINARY_DAILY_CAP_CENTS must not be negative")
        if not str(cls.get(cls.DISTRIBUTOR_CODE_PREFIX)).isalnum():
            problems.append("DISTRIBUTOR_CODE_PREFIX must be alphanumeric")

        if problems:
            error_msg = f"Invalid configuration: {'; '.join(problems)}"
            logger.critical(error_msg)
            raise ConfigurationError(error_msg)

        logger.info("Configuration validated ✓")

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Get configuration value.

        Falls back to DEFAULTS, then to the explicit default.
        """
        if key in cls._config:
            return cls._config[key]
        if default is not None:
            return default
        return cls.DEFAULTS.get(key)

    @classmethod
    def set(cls, key: str, value: Any, source: str = "runtime") -> None:
        """
        Set configuration value (for dynamic updates).

        Args:
            key: Configuration key
            value: New value
            source: Source of the update (for logging)
        """
        cls._config[key] = value
        logger.debug(f"Config updated: {key} = {value} (source: {source})")

    @classmethod
    def reset(cls) -> None:
        """Drop all loaded values; subsequent reads return DEFAULTS."""
        cls._config = {}
        cls._initialized = False
