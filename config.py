# hydrolab/config.py
"""
Configuration management for the Hydrolab MLM core.
Loads from .env, validates critical keys.
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

        # Set dynamic value
        Config.set(Config.DEFAULT_SKU, "H2-3")
    """

    # ═══════════════════════════════════════════════════════════════════════
    # CONFIGURATION KEYS
    # ═══════════════════════════════════════════════════════════════════════

    # Database
    DATABASE_URL = "DATABASE_URL"

    # Backend (Supabase project)
    SUPABASE_URL = "SUPABASE_URL"
    SUPABASE_ANON_KEY = "SUPABASE_ANON_KEY"
    SERVER_FUNCTION = "SERVER_FUNCTION"
    REQUEST_TIMEOUT = "REQUEST_TIMEOUT"

    # MLM System
    DEFAULT_SKU = "DEFAULT_SKU"

    # System
    LOG_LEVEL = "LOG_LEVEL"

    # ═══════════════════════════════════════════════════════════════════════
    # CRITICAL KEYS (must be present)
    # ═══════════════════════════════════════════════════════════════════════

    CRITICAL_KEYS = [
        DATABASE_URL,
    ]

    # Keys required only when talking to the REST backend
    REST_KEYS = [
        SUPABASE_URL,
        SUPABASE_ANON_KEY,
    ]

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
        Load configuration from .env file.

        Raises:
            ConfigurationError: If a value cannot be parsed
        """
        load_dotenv()

        logger.info("Loading configuration from environment...")

        try:
            # Database
            cls._config[cls.DATABASE_URL] = os.getenv(
                "DATABASE_URL",
                "sqlite:///hydrolab.db"
            )

            # Backend
            supabase_url = os.getenv("SUPABASE_URL")
            cls._config[cls.SUPABASE_URL] = supabase_url.rstrip("/") if supabase_url else None
            cls._config[cls.SUPABASE_ANON_KEY] = os.getenv("SUPABASE_ANON_KEY")
            cls._config[cls.SERVER_FUNCTION] = os.getenv(
                "SERVER_FUNCTION",
                "make-server-05aa3c8a"
            )
            cls._config[cls.REQUEST_TIMEOUT] = float(os.getenv("REQUEST_TIMEOUT", "10"))

            # MLM
            cls._config[cls.DEFAULT_SKU] = os.getenv("DEFAULT_SKU", "H2-1")

            # System
            cls._config[cls.LOG_LEVEL] = os.getenv("LOG_LEVEL", "INFO").upper()

            cls._initialized = True
            logger.info("Configuration loaded from environment successfully")

        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            raise ConfigurationError(f"Configuration loading failed: {e}")

    @classmethod
    def validate_critical_keys(cls, include_rest: bool = False) -> None:
        """
        Validate that all critical configuration keys are present.

        Args:
            include_rest: Also require the REST backend keys

        Raises:
            ConfigurationError: If any critical key is missing
        """
        keys = list(cls.CRITICAL_KEYS)
        if include_rest:
            keys += cls.REST_KEYS

        missing = [key for key in keys if not cls.get(key)]

        if missing:
            error_msg = f"Missing critical configuration keys: {', '.join(missing)}"
            logger.critical(error_msg)
            raise ConfigurationError(error_msg)

        logger.info("All critical configuration keys validated ✓")

    @classmethod
    def functions_url(cls) -> str:
        """
        Base URL of the backend edge function.

        Raises:
            ConfigurationError: If SUPABASE_URL is not configured
        """
        base_url = cls.get(cls.SUPABASE_URL)
        if not base_url:
            raise ConfigurationError("SUPABASE_URL is not configured")
        function = cls.get(cls.SERVER_FUNCTION, "make-server-05aa3c8a")
        return f"{base_url}/functions/v1/{function}"

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Get configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return cls._config.get(key, default)

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
    def get_all(cls) -> Dict[str, Any]:
        """
        Get all configuration values.

        Returns:
            Copy of configuration dictionary
        """
        return cls._config.copy()

    @classmethod
    def reset(cls) -> None:
        """Forget all loaded values (used by tests)."""
        cls._config = {}
        cls._initialized = False
