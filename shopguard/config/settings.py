"""
Application Configuration Module

Environment-specific configuration classes for the shopguard Flask service.
Values come from process environment variables, optionally seeded from a
``.env`` file through python-dotenv (existing variables are never
overridden).

The security mode (production or development) is read here once and then
handed explicitly to every header, CSRF and error-normalizer call; nothing
downstream consults the environment on its own.

Settings:
    SECURITY_MODE: ``production`` or ``development``
    FORCE_HTTPS: redirect insecure requests while in production mode
    CONTENT_SECURITY_POLICY: full CSP string replacing the built-in policy
    TRUSTED_*_DOMAINS: comma-separated origins appended to CSP directives
    CSRF_EXEMPT_PATHS: comma-separated exact paths exempt from origin checks
    CSRF_REQUIRE_CUSTOM_HEADER: also require an AJAX-style custom header
    PROXY_FIX_ENABLED: trust one layer of X-Forwarded-* headers
    LOG_LEVEL / LOG_FORMAT: logging verbosity and renderer (json, console)
"""

import logging
import os
from typing import Any, Dict, List, Optional

from dotenv import find_dotenv, load_dotenv

from shopguard.security.csrf import CSRF_EXEMPT_PATHS
from shopguard.utils.environment import EnvironmentMode
from shopguard.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PRODUCTION = EnvironmentMode.PRODUCTION.value
DEVELOPMENT = EnvironmentMode.DEVELOPMENT.value
VALID_SECURITY_MODES = (PRODUCTION, DEVELOPMENT)
VALID_LOG_FORMATS = ("json", "console")

# Outbound email API used by the storefront, allowed in connect-src
DEFAULT_TRUSTED_CONNECT_DOMAINS = ["https://api.resend.com"]


class EnvironmentManager:
    """
    Environment variable access backed by python-dotenv.

    Loading happens once per instance; values already present in the process
    environment win over the ``.env`` file.
    """

    def __init__(self, env_file: Optional[str] = None):
        """
        Args:
            env_file: Optional path to a .env file, defaults to auto-discovery
        """
        self.env_file = env_file or find_dotenv(usecwd=True)
        self.logger = logging.getLogger(f"{__name__}.EnvironmentManager")
        if self.env_file:
            load_dotenv(self.env_file, override=False)
            self.logger.debug("Environment file loaded: %s", self.env_file)

    def get_optional_env(self, key: str, default: Any = None, var_type: type = str) -> Any:
        """
        Get optional environment variable with default value and type conversion.

        Args:
            key: Environment variable name
            default: Default value if variable is not set
            var_type: Expected variable type (``str``, ``bool``, ``int``, ``float``)

        Returns:
            Environment variable value or default
        """
        value = os.getenv(key)
        if value is None:
            return default

        try:
            if var_type == bool:
                return value.strip().lower() in ("true", "1", "yes", "on")
            elif var_type == int:
                return int(value)
            elif var_type == float:
                return float(value)
            else:
                return var_type(value)
        except (ValueError, TypeError):
            self.logger.warning("Invalid type for '%s', using default: %s", key, default)
            return default

    def get_list_env(self, key: str, default: Optional[List[str]] = None) -> List[str]:
        """Split a comma-separated variable into trimmed, non-empty items."""
        value = os.getenv(key)
        if value is None:
            return list(default or [])
        return [item.strip() for item in value.split(",") if item.strip()]


class BaseConfig:
    """
    Base configuration shared by every environment.

    Defaults describe the safe posture: production security mode with
    HTTPS enforcement.
    """

    def __init__(self, env_file: Optional[str] = None):
        self.env_manager = EnvironmentManager(env_file)
        self._configure_base_settings()
        self._configure_security_settings()
        self._configure_csrf_settings()
        self._configure_logging_settings()

    def _configure_base_settings(self) -> None:
        self.FLASK_ENV = self.env_manager.get_optional_env("FLASK_ENV", PRODUCTION)
        self.DEBUG = self.env_manager.get_optional_env("FLASK_DEBUG", False, bool)
        self.TESTING = False
        self.JSON_SORT_KEYS = False
        self.PROXY_FIX_ENABLED = self.env_manager.get_optional_env("PROXY_FIX_ENABLED", False, bool)
        self.PROXY_FIX_X_FOR = self.env_manager.get_optional_env("PROXY_FIX_X_FOR", 1, int)
        self.PROXY_FIX_X_PROTO = self.env_manager.get_optional_env("PROXY_FIX_X_PROTO", 1, int)
        self.PROXY_FIX_X_HOST = self.env_manager.get_optional_env("PROXY_FIX_X_HOST", 1, int)

    def _configure_security_settings(self) -> None:
        """Header composer and HTTPS enforcement settings."""
        self.SECURITY_MODE = self.env_manager.get_optional_env("SECURITY_MODE", PRODUCTION).lower()
        self.FORCE_HTTPS = self.env_manager.get_optional_env("FORCE_HTTPS", True, bool)
        self.CONTENT_SECURITY_POLICY = self.env_manager.get_optional_env("CONTENT_SECURITY_POLICY")

        self.TRUSTED_SCRIPT_DOMAINS = self.env_manager.get_list_env("TRUSTED_SCRIPT_DOMAINS")
        self.TRUSTED_STYLE_DOMAINS = self.env_manager.get_list_env("TRUSTED_STYLE_DOMAINS")
        self.TRUSTED_IMAGE_DOMAINS = self.env_manager.get_list_env("TRUSTED_IMAGE_DOMAINS")
        self.TRUSTED_FONT_DOMAINS = self.env_manager.get_list_env("TRUSTED_FONT_DOMAINS")
        self.TRUSTED_CONNECT_DOMAINS = self.env_manager.get_list_env(
            "TRUSTED_CONNECT_DOMAINS", DEFAULT_TRUSTED_CONNECT_DOMAINS
        )

    def _configure_csrf_settings(self) -> None:
        self.CSRF_EXEMPT_PATHS = self.env_manager.get_list_env(
            "CSRF_EXEMPT_PATHS", sorted(CSRF_EXEMPT_PATHS)
        )
        self.CSRF_REQUIRE_CUSTOM_HEADER = self.env_manager.get_optional_env(
            "CSRF_REQUIRE_CUSTOM_HEADER", False, bool
        )
        self.CSRF_COOKIE_NAME = "csrf-token"

    def _configure_logging_settings(self) -> None:
        self.LOG_LEVEL = self.env_manager.get_optional_env("LOG_LEVEL", "INFO").upper()
        self.LOG_FORMAT = self.env_manager.get_optional_env("LOG_FORMAT", "json").lower()
        self.LOG_CACHE_LOGGERS = True

    def validate(self) -> None:
        """
        Check settings for consistency.

        Raises:
            ConfigurationError: When a setting has an unsupported value
        """
        validation_errors = []

        if self.SECURITY_MODE not in VALID_SECURITY_MODES:
            validation_errors.append(
                f"SECURITY_MODE must be one of {', '.join(VALID_SECURITY_MODES)}, "
                f"got '{self.SECURITY_MODE}'"
            )

        if self.LOG_FORMAT not in VALID_LOG_FORMATS:
            validation_errors.append(
                f"LOG_FORMAT must be one of {', '.join(VALID_LOG_FORMATS)}, got '{self.LOG_FORMAT}'"
            )

        for path in self.CSRF_EXEMPT_PATHS:
            if not path.startswith("/"):
                validation_errors.append(f"CSRF exempt path must start with '/': {path}")

        if validation_errors:
            raise ConfigurationError(
                "Configuration validation failed:\n"
                + "\n".join(f"- {error}" for error in validation_errors)
            )

    @property
    def is_production(self) -> bool:
        return self.SECURITY_MODE == PRODUCTION

    def to_dict(self) -> Dict[str, Any]:
        """Uppercase settings as a plain dict, suitable for ``app.config.update``."""
        return {
            key: value for key, value in self.__dict__.items()
            if key.isupper()
        }


class DevelopmentConfig(BaseConfig):
    """Local development: relaxed CSP, verbose errors, no HTTPS redirect."""

    def __init__(self, env_file: Optional[str] = None):
        super().__init__(env_file)
        self._configure_development_overrides()

    def _configure_development_overrides(self) -> None:
        self.DEBUG = True
        self.SECURITY_MODE = DEVELOPMENT
        self.FORCE_HTTPS = False
        self.LOG_LEVEL = self.env_manager.get_optional_env("LOG_LEVEL", "DEBUG").upper()
        self.LOG_FORMAT = self.env_manager.get_optional_env("LOG_FORMAT", "console").lower()


class ProductionConfig(BaseConfig):
    """Production: strict headers, HTTPS enforcement, generic error payloads."""

    def __init__(self, env_file: Optional[str] = None):
        super().__init__(env_file)
        self._configure_production_overrides()

    def _configure_production_overrides(self) -> None:
        self.DEBUG = False
        self.SECURITY_MODE = PRODUCTION


class TestingConfig(BaseConfig):
    """
    Automated tests.

    Keeps the production security mode so tests observe production headers
    and error redaction, but serves plain HTTP and leaves structlog loggers
    uncached so ``structlog.testing.capture_logs`` sees every event.
    """

    def __init__(self, env_file: Optional[str] = None):
        super().__init__(env_file)
        self._configure_testing_overrides()

    def _configure_testing_overrides(self) -> None:
        self.TESTING = True
        self.DEBUG = False
        self.SECURITY_MODE = PRODUCTION
        self.FORCE_HTTPS = False
        self.CSRF_REQUIRE_CUSTOM_HEADER = False
        self.LOG_LEVEL = "DEBUG"
        self.LOG_FORMAT = "console"
        self.LOG_CACHE_LOGGERS = False


CONFIG_MAPPING = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}


def get_config(config_name: Optional[str] = None) -> BaseConfig:
    """
    Configuration factory.

    Args:
        config_name: Optional configuration name, defaults to ``FLASK_ENV``
            and then ``production``

    Returns:
        Validated environment-specific configuration instance

    Raises:
        ConfigurationError: When the name is unknown or validation fails
    """
    config_name = (config_name or os.getenv("FLASK_ENV") or PRODUCTION).lower()

    config_class = CONFIG_MAPPING.get(config_name)
    if not config_class:
        available_configs = ", ".join(CONFIG_MAPPING.keys())
        raise ConfigurationError(
            f"Invalid configuration name '{config_name}'. "
            f"Available configurations: {available_configs}"
        )

    config_instance = config_class()
    config_instance.validate()
    logger.debug("Configuration '%s' loaded", config_name)
    return config_instance


__all__ = [
    "BaseConfig",
    "DevelopmentConfig",
    "ProductionConfig",
    "TestingConfig",
    "CONFIG_MAPPING",
    "get_config",
    "EnvironmentManager",
    "PRODUCTION",
    "DEVELOPMENT",
]
