"""Application settings and logging configuration."""

from .logging import configure_logging
from .settings import (
    BaseConfig,
    DevelopmentConfig,
    EnvironmentManager,
    ProductionConfig,
    TestingConfig,
    get_config,
)

__all__ = [
    "BaseConfig",
    "DevelopmentConfig",
    "ProductionConfig",
    "TestingConfig",
    "EnvironmentManager",
    "get_config",
    "configure_logging",
]
