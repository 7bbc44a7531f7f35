"""Security mode value passed explicitly to header, CSRF and error helpers."""

from enum import Enum
from typing import Union


class EnvironmentMode(str, Enum):
    PRODUCTION = "production"
    DEVELOPMENT = "development"


ModeLike = Union[EnvironmentMode, str]


def resolve_mode(mode: ModeLike) -> EnvironmentMode:
    """
    Coerce a mode value or its string form into ``EnvironmentMode``.

    Anything unrecognised resolves to production, the strict posture.
    """
    if isinstance(mode, EnvironmentMode):
        return mode
    if isinstance(mode, str) and mode.strip().lower() == EnvironmentMode.DEVELOPMENT.value:
        return EnvironmentMode.DEVELOPMENT
    return EnvironmentMode.PRODUCTION


def is_production(mode: ModeLike) -> bool:
    return resolve_mode(mode) is EnvironmentMode.PRODUCTION


__all__ = ["EnvironmentMode", "ModeLike", "resolve_mode", "is_production"]
