"""
Exception hierarchy for the request-boundary security layer.

Two contracts live side by side in this package and are kept apart on
purpose:

- Lenient scalar cleaners (``sanitize_string``, ``sanitize_email`` ...) are
  total functions. They never raise for malformed input; they return a
  sentinel (``None``, ``""`` or ``False``) instead.
- The strict structural gate (``DocumentValueSanitizer``) is a partial
  function. It raises ``UnsupportedValueError`` so that a write path aborts
  rather than storing a shape nobody anticipated.
"""

from typing import Any, Optional


class ShopguardError(Exception):
    """Base exception for all shopguard errors."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


class ConfigurationError(ShopguardError):
    """Raised when settings or header options are invalid."""


class SanitizationError(ShopguardError):
    """Base exception for sanitization operations."""


class UnsupportedValueError(SanitizationError):
    """
    Raised by the structural sanitizer for values it refuses to pass through.

    Attributes:
        value_type: Name of the offending Python type
        path: Location of the value inside the document (``items[2].price``)
    """

    def __init__(self, message: str, value: Any = None, path: str = ""):
        super().__init__(message, code="UNSUPPORTED_VALUE")
        self.value_type = type(value).__name__
        self.path = path


__all__ = [
    "ShopguardError",
    "ConfigurationError",
    "SanitizationError",
    "UnsupportedValueError",
]
