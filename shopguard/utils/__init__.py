"""
Shared utilities: input sanitizers and validators, the error surface
normalizer and the exception hierarchy.

Module Organization:
- sanitizers: lenient scalar cleaners and the strict document value gate
- validators: boolean predicates and marshmallow request schemas
- response: error normalization and JSON response builders
- environment: production/development mode value
- exceptions: ShopguardError hierarchy
"""

from .environment import EnvironmentMode, is_production, resolve_mode
from .exceptions import (
    ConfigurationError,
    SanitizationError,
    ShopguardError,
    UnsupportedValueError,
)
from .response import (
    error_response,
    forbidden_response,
    handle_api_error,
    not_found_response,
    success_response,
    unauthorized_response,
    validation_error_response,
)
from .sanitizers import (
    DocumentValueSanitizer,
    FieldKind,
    escape_html,
    sanitize_address,
    sanitize_document_value,
    sanitize_email,
    sanitize_name,
    sanitize_object,
    sanitize_path,
    sanitize_phone,
    sanitize_postal_code,
    sanitize_string,
    sanitize_url,
    strip_html,
)
from .validators import (
    ShippingInfoSchema,
    validate_length,
    validate_range,
    validate_safe_id,
    validate_whitelist,
)

__all__ = [
    "EnvironmentMode",
    "is_production",
    "resolve_mode",
    "ShopguardError",
    "ConfigurationError",
    "SanitizationError",
    "UnsupportedValueError",
    "handle_api_error",
    "error_response",
    "validation_error_response",
    "unauthorized_response",
    "forbidden_response",
    "not_found_response",
    "success_response",
    "FieldKind",
    "DocumentValueSanitizer",
    "escape_html",
    "strip_html",
    "sanitize_url",
    "sanitize_string",
    "sanitize_email",
    "sanitize_name",
    "sanitize_phone",
    "sanitize_address",
    "sanitize_postal_code",
    "sanitize_path",
    "sanitize_document_value",
    "sanitize_object",
    "ShippingInfoSchema",
    "validate_safe_id",
    "validate_whitelist",
    "validate_length",
    "validate_range",
]
