"""
Request-boundary security: origin guard (CSRF), security header composer and
the ``SecurityGuard`` Flask extension that wires both into an application.
"""

from .csrf import (
    CSRF_EXEMPT_PATHS,
    CsrfValidationResult,
    csrf_error_response,
    generate_csrf_token,
    parse_cookies,
    validate_ajax_csrf,
    validate_csrf_token,
)
from .headers import (
    SecurityHeadersOptions,
    TrustedDomains,
    apply_security_headers,
    build_default_csp,
    get_security_headers,
    is_secure_connection,
    redirect_to_https,
    secure_json_headers,
)
from .middleware import SecurityGuard

__all__ = [
    "CSRF_EXEMPT_PATHS",
    "CsrfValidationResult",
    "csrf_error_response",
    "generate_csrf_token",
    "parse_cookies",
    "validate_ajax_csrf",
    "validate_csrf_token",
    "SecurityHeadersOptions",
    "TrustedDomains",
    "apply_security_headers",
    "build_default_csp",
    "get_security_headers",
    "is_secure_connection",
    "redirect_to_https",
    "secure_json_headers",
    "SecurityGuard",
]
