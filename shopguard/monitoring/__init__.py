"""Monitoring integration: Prometheus counters for security events."""

from .metrics import (
    api_errors,
    csrf_rejections,
    https_redirects,
    record_api_error,
    record_csrf_rejection,
    record_https_redirect,
)

__all__ = [
    "api_errors",
    "csrf_rejections",
    "https_redirects",
    "record_api_error",
    "record_csrf_rejection",
    "record_https_redirect",
]
