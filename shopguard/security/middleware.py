"""
Flask integration for the request-gating pipeline.

``SecurityGuard`` registers three hooks on an application:

before_request
    1. In production with ``FORCE_HTTPS``, insecure requests are answered
       with a 301 to the https URL.
    2. The origin guard runs. A rejection short-circuits with the generic
       403 from ``csrf_error_response``; the specific reason is logged and
       counted.
    3. State-changing requests are logged.

after_request
    Security headers are merged into every response, including redirects,
    CSRF rejections and error responses. Headers a handler set explicitly
    are kept.

Usage::

    guard = SecurityGuard()
    guard.init_app(app)
"""

from typing import Iterable, Optional

import structlog
from flask import Flask, Response, current_app, g, request

from shopguard.monitoring.metrics import record_csrf_rejection
from shopguard.security.csrf import (
    CSRF_EXEMPT_PATHS,
    CSRF_PROTECTED_METHODS,
    csrf_error_response,
    validate_ajax_csrf,
    validate_csrf_token,
)
from shopguard.security.headers import (
    SecurityHeadersOptions,
    is_secure_connection,
    load_security_headers_options,
    merge_security_headers,
    redirect_to_https,
)

logger = structlog.get_logger(__name__)

EXTENSION_NAME = "shopguard"


class SecurityGuard:
    """Flask extension wiring the origin guard and header composer into an app."""

    def __init__(self, app: Optional[Flask] = None):
        self.app = app
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """
        Read security settings from ``app.config`` and register the hooks.

        Raises:
            marshmallow.ValidationError: When the header settings are invalid
        """
        app.config.setdefault("FORCE_HTTPS", True)
        app.config.setdefault("CSRF_EXEMPT_PATHS", sorted(CSRF_EXEMPT_PATHS))
        app.config.setdefault("CSRF_REQUIRE_CUSTOM_HEADER", False)

        app.extensions[EXTENSION_NAME] = _GuardState(
            header_options=load_security_headers_options(app.config),
            force_https=bool(app.config["FORCE_HTTPS"]),
            exempt_paths=frozenset(app.config["CSRF_EXEMPT_PATHS"]),
            require_custom_header=bool(app.config["CSRF_REQUIRE_CUSTOM_HEADER"]),
        )

        app.before_request(self._before_request)
        app.after_request(self._after_request)

        state = app.extensions[EXTENSION_NAME]
        logger.info(
            "Security guard initialized",
            security_mode=state.header_options.mode.value,
            force_https=state.force_https,
            exempt_path_count=len(state.exempt_paths),
            require_custom_header=state.require_custom_header,
        )

    @staticmethod
    def state() -> "_GuardState":
        return current_app.extensions[EXTENSION_NAME]

    def _before_request(self) -> Optional[Response]:
        state = self.state()

        if state.header_options.is_production and state.force_https and not is_secure_connection(request):
            return redirect_to_https(request, state.header_options)

        result = validate_csrf_token(request, exempt_paths=state.exempt_paths)
        if result.valid and state.require_custom_header and request.path not in state.exempt_paths:
            result = validate_ajax_csrf(request)
        g.csrf_result = result

        if not result.valid:
            record_csrf_rejection(result.error or "unknown")
            return csrf_error_response()

        if request.method in CSRF_PROTECTED_METHODS:
            logger.info("State-changing request", http_method=request.method, endpoint=request.endpoint)

        return None

    def _after_request(self, response: Response) -> Response:
        merge_security_headers(response.headers, self.state().header_options)
        return response


class _GuardState:
    """Per-application settings resolved once in ``init_app``."""

    def __init__(self, header_options: SecurityHeadersOptions, force_https: bool,
                 exempt_paths: Iterable[str], require_custom_header: bool):
        self.header_options = header_options
        self.force_https = force_https
        self.exempt_paths = frozenset(exempt_paths)
        self.require_custom_header = require_custom_header


__all__ = ["SecurityGuard", "EXTENSION_NAME"]
