"""
Flask Application Factory

Builds a Flask application with the request-gating pipeline installed:

- environment-specific settings from ``shopguard.config.settings``
- structlog / python-json-logger logging
- optional werkzeug ``ProxyFix`` for deployments behind a reverse proxy
- ``SecurityGuard`` (HTTPS redirect, origin guard, security headers)
- the storefront API blueprint
- error handlers that route every failure through the error normalizer

Examples:
    app = create_app("development")
    app = create_app("testing", SECURITY_MODE="development")
    application = create_app()  # FLASK_ENV, then production
"""

from typing import Optional

import structlog
from flask import Flask
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from shopguard import __version__
from shopguard.blueprints import api_bp
from shopguard.config.logging import configure_logging
from shopguard.config.settings import get_config
from shopguard.security.middleware import SecurityGuard
from shopguard.utils.environment import resolve_mode
from shopguard.utils.response import (
    error_response,
    forbidden_response,
    json_response,
    not_found_response,
    unauthorized_response,
    validation_error_response,
)

logger = structlog.get_logger(__name__)

security_guard = SecurityGuard()


class ApplicationFactory:
    """Creates and configures shopguard Flask applications."""

    def create_application(self, config_name: Optional[str] = None, **config_overrides) -> Flask:
        """
        Create and configure a Flask application.

        Args:
            config_name: Configuration environment name (development, testing, production)
            **config_overrides: Settings applied on top of the configuration class

        Returns:
            Fully configured Flask application

        Raises:
            ConfigurationError: When the configuration name or settings are invalid
        """
        app = Flask(__name__.split(".")[0])

        self._configure_application(app, config_name, **config_overrides)
        configure_logging(app.config)
        self._configure_reverse_proxy(app)
        security_guard.init_app(app)
        self._register_blueprints(app)
        self._configure_error_handlers(app)

        logger.info(
            "Application created",
            config_class=app.config["CONFIG_CLASS"],
            security_mode=app.config["SECURITY_MODE"],
            version=__version__,
        )
        return app

    def _configure_application(self, app: Flask, config_name: Optional[str], **config_overrides) -> None:
        config_instance = get_config(config_name)
        app.config.update(config_instance.to_dict())

        if config_overrides:
            app.config.update(config_overrides)

        app.config["CONFIG_CLASS"] = config_instance.__class__.__name__

    def _configure_reverse_proxy(self, app: Flask) -> None:
        """Trust X-Forwarded-* headers from one proxy hop when enabled."""
        if not app.config.get("PROXY_FIX_ENABLED", False):
            return

        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=int(app.config.get("PROXY_FIX_X_FOR", 1)),
            x_proto=int(app.config.get("PROXY_FIX_X_PROTO", 1)),
            x_host=int(app.config.get("PROXY_FIX_X_HOST", 1)),
        )
        logger.info("Reverse proxy configuration applied")

    def _register_blueprints(self, app: Flask) -> None:
        app.register_blueprint(api_bp)

    def _configure_error_handlers(self, app: Flask) -> None:
        """Map framework and unexpected errors onto the normalized error payloads."""

        @app.errorhandler(HTTPException)
        def handle_http_exception(error: HTTPException):
            mode = resolve_mode(app.config["SECURITY_MODE"])

            if error.code == 400:
                response = validation_error_response(error.name, details=error.description, mode=mode)
            elif error.code == 401:
                response = unauthorized_response()
            elif error.code == 403:
                response = forbidden_response()
            elif error.code == 404:
                response = not_found_response()
            else:
                response = json_response({"error": error.name}, error.code or 500)

            for name, value in error.get_headers():
                if name.lower() != "content-type":
                    response.headers[name] = value
            return response

        @app.errorhandler(Exception)
        def handle_unexpected_exception(error: Exception):
            return error_response(error, "unhandled-exception", mode=app.config["SECURITY_MODE"])


_application_factory = ApplicationFactory()


def create_app(config_name: Optional[str] = None, **config_overrides) -> Flask:
    """
    Create a Flask application using the application factory.

    Args:
        config_name: Environment configuration name; defaults to ``FLASK_ENV``
        **config_overrides: Settings applied after the configuration class

    Returns:
        Flask application ready for WSGI deployment
    """
    return _application_factory.create_application(config_name, **config_overrides)


__all__ = ["ApplicationFactory", "create_app", "security_guard"]
