"""
Global pytest configuration and fixtures.

Provides a Flask application built by the application factory with the
testing configuration, its test client, and a werkzeug request builder for
exercising the origin guard and header composer without an application.

All requests default to the storefront's local development origin,
``http://localhost:3000``.
"""

import pytest
from werkzeug.test import EnvironBuilder
from werkzeug.wrappers import Request

from shopguard.app import create_app

BASE_URL = "http://localhost:3000"
LEGITIMATE_ORIGIN = "http://localhost:3000"
EVIL_ORIGIN = "https://evil.com"


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep host environment variables from leaking into settings."""
    for key in (
        "FLASK_ENV",
        "SECURITY_MODE",
        "FORCE_HTTPS",
        "CONTENT_SECURITY_POLICY",
        "CSRF_EXEMPT_PATHS",
        "CSRF_REQUIRE_CUSTOM_HEADER",
        "PROXY_FIX_ENABLED",
        "LOG_LEVEL",
        "LOG_FORMAT",
        "TRUSTED_SCRIPT_DOMAINS",
        "TRUSTED_STYLE_DOMAINS",
        "TRUSTED_IMAGE_DOMAINS",
        "TRUSTED_FONT_DOMAINS",
        "TRUSTED_CONNECT_DOMAINS",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def app():
    """Flask application with the testing configuration."""
    return create_app("testing")


@pytest.fixture
def client(app):
    """Flask test client addressed at the local storefront origin."""
    return app.test_client()


@pytest.fixture
def make_request():
    """
    Build a werkzeug ``Request`` without an application.

    Usage:
        request = make_request("POST", "/api/save-order", headers={"Origin": ...})
    """

    def _make_request(method="GET", path="/", headers=None, base_url=BASE_URL, **kwargs):
        builder = EnvironBuilder(
            method=method,
            path=path,
            base_url=base_url,
            headers=headers or {},
            **kwargs,
        )
        try:
            return Request(builder.get_environ())
        finally:
            builder.close()

    return _make_request


@pytest.fixture
def valid_order():
    """Order body accepted by ``POST /api/save-order``."""
    return {
        "orderId": "order_2024-0001",
        "customer": {
            "name": "María José",
            "email": "Maria@Example.com",
            "phone": "+34 612 345 678",
            "address": "Calle Mayor 1, 3º B",
        },
        "shipping": {
            "firstName": "María",
            "lastName": "García López",
            "email": "maria@example.com",
            "phone": "612345678",
            "address": "Calle Mayor 1",
            "city": "Madrid",
            "state": "Madrid",
            "zipCode": "28013",
        },
        "items": [
            {"productId": "sku-1", "name": "Camiseta", "quantity": 2, "price": 19.99},
        ],
    }
