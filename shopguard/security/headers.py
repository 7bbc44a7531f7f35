"""
Security header composer.

``get_security_headers`` returns the complete, deterministic header set for
an environment mode and optional trusted-domain configuration:

    Content-Security-Policy         built by ``build_default_csp`` or verbatim override
    X-Frame-Options                 DENY
    X-Content-Type-Options          nosniff
    Referrer-Policy                 strict-origin-when-cross-origin
    Permissions-Policy              all sensitive features disabled
    X-XSS-Protection                1; mode=block
    Cross-Origin-Opener-Policy      same-origin
    Cross-Origin-Resource-Policy    same-origin
    Cross-Origin-Embedder-Policy    require-corp (production) / unsafe-none (development)
    Strict-Transport-Security       production only

Development mode relaxes exactly two things: ``'unsafe-eval'`` in
``script-src`` for hot module reload, and COEP ``unsafe-none``. HSTS is
never sent in development so local HTTP is not pinned to HTTPS.

Headers are applied as defaults that yield to explicit overrides: a header
already present on a response is left untouched. Handlers that need a
different framing or CSP policy for one route set it themselves.
"""

import json
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, MutableMapping, Optional
from urllib.parse import urlsplit, urlunsplit

import structlog
from flask import Response
from marshmallow import EXCLUDE, Schema, fields, post_load, validate
from werkzeug.wrappers import Request

from shopguard.monitoring.metrics import record_https_redirect
from shopguard.utils.environment import EnvironmentMode, ModeLike, is_production, resolve_mode

logger = structlog.get_logger(__name__)

PERMISSIONS_POLICY = (
    "geolocation=(), microphone=(), camera=(), payment=(), usb=(), "
    "magnetometer=(), gyroscope=(), accelerometer=()"
)
HSTS_VALUE = "max-age=31536000; includeSubDomains; preload"

DEFAULT_SCRIPT_SOURCES = ("'self'", "https://js.stripe.com", "https://www.gstatic.com")
DEFAULT_STYLE_SOURCES = ("'self'", "'unsafe-inline'", "https://fonts.googleapis.com")
DEFAULT_IMAGE_SOURCES = ("'self'", "data:", "https:")
DEFAULT_FONT_SOURCES = ("'self'", "https://fonts.gstatic.com", "data:")
DEFAULT_CONNECT_SOURCES = (
    "https://*.stripe.com",
    "https://*.firebaseio.com",
    "https://*.googleapis.com",
    "https://firestore.googleapis.com",
    "https://*.cloudfunctions.net",
)


@dataclass(frozen=True)
class TrustedDomains:
    """Per-deployment origins appended to the matching CSP directive."""

    scripts: List[str] = field(default_factory=list)
    styles: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    fonts: List[str] = field(default_factory=list)
    connect: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SecurityHeadersOptions:
    mode: EnvironmentMode = EnvironmentMode.PRODUCTION
    content_security_policy: Optional[str] = None
    trusted_domains: TrustedDomains = field(default_factory=TrustedDomains)

    @property
    def is_production(self) -> bool:
        return is_production(self.mode)


def _directive(name: str, *source_groups) -> str:
    sources = [source for group in source_groups for source in group]
    return " ".join([name, *sources])


def _build_script_src_directive(trusted: TrustedDomains, production: bool) -> str:
    dev_sources = () if production else ("'unsafe-eval'",)
    return _directive("script-src", DEFAULT_SCRIPT_SOURCES, trusted.scripts, dev_sources)


def build_default_csp(trusted_domains: Optional[TrustedDomains] = None,
                      production: bool = True) -> str:
    """
    Build the baseline Content-Security-Policy.

    Args:
        trusted_domains: Extra origins per directive
        production: When False, ``'unsafe-eval'`` is added to ``script-src``

    Returns:
        Directives joined with ``"; "``
    """
    trusted = trusted_domains or TrustedDomains()

    directives = [
        "default-src 'self'",
        _build_script_src_directive(trusted, production),
        _directive("style-src", DEFAULT_STYLE_SOURCES, trusted.styles),
        _directive("img-src", DEFAULT_IMAGE_SOURCES, trusted.images),
        _directive("font-src", DEFAULT_FONT_SOURCES, trusted.fonts),
        _directive("connect-src", DEFAULT_CONNECT_SOURCES, trusted.connect),
        "object-src 'none'",
        "base-uri 'self'",
        "form-action 'self'",
        "frame-ancestors 'none'",
        "upgrade-insecure-requests",
    ]
    return "; ".join(directives)


def get_security_headers(options: Optional[SecurityHeadersOptions] = None) -> Dict[str, str]:
    """
    Compose the security header set for ``options``.

    Pure and deterministic: identical options always produce an identical,
    identically ordered dict. ``options`` defaults to production.
    """
    options = options or SecurityHeadersOptions()
    production = options.is_production

    csp = options.content_security_policy or build_default_csp(options.trusted_domains, production)

    headers = {
        "Content-Security-Policy": csp,
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Permissions-Policy": PERMISSIONS_POLICY,
        "X-XSS-Protection": "1; mode=block",
        "Cross-Origin-Opener-Policy": "same-origin",
        "Cross-Origin-Resource-Policy": "same-origin",
        "Cross-Origin-Embedder-Policy": "require-corp" if production else "unsafe-none",
    }

    if production:
        headers["Strict-Transport-Security"] = HSTS_VALUE

    return headers


def merge_security_headers(headers: MutableMapping,
                           options: Optional[SecurityHeadersOptions] = None) -> MutableMapping:
    """Add every security header missing from ``headers``, in place."""
    for name, value in get_security_headers(options).items():
        if name not in headers:
            headers[name] = value
    return headers


def apply_security_headers(response: Response,
                           options: Optional[SecurityHeadersOptions] = None) -> Response:
    """
    Return a new response with the security headers applied.

    Body, status code and status text are preserved. Headers already present
    on ``response`` keep their values.
    """
    secured = Response(
        response.get_data(),
        status=response.status,
        headers=response.headers.copy(),
    )
    merge_security_headers(secured.headers, options)
    return secured


def secure_json_headers(options: Optional[SecurityHeadersOptions] = None) -> Dict[str, str]:
    """``Content-Type: application/json`` followed by the security header set."""
    return {"Content-Type": "application/json", **get_security_headers(options)}


def _forwarded_proto_is_https(request: Request) -> bool:
    forwarded = request.headers.get("X-Forwarded-Proto", "")
    return forwarded.split(",")[0].strip().lower() == "https"


def _cf_visitor_is_https(request: Request) -> bool:
    cf_visitor = request.headers.get("CF-Visitor")
    if not cf_visitor:
        return False
    try:
        visitor = json.loads(cf_visitor)
    except ValueError:
        return False
    return isinstance(visitor, dict) and visitor.get("scheme") == "https"


def is_secure_connection(request: Request) -> bool:
    """
    True when the request arrived over HTTPS.

    Accepts the request's own scheme, ``X-Forwarded-Proto: https`` or a
    Cloudflare ``CF-Visitor: {"scheme":"https"}`` header.
    """
    return request.scheme == "https" or _forwarded_proto_is_https(request) or _cf_visitor_is_https(request)


def redirect_to_https(request: Request,
                      options: Optional[SecurityHeadersOptions] = None) -> Response:
    """301 to the same URL with the scheme forced to https, security headers included."""
    parts = urlsplit(request.url)
    location = urlunsplit(("https", parts.netloc, parts.path, parts.query, parts.fragment))

    logger.warning("Redirecting insecure connection to HTTPS", path=request.path)
    record_https_redirect()

    response = Response(status=301)
    response.headers["Location"] = location
    merge_security_headers(response.headers, options)
    return response


class SecurityHeadersOptionsSchema(Schema):
    """
    Loads ``SecurityHeadersOptions`` from application settings.

    Reads ``SECURITY_MODE``, ``CONTENT_SECURITY_POLICY`` and the
    ``TRUSTED_*_DOMAINS`` lists; every other key is ignored, so a whole
    ``app.config`` can be passed in.
    """

    class Meta:
        unknown = EXCLUDE

    mode = fields.Str(
        data_key="SECURITY_MODE",
        load_default=EnvironmentMode.PRODUCTION.value,
        validate=validate.OneOf([mode.value for mode in EnvironmentMode]),
    )
    content_security_policy = fields.Str(
        data_key="CONTENT_SECURITY_POLICY", load_default=None, allow_none=True
    )
    scripts = fields.List(fields.Str(), data_key="TRUSTED_SCRIPT_DOMAINS", load_default=list)
    styles = fields.List(fields.Str(), data_key="TRUSTED_STYLE_DOMAINS", load_default=list)
    images = fields.List(fields.Str(), data_key="TRUSTED_IMAGE_DOMAINS", load_default=list)
    fonts = fields.List(fields.Str(), data_key="TRUSTED_FONT_DOMAINS", load_default=list)
    connect = fields.List(fields.Str(), data_key="TRUSTED_CONNECT_DOMAINS", load_default=list)

    @post_load
    def make_options(self, data, **kwargs):
        return SecurityHeadersOptions(
            mode=EnvironmentMode(data["mode"]),
            content_security_policy=data["content_security_policy"] or None,
            trusted_domains=TrustedDomains(
                scripts=data["scripts"],
                styles=data["styles"],
                images=data["images"],
                fonts=data["fonts"],
                connect=data["connect"],
            ),
        )


def load_security_headers_options(config: Mapping) -> SecurityHeadersOptions:
    """
    Build options from a settings mapping such as ``app.config``.

    Raises:
        marshmallow.ValidationError: For an unknown mode or malformed lists
    """
    return SecurityHeadersOptionsSchema().load(dict(config))


def options_for_mode(mode: ModeLike) -> SecurityHeadersOptions:
    """Default options for a mode, without trusted domains or CSP override."""
    return SecurityHeadersOptions(mode=resolve_mode(mode))


__all__ = [
    "PERMISSIONS_POLICY",
    "HSTS_VALUE",
    "TrustedDomains",
    "SecurityHeadersOptions",
    "SecurityHeadersOptionsSchema",
    "build_default_csp",
    "get_security_headers",
    "merge_security_headers",
    "apply_security_headers",
    "secure_json_headers",
    "is_secure_connection",
    "redirect_to_https",
    "load_security_headers_options",
    "options_for_mode",
]
