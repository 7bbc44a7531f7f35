"""
Origin guard: CSRF defense for state-changing requests.

``validate_csrf_token`` applies, in order:

1. Safe methods (anything outside POST/PUT/PATCH/DELETE) pass.
2. Paths on the exempt list pass. Matching is exact string equality on the
   request path; ``/api/stripe-webhook/retry`` is *not* exempt.
3. Same-origin check. ``Origin`` is preferred, ``Referer`` is the fallback,
   and a request carrying neither is rejected.
4. Double-submit check, only when an ``X-CSRF-Token`` header is present: the
   ``csrf-token`` cookie must hold the identical value.

Rejection reasons are specific and go to the log; the HTTP response built by
``csrf_error_response`` stays generic.

``validate_ajax_csrf`` is an optional, stricter layer that additionally
requires a custom request header that browsers never attach to cross-site
form posts.
"""

import hmac
import json
import secrets
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional
from urllib.parse import unquote, urlparse

import structlog
from flask import Response
from werkzeug.wrappers import Request

logger = structlog.get_logger(__name__)

CSRF_PROTECTED_METHODS: FrozenSet[str] = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# Webhooks verify their own signatures; the rest are reads guarded by other auth
CSRF_EXEMPT_PATHS: FrozenSet[str] = frozenset({
    "/api/stripe-webhook",
    "/api/validate-coupon",
    "/api/get-order",
    "/api/get-wallet-balance",
    "/api/get-wallet-transactions",
})

CSRF_TOKEN_HEADER = "X-CSRF-Token"
CSRF_COOKIE_NAME = "csrf-token"
CSRF_ERROR_CODE = "CSRF_VALIDATION_FAILED"
DEFAULT_CSRF_ERROR_MESSAGE = "CSRF validation failed"

ERROR_INVALID_ORIGIN = "CSRF validation failed: Invalid origin"
ERROR_INVALID_REFERER = "CSRF validation failed: Invalid referer"
ERROR_MISSING_ORIGIN = "CSRF validation failed: Missing origin/referer header"
ERROR_NO_COOKIES = "CSRF validation failed: Token present but no cookies"
ERROR_NO_CSRF_COOKIE = "CSRF validation failed: Token present but no CSRF cookie"
ERROR_TOKEN_MISMATCH = "CSRF validation failed: Token mismatch"


@dataclass(frozen=True)
class CsrfValidationResult:
    """Terminal decision for a single request."""

    valid: bool
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid


CSRF_VALID = CsrfValidationResult(valid=True)


def generate_csrf_token() -> str:
    """Return 256 bits from the OS CSPRNG as 64 lowercase hex characters."""
    return secrets.token_hex(32)


def parse_cookies(cookie_header: Optional[str]) -> Dict[str, str]:
    """
    Parse a ``Cookie`` header into a dict.

    Pairs are split on ``;`` and then on the first ``=``. Names and values
    are trimmed and values URL-decoded. Entries without a name or with an
    empty value are dropped.
    """
    cookies: Dict[str, str] = {}
    if not cookie_header:
        return cookies

    for pair in cookie_header.split(";"):
        name, _, value = pair.partition("=")
        name = name.strip()
        value = value.strip()
        if name and value:
            cookies[name] = unquote(value)
    return cookies


def expected_origin(request: Request) -> str:
    """``scheme://host`` the request was addressed to, preferring the Host header, lowercased."""
    host = request.headers.get("Host") or request.host
    return f"{request.scheme}://{host.lower()}"


def _referer_origin(referer: str) -> Optional[str]:
    try:
        parsed = urlparse(referer)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


def _reject(error: str, **log_fields) -> CsrfValidationResult:
    logger.warning("CSRF validation rejected request", reason=error, **log_fields)
    return CsrfValidationResult(valid=False, error=error)


def validate_csrf_token(request: Request,
                        exempt_paths: Iterable[str] = CSRF_EXEMPT_PATHS) -> CsrfValidationResult:
    """
    Decide whether ``request`` is safe against cross-site request forgery.

    Args:
        request: Incoming werkzeug/Flask request
        exempt_paths: Paths that skip the check, matched exactly

    Returns:
        ``CsrfValidationResult``; ``error`` names the specific failure
    """
    if request.method.upper() not in CSRF_PROTECTED_METHODS:
        return CSRF_VALID

    if request.path in frozenset(exempt_paths):
        return CSRF_VALID

    expected = expected_origin(request)
    origin = request.headers.get("Origin")
    referer = request.headers.get("Referer")

    if origin:
        if origin != expected:
            return _reject(ERROR_INVALID_ORIGIN, origin=origin, expected_origin=expected)
    elif referer:
        referer_origin = _referer_origin(referer)
        if referer_origin != expected:
            return _reject(ERROR_INVALID_REFERER, referer=referer, expected_origin=expected)
    else:
        return _reject(ERROR_MISSING_ORIGIN, expected_origin=expected)

    header_value = request.headers.get(CSRF_TOKEN_HEADER)
    if header_value:
        cookie_header = request.headers.get("Cookie")
        if not cookie_header:
            return _reject(ERROR_NO_COOKIES)

        cookie_value = parse_cookies(cookie_header).get(CSRF_COOKIE_NAME)
        if not cookie_value:
            return _reject(ERROR_NO_CSRF_COOKIE)

        if not hmac.compare_digest(header_value.encode("utf-8"), cookie_value.encode("utf-8")):
            return _reject(ERROR_TOKEN_MISMATCH)

    return CSRF_VALID


def csrf_error_response(message: str = DEFAULT_CSRF_ERROR_MESSAGE) -> Response:
    """403 JSON response ``{"error": message, "code": "CSRF_VALIDATION_FAILED"}``."""
    return Response(
        json.dumps({"error": message, "code": CSRF_ERROR_CODE}),
        status=403,
        mimetype="application/json",
    )


# Host-header based guard for AJAX endpoints

def _url_host(url: str) -> Optional[str]:
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    return parsed.netloc or None


def origin_matches_host(request: Request) -> bool:
    """
    Check that Origin (or Referer) points at the host named in ``Host``.

    Malformed URLs fail. Without either header only ``GET`` passes.
    """
    host = request.headers.get("Host")
    origin = request.headers.get("Origin")
    referer = request.headers.get("Referer")

    if origin:
        return host is not None and _url_host(origin) == host
    if referer:
        return host is not None and _url_host(referer) == host
    return request.method.upper() == "GET"


def has_custom_header(request: Request) -> bool:
    """
    True for ``X-Requested-With: XMLHttpRequest`` or a JSON content type.

    Cross-site HTML forms cannot set either without a CORS preflight.
    """
    if request.headers.get("X-Requested-With") == "XMLHttpRequest":
        return True
    return "application/json" in (request.headers.get("Content-Type") or "")


def validate_ajax_csrf(request: Request) -> CsrfValidationResult:
    """Safe methods pass; otherwise both the host check and the custom header are required."""
    if request.method.upper() not in CSRF_PROTECTED_METHODS:
        return CSRF_VALID

    if not origin_matches_host(request):
        return _reject("Invalid origin", origin=request.headers.get("Origin"),
                       host=request.headers.get("Host"))

    if not has_custom_header(request):
        return _reject("Missing custom header")

    return CSRF_VALID


__all__ = [
    "CSRF_PROTECTED_METHODS",
    "CSRF_EXEMPT_PATHS",
    "CSRF_TOKEN_HEADER",
    "CSRF_COOKIE_NAME",
    "CSRF_ERROR_CODE",
    "CsrfValidationResult",
    "generate_csrf_token",
    "parse_cookies",
    "expected_origin",
    "validate_csrf_token",
    "csrf_error_response",
    "origin_matches_host",
    "has_custom_header",
    "validate_ajax_csrf",
]
