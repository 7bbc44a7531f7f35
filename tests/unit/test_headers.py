"""
Security header composer tests.

Exact values matter here: browsers parse these headers literally, so the
tests pin full strings rather than substrings where the value is fixed.
"""

import pytest
from flask import Response
from marshmallow import ValidationError
from werkzeug.datastructures import Headers

from shopguard.security.headers import (
    HSTS_VALUE,
    PERMISSIONS_POLICY,
    SecurityHeadersOptions,
    TrustedDomains,
    apply_security_headers,
    build_default_csp,
    get_security_headers,
    is_secure_connection,
    load_security_headers_options,
    merge_security_headers,
    options_for_mode,
    redirect_to_https,
    secure_json_headers,
)
from shopguard.utils.environment import EnvironmentMode

PRODUCTION_CSP = (
    "default-src 'self'; "
    "script-src 'self' https://js.stripe.com https://www.gstatic.com; "
    "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
    "img-src 'self' data: https:; "
    "font-src 'self' https://fonts.gstatic.com data:; "
    "connect-src https://*.stripe.com https://*.firebaseio.com https://*.googleapis.com "
    "https://firestore.googleapis.com https://*.cloudfunctions.net; "
    "object-src 'none'; "
    "base-uri 'self'; "
    "form-action 'self'; "
    "frame-ancestors 'none'; "
    "upgrade-insecure-requests"
)

PRODUCTION = SecurityHeadersOptions(mode=EnvironmentMode.PRODUCTION)
DEVELOPMENT = SecurityHeadersOptions(mode=EnvironmentMode.DEVELOPMENT)


def _directive(csp, name):
    return next(part for part in csp.split("; ") if part.split(" ")[0] == name)


# ============================================================================
# CONTENT SECURITY POLICY
# ============================================================================

class TestBuildDefaultCsp:

    def test_production_policy_is_exact(self):
        assert build_default_csp() == PRODUCTION_CSP

    def test_development_adds_unsafe_eval_only_to_script_src(self):
        csp = build_default_csp(production=False)

        assert _directive(csp, "script-src").endswith("'unsafe-eval'")
        assert csp.count("'unsafe-eval'") == 1
        assert csp.replace(" 'unsafe-eval'", "") == PRODUCTION_CSP

    def test_trusted_domains_are_appended_to_their_directive(self):
        trusted = TrustedDomains(
            scripts=["https://cdn.example.com"],
            styles=["https://styles.example.com"],
            images=["https://img.example.com"],
            fonts=["https://fonts.example.com"],
            connect=["https://api.example.com"],
        )
        csp = build_default_csp(trusted)

        assert _directive(csp, "script-src") == (
            "script-src 'self' https://js.stripe.com https://www.gstatic.com https://cdn.example.com"
        )
        assert _directive(csp, "style-src").endswith("https://styles.example.com")
        assert _directive(csp, "img-src").endswith("https://img.example.com")
        assert _directive(csp, "font-src").endswith("https://fonts.example.com")
        assert _directive(csp, "connect-src").endswith("https://api.example.com")

    def test_trusted_script_domain_precedes_unsafe_eval(self):
        csp = build_default_csp(TrustedDomains(scripts=["https://cdn.example.com"]), production=False)
        assert _directive(csp, "script-src").endswith("https://cdn.example.com 'unsafe-eval'")

    def test_no_unsafe_eval_in_production(self):
        assert "'unsafe-eval'" not in build_default_csp(production=True)


# ============================================================================
# HEADER SET
# ============================================================================

class TestGetSecurityHeaders:

    def test_production_header_set_and_order(self):
        headers = get_security_headers(PRODUCTION)

        assert list(headers) == [
            "Content-Security-Policy",
            "X-Frame-Options",
            "X-Content-Type-Options",
            "Referrer-Policy",
            "Permissions-Policy",
            "X-XSS-Protection",
            "Cross-Origin-Opener-Policy",
            "Cross-Origin-Resource-Policy",
            "Cross-Origin-Embedder-Policy",
            "Strict-Transport-Security",
        ]
        assert headers["Content-Security-Policy"] == PRODUCTION_CSP
        assert headers["X-Frame-Options"] == "DENY"
        assert headers["X-Content-Type-Options"] == "nosniff"
        assert headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
        assert headers["Permissions-Policy"] == PERMISSIONS_POLICY
        assert headers["X-XSS-Protection"] == "1; mode=block"
        assert headers["Cross-Origin-Embedder-Policy"] == "require-corp"
        assert headers["Strict-Transport-Security"] == HSTS_VALUE

    def test_defaults_to_production(self):
        assert get_security_headers() == get_security_headers(PRODUCTION)

    def test_development_relaxations(self):
        headers = get_security_headers(DEVELOPMENT)

        assert "Strict-Transport-Security" not in headers
        assert headers["Cross-Origin-Embedder-Policy"] == "unsafe-none"
        assert "'unsafe-eval'" in headers["Content-Security-Policy"]
        assert headers["X-Frame-Options"] == "DENY"

    def test_is_deterministic(self):
        first = get_security_headers(PRODUCTION)
        second = get_security_headers(SecurityHeadersOptions(mode=EnvironmentMode.PRODUCTION))
        assert first == second
        assert list(first.items()) == list(second.items())

    def test_custom_csp_is_used_verbatim(self):
        options = SecurityHeadersOptions(content_security_policy="default-src 'none'")
        assert get_security_headers(options)["Content-Security-Policy"] == "default-src 'none'"

    def test_secure_json_headers(self):
        headers = secure_json_headers()
        assert list(headers)[0] == "Content-Type"
        assert headers["Content-Type"] == "application/json"
        assert headers["X-Frame-Options"] == "DENY"

    def test_options_for_mode_accepts_strings(self):
        assert options_for_mode("development").mode is EnvironmentMode.DEVELOPMENT
        assert options_for_mode("staging").mode is EnvironmentMode.PRODUCTION


# ============================================================================
# APPLYING HEADERS
# ============================================================================

class TestApplySecurityHeaders:

    def test_preserves_body_and_status(self):
        original = Response("created", status=201, mimetype="text/plain")

        secured = apply_security_headers(original, PRODUCTION)

        assert secured is not original
        assert secured.status_code == 201
        assert secured.status == original.status
        assert secured.get_data(as_text=True) == "created"
        assert secured.headers["Content-Type"].startswith("text/plain")
        assert secured.headers["Strict-Transport-Security"] == HSTS_VALUE

    def test_existing_headers_are_kept(self):
        original = Response("embed me")
        original.headers["X-Frame-Options"] = "SAMEORIGIN"

        secured = apply_security_headers(original)

        assert secured.headers["X-Frame-Options"] == "SAMEORIGIN"
        assert secured.headers["X-Content-Type-Options"] == "nosniff"

    def test_merge_is_case_insensitive_for_werkzeug_headers(self):
        headers = Headers({"content-security-policy": "default-src 'none'"})
        merge_security_headers(headers, DEVELOPMENT)

        assert headers.getlist("Content-Security-Policy") == ["default-src 'none'"]
        assert headers["Cross-Origin-Embedder-Policy"] == "unsafe-none"


# ============================================================================
# HTTPS DETECTION AND REDIRECT
# ============================================================================

class TestHttpsDetection:

    def test_https_scheme(self, make_request):
        assert is_secure_connection(make_request(base_url="https://shop.example.com")) is True

    def test_plain_http(self, make_request):
        assert is_secure_connection(make_request()) is False

    @pytest.mark.parametrize("value,expected", [
        ("https", True),
        ("HTTPS", True),
        ("https, http", True),
        ("http", False),
        ("http, https", False),
    ])
    def test_forwarded_proto(self, make_request, value, expected):
        request = make_request(headers={"X-Forwarded-Proto": value})
        assert is_secure_connection(request) is expected

    @pytest.mark.parametrize("value,expected", [
        ('{"scheme":"https"}', True),
        ('{"scheme":"http"}', False),
        ("scheme=https", False),
        ('["https"]', False),
    ])
    def test_cloudflare_visitor(self, make_request, value, expected):
        request = make_request(headers={"CF-Visitor": value})
        assert is_secure_connection(request) is expected


class TestRedirectToHttps:

    def test_redirect_keeps_host_path_and_query(self, make_request):
        request = make_request("GET", "/checkout", query_string="step=2")

        response = redirect_to_https(request, PRODUCTION)

        assert response.status_code == 301
        assert response.headers["Location"] == "https://localhost:3000/checkout?step=2"

    def test_redirect_carries_security_headers(self, make_request):
        response = redirect_to_https(make_request("GET", "/"), PRODUCTION)

        assert response.headers["Strict-Transport-Security"] == HSTS_VALUE
        assert response.headers["X-Frame-Options"] == "DENY"


# ============================================================================
# OPTIONS FROM SETTINGS
# ============================================================================

class TestLoadSecurityHeadersOptions:

    def test_defaults_from_empty_settings(self):
        options = load_security_headers_options({})

        assert options.mode is EnvironmentMode.PRODUCTION
        assert options.content_security_policy is None
        assert options.trusted_domains == TrustedDomains()

    def test_reads_mode_domains_and_ignores_other_keys(self):
        options = load_security_headers_options({
            "SECURITY_MODE": "development",
            "TRUSTED_SCRIPT_DOMAINS": ["https://cdn.example.com"],
            "SECRET_KEY": "ignored",
            "DEBUG": True,
        })

        assert options.mode is EnvironmentMode.DEVELOPMENT
        assert options.trusted_domains.scripts == ["https://cdn.example.com"]
        assert "https://cdn.example.com" in get_security_headers(options)["Content-Security-Policy"]

    def test_empty_csp_override_means_default(self):
        options = load_security_headers_options({"CONTENT_SECURITY_POLICY": ""})
        assert get_security_headers(options)["Content-Security-Policy"] == PRODUCTION_CSP

    def test_unknown_mode_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            load_security_headers_options({"SECURITY_MODE": "staging"})
        assert "SECURITY_MODE" in exc_info.value.messages
