"""
Prometheus counters for the request-gating pipeline.

Counters are module-level singletons registered on the default registry, so
any number of application instances in one process share them.
"""

from prometheus_client import Counter

csrf_rejections = Counter(
    "shopguard_csrf_rejections_total",
    "State-changing requests rejected by the origin guard",
    ["reason"],
)

https_redirects = Counter(
    "shopguard_https_redirects_total",
    "Insecure requests redirected to HTTPS",
)

api_errors = Counter(
    "shopguard_api_errors_total",
    "Errors normalized into API error payloads",
    ["code"],
)


def record_csrf_rejection(reason: str) -> None:
    csrf_rejections.labels(reason=reason).inc()


def record_https_redirect() -> None:
    https_redirects.inc()


def record_api_error(code: str) -> None:
    api_errors.labels(code=code).inc()


__all__ = [
    "csrf_rejections",
    "https_redirects",
    "api_errors",
    "record_csrf_rejection",
    "record_https_redirect",
    "record_api_error",
]
