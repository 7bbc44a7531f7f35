"""
shopguard - request-boundary security layer for the storefront API.

Every inbound request passes through four cooperating, stateless components:

- Origin guard (CSRF defense): ``shopguard.security.csrf``
- Input sanitizer / validator: ``shopguard.utils.sanitizers`` and
  ``shopguard.utils.validators``
- Security header composer: ``shopguard.security.headers``
- Error surface normalizer: ``shopguard.utils.response``

``shopguard.security.middleware.SecurityGuard`` wires them into a Flask
application; ``shopguard.app.create_app`` builds a fully configured one.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
