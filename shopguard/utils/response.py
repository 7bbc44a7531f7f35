"""
Error surface normalization and JSON response builders.

``handle_api_error`` turns any caught exception plus a short context label
into an ``ApiErrorResponse`` payload. The full error, stack included, always
goes to the server log first. What reaches the client depends on the mode:

- production: a fixed generic message and the normalized context code only
- development: the exception message and its formatted traceback as well

The response builders wrap payloads in ``flask.Response`` objects with a
JSON content type. None of the functions here raise; they are the terminal
sink of every error path.
"""

import json
import re
import traceback
from typing import Any, Dict, Optional

import structlog
from flask import Response

from shopguard.monitoring.metrics import record_api_error
from shopguard.utils.environment import EnvironmentMode, ModeLike, is_production

logger = structlog.get_logger(__name__)

GENERIC_ERROR_MESSAGE = "Error interno del servidor"
UNKNOWN_ERROR_MESSAGE = "Error desconocido"
DEFAULT_UNAUTHORIZED_MESSAGE = "No autorizado"
DEFAULT_FORBIDDEN_MESSAGE = "Acceso denegado"
DEFAULT_NOT_FOUND_MESSAGE = "Recurso no encontrado"
JSON_MIMETYPE = "application/json"

_CONTEXT_SEPARATORS_RE = re.compile(r"[\s-]")

ApiErrorResponse = Dict[str, Any]


def normalize_error_code(context: str) -> str:
    """Uppercase ``context`` and replace whitespace and hyphens with ``_``."""
    return _CONTEXT_SEPARATORS_RE.sub("_", str(context).upper())


def _error_message(error: Any) -> str:
    try:
        message = getattr(error, "message", None)
        if not isinstance(message, str) or not message:
            message = str(error) if isinstance(error, BaseException) else None
        return message or UNKNOWN_ERROR_MESSAGE
    except Exception:
        return UNKNOWN_ERROR_MESSAGE


def _error_details(error: Any) -> Optional[str]:
    if not isinstance(error, BaseException):
        return None
    try:
        return "".join(traceback.format_exception(type(error), error, error.__traceback__))
    except Exception:
        return None


def handle_api_error(error: Any, context: str,
                     mode: ModeLike = EnvironmentMode.PRODUCTION) -> ApiErrorResponse:
    """
    Normalize a caught error into a response-safe payload.

    Args:
        error: Caught exception (any object is tolerated)
        context: Short label for the failing operation, e.g. ``"save-order"``
        mode: Environment mode; defaults to production

    Returns:
        ``{"error", "code"}`` in production, plus ``"details"`` in development
    """
    code = normalize_error_code(context)

    try:
        logger.error(
            "API error",
            context=context,
            code=code,
            error_type=type(error).__name__,
            exc_info=error if isinstance(error, BaseException) else None,
        )
        record_api_error(code)
    except Exception:
        # the normalizer never raises
        pass

    if is_production(mode):
        return {"error": GENERIC_ERROR_MESSAGE, "code": code}

    return {
        "error": _error_message(error),
        "details": _error_details(error),
        "code": code,
    }


def json_response(payload: Any, status: int = 200) -> Response:
    """Serialize ``payload`` into a JSON ``flask.Response``."""
    return Response(json.dumps(payload, default=str), status=status, mimetype=JSON_MIMETYPE)


def error_response(error: Any, context: str, status: int = 500,
                   mode: ModeLike = EnvironmentMode.PRODUCTION) -> Response:
    """Build a JSON response from ``handle_api_error``."""
    return json_response(handle_api_error(error, context, mode=mode), status)


def validation_error_response(message: str, details: Any = None,
                              mode: ModeLike = EnvironmentMode.PRODUCTION) -> Response:
    """
    400 response for rejected input.

    ``details`` (typically marshmallow's error dict) is only included outside
    production.
    """
    payload: Dict[str, Any] = {"error": message}
    if details is not None and not is_production(mode):
        payload["details"] = details
    return json_response(payload, 400)


def unauthorized_response(message: str = DEFAULT_UNAUTHORIZED_MESSAGE) -> Response:
    return json_response({"error": message}, 401)


def forbidden_response(message: str = DEFAULT_FORBIDDEN_MESSAGE) -> Response:
    return json_response({"error": message}, 403)


def not_found_response(message: str = DEFAULT_NOT_FOUND_MESSAGE) -> Response:
    return json_response({"error": message}, 404)


def success_response(data: Any, status: int = 200) -> Response:
    return json_response(data, status)


__all__ = [
    "ApiErrorResponse",
    "GENERIC_ERROR_MESSAGE",
    "UNKNOWN_ERROR_MESSAGE",
    "normalize_error_code",
    "json_response",
    "handle_api_error",
    "error_response",
    "validation_error_response",
    "unauthorized_response",
    "forbidden_response",
    "not_found_response",
    "success_response",
]
