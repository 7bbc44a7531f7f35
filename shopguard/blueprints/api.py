"""
Storefront API Blueprint

Thin host surface around the request-gating pipeline. Handlers receive
requests that already passed the origin guard and return responses that the
header composer decorates on the way out.

Endpoints:
    GET  /api/csrf-token       issue a double-submit token and cookie
    POST /api/save-order       sanitize and validate a checkout order
    POST /api/stripe-webhook   CSRF-exempt payment webhook acknowledgement
    GET  /api/metrics          Prometheus exposition

Persistence and payment signature verification belong to external
collaborators; ``save-order`` returns the document it would store.
"""

from typing import Any, Dict

import structlog
from flask import Blueprint, Response, current_app, request
from marshmallow import ValidationError
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from shopguard.security.csrf import CSRF_COOKIE_NAME, generate_csrf_token
from shopguard.utils.environment import EnvironmentMode, is_production, resolve_mode
from shopguard.utils.exceptions import UnsupportedValueError
from shopguard.utils.response import success_response, validation_error_response
from shopguard.utils.sanitizers import FieldKind, sanitize_document_value, sanitize_object
from shopguard.utils.validators import ShippingInfoSchema, validate_safe_id

logger = structlog.get_logger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")

CUSTOMER_SCHEMA = {
    "name": FieldKind.NAME,
    "email": FieldKind.EMAIL,
    "phone": FieldKind.PHONE,
    "address": FieldKind.ADDRESS,
    "city": FieldKind.NAME,
    "newsletter": FieldKind.BOOLEAN,
}


def _security_mode() -> EnvironmentMode:
    return resolve_mode(current_app.config.get("SECURITY_MODE", EnvironmentMode.PRODUCTION))


@api_bp.route("/csrf-token", methods=["GET"])
def issue_csrf_token():
    """
    Issue a CSRF token for the double-submit check.

    The cookie is readable by page scripts on purpose: the client echoes its
    value in the ``X-CSRF-Token`` header of state-changing requests.
    """
    token = generate_csrf_token()
    response = success_response({"csrfToken": token})
    response.set_cookie(
        current_app.config.get("CSRF_COOKIE_NAME", CSRF_COOKIE_NAME),
        token,
        path="/",
        secure=is_production(_security_mode()),
        httponly=False,
        samesite="Strict",
    )
    response.headers["Cache-Control"] = "no-store"
    return response


@api_bp.route("/save-order", methods=["POST"])
def save_order():
    """
    Sanitize and validate an order body.

    Request Body:
        orderId: safe identifier (required)
        customer: object sanitized field by field; a valid email is required
        shipping: optional ``ShippingInfoSchema`` object
        items: optional list, passed through the document value gate

    Returns:
        201 with the sanitized order document, 400 for rejected input
    """
    mode = _security_mode()
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return validation_error_response("Request body must be a JSON object", mode=mode)

    order_id = data.get("orderId")
    if not validate_safe_id(order_id):
        return validation_error_response("Invalid order id", mode=mode)

    customer = sanitize_object(data.get("customer"), CUSTOMER_SCHEMA)
    if "email" not in customer:
        return validation_error_response("A valid customer email is required", mode=mode)

    document: Dict[str, Any] = {"orderId": order_id, "customer": customer}

    if data.get("shipping") is not None:
        schema = ShippingInfoSchema()
        try:
            document["shipping"] = schema.dump(schema.load(data["shipping"]))
        except ValidationError as e:
            logger.info("Shipping information rejected", fields=sorted(e.messages))
            return validation_error_response(
                "Invalid shipping information", details=e.messages, mode=mode
            )

    try:
        document["items"] = sanitize_document_value(data.get("items") or [])
    except UnsupportedValueError as e:
        logger.warning("Order items rejected", value_type=e.value_type, location=e.path)
        return validation_error_response(
            "Unsupported item data", details={"path": e.path, "type": e.value_type}, mode=mode
        )

    logger.info("Order accepted", order_id=order_id, item_count=len(document["items"]))
    return success_response(document, status=201)


@api_bp.route("/stripe-webhook", methods=["POST"])
def stripe_webhook():
    """Acknowledge a payment webhook; signature verification happens upstream."""
    logger.info("Payment webhook received", content_length=request.content_length)
    return success_response({"received": True})


@api_bp.route("/metrics", methods=["GET"])
def prometheus_metrics():
    """Prometheus metrics in text exposition format."""
    return Response(generate_latest(), content_type=CONTENT_TYPE_LATEST)


__all__ = ["api_bp", "CUSTOMER_SCHEMA"]
