"""
Error surface normalizer and response builder tests.
"""

import json

import pytest
from structlog.testing import capture_logs

from shopguard.utils.environment import EnvironmentMode
from shopguard.utils.exceptions import ShopguardError
from shopguard.utils.response import (
    GENERIC_ERROR_MESSAGE,
    UNKNOWN_ERROR_MESSAGE,
    error_response,
    forbidden_response,
    handle_api_error,
    normalize_error_code,
    not_found_response,
    success_response,
    unauthorized_response,
    validation_error_response,
)


def _raise_and_catch(message):
    try:
        raise RuntimeError(message)
    except RuntimeError as e:
        return e


def _body(response):
    return json.loads(response.get_data(as_text=True))


# ============================================================================
# ERROR NORMALIZATION
# ============================================================================

class TestNormalizeErrorCode:

    @pytest.mark.parametrize("context,expected", [
        ("save-order", "SAVE_ORDER"),
        ("save order", "SAVE_ORDER"),
        ("fetch user-profile", "FETCH_USER_PROFILE"),
        ("ALREADY_UPPER", "ALREADY_UPPER"),
    ])
    def test_upper_snake_case(self, context, expected):
        assert normalize_error_code(context) == expected


class TestHandleApiError:

    def test_production_payload_is_generic(self):
        error = _raise_and_catch("db password=secret at 10.0.0.5")

        payload = handle_api_error(error, "save-order", mode=EnvironmentMode.PRODUCTION)

        assert payload == {"error": GENERIC_ERROR_MESSAGE, "code": "SAVE_ORDER"}
        assert "secret" not in json.dumps(payload)

    def test_production_is_the_default_mode(self):
        payload = handle_api_error(_raise_and_catch("secret"), "save-order")
        assert set(payload) == {"error", "code"}

    def test_unknown_mode_string_is_treated_as_production(self):
        payload = handle_api_error(_raise_and_catch("secret"), "save-order", mode="staging")
        assert payload["error"] == GENERIC_ERROR_MESSAGE

    def test_development_payload_includes_message_and_traceback(self):
        error = _raise_and_catch("secret")

        payload = handle_api_error(error, "save-order", mode="development")

        assert payload["error"] == "secret"
        assert payload["code"] == "SAVE_ORDER"
        assert "Traceback" in payload["details"]
        assert "RuntimeError: secret" in payload["details"]

    def test_development_uses_shopguard_error_message(self):
        payload = handle_api_error(ShopguardError("Stock unavailable"), "reserve", mode="development")
        assert payload["error"] == "Stock unavailable"

    @pytest.mark.parametrize("error", ["just a string", None, 42, {"message": "dict"}])
    def test_non_exception_errors_are_tolerated(self, error):
        payload = handle_api_error(error, "weird", mode="development")

        assert payload["error"] == UNKNOWN_ERROR_MESSAGE
        assert payload["details"] is None
        assert payload["code"] == "WEIRD"

    def test_empty_exception_message_falls_back(self):
        payload = handle_api_error(RuntimeError(), "op", mode="development")
        assert payload["error"] == UNKNOWN_ERROR_MESSAGE

    def test_error_is_logged_in_every_mode(self):
        error = _raise_and_catch("secret")

        with capture_logs() as logs:
            handle_api_error(error, "save-order", mode="production")

        entry = next(log for log in logs if log["event"] == "API error")
        assert entry["log_level"] == "error"
        assert entry["code"] == "SAVE_ORDER"
        assert entry["context"] == "save-order"
        assert entry["error_type"] == "RuntimeError"
        assert entry["exc_info"] is error

    def test_counts_error_by_code(self, mocker):
        record = mocker.patch("shopguard.utils.response.record_api_error")

        handle_api_error(_raise_and_catch("x"), "checkout")

        record.assert_called_once_with("CHECKOUT")

    def test_metrics_failure_does_not_raise(self, mocker):
        mocker.patch("shopguard.utils.response.record_api_error", side_effect=RuntimeError("registry"))

        payload = handle_api_error(_raise_and_catch("x"), "checkout")

        assert payload["code"] == "CHECKOUT"


# ============================================================================
# RESPONSE BUILDERS
# ============================================================================

class TestResponseBuilders:

    def test_error_response_defaults_to_500_and_production(self):
        response = error_response(_raise_and_catch("secret"), "save-order")

        assert response.status_code == 500
        assert response.mimetype == "application/json"
        assert _body(response) == {"error": GENERIC_ERROR_MESSAGE, "code": "SAVE_ORDER"}

    def test_error_response_custom_status(self):
        response = error_response(_raise_and_catch("x"), "upstream", status=502)
        assert response.status_code == 502

    def test_validation_error_hides_details_in_production(self):
        response = validation_error_response("Invalid input", details={"email": ["bad"]})

        assert response.status_code == 400
        assert _body(response) == {"error": "Invalid input"}

    def test_validation_error_shows_details_in_development(self):
        response = validation_error_response(
            "Invalid input", details={"email": ["bad"]}, mode="development"
        )
        assert _body(response) == {"error": "Invalid input", "details": {"email": ["bad"]}}

    @pytest.mark.parametrize("builder,status,message", [
        (unauthorized_response, 401, "No autorizado"),
        (forbidden_response, 403, "Acceso denegado"),
        (not_found_response, 404, "Recurso no encontrado"),
    ])
    def test_default_messages(self, builder, status, message):
        response = builder()
        assert response.status_code == status
        assert _body(response) == {"error": message}

    def test_custom_message(self):
        assert _body(forbidden_response("Solo administradores")) == {"error": "Solo administradores"}

    def test_success_response(self):
        response = success_response({"ok": True}, status=201)
        assert response.status_code == 201
        assert _body(response) == {"ok": True}
