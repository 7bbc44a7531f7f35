"""
Validation predicates and request body schemas.

The predicates are total boolean functions: they return ``False`` for input
of the wrong type instead of raising. ``validate_safe_id`` is the primary
control for any identifier interpolated into a storage path or query;
``sanitize_path`` only backs it up.

``ShippingInfoSchema`` is the marshmallow schema for the checkout shipping
section.
"""

import math
import re
from typing import Any, Collection, Optional

from email_validator import EmailNotValidError, validate_email
from marshmallow import EXCLUDE, Schema, ValidationError, fields, post_load, pre_load, validate, validates

SAFE_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
DEFAULT_ID_MAX_LENGTH = 128

# Latin letters plus the Spanish accented set
LETTERS_PATTERN = r"^[a-zA-ZáéíóúÁÉÍÓÚñÑüÜ\s]+$"
SPANISH_PHONE_PATTERN = r"^(\+34|0034|34)?[\s-]?[6-9][0-9]{2}[\s-]?[0-9]{2}[\s-]?[0-9]{2}[\s-]?[0-9]{2}$"
ZIP_CODE_PATTERN = r"^[0-9]{5}$"
DEFAULT_COUNTRY = "España"


def validate_safe_id(value: Any, max_length: int = DEFAULT_ID_MAX_LENGTH) -> bool:
    """
    Check that ``value`` is a non-empty identifier made of ``[A-Za-z0-9_-]``.

    Args:
        value: Candidate identifier
        max_length: Upper bound on the identifier length

    Returns:
        True only for strings of 1..max_length allowed characters
    """
    if not isinstance(value, str) or not value or len(value) > max_length:
        return False
    return SAFE_ID_PATTERN.fullmatch(value) is not None


def validate_whitelist(value: Any, allowed: Collection) -> bool:
    """Return True when ``value`` is one of ``allowed``."""
    try:
        return value in allowed
    except TypeError:
        # unhashable value tested against a set
        return False


def validate_length(value: Any, min_length: int = 0, max_length: Optional[int] = None) -> bool:
    """Return True when ``value`` is a string whose length is within bounds."""
    if not isinstance(value, str):
        return False
    if len(value) < min_length:
        return False
    return max_length is None or len(value) <= max_length


def validate_range(value: Any, minimum: Optional[float] = None,
                   maximum: Optional[float] = None) -> bool:
    """
    Return True when ``value`` is a finite number within ``[minimum, maximum]``.

    ``bool`` is not treated as a number, and ``NaN`` / ``±inf`` are always
    rejected regardless of the bounds.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if not math.isfinite(value):
        return False
    if minimum is not None and value < minimum:
        return False
    return maximum is None or value <= maximum


class ShippingInfoSchema(Schema):
    """
    Shipping section of a checkout order.

    Incoming keys are camelCase (``firstName``); loaded data uses snake_case
    attribute names. Unknown keys are dropped. The email must also pass
    email-validator's syntax rules, so reserved domains (``.test``,
    ``.local``) and malformed dot or hyphen placement are rejected.
    """

    class Meta:
        unknown = EXCLUDE

    first_name = fields.Str(
        required=True,
        data_key="firstName",
        validate=[
            validate.Length(min=2, max=50),
            validate.Regexp(LETTERS_PATTERN, error="First name may only contain letters"),
        ],
    )
    last_name = fields.Str(
        required=True,
        data_key="lastName",
        validate=[
            validate.Length(min=2, max=100),
            validate.Regexp(LETTERS_PATTERN, error="Last name may only contain letters"),
        ],
    )
    email = fields.Email(required=True, validate=validate.Length(min=5, max=100))
    phone = fields.Str(
        required=True,
        validate=[
            validate.Length(min=9, max=15),
            validate.Regexp(SPANISH_PHONE_PATTERN, error="Invalid phone number"),
        ],
    )
    address = fields.Str(required=True, validate=validate.Length(min=5, max=200))
    city = fields.Str(
        required=True,
        validate=[
            validate.Length(min=2, max=100),
            validate.Regexp(LETTERS_PATTERN, error="City may only contain letters"),
        ],
    )
    state = fields.Str(required=True, validate=validate.Length(min=2, max=100))
    zip_code = fields.Str(
        required=True,
        data_key="zipCode",
        validate=validate.Regexp(ZIP_CODE_PATTERN, error="Zip code must have 5 digits"),
    )
    country = fields.Str(load_default=DEFAULT_COUNTRY, validate=validate.Length(min=2, max=100))
    notes = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=500))

    @pre_load
    def strip_strings(self, data, **kwargs):
        """Trim surrounding whitespace from every string value."""
        if not isinstance(data, dict):
            return data
        return {
            key: value.strip() if isinstance(value, str) else value
            for key, value in data.items()
        }

    @validates("email")
    def validate_email_syntax(self, value, **kwargs):
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError as e:
            raise ValidationError(f"Invalid email address: {e}") from e

    @post_load
    def normalize_email(self, data, **kwargs):
        data["email"] = data["email"].lower()
        return data


__all__ = [
    "SAFE_ID_PATTERN",
    "validate_safe_id",
    "validate_whitelist",
    "validate_length",
    "validate_range",
    "ShippingInfoSchema",
]
