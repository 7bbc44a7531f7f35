"""
Input Sanitization Utilities

Pure, synchronous cleaners for untrusted values arriving in request bodies,
query strings and headers, plus a recursive gate for documents headed to the
document store.

Scalar sanitizers (``escape_html``, ``sanitize_string``, ``sanitize_email``,
``sanitize_name`` ...) follow a "coerce or reject, never raise" contract: they
sit inline in render and request paths where an exception would break a page,
so malformed input yields a sentinel (``None`` or ``""``) that callers must
check explicitly.

The structural sanitizer (``DocumentValueSanitizer`` / ``sanitize_document_value``)
sits in the write path and raises ``UnsupportedValueError`` for any shape it
does not recognise; aborting a malformed write is the correct outcome there.

``sanitize_object`` combines both worlds: it applies a field-kind schema and
drops fields that fail, producing a best-effort partial result.

``sanitize_path`` is defense in depth only. Storage keys built from user input
must first be checked against an allow-list of known keys or with
``validate_safe_id``; stripping characters is never sufficient on its own.
"""

import math
import re
import unicodedata
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

import bleach
import structlog

from .exceptions import UnsupportedValueError

logger = structlog.get_logger(__name__)

# RFC 5321 mailbox limit
MAX_EMAIL_LENGTH = 254
DEFAULT_STRING_MAX_LENGTH = 1000
DEFAULT_NAME_MAX_LENGTH = 100
DEFAULT_ADDRESS_MAX_LENGTH = 200
DOCUMENT_KEY_MAX_LENGTH = 100
DOCUMENT_MAX_DEPTH = 64
PHONE_MAX_LENGTH = 20
POSTAL_CODE_MAX_LENGTH = 10

_HTML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#039;",
    "/": "&#x2F;",
}
_HTML_ESCAPE_RE = re.compile(r"[&<>\"'/]")

# C0 controls except tab, newline and carriage return; DEL; C1 controls
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")
_HEX_ESCAPE_RE = re.compile(r"\\x[0-9a-fA-F]{2}")
_UNICODE_ESCAPE_RE = re.compile(r"\\u[0-9a-fA-F]{4}")

EMAIL_REGEX = re.compile(r"^[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}$")

_WHITESPACE_RUN_RE = re.compile(r"\s+")
_PHONE_STRIP_RE = re.compile(r"[^0-9+\s\-()]")
_POSTAL_CODE_STRIP_RE = re.compile(r"[^A-Z0-9\s\-]")
_PATH_STRIP_RE = re.compile(r"[^a-zA-Z0-9_\-./]")
_SLASH_RUN_RE = re.compile(r"/+")
_DECIMAL_RE = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")

_NAME_PUNCTUATION = frozenset("-'.")
_ADDRESS_PUNCTUATION = frozenset(",.#-/")

_BLOCKED_URL_SCHEMES = ("javascript:", "data:", "vbscript:")
_ALLOWED_URL_PREFIXES = ("http://", "https://", "mailto:", "/")


class FieldKind(str, Enum):
    """Field kinds understood by ``sanitize_object``."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    EMAIL = "email"
    PHONE = "phone"
    NAME = "name"
    ADDRESS = "address"


SanitizationSchema = Mapping[str, Union[FieldKind, str]]


def escape_html(value: Any) -> str:
    """
    Escape HTML-significant characters in a single left-to-right pass.

    ``& < > " ' /`` become entities. Each character is looked up once, so
    entities produced for one character are never re-scanned; escaping
    ``<script>`` cannot yield a literal ``<``.

    Args:
        value: Untrusted value; non-strings are converted with ``str()``

    Returns:
        HTML-escaped text safe for element content and quoted attributes
    """
    text = value if isinstance(value, str) else str(value)
    return _HTML_ESCAPE_RE.sub(lambda match: _HTML_ESCAPES[match.group()], text)


def strip_html(value: Any) -> str:
    """Remove every HTML tag, keeping the text between them."""
    text = value if isinstance(value, str) else str(value)
    return bleach.clean(text, tags=[], attributes={}, strip=True, strip_comments=True)


def sanitize_url(value: Any) -> str:
    """
    Allow only http(s), mailto and root-relative URLs.

    Returns:
        The trimmed URL, or ``""`` when the scheme is dangerous or unknown
    """
    if not isinstance(value, str):
        return ""

    trimmed = value.strip()
    lowered = trimmed.lower()

    if lowered.startswith(_BLOCKED_URL_SCHEMES):
        logger.warning("Blocked dangerous URL", url=trimmed[:100])
        return ""

    if not lowered.startswith(_ALLOWED_URL_PREFIXES):
        if trimmed:
            logger.warning("Rejected URL with unsupported scheme", url=trimmed[:100])
        return ""

    return trimmed


def sanitize_string(value: Any, max_length: int = DEFAULT_STRING_MAX_LENGTH) -> str:
    """
    Clean free text before it reaches later processing stages.

    Trims, truncates to ``max_length``, removes control characters (space,
    tab and newlines are kept) and strips literal ``\\xHH`` / ``\\uHHHH``
    escape sequences so encoded payloads cannot be decoded downstream.

    Args:
        value: Untrusted input; non-strings yield ``""``
        max_length: Maximum length kept after trimming

    Returns:
        Sanitized string, possibly empty
    """
    if not isinstance(value, str):
        return ""

    sanitized = value.strip()[:max(max_length, 0)]
    sanitized = _CONTROL_CHARS_RE.sub("", sanitized)
    sanitized = _HEX_ESCAPE_RE.sub("", sanitized)
    sanitized = _UNICODE_ESCAPE_RE.sub("", sanitized)
    return sanitized


def sanitize_email(value: Any) -> Optional[str]:
    """
    Normalize and validate an email address.

    The address is lowercased and trimmed, then checked against
    ``EMAIL_REGEX`` and the RFC 5321 length limit. Nothing else is enforced:
    reserved TLDs such as ``.test`` or ``.local`` pass.

    Returns:
        The normalized address, or ``None`` when it is not acceptable
    """
    if not isinstance(value, str):
        return None

    cleaned = value.strip().lower()

    if len(cleaned) > MAX_EMAIL_LENGTH or not EMAIL_REGEX.match(cleaned):
        return None
    return cleaned


def _keep_chars(text: str, punctuation: frozenset) -> str:
    return "".join(
        ch for ch in text
        if ch.isspace()
        or ch in punctuation
        or unicodedata.category(ch)[0] in ("L", "N")
    )


def sanitize_name(value: Any, max_length: int = DEFAULT_NAME_MAX_LENGTH) -> str:
    """
    Keep Unicode letters, digits, whitespace, hyphen, apostrophe and period.

    Whitespace runs collapse to a single space. Suitable for person, product
    and city names in any script.
    """
    if not isinstance(value, str):
        return ""

    sanitized = _keep_chars(value.strip()[:max(max_length, 0)], _NAME_PUNCTUATION)
    return _WHITESPACE_RUN_RE.sub(" ", sanitized).strip()


def sanitize_phone(value: Any) -> str:
    """Keep digits, ``+``, spaces, hyphens and parentheses; at most 20 chars."""
    if not isinstance(value, str):
        return ""
    return _PHONE_STRIP_RE.sub("", value)[:PHONE_MAX_LENGTH]


def sanitize_address(value: Any, max_length: int = DEFAULT_ADDRESS_MAX_LENGTH) -> str:
    """
    Keep Unicode letters, digits, whitespace and ``, . # - /``.

    Whitespace runs collapse to a single space.
    """
    if not isinstance(value, str):
        return ""

    sanitized = _keep_chars(value.strip()[:max(max_length, 0)], _ADDRESS_PUNCTUATION)
    return _WHITESPACE_RUN_RE.sub(" ", sanitized).strip()


def sanitize_postal_code(value: Any) -> str:
    """
    Uppercase and keep ``A-Z``, ``0-9``, spaces and hyphens; at most 10 chars.

    Deliberately permissive so UK or Canadian codes (``SW1A 1AA``,
    ``K1A 0B1``) survive alongside numeric ones.
    """
    if not isinstance(value, str):
        return ""
    sanitized = _POSTAL_CODE_STRIP_RE.sub("", value.upper())
    return sanitized.strip()[:POSTAL_CODE_MAX_LENGTH]


def sanitize_path(value: Any) -> str:
    """
    Reduce a user-supplied storage path to a conservative character set.

    Characters outside ``[A-Za-z0-9_.-/]`` are dropped first, then ``..``
    sequences are removed until none remain, repeated slashes collapse and a
    single leading slash is stripped.

    This is a secondary control. Validate the identifiers that make up the
    path with ``validate_safe_id`` (or an allow-list of known keys) before
    building it.
    """
    if not isinstance(value, str):
        return ""

    sanitized = _PATH_STRIP_RE.sub("", value)
    while ".." in sanitized:
        sanitized = sanitized.replace("..", "")
    sanitized = _SLASH_RUN_RE.sub("/", sanitized)
    if sanitized.startswith("/"):
        sanitized = sanitized[1:]
    return sanitized


class DocumentValueSanitizer:
    """
    Strict structural gate for values written to the document store.

    Accepted shapes are a closed set: ``None``, ``bool``, finite ``int`` and
    ``float``, ``str`` (cleaned with ``sanitize_string``), lists and tuples
    (returned as lists), and mappings with string keys. Keys are cleaned with
    ``sanitize_string(max_length=100)`` and dropped when they end up empty.
    At most ``max_depth`` lists and mappings may be nested. Anything else
    raises ``UnsupportedValueError``.
    """

    def __init__(self, string_max_length: int = DEFAULT_STRING_MAX_LENGTH,
                 key_max_length: int = DOCUMENT_KEY_MAX_LENGTH,
                 max_depth: int = DOCUMENT_MAX_DEPTH):
        self.string_max_length = string_max_length
        self.key_max_length = key_max_length
        self.max_depth = max_depth

    def sanitize(self, value: Any) -> Any:
        """
        Recursively sanitize ``value``.

        Raises:
            UnsupportedValueError: For non-finite numbers, non-string keys,
                nesting deeper than ``max_depth`` and any type outside the
                accepted set
        """
        return self._sanitize(value, "$", 0)

    def _check_depth(self, value: Any, path: str, depth: int) -> None:
        if depth >= self.max_depth:
            raise UnsupportedValueError("Maximum nesting depth exceeded", value=value, path=path)

    def _sanitize(self, value: Any, path: str, depth: int) -> Any:
        if value is None or isinstance(value, bool):
            return value

        if isinstance(value, str):
            return sanitize_string(value, max_length=self.string_max_length)

        if isinstance(value, (int, float)):
            if isinstance(value, float) and not math.isfinite(value):
                raise UnsupportedValueError("Invalid number value", value=value, path=path)
            return value

        if isinstance(value, (list, tuple)):
            self._check_depth(value, path, depth)
            return [
                self._sanitize(item, f"{path}[{index}]", depth + 1)
                for index, item in enumerate(value)
            ]

        if isinstance(value, Mapping):
            self._check_depth(value, path, depth)
            sanitized = {}
            for key, item in value.items():
                if not isinstance(key, str):
                    raise UnsupportedValueError(
                        f"Unsupported key type: {type(key).__name__}", value=key, path=path
                    )
                clean_key = sanitize_string(key, max_length=self.key_max_length)
                if clean_key:
                    sanitized[clean_key] = self._sanitize(item, f"{path}.{clean_key}", depth + 1)
            return sanitized

        raise UnsupportedValueError(
            f"Unsupported value type: {type(value).__name__}", value=value, path=path
        )


_document_sanitizer = DocumentValueSanitizer()


def sanitize_document_value(value: Any) -> Any:
    """Sanitize a value of unknown shape with the default ``DocumentValueSanitizer``."""
    return _document_sanitizer.sanitize(value)


def _to_number(value: Any) -> Optional[Union[int, float]]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        # ASCII decimal only; float() alone would take "1_000" or Arabic-Indic digits
        text = value.strip()
        if not _DECIMAL_RE.fullmatch(text):
            return None
        number = float(text)
        return number if math.isfinite(number) else None
    return None


def _to_boolean(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if value == "true":
        return True
    if value == "false":
        return False
    return None


def _sanitize_field(kind: FieldKind, value: Any) -> Any:
    if kind is FieldKind.NUMBER:
        return _to_number(value)
    if kind is FieldKind.BOOLEAN:
        return _to_boolean(value)
    if not isinstance(value, str):
        return None
    if kind is FieldKind.STRING:
        return sanitize_string(value)
    if kind is FieldKind.EMAIL:
        return sanitize_email(value)
    if kind is FieldKind.PHONE:
        return sanitize_phone(value)
    if kind is FieldKind.NAME:
        return sanitize_name(value)
    return sanitize_address(value)


def sanitize_object(data: Any, schema: SanitizationSchema) -> Dict[str, Any]:
    """
    Build a new dict holding only the schema's fields, each sanitized by kind.

    Fields that are missing, ``None``, of the wrong type or that fail their
    kind-specific parse (an unparsable number, an invalid email) are omitted.
    A bad field never fails the whole object.

    Args:
        data: Request body; anything other than a mapping yields ``{}``
        schema: Field name to ``FieldKind`` (or its string value)

    Returns:
        Partially sanitized copy of ``data``

    Raises:
        ValueError: When ``schema`` names an unknown field kind
    """
    kinds = {field: FieldKind(kind) for field, kind in schema.items()}

    if not isinstance(data, Mapping):
        return {}

    sanitized: Dict[str, Any] = {}
    for field, kind in kinds.items():
        value = data.get(field)
        if value is None:
            continue
        clean = _sanitize_field(kind, value)
        if clean is not None:
            sanitized[field] = clean

    dropped = [field for field in kinds if field in data and field not in sanitized]
    if dropped:
        logger.debug("Fields dropped during sanitization", fields=dropped)

    return sanitized


__all__ = [
    "EMAIL_REGEX",
    "MAX_EMAIL_LENGTH",
    "DOCUMENT_MAX_DEPTH",
    "FieldKind",
    "SanitizationSchema",
    "escape_html",
    "strip_html",
    "sanitize_url",
    "sanitize_string",
    "sanitize_email",
    "sanitize_name",
    "sanitize_phone",
    "sanitize_address",
    "sanitize_postal_code",
    "sanitize_path",
    "DocumentValueSanitizer",
    "sanitize_document_value",
    "sanitize_object",
]
