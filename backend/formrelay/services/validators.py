"""
Field validation for form submissions.

Pure functions, no I/O. ``validate_submission_fields`` runs before anything
touches the upload directory or an SMTP server, so a rejected submission
leaves no trace.
"""

import re
from typing import Mapping, Optional, Sequence, Union

from formrelay.models.forms import FormSpec

RawValue = Union[str, Sequence[str], None]

# Permissive shape check, not RFC 5322.
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^\+?[0-9\s-]{8,15}$")

MISSING_FIELDS_MESSAGE = "Name and email are required fields."
MISSING_PHONE_MESSAGE = "Name, email and phone are required fields."
INVALID_EMAIL_MESSAGE = "Please provide a valid email address."
INVALID_PHONE_MESSAGE = "Please provide a valid phone number."


class ValidationError(Exception):
    """Raised when a submission is missing or has malformed required fields."""
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


def _is_blank(value: RawValue) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return all(_is_blank(item) for item in value)


def _first(value: RawValue) -> Optional[str]:
    """Scalar view of a raw value: the string itself or the first list item."""
    if value is None or isinstance(value, str):
        return value
    for item in value:
        return item
    return None


def _missing_message(required: Sequence[str]) -> str:
    if "name" not in required:
        return INVALID_EMAIL_MESSAGE
    if "phone" in required:
        return MISSING_PHONE_MESSAGE
    return MISSING_FIELDS_MESSAGE


def require_non_empty(fields: Mapping[str, RawValue], required: Sequence[str]) -> None:
    """
    Raise ValidationError if any required key is absent or blank after trimming.

    Args:
        fields:   canonical field name -> raw value (string or list of strings)
        required: keys that must be present, e.g. ("name", "email")
    """
    for key in required:
        if _is_blank(fields.get(key)):
            raise ValidationError(_missing_message(required), field=key)


def is_valid_email(value: Optional[str]) -> bool:
    if not value:
        return False
    return bool(_EMAIL_RE.fullmatch(value))


def is_valid_phone(value: Optional[str]) -> bool:
    """Absent or empty phone numbers are valid; the field is optional."""
    if not value:
        return True
    return bool(_PHONE_RE.fullmatch(value))


def validate_submission_fields(fields: Mapping[str, RawValue], form: FormSpec) -> None:
    """
    Check required fields, email shape and (when present) phone shape.

    ``fields`` uses canonical keys, already resolved from request aliases.
    Values are trimmed before the shape checks.
    """
    require_non_empty(fields, form.required)

    email = (_first(fields.get("email")) or "").strip()
    if not is_valid_email(email):
        raise ValidationError(INVALID_EMAIL_MESSAGE, field="email")

    if form.has_field("phone"):
        phone = (_first(fields.get("phone")) or "").strip()
        if not is_valid_phone(phone):
            raise ValidationError(INVALID_PHONE_MESSAGE, field="phone")
