"""Validation helpers for account input."""

import re
from typing import NamedTuple


PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128

# E.164 allows at most 15 digits; shorter local numbers still carry 7
PHONE_MIN_DIGITS = 7
PHONE_MAX_DIGITS = 15


class ValidationResult(NamedTuple):
    """Result of a validation check."""

    valid: bool
    message: str | None = None
    formatted: str | None = None


def normalize_phone(phone: str) -> str:
    """Keep digits and a leading ``+``.

    Example:
        >>> normalize_phone("+1 (415) 555-0100")
        '+14155550100'
    """
    phone = phone.strip()
    digits = re.sub(r"\D", "", phone)
    return f"+{digits}" if phone.startswith("+") else digits


def validate_phone(phone: str) -> ValidationResult:
    """Validate a phone number written with or without formatting.

    Examples:
        >>> validate_phone("+1 415 555 0100")
        ValidationResult(valid=True, message=None, formatted='+14155550100')
        >>> validate_phone("12-34")
        ValidationResult(valid=False, message='Phone number must have 7 to 15 digits', formatted=None)
    """
    if re.search(r"[^\d\s()+.-]", phone):
        return ValidationResult(False, "Phone number contains invalid characters")

    digits = re.sub(r"\D", "", phone)
    if not PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS:
        return ValidationResult(
            False,
            f"Phone number must have {PHONE_MIN_DIGITS} to {PHONE_MAX_DIGITS} digits",
        )
    return ValidationResult(True, formatted=normalize_phone(phone))


def validate_password(password: str) -> ValidationResult:
    """Validate password strength.

    Passwords need at least 8 characters including a letter and a digit.

    Examples:
        >>> validate_password("s3cretpass")
        ValidationResult(valid=True, message=None, formatted=None)
        >>> validate_password("short1")
        ValidationResult(valid=False, message='Password must be at least 8 characters long', formatted=None)
    """
    if len(password) < PASSWORD_MIN_LENGTH:
        return ValidationResult(
            False, f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
        )
    if len(password) > PASSWORD_MAX_LENGTH:
        return ValidationResult(
            False, f"Password must be at most {PASSWORD_MAX_LENGTH} characters long"
        )
    if not re.search(r"[A-Za-z]", password):
        return ValidationResult(False, "Password must contain at least one letter")
    if not re.search(r"\d", password):
        return ValidationResult(False, "Password must contain at least one number")
    return ValidationResult(True)
