"""
Scalar input checks shared by the services.

Each check raises ``ValidationError`` with a field-level message, or returns
the cleaned value.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional

from fintrack.core.errors import ValidationError
from fintrack.models.family import FamilyPermission

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
HEX_COLOR_RE = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")

MAX_AMOUNT = Decimal("999999999.99")


def sanitize_string(value: str) -> str:
    """Trim, collapse runs of whitespace and drop angle brackets."""
    value = re.sub(r"\s+", " ", value.strip())
    return re.sub(r"[<>]", "", value)


def require_text(value: Optional[str], field: str, max_length: int, min_length: int = 1) -> str:
    cleaned = sanitize_string(value or "")
    if len(cleaned) < min_length:
        raise ValidationError(f"{field} is required")
    if len(cleaned) > max_length:
        raise ValidationError(f"{field} must be {max_length} characters or less")
    return cleaned


def optional_text(value: Optional[str], field: str, max_length: int = 500) -> Optional[str]:
    if value is None:
        return None
    cleaned = sanitize_string(value)
    if len(cleaned) > max_length:
        raise ValidationError(f"{field} must be {max_length} characters or less")
    return cleaned or None


def validate_amount(amount, field: str = "Amount", allow_zero: bool = False) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")

    if not value.is_finite():
        raise ValidationError(f"{field} must be a number")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(
            f"{field} cannot be negative" if allow_zero else f"{field} must be greater than 0"
        )
    if value > MAX_AMOUNT:
        raise ValidationError(f"{field} is too large")
    if value.as_tuple().exponent < -2 and value != value.quantize(Decimal("0.01")):
        raise ValidationError(f"{field} cannot have more than 2 decimal places")
    return value.quantize(Decimal("0.01"))


def validate_email(email: Optional[str]) -> str:
    cleaned = (email or "").strip().lower()
    if not EMAIL_RE.match(cleaned):
        raise ValidationError(f"Invalid email address: {email}")
    return cleaned


def validate_hex_color(color: str) -> str:
    if not HEX_COLOR_RE.match(color or ""):
        raise ValidationError("Invalid color format. Use hex color (e.g., #FF0000)")
    return color.upper()


def validate_password(password: Optional[str], field: str = "Password") -> str:
    if not password or len(password) < 6:
        raise ValidationError(f"{field} must be at least 6 characters long")
    if len(password) > 128:
        raise ValidationError(f"{field} must be less than 128 characters")
    return password


def validate_permissions(permissions: Iterable[str]) -> List[str]:
    permissions = list(permissions)
    valid = {p.value for p in FamilyPermission}
    for permission in permissions:
        if permission not in valid:
            raise ValidationError(f"Invalid permission: {permission}")
    if len(set(permissions)) != len(permissions):
        raise ValidationError("Permissions array contains duplicates")
    return permissions
