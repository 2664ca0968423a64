"""Validation helpers for payloads entering the expense store."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Optional

from .exceptions import ValidationError
from .models import is_date_only, parse_datetime

PAYMENT_METHOD_TYPES = {"cash", "card", "bank"}

DEFAULT_PAYMENT_METHOD_ICON = "💳"
DEFAULT_PAYMENT_METHOD_TYPE = "card"
DEFAULT_CATEGORY_ICON = "🏷️"


def _quantize_two_decimals(amount: Decimal) -> Decimal:
    """Round the amount to two decimal places using HALF_UP rounding."""
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def parse_amount(raw: object, field: str) -> Decimal:
    """Convert raw input to a positive Decimal with exactly two fraction digits."""
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be a numeric value")
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, TypeError) as exc:  # type: ignore[arg-type]
        raise ValidationError(f"{field} must be a numeric value") from exc

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a numeric value")
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero")

    return _quantize_two_decimals(amount)


def validate_required_str(value: object, field: str, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(f"{field} cannot be empty")
    if len(trimmed) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return trimmed


def validate_optional_str(value: object, field: str, max_length: int) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        return ""
    return validate_required_str(value, field, max_length)


def validate_datetime(value: object, field: str) -> datetime:
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    elif isinstance(value, str):
        try:
            dt = parse_datetime(value)
        except ValueError as exc:
            raise ValidationError(f"{field} must be an ISO 8601 date or datetime") from exc
    else:
        raise ValidationError(f"{field} must be a datetime or ISO 8601 string")
    return dt.astimezone(timezone.utc)


def validate_enum(value: object, field: str, allowed: Iterable[str]) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    canonical = value.strip().lower()
    if canonical not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(allowed))}")
    return canonical


def validate_expense_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Normalise a partial expense; ``paymentMethod`` is accepted for ``paymentMethodId``."""
    payment_method = payload.get("paymentMethodId", payload.get("paymentMethod"))
    return {
        "amount": parse_amount(payload.get("amount"), "amount"),
        "category_id": validate_required_str(_as_str(payload.get("categoryId")), "categoryId", 50),
        "payment_method_id": validate_required_str(
            _as_str(payment_method), "paymentMethodId", 50
        ),
        "description": validate_optional_str(payload.get("description"), "description", 200),
        "location": validate_optional_str(payload.get("location"), "location", 100),
        "date": validate_datetime(payload.get("date"), "date"),
        "all_day": is_date_only(payload.get("date")),
    }


def validate_payment_method_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "name": validate_required_str(payload.get("name"), "name", 50),
        "icon": validate_optional_str(payload.get("icon"), "icon", 16)
        or DEFAULT_PAYMENT_METHOD_ICON,
        "type": validate_enum(
            payload.get("type", DEFAULT_PAYMENT_METHOD_TYPE), "type", PAYMENT_METHOD_TYPES
        ),
    }


def validate_category_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "name": validate_required_str(payload.get("name"), "name", 50),
        "icon": validate_optional_str(payload.get("icon"), "icon", 16) or DEFAULT_CATEGORY_ICON,
    }


def validate_backup_path(raw: object, root: Path, field: str = "path") -> Path:
    """Resolve ``raw`` against ``root`` and refuse anything outside of it."""
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError(f"{field} must be a non-empty string")
    candidate = Path(raw.strip()).expanduser()
    try:
        base_root = root.expanduser().resolve()
        resolved = (base_root / candidate).resolve()
    except (OSError, RuntimeError) as exc:
        raise ValidationError(f"{field} points to an invalid path") from exc
    # Absolute paths and ".." segments must still land under root.
    if base_root not in resolved.parents:
        raise ValidationError(f"{field} must be located within {root}")
    return resolved


def _as_str(value: Optional[object]) -> Optional[object]:
    # Category ids are strings in the document but clients often send integers.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value
