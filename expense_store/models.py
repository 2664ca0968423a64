"""Data models for the expense store document."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date as date_type, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

__all__ = [
    "Category",
    "Document",
    "Expense",
    "PaymentMethod",
    "DOCUMENT_VERSION",
    "is_date_only",
    "isoformat_utc",
    "parse_datetime",
    "parse_decimal",
]

logger = logging.getLogger(__name__)

DOCUMENT_VERSION = "1.0"

_KNOWN_KEYS = {"version", "lastUpdated", "settings", "categories", "paymentMethods", "expenses"}


def isoformat_utc(dt: datetime) -> str:
    """Return an ISO 8601 string with millisecond precision and trailing Z."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    iso = dt.isoformat(timespec="milliseconds")
    # datetime.isoformat renders +00:00 for UTC; replace with the shorter Z form.
    return iso.replace("+00:00", "Z")


def parse_datetime(value: str) -> datetime:
    """Parse ISO 8601 date or datetime strings with optional trailing Z into UTC-aware datetime."""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        # Treat naive datetimes as UTC to avoid accidental timezone drift.
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_date_only(value: object) -> bool:
    """True for ISO 8601 calendar dates without a time part, e.g. ``2024-01-15``."""
    if not isinstance(value, str):
        return False
    try:
        date_type.fromisoformat(value.strip())
    except ValueError:
        return False
    return True


def parse_decimal(value: object) -> Optional[Decimal]:
    """Return a finite Decimal for numbers and numeric strings, otherwise None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def _parse_optional_datetime(value: object) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return parse_datetime(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    icon: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "icon": self.icon}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            icon=str(data.get("icon") or ""),
        )


@dataclass(frozen=True)
class PaymentMethod:
    id: str
    name: str
    icon: str = ""
    type: str = "cash"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "icon": self.icon, "type": self.type}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaymentMethod":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            icon=str(data.get("icon") or ""),
            type=str(data.get("type") or "cash"),
        )


@dataclass(frozen=True)
class Expense:
    id: str
    amount: Optional[Decimal]
    category_id: str
    payment_method_id: str
    date: Optional[datetime]
    created_at: Optional[datetime]
    description: str = ""
    location: str = ""
    # True when the date was given without a time part; written back as YYYY-MM-DD.
    all_day: bool = False
    # Stored values that could not be parsed, written back exactly as found.
    unparsed: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the expense to JSON-friendly natives."""
        payload = {
            "id": self.id,
            "amount": str(self.amount) if self.amount is not None else None,
            "categoryId": self.category_id,
            "paymentMethodId": self.payment_method_id,
            "description": self.description,
            "location": self.location,
            "date": self._date_text(),
            "createdAt": isoformat_utc(self.created_at) if self.created_at else None,
        }
        payload.update(self.unparsed)
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Expense":
        """Hydrate an Expense from JSON-native data without rejecting bad fields.

        Older documents stored the payment method under ``paymentMethod``;
        it is read as ``paymentMethodId``. An unparseable ``amount``, ``date``
        or ``createdAt`` leaves the parsed attribute empty and keeps the raw
        value in ``unparsed``.
        """
        unparsed: Dict[str, Any] = {}

        amount = parse_decimal(data.get("amount"))
        if amount is None:
            unparsed["amount"] = data.get("amount")

        raw_date = data.get("date")
        date = _parse_optional_datetime(raw_date)
        if date is None:
            unparsed["date"] = raw_date

        raw_created = data.get("createdAt")
        created_at = _parse_optional_datetime(raw_created)
        if created_at is None and raw_created:
            unparsed["createdAt"] = raw_created

        payment_method_id = data.get("paymentMethodId", data.get("paymentMethod", ""))
        return cls(
            id=str(data.get("id") or ""),
            amount=amount,
            category_id=str(data.get("categoryId") or ""),
            payment_method_id=str(payment_method_id or ""),
            date=date,
            created_at=created_at or date,
            description=str(data.get("description") or ""),
            location=str(data.get("location") or ""),
            all_day=date is not None and is_date_only(raw_date),
            unparsed=unparsed,
        )

    def _date_text(self) -> Optional[str]:
        if self.date is None:
            return None
        if self.all_day:
            return self.date.date().isoformat()
        return isoformat_utc(self.date)


@dataclass
class Document:
    """The whole persisted state of one installation."""

    version: str = DOCUMENT_VERSION
    last_updated: Optional[datetime] = None
    settings: Dict[str, Any] = field(default_factory=dict)
    categories: List[Category] = field(default_factory=list)
    payment_methods: List[PaymentMethod] = field(default_factory=list)
    expenses: List[Expense] = field(default_factory=list)
    # Unknown top-level keys, written back untouched.
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def currency(self) -> str:
        return str(self.settings.get("currency", ""))

    def find_category(self, category_id: str) -> Optional[Category]:
        return next((cat for cat in self.categories if cat.id == category_id), None)

    def find_payment_method(self, method_id: str) -> Optional[PaymentMethod]:
        return next((pm for pm in self.payment_methods if pm.id == method_id), None)

    def has_category_named(self, name: str) -> bool:
        canonical = name.strip().lower()
        return any(cat.name.strip().lower() == canonical for cat in self.categories)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.extra)
        payload.update(
            {
                "version": self.version,
                "lastUpdated": isoformat_utc(self.last_updated) if self.last_updated else None,
                "settings": dict(self.settings),
                "paymentMethods": [method.to_dict() for method in self.payment_methods],
                "categories": [category.to_dict() for category in self.categories],
                "expenses": [expense.to_dict() for expense in self.expenses],
            }
        )
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        """Hydrate a Document.

        Only the overall shape is enforced: a non-object document, non-object
        settings or a non-list collection raises TypeError. Individual records
        are parsed leniently.
        """
        if not isinstance(data, dict):
            raise TypeError("document must be a JSON object")
        settings = data.get("settings") or {}
        if not isinstance(settings, dict):
            raise TypeError("settings must be a JSON object")
        return cls(
            version=str(data.get("version", DOCUMENT_VERSION)),
            last_updated=_parse_optional_datetime(data.get("lastUpdated")),
            settings=dict(settings),
            categories=[Category.from_dict(item) for item in _records(data, "categories")],
            payment_methods=[
                PaymentMethod.from_dict(item) for item in _records(data, "paymentMethods")
            ],
            expenses=[Expense.from_dict(item) for item in _records(data, "expenses")],
            extra={key: value for key, value in data.items() if key not in _KNOWN_KEYS},
        )


def _records(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    records = data.get(key) or []
    if not isinstance(records, list):
        raise TypeError(f"{key} must be a list")
    kept = [item for item in records if isinstance(item, dict)]
    if len(kept) != len(records):
        logger.warning("Dropped %d non-object entries from %s", len(records) - len(kept), key)
    return kept
