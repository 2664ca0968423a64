"""History filters and spending aggregates computed from the stored document."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .defaults import UNKNOWN_CATEGORY
from .exceptions import ValidationError
from .models import Category, Document, Expense
from .store import ExpenseStore
from .validators import validate_enum

PERIODS = {"all", "this_week", "this_month", "last_month"}


def resolve_category(document: Document, category_id: str) -> Category:
    """Return the expense's category, or the "Other" placeholder for dangling ids."""
    return document.find_category(category_id) or UNKNOWN_CATEGORY


def total_of(expenses: Iterable[Expense]) -> Decimal:
    # Records whose stored amount did not parse count as zero.
    return sum(
        (expense.amount for expense in expenses if expense.amount is not None),
        start=Decimal("0.00"),
    )


@dataclass(frozen=True)
class CategoryTotal:
    category: Category
    total: Decimal
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categoryId": self.category.id,
            "name": self.category.name,
            "icon": self.category.icon,
            "total": f"{self.total:.2f}",
            "count": self.count,
        }


@dataclass
class MonthGroup:
    key: str
    label: str
    expenses: List[Expense] = field(default_factory=list)
    total: Decimal = Decimal("0.00")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "total": f"{self.total:.2f}",
            "items": [expense.to_dict() for expense in self.expenses],
        }


def period_bounds(period: str, today: date) -> tuple:
    """Return the ``[start, end)`` UTC window for ``period``; ``None`` means unbounded."""

    def midnight(day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=timezone.utc)

    first_of_month = today.replace(day=1)
    if period == "this_week":
        # Weeks start on Sunday.
        start_of_week = today - timedelta(days=(today.weekday() + 1) % 7)
        return midnight(start_of_week), None
    if period == "this_month":
        return midnight(first_of_month), None
    if period == "last_month":
        first_of_last = (first_of_month - timedelta(days=1)).replace(day=1)
        return midnight(first_of_last), midnight(first_of_month)
    return None, None


def filter_expenses(
    document: Document,
    *,
    period: str = "all",
    category_ids: Optional[Sequence[str]] = None,
    search: Optional[str] = None,
    today: Optional[date] = None,
) -> List[Expense]:
    period = validate_enum(period, "period", PERIODS)
    start, end = period_bounds(period, today or datetime.now(timezone.utc).date())
    wanted = set(category_ids or [])
    query = (search or "").strip().lower()

    def matches(expense: Expense) -> bool:
        if (start or end) and expense.date is None:
            return False
        if start and expense.date < start:
            return False
        if end and expense.date >= end:
            return False
        if wanted and expense.category_id not in wanted:
            return False
        if query:
            category = document.find_category(expense.category_id)
            haystacks = [expense.description.lower()]
            if category:
                haystacks.append(category.name.lower())
            if not any(query in text for text in haystacks):
                return False
        return True

    return [expense for expense in document.expenses if matches(expense)]


def group_by_month(expenses: Iterable[Expense]) -> List[MonthGroup]:
    groups: Dict[str, MonthGroup] = {}
    for expense in expenses:
        if expense.date is None:
            key, label = "", "Unknown date"
        else:
            key, label = expense.date.strftime("%Y-%m"), expense.date.strftime("%B %Y")
        group = groups.get(key)
        if group is None:
            group = groups[key] = MonthGroup(key=key, label=label)
        group.expenses.append(expense)
        group.total += expense.amount or Decimal("0.00")
    return sorted(groups.values(), key=lambda grp: grp.key, reverse=True)


def category_breakdown(document: Document) -> List[CategoryTotal]:
    totals: Dict[str, List[Any]] = {}
    for expense in document.expenses:
        category = resolve_category(document, expense.category_id)
        entry = totals.setdefault(category.id, [category, Decimal("0.00"), 0])
        entry[1] += expense.amount or Decimal("0.00")
        entry[2] += 1
    return [CategoryTotal(category=cat, total=total, count=count) for cat, total, count in totals.values()]


class ReportService:
    """Read-only views over the store used by the history and report endpoints."""

    def __init__(self, store: ExpenseStore) -> None:
        self._store = store

    def history(self, **filters: Any) -> List[Expense]:
        return filter_expenses(self._store.load(), **filters)

    def monthly(self, **filters: Any) -> List[MonthGroup]:
        return group_by_month(self.history(**filters))

    def category_breakdown(self) -> List[CategoryTotal]:
        return category_breakdown(self._store.load())

    def top_categories(self, limit: int = 3) -> List[CategoryTotal]:
        if limit < 0:
            raise ValidationError("limit must not be negative")
        ranked = sorted(self.category_breakdown(), key=lambda item: item.total, reverse=True)
        return ranked[:limit]

    def total(self, **filters: Any) -> Decimal:
        return total_of(self.history(**filters))

    def recent(self, limit: int = 5) -> List[Expense]:
        return self._store.load().expenses[:limit]

    def summary(self) -> Dict[str, Any]:
        """Dashboard figures: overall total, recent expenses and top categories."""
        document = self._store.load()
        breakdown = sorted(category_breakdown(document), key=lambda item: item.total, reverse=True)
        return {
            "currency": document.currency,
            "count": len(document.expenses),
            "total": f"{total_of(document.expenses):.2f}",
            "recent": [expense.to_dict() for expense in document.expenses[:5]],
            "topCategories": [item.to_dict() for item in breakdown[:3]],
        }
