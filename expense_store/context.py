"""Application context passed to consumers of the store.

Holds the store and a small publish/subscribe registry so that views can
refresh when the document changes, without module-level listener lists.

Usage:
    context = StoreContext(store)
    unsubscribe = context.subscribe(EXPENSE_ADDED, lambda event: print(event.payload))
    context.add_expense({...})
    unsubscribe()
    context.close()
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .models import Category, Document, Expense, PaymentMethod
from .reports import ReportService
from .store import ExpenseStore

__all__ = [
    "BACKUP_IMPORTED",
    "CATEGORY_ADDED",
    "DOCUMENT_SAVED",
    "EXPENSE_ADDED",
    "PAYMENT_METHOD_ADDED",
    "Event",
    "StoreContext",
]

logger = logging.getLogger(__name__)

EXPENSE_ADDED = "expense_added"
PAYMENT_METHOD_ADDED = "payment_method_added"
CATEGORY_ADDED = "category_added"
DOCUMENT_SAVED = "document_saved"
BACKUP_IMPORTED = "backup_imported"


@dataclass(frozen=True)
class Event:
    name: str
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Handler = Callable[[Event], None]


class StoreContext:
    """Explicit owner of the store and of everything listening to it."""

    def __init__(self, store: ExpenseStore) -> None:
        self.store = store
        self.reports = ReportService(store)
        self._subscribers: Dict[str, List[Handler]] = {}
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, name: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``name`` and return a callable that removes it."""
        with self._lock:
            self._subscribers.setdefault(name, []).append(handler)

        def unsubscribe() -> None:
            self.unsubscribe(name, handler)

        return unsubscribe

    def unsubscribe(self, name: str, handler: Handler) -> None:
        with self._lock:
            handlers = self._subscribers.get(name, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, name: str, payload: Optional[Dict[str, Any]] = None) -> int:
        """Deliver an event to current subscribers and return how many were called."""
        with self._lock:
            if self._closed:
                return 0
            handlers = list(self._subscribers.get(name, []))
        event = Event(name=name, payload=payload or {})
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Handler for %s failed", name)
        return len(handlers)

    def close(self) -> None:
        with self._lock:
            self._subscribers.clear()
            self._closed = True

    # Store operations that notify -------------------------------------------
    def load(self) -> Document:
        return self.store.load()

    def save(self, document: Document) -> bool:
        saved = self.store.save(document)
        if saved:
            self.publish(DOCUMENT_SAVED)
        return saved

    def add_expense(self, payload: Dict[str, Any]) -> Optional[Expense]:
        expense = self.store.add_expense(payload)
        if expense is not None:
            self.publish(EXPENSE_ADDED, {"expense": expense.to_dict()})
        return expense

    def add_payment_method(self, payload: Dict[str, Any]) -> Optional[PaymentMethod]:
        method = self.store.add_payment_method(payload)
        if method is not None:
            self.publish(PAYMENT_METHOD_ADDED, {"paymentMethod": method.to_dict()})
        return method

    def add_category(self, payload: Dict[str, Any]) -> Optional[Category]:
        category = self.store.add_category(payload)
        if category is not None:
            self.publish(CATEGORY_ADDED, {"category": category.to_dict()})
        return category

    def import_backup(self, path: Path) -> bool:
        imported = self.store.import_backup(path)
        if imported:
            self.publish(BACKUP_IMPORTED, {"path": str(path)})
        return imported
