"""Local JSON-backed expense store."""

from .config import StoreConfig
from .context import StoreContext
from .exceptions import (
    PersistenceError,
    RecordNotFoundError,
    StoreReadError,
    StoreWriteError,
    ValidationError,
)
from .models import Category, Document, Expense, PaymentMethod
from .reports import ReportService
from .store import ExpenseStore, LoadResult, LoadStatus

__all__ = [
    "Category",
    "Document",
    "Expense",
    "PaymentMethod",
    "ExpenseStore",
    "LoadResult",
    "LoadStatus",
    "ReportService",
    "StoreConfig",
    "StoreContext",
    "PersistenceError",
    "RecordNotFoundError",
    "StoreReadError",
    "StoreWriteError",
    "ValidationError",
]
