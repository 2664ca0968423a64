"""The local expense store: sole owner of the on-disk JSON document.

Every public operation terminates storage failures at its own boundary.
``load`` degrades to a default document, the mutating operations return
``False``/``None``. Input validation errors and missing-record lookups are
still raised to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .config import StoreConfig
from .defaults import default_document, migrate, next_category_id
from .exceptions import (
    PersistenceError,
    RecordNotFoundError,
    StoreReadError,
    StoreWriteError,
    ValidationError,
)
from .models import Category, Document, Expense, PaymentMethod
from .storage import JSONFile, lock_for
from .validators import (
    validate_category_payload,
    validate_expense_payload,
    validate_payment_method_payload,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class LoadStatus(str, Enum):
    LOADED = "loaded"
    CREATED = "created"
    MIGRATED = "migrated"
    DEFAULT_USED = "default_used"


@dataclass(frozen=True)
class LoadResult:
    """Outcome of a load, exposing whether defaults silently replaced stored data."""

    document: Document
    status: LoadStatus
    error: Optional[PersistenceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _system_clock() -> datetime:
    return datetime.now(timezone.utc)


def epoch_millis(moment: datetime) -> int:
    return round(moment.timestamp() * 1000)


class ExpenseStore:
    """Reads and writes the whole document; appends expenses and payment methods."""

    def __init__(
        self, data_file: Path, backup_dir: Path, clock: Optional[Clock] = None
    ) -> None:
        self._file = JSONFile(Path(data_file))
        self._backup_dir = Path(backup_dir)
        self._clock = clock or _system_clock
        self._lock = lock_for(self._file.path)

    @classmethod
    def from_config(cls, config: StoreConfig, clock: Optional[Clock] = None) -> "ExpenseStore":
        return cls(config.data_file, config.backup_dir, clock=clock)

    @property
    def data_file(self) -> Path:
        return self._file.path

    @property
    def backup_dir(self) -> Path:
        return self._backup_dir

    # Public API -----------------------------------------------------------
    def load(self) -> Document:
        """Return the current document, falling back to defaults when unreadable."""
        return self.load_result().document

    def load_result(self) -> LoadResult:
        with self._lock:
            if not self._file.exists():
                return self._create_default()

            try:
                document = self._read_document(self._file)
            except StoreReadError as exc:
                logger.error("Error loading data, using defaults: %s", exc)
                return LoadResult(default_document(self._now()), LoadStatus.DEFAULT_USED, exc)

            applied = migrate(document)
            if not applied:
                return LoadResult(document, LoadStatus.LOADED)

            logger.info("Migrated %s: %s", self._file.path, "; ".join(applied))
            try:
                document = self._write(document)
            except StoreWriteError as exc:
                logger.error("Error saving migrated data: %s", exc)
                return LoadResult(document, LoadStatus.MIGRATED, exc)
            return LoadResult(document, LoadStatus.MIGRATED)

    def save(self, document: Document) -> bool:
        """Stamp ``lastUpdated`` and overwrite the file; ``False`` on any write failure."""
        with self._lock:
            try:
                self._write(document)
            except StoreWriteError as exc:
                logger.error("Error saving data: %s", exc)
                return False
            return True

    def add_expense(self, payload: Dict[str, Any]) -> Optional[Expense]:
        fields = validate_expense_payload(payload)
        with self._lock:
            document = self._load_for_update("adding expense")
            if document is None:
                return None
            now = self._now()
            expense = Expense(id=f"exp_{epoch_millis(now)}", created_at=now, **fields)
            document.expenses.insert(0, expense)
            if not self.save(document):
                return None
            logger.debug("Added expense %s", expense.id)
            return expense

    def add_payment_method(self, payload: Dict[str, Any]) -> Optional[PaymentMethod]:
        fields = validate_payment_method_payload(payload)
        with self._lock:
            document = self._load_for_update("adding payment method")
            if document is None:
                return None
            method = PaymentMethod(id=f"pm_{epoch_millis(self._now())}", **fields)
            document.payment_methods.append(method)
            if not self.save(document):
                return None
            return method

    def add_category(self, payload: Dict[str, Any]) -> Optional[Category]:
        fields = validate_category_payload(payload)
        with self._lock:
            document = self._load_for_update("adding category")
            if document is None:
                return None
            if document.has_category_named(fields["name"]):
                raise ValidationError("Category name must be unique")
            category = Category(id=next_category_id(document), **fields)
            document.categories.append(category)
            if not self.save(document):
                return None
            return category

    def get_expenses(self) -> List[Expense]:
        return list(self.load().expenses)

    def get_expense(self, expense_id: str) -> Expense:
        for expense in self.load().expenses:
            if expense.id == expense_id:
                return expense
        raise RecordNotFoundError(f"Expense {expense_id} not found")

    def get_payment_methods(self) -> List[PaymentMethod]:
        return list(self.load().payment_methods)

    def get_categories(self) -> List[Category]:
        return list(self.load().categories)

    def export_backup(self) -> Optional[Path]:
        """Write a pretty-printed snapshot of the saved document; ``None`` on failure."""
        result = self.load_result()
        if result.status is LoadStatus.DEFAULT_USED:
            logger.error("Error exporting backup: %s", result.error)
            return None
        backup = JSONFile(self._backup_dir / f"expense_backup_{epoch_millis(self._now())}.json")
        try:
            backup.write(result.document.to_dict(), indent=2)
        except StoreWriteError as exc:
            logger.error("Error exporting backup: %s", exc)
            return None
        logger.info("Exported backup to %s", backup.path)
        return backup.path

    def import_backup(self, path: Path) -> bool:
        """Replace the whole document with the backup at ``path``."""
        try:
            document = self._read_document(JSONFile(Path(path)))
        except StoreReadError as exc:
            logger.error("Error importing backup: %s", exc)
            return False
        if not self.save(document):
            return False
        logger.info("Imported backup from %s", path)
        return True

    # Internal helpers -----------------------------------------------------
    def _now(self) -> datetime:
        # Timestamps and minted ids share millisecond resolution.
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.replace(microsecond=now.microsecond // 1000 * 1000)

    def _create_default(self) -> LoadResult:
        document = default_document(self._now())
        try:
            document = self._write(document)
        except StoreWriteError as exc:
            logger.error("Error creating default data: %s", exc)
            return LoadResult(document, LoadStatus.DEFAULT_USED, exc)
        logger.info("Created default document at %s", self._file.path)
        return LoadResult(document, LoadStatus.CREATED)

    def _load_for_update(self, action: str) -> Optional[Document]:
        result = self.load_result()
        if result.status is LoadStatus.DEFAULT_USED:
            # Never write over a file that could not be read.
            logger.error("Error %s: %s", action, result.error)
            return None
        return result.document

    def _write(self, document: Document) -> Document:
        stamped = replace(document, last_updated=self._now())
        self._file.write(stamped.to_dict())
        return stamped

    @staticmethod
    def _read_document(source: JSONFile) -> Document:
        payload = source.read()
        try:
            return Document.from_dict(payload)
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            raise StoreReadError(f"Malformed document in {source.path}") from exc
