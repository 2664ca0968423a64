"""Domain-specific exceptions for the expense store."""

class ValidationError(ValueError):
    """Raised when provided data does not meet validation requirements."""


class RecordNotFoundError(LookupError):
    """Raised when an expense, category or payment method cannot be located."""


class PersistenceError(IOError):
    """Base class for failures of the on-disk document."""


class StoreReadError(PersistenceError):
    """Raised when a document file exists but cannot be read or parsed."""


class StoreWriteError(PersistenceError):
    """Raised when a document file cannot be written."""
