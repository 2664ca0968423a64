"""First-run document contents and migration-on-read."""

from __future__ import annotations

from datetime import datetime
from typing import List

from .models import DOCUMENT_VERSION, Category, Document, PaymentMethod

DEFAULT_CURRENCY = "₹"

FALLBACK_CATEGORY = Category(id="8", name="Others", icon="📦")

DEFAULT_CATEGORIES = (
    Category(id="1", name="Healthcare", icon="🏥"),
    Category(id="2", name="Food", icon="🍕"),
    Category(id="3", name="Grocery", icon="🛒"),
    Category(id="4", name="Shopping", icon="🛍️"),
    Category(id="5", name="Transport", icon="🚗"),
    Category(id="6", name="Bills", icon="💡"),
    Category(id="7", name="Entertainment", icon="🎬"),
    FALLBACK_CATEGORY,
)

DEFAULT_PAYMENT_METHODS = (
    PaymentMethod(id="cash", name="Cash", icon="💵", type="cash"),
)

# Rendered for expenses whose category id no longer resolves.
UNKNOWN_CATEGORY = Category(id="", name="Other", icon="📦")


def default_document(now: datetime) -> Document:
    return Document(
        version=DOCUMENT_VERSION,
        last_updated=now,
        settings={"currency": DEFAULT_CURRENCY},
        categories=list(DEFAULT_CATEGORIES),
        payment_methods=list(DEFAULT_PAYMENT_METHODS),
        expenses=[],
    )


def migrate(document: Document) -> List[str]:
    """Upgrade ``document`` in place and return a description of each change applied."""
    applied: List[str] = []
    if not document.has_category_named(FALLBACK_CATEGORY.name):
        document.categories.append(FALLBACK_CATEGORY)
        applied.append("added fallback category 'Others'")
    if "currency" not in document.settings:
        document.settings["currency"] = DEFAULT_CURRENCY
        applied.append("added default currency")
    return applied


def next_category_id(document: Document) -> str:
    """Mint the next sequential numeric id not used by any category."""
    numeric = [int(cat.id) for cat in document.categories if cat.id.isdigit()]
    return str(max(numeric, default=0) + 1)
