"""Console interface for the expense store."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional

from expense_store.config import StoreConfig
from expense_store.context import StoreContext
from expense_store.exceptions import PersistenceError, RecordNotFoundError, ValidationError
from expense_store.models import Document, Expense
from expense_store.reports import PERIODS, resolve_category, total_of
from expense_store.store import ExpenseStore
from expense_store.validators import PAYMENT_METHOD_TYPES

DATE_FORMAT = "%Y-%m-%d"


def _parse_date(value: str) -> str:
    try:
        date.fromisoformat(value[:10])
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"Invalid date '{value}'. Expected format YYYY-MM-DD or an ISO 8601 datetime."
        ) from exc
    return value


def _parse_amount(value: str) -> str:
    try:
        amount = Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError("Amount must be a numeric value") from exc
    if not amount.is_finite():
        raise argparse.ArgumentTypeError("Amount must be a finite number")
    if amount <= 0:
        raise argparse.ArgumentTypeError("Amount must be greater than zero")
    return value


def _load_context(args: argparse.Namespace) -> StoreContext:
    config = StoreConfig.from_env().override(data_dir=args.data_dir, backup_dir=args.backup_dir)
    return StoreContext(ExpenseStore.from_config(config))


def _format_expense(expense: Expense, document: Document) -> str:
    when = expense.date.strftime(DATE_FORMAT) if expense.date else expense.unparsed.get("date")
    amount = f"{expense.amount:.2f}" if expense.amount is not None else expense.unparsed.get("amount")
    category = resolve_category(document, expense.category_id)
    method = document.find_payment_method(expense.payment_method_id)
    return (
        f"[{expense.id}] {when or '?'} {document.currency}{amount if amount is not None else '?'}\n"
        f"  Category: {category.icon} {category.name} | "
        f"Payment: {method.name if method else expense.payment_method_id} | "
        f"Location: {expense.location or '-'}\n"
        f"  Description: {expense.description or '-'}\n"
    )


def handle_expense(args: argparse.Namespace, context: StoreContext) -> None:
    if args.command == "add":
        payload = {
            "amount": args.amount,
            "categoryId": args.category_id,
            "paymentMethodId": args.payment_method_id,
            "date": args.date,
            "description": args.description,
            "location": args.location,
        }
        expense = context.add_expense(payload)
        if expense is None:
            raise PersistenceError("Failed to add expense")
        print("Expense added:\n" + _format_expense(expense, context.load()))
    elif args.command == "list":
        document = context.load()
        expenses = context.reports.history(
            period=args.period, category_ids=args.category, search=args.search
        )
        if not expenses:
            print("No expenses found.")
            return
        total = total_of(expenses)
        print(f"Found {len(expenses)} expenses (total {document.currency}{total:.2f}):")
        for expense in expenses:
            print(_format_expense(expense, document))
    elif args.command == "show":
        expense = context.store.get_expense(args.id)
        print(_format_expense(expense, context.load()))


def handle_payment_method(args: argparse.Namespace, context: StoreContext) -> None:
    if args.command == "add":
        method = context.add_payment_method(
            {"name": args.name, "type": args.type, "icon": args.icon}
        )
        if method is None:
            raise PersistenceError("Failed to add payment method")
        print(f"Payment method added: [{method.id}] {method.icon} {method.name} ({method.type})")
    elif args.command == "list":
        for method in context.store.get_payment_methods():
            print(f"[{method.id}] {method.icon} {method.name} ({method.type})")


def handle_category(args: argparse.Namespace, context: StoreContext) -> None:
    if args.command == "add":
        category = context.add_category({"name": args.name, "icon": args.icon})
        if category is None:
            raise PersistenceError("Failed to add category")
        print(f"Category added: [{category.id}] {category.icon} {category.name}")
    elif args.command == "list":
        for category in context.store.get_categories():
            print(f"[{category.id}] {category.icon} {category.name}")


def handle_report(args: argparse.Namespace, context: StoreContext) -> None:
    currency = context.load().currency
    if args.command == "summary":
        summary = context.reports.summary()
        print(f"Total spent: {currency}{summary['total']} across {summary['count']} expenses")
        for item in summary["topCategories"]:
            print(f"  {item['icon']} {item['name']}: {currency}{item['total']}")
    elif args.command == "categories":
        for item in context.reports.category_breakdown():
            print(f"{item.category.icon} {item.category.name}: {currency}{item.total:.2f} ({item.count})")
    elif args.command == "monthly":
        for group in context.reports.monthly(period=args.period):
            print(f"{group.label}: {currency}{group.total:.2f} ({len(group.expenses)} expenses)")


def handle_backup(args: argparse.Namespace, context: StoreContext) -> None:
    if args.command == "export":
        path = context.store.export_backup()
        if path is None:
            raise PersistenceError("Failed to export backup")
        print(f"Backup written to {path}")
    elif args.command == "import":
        if not context.import_backup(args.path):
            raise PersistenceError(f"Failed to import backup from {args.path}")
        print(f"Backup imported from {args.path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Expense Store CLI")
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Directory holding expense_data.json (default: $EXPENSE_STORE_DATA_DIR or ./data)",
    )
    parser.add_argument(
        "--backup-dir",
        type=Path,
        help="Directory for exported backups (default: $EXPENSE_STORE_BACKUP_DIR or ~/Downloads)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="entity", required=True)

    expense_parser = subparsers.add_parser("expense", help="Manage expenses")
    expense_sub = expense_parser.add_subparsers(dest="command", required=True)

    expense_add = expense_sub.add_parser("add", help="Add a new expense")
    expense_add.add_argument("amount", type=_parse_amount)
    expense_add.add_argument("category_id")
    expense_add.add_argument("date", type=_parse_date)
    expense_add.add_argument("--payment-method", dest="payment_method_id", default="cash")
    expense_add.add_argument("--description")
    expense_add.add_argument("--location")

    expense_list = expense_sub.add_parser("list", help="List expenses, newest first")
    expense_list.add_argument("--period", choices=sorted(PERIODS), default="all")
    expense_list.add_argument("--category", action="append", help="Category id (repeatable)")
    expense_list.add_argument("--search")

    expense_show = expense_sub.add_parser("show", help="Show a single expense")
    expense_show.add_argument("id")

    method_parser = subparsers.add_parser("payment-method", help="Manage payment methods")
    method_sub = method_parser.add_subparsers(dest="command", required=True)
    method_add = method_sub.add_parser("add", help="Add a payment method")
    method_add.add_argument("name")
    method_add.add_argument("--type", choices=sorted(PAYMENT_METHOD_TYPES), default="card")
    method_add.add_argument("--icon")
    method_sub.add_parser("list", help="List payment methods")

    category_parser = subparsers.add_parser("category", help="Manage categories")
    category_sub = category_parser.add_subparsers(dest="command", required=True)
    category_add = category_sub.add_parser("add", help="Add a category")
    category_add.add_argument("name")
    category_add.add_argument("--icon")
    category_sub.add_parser("list", help="List categories")

    report_parser = subparsers.add_parser("report", help="Spending reports")
    report_sub = report_parser.add_subparsers(dest="command", required=True)
    report_sub.add_parser("summary", help="Total spent and top categories")
    report_sub.add_parser("categories", help="Totals per category")
    report_monthly = report_sub.add_parser("monthly", help="Totals per month")
    report_monthly.add_argument("--period", choices=sorted(PERIODS), default="all")

    backup_parser = subparsers.add_parser("backup", help="Export or import backups")
    backup_sub = backup_parser.add_subparsers(dest="command", required=True)
    backup_sub.add_parser("export", help="Write a timestamped backup file")
    backup_import = backup_sub.add_parser("import", help="Replace all data with a backup file")
    backup_import.add_argument("path", type=Path)

    return parser


HANDLERS = {
    "expense": handle_expense,
    "payment-method": handle_payment_method,
    "category": handle_category,
    "report": handle_report,
    "backup": handle_backup,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    context = _load_context(args)

    try:
        HANDLERS[args.entity](args, context)
    except ValidationError as exc:
        print(f"Validation error: {exc}", file=sys.stderr)
        return 1
    except RecordNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except PersistenceError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1
    finally:
        context.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
