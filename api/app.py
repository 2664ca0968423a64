"""Flask REST API exposing the expense store."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from expense_store.config import StoreConfig
from expense_store.context import StoreContext
from expense_store.exceptions import PersistenceError, RecordNotFoundError, ValidationError
from expense_store.reports import filter_expenses, resolve_category, total_of
from expense_store.store import Clock, ExpenseStore
from expense_store.validators import validate_backup_path


def create_app(
    data_dir: Optional[Path] = None,
    backup_dir: Optional[Path] = None,
    *,
    config: Optional[StoreConfig] = None,
    clock: Optional[Clock] = None,
) -> Flask:
    app = Flask(__name__)

    config = (config or StoreConfig.from_env()).override(data_dir=data_dir, backup_dir=backup_dir)
    if config.is_development:
        CORS(app, resources={r"/*": {"origins": "*"}}, supports_credentials=True)
    elif config.allowed_origins:
        CORS(app, resources={r"/*": {"origins": config.allowed_origins}}, supports_credentials=True)
    else:
        CORS(app)

    context = StoreContext(ExpenseStore.from_config(config, clock=clock))
    app.extensions["expense_store"] = context

    def _success(payload: Any, status: int = 200):
        if status == 204:
            return ("", status)
        return jsonify(payload), status

    def _handle_error(exc: Exception, status: int, message: str):
        app.logger.error("%s: %s", message, exc)
        return jsonify({"error": message, "details": str(exc)}), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return _handle_error(exc, 400, "Validation error")

    @app.errorhandler(RecordNotFoundError)
    def handle_not_found(exc: RecordNotFoundError):
        return _handle_error(exc, 404, "Record not found")

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(exc: PersistenceError):
        return _handle_error(exc, 500, "Persistence error")

    def _json_body() -> Dict[str, Any]:
        if not request.is_json:
            raise ValidationError("Request content must be application/json")
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Malformed JSON body")
        return data

    def _expense_view(expense, document) -> Dict[str, Any]:
        category = resolve_category(document, expense.category_id)
        return {**expense.to_dict(), "categoryName": category.name, "categoryIcon": category.icon}

    @app.get("/document")
    def get_document():
        result = context.store.load_result()
        return _success({**result.document.to_dict(), "loadStatus": result.status.value})

    @app.get("/categories")
    def list_categories():
        categories = context.store.get_categories()
        return _success({"items": [category.to_dict() for category in categories]})

    @app.post("/categories")
    def create_category():
        category = context.add_category(_json_body())
        if category is None:
            raise PersistenceError("Failed to add category")
        return _success(category.to_dict(), 201)

    @app.get("/payment-methods")
    def list_payment_methods():
        methods = context.store.get_payment_methods()
        return _success({"items": [method.to_dict() for method in methods]})

    @app.post("/payment-methods")
    def create_payment_method():
        method = context.add_payment_method(_json_body())
        if method is None:
            raise PersistenceError("Failed to add payment method")
        return _success(method.to_dict(), 201)

    @app.get("/expenses")
    def list_expenses():
        document = context.load()
        expenses = filter_expenses(
            document,
            period=request.args.get("period") or "all",
            category_ids=request.args.getlist("category"),
            search=request.args.get("q"),
        )
        total = total_of(expenses)
        return _success({
            "items": [_expense_view(expense, document) for expense in expenses],
            "total": f"{total:.2f}",
            "currency": document.currency,
        })

    @app.post("/expenses")
    def create_expense():
        expense = context.add_expense(_json_body())
        if expense is None:
            raise PersistenceError("Failed to add expense")
        return _success(expense.to_dict(), 201)

    @app.get("/expenses/<expense_id>")
    def get_expense(expense_id: str):
        document = context.load()
        expense = next((exp for exp in document.expenses if exp.id == expense_id), None)
        if expense is None:
            raise RecordNotFoundError(f"Expense {expense_id} not found")
        return _success(_expense_view(expense, document))

    @app.get("/reports/summary")
    def report_summary():
        return _success(context.reports.summary())

    @app.get("/reports/categories")
    def report_categories():
        breakdown = context.reports.category_breakdown()
        return _success({"items": [item.to_dict() for item in breakdown]})

    @app.get("/reports/monthly")
    def report_monthly():
        groups = context.reports.monthly(period=request.args.get("period") or "all")
        return _success({"items": [group.to_dict() for group in groups]})

    @app.post("/backup/export")
    def export_backup():
        path = context.store.export_backup()
        if path is None:
            raise PersistenceError("Failed to export backup")
        return _success({"path": str(path)}, 201)

    @app.post("/backup/import")
    def import_backup():
        raw_path = _json_body().get("path")
        # Relative paths are resolved against the backup directory.
        path = validate_backup_path(raw_path, config.backup_dir)
        if not context.import_backup(path):
            raise PersistenceError(f"Failed to import backup from {raw_path}")
        return _success({}, 204)

    return app
