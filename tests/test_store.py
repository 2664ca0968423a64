"""Tests for expense_store/store.py"""

import json
import threading
from dataclasses import replace
from decimal import Decimal

import pytest

from expense_store.defaults import DEFAULT_CATEGORIES
from expense_store.exceptions import RecordNotFoundError, StoreReadError, StoreWriteError, ValidationError
from expense_store.store import ExpenseStore, LoadStatus


def _without_timestamp(document):
    return replace(document, last_updated=None)


def _expense_payload(**overrides):
    payload = {
        "amount": "250.00",
        "categoryId": "2",
        "paymentMethodId": "cash",
        "description": "Groceries",
        "date": "2024-01-15",
    }
    payload.update(overrides)
    return payload


def _others(document):
    return [cat for cat in document.categories if cat.name.lower() == "others"]


class TestFirstRun:
    """A store without a backing file synthesises and persists defaults."""

    def test_load_creates_default_document(self, store, data_file):
        document = store.load()

        assert document.categories == list(DEFAULT_CATEGORIES)
        assert [pm.id for pm in document.payment_methods] == ["cash"]
        assert document.payment_methods[0].type == "cash"
        assert document.expenses == []
        assert document.settings["currency"] == "₹"
        assert data_file.exists()

    def test_default_document_is_persisted(self, store, data_file):
        first = store.load()
        second = store.load()

        assert _without_timestamp(first) == _without_timestamp(second)

        on_disk = json.loads(data_file.read_text(encoding="utf-8"))
        on_disk.pop("lastUpdated")
        expected = second.to_dict()
        expected.pop("lastUpdated")
        assert on_disk == expected

    def test_load_result_reports_creation(self, store):
        assert store.load_result().status is LoadStatus.CREATED
        assert store.load_result().status is LoadStatus.LOADED


class TestMigration:
    """Documents missing the fallback category are upgraded on read."""

    def test_adds_single_others_category(self, store, write_json, legacy_document):
        write_json(legacy_document)

        result = store.load_result()
        assert result.status is LoadStatus.MIGRATED
        others = _others(result.document)
        assert len(others) == 1
        assert others[0].id == "8"
        assert others[0].icon == "📦"

    def test_migration_is_idempotent(self, store, write_json, legacy_document):
        write_json(legacy_document)
        store.load()

        result = store.load_result()
        assert result.status is LoadStatus.LOADED
        assert len(_others(result.document)) == 1

    def test_existing_others_matches_case_insensitively(self, store, write_json, legacy_document):
        legacy_document["categories"].append({"id": "99", "name": "others", "icon": "❓"})
        write_json(legacy_document)

        document = store.load()
        assert len(_others(document)) == 1
        assert _others(document)[0].id == "99"

    def test_migration_is_persisted(self, store, write_json, legacy_document, data_file):
        write_json(legacy_document)
        store.load()

        on_disk = json.loads(data_file.read_text(encoding="utf-8"))
        assert any(cat["name"] == "Others" for cat in on_disk["categories"])

    def test_legacy_payment_method_key_is_read(self, store, write_json, legacy_document, data_file):
        write_json(legacy_document)

        expense = store.load().expenses[0]
        assert expense.payment_method_id == "cash"
        assert expense.amount == Decimal("120.50")

        on_disk = json.loads(data_file.read_text(encoding="utf-8"))
        assert on_disk["expenses"][0]["paymentMethodId"] == "cash"
        assert "paymentMethod" not in on_disk["expenses"][0]

    def test_unknown_top_level_keys_survive(self, store, write_json, legacy_document):
        legacy_document["profile"] = {"theme": "dark"}
        write_json(legacy_document)

        document = store.load()
        assert document.extra == {"profile": {"theme": "dark"}}
        assert store.save(document)
        assert store.load().to_dict()["profile"] == {"theme": "dark"}


class TestCorruption:
    """Unreadable documents fall back to defaults without raising."""

    def test_non_json_falls_back_to_defaults(self, store, data_file):
        data_file.write_text("this is {not json", encoding="utf-8")

        document = store.load()
        assert document.categories == list(DEFAULT_CATEGORIES)
        assert document.expenses == []

    def test_fallback_is_reported(self, store, data_file):
        data_file.write_text("this is {not json", encoding="utf-8")

        result = store.load_result()
        assert result.status is LoadStatus.DEFAULT_USED
        assert isinstance(result.error, StoreReadError)
        assert not result.ok

    def test_corrupt_file_is_left_on_disk(self, store, data_file):
        data_file.write_text("this is {not json", encoding="utf-8")
        store.load()
        assert data_file.read_text(encoding="utf-8") == "this is {not json"

    def test_wrong_shape_is_treated_as_unreadable(self, store, write_json):
        write_json([1, 2, 3])
        assert store.load_result().status is LoadStatus.DEFAULT_USED

    def test_add_expense_refuses_to_overwrite_corrupt_file(self, store, data_file):
        data_file.write_text("this is {not json", encoding="utf-8")

        assert store.add_expense(_expense_payload()) is None
        assert data_file.read_text(encoding="utf-8") == "this is {not json"

    def test_bad_record_does_not_discard_document(self, store, write_json, legacy_document, data_file):
        legacy_document["expenses"].append(
            {
                "id": "exp_2",
                "amount": None,
                "categoryId": "2",
                "paymentMethodId": "cash",
                "date": "last tuesday",
            }
        )
        write_json(legacy_document)

        result = store.load_result()
        assert result.status is LoadStatus.MIGRATED
        assert [expense.id for expense in result.document.expenses] == ["exp_1701417600000", "exp_2"]
        broken = result.document.expenses[1]
        assert broken.amount is None
        assert broken.date is None

        assert store.add_expense(_expense_payload()) is not None
        stored = json.loads(data_file.read_text(encoding="utf-8"))["expenses"]
        assert len(stored) == 3
        assert stored[2]["amount"] is None
        assert stored[2]["date"] == "last tuesday"

    def test_non_object_entries_are_dropped(self, store, write_json, legacy_document):
        legacy_document["expenses"].append("garbage")
        write_json(legacy_document)

        result = store.load_result()
        assert result.ok
        assert len(result.document.expenses) == 1


class TestSave:
    def test_round_trip(self, store, clock):
        document = store.load()
        document.settings["currency"] = "$"
        before = clock.current

        assert store.save(document) is True

        loaded = store.load()
        assert _without_timestamp(loaded) == _without_timestamp(document)
        assert loaded.last_updated >= before

    def test_stored_precision_survives_unrelated_write(self, store, write_json, legacy_document, data_file):
        legacy_document["expenses"][0]["amount"] = "12.345"
        write_json(legacy_document)

        store.add_expense(_expense_payload())

        stored = json.loads(data_file.read_text(encoding="utf-8"))["expenses"]
        assert stored[1]["amount"] == "12.345"
        assert store.load().expenses[1].amount == Decimal("12.345")

    def test_save_does_not_modify_argument(self, store):
        document = store.load()
        stamp = document.last_updated
        store.save(document)
        assert document.last_updated == stamp

    def test_write_failure_returns_false(self, tmp_path, temp_backup_dir, clock):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = ExpenseStore(blocker / "expense_data.json", temp_backup_dir, clock=clock)

        document = store.load()
        assert store.save(document) is False

    def test_unwritable_first_run_reports_error(self, tmp_path, temp_backup_dir, clock):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = ExpenseStore(blocker / "expense_data.json", temp_backup_dir, clock=clock)

        result = store.load_result()
        assert result.status is LoadStatus.DEFAULT_USED
        assert isinstance(result.error, StoreWriteError)
        assert store.add_expense(_expense_payload()) is None


class TestAddExpense:
    def test_groceries_scenario(self, store):
        store.add_expense(_expense_payload())

        latest = store.load().expenses[0]
        assert latest.description == "Groceries"
        assert latest.to_dict()["amount"] == "250.00"

    def test_date_only_input_is_stored_as_date(self, store, data_file):
        store.add_expense(_expense_payload(date="2024-01-15"))
        store.add_expense(_expense_payload(date="2024-01-16T09:30:00Z"))

        stored = json.loads(data_file.read_text(encoding="utf-8"))["expenses"]
        assert stored[1]["date"] == "2024-01-15"
        assert stored[0]["date"] == "2024-01-16T09:30:00.000Z"

    def test_mints_id_and_created_at(self, store, clock):
        expense = store.add_expense(_expense_payload())

        assert expense.id.startswith("exp_")
        assert int(expense.id[len("exp_"):]) == round(expense.created_at.timestamp() * 1000)
        assert expense.created_at <= clock.current

    def test_newest_first(self, store):
        created = [store.add_expense(_expense_payload(description=f"item {i}")) for i in range(4)]

        ids = [expense.id for expense in store.load().expenses]
        assert ids == [expense.id for expense in reversed(created)]
        assert len(set(ids)) == 4

    def test_accepts_legacy_payment_method_key(self, store):
        payload = _expense_payload()
        payload["paymentMethod"] = payload.pop("paymentMethodId")

        expense = store.add_expense(payload)
        assert expense.payment_method_id == "cash"

    def test_invalid_amount_is_rejected(self, store):
        with pytest.raises(ValidationError):
            store.add_expense(_expense_payload(amount="-5"))
        assert store.load().expenses == []

    def test_missing_date_is_rejected(self, store):
        payload = _expense_payload()
        del payload["date"]
        with pytest.raises(ValidationError):
            store.add_expense(payload)

    def test_dangling_category_is_tolerated(self, store):
        expense = store.add_expense(_expense_payload(categoryId="404"))
        assert expense is not None
        assert store.load().expenses[0].category_id == "404"

    def test_concurrent_writers_do_not_clobber(self, store):
        def worker(index):
            store.add_expense(_expense_payload(description=f"tap {index}"))

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        descriptions = {expense.description for expense in store.load().expenses}
        assert descriptions == {f"tap {i}" for i in range(10)}

    def test_get_expense(self, store):
        expense = store.add_expense(_expense_payload())
        assert store.get_expense(expense.id) == expense
        with pytest.raises(RecordNotFoundError):
            store.get_expense("exp_0")


class TestAddPaymentMethod:
    def test_appends_with_defaults(self, store):
        method = store.add_payment_method({"name": "HDFC Card"})

        assert method.id.startswith("pm_")
        assert method.icon == "💳"
        assert method.type == "card"
        assert [pm.id for pm in store.get_payment_methods()] == ["cash", method.id]

    def test_rejects_unknown_type(self, store):
        with pytest.raises(ValidationError):
            store.add_payment_method({"name": "Crypto", "type": "wallet"})


class TestAddCategory:
    def test_mints_next_sequential_id(self, store):
        category = store.add_category({"name": "Travel", "icon": "✈️"})

        assert category.id == "9"
        assert store.get_categories()[-1] == category

    def test_duplicate_name_is_rejected(self, store):
        with pytest.raises(ValidationError):
            store.add_category({"name": "food"})


class TestBackup:
    def test_export_writes_pretty_printed_snapshot(self, store, temp_backup_dir):
        store.add_expense(_expense_payload())

        path = store.export_backup()

        assert path.parent == temp_backup_dir
        assert path.name.startswith("expense_backup_") and path.suffix == ".json"
        text = path.read_text(encoding="utf-8")
        assert "\n  " in text
        assert json.loads(text) == store.load().to_dict()

    def test_export_import_round_trip(self, store):
        store.add_expense(_expense_payload())
        exported = store.load()
        path = store.export_backup()

        store.add_expense(_expense_payload(description="After export"))
        assert store.import_backup(path) is True

        assert _without_timestamp(store.load()) == _without_timestamp(exported)

    def test_import_replaces_wholesale(self, store, tmp_path, legacy_document):
        store.add_expense(_expense_payload())
        backup = tmp_path / "other.json"
        backup.write_text(json.dumps(legacy_document), encoding="utf-8")

        assert store.import_backup(backup) is True
        assert [exp.description for exp in store.load().expenses] == ["Lunch"]

    def test_import_invalid_json_fails(self, store, tmp_path):
        store.add_expense(_expense_payload())
        backup = tmp_path / "broken.json"
        backup.write_text("{oops", encoding="utf-8")

        assert store.import_backup(backup) is False
        assert len(store.load().expenses) == 1

    def test_import_missing_file_fails(self, store, tmp_path):
        assert store.import_backup(tmp_path / "missing.json") is False

    def test_export_of_corrupt_document_fails(self, store, data_file):
        data_file.write_text("nope", encoding="utf-8")
        assert store.export_backup() is None
