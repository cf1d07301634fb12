import sqlite3

import pytest

from db import DocumentStore, RecordNotFoundError, StoreError


def test_add_and_get(store):
    new_id = store.add("customers", {"name": "Asha Rao", "solar_capacity": 5})

    doc = store.get_by_id("customers", new_id)

    assert doc["id"] == new_id
    assert doc["name"] == "Asha Rao"
    assert doc["created_at"]
    assert store.get_all("customers") == [doc]


def test_add_ignores_client_id(store):
    new_id = store.add("products", {"id": "client-side", "name": "Panel"})

    assert new_id != "client-side"
    assert store.get_by_id("products", "client-side") is None


def test_get_all_keeps_insert_order(store):
    ids = [store.add("tasks", {"customer_name": name}) for name in ["a", "b", "c"]]

    assert [doc["id"] for doc in store.get_all("tasks")] == ids


def test_collections_are_isolated(store):
    store.add("customers", {"name": "A"})

    assert store.get_all("products") == []


def test_update_merges_fields(store):
    new_id = store.add("customers", {"name": "Asha", "phone": "123"})

    merged = store.update("customers", new_id, {"phone": "456", "status": "completed"})

    assert merged == store.get_by_id("customers", new_id)
    assert merged["name"] == "Asha"
    assert merged["phone"] == "456"
    assert merged["status"] == "completed"
    assert merged["updated_at"]


def test_update_missing_record_raises(store):
    with pytest.raises(RecordNotFoundError):
        store.update("customers", "missing", {"name": "x"})


def test_unknown_collection_raises(store):
    with pytest.raises(ValueError):
        store.get_all("users")
    with pytest.raises(ValueError):
        store.add("users", {})


def test_delete(store):
    keep = store.add("invoices", {"customer_id": "c1"})
    drop = store.add("invoices", {"customer_id": "c2"})

    store.delete("invoices", drop)

    assert [doc["id"] for doc in store.get_all("invoices")] == [keep]


def test_batch_delete_counts_removed(store):
    ids = [store.add("customers", {"name": n}) for n in ["a", "b", "c"]]

    deleted = store.batch_delete("customers", [ids[0], ids[2], "missing"])

    assert deleted == 2
    assert [doc["id"] for doc in store.get_all("customers")] == [ids[1]]


def test_batch_update_is_all_or_nothing(store):
    first = store.add("products", {"name": "Panel", "quantity": 1})

    with pytest.raises(RecordNotFoundError):
        store.batch_update("products", [(first, {"quantity": 50}), ("missing", {"quantity": 2})])

    assert store.get_by_id("products", first)["quantity"] == 1

    store.batch_update("products", [(first, {"quantity": 50})])
    assert store.get_by_id("products", first)["quantity"] == 50


def test_settings_round_trip(store):
    assert store.get_setting("profile.business_name", "default") == "default"

    store.set_setting("profile.business_name", "Spectra")
    store.set_setting("profile.business_name", "Spectra Solar")

    assert store.get_setting("profile.business_name") == "Spectra Solar"
    with pytest.raises(ValueError):
        store.set_setting("  ", "x")


def test_counts(store):
    store.add("customers", {"name": "A"})
    store.add("customers", {"name": "B"})
    store.add("tasks", {"customer_name": "A"})

    assert store.counts() == {"customers": 2, "products": 0, "tasks": 1, "invoices": 0}


def test_data_persists_across_store_instances(tmp_path):
    path = tmp_path / "crm.db"
    new_id = DocumentStore(path).add("customers", {"name": "A"})

    assert DocumentStore(path).get_by_id("customers", new_id)["name"] == "A"


def test_db_path_from_environment(tmp_path, monkeypatch):
    monkeypatch.delenv("CRM_DB_PATH", raising=False)
    monkeypatch.setenv("CRM_DATA_DIR", str(tmp_path / "data"))

    store = DocumentStore()

    assert store.db_path == tmp_path / "data" / "solar_crm.db"
    assert store.db_path.exists()


def test_sqlite_failure_becomes_store_error(store, monkeypatch):
    def broken_connection():
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(store, "get_connection", broken_connection)

    with pytest.raises(StoreError) as excinfo:
        store.get_all("customers")
    assert isinstance(excinfo.value.__cause__, sqlite3.OperationalError)
