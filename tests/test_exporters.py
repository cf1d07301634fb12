import json
from datetime import datetime

import pytest

from exporters import (
    backup_filename,
    backup_json,
    backup_payload,
    collection_to_csv,
    collection_to_json,
    export_filename,
)
from models import Invoice, LineItem
from state import AppState


def test_customers_csv_has_header_and_one_line_per_record(customers):
    text = collection_to_csv(customers)

    lines = text.splitlines()
    assert len(lines) == 3
    assert lines[0].split(",")[:4] == ["id", "created_at", "updated_at", "name"]
    assert '"12 Solar Street, Pune"' in lines[1]
    assert lines[2].startswith("c2,")


def test_empty_collection_exports_empty_string():
    assert collection_to_csv([]) == ""


def test_line_items_exported_as_json_cell():
    invoice = Invoice(
        id="inv1",
        customer_id="c1",
        customer_name="Asha Rao",
        line_items=[LineItem(name="Panel", quantity=2, unit_cost=100)],
        subtotal=200,
        final_amount=200,
    )

    text = collection_to_csv([invoice])

    assert len(text.splitlines()) == 2
    assert '""name"": ""Panel""' in text


def test_plain_dicts_are_accepted():
    text = collection_to_csv([{"name": "A", "qty": 1}, {"name": "B", "qty": 2}])

    assert text == "name,qty\nA,1\nB,2\n"


def test_collection_to_json(products):
    data = json.loads(collection_to_json(products))

    assert [d["id"] for d in data] == ["p1", "p2"]
    assert data[1]["quantity"] == 2


def test_export_filename():
    assert export_filename("customers") == "customers.csv"
    assert export_filename("invoices", "json") == "invoices.json"
    with pytest.raises(ValueError):
        export_filename("users")


def test_backup_contains_every_collection(store, customers, products, now):
    state = AppState(store=store, customers=customers, products=products)

    payload = backup_payload(state, now=now)

    assert set(payload) == {"customers", "products", "tasks", "invoices", "export_date"}
    assert payload["export_date"] == "2026-10-17T12:00:00"
    assert [c["name"] for c in payload["customers"]] == ["Asha Rao", "Vikram Shah"]
    assert payload["tasks"] == []
    assert json.loads(backup_json(state, now=now)) == payload


def test_backup_filename(now):
    assert backup_filename(now) == "solar-crm-backup-2026-10-17.json"
    assert backup_filename(datetime(2027, 1, 2, 3, 4)) == "solar-crm-backup-2027-01-02.json"
