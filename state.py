"""
Session-scoped application state.

`AppState` holds the in-memory snapshot of the four collections and is passed
explicitly to every screen. Writes go through the document store first and
only then touch the snapshot, so a failed store call leaves the snapshot as it
was.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from pydantic import ValidationError

from db import COLLECTIONS, DocumentStore, server_timestamp
from invoicing import build_invoice
from models import Customer, Invoice, LineItem, Product, Record, Task, WorkStatus, parse_record

logger = logging.getLogger(__name__)


def _parse_snapshot(collection: str, documents: Iterable[dict]) -> list:
    records = []
    for document in documents:
        try:
            records.append(parse_record(collection, document))
        except ValidationError as exc:
            logger.warning(
                "Skipping invalid %s record %s: %s",
                collection,
                document.get("id", "?"),
                exc.errors()[0].get("msg", exc),
            )
    return records


@dataclass
class AppState:
    store: DocumentStore
    customers: list[Customer] = field(default_factory=list)
    products: list[Product] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    invoices: list[Invoice] = field(default_factory=list)
    loaded_at: Optional[str] = None

    def collection(self, name: str) -> list:
        if name not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {name}")
        return getattr(self, name)

    def find(self, collection: str, record_id: str) -> Optional[Record]:
        return next((r for r in self.collection(collection) if r.id == record_id), None)

    def find_customer(self, customer_id: str) -> Optional[Customer]:
        return self.find("customers", customer_id)

    # ---------- generic write-through ----------

    def _add(self, collection: str, record: Record) -> Record:
        new_id = self.store.add(collection, record.to_document())
        saved = self.store.get_by_id(collection, new_id) or {"id": new_id, **record.to_document()}
        created = parse_record(collection, saved)
        self.collection(collection).append(created)
        logger.info("Added %s record %s", collection, new_id)
        return created

    def _update(self, collection: str, record_id: str, changes: dict) -> Record:
        current = self.find(collection, record_id)
        if current is None:
            stored = self.store.get_by_id(collection, record_id)
            current = parse_record(collection, stored) if stored else None
        if current is not None:
            # Validate the merged record before anything is written.
            parse_record(collection, {**current.model_dump(mode="json"), **changes})
        merged = self.store.update(collection, record_id, _jsonable(changes))
        updated = parse_record(collection, merged)
        records = self.collection(collection)
        for idx, record in enumerate(records):
            if record.id == record_id:
                records[idx] = updated
                break
        else:
            records.append(updated)
        return updated

    def _delete(self, collection: str, record_id: str) -> None:
        self.store.delete(collection, record_id)
        records = self.collection(collection)
        records[:] = [r for r in records if r.id != record_id]
        logger.info("Deleted %s record %s", collection, record_id)

    # ---------- customers ----------

    def add_customer(self, customer: Customer) -> Customer:
        return self._add("customers", customer)

    def update_customer(self, customer_id: str, changes: dict) -> Customer:
        return self._update("customers", customer_id, changes)

    def delete_customer(self, customer_id: str) -> None:
        self._delete("customers", customer_id)

    def delete_customers(self, customer_ids: Iterable[str]) -> int:
        ids = set(customer_ids)
        deleted = self.store.batch_delete("customers", ids)
        self.customers[:] = [c for c in self.customers if c.id not in ids]
        return deleted

    # ---------- products ----------

    def add_product(self, product: Product) -> Product:
        return self._add("products", product)

    def update_product(self, product_id: str, changes: dict) -> Product:
        return self._update("products", product_id, changes)

    def delete_product(self, product_id: str) -> None:
        self._delete("products", product_id)

    def restock_products(self, quantities: dict[str, int]) -> None:
        """Set stock levels for several products in one batch."""
        updates = []
        for product_id, quantity in quantities.items():
            product = self.find("products", product_id)
            if product is None:
                continue
            parse_record("products", {**product.model_dump(mode="json"), "quantity": quantity})
            updates.append((product_id, {"quantity": int(quantity)}))
        if not updates:
            return
        self.store.batch_update("products", updates)
        for product_id, changes in updates:
            product = self.find("products", product_id)
            product.quantity = changes["quantity"]

    # ---------- tasks ----------

    def add_task(self, task: Task) -> Task:
        task = _with_completion_date(task.model_copy())
        if not task.customer_name and task.customer_id:
            customer = self.find_customer(task.customer_id)
            if customer is not None:
                task.customer_name = customer.name
        return self._add("tasks", task)

    def update_task(self, task_id: str, changes: dict) -> Task:
        current = self.find("tasks", task_id)
        changes = dict(changes)
        if current is not None:
            new_status = WorkStatus(changes.get("status", current.status))
            if new_status != WorkStatus.COMPLETED:
                changes["completed_date"] = None
            elif current.status != WorkStatus.COMPLETED or not current.completed_date:
                changes.setdefault("completed_date", server_timestamp())
        return self._update("tasks", task_id, changes)

    def delete_task(self, task_id: str) -> None:
        self._delete("tasks", task_id)

    # ---------- invoices ----------

    def add_invoice(self, invoice: Invoice) -> Invoice:
        return self._add("invoices", invoice)

    def create_invoice(
        self,
        customer_id: str,
        line_items: list[LineItem],
        taxes: float = 0.0,
        installation_date: str = "",
        company_address: str | None = None,
        tax_id: str | None = None,
        signatory: str | None = None,
    ) -> Invoice | None:
        draft = build_invoice(
            self.customers,
            customer_id,
            line_items,
            taxes=taxes,
            installation_date=installation_date,
            company_address=company_address,
            tax_id=tax_id,
            signatory=signatory,
        )
        if draft is None:
            return None
        return self.add_invoice(draft)

    def delete_invoice(self, invoice_id: str) -> None:
        self._delete("invoices", invoice_id)


def _jsonable(changes: dict) -> dict:
    out = {}
    for key, value in changes.items():
        if hasattr(value, "model_dump"):
            out[key] = value.model_dump(mode="json")
        elif isinstance(value, list):
            out[key] = [v.model_dump(mode="json") if hasattr(v, "model_dump") else v for v in value]
        elif isinstance(value, Enum):
            out[key] = value.value
        else:
            out[key] = value
    return out


def _with_completion_date(task: Task) -> Task:
    if task.status == WorkStatus.COMPLETED:
        if not task.completed_date:
            task.completed_date = server_timestamp()
    else:
        task.completed_date = None
    return task


async def load_state(store: DocumentStore) -> AppState:
    """Fetch all four collections concurrently and build a fresh snapshot."""
    results = await asyncio.gather(
        *(asyncio.to_thread(store.get_all, collection) for collection in COLLECTIONS)
    )
    snapshot = {
        collection: _parse_snapshot(collection, documents)
        for collection, documents in zip(COLLECTIONS, results)
    }
    state = AppState(store=store, loaded_at=server_timestamp(), **snapshot)
    logger.info(
        "Loaded snapshot: %s",
        ", ".join(f"{len(snapshot[c])} {c}" for c in COLLECTIONS),
    )
    return state


def search_customers(customers: Iterable[Customer], term: str = "") -> list[Customer]:
    needle = (term or "").strip().lower()
    if not needle:
        return list(customers)
    return [
        c
        for c in customers
        if needle in c.name.lower() or needle in c.email.lower() or needle in c.phone
    ]


def filter_products(products: Iterable[Product], term: str = "", category: str = "") -> list[Product]:
    needle = (term or "").strip().lower()
    out = []
    for product in products:
        matches_search = not needle or needle in product.name.lower() or needle in product.vendor.lower()
        matches_category = not category or product.category == category
        if matches_search and matches_category:
            out.append(product)
    return out


def filter_tasks(
    tasks: Iterable[Task],
    term: str = "",
    status: str = "",
    assignee: str = "",
) -> list[Task]:
    needle = (term or "").strip().lower()
    out = []
    for task in tasks:
        matches_search = (
            not needle or needle in task.customer_name.lower() or needle in task.assigned_to.lower()
        )
        matches_status = not status or task.status.value == status
        matches_assignee = not assignee or task.assigned_to == assignee
        if matches_search and matches_status and matches_assignee:
            out.append(task)
    return out


def search_invoices(invoices: Iterable[Invoice], term: str = "") -> list[Invoice]:
    needle = (term or "").strip().lower()
    if not needle:
        return list(invoices)
    return [i for i in invoices if needle in i.customer_name.lower() or needle in i.id.lower()]
