"""
Record schemas for the solar CRM.

Each model maps to one collection in the document store. Status and type
fields are closed enumerations; a document with an unknown value fails
validation here, at the data-access boundary, instead of leaking into the
screens and reports.

Dates stay ISO-8601 strings on the records. They are parsed only when
aggregating, so a malformed date excludes a record from a report rather than
blocking it from loading.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class WorkStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class TaskType(str, Enum):
    INSTALLATION = "installation"
    MAINTENANCE = "maintenance"
    INSPECTION = "inspection"


class Record(BaseModel):
    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    id: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_document(self) -> dict:
        """Store-ready dict: enums as plain strings, no id."""
        return self.model_dump(mode="json", exclude={"id"})


class Customer(Record):
    name: str
    phone: str = ""
    email: str = ""
    address: str = ""
    solar_capacity: float = Field(0.0, ge=0)
    monthly_bill: float = Field(0.0, ge=0)
    installation_date: Optional[str] = None
    status: WorkStatus = WorkStatus.PENDING


class Product(Record):
    name: str
    category: str = ""
    quantity: int = Field(0, ge=0)
    vendor: str = ""
    unit_cost: float = Field(0.0, ge=0)
    min_threshold: int = Field(0, ge=0)

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_threshold

    @property
    def stock_value(self) -> float:
        return self.quantity * self.unit_cost


class Task(Record):
    customer_id: str = ""
    customer_name: str = ""
    type: TaskType = TaskType.INSTALLATION
    status: WorkStatus = WorkStatus.PENDING
    assigned_to: str = ""
    scheduled_date: str = ""
    completed_date: Optional[str] = None
    notes: Optional[str] = None


class LineItem(BaseModel):
    # No product_id means a custom/manual line.
    product_id: Optional[str] = None
    name: str
    quantity: float = Field(1, ge=0)
    unit_cost: float = Field(0.0, ge=0)

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_cost


class Invoice(Record):
    customer_id: str
    customer_name: str = ""
    line_items: list[LineItem] = Field(default_factory=list)
    installation_date: str = ""
    subtotal: float = 0.0
    taxes: float = Field(0.0, ge=0)
    final_amount: float = 0.0
    company_address: Optional[str] = None
    tax_id: Optional[str] = None
    signatory: Optional[str] = None


COLLECTION_MODELS: dict[str, type[Record]] = {
    "customers": Customer,
    "products": Product,
    "tasks": Task,
    "invoices": Invoice,
}


def parse_record(collection: str, document: dict) -> Record:
    try:
        model = COLLECTION_MODELS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection}") from None
    return model.model_validate(document)
