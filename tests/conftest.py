from datetime import datetime

import pytest

from db import DocumentStore
from models import Customer, Product


@pytest.fixture
def store(tmp_path):
    return DocumentStore(tmp_path / "crm.db")


@pytest.fixture
def now():
    return datetime(2026, 10, 17, 12, 0)


@pytest.fixture
def customers():
    return [
        Customer(
            id="c1",
            name="Asha Rao",
            phone="9876543210",
            email="asha@example.com",
            address="12 Solar Street, Pune",
            solar_capacity=5,
            monthly_bill=3200,
            installation_date="2026-10-05",
            status="completed",
            created_at="2026-10-01T09:00:00",
        ),
        Customer(
            id="c2",
            name="Vikram Shah",
            phone="9123456780",
            email="vikram@example.com",
            address="4 Grid Road",
            solar_capacity=3.5,
            monthly_bill=2100,
            installation_date="2026-08-20",
            status="in-progress",
            created_at="2026-07-11T15:30:00",
        ),
    ]


@pytest.fixture
def products():
    return [
        Product(id="p1", name="550W Mono Panel", category="Panels", quantity=40, vendor="SunCo", unit_cost=12000, min_threshold=10),
        Product(id="p2", name="5kW Inverter", category="Inverters", quantity=2, vendor="VoltMax", unit_cost=45000, min_threshold=3),
    ]
