from datetime import datetime

import pandas as pd
import pytest

from analytics import (
    category_rollup,
    current_month_stats,
    dashboard_summary,
    low_stock_products,
    month_buckets,
    monthly_summary,
    task_status_counts,
)
from models import Customer, Invoice, Product, Task


def test_month_buckets_trailing_six_months(now):
    buckets = month_buckets(now=now)

    assert list(buckets["month_label"]) == [
        "May 2026",
        "Jun 2026",
        "Jul 2026",
        "Aug 2026",
        "Sep 2026",
        "Oct 2026",
    ]
    assert buckets["start"].iloc[0] == pd.Timestamp("2026-05-01 00:00:00")
    assert buckets["end"].iloc[-1].date() == datetime(2026, 10, 31).date()
    assert buckets["end"].iloc[-1] > pd.Timestamp("2026-10-31 23:59:59")


def test_month_buckets_are_contiguous_and_ordered(now):
    buckets = month_buckets(now=now)

    assert buckets["start"].is_monotonic_increasing
    for i in range(len(buckets) - 1):
        assert buckets["start"].iloc[i] < buckets["end"].iloc[i]
        gap = buckets["start"].iloc[i + 1] - buckets["end"].iloc[i]
        assert pd.Timedelta(0) < gap <= pd.Timedelta(microseconds=1)


def test_month_buckets_cross_year_boundary():
    buckets = month_buckets(now=datetime(2026, 2, 10))
    assert list(buckets["month"]) == ["2025-09", "2025-10", "2025-11", "2025-12", "2026-01", "2026-02"]


def test_capacity_installed_this_month_only():
    today = datetime.now()
    customers = [Customer(name="A", solar_capacity=5, installation_date=today.date().isoformat())]

    summary = monthly_summary(customers, [], [])
    latest = summary.iloc[-1]

    assert latest["total_kw"] == 5.0
    assert latest["installations"] == 0
    assert latest["revenue"] == 0
    assert summary["total_kw"].iloc[:-1].sum() == 0


def test_completed_installations_counted_on_bucket_boundaries(now):
    tasks = [
        Task(type="installation", status="completed", completed_date="2026-10-01T00:00:00"),
        Task(type="installation", status="completed", completed_date="2026-10-31T23:59:59"),
        Task(type="installation", status="completed", completed_date="2026-05-01"),
        Task(type="maintenance", status="completed", completed_date="2026-10-10"),
        Task(type="installation", status="in-progress", completed_date=None),
    ]

    summary = monthly_summary([], tasks, [], now=now).set_index("month")

    assert summary.loc["2026-10", "installations"] == 2
    assert summary.loc["2026-05", "installations"] == 1
    assert summary["installations"].sum() == 3


def test_task_completed_outside_window_counts_nowhere(now):
    tasks = [
        {"type": "installation", "status": "completed", "completed_date": "2026-03-15"},
        {"type": "installation", "status": "completed", "completed_date": "2026-11-01"},
    ]

    summary = monthly_summary([], tasks, [], now=now)

    assert summary["installations"].sum() == 0


def test_missing_and_malformed_dates_are_excluded(now):
    customers = [
        {"name": "No date", "solar_capacity": 4, "installation_date": None},
        {"name": "Bad date", "solar_capacity": 6, "installation_date": "not-a-date"},
        {"name": "Good", "solar_capacity": 2.5, "installation_date": "2026-09-03"},
    ]
    invoices = [
        {"customer_id": "c1", "final_amount": 100.0, "created_at": "garbage"},
        {"customer_id": "c1", "final_amount": 250.5, "created_at": "2026-09-30T18:00:00"},
    ]

    summary = monthly_summary(customers, [], invoices, now=now).set_index("month")

    assert summary.loc["2026-09", "total_kw"] == 2.5
    assert summary["total_kw"].sum() == pytest.approx(2.5)
    assert summary.loc["2026-09", "revenue"] == pytest.approx(250.5)
    assert summary["revenue"].sum() == pytest.approx(250.5)


def test_mixed_date_formats_land_in_the_same_month(now):
    invoices = [
        Invoice(customer_id="c1", final_amount=1000, created_at="2026-08-05"),
        Invoice(customer_id="c1", final_amount=500, created_at="2026-08-20T10:15:00"),
    ]

    summary = monthly_summary([], [], invoices, now=now).set_index("month")

    assert summary.loc["2026-08", "revenue"] == pytest.approx(1500)


def test_offset_dates_bucketed_in_local_time(now, monkeypatch):
    monkeypatch.setenv("CRM_TIMEZONE", "Asia/Kolkata")
    invoices = [
        Invoice(customer_id="c1", final_amount=100, created_at="2026-10-01T02:00:00+05:30"),
        Invoice(customer_id="c1", final_amount=200, created_at="2026-09-30T20:45:00Z"),
        Invoice(customer_id="c1", final_amount=400, created_at="2026-09-30T23:00:00"),
    ]

    summary = monthly_summary([], [], invoices, now=now).set_index("month")

    assert summary.loc["2026-10", "revenue"] == pytest.approx(300)
    assert summary.loc["2026-09", "revenue"] == pytest.approx(400)


def test_empty_collections_give_zero_rows(now):
    summary = monthly_summary([], [], [], now=now)

    assert len(summary) == 6
    assert summary["installations"].sum() == 0
    assert summary["total_kw"].sum() == 0
    assert summary["revenue"].sum() == 0


def test_current_month_stats(customers, now):
    tasks = [Task(type="installation", status="completed", completed_date="2026-10-02")]
    invoices = [Invoice(customer_id="c1", final_amount=59000, created_at="2026-10-03T11:00:00")]

    stats = current_month_stats(customers, tasks, invoices, now=now)

    assert stats == {
        "month_label": "Oct 2026",
        "installations": 1,
        "total_kw": 5.0,
        "revenue": 59000.0,
        "new_customers": 1,
    }


def test_category_rollup_empty():
    result = category_rollup([])

    assert result.empty
    assert list(result.columns) == ["name", "value"]


def test_category_rollup_single_category():
    products = [
        Product(name="Inverter A", category="Inverters", quantity=2, unit_cost=100),
        Product(name="Inverter B", category="Inverters", quantity=1, unit_cost=50),
    ]

    assert category_rollup(products).to_dict("records") == [{"name": "Inverters", "value": 250.0}]


def test_category_rollup_defaults_and_order():
    products = [
        {"name": "Wire", "category": "", "quantity": 10, "unit_cost": 5},
        {"name": "Panel", "category": "Panels", "quantity": 2, "unit_cost": 100},
        {"name": "Clamp", "quantity": 4, "unit_cost": 2.5},
        {"name": "Panel B", "category": "Panels", "quantity": 1, "unit_cost": 80},
    ]

    result = category_rollup(products)

    assert list(result["name"]) == ["Other", "Panels"]
    assert list(result["value"]) == [60.0, 280.0]


def test_category_rollup_rounds_to_whole_units():
    products = [
        {"name": "Bolt", "category": "Hardware", "quantity": 3, "unit_cost": 33.5},
        {"name": "Cable", "category": "Wiring", "quantity": 1, "unit_cost": 99.4},
    ]

    result = category_rollup(products)

    assert list(result["value"]) == [101.0, 99.0]


def test_low_stock_includes_threshold_equal(products):
    products = products + [Product(name="Rail", quantity=5, min_threshold=5)]

    low = low_stock_products(products)

    assert set(low["name"]) == {"5kW Inverter", "Rail"}


def test_task_status_counts():
    tasks = [Task(status="pending"), Task(status="pending"), Task(status="completed")]
    assert task_status_counts(tasks) == {"pending": 2, "in-progress": 0, "completed": 1}
    assert task_status_counts([]) == {"pending": 0, "in-progress": 0, "completed": 0}


def test_dashboard_summary_alerts_and_lists(customers, products, now):
    tasks = [
        Task(customer_name="Asha Rao", type="installation", status="pending", scheduled_date="2026-10-25"),
        Task(customer_name="Vikram Shah", type="installation", status="in-progress", scheduled_date="2026-10-20"),
        Task(customer_name="Asha Rao", type="inspection", status="completed", scheduled_date="2026-10-01"),
    ]

    summary = dashboard_summary(customers, products, tasks, [], now=now)

    assert summary["total_customers"] == 2
    assert summary["pending_installations"] == 2
    assert summary["low_stock"] == 1
    assert [a["message"] for a in summary["alerts"]] == [
        "1 product running low on stock",
        "2 installations pending",
    ]
    assert list(summary["recent_customers"]["name"]) == ["Asha Rao", "Vikram Shah"]
    assert list(summary["upcoming_tasks"]["customer_name"]) == ["Vikram Shah", "Asha Rao"]


def test_dashboard_summary_without_data_has_no_alerts(now):
    summary = dashboard_summary([], [], [], [], now=now)

    assert summary["alerts"] == []
    assert summary["recent_customers"].empty
    assert summary["upcoming_tasks"].empty
    assert summary["month"]["revenue"] == 0
