from __future__ import annotations

import logging
import os
from datetime import datetime, tzinfo
from typing import Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

CUSTOMER_COLUMNS = [
    "id",
    "name",
    "phone",
    "email",
    "address",
    "solar_capacity",
    "monthly_bill",
    "installation_date",
    "status",
    "created_at",
]
PRODUCT_COLUMNS = ["id", "name", "category", "quantity", "vendor", "unit_cost", "min_threshold"]
TASK_COLUMNS = [
    "id",
    "customer_id",
    "customer_name",
    "type",
    "status",
    "assigned_to",
    "scheduled_date",
    "completed_date",
    "notes",
]
INVOICE_COLUMNS = ["id", "customer_id", "customer_name", "final_amount", "created_at"]
MONTHLY_COLUMNS = ["month", "month_label", "start", "end", "installations", "total_kw", "revenue"]


def _as_dict(record: object) -> dict:
    if hasattr(record, "model_dump"):
        return record.model_dump(mode="json")
    return dict(record)


def records_frame(records: Iterable[object], columns: list[str]) -> pd.DataFrame:
    rows = [_as_dict(r) for r in records]
    return pd.DataFrame(rows).reindex(columns=columns)


def local_timezone() -> tzinfo:
    name = (os.getenv("CRM_TIMEZONE", "") or "").strip()
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown CRM_TIMEZONE %r, using the server timezone", name)
    return datetime.now().astimezone().tzinfo


def _to_local(value: object, zone: tzinfo) -> pd.Timestamp:
    parsed = pd.to_datetime(value, errors="coerce")
    if parsed is None or pd.isna(parsed):
        return pd.NaT
    if parsed.tzinfo is not None:
        # Offset-aware values are bucketed by their local wall-clock time.
        parsed = parsed.tz_convert(zone).tz_localize(None)
    return parsed


def _parse_dates(series: pd.Series) -> pd.Series:
    # Unparseable values become NaT, which never falls inside a bucket.
    zone = local_timezone()
    parsed = series.astype("object").map(lambda value: _to_local(value, zone))
    return pd.to_datetime(parsed, errors="coerce")


def _numeric(series: pd.Series) -> pd.Series:
    return pd.to_numeric(series, errors="coerce").fillna(0.0)


def _in_bucket(dates: pd.Series, start: pd.Timestamp, end: pd.Timestamp) -> pd.Series:
    return dates.between(start, end, inclusive="both")


def month_buckets(now: datetime | None = None, months: int = 6) -> pd.DataFrame:
    """Trailing calendar months ending with the current one, oldest first."""
    current = pd.Timestamp(now or datetime.now()).to_period("M")
    periods = pd.period_range(end=current, periods=months, freq="M")
    return pd.DataFrame(
        {
            "month": periods.strftime("%Y-%m"),
            "month_label": periods.strftime("%b %Y"),
            "start": periods.start_time,
            "end": periods.end_time,
        }
    )


def monthly_summary(
    customers: Iterable[object],
    tasks: Iterable[object],
    invoices: Iterable[object],
    now: datetime | None = None,
    months: int = 6,
) -> pd.DataFrame:
    buckets = month_buckets(now=now, months=months)

    task_df = records_frame(tasks, TASK_COLUMNS)
    installs = task_df[(task_df["type"] == "installation") & (task_df["status"] == "completed")]
    install_dates = _parse_dates(installs["completed_date"])

    customer_df = records_frame(customers, CUSTOMER_COLUMNS)
    capacity = _numeric(customer_df["solar_capacity"])
    capacity_dates = _parse_dates(customer_df["installation_date"])

    invoice_df = records_frame(invoices, INVOICE_COLUMNS)
    amounts = _numeric(invoice_df["final_amount"])
    invoice_dates = _parse_dates(invoice_df["created_at"])

    rows = []
    for bucket in buckets.itertuples(index=False):
        rows.append(
            {
                "month": bucket.month,
                "month_label": bucket.month_label,
                "start": bucket.start,
                "end": bucket.end,
                "installations": int(_in_bucket(install_dates, bucket.start, bucket.end).sum()),
                "total_kw": round(
                    float(capacity[_in_bucket(capacity_dates, bucket.start, bucket.end)].sum()), 1
                ),
                "revenue": float(amounts[_in_bucket(invoice_dates, bucket.start, bucket.end)].sum()),
            }
        )
    return pd.DataFrame(rows, columns=MONTHLY_COLUMNS)


def current_month_stats(
    customers: Iterable[object],
    tasks: Iterable[object],
    invoices: Iterable[object],
    now: datetime | None = None,
) -> dict:
    customers = list(customers)
    latest = monthly_summary(customers, tasks, invoices, now=now, months=1).iloc[0]

    customer_df = records_frame(customers, CUSTOMER_COLUMNS)
    new_customers = int(
        _in_bucket(_parse_dates(customer_df["created_at"]), latest["start"], latest["end"]).sum()
    )
    return {
        "month_label": str(latest["month_label"]),
        "installations": int(latest["installations"]),
        "total_kw": float(latest["total_kw"]),
        "revenue": float(latest["revenue"]),
        "new_customers": new_customers,
    }


def category_rollup(products: Iterable[object]) -> pd.DataFrame:
    """Stock value (quantity x unit cost) per category, in first-seen order, rounded to whole units."""
    df = records_frame(products, PRODUCT_COLUMNS)
    if df.empty:
        return pd.DataFrame(columns=["name", "value"])

    category = df["category"].fillna("").astype(str).str.strip()
    df["name"] = np.where(category == "", "Other", category)
    df["value"] = _numeric(df["quantity"]) * _numeric(df["unit_cost"])
    rollup = df.groupby("name", sort=False, as_index=False)["value"].sum()
    # Whole currency units, halves rounded up.
    rollup["value"] = np.floor(rollup["value"] + 0.5)
    return rollup


def low_stock_products(products: Iterable[object]) -> pd.DataFrame:
    df = records_frame(products, PRODUCT_COLUMNS)
    if df.empty:
        return df
    mask = _numeric(df["quantity"]) <= _numeric(df["min_threshold"])
    return df[mask].reset_index(drop=True)


def task_status_counts(tasks: Iterable[object]) -> dict[str, int]:
    df = records_frame(tasks, TASK_COLUMNS)
    counts = df["status"].value_counts()
    return {
        status: int(counts.get(status, 0))
        for status in ("pending", "in-progress", "completed")
    }


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count > 1 else ''}"


def dashboard_summary(
    customers: Iterable[object],
    products: Iterable[object],
    tasks: Iterable[object],
    invoices: Iterable[object],
    now: datetime | None = None,
    limit: int = 5,
) -> dict:
    customers = list(customers)
    tasks = list(tasks)

    task_df = records_frame(tasks, TASK_COLUMNS)
    pending_installations = int(
        ((task_df["type"] == "installation") & (task_df["status"] != "completed")).sum()
    )
    low_stock = int(len(low_stock_products(products)))

    alerts = []
    if low_stock > 0:
        alerts.append(
            {
                "level": "warning",
                "message": f"{_plural(low_stock, 'product')} running low on stock",
                "action": "Inventory",
            }
        )
    if pending_installations > 0:
        alerts.append(
            {
                "level": "info",
                "message": f"{_plural(pending_installations, 'installation')} pending",
                "action": "Installations",
            }
        )

    customer_df = records_frame(customers, CUSTOMER_COLUMNS)
    customer_df["_created"] = _parse_dates(customer_df["created_at"])
    recent_customers = (
        customer_df.sort_values("_created", ascending=False, na_position="last")
        .head(limit)
        .drop(columns="_created")
        .reset_index(drop=True)
    )

    open_tasks = task_df[task_df["status"] != "completed"].copy()
    open_tasks["_scheduled"] = _parse_dates(open_tasks["scheduled_date"])
    upcoming_tasks = (
        open_tasks.sort_values("_scheduled", ascending=True, na_position="last")
        .head(limit)
        .drop(columns="_scheduled")
        .reset_index(drop=True)
    )

    return {
        "month": current_month_stats(customers, tasks, invoices, now=now),
        "total_customers": len(customers),
        "pending_installations": pending_installations,
        "low_stock": low_stock,
        "alerts": alerts,
        "recent_customers": recent_customers,
        "upcoming_tasks": upcoming_tasks,
    }
