from __future__ import annotations

import json
from datetime import datetime
from typing import Iterable

import pandas as pd

from db import COLLECTIONS


def _as_dict(record: object) -> dict:
    if hasattr(record, "model_dump"):
        return record.model_dump(mode="json")
    return dict(record)


def _cell(value: object) -> object:
    # Nested values (invoice line items) go into a single JSON-encoded cell.
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return value


def collection_to_csv(records: Iterable[object]) -> str:
    """
    Flatten one collection into CSV text: a header row, then one row per record.

    Columns are every field seen, in first-seen order. Values containing a
    comma are wrapped in double quotes. An empty collection gives "".
    """
    rows = [_as_dict(r) for r in records]
    if not rows:
        return ""
    frame = pd.DataFrame(rows)
    frame = frame.apply(lambda column: column.map(_cell))
    return frame.to_csv(index=False, lineterminator="\n")


def collection_to_json(records: Iterable[object]) -> str:
    return json.dumps([_as_dict(r) for r in records], indent=2)


def export_filename(collection: str, extension: str = "csv") -> str:
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {collection}")
    return f"{collection}.{extension}"


def backup_payload(state, now: datetime | None = None) -> dict:
    payload = {collection: [_as_dict(r) for r in state.collection(collection)] for collection in COLLECTIONS}
    payload["export_date"] = (now or datetime.now()).isoformat()
    return payload


def backup_json(state, now: datetime | None = None) -> str:
    return json.dumps(backup_payload(state, now=now), indent=2)


def backup_filename(now: datetime | None = None) -> str:
    return f"solar-crm-backup-{(now or datetime.now()).date().isoformat()}.json"
