"""
Canonical long-format result rows.

Every query answered by the pipeline returns rows of exactly this shape, one
per (period, entity, metric). Field names are a wire contract with
downstream consumers and must not change.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from numbers import Real
from typing import Any, Iterable, Literal, Mapping

from pydantic import BaseModel

METRIC_TYPE_PERCENTAGE = "percentage"


class CanonicalRow(BaseModel):
    period: date
    period_grain: str
    entity_name: str
    metric_name: str
    metric_label: str
    metric_type: Literal["absolute", "percentage"]
    metric_value: float
    reporting_currency: str | None = None


def _needs_scaling(metric_type: Any, value: Any) -> bool:
    if metric_type != METRIC_TYPE_PERCENTAGE:
        return False
    if isinstance(value, Decimal):
        # Postgres numeric columns arrive as Decimal; NaN does not order
        return value.is_finite() and abs(value) <= 1
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return abs(value) <= 1


def normalize_row(row: CanonicalRow | Mapping[str, Any]) -> CanonicalRow | Mapping[str, Any]:
    """Scale a fractional percentage (|v| <= 1) to 0-100; otherwise unchanged."""
    if isinstance(row, CanonicalRow):
        if _needs_scaling(row.metric_type, row.metric_value):
            return row.model_copy(update={"metric_value": row.metric_value * 100})
        return row

    if not isinstance(row, Mapping):
        return row
    if _needs_scaling(row.get("metric_type"), row.get("metric_value")):
        scaled = dict(row)
        scaled["metric_value"] = row["metric_value"] * 100
        return scaled
    return row


def normalize_rows(rows: Iterable[CanonicalRow | Mapping[str, Any]]) -> list:
    """Apply ``normalize_row`` to every row. Never raises."""
    return [normalize_row(r) for r in rows or []]
