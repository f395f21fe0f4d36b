"""
Integration tests -- full pipeline with real parsing, planning and execution.

Reference data is loaded from YAML, the metric catalog from a business-context
markdown document, and generated SQL is executed against a seeded SQLite
database through SQLAlchemy. Only the text-generation collaborators are
scripted.
"""
from __future__ import annotations

from typing import Any

import pytest
from sqlalchemy import create_engine, text

from intentsql.copilot.intent import ResolvedIntent
from intentsql.copilot.service import run
from intentsql.resolution.catalog_loader import load_metric_catalog, load_reference_entities
from intentsql.results.normalizer import CanonicalRow
from intentsql.validation.semantic import TableShape

_HOTELS_YML = """\
entities:
  - hotel_name: Harbour View
    operator: Coastline Hospitality
    legal_entity: Harbour Holdings
  - hotel_name: City Central
    operator: Coastline Hospitality
    legal_entity: Central Props
  - hotel_name: Mountain Lodge
    operator: Alpine Ops
    legal_entity: Central Props
"""

_BUSINESS_CONTEXT = """\
# Portfolio

#metrics
- total_revenue: Total Revenue (absolute)
- occupancy_pct: Occupancy (percentage)
"""

_TABLE_SHAPES = [
    {
        "tableName": "clean_kpis",
        "columns": [
            {"name": "period", "type": "date"},
            {"name": "hotel_name", "type": "text"},
            {"name": "total_revenue", "type": "numeric(14,2)"},
            {"name": "occupancy", "type": "numeric"},
            {"name": "currency", "type": "text"},
        ],
    },
]

_SEED = [
    ("2024-01-01", "Harbour View", 120000.0, 0.81, "EUR"),
    ("2024-02-01", "Harbour View", 110000.0, 0.77, "EUR"),
    ("2024-01-01", "City Central", 90000.0, 0.64, "EUR"),
    ("2024-01-01", "Mountain Lodge", 70000.0, 0.55, "CHF"),
]

# metric name -> source column
_COLUMNS = {"total_revenue": "total_revenue", "occupancy_pct": "occupancy"}


@pytest.fixture
def inputs(tmp_path):
    hotels = tmp_path / "hotels.yml"
    hotels.write_text(_HOTELS_YML, encoding="utf-8")
    context = tmp_path / "business-context.md"
    context.write_text(_BUSINESS_CONTEXT, encoding="utf-8")
    return {
        "reference": load_reference_entities(hotels),
        "catalog": load_metric_catalog(context),
        "tables": [TableShape.from_dict(t) for t in _TABLE_SHAPES],
    }


@pytest.fixture
def execute(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'warehouse.db'}")
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE clean_kpis (period TEXT, hotel_name TEXT, "
            "total_revenue REAL, occupancy REAL, currency TEXT)"
        ))
        conn.execute(
            text("INSERT INTO clean_kpis VALUES (:p, :h, :r, :o, :c)"),
            [{"p": p, "h": h, "r": r, "o": o, "c": c} for p, h, r, o, c in _SEED],
        )

    def _execute(sql: str) -> list[dict[str, Any]]:
        with engine.connect() as conn:
            result = conn.execute(text(sql))
            return [dict(row._mapping) for row in result]

    yield _execute
    engine.dispose()


def _generate(intent: ResolvedIntent, tables) -> str:
    """Template generator emitting long-format rows, with a deliberate typo."""
    names = ", ".join(f"'{e}'" for e in intent.entities)
    parts = []
    for m in intent.metrics:
        column = _COLUMNS[m.name]
        if m.name == "occupancy_pct":
            column = "occupancy_rate"  # not a real column; the repair step fixes it
        parts.append(
            f"SELECT period, 'month' AS period_grain, hotel_name AS entity_name, "
            f"'{m.name}' AS metric_name, '{m.label}' AS metric_label, "
            f"'{m.value_kind}' AS metric_type, {column} AS metric_value, "
            f"currency AS reporting_currency "
            f"FROM clean_kpis WHERE hotel_name IN ({names})"
        )
    return "\nUNION ALL\n".join(parts) + "\nORDER BY period, entity_name, metric_name"


def _repair(sql, stage, error, context):
    return sql.replace("occupancy_rate", "occupancy")


def test_full_pipeline_returns_canonical_rows(inputs, execute):
    result = run(
        question="Revenue and occupancy for harbour view and city centrl",
        entities=["harbour view", "city centrl"],
        metrics=["revenue", "Occupancy %"],
        generate=_generate,
        repair=_repair,
        execute=execute,
        **inputs,
    )

    assert result.success is True
    assert [a.stage for a in result.attempts] == ["semantic"]
    assert "occupancy_rate" in result.attempts[0].error
    assert result.intent.entities == ["Harbour View", "City Central"]

    rows = [CanonicalRow(**r) for r in result.rows]
    assert len(rows) == 6
    occupancy = {(r.entity_name, r.period.isoformat()): r.metric_value
                 for r in rows if r.metric_name == "occupancy_pct"}
    assert occupancy[("Harbour View", "2024-01-01")] == pytest.approx(81)
    assert occupancy[("City Central", "2024-01-01")] == pytest.approx(64)

    revenue = [r for r in rows if r.metric_type == "absolute"]
    assert all(r.metric_value > 1000 for r in revenue)
    assert {r.reporting_currency for r in rows} == {"EUR"}


def test_operator_reference_needs_clarification(inputs, execute):
    result = run(
        question="Revenue for Coastline",
        entities=["Coastline Hospitality"],
        metrics=["revenue"],
        generate=_generate,
        repair=_repair,
        execute=execute,
        **inputs,
    )
    assert result.needs_clarification is True
    assert result.rows == []
    assert "Harbour View" in result.questions[0]
    assert "City Central" in result.questions[0]


def test_single_hotel_operator_resolves(inputs, execute):
    result = run(
        question="Revenue for Alpine",
        entities=["Alpine Ops"],
        metrics=["total revenue"],
        generate=_generate,
        repair=_repair,
        execute=execute,
        **inputs,
    )
    assert result.success is True
    assert result.attempts == []
    assert [r["entity_name"] for r in result.rows] == ["Mountain Lodge"]
    assert result.rows[0]["reporting_currency"] == "CHF"
