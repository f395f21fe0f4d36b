"""
Loads the metric catalog and reference entities that feed the resolvers.

The metric catalog lives in the ``#metrics`` section of the business-context
markdown document, one bullet per metric::

    #metrics
    - total_revenue: Total Revenue (absolute)
    - occupancy_pct: Occupancy (percentage)

Reference entities come from a YAML list of master-data rows with
``hotel_name`` (or ``primary_name``), ``operator`` and ``legal_entity`` keys.

Nothing here is cached: callers load per request and pass the results
explicitly into ``build_dictionary`` / ``build_alias_table``.
"""
from __future__ import annotations

import re
from pathlib import Path

import yaml

from intentsql.core.logging import get_logger
from intentsql.resolution.entity_dictionary import ReferenceEntity
from intentsql.resolution.metrics import MetricDefinition, VALUE_ABSOLUTE

logger = get_logger(__name__)

_METRICS_SECTION_RE = re.compile(r"#metrics(.*?)(?:#|$)", re.IGNORECASE | re.DOTALL)
_KIND_RE = re.compile(r"\((absolute|percentage)\)", re.IGNORECASE)


# ── Parsing ──────────────────────────────────────────────

def _parse_metric_line(line: str) -> MetricDefinition | None:
    body = line.lstrip("-").strip()
    name, sep, rest = body.partition(":")
    name = name.strip()
    if not sep or not name:
        return None

    kind_match = _KIND_RE.search(rest)
    kind = kind_match.group(1).lower() if kind_match else VALUE_ABSOLUTE
    label = _KIND_RE.sub("", rest).strip() or name
    return MetricDefinition(name=name, label=label, value_kind=kind)


def parse_metric_catalog(markdown: str) -> list[MetricDefinition]:
    """Extract metric definitions from the ``#metrics`` section of *markdown*.

    Lines that are not ``- name: Label`` bullets are ignored. When a name is
    repeated, the first definition wins.
    """
    section = _METRICS_SECTION_RE.search(markdown or "")
    if not section:
        return []

    metrics: dict[str, MetricDefinition] = {}
    for line in section.group(1).splitlines():
        line = line.strip()
        if not line.startswith("-"):
            continue
        definition = _parse_metric_line(line)
        if definition is None:
            logger.debug("Skipping malformed metric line: %r", line)
            continue
        metrics.setdefault(definition.name, definition)
    return list(metrics.values())


def parse_reference_entities(raw: list[dict] | None) -> list[ReferenceEntity]:
    """Convert master-data rows into ReferenceEntity objects.

    Rows without a primary name are skipped.
    """
    entities: list[ReferenceEntity] = []
    for row in raw or []:
        if not (row.get("primary_name") or row.get("hotel_name")):
            logger.debug("Skipping reference row without a name: %r", row)
            continue
        entities.append(ReferenceEntity.from_dict(row))
    return entities


# ── Public API ───────────────────────────────────────────

def load_metric_catalog(path: str | Path) -> list[MetricDefinition]:
    """Read the business-context document at *path*; missing file → empty catalog."""
    path = Path(path)
    if not path.exists():
        logger.warning("Business context document not found at %s -- empty catalog", path)
        return []
    return parse_metric_catalog(path.read_text(encoding="utf-8"))


def load_reference_entities(path: str | Path) -> list[ReferenceEntity]:
    """Read reference entity rows from a YAML list (or ``{entities: [...]}``)."""
    with open(path, encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if isinstance(raw, dict):
        raw = raw.get("entities")
    return parse_reference_entities(raw)
