"""
Metric alias table and resolver.

The alias table maps normalised phrases to canonical metric names. It is
rebuilt for every request from the current catalog plus the fixed synonym
list in ``metric_synonyms.yml``. Matching is exact-alias only: an unknown
metric phrase is a cataloguing gap, not a typo to be corrected.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

from intentsql.core.logging import get_logger
from intentsql.resolution.entity_resolver import ResolutionOutcome
from intentsql.resolution.text import normalize

logger = get_logger(__name__)

_SYNONYMS_PATH = Path(__file__).resolve().parent / "metric_synonyms.yml"

VALUE_ABSOLUTE = "absolute"
VALUE_PERCENTAGE = "percentage"
VALUE_KINDS = (VALUE_ABSOLUTE, VALUE_PERCENTAGE)

AliasTable = dict[str, str]


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    label: str
    value_kind: str = VALUE_ABSOLUTE

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "MetricDefinition":
        kind = str(raw.get("value_kind") or raw.get("type") or VALUE_ABSOLUTE).lower()
        return cls(
            name=raw["name"],
            label=raw.get("label") or raw["name"],
            value_kind=kind if kind in VALUE_KINDS else VALUE_ABSOLUTE,
        )

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "label": self.label, "value_kind": self.value_kind}


# ── Synonyms ─────────────────────────────────────────────

@lru_cache
def load_synonyms() -> dict[str, str]:
    """Load and cache the fixed synonym list (normalised phrase → metric)."""
    with open(_SYNONYMS_PATH) as f:
        raw = yaml.safe_load(f) or {}
    return {normalize(str(k)): str(v) for k, v in (raw.get("synonyms") or {}).items()}


# ── Alias table ──────────────────────────────────────────

def build_alias_table(
    metrics: Iterable[MetricDefinition],
    synonyms: Mapping[str, str] | None = None,
) -> AliasTable:
    """Map normalised name/label of every metric, then the synonyms, to names.

    Catalog names and labels win over a synonym that normalises to the
    same phrase.
    """
    if synonyms is None:
        synonyms = load_synonyms()

    aliases: AliasTable = {}
    for m in metrics:
        for phrase in (m.name, m.label):
            key = normalize(phrase)
            if key:
                aliases[key] = m.name

    for phrase, canonical in synonyms.items():
        key = normalize(phrase)
        if key:
            aliases.setdefault(key, canonical)
    return aliases


# ── Resolver ─────────────────────────────────────────────

def resolve_metrics(
    raw_metrics: Iterable[str],
    aliases: Mapping[str, str],
    metrics: Iterable[MetricDefinition],
) -> ResolutionOutcome:
    """Resolve metric phrases to catalog definitions.

    A synonym that points at a metric missing from *metrics* resolves to a
    synthesised absolute definition named after the canonical key.
    """
    catalog = {m.name: m for m in metrics}
    outcome = ResolutionOutcome()

    for raw in raw_metrics:
        canonical = aliases.get(normalize(raw))
        if canonical is None:
            outcome.add_unknown(raw)
            continue

        definition = catalog.get(canonical)
        if definition is None:
            logger.info("Metric alias %r points at %r which is not in the catalog -- "
                        "using absolute fallback", raw, canonical)
            definition = MetricDefinition(name=canonical, label=canonical, value_kind=VALUE_ABSOLUTE)

        outcome.add_resolved(raw, definition, key=lambda m: m.name)

    return outcome
