"""
Builds the canonical entity dictionary from reference data.

The dictionary is the single source of truth for:
  - valid primary entity names (e.g. hotel names)
  - operator groupings   (one operator → many hotels)
  - legal-entity groupings (one owner → many hotels)
  - a reverse index from any normalised key to the primary names it covers

Built fresh for every resolution request; never cached at module level.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from intentsql.resolution.text import normalize

KIND_PRIMARY = "primary"
KIND_OPERATOR = "operator"
KIND_LEGAL = "legal"


# ── Typed domain objects ─────────────────────────────────

@dataclass(frozen=True)
class ReferenceEntity:
    primary_name: str
    operator_group: str | None = None
    legal_entity_group: str | None = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ReferenceEntity":
        """Accept both the generic keys and the hotel master-data column names."""
        return cls(
            primary_name=raw.get("primary_name") or raw["hotel_name"],
            operator_group=raw.get("operator_group", raw.get("operator")),
            legal_entity_group=raw.get("legal_entity_group", raw.get("legal_entity")),
        )


@dataclass(frozen=True)
class IndexEntry:
    kind: str  # primary | operator | legal
    matches: tuple[str, ...]


@dataclass(frozen=True)
class EntityDictionary:
    """Immutable per-request view over the reference entities."""

    primary_names: frozenset[str] = frozenset()
    operator_groups: frozenset[str] = frozenset()
    legal_entity_groups: frozenset[str] = frozenset()
    reverse_index: Mapping[str, IndexEntry] = field(default_factory=lambda: MappingProxyType({}))
    sorted_primary_names: tuple[str, ...] = ()

    def lookup(self, key: str) -> IndexEntry | None:
        """Return the reverse-index entry for an already-normalised *key*."""
        return self.reverse_index.get(key)

    def groups(self, kind: str) -> list[str]:
        """Grouping values of *kind* in a stable (sorted) order."""
        source = self.operator_groups if kind == KIND_OPERATOR else self.legal_entity_groups
        return sorted(source)

    def __len__(self) -> int:
        return len(self.primary_names)


# ── Builder ──────────────────────────────────────────────

def build_dictionary(entities: Iterable[ReferenceEntity]) -> EntityDictionary:
    """Build the forward sets and the reverse index from *entities*.

    Primary entries are written first so that a grouping value which
    normalises to the same key as a primary name never displaces the
    primary entry (each primary key maps to exactly itself).
    """
    rows = [e for e in entities if e.primary_name]

    primary_keys: dict[str, list[str]] = {}
    group_keys: dict[str, tuple[str, list[str]]] = {}

    for row in rows:
        key = normalize(row.primary_name)
        if key and key not in primary_keys:
            primary_keys[key] = [row.primary_name]

    for row in rows:
        for kind, value in ((KIND_OPERATOR, row.operator_group), (KIND_LEGAL, row.legal_entity_group)):
            key = normalize(value)
            if not key or key in primary_keys:
                continue
            if key not in group_keys:
                group_keys[key] = (kind, [])
            matches = group_keys[key][1]
            if row.primary_name not in matches:
                matches.append(row.primary_name)

    index: dict[str, IndexEntry] = {
        key: IndexEntry(kind=KIND_PRIMARY, matches=tuple(names))
        for key, names in primary_keys.items()
    }
    for key, (kind, names) in group_keys.items():
        index[key] = IndexEntry(kind=kind, matches=tuple(names))

    primary_names = frozenset(r.primary_name for r in rows)
    return EntityDictionary(
        primary_names=primary_names,
        operator_groups=frozenset(r.operator_group for r in rows if normalize(r.operator_group)),
        legal_entity_groups=frozenset(r.legal_entity_group for r in rows if normalize(r.legal_entity_group)),
        reverse_index=MappingProxyType(index),
        sorted_primary_names=tuple(sorted(primary_names)),
    )
