"""
Entity resolver -- maps raw entity mentions onto canonical primary names.

Resolution order for each raw string:
  1. Exact primary-name match
  2. Exact operator / legal-entity match (one hotel → resolved,
     several → disambiguation prompt, never a guess)
  3. Fuzzy match against the sorted primary-name list
  4. Optionally, fuzzy match against operator / legal-entity groups
  5. Otherwise unknown

Ambiguity and unknown terms are returned as data; nothing is raised, so a
single unresolved mention never blocks the others.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from intentsql.core.config import get_settings
from intentsql.core.logging import get_logger
from intentsql.resolution.entity_dictionary import (
    EntityDictionary,
    KIND_LEGAL,
    KIND_OPERATOR,
    KIND_PRIMARY,
)
from intentsql.resolution.text import normalize, similarity

logger = get_logger(__name__)

STATUS_RESOLVED = "resolved"
STATUS_AMBIGUOUS = "ambiguous"
STATUS_UNKNOWN = "unknown"

_SAMPLE_SIZE = 8


@dataclass(frozen=True)
class Decision:
    """How one raw input was accounted for."""
    raw: str
    status: str
    names: tuple[Any, ...] = ()
    prompt: str | None = None


@dataclass
class ResolutionOutcome:
    resolved: list[Any] = field(default_factory=list)
    ambiguous: list[str] = field(default_factory=list)
    unknown: list[str] = field(default_factory=list)
    decisions: list[Decision] = field(default_factory=list)

    def add_resolved(self, raw: str, *items: Any, key=lambda item: item) -> None:
        seen = {key(r) for r in self.resolved}
        for item in items:
            if key(item) not in seen:
                self.resolved.append(item)
                seen.add(key(item))
        self.decisions.append(Decision(raw=raw, status=STATUS_RESOLVED, names=items))

    def add_ambiguous(self, raw: str, prompt: str, candidates: Iterable[Any] = ()) -> None:
        self.ambiguous.append(prompt)
        self.decisions.append(
            Decision(raw=raw, status=STATUS_AMBIGUOUS, names=tuple(candidates), prompt=prompt)
        )

    def add_unknown(self, raw: str) -> None:
        self.unknown.append(raw)
        self.decisions.append(Decision(raw=raw, status=STATUS_UNKNOWN))

    @property
    def is_clean(self) -> bool:
        return not self.ambiguous and not self.unknown


# ── Prompt templates ─────────────────────────────────────

def _sample(matches: Iterable[str]) -> str:
    return "\n".join(f"- {m}" for m in list(matches)[:_SAMPLE_SIZE])


def _exact_group_prompt(kind: str, raw: str, matches: tuple[str, ...]) -> str:
    if kind == KIND_OPERATOR:
        return (
            f'You mentioned the operator "{raw}". That operator includes multiple hotels. '
            f"Which of these did you mean, or did you mean ALL of them?\n{_sample(matches)}"
        )
    return (
        f'You mentioned the legal entity "{raw}". That legal entity owns multiple hotels. '
        f"Which one(s) did you mean?\n{_sample(matches)}"
    )


def _fuzzy_group_prompt(kind: str, raw: str, interpreted: str, matches: tuple[str, ...]) -> str:
    label = "operator" if kind == KIND_OPERATOR else "legal entity"
    return (
        f'Your query referenced {label} "{raw}" (interpreted as "{interpreted}"), '
        f"which maps to multiple hotels. Which did you mean?\n{_sample(matches)}"
    )


# ── Matching helpers ─────────────────────────────────────

def _best_match(key: str, candidates: Iterable[str]) -> tuple[str | None, float]:
    """Highest-similarity candidate; ties keep the earliest candidate."""
    best_name: str | None = None
    best_score = -1.0
    for cand in candidates:
        score = similarity(key, normalize(cand))
        if score > best_score:
            best_name, best_score = cand, score
    return best_name, best_score


def _resolve_group(
    outcome: ResolutionOutcome,
    raw: str,
    matches: tuple[str, ...],
    prompt: str,
) -> None:
    if len(matches) == 1:
        outcome.add_resolved(raw, matches[0])
    elif matches:
        outcome.add_ambiguous(raw, prompt, matches)
    else:
        outcome.add_unknown(raw)


# ── Public API ───────────────────────────────────────────

def resolve_entities(
    raw_entities: Iterable[str],
    dictionary: EntityDictionary,
    fuzzy_threshold: float | None = None,
    fuzzy_groups: bool = False,
) -> ResolutionOutcome:
    """Resolve *raw_entities* against *dictionary*.

    Parameters
    ----------
    raw_entities : iterable of str
        Entity mentions as extracted from the question.
    dictionary : EntityDictionary
        Output of ``build_dictionary``.
    fuzzy_threshold : float, optional
        Minimum similarity for a fuzzy match. Defaults to settings (0.78).
    fuzzy_groups : bool
        Also fuzzy-match operator and legal-entity groups before giving up.
    """
    if fuzzy_threshold is None:
        fuzzy_threshold = get_settings().fuzzy_threshold

    outcome = ResolutionOutcome()

    for raw in raw_entities:
        key = normalize(raw)
        entry = dictionary.lookup(key) if key else None

        if entry is not None and entry.kind == KIND_PRIMARY:
            outcome.add_resolved(raw, entry.matches[0])
            continue

        if entry is not None:
            _resolve_group(outcome, raw, entry.matches, _exact_group_prompt(entry.kind, raw, entry.matches))
            continue

        if not key:
            outcome.add_unknown(raw)
            continue

        name, score = _best_match(key, dictionary.sorted_primary_names)
        if name is not None and score >= fuzzy_threshold:
            logger.debug("Fuzzy entity match %r -> %r (score=%.3f)", raw, name, score)
            outcome.add_resolved(raw, name)
            continue

        if fuzzy_groups and _resolve_fuzzy_group(outcome, raw, key, dictionary, fuzzy_threshold):
            continue

        logger.debug("Unresolved entity %r (best=%r score=%.3f)", raw, name, score)
        outcome.add_unknown(raw)

    if not outcome.is_clean:
        logger.info(
            "Entity resolution: %d resolved, %d ambiguous, %d unknown",
            len(outcome.resolved), len(outcome.ambiguous), len(outcome.unknown),
        )
    return outcome


def _resolve_fuzzy_group(
    outcome: ResolutionOutcome,
    raw: str,
    key: str,
    dictionary: EntityDictionary,
    fuzzy_threshold: float,
) -> bool:
    for kind in (KIND_OPERATOR, KIND_LEGAL):
        group, score = _best_match(key, dictionary.groups(kind))
        if group is None or score < fuzzy_threshold:
            continue
        entry = dictionary.lookup(normalize(group))
        matches = entry.matches if entry else ()
        _resolve_group(outcome, raw, matches, _fuzzy_group_prompt(kind, raw, group, matches))
        return True
    return False
