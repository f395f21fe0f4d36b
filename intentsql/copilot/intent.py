"""
ResolvedIntent -- the structured hand-off between resolution and SQL generation.

``resolve_intent`` rebuilds the entity dictionary and alias table from the
reference data passed in, resolves the raw mentions, and turns ambiguity and
unknown terms into user-facing clarification questions.
"""
from __future__ import annotations

from typing import Iterable, Literal

from pydantic import BaseModel, Field

from intentsql.core.logging import get_logger
from intentsql.resolution.entity_dictionary import ReferenceEntity, build_dictionary
from intentsql.resolution.entity_resolver import resolve_entities
from intentsql.resolution.metrics import MetricDefinition, build_alias_table, resolve_metrics

logger = get_logger(__name__)


class IntentMetric(BaseModel):
    name: str
    label: str
    value_kind: Literal["absolute", "percentage"] = "absolute"


class ResolvedIntent(BaseModel):
    """Canonical entities and metrics for one question."""

    question: str = Field("", description="The user's question, passed through to generation")
    entities: list[str] = Field(default_factory=list, description="Canonical primary entity names")
    metrics: list[IntentMetric] = Field(default_factory=list, description="Resolved catalog metrics")
    questions: list[str] = Field(default_factory=list, description="Clarification questions for the user")
    unknown_entities: list[str] = Field(default_factory=list)
    unknown_metrics: list[str] = Field(default_factory=list)

    @property
    def needs_clarification(self) -> bool:
        return bool(self.questions)


def _unknown_entities_question(unknown: list[str]) -> str:
    return (
        "I couldn't map these references to known hotels/operators/legal-entities: "
        f"{', '.join(unknown)}. Could you clarify?"
    )


def _unknown_metrics_question(unknown: list[str]) -> str:
    return (
        f"I couldn't map these metrics to known metrics: {', '.join(unknown)}. "
        "Please clarify which metrics you meant."
    )


def resolve_intent(
    entities: Iterable[str],
    metrics: Iterable[str],
    reference: Iterable[ReferenceEntity],
    catalog: Iterable[MetricDefinition],
    question: str = "",
    fuzzy_threshold: float | None = None,
    fuzzy_groups: bool = False,
) -> ResolvedIntent:
    """Resolve raw entity and metric mentions into a ResolvedIntent."""
    catalog = list(catalog)

    dictionary = build_dictionary(reference)
    entity_outcome = resolve_entities(
        entities, dictionary, fuzzy_threshold=fuzzy_threshold, fuzzy_groups=fuzzy_groups,
    )

    aliases = build_alias_table(catalog)
    metric_outcome = resolve_metrics(metrics, aliases, catalog)

    questions = list(entity_outcome.ambiguous)
    if entity_outcome.unknown:
        questions.append(_unknown_entities_question(entity_outcome.unknown))
    if metric_outcome.unknown:
        questions.append(_unknown_metrics_question(metric_outcome.unknown))

    intent = ResolvedIntent(
        question=question,
        entities=list(entity_outcome.resolved),
        metrics=[IntentMetric(**m.to_dict()) for m in metric_outcome.resolved],
        questions=questions,
        unknown_entities=list(entity_outcome.unknown),
        unknown_metrics=list(metric_outcome.unknown),
    )
    logger.info("Resolved intent | entities=%s | metrics=%s | clarification=%s",
                intent.entities, [m.name for m in intent.metrics], intent.needs_clarification)
    return intent
