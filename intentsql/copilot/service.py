"""
Pipeline service -- orchestrates resolve -> generate -> validate/repair -> execute -> normalise.

SQL generation, repair and execution are injected collaborators; this module
owns only the ordering and the failure-handling discipline:

  - ambiguous / unknown references short-circuit into clarification
    questions before any SQL is generated
  - generated SQL always passes through the bounded repair loop
  - best-effort (still invalid) SQL is only executed when
    ``Settings.execute_invalid_sql`` is on
  - execution failures are logged and reported, not raised
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from intentsql.copilot.intent import ResolvedIntent, resolve_intent
from intentsql.core.config import get_settings
from intentsql.core.logging import get_logger
from intentsql.core.utils import shorten, timer
from intentsql.resolution.entity_dictionary import ReferenceEntity
from intentsql.resolution.metrics import MetricDefinition
from intentsql.results.normalizer import normalize_rows
from intentsql.validation.repair import RepairFn, ValidationAttempt, validate_and_repair
from intentsql.validation.semantic import TableShape

logger = get_logger(__name__)

GenerateFn = Callable[[ResolvedIntent, Sequence[TableShape]], str]
ExecuteFn = Callable[[str], list[dict[str, Any]]]


@dataclass
class PipelineResult:
    intent: ResolvedIntent
    sql: str = ""
    attempts: list[ValidationAttempt] = field(default_factory=list)
    valid: bool = False
    validation_error: str | None = None
    rows: list[dict[str, Any]] = field(default_factory=list)
    executed: bool = False
    execution_error: str | None = None
    latency_ms: int = 0

    @property
    def needs_clarification(self) -> bool:
        return self.intent.needs_clarification

    @property
    def questions(self) -> list[str]:
        return self.intent.questions

    @property
    def success(self) -> bool:
        return (
            not self.needs_clarification
            and self.valid
            and self.execution_error is None
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "needs_clarification": self.needs_clarification,
            "questions": self.questions,
            "intent": self.intent.model_dump(mode="json"),
            "sql": self.sql,
            "valid": self.valid,
            "validation_error": self.validation_error,
            "validation_attempts": [a.to_dict() for a in self.attempts],
            "rows": self.rows,
            "executed": self.executed,
            "execution_error": self.execution_error,
            "latency_ms": self.latency_ms,
        }


def run(
    question: str,
    entities: Iterable[str],
    metrics: Iterable[str],
    reference: Iterable[ReferenceEntity],
    catalog: Iterable[MetricDefinition],
    tables: Sequence[TableShape],
    generate: GenerateFn,
    repair: RepairFn,
    execute: ExecuteFn | None = None,
) -> PipelineResult:
    """End-to-end: raw mentions -> validated SQL -> canonical rows.

    Parameters
    ----------
    question : str
        Natural-language question (passed through to the collaborators).
    entities, metrics : iterable of str
        Raw mentions extracted from the question.
    reference, catalog
        Reference entities and metric catalog for this request.
    tables : sequence of TableShape
        Shapes of the tables the SQL may reference.
    generate : callable
        ``generate(intent, tables) -> sql``.
    repair : callable
        ``repair(sql, stage, error, context) -> sql``.
    execute : callable, optional
        ``execute(sql) -> rows``. If None the result is a dry-run.
    """
    settings = get_settings()
    logger.info("Pipeline.run | question=%s | execute=%s", shorten(question, 120), execute is not None)

    with timer() as t:
        intent = resolve_intent(entities, metrics, reference, catalog, question=question)
        result = PipelineResult(intent=intent)

        if not intent.needs_clarification:
            candidate = generate(intent, tables)
            logger.info("Generated SQL: %s", shorten(candidate, 400))

            outcome = validate_and_repair(candidate, tables, repair, intent=intent)
            result.sql = outcome.final_sql
            result.attempts = outcome.attempts
            result.valid = outcome.valid
            result.validation_error = outcome.final_error

            if execute is not None and (outcome.valid or settings.execute_invalid_sql):
                try:
                    result.rows = normalize_rows(execute(outcome.final_sql))
                    result.executed = True
                except Exception as exc:
                    logger.exception("SQL execution failed")
                    result.execution_error = f"Execution error: {exc}"
            elif execute is not None:
                logger.warning("Skipping execution of SQL that failed validation")

    result.latency_ms = t["elapsed_ms"]
    return result
