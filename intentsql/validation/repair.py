"""
Validate-and-repair loop: syntax -> semantic -> repair -> repeat.

The loop is bounded (``Settings.max_repair_attempts``, default 2). Each
failed stage is recorded as a ValidationAttempt and handed to the injected
repair collaborator together with the diagnostic context. After a repair the
candidate always goes back through the syntax stage.

On exhaustion the last candidate is returned as a best-effort result with the
full attempt log; the caller decides whether to execute it. A still-failing
statement is never dropped, and the loop never retries unboundedly.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from intentsql.core.config import get_settings
from intentsql.core.logging import get_logger
from intentsql.core.utils import shorten
from intentsql.validation.semantic import TableShape, validate_semantics
from intentsql.validation.syntax import (
    STAGE_SEMANTIC,
    STAGE_SYNTAX,
    ValidationResult,
    validate_syntax,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class ValidationAttempt:
    stage: str  # syntax | semantic
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"stage": self.stage, "error": self.error}


@dataclass(frozen=True)
class RepairContext:
    """Diagnostic context handed to the repair collaborator."""
    tables: tuple[TableShape, ...]
    attempts: tuple[ValidationAttempt, ...]
    intent: Any = None


class RepairFn(Protocol):
    def __call__(self, sql: str, stage: str, error: str, context: RepairContext) -> str: ...


@dataclass
class RepairOutcome:
    final_sql: str
    attempts: list[ValidationAttempt] = field(default_factory=list)
    valid: bool = False
    final_error: str | None = None


def check_sql(sql: str, tables: Sequence[TableShape], dialect: str | None = None) -> tuple[str, ValidationResult]:
    """Run both stages in order; returns the failing stage (or semantic) and its result."""
    syntax = validate_syntax(sql, dialect=dialect)
    if not syntax.ok:
        return STAGE_SYNTAX, syntax
    return STAGE_SEMANTIC, validate_semantics(sql, tables, dialect=dialect)


def validate_and_repair(
    sql: str,
    tables: Sequence[TableShape],
    repair: RepairFn,
    max_attempts: int | None = None,
    intent: Any = None,
    dialect: str | None = None,
) -> RepairOutcome:
    """Validate *sql*, asking *repair* to fix failures up to *max_attempts* times.

    Parameters
    ----------
    sql : str
        Candidate statement from the generation collaborator.
    tables : sequence of TableShape
        Shapes of the currently known tables.
    repair : callable
        ``repair(sql, stage, error, context) -> new_sql``. Exceptions it
        raises propagate and abort the loop.
    max_attempts : int, optional
        Repair round-trip bound. Defaults to settings (2).
    intent : any, optional
        Passed through to the collaborator in the context.
    """
    if max_attempts is None:
        max_attempts = get_settings().max_repair_attempts

    tables = tuple(tables)
    attempts: list[ValidationAttempt] = []

    for _ in range(max_attempts):
        stage, result = check_sql(sql, tables, dialect=dialect)
        if result.ok:
            logger.info("SQL validated after %d repair(s)", len(attempts))
            return RepairOutcome(final_sql=sql, attempts=attempts, valid=True)

        attempt = ValidationAttempt(stage=stage, error=result.error or "")
        attempts.append(attempt)
        logger.warning("SQL %s validation failed (attempt %d/%d): %s",
                       stage, len(attempts), max_attempts, shorten(attempt.error))

        context = RepairContext(tables=tables, attempts=tuple(attempts), intent=intent)
        sql = repair(sql, stage, attempt.error, context)
        logger.debug("Repaired SQL candidate: %s", shorten(sql))

    # Bound reached: report on the last candidate without another repair.
    stage, result = check_sql(sql, tables, dialect=dialect)
    if result.ok:
        logger.info("SQL validated after %d repair(s)", len(attempts))
        return RepairOutcome(final_sql=sql, attempts=attempts, valid=True)

    logger.warning("SQL still failing %s validation after %d repair(s) -- returning best effort",
                   stage, len(attempts))
    return RepairOutcome(final_sql=sql, attempts=attempts, valid=False, final_error=result.error)
