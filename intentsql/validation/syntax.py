"""
Stage 1 validation: does the candidate SQL parse?

Postgres SQL goes through pglast, the bindings to the server's own parser, so
anything accepted here is accepted by Postgres. Other dialects fall back to
sqlglot, which is more lenient: it repairs stray commas silently and may read
a misspelt keyword as an alias (``SELEC * FORM t`` parses as an aliased
expression and is then rejected by the statement-type check, not by the
parser). Parser messages are surfaced verbatim. Beyond a clean parse the
statement must be a single query, since every consumer of this pipeline
expects rows back.
"""
from __future__ import annotations

from dataclasses import dataclass

import sqlglot
from pglast import ast as pg_ast
from pglast import parse_sql
from pglast.parser import ParseError
from sqlglot import exp
from sqlglot.errors import ErrorLevel, SqlglotError

from intentsql.core.config import get_settings

STAGE_SYNTAX = "syntax"
STAGE_SEMANTIC = "semantic"

POSTGRES = "postgres"


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    error: str | None = None

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str) -> "ValidationResult":
        return cls(ok=False, error=error)


def _single_statement(statements: list) -> ValidationResult | None:
    if not statements:
        return ValidationResult.failure("Empty SQL statement.")
    if len(statements) > 1:
        return ValidationResult.failure(
            f"Expected a single statement, found {len(statements)}."
        )
    return None


# ── Postgres (server parser) ─────────────────────────────

def _validate_postgres(sql: str) -> ValidationResult:
    try:
        statements = [raw.stmt for raw in parse_sql(sql)]
    except ParseError as exc:
        return ValidationResult.failure(str(exc))

    failed = _single_statement(statements)
    if failed is not None:
        return failed

    # UNION / INTERSECT / EXCEPT, VALUES and WITH queries are all SelectStmt
    statement = statements[0]
    if not isinstance(statement, pg_ast.SelectStmt):
        return ValidationResult.failure(
            f"Expected a SELECT query, got {type(statement).__name__}."
        )
    return ValidationResult.success()


# ── Other dialects (sqlglot) ─────────────────────────────

def _validate_sqlglot(sql: str, dialect: str) -> ValidationResult:
    try:
        statements = [
            s for s in sqlglot.parse(sql, read=dialect, error_level=ErrorLevel.RAISE)
            if s is not None
        ]
    except SqlglotError as exc:
        return ValidationResult.failure(str(exc))

    failed = _single_statement(statements)
    if failed is not None:
        return failed

    statement = statements[0]
    if not isinstance(statement, exp.Query):
        return ValidationResult.failure(
            f"Expected a SELECT query, got {statement.key.upper()}: "
            f"{statement.sql(dialect=dialect)[:120]}"
        )
    return ValidationResult.success()


def validate_syntax(sql: str, dialect: str | None = None) -> ValidationResult:
    """Parse *sql*; never raises.

    Parameters
    ----------
    sql : str
        Candidate statement (a trailing semicolon is tolerated).
    dialect : str, optional
        sqlglot dialect name. Defaults to ``Settings.sql_dialect``.
        ``postgres`` is checked with the Postgres parser itself.
    """
    if dialect is None:
        dialect = get_settings().sql_dialect

    if not sql or not sql.strip():
        return ValidationResult.failure("Empty SQL statement.")

    try:
        if dialect == POSTGRES:
            return _validate_postgres(sql)
        return _validate_sqlglot(sql, dialect)
    except Exception as exc:  # never raise past the validator
        return ValidationResult.failure(f"{type(exc).__name__}: {exc}")
