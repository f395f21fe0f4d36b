"""
Stage 2 validation: does the candidate SQL plan against the known tables?

Every call builds a private, empty in-memory SQLite database whose tables
mirror the shapes of the real schema, then asks SQLite to ``EXPLAIN`` the
statement. That catches undefined tables/columns, wrong join keys and arity
errors without touching real data or the network.

Engine lifecycle:
  - one engine per call (never shared between concurrent validations)
  - disposed on every exit path, including failures
  - failure to create the engine itself raises ``SemanticStoreError``
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generator, Iterable, Mapping

import sqlglot
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlglot import exp
from sqlglot.errors import SqlglotError

from intentsql.core.config import get_settings
from intentsql.core.logging import get_logger
from intentsql.validation.syntax import ValidationResult

logger = get_logger(__name__)

_STORE_URL = "sqlite://"


class SemanticStoreError(RuntimeError):
    """The ephemeral validation store could not be created."""


# ── Table shapes ─────────────────────────────────────────

@dataclass(frozen=True)
class ColumnShape:
    name: str
    type: str = "text"


@dataclass(frozen=True)
class TableShape:
    table_name: str
    columns: tuple[ColumnShape, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "TableShape":
        """Accept ``tableName``/``table_name`` and column dicts or bare names."""
        columns = []
        for col in raw.get("columns") or []:
            if isinstance(col, str):
                columns.append(ColumnShape(name=col))
            else:
                columns.append(ColumnShape(name=col["name"], type=col.get("type") or "text"))
        return cls(
            table_name=raw.get("table_name") or raw["tableName"],
            columns=tuple(columns),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "table_name": self.table_name,
            "columns": [{"name": c.name, "type": c.type} for c in self.columns],
        }


def map_column_type(source_type: str | None) -> str:
    """Reduce a source column type to INTEGER, REAL or TEXT by substring."""
    lowered = (source_type or "").lower()
    if "int" in lowered:
        return "INTEGER"
    if "numeric" in lowered or "decimal" in lowered or "float" in lowered:
        return "REAL"
    if "date" in lowered:
        return "TEXT"
    return "TEXT"


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def create_table_ddl(table: TableShape) -> str:
    cols = ", ".join(f"{_quote(c.name)} {map_column_type(c.type)}" for c in table.columns)
    return f"CREATE TABLE {_quote(table.table_name)} ({cols})"


# ── Ephemeral store ──────────────────────────────────────

@contextmanager
def ephemeral_store() -> Generator[Connection, None, None]:
    """Yield a connection to a fresh in-memory database; always released."""
    try:
        engine = create_engine(_STORE_URL)
    except SQLAlchemyError as exc:
        raise SemanticStoreError(f"Could not open validation store: {exc}") from exc

    try:
        conn = engine.connect()
    except SQLAlchemyError as exc:
        engine.dispose()
        raise SemanticStoreError(f"Could not open validation store: {exc}") from exc

    try:
        _register_placeholders(conn)
        yield conn
    finally:
        conn.close()
        engine.dispose()


def _driver_message(exc: Exception) -> str:
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    return str(exc)


# ── Dialect conversion ───────────────────────────────────

# Postgres functions SQLite lacks, by arity. They keep their name through
# conversion and exist in the store as no-op functions, so EXPLAIN plans them.
PLACEHOLDER_FUNCTIONS = {"date_trunc": 2}

_TRUNC_NODES = (exp.DateTrunc, exp.TimestampTrunc, exp.TimeTrunc)


def _placeholder(*args: Any) -> None:
    return None


def _register_placeholders(conn: Connection) -> None:
    raw = conn.connection.driver_connection
    for name, arity in PLACEHOLDER_FUNCTIONS.items():
        raw.create_function(name, arity, _placeholder, deterministic=True)


def _keep_date_trunc(node: exp.Expression) -> exp.Expression:
    if isinstance(node, _TRUNC_NODES):
        unit = exp.Literal.string(node.text("unit").lower())
        return exp.Anonymous(this="date_trunc", expressions=[unit, node.this])
    return node


def _to_sqlite(sql: str, dialect: str) -> str:
    """Transpile *sql* from the source dialect so SQLite can plan it."""
    sql = sql.strip().rstrip(";")
    if dialect == "sqlite":
        return sql
    tree = sqlglot.parse_one(sql, read=dialect)
    return tree.transform(_keep_date_trunc).sql(dialect="sqlite")


# ── Public API ───────────────────────────────────────────

def validate_semantics(
    sql: str,
    tables: Iterable[TableShape],
    dialect: str | None = None,
) -> ValidationResult:
    """Plan *sql* against empty copies of *tables*.

    Returns a failed result for table-creation or planning errors. Raises
    ``SemanticStoreError`` only when the store itself cannot be created.
    """
    if dialect is None:
        dialect = get_settings().sql_dialect

    if not sql or not sql.strip():
        return ValidationResult.failure("Empty SQL statement.")

    try:
        sqlite_sql = _to_sqlite(sql, dialect)
    except SqlglotError as exc:
        return ValidationResult.failure(str(exc))

    with ephemeral_store() as conn:
        for table in tables:
            try:
                conn.exec_driver_sql(create_table_ddl(table))
            except SQLAlchemyError as exc:
                message = f"Failed to create virtual table: {table.table_name}: {_driver_message(exc)}"
                logger.warning(message)
                return ValidationResult.failure(message)

        try:
            conn.exec_driver_sql(f"EXPLAIN {sqlite_sql}")
        except SQLAlchemyError as exc:
            return ValidationResult.failure(_driver_message(exc))

    return ValidationResult.success()
