"""
Unit tests -- syntax validator (Postgres parser, sqlglot for other dialects).
"""
import pytest
from intentsql.validation.syntax import ValidationResult, validate_syntax


def test_select_one_ok():
    assert validate_syntax("SELECT 1") == ValidationResult(ok=True)


def test_garbage_rejected():
    result = validate_syntax("SELEC * FORM t")
    assert result.ok is False
    assert result.error


@pytest.mark.parametrize("sql", [
    "SELECT x FROM t WHERE",
    "SELECT (1",
    "SELECT x FROM t WHERE a IN (1, 2",
])
def test_incomplete_statements_rejected(sql):
    result = validate_syntax(sql)
    assert result.ok is False
    assert result.error


@pytest.mark.parametrize("sql", [
    "SELECT 1;",
    "SELECT a, b FROM t WHERE a > 1 ORDER BY b DESC LIMIT 10",
    "SELECT x::numeric AS v FROM t",
    "SELECT a FROM t UNION ALL SELECT a FROM u",
    "SELECT a FROM (SELECT a FROM t) AS sub",
    """\
WITH monthly AS (
  SELECT entity_name, period, SUM(metric_value) AS v
  FROM facts
  GROUP BY entity_name, period
)
SELECT m.entity_name,
       m.period,
       SUM(m.v) OVER (PARTITION BY m.entity_name ORDER BY m.period) AS running
FROM monthly AS m
JOIN hotels AS h ON h.hotel_name = m.entity_name""",
])
def test_valid_queries_accepted(sql):
    result = validate_syntax(sql)
    assert result.ok is True, result.error


def test_empty_rejected():
    assert validate_syntax("   ").error == "Empty SQL statement."


def test_multiple_statements_rejected():
    result = validate_syntax("SELECT 1; SELECT 2")
    assert result.ok is False
    assert "single statement" in result.error


def test_non_query_rejected():
    result = validate_syntax("DROP TABLE t")
    assert result.ok is False
    assert "SELECT" in result.error


def test_dialect_override():
    assert validate_syntax("SELECT `a` FROM `t`", dialect="mysql").ok is True


# ── Postgres parser strictness ───────────────────────────

@pytest.mark.parametrize("sql", [
    "SELECT a,, b FROM t",
    "SELECT a, b, FROM t",
    "SELECT a FROM t t2 t3",
])
def test_statements_postgres_rejects(sql):
    result = validate_syntax(sql, dialect="postgres")
    assert result.ok is False
    assert "syntax error" in result.error


def test_misspelt_keyword_reports_parser_message():
    result = validate_syntax("SELEC * FORM t", dialect="postgres")
    assert result.ok is False
    assert "syntax error" in result.error
    assert "SELEC" in result.error


def test_non_query_names_statement_kind():
    result = validate_syntax("DELETE FROM t", dialect="postgres")
    assert result.ok is False
    assert "DeleteStmt" in result.error


def test_values_and_intersect_are_queries():
    assert validate_syntax("VALUES (1), (2)", dialect="postgres").ok is True
    assert validate_syntax("SELECT a FROM t INTERSECT SELECT a FROM u", dialect="postgres").ok is True


def test_sqlglot_dialect_rejects_non_query():
    result = validate_syntax("DROP TABLE t", dialect="sqlite")
    assert result.ok is False
    assert "got DROP" in result.error
