"""
LLM-backed repair collaborator for the validate-and-repair loop.

Given a failing statement and the validator's message, asks the configured
LLM to correct only the invalid part and returns the raw SQL it produced.
The repair loop treats whatever comes back as just another candidate.
"""
from __future__ import annotations

import json
import re

from intentsql.copilot.llm_client import call_llm
from intentsql.core.logging import get_logger
from intentsql.validation.repair import RepairContext

logger = get_logger(__name__)

_SYSTEM = "You output fixed SQL only."

_FENCE_RE = re.compile(r"```(?:sql)?", re.IGNORECASE)

_PROMPT_TEMPLATE = """\
You are an expert SQL repair system.

Fix the SQL below. Keep structure intact. Only correct the error.
Return SQL ONLY.

Failing SQL:
{sql}

Validator Error ({stage}):
{error}

Table Schemas:
{tables}

Intent:
{intent}

REQUIREMENTS:
- Do NOT rewrite everything.
- Fix ONLY the invalid part.
- Output raw SQL string (no code fences, no JSON).
"""


def _intent_json(intent) -> str:
    if intent is None:
        return "{}"
    if hasattr(intent, "model_dump"):
        intent = intent.model_dump(mode="json")
    return json.dumps(intent, indent=2, default=str)


def build_repair_prompt(sql: str, stage: str, error: str, context: RepairContext) -> str:
    return _PROMPT_TEMPLATE.format(
        sql=sql,
        stage=stage,
        error=error,
        tables=json.dumps([t.to_dict() for t in context.tables], indent=2),
        intent=_intent_json(context.intent),
    )


def clean_sql_output(text: str) -> str:
    """Strip code fences, whitespace and a trailing semicolon from LLM output."""
    return _FENCE_RE.sub("", text or "").strip().rstrip(";").strip()


class LLMRepairer:
    """Callable repair collaborator: ``repairer(sql, stage, error, context)``."""

    def __init__(self, provider: str | None = None):
        self.provider = provider
        self.calls = 0

    def __call__(self, sql: str, stage: str, error: str, context: RepairContext) -> str:
        self.calls += 1
        prompt = build_repair_prompt(sql, stage, error, context)
        logger.info("Requesting SQL repair (stage=%s, call=%d)", stage, self.calls)
        return clean_sql_output(call_llm(prompt, provider=self.provider, system=_SYSTEM))
