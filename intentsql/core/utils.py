"""
Small shared utilities.
"""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Generator


@contextmanager
def timer() -> Generator[dict, None, None]:
    """Context manager that records elapsed wall-clock milliseconds."""
    result: dict = {}
    start = time.perf_counter()
    try:
        yield result
    finally:
        result["elapsed_ms"] = int((time.perf_counter() - start) * 1000)


def shorten(text: str, limit: int = 200) -> str:
    """Clip *text* to *limit* characters for log lines."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
