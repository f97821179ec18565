"""
Namespace skip filter.
"""

import re
from typing import Optional, Pattern


def compile_skip_pattern(pattern: str) -> Optional[Pattern[str]]:
    """
    Compile a namespace skip pattern.

    Returns None for an empty pattern. Raises ValueError when the pattern is
    not a valid regular expression.
    """
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ValueError(f"Invalid skip namespace regex '{pattern}': {e}") from e


def should_skip(namespace: str, pattern: str) -> bool:
    """Return True if ``pattern`` matches anywhere in ``namespace``."""
    compiled = compile_skip_pattern(pattern)
    return compiled is not None and compiled.search(namespace) is not None


class NamespaceFilter:
    """Skip decision with the pattern compiled once at startup."""

    def __init__(self, pattern: str = ""):
        self.pattern = pattern
        self._compiled = compile_skip_pattern(pattern)

    def should_skip(self, namespace: str) -> bool:
        return self._compiled is not None and self._compiled.search(namespace) is not None
