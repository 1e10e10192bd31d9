"""
Pipeline Errors
===============
Every error raised by the pipeline is fatal: the computation is deterministic,
so a rerun on the same input fails the same way.
"""

from typing import Iterable, Optional


class TemporalPatternsError(Exception):
    """Base class for all pipeline errors."""


class SchemaMismatchError(TemporalPatternsError):
    """Input relation is missing a required column or has a mistyped one."""

    def __init__(self, relation: str, message: str, columns: Optional[Iterable[str]] = None):
        self.relation = relation
        self.columns = list(columns) if columns is not None else []
        super().__init__(f"{relation}: {message}")


class InvalidDomainError(TemporalPatternsError, ValueError):
    """A value lies outside its defined domain (e.g. day-of-week outside 0-6)."""


class DomainError(TemporalPatternsError, ValueError):
    """An internally impossible condition, e.g. a non-positive item volume fed to ln()."""
