"""
Error taxonomy for cohort analytics.

ValidationError is raised at the boundary, before any computation runs.
DataError describes a single record that breaks an invariant; aggregate
functions never raise it, they skip the record and return the error
alongside their result.
"""
from __future__ import annotations

from typing import List, Optional, Tuple


class AnalyticsError(Exception):
    """Base class for every error raised by the package."""


class ValidationError(AnalyticsError, ValueError):
    """Malformed filter or variant input."""

    def __init__(self, message: str, errors: Optional[List[Tuple[str, str]]] = None):
        super().__init__(message)
        self.errors = list(errors or [])

    def __str__(self):
        if not self.errors:
            return self.args[0]
        detail = "; ".join(f"{field}: {msg}" for field, msg in self.errors)
        return f"{self.args[0]} ({detail})"

    @property
    def fields(self) -> List[str]:
        return [field for field, _ in self.errors]


class DataError(AnalyticsError):
    """A record that violates an assumed invariant and was skipped."""

    def __init__(self, reason: str, lead_id=None, cohort: Optional[str] = None, month_rel: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.lead_id = lead_id
        self.cohort = cohort
        self.month_rel = month_rel

    def __repr__(self):
        return (
            f"DataError(reason={self.reason!r}, lead_id={self.lead_id!r}, "
            f"cohort={self.cohort!r}, month_rel={self.month_rel!r})"
        )

    def to_dict(self) -> dict:
        return {
            "reason": self.reason,
            "lead_id": self.lead_id,
            "cohort": self.cohort,
            "month_rel": self.month_rel,
        }
