"""Exception hierarchy and reportable data issues for the analytics engines.

Logically impossible input (a retention observation dated before its cohort
start, a malformed period) raises. Membership problems caused by partial or
filtered data are skipped and returned as :class:`DataIssue` records instead.
"""

from __future__ import annotations

from dataclasses import dataclass

from turbodash.models.enums import IssueCode


class AnalyticsError(ValueError):
    """Base exception for all turbodash errors."""


class InvalidPeriodError(AnalyticsError):
    """A period identifier could not be parsed or is out of range."""


class NegativeOffsetError(AnalyticsError):
    """A retention offset was negative."""

    def __init__(self, offset: int, detail: str | None = None) -> None:
        self.offset = offset
        message = f"Retention offset must be >= 0, got {offset}."
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)


class ConfigurationError(AnalyticsError):
    """Invalid analytics thresholds or curve parameters."""


@dataclass(frozen=True)
class DataIssue:
    code: IssueCode
    message: str
    subject_id: str | None = None
