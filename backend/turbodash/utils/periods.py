from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from turbodash.core.errors import InvalidPeriodError


_PERIOD_PATTERN = re.compile(r"^\s*(\d{4})-(\d{1,2})(?:-\d{1,2})?\s*$")


@dataclass(frozen=True, order=True)
class Period:
    """A calendar month. Orders by (year, month); ``str()`` gives ``YYYY-MM``."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise InvalidPeriodError(f"Month must be between 1 and 12, got {self.month}.")
        if self.year < 1:
            raise InvalidPeriodError(f"Year must be positive, got {self.year}.")

    @classmethod
    def parse(cls, value: Period | date | str) -> Period:
        if isinstance(value, Period):
            return value
        if isinstance(value, date):
            return cls.from_date(value)
        match = _PERIOD_PATTERN.match(str(value))
        if match is None:
            raise InvalidPeriodError(f"Expected a YYYY-MM period, got {value!r}.")
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def from_date(cls, value: date) -> Period:
        return cls(value.year, value.month)

    @property
    def index(self) -> int:
        return self.year * 12 + (self.month - 1)

    def months_until(self, other: Period) -> int:
        return other.index - self.index

    def shift(self, months: int) -> Period:
        year, month_zero = divmod(self.index + months, 12)
        return Period(year, month_zero + 1)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"
