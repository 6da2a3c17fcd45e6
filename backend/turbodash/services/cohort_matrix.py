from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from turbodash.core.errors import DataIssue, NegativeOffsetError
from turbodash.models.enums import IssueCode, RetentionMetric
from turbodash.services.deviation import DeviationPolicy, DeviationResult, classify
from turbodash.utils.decimal_math import money, pct, ratio_pct
from turbodash.utils.periods import Period


logger = logging.getLogger("turbodash.cohort")


@dataclass(frozen=True)
class CohortRecord:
    client_id: str
    start_period: Period
    observation_period: Period
    value: Decimal = Decimal("0")
    contract_count: int = 1

    @property
    def offset(self) -> int:
        return self.start_period.months_until(self.observation_period)


@dataclass(frozen=True)
class CohortCell:
    offset: int
    active_client_count: int
    active_value: Decimal
    active_contract_count: int
    retention_pct: Decimal | None
    value_retention_pct: Decimal | None
    contract_retention_pct: Decimal | None

    def retention_for(self, metric: RetentionMetric) -> Decimal | None:
        if metric == RetentionMetric.value:
            return self.value_retention_pct
        if metric == RetentionMetric.contracts:
            return self.contract_retention_pct
        return self.retention_pct


@dataclass(frozen=True)
class CohortRow:
    start_period: Period
    baseline_client_count: int
    baseline_value: Decimal
    baseline_contract_count: int
    cells: dict[int, CohortCell]

    @property
    def cohort_key(self) -> str:
        return str(self.start_period)

    @property
    def max_offset(self) -> int:
        return max(self.cells) if self.cells else 0


@dataclass(frozen=True)
class CohortMatrix:
    metric: RetentionMetric
    rows: list[CohortRow]
    issues: list[DataIssue] = field(default_factory=list)

    @property
    def max_offset(self) -> int:
        return max((row.max_offset for row in self.rows), default=0)


@dataclass
class _OffsetTotals:
    clients: set[str] = field(default_factory=set)
    value: Decimal = field(default_factory=lambda: money(0))
    contracts: int = 0

    def add(self, record: CohortRecord) -> None:
        self.clients.add(record.client_id)
        self.value = money(self.value + money(record.value))
        self.contracts += record.contract_count


def _clamped(value: Decimal | None) -> Decimal | None:
    if value is None:
        return None
    return max(value, pct(0))


def _validate_records(records: list[CohortRecord]) -> None:
    for record in records:
        offset = record.offset
        if offset < 0:
            raise NegativeOffsetError(
                offset,
                f"Client {record.client_id} observed in {record.observation_period} "
                f"before its cohort start {record.start_period}.",
            )
        if record.contract_count < 0:
            raise ValueError(f"Client {record.client_id} has a negative contract count.")


def _build_row(start: Period, by_offset: dict[int, _OffsetTotals]) -> CohortRow:
    baseline = by_offset[0]
    baseline_clients = len(baseline.clients)
    cells: dict[int, CohortCell] = {}
    for offset in sorted(by_offset):
        totals = by_offset[offset]
        active_clients = len(totals.clients)
        cells[offset] = CohortCell(
            offset=offset,
            active_client_count=active_clients,
            active_value=totals.value,
            active_contract_count=totals.contracts,
            retention_pct=_clamped(ratio_pct(active_clients, baseline_clients)),
            value_retention_pct=_clamped(ratio_pct(totals.value, baseline.value)),
            contract_retention_pct=_clamped(ratio_pct(totals.contracts, baseline.contracts)),
        )
    return CohortRow(
        start_period=start,
        baseline_client_count=baseline_clients,
        baseline_value=baseline.value,
        baseline_contract_count=baseline.contracts,
        cells=cells,
    )


def build_cohort_matrix(
    records: Iterable[CohortRecord],
    metric: RetentionMetric = RetentionMetric.clients,
) -> CohortMatrix:
    """Group retention observations into cohorts keyed by start period.

    All three retention series are computed for every populated cell;
    ``metric`` only records which one the caller displays. Offsets without
    observations have no cell at all.
    """
    rows_in = list(records)
    _validate_records(rows_in)

    grouped: dict[Period, dict[int, _OffsetTotals]] = {}
    for record in rows_in:
        by_offset = grouped.setdefault(record.start_period, {})
        by_offset.setdefault(record.offset, _OffsetTotals()).add(record)

    rows: list[CohortRow] = []
    issues: list[DataIssue] = []
    for start in sorted(grouped):
        by_offset = grouped[start]
        if 0 not in by_offset or not by_offset[0].clients:
            issue = DataIssue(
                code=IssueCode.empty_baseline,
                message=f"Cohort {start} has no baseline observations; dropped.",
                subject_id=str(start),
            )
            logger.warning("Dropping cohort %s: no baseline observations.", start)
            issues.append(issue)
            continue
        rows.append(_build_row(start, by_offset))

    logger.debug(
        "Built %s cohort rows from %s records (%s dropped).",
        len(rows),
        len(rows_in),
        len(issues),
    )
    return CohortMatrix(metric=RetentionMetric(metric), rows=rows, issues=issues)


def evaluate_cell(
    cell: CohortCell,
    metric: RetentionMetric,
    *,
    policy: DeviationPolicy | None = None,
) -> DeviationResult | None:
    actual = cell.retention_for(RetentionMetric(metric))
    if actual is None:
        return None
    return classify(actual, cell.offset, policy=policy)
