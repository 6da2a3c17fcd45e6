from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from turbodash.core.config import get_settings
from turbodash.models.enums import RetentionMetric
from turbodash.services.cohort_matrix import CohortMatrix, evaluate_cell
from turbodash.services.deviation import DeviationPolicy
from turbodash.utils.decimal_math import money, pct


@dataclass(frozen=True)
class CohortSummary:
    metric: RetentionMetric
    total_cohorts: int
    total_baseline_clients: int
    total_baseline_value: Decimal
    average_retention: dict[int, Decimal | None]
    outlier_count: int


def _average_at(matrix: CohortMatrix, offset: int) -> Decimal | None:
    values: list[Decimal] = []
    for row in matrix.rows:
        cell = row.cells.get(offset)
        if cell is None:
            continue
        value = cell.retention_for(matrix.metric)
        if value is not None:
            values.append(value)
    if not values:
        return None
    return pct(sum(values, Decimal("0")) / Decimal(len(values)))


def summarize_cohorts(
    matrix: CohortMatrix,
    *,
    offsets: Sequence[int] | None = None,
    policy: DeviationPolicy | None = None,
) -> CohortSummary:
    """Headline figures for a cohort matrix in its displayed metric.

    Averages only include cohorts that actually reached the offset; an offset
    no cohort reached averages to None rather than 0.
    """
    if offsets is None:
        offsets = get_settings().cohort_summary_offsets

    outliers = 0
    for row in matrix.rows:
        for offset, cell in row.cells.items():
            if offset == 0:
                continue
            result = evaluate_cell(cell, matrix.metric, policy=policy)
            if result is not None and result.is_outlier:
                outliers += 1

    return CohortSummary(
        metric=matrix.metric,
        total_cohorts=len(matrix.rows),
        total_baseline_clients=sum(row.baseline_client_count for row in matrix.rows),
        total_baseline_value=money(sum((row.baseline_value for row in matrix.rows), Decimal("0"))),
        average_retention={offset: _average_at(matrix, offset) for offset in offsets},
        outlier_count=outliers,
    )
