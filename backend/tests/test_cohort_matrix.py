from decimal import Decimal

import pytest

from turbodash.core.errors import NegativeOffsetError
from turbodash.models.enums import IssueCode, RetentionMetric, SeverityBucket
from turbodash.services.cohort_matrix import CohortRecord, build_cohort_matrix, evaluate_cell
from turbodash.services.cohort_summary import summarize_cohorts
from turbodash.utils.decimal_math import money
from turbodash.utils.periods import Period


def _record(client_id: str, start: str, observed: str, value: str = "100.00", contracts: int = 1) -> CohortRecord:
    return CohortRecord(
        client_id=client_id,
        start_period=Period.parse(start),
        observation_period=Period.parse(observed),
        value=money(value),
        contract_count=contracts,
    )


def _sample_records() -> list[CohortRecord]:
    return [
        _record("e", "2025-02", "2025-03"),
        _record("a", "2025-01", "2025-01"),
        _record("b", "2025-01", "2025-01"),
        _record("c", "2025-01", "2025-01"),
        _record("d", "2025-01", "2025-01"),
        _record("a", "2025-01", "2025-02"),
        _record("b", "2025-01", "2025-02"),
        _record("c", "2025-01", "2025-02", value="50.00"),
        _record("a", "2025-01", "2025-04"),
        _record("e", "2025-02", "2025-02"),
    ]


def test_rows_ordered_by_start_period_with_full_baseline() -> None:
    matrix = build_cohort_matrix(_sample_records())
    assert [row.cohort_key for row in matrix.rows] == ["2025-01", "2025-02"]

    first = matrix.rows[0]
    assert first.baseline_client_count == 4
    assert first.baseline_value == money("400.00")
    assert first.baseline_contract_count == 4
    baseline = first.cells[0]
    assert baseline.retention_pct == Decimal("100")
    assert baseline.value_retention_pct == Decimal("100")
    assert baseline.contract_retention_pct == Decimal("100")


def test_three_series_computed_per_cell_and_gaps_stay_absent() -> None:
    matrix = build_cohort_matrix(_sample_records(), RetentionMetric.value)
    first = matrix.rows[0]

    month_one = first.cells[1]
    assert month_one.active_client_count == 3
    assert month_one.active_value == money("250.00")
    assert month_one.retention_pct == Decimal("75")
    assert month_one.value_retention_pct == Decimal("62.5")
    assert month_one.contract_retention_pct == Decimal("75")

    assert 2 not in first.cells
    assert first.cells[3].retention_pct == Decimal("25")
    assert matrix.metric == RetentionMetric.value
    assert matrix.max_offset == 3


def test_repeated_client_counts_once_but_sums_value_and_contracts() -> None:
    records = [
        _record("a", "2025-01", "2025-01", value="100.00", contracts=1),
        _record("a", "2025-01", "2025-01", value="40.00", contracts=2),
        _record("a", "2025-01", "2025-02", value="70.00", contracts=1),
    ]
    row = build_cohort_matrix(records).rows[0]
    assert row.baseline_client_count == 1
    assert row.baseline_value == money("140.00")
    assert row.baseline_contract_count == 3
    assert row.cells[1].retention_pct == Decimal("100")
    assert row.cells[1].value_retention_pct == Decimal("50")


def test_future_dated_observation_is_rejected() -> None:
    records = _sample_records() + [_record("z", "2025-05", "2025-04")]
    with pytest.raises(NegativeOffsetError):
        build_cohort_matrix(records)


def test_cohort_without_baseline_is_dropped_and_reported() -> None:
    records = _sample_records() + [_record("late", "2025-03", "2025-04")]
    matrix = build_cohort_matrix(records)
    assert [row.cohort_key for row in matrix.rows] == ["2025-01", "2025-02"]
    assert len(matrix.issues) == 1
    assert matrix.issues[0].code == IssueCode.empty_baseline
    assert matrix.issues[0].subject_id == "2025-03"


def test_zero_baseline_value_is_no_data_not_zero() -> None:
    records = [
        _record("a", "2025-01", "2025-01", value="0"),
        _record("a", "2025-01", "2025-02", value="10.00"),
    ]
    cell = build_cohort_matrix(records).rows[0].cells[1]
    assert cell.retention_pct == Decimal("100")
    assert cell.value_retention_pct is None
    assert evaluate_cell(cell, RetentionMetric.value) is None


def test_negative_active_value_clamps_to_zero() -> None:
    records = [
        _record("a", "2025-01", "2025-01", value="100.00"),
        _record("a", "2025-01", "2025-02", value="-20.00"),
    ]
    cell = build_cohort_matrix(records).rows[0].cells[1]
    assert cell.value_retention_pct == Decimal("0")


def test_evaluate_cell_scores_selected_metric() -> None:
    first = build_cohort_matrix(_sample_records()).rows[0]
    by_clients = evaluate_cell(first.cells[1], RetentionMetric.clients)
    by_value = evaluate_cell(first.cells[1], RetentionMetric.value)
    assert by_clients is not None and by_value is not None
    assert by_clients.severity_bucket == SeverityBucket.below_15
    assert by_clients.is_outlier is False
    assert by_value.is_outlier is True
    assert evaluate_cell(first.cells[0], RetentionMetric.clients).severity_bucket == SeverityBucket.neutral


def test_empty_input_builds_empty_matrix() -> None:
    matrix = build_cohort_matrix([])
    assert matrix.rows == []
    assert matrix.issues == []
    assert matrix.max_offset == 0


def test_summary_averages_only_cohorts_reaching_offset() -> None:
    matrix = build_cohort_matrix(_sample_records())
    summary = summarize_cohorts(matrix, offsets=[1, 3, 12])
    assert summary.total_cohorts == 2
    assert summary.total_baseline_clients == 5
    assert summary.total_baseline_value == money("500.00")
    assert summary.average_retention[1] == Decimal("87.5")
    assert summary.average_retention[3] == Decimal("25")
    assert summary.average_retention[12] is None
    assert summary.outlier_count == 1
