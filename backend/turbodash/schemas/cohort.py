from decimal import Decimal

from pydantic import BaseModel, Field

from turbodash.models.enums import OutlierDirection, RetentionMetric, SeverityBucket
from turbodash.schemas.common import DataIssueOut, ORMModel, PeriodField
from turbodash.services.cohort_matrix import CohortRecord


class CohortRecordIn(BaseModel):
    client_id: str = Field(min_length=1, max_length=200)
    start_period: PeriodField
    observation_period: PeriodField
    value: Decimal = Decimal("0")
    contract_count: int = Field(default=1, ge=0)

    def to_record(self) -> CohortRecord:
        return CohortRecord(
            client_id=self.client_id,
            start_period=self.start_period,
            observation_period=self.observation_period,
            value=self.value,
            contract_count=self.contract_count,
        )


class DeviationOut(ORMModel):
    expected_pct: Decimal
    deviation_pct: Decimal
    severity_bucket: SeverityBucket
    is_outlier: bool
    outlier_direction: OutlierDirection | None = None


class CohortCellOut(ORMModel):
    offset: int
    active_client_count: int
    active_value: Decimal
    active_contract_count: int
    retention_pct: Decimal | None = None
    value_retention_pct: Decimal | None = None
    contract_retention_pct: Decimal | None = None
    deviation: DeviationOut | None = None


class CohortRowOut(BaseModel):
    cohort_key: str
    start_period: PeriodField
    baseline_client_count: int
    baseline_value: Decimal
    baseline_contract_count: int
    expanded: bool = False
    # keyed by offset; missing offsets have no data
    cells: dict[int, CohortCellOut]


class CohortSummaryOut(ORMModel):
    metric: RetentionMetric
    total_cohorts: int
    total_baseline_clients: int
    total_baseline_value: Decimal
    average_retention: dict[int, Decimal | None]
    outlier_count: int


class CohortMatrixResponse(BaseModel):
    metric: RetentionMetric
    max_offset: int
    rows: list[CohortRowOut]
    summary: CohortSummaryOut
    issues: list[DataIssueOut]
