from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from turbodash.schemas.common import DataIssueOut, PeriodField
from turbodash.services.ledger_tree import CategoryRecord, Installment


class LedgerCategoryIn(BaseModel):
    category_id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=300)
    level: int = Field(default=0, ge=0)
    children: list[str] = Field(default_factory=list)
    is_leaf: bool | None = None

    def to_record(self) -> CategoryRecord:
        return CategoryRecord(
            category_id=self.category_id,
            name=self.name,
            level=self.level,
            children=tuple(self.children),
            is_leaf=self.is_leaf,
        )


class InstallmentIn(BaseModel):
    id: str = Field(min_length=1, max_length=100)
    category_id: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=1000)
    period_posted: PeriodField
    gross_amount: Decimal = Field(description="Signed as supplied; never re-signed by the engine.")

    def to_record(self) -> Installment:
        return Installment(
            id=self.id,
            description=self.description,
            period_posted=self.period_posted,
            gross_amount=self.gross_amount,
            category_id=self.category_id,
        )


class LedgerNodeOut(BaseModel):
    category_id: str
    name: str
    level: int
    is_leaf: bool
    children: list[str]
    installment_count: int
    values_by_period: dict[str, Decimal]
    total: Decimal


class InstallmentOut(BaseModel):
    id: str
    description: str
    period_posted: PeriodField
    gross_amount: Decimal


class VisibleRowOut(BaseModel):
    kind: Literal["node", "leaf-installment"]
    row_id: str
    depth: int
    category_id: str
    expanded: bool = False
    installment: InstallmentOut | None = None


class LedgerViewResponse(BaseModel):
    periods: list[str]
    root_ids: list[str]
    nodes: list[LedgerNodeOut]
    rows: list[VisibleRowOut]
    issues: list[DataIssueOut]
