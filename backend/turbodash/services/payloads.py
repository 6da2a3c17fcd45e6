from __future__ import annotations

from collections.abc import Collection

from turbodash.schemas.cohort import (
    CohortCellOut,
    CohortMatrixResponse,
    CohortRowOut,
    CohortSummaryOut,
    DeviationOut,
)
from turbodash.schemas.common import DataIssueOut
from turbodash.schemas.ledger import InstallmentOut, LedgerNodeOut, LedgerViewResponse, VisibleRowOut
from turbodash.services.cohort_matrix import CohortCell, CohortMatrix, evaluate_cell
from turbodash.services.cohort_summary import summarize_cohorts
from turbodash.services.deviation import DeviationPolicy
from turbodash.services.ledger_tree import LedgerNode, LedgerTree
from turbodash.services.row_projector import NodeRow, VisibleRows, project_cohort_rows


def _cell_out(cell: CohortCell, matrix: CohortMatrix, policy: DeviationPolicy | None) -> CohortCellOut:
    deviation = evaluate_cell(cell, matrix.metric, policy=policy)
    return CohortCellOut(
        offset=cell.offset,
        active_client_count=cell.active_client_count,
        active_value=cell.active_value,
        active_contract_count=cell.active_contract_count,
        retention_pct=cell.retention_pct,
        value_retention_pct=cell.value_retention_pct,
        contract_retention_pct=cell.contract_retention_pct,
        deviation=DeviationOut.model_validate(deviation) if deviation is not None else None,
    )


def cohort_matrix_response(
    matrix: CohortMatrix,
    *,
    expand_state: Collection[str] = (),
    policy: DeviationPolicy | None = None,
) -> CohortMatrixResponse:
    rows = [
        CohortRowOut(
            cohort_key=visible.cohort_key,
            start_period=visible.row.start_period,
            baseline_client_count=visible.row.baseline_client_count,
            baseline_value=visible.row.baseline_value,
            baseline_contract_count=visible.row.baseline_contract_count,
            expanded=visible.expanded,
            cells={offset: _cell_out(cell, matrix, policy) for offset, cell in visible.row.cells.items()},
        )
        for visible in project_cohort_rows(matrix, expand_state)
    ]
    return CohortMatrixResponse(
        metric=matrix.metric,
        max_offset=matrix.max_offset,
        rows=rows,
        summary=CohortSummaryOut.model_validate(summarize_cohorts(matrix, policy=policy)),
        issues=[DataIssueOut.model_validate(issue) for issue in matrix.issues],
    )


def _node_out(node: LedgerNode) -> LedgerNodeOut:
    return LedgerNodeOut(
        category_id=node.category_id,
        name=node.name,
        level=node.level,
        is_leaf=node.is_leaf,
        children=list(node.children),
        installment_count=len(node.installments),
        values_by_period={str(period): amount for period, amount in sorted(node.values_by_period.items())},
        total=node.total(),
    )


def ledger_view_response(
    tree: LedgerTree,
    visible: VisibleRows,
    expand_state: Collection[str] = (),
) -> LedgerViewResponse:
    """Serializable view of an aggregated tree and its projected rows.

    ``nodes`` covers only the nodes that are visible; the renderer needs
    nothing else for the current expand state.
    """
    rows: list[VisibleRowOut] = []
    nodes: list[LedgerNodeOut] = []
    for row in visible.rows:
        if isinstance(row, NodeRow):
            nodes.append(_node_out(row.node))
            rows.append(
                VisibleRowOut(
                    kind="node",
                    row_id=row.row_id,
                    depth=row.depth,
                    category_id=row.node.category_id,
                    expanded=row.node.category_id in expand_state,
                )
            )
            continue
        rows.append(
            VisibleRowOut(
                kind="leaf-installment",
                row_id=row.row_id,
                depth=row.depth,
                category_id=row.parent_node.category_id,
                installment=InstallmentOut(
                    id=row.installment.id,
                    description=row.installment.description,
                    period_posted=row.installment.period_posted,
                    gross_amount=row.installment.gross_amount,
                ),
            )
        )

    return LedgerViewResponse(
        periods=[str(period) for period in tree.periods()],
        root_ids=list(tree.root_ids),
        nodes=nodes,
        rows=rows,
        issues=[DataIssueOut.model_validate(issue) for issue in [*tree.issues, *visible.issues]],
    )
