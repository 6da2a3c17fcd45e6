from collections import Counter

from turbodash.models.enums import IssueCode, RowKind
from turbodash.services.cohort_matrix import CohortRecord, build_cohort_matrix
from turbodash.services.ledger_tree import CategoryRecord, Installment, LedgerTree, build_ledger_tree
from turbodash.services.row_projector import InstallmentRow, NodeRow, project_cohort_rows, project_ledger_rows
from turbodash.services.tree_aggregator import aggregate_tree
from turbodash.utils.decimal_math import money
from turbodash.utils.periods import Period


def _installment(installment_id: str, category_id: str, amount: str) -> Installment:
    return Installment(
        id=installment_id,
        description=f"Posting {installment_id}",
        period_posted=Period(2025, 3),
        gross_amount=money(amount),
        category_id=category_id,
    )


def _dfc_tree() -> LedgerTree:
    categories = [
        CategoryRecord("REVENUE", "Revenue", level=0, children=("PA", "PB")),
        CategoryRecord("PA", "Product A", level=1),
        CategoryRecord("PB", "Product B", level=1),
        CategoryRecord("EXPENSES", "Expenses", level=0, children=("OPEX",)),
        CategoryRecord("OPEX", "Operating Expenses", level=1, children=("LIC", "RENT")),
        CategoryRecord("LIC", "Software Licenses", level=2),
        CategoryRecord("RENT", "Rent", level=2),
    ]
    installments = [
        _installment("1", "PA", "300.00"),
        _installment("2", "PB", "200.00"),
        _installment("3", "LIC", "-100.00"),
        _installment("4", "LIC", "-50.00"),
        _installment("5", "RENT", "-900.00"),
    ]
    return aggregate_tree(build_ledger_tree(categories, installments))


def _ids(rows: list) -> list[str]:
    return [row.row_id for row in rows]


def test_collapsed_tree_shows_only_roots() -> None:
    visible = project_ledger_rows(_dfc_tree(), set())
    assert _ids(visible.rows) == ["REVENUE", "EXPENSES"]
    assert all(isinstance(row, NodeRow) for row in visible)


def test_expanding_revenue_shows_products_without_installments() -> None:
    tree = _dfc_tree()
    visible = project_ledger_rows(tree, {"REVENUE"}, root_ids=["REVENUE"])
    assert _ids(visible.rows) == ["REVENUE", "PA", "PB"]
    assert [row.kind for row in visible] == [RowKind.node, RowKind.node, RowKind.node]
    assert [row.depth for row in visible] == [0, 1, 1]


def test_expanded_leaf_emits_installments_in_declared_order() -> None:
    visible = project_ledger_rows(_dfc_tree(), {"EXPENSES", "OPEX", "LIC"})
    assert _ids(visible.rows) == ["REVENUE", "EXPENSES", "OPEX", "LIC", "LIC:3", "LIC:4", "RENT"]
    installment_rows = [row for row in visible if isinstance(row, InstallmentRow)]
    assert [row.kind for row in installment_rows] == [RowKind.leaf_installment] * 2
    assert all(row.parent_node.category_id == "LIC" for row in installment_rows)
    assert [row.depth for row in installment_rows] == [3, 3]


def test_fully_expanded_tree_lists_every_installment_once() -> None:
    tree = _dfc_tree()
    visible = project_ledger_rows(tree, set(tree.nodes_by_id))
    shown = Counter(row.installment for row in visible if isinstance(row, InstallmentRow))
    expected = Counter(item for leaf in tree.leaves() for item in leaf.installments)
    assert shown == expected
    assert sum(1 for row in visible if isinstance(row, NodeRow)) == len(tree.nodes_by_id)


def test_expanded_child_under_collapsed_parent_stays_hidden() -> None:
    visible = project_ledger_rows(_dfc_tree(), {"OPEX", "LIC"})
    assert _ids(visible.rows) == ["REVENUE", "EXPENSES"]


def test_projection_reads_aggregates_without_recomputing() -> None:
    visible = project_ledger_rows(_dfc_tree(), {"EXPENSES"})
    opex = next(row for row in visible if row.row_id == "OPEX")
    assert opex.node.value_for(Period(2025, 3)) == money("-1050.00")


def test_unknown_root_is_skipped_and_reported() -> None:
    visible = project_ledger_rows(_dfc_tree(), set(), root_ids=["NOPE", "REVENUE"])
    assert _ids(visible.rows) == ["REVENUE"]
    assert [issue.code for issue in visible.issues] == [IssueCode.unknown_root]
    assert len(visible) == 1


def test_expand_state_is_not_modified() -> None:
    expand_state = {"REVENUE", "PA"}
    project_ledger_rows(_dfc_tree(), expand_state)
    assert expand_state == {"REVENUE", "PA"}


def test_cohort_projection_is_one_row_per_cohort() -> None:
    records = [
        CohortRecord("a", Period(2025, 1), Period(2025, 1)),
        CohortRecord("b", Period(2025, 2), Period(2025, 2)),
        CohortRecord("b", Period(2025, 2), Period(2025, 3)),
    ]
    matrix = build_cohort_matrix(records)
    rows = project_cohort_rows(matrix, {"2025-02"})
    assert [row.cohort_key for row in rows] == ["2025-01", "2025-02"]
    assert [row.expanded for row in rows] == [False, True]
    assert rows[1].row is matrix.rows[1]
