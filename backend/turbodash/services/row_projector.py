from __future__ import annotations

import logging
from collections.abc import Collection, Iterator, Sequence
from dataclasses import dataclass, field

from turbodash.core.errors import DataIssue
from turbodash.models.enums import IssueCode, RowKind
from turbodash.services.cohort_matrix import CohortMatrix, CohortRow
from turbodash.services.ledger_tree import Installment, LedgerNode, LedgerTree


logger = logging.getLogger("turbodash.projector")


@dataclass(frozen=True)
class NodeRow:
    node: LedgerNode
    depth: int
    kind: RowKind = RowKind.node

    @property
    def row_id(self) -> str:
        return self.node.category_id


@dataclass(frozen=True)
class InstallmentRow:
    installment: Installment
    parent_node: LedgerNode
    depth: int
    kind: RowKind = RowKind.leaf_installment

    @property
    def row_id(self) -> str:
        return f"{self.parent_node.category_id}:{self.installment.id}"


RowRef = NodeRow | InstallmentRow


@dataclass(frozen=True)
class VisibleRows:
    rows: list[RowRef]
    issues: list[DataIssue] = field(default_factory=list)

    def __iter__(self) -> Iterator[RowRef]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class CohortVisibleRow:
    row: CohortRow
    expanded: bool

    @property
    def cohort_key(self) -> str:
        return self.row.cohort_key


def project_ledger_rows(
    tree: LedgerTree,
    expand_state: Collection[str],
    *,
    root_ids: Sequence[str] | None = None,
) -> VisibleRows:
    """Flatten ``tree`` into the rows a renderer shows for ``expand_state``.

    Depth-first pre-order from the roots. An expanded branch contributes its
    children; an expanded leaf contributes its installments. Collapsed nodes
    contribute nothing below themselves. Aggregates are read, never recomputed.
    """
    roots = tree.root_ids if root_ids is None else root_ids
    rows: list[RowRef] = []
    issues: list[DataIssue] = []
    emitted: set[str] = set()

    for root_id in roots:
        if root_id not in tree.nodes_by_id:
            logger.warning("Root %s is not in the tree; skipped.", root_id)
            issues.append(
                DataIssue(
                    code=IssueCode.unknown_root,
                    message=f"Root {root_id} is not in the tree; skipped.",
                    subject_id=root_id,
                )
            )
            continue

        stack: list[tuple[str, int]] = [(root_id, 0)]
        while stack:
            node_id, depth = stack.pop()
            node = tree.nodes_by_id.get(node_id)
            if node is None or node_id in emitted:
                continue
            emitted.add(node_id)
            rows.append(NodeRow(node=node, depth=depth))

            if node_id not in expand_state:
                continue
            if node.children:
                for child_id in reversed(node.children):
                    stack.append((child_id, depth + 1))
            else:
                rows.extend(
                    InstallmentRow(installment=installment, parent_node=node, depth=depth + 1)
                    for installment in node.installments
                )

    return VisibleRows(rows=rows, issues=issues)


def project_cohort_rows(matrix: CohortMatrix, expand_state: Collection[str] = ()) -> list[CohortVisibleRow]:
    return [CohortVisibleRow(row=row, expanded=row.cohort_key in expand_state) for row in matrix.rows]
