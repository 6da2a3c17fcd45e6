"""Category tree for the hierarchical cash-flow view.

The tree is an id -> node table; parents refer to children by id. Input rows
usually come from a filtered query, so references that do not resolve are
expected: they are dropped and reported, never raised.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from decimal import Decimal

from turbodash.core.errors import DataIssue
from turbodash.models.enums import IssueCode
from turbodash.utils.decimal_math import money
from turbodash.utils.periods import Period


logger = logging.getLogger("turbodash.ledger")


@dataclass(frozen=True)
class Installment:
    id: str
    description: str
    period_posted: Period
    gross_amount: Decimal
    category_id: str


@dataclass(frozen=True)
class CategoryRecord:
    category_id: str
    name: str
    level: int = 0
    children: tuple[str, ...] = ()
    is_leaf: bool | None = None


@dataclass(frozen=True)
class LedgerNode:
    category_id: str
    name: str
    level: int
    children: tuple[str, ...] = ()
    installments: tuple[Installment, ...] = ()
    values_by_period: dict[Period, Decimal] = field(default_factory=dict, hash=False)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def value_for(self, period: Period) -> Decimal | None:
        return self.values_by_period.get(period)

    def total(self) -> Decimal:
        return money(sum(self.values_by_period.values(), Decimal("0")))


@dataclass(frozen=True)
class LedgerTree:
    nodes_by_id: dict[str, LedgerNode]
    root_ids: list[str]
    issues: list[DataIssue] = field(default_factory=list)

    def get(self, category_id: str) -> LedgerNode | None:
        return self.nodes_by_id.get(category_id)

    def leaves(self) -> Iterator[LedgerNode]:
        return (node for node in self.nodes_by_id.values() if node.is_leaf)

    def periods(self) -> list[Period]:
        found: set[Period] = set()
        for node in self.nodes_by_id.values():
            found.update(node.values_by_period)
        return sorted(found)

    def parent_ids(self) -> dict[str, str]:
        return {
            child_id: node.category_id
            for node in self.nodes_by_id.values()
            for child_id in node.children
        }


def _report(
    issues: list[DataIssue],
    code: IssueCode,
    subject_id: str,
    message: str,
    *args: object,
) -> None:
    logger.warning(message, *args)
    issues.append(DataIssue(code=code, message=message % args, subject_id=subject_id))


def _is_ancestor(candidate: str, node_id: str, parent_of: dict[str, str]) -> bool:
    current: str | None = node_id
    while current is not None:
        if current == candidate:
            return True
        current = parent_of.get(current)
    return False


def _index_categories(
    categories: Iterable[CategoryRecord],
    issues: list[DataIssue],
) -> dict[str, CategoryRecord]:
    indexed: dict[str, CategoryRecord] = {}
    for row in categories:
        if row.category_id in indexed:
            _report(
                issues,
                IssueCode.duplicate_category,
                row.category_id,
                "Duplicate category %s ignored; keeping the first row.",
                row.category_id,
            )
            continue
        indexed[row.category_id] = row
    return indexed


def _link_children(
    indexed: dict[str, CategoryRecord],
    issues: list[DataIssue],
) -> tuple[dict[str, list[str]], dict[str, str]]:
    children: dict[str, list[str]] = {category_id: [] for category_id in indexed}
    parent_of: dict[str, str] = {}
    for parent_id, row in indexed.items():
        for child_id in row.children:
            if child_id == parent_id:
                _report(issues, IssueCode.self_reference, parent_id, "Category %s lists itself as a child.", parent_id)
                continue
            if child_id not in indexed:
                _report(
                    issues,
                    IssueCode.dangling_child,
                    parent_id,
                    "Category %s references missing child %s; reference dropped.",
                    parent_id,
                    child_id,
                )
                continue
            if child_id in parent_of:
                _report(
                    issues,
                    IssueCode.multiple_parents,
                    child_id,
                    "Category %s already belongs to %s; reference from %s dropped.",
                    child_id,
                    parent_of[child_id],
                    parent_id,
                )
                continue
            if _is_ancestor(child_id, parent_id, parent_of):
                _report(
                    issues,
                    IssueCode.cycle,
                    parent_id,
                    "Linking %s under %s would create a cycle; reference dropped.",
                    child_id,
                    parent_id,
                )
                continue
            parent_of[child_id] = parent_id
            children[parent_id].append(child_id)
    return children, parent_of


def _group_installments(
    installments: Iterable[Installment],
    children: dict[str, list[str]],
    issues: list[DataIssue],
) -> dict[str, list[Installment]]:
    grouped: dict[str, list[Installment]] = {}
    for installment in installments:
        owner = installment.category_id
        if owner not in children:
            _report(
                issues,
                IssueCode.unknown_category,
                installment.id,
                "Installment %s references unknown category %s; skipped.",
                installment.id,
                owner,
            )
            continue
        if children[owner]:
            _report(
                issues,
                IssueCode.installment_on_branch,
                installment.id,
                "Installment %s posted to non-leaf category %s; skipped.",
                installment.id,
                owner,
            )
            continue
        grouped.setdefault(owner, []).append(installment)
    return grouped


def build_ledger_tree(
    categories: Iterable[CategoryRecord],
    installments: Iterable[Installment] = (),
) -> LedgerTree:
    issues: list[DataIssue] = []
    indexed = _index_categories(categories, issues)
    children, parent_of = _link_children(indexed, issues)
    installments_by_owner = _group_installments(installments, children, issues)

    nodes_by_id: dict[str, LedgerNode] = {}
    for category_id, row in indexed.items():
        child_ids = tuple(children[category_id])
        if row.is_leaf is not None and row.is_leaf != (not child_ids):
            _report(
                issues,
                IssueCode.leaf_flag_mismatch,
                category_id,
                "Category %s is flagged is_leaf=%s but has %s valid children.",
                category_id,
                row.is_leaf,
                len(child_ids),
            )
        nodes_by_id[category_id] = LedgerNode(
            category_id=category_id,
            name=row.name,
            level=row.level,
            children=child_ids,
            installments=tuple(installments_by_owner.get(category_id, ())),
        )

    root_ids = [category_id for category_id in indexed if category_id not in parent_of]
    logger.debug(
        "Built ledger tree: %s nodes, %s roots, %s issues.",
        len(nodes_by_id),
        len(root_ids),
        len(issues),
    )
    return LedgerTree(nodes_by_id=nodes_by_id, root_ids=root_ids, issues=issues)
