from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal

from turbodash.core.errors import AnalyticsError
from turbodash.services.ledger_tree import Installment, LedgerNode, LedgerTree
from turbodash.utils.decimal_math import money
from turbodash.utils.periods import Period


logger = logging.getLogger("turbodash.ledger")

MonthlyVector = dict[Period, Decimal]


def _leaf_vector(installments: tuple[Installment, ...]) -> MonthlyVector:
    vector: MonthlyVector = {}
    for installment in installments:
        period = installment.period_posted
        vector[period] = money(vector.get(period, money(0)) + money(installment.gross_amount))
    return vector


def _merge_children(child_vectors: list[MonthlyVector]) -> MonthlyVector:
    vector: MonthlyVector = {}
    for child_vector in child_vectors:
        for period, amount in child_vector.items():
            vector[period] = money(vector.get(period, money(0)) + amount)
    return vector


def _post_order_vectors(tree: LedgerTree) -> dict[str, MonthlyVector]:
    vectors: dict[str, MonthlyVector] = {}
    in_progress: set[str] = set()

    for start_id in list(tree.root_ids) + list(tree.nodes_by_id):
        if start_id in vectors or start_id not in tree.nodes_by_id:
            continue
        stack: list[tuple[str, bool]] = [(start_id, False)]
        while stack:
            node_id, children_done = stack.pop()
            node = tree.nodes_by_id[node_id]
            if children_done:
                if node.children:
                    vectors[node_id] = _merge_children([vectors[child_id] for child_id in node.children])
                else:
                    vectors[node_id] = _leaf_vector(node.installments)
                in_progress.discard(node_id)
                continue
            if node_id in vectors:
                continue
            in_progress.add(node_id)
            stack.append((node_id, True))
            for child_id in reversed(node.children):
                if child_id not in tree.nodes_by_id:
                    raise AnalyticsError(f"Category {node_id} references unknown child {child_id}.")
                if child_id in in_progress:
                    raise AnalyticsError(f"Cycle detected between {node_id} and {child_id}.")
                if child_id not in vectors:
                    stack.append((child_id, False))
    return vectors


def aggregate_tree(tree: LedgerTree) -> LedgerTree:
    """Return a copy of ``tree`` with every node's monthly vector resolved.

    Children are summed before their parents and each node is computed once.
    Periods without postings stay absent. The input tree is left untouched.
    """
    vectors = _post_order_vectors(tree)
    nodes_by_id: dict[str, LedgerNode] = {
        node_id: replace(node, values_by_period=dict(vectors[node_id]))
        for node_id, node in tree.nodes_by_id.items()
    }
    logger.debug("Aggregated %s ledger nodes.", len(nodes_by_id))
    return LedgerTree(nodes_by_id=nodes_by_id, root_ids=list(tree.root_ids), issues=list(tree.issues))
