import csv
import io
from collections.abc import Sequence
from decimal import Decimal

from openpyxl import Workbook

from turbodash.services.cohort_matrix import CohortMatrix
from turbodash.services.ledger_tree import LedgerTree
from turbodash.services.row_projector import InstallmentRow, VisibleRows
from turbodash.utils.decimal_math import money
from turbodash.utils.periods import Period


Table = tuple[list[str], list[list]]


def _row_total(amounts: list[Decimal | None]) -> Decimal | None:
    shown = [amount for amount in amounts if amount is not None]
    if not shown:
        return None
    return money(sum(shown, Decimal("0")))


def ledger_rows_table(tree: LedgerTree, visible: VisibleRows, periods: Sequence[Period] | None = None) -> Table:
    """Tabulate projected rows: one column per period plus a total.

    Installment rows carry their gross amount in the posting period only.
    Periods without data are left blank. The total sums the period columns
    shown, so restricting ``periods`` restricts the total too.
    """
    columns = list(periods) if periods is not None else tree.periods()
    headers = ["row_id", "kind", "depth", "category_id", "name"] + [str(period) for period in columns] + ["total"]
    rows: list[list] = []
    for row in visible:
        if isinstance(row, InstallmentRow):
            installment = row.installment
            amounts = [installment.gross_amount if installment.period_posted == period else None for period in columns]
            rows.append(
                [row.row_id, row.kind.value, row.depth, row.parent_node.category_id, installment.description]
                + amounts
                + [_row_total(amounts)]
            )
        else:
            node = row.node
            amounts = [node.value_for(period) for period in columns]
            rows.append(
                [row.row_id, row.kind.value, row.depth, node.category_id, node.name]
                + amounts
                + [_row_total(amounts)]
            )
    return headers, rows


def cohort_matrix_table(matrix: CohortMatrix) -> Table:
    offsets = range(matrix.max_offset + 1) if matrix.rows else range(0)
    headers = ["cohort", "baseline_clients", "baseline_value"] + [f"m{offset}" for offset in offsets]
    rows: list[list] = []
    for row in matrix.rows:
        cells = [row.cells[offset].retention_for(matrix.metric) if offset in row.cells else None for offset in offsets]
        rows.append([row.cohort_key, row.baseline_client_count, row.baseline_value] + cells)
    return headers, rows


def _cell_text(value) -> str:
    if value is None:
        return ""
    return str(value)


def to_csv(table: Table) -> str:
    headers, rows = table
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_cell_text(value) for value in row])
    return output.getvalue()


def to_xlsx(table: Table, *, sheet_title: str = "TurboDash") -> bytes:
    headers, rows = table
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title
    sheet.append(headers)
    for row in rows:
        # openpyxl stores Decimal as float; keep the exact text instead
        sheet.append([str(value) if isinstance(value, Decimal) else value for value in row])

    stream = io.BytesIO()
    workbook.save(stream)
    return stream.getvalue()
