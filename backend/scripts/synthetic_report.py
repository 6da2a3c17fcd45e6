from __future__ import annotations

import json
import logging
from decimal import Decimal

from turbodash.core.config import get_settings
from turbodash.core.log import configure_logging
from turbodash.models.enums import RetentionMetric
from turbodash.services.cash_flow import analyze_cash_flow, category_metrics, top_categories
from turbodash.services.cohort_matrix import CohortRecord, build_cohort_matrix
from turbodash.services.deviation import DeviationPolicy
from turbodash.services.ledger_tree import CategoryRecord, Installment, build_ledger_tree
from turbodash.services.payloads import cohort_matrix_response, ledger_view_response
from turbodash.services.row_projector import project_ledger_rows
from turbodash.services.tree_aggregator import aggregate_tree
from turbodash.utils.decimal_math import money
from turbodash.utils.periods import Period


logger = logging.getLogger("turbodash.scripts")

FIRST_PERIOD = Period(2025, 1)


def _synthetic_cohort_records() -> list[CohortRecord]:
    # (clients at start, clients lost per month, monthly fee)
    cohorts = [
        (40, 2, Decimal("1500.00")),
        (32, 4, Decimal("2200.00")),
        (25, 1, Decimal("1800.00")),
        (18, 5, Decimal("950.00")),
    ]
    records: list[CohortRecord] = []
    for index, (size, churn, fee) in enumerate(cohorts):
        start = FIRST_PERIOD.shift(index)
        for offset in range(0, 12 - index):
            active = max(size - churn * offset, 0)
            for client in range(active):
                records.append(
                    CohortRecord(
                        client_id=f"C{index:02d}-{client:03d}",
                        start_period=start,
                        observation_period=start.shift(offset),
                        value=money(fee + Decimal(client % 3) * Decimal("100")),
                        contract_count=1 + client % 2,
                    )
                )
    return records


def _synthetic_ledger() -> tuple[list[CategoryRecord], list[Installment]]:
    categories = [
        CategoryRecord("RECEITAS", "Receitas", 0, ("R1",)),
        CategoryRecord("R1", "Receitas de Servicos", 1, ("R1.1", "R1.2")),
        CategoryRecord("R1.1", "Fee Mensal", 2),
        CategoryRecord("R1.2", "Projetos Pontuais", 2),
        CategoryRecord("DESPESAS", "Despesas", 0, ("D1", "D2")),
        CategoryRecord("D1", "Pessoal", 1, ("D1.1",)),
        CategoryRecord("D1.1", "Salarios", 2),
        CategoryRecord("D2", "Operacionais", 1, ("D2.1", "D2.2")),
        CategoryRecord("D2.1", "Licencas de Software", 2),
        CategoryRecord("D2.2", "Aluguel", 2),
    ]
    monthly = {
        "R1.1": Decimal("42000.00"),
        "R1.2": Decimal("6500.00"),
        "D1.1": Decimal("-21000.00"),
        "D2.1": Decimal("-3200.00"),
        "D2.2": Decimal("-4800.00"),
    }
    installments: list[Installment] = []
    for offset in range(6):
        period = FIRST_PERIOD.shift(offset)
        for category_id, amount in monthly.items():
            # one-off project spike in month four
            if category_id == "R1.2" and offset == 3:
                amount = amount * 4
            installments.append(
                Installment(
                    id=f"{category_id}-{period}",
                    description=f"{category_id} {period}",
                    period_posted=period,
                    gross_amount=money(amount + Decimal(offset * 150)),
                    category_id=category_id,
                )
            )
    return categories, installments


def main() -> None:
    settings = get_settings()
    configure_logging(settings)
    policy = DeviationPolicy.from_settings(settings)

    matrix = build_cohort_matrix(_synthetic_cohort_records(), RetentionMetric.value)
    cohort_payload = cohort_matrix_response(matrix, policy=policy)

    categories, installments = _synthetic_ledger()
    tree = aggregate_tree(build_ledger_tree(categories, installments))
    expand_state = {settings.revenue_root_id, settings.expense_root_id}
    visible = project_ledger_rows(tree, expand_state)
    ledger_payload = ledger_view_response(tree, visible, expand_state)

    analysis = analyze_cash_flow(tree)
    kpis = analysis.kpis
    logger.info(
        "Cash flow: revenue %s, expenses %s, net %s over %s months.",
        kpis.total_revenue,
        kpis.total_expenses,
        kpis.net_balance,
        kpis.period_count,
    )
    for row in analysis.months:
        logger.info("%s result %s (margin %s%%)", row.period, row.result, row.margin_pct)
    logger.info(
        "Average margin %s%%, best month %s, worst month %s, revenue %s, expenses %s.",
        analysis.average_margin_pct,
        analysis.best_period,
        analysis.worst_period,
        analysis.revenue_trend.value,
        analysis.expense_trend.value,
    )
    for anomaly in analysis.top_anomalies:
        logger.info("Anomaly in %s at %s: z=%s", anomaly.name, anomaly.period, anomaly.zscore)
    for metric in top_categories(category_metrics(tree), limit=3):
        logger.info("%s total %s trend %s anomalies %s", metric.name, metric.total, metric.trend.value, len(metric.anomalies))

    print(
        json.dumps(
            {
                "cohorts": cohort_payload.model_dump(mode="json"),
                "ledger": ledger_payload.model_dump(mode="json"),
            },
            indent=2,
        )
    )


if __name__ == "__main__":
    main()
