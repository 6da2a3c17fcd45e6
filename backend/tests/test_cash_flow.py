from decimal import Decimal

from turbodash.models.enums import Trend
from turbodash.services.cash_flow import (
    CategoryAnomaly,
    CategoryMetrics,
    analyze_cash_flow,
    cash_flow_kpis,
    category_metrics,
    monthly_cash_flow,
    rank_anomalies,
    top_categories,
)
from turbodash.services.ledger_tree import CategoryRecord, Installment, LedgerTree, build_ledger_tree
from turbodash.services.tree_aggregator import aggregate_tree
from turbodash.utils.decimal_math import money
from turbodash.utils.periods import Period


JAN, FEB, MAR, APR = (Period(2025, month) for month in range(1, 5))


def _installment(installment_id: str, category_id: str, amount: str, period: Period) -> Installment:
    return Installment(
        id=installment_id,
        description="",
        period_posted=period,
        gross_amount=money(amount),
        category_id=category_id,
    )


def _cash_flow_tree() -> LedgerTree:
    categories = [
        CategoryRecord("RECEITAS", "Receitas", level=0, children=("R1",)),
        CategoryRecord("R1", "Servicos", level=1, children=("R1.1",)),
        CategoryRecord("R1.1", "Mensalidades", level=2),
        CategoryRecord("DESPESAS", "Despesas", level=0, children=("D1",)),
        CategoryRecord("D1", "Pessoal", level=1, children=("D1.1", "D1.2")),
        CategoryRecord("D1.1", "Salarios", level=2),
        CategoryRecord("D1.2", "Beneficios", level=2),
    ]
    installments = [
        _installment("r1", "R1.1", "100.00", JAN),
        _installment("r2", "R1.1", "100.00", FEB),
        _installment("r3", "R1.1", "100.00", MAR),
        _installment("r4", "R1.1", "400.00", APR),
        _installment("d1", "D1.1", "-40.00", JAN),
        _installment("d2", "D1.1", "-40.00", FEB),
        _installment("d3", "D1.1", "-40.00", MAR),
        _installment("d4", "D1.2", "-500.00", APR),
    ]
    return aggregate_tree(build_ledger_tree(categories, installments))


def test_monthly_cash_flow_compares_absolute_expenses() -> None:
    rows = monthly_cash_flow(_cash_flow_tree())
    assert [row.period for row in rows] == [JAN, FEB, MAR, APR]
    january = rows[0]
    assert january.revenue == money("100.00")
    assert january.expenses == money("40.00")
    assert january.result == money("60.00")
    assert january.margin_pct == Decimal("60")
    april = rows[3]
    assert april.result == money("-100.00")
    assert april.margin_pct == Decimal("-25")


def test_margin_is_zero_without_revenue() -> None:
    rows = monthly_cash_flow(_cash_flow_tree(), [Period(2024, 12)])
    assert rows[0].revenue == money("0")
    assert rows[0].margin_pct == Decimal("0")


def test_custom_root_ids() -> None:
    rows = monthly_cash_flow(_cash_flow_tree(), revenue_root_id="R1", expense_root_id="D1.2")
    assert [row.period for row in rows] == [JAN, FEB, MAR, APR]
    assert rows[3].expenses == money("500.00")


def test_cash_flow_kpis() -> None:
    kpis = cash_flow_kpis(_cash_flow_tree())
    assert kpis.leaf_count == 3
    assert kpis.period_count == 4
    assert kpis.total_revenue == money("700.00")
    assert kpis.total_expenses == money("620.00")
    assert kpis.net_balance == money("80.00")


def test_category_metrics_trend_and_anomalies() -> None:
    metrics = {row.category_id: row for row in category_metrics(_cash_flow_tree())}
    assert set(metrics) == {"R1.1", "D1.1", "D1.2"}

    revenue = metrics["R1.1"]
    assert revenue.total == money("700.00")
    assert revenue.mean == money("175.00")
    assert revenue.variance == money("16875.00")
    assert revenue.trend == Trend.rising
    assert [anomaly.period for anomaly in revenue.anomalies] == [APR]
    assert revenue.anomalies[0].zscore > Decimal("1.5")

    salaries = metrics["D1.1"]
    assert salaries.total == money("120.00")
    assert salaries.trend == Trend.stable
    assert salaries.anomalies == []


def test_category_metrics_respects_min_level() -> None:
    assert category_metrics(_cash_flow_tree(), min_level=3) == []


def test_top_categories_sorted_by_total() -> None:
    ranked = top_categories(category_metrics(_cash_flow_tree()), limit=2)
    assert [row.category_id for row in ranked] == ["R1.1", "D1.2"]


def test_analysis_summarizes_months() -> None:
    analysis = analyze_cash_flow(_cash_flow_tree())
    assert analysis.kpis.net_balance == money("80.00")
    assert [row.period for row in analysis.months] == [JAN, FEB, MAR, APR]
    assert analysis.average_margin_pct == Decimal("38.75")
    # three months tie at 60.00; the first one wins
    assert analysis.best_period == JAN
    assert analysis.worst_period == APR
    assert analysis.revenue_trend == Trend.rising
    assert analysis.expense_trend == Trend.rising
    assert [(row.category_id, row.period) for row in analysis.top_anomalies] == [("R1.1", APR)]


def test_analysis_without_months() -> None:
    analysis = analyze_cash_flow(_cash_flow_tree(), [])
    assert analysis.months == []
    assert analysis.average_margin_pct == Decimal("0")
    assert analysis.best_period is None
    assert analysis.worst_period is None
    assert analysis.revenue_trend == Trend.stable
    assert analysis.expense_trend == Trend.stable
    assert analysis.top_anomalies == []


def test_single_month_trends_are_stable() -> None:
    analysis = analyze_cash_flow(_cash_flow_tree(), [APR])
    assert analysis.best_period == analysis.worst_period == APR
    assert analysis.revenue_trend == Trend.stable
    assert analysis.average_margin_pct == Decimal("-25")


def test_rank_anomalies_orders_by_magnitude_across_categories() -> None:
    def metrics(category_id: str, zscores: list[str]) -> CategoryMetrics:
        return CategoryMetrics(
            category_id=category_id,
            name=category_id,
            total=money("0"),
            mean=money("0"),
            variance=money("0"),
            trend=Trend.stable,
            anomalies=[
                CategoryAnomaly(period=Period(2025, index + 1), amount=money("1"), zscore=Decimal(zscore))
                for index, zscore in enumerate(zscores)
            ],
        )

    ranked = rank_anomalies([metrics("A", ["1.6", "-2.4"]), metrics("B", ["3.1", "-1.9"])], limit=3)
    assert [(row.category_id, row.zscore) for row in ranked] == [
        ("B", Decimal("3.1")),
        ("A", Decimal("-2.4")),
        ("B", Decimal("-1.9")),
    ]
