from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from statistics import pvariance

from turbodash.core.config import get_settings
from turbodash.models.enums import Trend
from turbodash.services.ledger_tree import LedgerNode, LedgerTree
from turbodash.utils.decimal_math import HUNDRED, money, pct
from turbodash.utils.periods import Period


@dataclass(frozen=True)
class MonthlyCashFlow:
    period: Period
    revenue: Decimal
    expenses: Decimal
    result: Decimal
    margin_pct: Decimal


@dataclass(frozen=True)
class CashFlowKpis:
    leaf_count: int
    period_count: int
    total_revenue: Decimal
    total_expenses: Decimal
    net_balance: Decimal


@dataclass(frozen=True)
class CategoryAnomaly:
    period: Period
    amount: Decimal
    zscore: Decimal


@dataclass(frozen=True)
class CategoryMetrics:
    category_id: str
    name: str
    total: Decimal
    mean: Decimal
    variance: Decimal
    trend: Trend
    anomalies: list[CategoryAnomaly]


def _root_amount(node: LedgerNode | None, period: Period) -> Decimal:
    if node is None:
        return money(0)
    return money(node.values_by_period.get(period, money(0)))


def _resolve_periods(roots: list[LedgerNode | None], periods: Sequence[Period] | None) -> list[Period]:
    if periods is not None:
        return list(periods)
    found: set[Period] = set()
    for node in roots:
        if node is not None:
            found.update(node.values_by_period)
    return sorted(found)


def monthly_cash_flow(
    tree: LedgerTree,
    periods: Sequence[Period] | None = None,
    *,
    revenue_root_id: str | None = None,
    expense_root_id: str | None = None,
) -> list[MonthlyCashFlow]:
    """Revenue against expenses per period from an aggregated tree.

    Expense postings may arrive negated or not; they are compared in absolute
    value. A missing root or period counts as zero here.
    """
    settings = get_settings()
    revenue_node = tree.get(revenue_root_id or settings.revenue_root_id)
    expense_node = tree.get(expense_root_id or settings.expense_root_id)

    rows: list[MonthlyCashFlow] = []
    for period in _resolve_periods([revenue_node, expense_node], periods):
        revenue = _root_amount(revenue_node, period)
        expenses = money(abs(_root_amount(expense_node, period)))
        result = money(revenue - expenses)
        margin = pct(result / revenue * HUNDRED) if revenue > 0 else pct(0)
        rows.append(
            MonthlyCashFlow(
                period=period,
                revenue=revenue,
                expenses=expenses,
                result=result,
                margin_pct=margin,
            )
        )
    return rows


def cash_flow_kpis(
    tree: LedgerTree,
    periods: Sequence[Period] | None = None,
    *,
    revenue_root_id: str | None = None,
    expense_root_id: str | None = None,
) -> CashFlowKpis:
    rows = monthly_cash_flow(
        tree,
        periods,
        revenue_root_id=revenue_root_id,
        expense_root_id=expense_root_id,
    )
    total_revenue = money(sum((row.revenue for row in rows), Decimal("0")))
    total_expenses = money(sum((row.expenses for row in rows), Decimal("0")))
    return CashFlowKpis(
        leaf_count=sum(1 for _ in tree.leaves()),
        period_count=len(periods) if periods is not None else len(tree.periods()),
        total_revenue=total_revenue,
        total_expenses=total_expenses,
        net_balance=money(total_revenue - total_expenses),
    )


def _trend(values: list[Decimal], threshold: Decimal) -> Trend:
    if len(values) < 3:
        return Trend.stable
    half = len(values) // 2
    first, second = values[:half], values[half:]
    avg_first = sum(first, Decimal("0")) / len(first)
    avg_second = sum(second, Decimal("0")) / len(second)
    change = (avg_second - avg_first) / avg_first * HUNDRED
    if change > threshold:
        return Trend.rising
    if change < -threshold:
        return Trend.falling
    return Trend.stable


def category_metrics(
    tree: LedgerTree,
    periods: Sequence[Period] | None = None,
    *,
    min_level: int | None = None,
    trend_threshold: Decimal | None = None,
    anomaly_zscore: Decimal | None = None,
) -> list[CategoryMetrics]:
    """Per-leaf activity statistics over ``periods``, in absolute amounts.

    Only months with activity count toward the mean and variance. A month is
    an anomaly when its z-score magnitude exceeds ``anomaly_zscore``.
    Leaves with no activity are omitted.
    """
    settings = get_settings()
    min_level = settings.category_metrics_min_level if min_level is None else min_level
    trend_threshold = settings.category_trend_threshold_pct if trend_threshold is None else trend_threshold
    anomaly_zscore = settings.category_anomaly_zscore if anomaly_zscore is None else anomaly_zscore
    periods = tree.periods() if periods is None else list(periods)

    results: list[CategoryMetrics] = []
    for node in tree.leaves():
        if node.level < min_level:
            continue
        amounts = [abs(node.values_by_period.get(period, Decimal("0"))) for period in periods]
        active = [amount for amount in amounts if amount > 0]
        if not active:
            continue

        total = sum(active, Decimal("0"))
        mean = total / len(active)
        variance = pvariance(active, mu=mean)
        std_dev = variance.sqrt()

        anomalies: list[CategoryAnomaly] = []
        if std_dev > 0:
            for period, amount in zip(periods, amounts):
                if amount <= 0:
                    continue
                zscore = (amount - mean) / std_dev
                if abs(zscore) > anomaly_zscore:
                    anomalies.append(CategoryAnomaly(period=period, amount=money(amount), zscore=pct(zscore)))

        results.append(
            CategoryMetrics(
                category_id=node.category_id,
                name=node.name,
                total=money(total),
                mean=money(mean),
                variance=money(variance),
                trend=_trend(active, trend_threshold),
                anomalies=anomalies,
            )
        )
    return results


def top_categories(metrics: Sequence[CategoryMetrics], limit: int = 10) -> list[CategoryMetrics]:
    return sorted(metrics, key=lambda row: row.total, reverse=True)[:limit]


@dataclass(frozen=True)
class RankedAnomaly:
    category_id: str
    name: str
    period: Period
    amount: Decimal
    zscore: Decimal


@dataclass(frozen=True)
class CashFlowAnalysis:
    kpis: CashFlowKpis
    months: list[MonthlyCashFlow]
    average_margin_pct: Decimal
    best_period: Period | None
    worst_period: Period | None
    revenue_trend: Trend
    expense_trend: Trend
    top_anomalies: list[RankedAnomaly]


def rank_anomalies(metrics: Sequence[CategoryMetrics], limit: int = 10) -> list[RankedAnomaly]:
    """Anomalies of every category, strongest first by z-score magnitude."""
    ranked = [
        RankedAnomaly(
            category_id=metric.category_id,
            name=metric.name,
            period=anomaly.period,
            amount=anomaly.amount,
            zscore=anomaly.zscore,
        )
        for metric in metrics
        for anomaly in metric.anomalies
    ]
    ranked.sort(key=lambda row: abs(row.zscore), reverse=True)
    return ranked[:limit]


def _endpoint_trend(first: Decimal, last: Decimal) -> Trend:
    if last > first:
        return Trend.rising
    if last < first:
        return Trend.falling
    return Trend.stable


def analyze_cash_flow(
    tree: LedgerTree,
    periods: Sequence[Period] | None = None,
    *,
    revenue_root_id: str | None = None,
    expense_root_id: str | None = None,
    anomaly_limit: int = 10,
) -> CashFlowAnalysis:
    """Period-level summary of an aggregated tree.

    Revenue and expense trends compare the last month against the first and
    are stable with fewer than two months. The best and worst months are the
    first ones reaching the highest and lowest result; both are None, and the
    average margin is 0, when there are no months.
    """
    months = monthly_cash_flow(
        tree,
        periods,
        revenue_root_id=revenue_root_id,
        expense_root_id=expense_root_id,
    )
    kpis = cash_flow_kpis(
        tree,
        periods,
        revenue_root_id=revenue_root_id,
        expense_root_id=expense_root_id,
    )

    best: MonthlyCashFlow | None = None
    worst: MonthlyCashFlow | None = None
    for month in months:
        if best is None or month.result > best.result:
            best = month
        if worst is None or month.result < worst.result:
            worst = month

    if months:
        average_margin = pct(sum((month.margin_pct for month in months), Decimal("0")) / len(months))
    else:
        average_margin = pct(0)

    if len(months) >= 2:
        revenue_trend = _endpoint_trend(months[0].revenue, months[-1].revenue)
        expense_trend = _endpoint_trend(months[0].expenses, months[-1].expenses)
    else:
        revenue_trend = expense_trend = Trend.stable

    return CashFlowAnalysis(
        kpis=kpis,
        months=months,
        average_margin_pct=average_margin,
        best_period=best.period if best else None,
        worst_period=worst.period if worst else None,
        revenue_trend=revenue_trend,
        expense_trend=expense_trend,
        top_anomalies=rank_anomalies(category_metrics(tree, periods), limit=anomaly_limit),
    )
