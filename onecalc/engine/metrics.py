"""Summary metrics derived from per-period totals."""

from __future__ import annotations

from typing import Mapping, Sequence

from onecalc.models.results import NOT_WITHIN_FORECAST, FinancialTotals, SummaryMetrics

# Rollups cover the first three periods of the horizon.
ROLLUP_PERIODS = 3


def compound_growth_rate(first: float, third: float) -> float:
    """Annualized growth over the two-period span from the first to the third period."""
    if first > 0 and third >= 0:
        return (third / first) ** (1 / 2) - 1
    return 0.0


def find_break_even_year(
    net_profit_by_year: Mapping[str, float],
    horizon: Sequence[str],
) -> str:
    """First period with strictly positive net profit, else the sentinel."""
    for year in horizon:
        if net_profit_by_year.get(year, 0.0) > 0:
            return year
    return NOT_WITHIN_FORECAST


def calculate_summary_metrics(
    totals: FinancialTotals,
    horizon: Sequence[str],
) -> SummaryMetrics:
    first, second, third = horizon[:ROLLUP_PERIODS]
    rollup = (first, second, third)

    three_year_revenue = sum(totals.revenues_by_year[y] for y in rollup)
    three_year_costs = sum(totals.costs_by_year[y] for y in rollup)

    return SummaryMetrics(
        total_three_year_revenue=three_year_revenue,
        total_three_year_costs=three_year_costs,
        total_three_year_profit=three_year_revenue - three_year_costs,
        average_yearly_revenue=three_year_revenue / ROLLUP_PERIODS,
        average_yearly_costs=three_year_costs / ROLLUP_PERIODS,
        revenue_growth_rate=compound_growth_rate(
            totals.revenues_by_year[first], totals.revenues_by_year[third]
        ),
        cost_growth_rate=compound_growth_rate(
            totals.costs_by_year[first], totals.costs_by_year[third]
        ),
        break_even_year=find_break_even_year(totals.net_profit_by_year, horizon),
    )
