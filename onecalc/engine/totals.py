"""Per-period aggregation of schema baseline and module contributions."""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Sequence

from onecalc.models.enums import Category, ModuleKind
from onecalc.models.results import SCHEMA_SOURCE, FinancialTotals, ProviderOutcome
from onecalc.models.schema import SchemaCollection

# Contribution order: calculator modules first, then cost, then revenue.
_CONTRIBUTION_ORDER = {
    ModuleKind.CALCULATOR: 0,
    ModuleKind.COSTS: 1,
    ModuleKind.REVENUE: 2,
}


def validate_horizon(horizon: Iterable[str]) -> tuple[str, ...]:
    """Normalize a horizon to a tuple of unique string keys (at least three)."""
    years = tuple(str(y) for y in horizon)
    if len(years) < 3:
        raise ValueError(f"Horizon needs at least three periods, got {list(years)}")
    if len(set(years)) != len(years):
        raise ValueError(f"Horizon periods must be unique, got {list(years)}")
    return years


def _add_contribution(
    totals: dict[str, float],
    breakdown: dict[str, dict[str, float]],
    values: Mapping[str, float],
    source_id: str,
) -> None:
    for year in totals:
        value = values.get(year)
        if not value:
            continue
        totals[year] += value
        breakdown[year][source_id] = breakdown[year].get(source_id, 0.0) + value


def calculate_financial_totals(
    horizon: Sequence[str],
    outcomes: Iterable[ProviderOutcome],
    schema: Optional[SchemaCollection] = None,
) -> FinancialTotals:
    """Merge the schema baseline and module results into per-period totals.

    - Each schema item contributes the midpoint of its min/max range,
      recorded under the ``"schema"`` breakdown key.
    - Calculator modules contribute costs and revenue, cost modules only
      costs, revenue modules only revenue. Breakdown keys are registry ids.
    - Modules flagged ``using_schema_base`` are skipped: their figures are
      already part of the schema baseline.
    """
    costs = {year: 0.0 for year in horizon}
    revenues = {year: 0.0 for year in horizon}
    cost_breakdown: dict[str, dict[str, float]] = {year: {} for year in horizon}
    revenue_breakdown: dict[str, dict[str, float]] = {year: {} for year in horizon}

    if schema is not None:
        for year in horizon:
            cost_breakdown[year][SCHEMA_SOURCE] = 0.0
            revenue_breakdown[year][SCHEMA_SOURCE] = 0.0

        for item in schema.items.values():
            if item.category == Category.COST:
                target, breakdown = costs, cost_breakdown
            else:
                target, breakdown = revenues, revenue_breakdown
            for year in horizon:
                year_range = item.year_data.get(year)
                if year_range is None:
                    continue
                target[year] += year_range.midpoint
                breakdown[year][SCHEMA_SOURCE] += year_range.midpoint

    ordered = sorted(outcomes, key=lambda o: _CONTRIBUTION_ORDER[o.kind])
    for outcome in ordered:
        if not outcome.contributes:
            continue
        result = outcome.result
        if outcome.kind in (ModuleKind.CALCULATOR, ModuleKind.COSTS):
            _add_contribution(costs, cost_breakdown, result.total_costs_by_year, outcome.module_id)
        if outcome.kind in (ModuleKind.CALCULATOR, ModuleKind.REVENUE):
            _add_contribution(
                revenues, revenue_breakdown, result.total_revenue_by_year, outcome.module_id
            )

    net_profit = {year: revenues[year] - costs[year] for year in horizon}

    return FinancialTotals(
        costs_by_year=costs,
        revenues_by_year=revenues,
        net_profit_by_year=net_profit,
        cost_breakdown=cost_breakdown,
        revenue_breakdown=revenue_breakdown,
    )
