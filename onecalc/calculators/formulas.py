"""Per-module calculator formulas.

Each function is a pure calculation with no side effects. Parameters are
keyed by period; a period missing from a parameter counts as zero.
"""

from __future__ import annotations

from typing import Any, Sequence

from pydantic import BaseModel, Field, field_validator

YearValues = dict[str, float]


def _per_year(values: dict[int, float]) -> YearValues:
    return {str(year): value for year, value in values.items()}


def _non_negative(v: YearValues) -> YearValues:
    for year, value in v.items():
        if value < 0:
            raise ValueError(f"value for {year} cannot be negative, got {value}")
    return v


class EmployeeCostsParams(BaseModel):
    """Head counts, average salaries and benefits uplift per period."""

    executive_count: YearValues = Field(
        default_factory=lambda: _per_year({2026: 3, 2027: 4, 2028: 5, 2029: 5})
    )
    executive_salary: YearValues = Field(
        default_factory=lambda: _per_year({2026: 200000, 2027: 210000, 2028: 220500, 2029: 231525})
    )
    managers_count: YearValues = Field(
        default_factory=lambda: _per_year({2026: 5, 2027: 8, 2028: 12, 2029: 15})
    )
    manager_salary: YearValues = Field(
        default_factory=lambda: _per_year({2026: 120000, 2027: 126000, 2028: 132300, 2029: 138915})
    )
    developers_count: YearValues = Field(
        default_factory=lambda: _per_year({2026: 15, 2027: 25, 2028: 35, 2029: 45})
    )
    developer_salary: YearValues = Field(
        default_factory=lambda: _per_year({2026: 100000, 2027: 105000, 2028: 110250, 2029: 115763})
    )
    support_staff_count: YearValues = Field(
        default_factory=lambda: _per_year({2026: 7, 2027: 12, 2028: 18, 2029: 25})
    )
    support_staff_salary: YearValues = Field(
        default_factory=lambda: _per_year({2026: 60000, 2027: 63000, 2028: 66150, 2029: 69458})
    )
    benefits_percentage: YearValues = Field(
        default_factory=lambda: _per_year({2026: 30, 2027: 30, 2028: 30, 2029: 30})
    )

    @field_validator("*")
    @classmethod
    def values_non_negative(cls, v: YearValues) -> YearValues:
        return _non_negative(v)


class TransactionFeesParams(BaseModel):
    """Transaction volume, average order value and fee rate per period."""

    transaction_volume: YearValues = Field(
        default_factory=lambda: _per_year({2026: 100000, 2027: 250000, 2028: 500000, 2029: 1000000})
    )
    average_order_value: YearValues = Field(
        default_factory=lambda: _per_year({2026: 500, 2027: 525, 2028: 550, 2029: 575})
    )
    fee_percentage: YearValues = Field(
        default_factory=lambda: _per_year({2026: 2.5, 2027: 2.5, 2028: 2.5, 2029: 2.5})
    )

    @field_validator("*")
    @classmethod
    def values_non_negative(cls, v: YearValues) -> YearValues:
        return _non_negative(v)


_ROLES = (
    ("executives", "executive_count", "executive_salary"),
    ("managers", "managers_count", "manager_salary"),
    ("developers", "developers_count", "developer_salary"),
    ("support_staff", "support_staff_count", "support_staff_salary"),
)


def calculate_employee_costs(
    params: EmployeeCostsParams,
    horizon: Sequence[str],
) -> dict[str, Any]:
    """Cost_r = count_r * salary_r * (1 + benefits% / 100), summed over roles."""
    totals: YearValues = {}
    counts: YearValues = {}
    average_salary: YearValues = {}
    breakdown: dict[str, dict[str, Any]] = {}

    for year in horizon:
        uplift = 1 + params.benefits_percentage.get(year, 0) / 100
        year_breakdown: dict[str, Any] = {}
        head_count = 0.0
        base_payroll = 0.0
        total_cost = 0.0

        for role, count_field, salary_field in _ROLES:
            count = getattr(params, count_field).get(year, 0)
            salary = getattr(params, salary_field).get(year, 0)
            role_cost = count * salary * uplift
            year_breakdown[role] = {
                "count": count,
                "base_salary": salary,
                "total_cost": role_cost,
            }
            head_count += count
            base_payroll += count * salary
            total_cost += role_cost

        year_breakdown["benefits"] = {
            "percentage": params.benefits_percentage.get(year, 0),
            "total_cost": total_cost - base_payroll,
        }

        totals[year] = total_cost
        counts[year] = head_count
        average_salary[year] = base_payroll / head_count if head_count > 0 else 0.0
        breakdown[year] = year_breakdown

    return {
        "total_costs_by_year": totals,
        "employee_counts_by_year": counts,
        "average_salary_by_year": average_salary,
        "breakdown_by_year": breakdown,
    }


def calculate_transaction_fees(
    params: TransactionFeesParams,
    horizon: Sequence[str],
) -> dict[str, Any]:
    """Revenue = volume * average_order_value * fee% / 100."""
    totals: YearValues = {}
    details: dict[str, dict[str, float]] = {}

    for year in horizon:
        volume = params.transaction_volume.get(year, 0)
        order_value = params.average_order_value.get(year, 0)
        fee_pct = params.fee_percentage.get(year, 0)

        revenue_per_transaction = order_value * (fee_pct / 100)
        total_revenue = volume * revenue_per_transaction

        totals[year] = total_revenue
        details[year] = {
            "transaction_volume": volume,
            "average_order_value": order_value,
            "fee_percentage": fee_pct,
            "revenue_per_transaction": revenue_per_transaction,
            "total_revenue": total_revenue,
            "total_transaction_value": volume * order_value,
        }

    return {
        "total_revenue_by_year": totals,
        "details_by_year": details,
    }
