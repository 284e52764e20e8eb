"""Immutable result structures produced by modules and by compilation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .enums import ModuleKind
from .schema import YearRange

NOT_WITHIN_FORECAST = "Not within forecast period"
NOT_CALCULATED = "Not calculated"
SCHEMA_SOURCE = "schema"

# Front-end modules report camelCase keys.
_MAPPING_ALIASES = {
    "moduleId": "module_id",
    "isReady": "is_ready",
    "usingSchemaBase": "using_schema_base",
    "totalCostsByYear": "total_costs_by_year",
    "totalRevenueByYear": "total_revenue_by_year",
}


@dataclass(frozen=True)
class ModuleResult:
    """What every registered provider returns on each compile cycle."""

    module_id: str
    is_ready: bool = True
    using_schema_base: bool = False
    total_costs_by_year: Mapping[str, float] = field(default_factory=dict)
    total_revenue_by_year: Mapping[str, float] = field(default_factory=dict)
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], default_id: str = "") -> ModuleResult:
        """Build a result from a plain mapping (snake_case or camelCase keys).

        Unknown keys are kept under ``details``. A mapping without an
        ``isReady`` flag is treated as not ready.
        """
        known: dict[str, Any] = {}
        details: dict[str, Any] = dict(raw.get("details") or {})
        for key, value in raw.items():
            name = _MAPPING_ALIASES.get(key, key)
            if name in ("module_id", "is_ready", "using_schema_base",
                        "total_costs_by_year", "total_revenue_by_year"):
                known[name] = value
            elif name != "details":
                details[key] = value

        return cls(
            module_id=str(known.get("module_id") or default_id),
            is_ready=bool(known.get("is_ready", False)),
            using_schema_base=known.get("using_schema_base") is True,
            total_costs_by_year=_year_map(known.get("total_costs_by_year")),
            total_revenue_by_year=_year_map(known.get("total_revenue_by_year")),
            details=details,
        )


def _year_map(raw: Any) -> dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise TypeError(f"Expected a year -> value mapping, got {type(raw).__name__}")
    return {str(year): value for year, value in raw.items()}


def freeze_year_map(values: Mapping[str, float]) -> Mapping[str, float]:
    """Read-only copy of a year -> value map."""
    return MappingProxyType(dict(values))


def freeze_breakdown(
    breakdown: Mapping[str, Mapping[str, float]],
) -> Mapping[str, Mapping[str, float]]:
    return MappingProxyType({year: freeze_year_map(b) for year, b in breakdown.items()})


@dataclass(frozen=True)
class ProviderOutcome:
    """Audit record for one provider invocation during a compile."""

    module_id: str
    kind: ModuleKind
    result: Optional[ModuleResult] = None
    skipped: bool = False
    skip_reason: Optional[str] = None

    @property
    def contributes(self) -> bool:
        """True when the result is ready and not already baked into the schema."""
        return (
            not self.skipped
            and self.result is not None
            and not self.result.using_schema_base
        )


@dataclass(frozen=True)
class SummaryMetrics:
    total_three_year_revenue: float = 0.0
    total_three_year_costs: float = 0.0
    total_three_year_profit: float = 0.0
    average_yearly_revenue: float = 0.0
    average_yearly_costs: float = 0.0
    revenue_growth_rate: float = 0.0
    cost_growth_rate: float = 0.0
    break_even_year: str = NOT_WITHIN_FORECAST

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalThreeYearRevenue": self.total_three_year_revenue,
            "totalThreeYearCosts": self.total_three_year_costs,
            "totalThreeYearProfit": self.total_three_year_profit,
            "averageYearlyRevenue": self.average_yearly_revenue,
            "averageYearlyCosts": self.average_yearly_costs,
            "revenueGrowthRate": self.revenue_growth_rate,
            "costGrowthRate": self.cost_growth_rate,
            "breakEvenYear": self.break_even_year,
        }


@dataclass(frozen=True)
class FinancialTotals:
    """Per-year totals and per-source breakdowns before metric derivation."""

    costs_by_year: dict[str, float]
    revenues_by_year: dict[str, float]
    net_profit_by_year: dict[str, float]
    cost_breakdown: dict[str, dict[str, float]]
    revenue_breakdown: dict[str, dict[str, float]]


@dataclass(frozen=True)
class CompiledResults:
    """Published snapshot of one compilation cycle.

    ``last_updated`` is excluded from equality so that recompiling
    unchanged inputs compares equal to the previous snapshot.
    """

    horizon: tuple[str, ...]
    costs_by_year: Mapping[str, float]
    revenues_by_year: Mapping[str, float]
    net_profit_by_year: Mapping[str, float]
    cost_breakdown: Mapping[str, Mapping[str, float]]
    revenue_breakdown: Mapping[str, Mapping[str, float]]
    summary_metrics: SummaryMetrics
    outcomes: tuple[ProviderOutcome, ...] = ()
    using_schema_data: bool = False
    last_updated: datetime = field(
        default_factory=lambda: datetime.now(tz=timezone.utc), compare=False
    )

    def __post_init__(self) -> None:
        # Published snapshots are shared, so their maps are read-only.
        for name in ("costs_by_year", "revenues_by_year", "net_profit_by_year"):
            object.__setattr__(self, name, freeze_year_map(getattr(self, name)))
        for name in ("cost_breakdown", "revenue_breakdown"):
            object.__setattr__(self, name, freeze_breakdown(getattr(self, name)))

    @property
    def skipped_modules(self) -> list[str]:
        return [o.module_id for o in self.outcomes if o.skipped]

    def to_dict(self) -> dict[str, Any]:
        """Render the camelCase layout the dashboard front end consumes."""
        return {
            "horizon": list(self.horizon),
            "costsByYear": dict(self.costs_by_year),
            "revenuesByYear": dict(self.revenues_by_year),
            "netProfitByYear": dict(self.net_profit_by_year),
            "costBreakdown": {y: dict(b) for y, b in self.cost_breakdown.items()},
            "revenueBreakdown": {y: dict(b) for y, b in self.revenue_breakdown.items()},
            "summaryMetrics": self.summary_metrics.to_dict(),
            "modules": [
                {
                    "moduleId": o.module_id,
                    "kind": o.kind.value,
                    "skipped": o.skipped,
                    "skipReason": o.skip_reason,
                    "usingSchemaBase": bool(o.result and o.result.using_schema_base),
                }
                for o in self.outcomes
            ],
            "usingSchemaData": self.using_schema_data,
            "lastUpdated": self.last_updated.isoformat(),
        }


def default_compiled_results(horizon: tuple[str, ...]) -> CompiledResults:
    """Placeholder snapshot used before the first compile."""
    zeros = {year: 0.0 for year in horizon}
    return CompiledResults(
        horizon=tuple(horizon),
        costs_by_year=dict(zeros),
        revenues_by_year=dict(zeros),
        net_profit_by_year=dict(zeros),
        cost_breakdown={year: {} for year in horizon},
        revenue_breakdown={year: {} for year in horizon},
        summary_metrics=SummaryMetrics(break_even_year=NOT_CALCULATED),
    )


@dataclass(frozen=True)
class SchemaTotals:
    """Min/max totals per period computed straight from the schema."""

    costs: dict[str, YearRange]
    revenue: dict[str, YearRange]
    net: dict[str, YearRange]

    def to_dict(self) -> dict[str, Any]:
        return {
            section: {year: r.model_dump() for year, r in getattr(self, section).items()}
            for section in ("costs", "revenue", "net")
        }
