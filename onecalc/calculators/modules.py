"""Built-in calculator modules implementing the ResultProvider protocol."""

from __future__ import annotations

from typing import Any, ClassVar, Mapping, Optional, Sequence

from pydantic import BaseModel

from onecalc.config.settings import DEFAULT_FORECAST_YEARS
from onecalc.models.enums import Category, ModuleKind
from onecalc.models.results import ModuleResult
from onecalc.schema.store import SchemaStore

from .formulas import (
    EmployeeCostsParams,
    TransactionFeesParams,
    calculate_employee_costs,
    calculate_transaction_fees,
)
from .registry import register_module_type


class CalculatorModule:
    """Shared state for a parameterized module: params, pause and schema-base flags."""

    params_model: ClassVar[Optional[type[BaseModel]]] = None

    def __init__(
        self,
        module_id: str,
        horizon: Optional[Sequence[str]] = None,
        params: Optional[BaseModel | Mapping[str, Any]] = None,
        paused: bool = False,
        use_schema_as_base: bool = False,
        schema_store: Optional[SchemaStore] = None,
    ):
        self.module_id = module_id
        self.horizon = tuple(horizon or DEFAULT_FORECAST_YEARS)
        self.paused = paused
        self.use_schema_as_base = use_schema_as_base
        self.schema_store = schema_store
        self.params = self._coerce_params(params)

    def _coerce_params(self, params: Optional[BaseModel | Mapping[str, Any]]) -> Optional[BaseModel]:
        if self.params_model is None:
            return None
        if params is None:
            return self.params_model()
        if isinstance(params, self.params_model):
            return params
        return self.params_model.model_validate(dict(params))

    def update_params(self, **changes: Any) -> None:
        """Replace individual parameter series; the result is revalidated."""
        if self.params is None:
            raise ValueError(f"Module '{self.module_id}' takes no parameters")
        merged = {**self.params.model_dump(), **changes}
        self.params = self.params_model.model_validate(merged)

    def get_result(self) -> ModuleResult:
        if self.paused:
            return ModuleResult(module_id=self.module_id, is_ready=False)
        return self.compute()

    def compute(self) -> ModuleResult:
        raise NotImplementedError


@register_module_type(
    name="employee-costs",
    label="Employee Costs",
    description=(
        "Payroll cost per period from head counts and salaries by role, "
        "uplifted by a benefits percentage."
    ),
    kind=ModuleKind.COSTS,
    default_module_id="employeeCosts",
)
class EmployeeCostsModule(CalculatorModule):
    params_model = EmployeeCostsParams

    def compute(self) -> ModuleResult:
        calc = calculate_employee_costs(self.params, self.horizon)
        return ModuleResult(
            module_id=self.module_id,
            is_ready=True,
            using_schema_base=self.use_schema_as_base,
            total_costs_by_year=calc["total_costs_by_year"],
            details={
                "employee_counts_by_year": calc["employee_counts_by_year"],
                "average_salary_by_year": calc["average_salary_by_year"],
                "breakdown_by_year": calc["breakdown_by_year"],
            },
        )


@register_module_type(
    name="transaction-fees",
    label="Transaction Fees",
    description=(
        "Fee revenue per period from transaction volume, average order "
        "value and fee percentage."
    ),
    kind=ModuleKind.REVENUE,
    default_module_id="transactionFees",
)
class TransactionFeesModule(CalculatorModule):
    params_model = TransactionFeesParams

    def compute(self) -> ModuleResult:
        calc = calculate_transaction_fees(self.params, self.horizon)
        return ModuleResult(
            module_id=self.module_id,
            is_ready=True,
            using_schema_base=self.use_schema_as_base,
            total_revenue_by_year=calc["total_revenue_by_year"],
            details={"details_by_year": calc["details_by_year"]},
        )


@register_module_type(
    name="schema-baseline",
    label="Schema Calculator",
    description=(
        "Reports the schema midpoint totals. Flagged as schema-based, so it "
        "is shown but never added on top of the schema baseline."
    ),
    kind=ModuleKind.CALCULATOR,
    default_module_id="schemaCalculator",
)
class SchemaBaselineModule(CalculatorModule):
    def __init__(self, module_id: str, **kwargs: Any):
        kwargs["use_schema_as_base"] = True
        super().__init__(module_id, **kwargs)

    def compute(self) -> ModuleResult:
        if self.schema_store is None:
            return ModuleResult(module_id=self.module_id, is_ready=False)

        schema = self.schema_store.snapshot()
        costs = {year: 0.0 for year in self.horizon}
        revenue = {year: 0.0 for year in self.horizon}
        for item in schema.items.values():
            target = costs if item.category == Category.COST else revenue
            for year in self.horizon:
                if year in item.year_data:
                    target[year] += item.year_data[year].midpoint

        return ModuleResult(
            module_id=self.module_id,
            is_ready=True,
            using_schema_base=True,
            total_costs_by_year=costs,
            total_revenue_by_year=revenue,
            details={
                "net_profit_by_year": {y: revenue[y] - costs[y] for y in self.horizon},
                "item_count": len(schema.items),
            },
        )
