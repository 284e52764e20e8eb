"""Core compilation engine.

Pulls the current result from every registered provider, merges them
with the schema baseline and derives summary metrics.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import replace
from numbers import Real
from typing import Any, Mapping, Optional, Sequence

from onecalc.config.settings import DEFAULT_FORECAST_YEARS
from onecalc.errors import ProviderExecutionError
from onecalc.models.enums import ModuleKind
from onecalc.models.results import CompiledResults, ModuleResult, ProviderOutcome, freeze_year_map
from onecalc.models.schema import SchemaCollection
from onecalc.registry.registry import ModuleRegistry, ResultProvider

from .cache import CompilationCache
from .metrics import calculate_summary_metrics
from .totals import calculate_financial_totals, validate_horizon

logger = logging.getLogger(__name__)


def _check_year_values(module_id: str, field_name: str, values: Mapping[Any, Any]) -> dict[str, float]:
    checked: dict[str, float] = {}
    for year, value in values.items():
        if isinstance(value, bool) or not isinstance(value, Real):
            raise ProviderExecutionError(
                module_id, f"{field_name}[{year}] is not a number: {value!r}"
            )
        if not math.isfinite(value):
            raise ProviderExecutionError(
                module_id, f"{field_name}[{year}] is not finite: {value!r}"
            )
        checked[str(year)] = float(value)
    return checked


def _coerce_result(module_id: str, raw: Any) -> ModuleResult:
    """Normalize whatever a provider returned into a validated ModuleResult."""
    if raw is None:
        return ModuleResult(module_id=module_id, is_ready=False)

    if isinstance(raw, ModuleResult):
        result = raw
    elif isinstance(raw, Mapping):
        try:
            result = ModuleResult.from_mapping(raw, default_id=module_id)
        except (TypeError, ValueError) as e:
            raise ProviderExecutionError(module_id, f"malformed result: {e}") from e
    else:
        raise ProviderExecutionError(
            module_id, f"expected ModuleResult or mapping, got {type(raw).__name__}"
        )

    if not isinstance(result.total_costs_by_year, Mapping) or not isinstance(
        result.total_revenue_by_year, Mapping
    ):
        raise ProviderExecutionError(module_id, "year totals must be mappings")

    return replace(
        result,
        total_costs_by_year=freeze_year_map(_check_year_values(
            module_id, "total_costs_by_year", result.total_costs_by_year
        )),
        total_revenue_by_year=freeze_year_map(_check_year_values(
            module_id, "total_revenue_by_year", result.total_revenue_by_year
        )),
    )


def _run_provider(module_id: str, provider: ResultProvider) -> ModuleResult:
    try:
        raw = provider.get_result()
    except Exception as e:
        raise ProviderExecutionError(module_id, f"{type(e).__name__}: {e}") from e
    return _coerce_result(module_id, raw)


def invoke_provider(kind: ModuleKind, module_id: str, provider: ResultProvider) -> ProviderOutcome:
    """Run one provider and wrap its result (or failure) in an outcome."""
    try:
        result = _run_provider(module_id, provider)
    except ProviderExecutionError as e:
        logger.error(
            "Error getting results from %s module %s: %s",
            kind.value,
            module_id,
            e.reason,
            exc_info=e.__cause__,
        )
        return ProviderOutcome(module_id=module_id, kind=kind, skipped=True, skip_reason=e.reason)

    if not result.is_ready:
        return ProviderOutcome(module_id=module_id, kind=kind, skipped=True, skip_reason="not ready")

    return ProviderOutcome(module_id=module_id, kind=kind, result=result)


def collect_outcomes(registry: ModuleRegistry) -> tuple[ProviderOutcome, ...]:
    """Invoke every registered provider; one failure never aborts the rest."""
    return tuple(
        invoke_provider(kind, module_id, provider)
        for kind, module_id, provider in registry.entries()
    )


class CompilationEngine:
    """Stateless apart from a single-slot cache of the last compile."""

    def __init__(
        self,
        horizon: Optional[Sequence[str]] = None,
        cache_enabled: bool = True,
    ):
        self.horizon = validate_horizon(horizon or DEFAULT_FORECAST_YEARS)
        self._cache: Optional[CompilationCache] = CompilationCache() if cache_enabled else None

    def compile(
        self,
        registry: ModuleRegistry,
        schema: Optional[SchemaCollection] = None,
        previous: Optional[CompiledResults] = None,
    ) -> CompiledResults:
        """Compile all module results and the schema baseline.

        When the outcome is structurally equal to ``previous``, ``previous``
        itself is returned so callers can skip republishing by identity.
        """
        outcomes = collect_outcomes(registry)

        results = self._cache.lookup(outcomes, schema) if self._cache else None
        if results is None:
            results = self._build(outcomes, schema)
            if self._cache is not None:
                self._cache.store(outcomes, schema, results)

        if previous is not None and previous == results:
            return previous
        return results

    def clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def _build(
        self,
        outcomes: tuple[ProviderOutcome, ...],
        schema: Optional[SchemaCollection],
    ) -> CompiledResults:
        started = time.perf_counter()

        totals = calculate_financial_totals(self.horizon, outcomes, schema)
        metrics = calculate_summary_metrics(totals, self.horizon)

        results = CompiledResults(
            horizon=self.horizon,
            costs_by_year=totals.costs_by_year,
            revenues_by_year=totals.revenues_by_year,
            net_profit_by_year=totals.net_profit_by_year,
            cost_breakdown=totals.cost_breakdown,
            revenue_breakdown=totals.revenue_breakdown,
            summary_metrics=metrics,
            outcomes=outcomes,
            using_schema_data=schema is not None,
        )
        logger.debug(
            "Dashboard compilation: %d modules in %.2fms",
            len(outcomes),
            (time.perf_counter() - started) * 1000,
        )
        return results
