"""Compilation engine: aggregation, summary metrics and memoization."""

from .compiler import CompilationEngine, collect_outcomes, invoke_provider
from .metrics import calculate_summary_metrics, compound_growth_rate, find_break_even_year
from .totals import calculate_financial_totals, validate_horizon

__all__ = [
    "CompilationEngine",
    "collect_outcomes",
    "invoke_provider",
    "calculate_financial_totals",
    "calculate_summary_metrics",
    "compound_growth_rate",
    "find_break_even_year",
    "validate_horizon",
]
