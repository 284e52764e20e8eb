"""Shared test fixtures for the OneCalc test suite."""

import pytest

from onecalc.config.settings import Settings
from onecalc.models.results import ModuleResult
from onecalc.models.schema import SchemaCollection
from onecalc.schema.store import SchemaStore

HORIZON = ("2026", "2027", "2028")


def make_result(module_id, costs=None, revenue=None, ready=True, schema_base=False):
    """Helper to create a ModuleResult with minimal boilerplate."""
    return ModuleResult(
        module_id=module_id,
        is_ready=ready,
        using_schema_base=schema_base,
        total_costs_by_year=costs or {},
        total_revenue_by_year=revenue or {},
    )


def make_item(item_id, category, subcategory, ranges, name=None):
    """Build a wire-format schema item from ``{year: (min, max)}``."""
    return {
        "id": item_id,
        "name": name or item_id,
        "category": category,
        "subcategory": subcategory,
        "yearData": {year: {"min": lo, "max": hi} for year, (lo, hi) in ranges.items()},
        "metadata": {},
    }


def make_schema_blob(*items):
    return {
        "version": "1.0",
        "lastUpdated": "2025-01-01T00:00:00Z",
        "categories": {"cost": ["employee"], "revenue": ["fees"]},
        "subcategoryLabels": {"employee": "Employee Costs", "fees": "Fees"},
        "items": {item["id"]: item for item in items},
    }


@pytest.fixture
def settings() -> Settings:
    return Settings(forecast_years=list(HORIZON), compile_cache_enabled=True)


@pytest.fixture
def small_schema() -> SchemaCollection:
    """One cost and one revenue item with tight ranges.

    Midpoints: costs 100 / 110 / 120, revenue 50 / 150 / 250.
    """
    return SchemaCollection.model_validate(
        make_schema_blob(
            make_item(
                "cost.employee.executives", "cost", "employee",
                {"2026": (90, 110), "2027": (100, 120), "2028": (110, 130)},
                name="Executives",
            ),
            make_item(
                "revenue.fees.transaction", "revenue", "fees",
                {"2026": (40, 60), "2027": (140, 160), "2028": (240, 260)},
                name="Transaction Fees",
            ),
        )
    )


@pytest.fixture
def store(small_schema) -> SchemaStore:
    return SchemaStore(small_schema, horizon=HORIZON)
