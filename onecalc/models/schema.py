"""Pydantic models for the forecast schema (line items and the collection)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .enums import Category


class YearRange(BaseModel):
    """Min/max forecast range for a single period."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    min: float = Field(description="Worst-case value for the period")
    max: float = Field(description="Best-case value for the period")

    @model_validator(mode="after")
    def min_le_max(self) -> YearRange:
        if self.min > self.max:
            raise ValueError(f"min ({self.min}) must be <= max ({self.max})")
        return self

    @property
    def midpoint(self) -> float:
        return (self.min + self.max) / 2


class SchemaItem(BaseModel):
    """A single forecastable cost or revenue line."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(description="Dotted path, e.g. cost.employee.executives")
    name: str = ""
    category: Category
    subcategory: str
    year_data: dict[str, YearRange] = Field(default_factory=dict, alias="yearData")
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def id_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Schema item id must be non-empty")
        return v


class SchemaCollection(BaseModel):
    """Aggregate root: every line item plus category declarations."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: str
    last_updated: str = Field(default="", alias="lastUpdated")
    categories: dict[str, list[str]]
    subcategory_labels: dict[str, str] = Field(
        default_factory=dict, alias="subcategoryLabels"
    )
    items: dict[str, SchemaItem]
    metrics: dict[str, dict[str, YearRange]] = Field(default_factory=dict)
    scenario_parameters: dict[str, dict[str, Any]] = Field(
        default_factory=dict, alias="scenarioParameters"
    )

    @model_validator(mode="after")
    def item_keys_match_ids(self) -> SchemaCollection:
        for key, item in self.items.items():
            if key != item.id:
                raise ValueError(
                    f"Item key '{key}' does not match item id '{item.id}'"
                )
        return self

    def undeclared_subcategories(self) -> list[str]:
        """Return ids of items whose subcategory is not declared for their category."""
        return [
            item.id
            for item in self.items.values()
            if item.subcategory not in self.categories.get(item.category.value, [])
        ]

    def items_in(self, category: Category) -> list[SchemaItem]:
        return [item for item in self.items.values() if item.category == category]

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON layout used for persistence."""
        return self.model_dump(mode="json", by_alias=True)
