"""Merge a preset schema into an existing one without overwriting anything."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from onecalc.models.schema import SchemaCollection

from .loader import now_iso


@dataclass(frozen=True)
class MergeConflict:
    """Records a key present in both schemas; the existing value is kept."""

    section: str
    key: str
    existing_value: Any
    preset_value: Any


def _fill_gaps(
    section: str,
    existing: dict[str, Any],
    preset: dict[str, Any],
    conflicts: list[MergeConflict],
) -> dict[str, Any]:
    merged = dict(existing)
    for key, value in preset.items():
        if key not in merged:
            merged[key] = value
        elif merged[key] != value:
            conflicts.append(
                MergeConflict(
                    section=section,
                    key=key,
                    existing_value=merged[key],
                    preset_value=value,
                )
            )
    return merged


def merge_schema_preset(
    existing: SchemaCollection,
    preset: SchemaCollection,
) -> tuple[SchemaCollection, list[MergeConflict]]:
    """Union two schemas; the preset only fills gaps.

    Rules:
    - Categories and their subcategories are unioned, existing order first.
    - Labels, items, metrics and scenario parameters are unioned by key.
    - On any key collision the existing entry wins.

    Returns:
        Tuple of (merged SchemaCollection, list of MergeConflict objects).
    """
    conflicts: list[MergeConflict] = []

    categories = {cat: list(subs) for cat, subs in existing.categories.items()}
    for cat, subs in preset.categories.items():
        merged_subs = categories.setdefault(cat, [])
        for sub in subs:
            if sub not in merged_subs:
                merged_subs.append(sub)

    merged = existing.model_copy(
        update={
            "categories": categories,
            "subcategory_labels": _fill_gaps(
                "subcategoryLabels",
                existing.subcategory_labels,
                preset.subcategory_labels,
                conflicts,
            ),
            "items": _fill_gaps("items", existing.items, preset.items, conflicts),
            "metrics": _fill_gaps("metrics", existing.metrics, preset.metrics, conflicts),
            "scenario_parameters": _fill_gaps(
                "scenarioParameters",
                existing.scenario_parameters,
                preset.scenario_parameters,
                conflicts,
            ),
            "last_updated": now_iso(),
        }
    )
    return merged, conflicts
