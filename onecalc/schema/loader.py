"""Load, validate, and select schema datasets from JSON files."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from onecalc.errors import SchemaValidationError
from onecalc.models.schema import SchemaCollection, SchemaItem

# Bundled datasets
_DATA_DIR = Path(__file__).parent / "data"

_PRESETS = {
    "buyers_portal": "buyers_portal.json",
}

REQUIRED_KEYS = ("version", "categories", "items")


def now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def parse_schema(raw: object) -> SchemaCollection:
    """Validate a raw schema blob (mapping or JSON string) into a collection."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SchemaValidationError(f"Schema is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise SchemaValidationError(
            f"Schema must be a JSON object, got {type(raw).__name__}"
        )

    missing = [key for key in REQUIRED_KEYS if raw.get(key) in (None, "")]
    if missing:
        raise SchemaValidationError(f"Invalid schema data structure, missing: {missing}")

    try:
        return SchemaCollection.model_validate(raw)
    except ValidationError as e:
        raise SchemaValidationError(f"Invalid schema data structure: {e}") from e


def load_schema(file_path: Path) -> SchemaCollection:
    """Load and validate a schema dataset from a JSON file."""
    if not file_path.exists():
        raise FileNotFoundError(f"Schema file not found: {file_path}")

    with open(file_path, "r") as f:
        raw = json.load(f)

    return parse_schema(raw)


def _load_additional_items() -> dict[str, SchemaItem]:
    with open(_DATA_DIR / "additional_items.json", "r") as f:
        raw = json.load(f)
    return {item_id: SchemaItem.model_validate(item) for item_id, item in raw.items()}


def get_default_schema(include_additional: bool = True) -> SchemaCollection:
    """Load the bundled default dataset.

    With ``include_additional`` the extra line items are added wherever
    their ids are not already present.
    """
    schema = load_schema(_DATA_DIR / "default_schema.json")
    items = dict(schema.items)
    if include_additional:
        for item_id, item in _load_additional_items().items():
            items.setdefault(item_id, item)
    return schema.model_copy(update={"items": items, "last_updated": now_iso()})


def available_presets() -> list[str]:
    return sorted(_PRESETS)


def load_preset(name: str) -> SchemaCollection:
    """Load a bundled preset dataset by name (e.g. ``buyers_portal``)."""
    file_name = _PRESETS.get(name.replace("-", "_"))
    if file_name is None:
        raise KeyError(f"Unknown schema preset '{name}'. Available: {available_presets()}")
    return load_schema(_DATA_DIR / file_name)
