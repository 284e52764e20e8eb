"""Schema dataset loading, preset merging and the SchemaStore."""

from .loader import available_presets, get_default_schema, load_preset, load_schema, parse_schema
from .merge import MergeConflict, merge_schema_preset
from .store import SchemaStore

__all__ = [
    "SchemaStore",
    "MergeConflict",
    "merge_schema_preset",
    "available_presets",
    "get_default_schema",
    "load_preset",
    "load_schema",
    "parse_schema",
]
