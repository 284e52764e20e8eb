"""SchemaStore -- owns the canonical schema collection and its mutations."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Mapping, Optional, Sequence

from pydantic import ValidationError

from onecalc.config.settings import DEFAULT_FORECAST_YEARS
from onecalc.errors import InvalidItemError, UnknownItemError
from onecalc.models.enums import Category
from onecalc.models.results import SchemaTotals
from onecalc.models.schema import SchemaCollection, SchemaItem, YearRange

from .loader import get_default_schema, now_iso, parse_schema
from .merge import merge_schema_preset

logger = logging.getLogger(__name__)

SchemaListener = Callable[[SchemaCollection], None]

_ITEM_ALIASES = {"yearData": "year_data"}


class SchemaStore:
    """Holds the current SchemaCollection and notifies listeners on change.

    Every mutation replaces the collection wholesale, so a snapshot handed
    out earlier is never modified underneath its reader.
    """

    def __init__(
        self,
        schema: Optional[SchemaCollection] = None,
        horizon: Optional[Sequence[str]] = None,
    ) -> None:
        self._schema = schema if schema is not None else get_default_schema()
        self._horizon = tuple(horizon or DEFAULT_FORECAST_YEARS)
        self._listeners: list[SchemaListener] = []
        self._warn_undeclared(self._schema)

    # -- reads -------------------------------------------------------------

    def snapshot(self) -> SchemaCollection:
        return self._schema

    get_schema_snapshot = snapshot

    def get_item(self, item_id: str) -> Optional[SchemaItem]:
        return self._schema.items.get(item_id)

    def require_item(self, item_id: str) -> SchemaItem:
        item = self._schema.items.get(item_id)
        if item is None:
            raise UnknownItemError(item_id)
        return item

    def on_change(self, callback: SchemaListener) -> Callable[[], None]:
        """Subscribe to schema replacements. Returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    # -- item mutations ----------------------------------------------------

    def update_item(self, item_id: str, updates: Mapping[str, Any]) -> None:
        """Shallow-merge ``updates`` into an existing item.

        An unknown id is logged and ignored.
        """
        try:
            item = self.require_item(item_id)
        except UnknownItemError as e:
            logger.warning("update_item ignored: %s", e)
            return

        data = item.model_dump()
        for key, value in updates.items():
            data[_ITEM_ALIASES.get(key, key)] = value

        if data.get("id") != item_id:
            raise InvalidItemError(
                f"Cannot change id of '{item_id}' to '{data.get('id')}' via update"
            )

        try:
            updated = SchemaItem.model_validate(data)
        except ValidationError as e:
            raise InvalidItemError(f"Invalid update for '{item_id}': {e}") from e

        items = dict(self._schema.items)
        items[item_id] = updated
        self._replace(self._schema.model_copy(update={"items": items}))

    def add_item(self, item: SchemaItem | Mapping[str, Any]) -> None:
        """Add (or replace) an item. The item must carry a non-empty id."""
        if not isinstance(item, SchemaItem):
            if not item or not item.get("id"):
                raise InvalidItemError("Invalid item or missing ID")
            try:
                item = SchemaItem.model_validate(dict(item))
            except ValidationError as e:
                raise InvalidItemError(f"Invalid schema item: {e}") from e

        items = dict(self._schema.items)
        items[item.id] = item
        self._replace(self._schema.model_copy(update={"items": items}))

    def remove_item(self, item_id: str) -> None:
        """Remove an item. An unknown id is logged and ignored."""
        try:
            self.require_item(item_id)
        except UnknownItemError as e:
            logger.warning("remove_item ignored: %s", e)
            return

        items = {k: v for k, v in self._schema.items.items() if k != item_id}
        self._replace(self._schema.model_copy(update={"items": items}))

    # -- whole-schema operations -------------------------------------------

    def export_snapshot(self) -> dict[str, Any]:
        return self._schema.to_wire()

    def export_json(self) -> str:
        return json.dumps(self.export_snapshot(), indent=2)

    def import_snapshot(self, blob: Any) -> None:
        """Replace the schema with an imported blob.

        ``None`` resets to the bundled defaults. Malformed blobs raise
        SchemaValidationError and leave the current schema in place.
        """
        if blob is None:
            schema = get_default_schema()
        else:
            schema = parse_schema(blob)
        self._replace(schema)

    def merge_preset(self, preset: SchemaCollection | Mapping[str, Any]) -> SchemaCollection:
        """Merge a preset into the current schema; existing entries win."""
        if not isinstance(preset, SchemaCollection):
            preset = parse_schema(dict(preset))

        merged, conflicts = merge_schema_preset(self._schema, preset)
        if conflicts:
            logger.info(
                "Preset merge kept %d existing entries: %s",
                len(conflicts),
                ", ".join(f"{c.section}.{c.key}" for c in conflicts),
            )
        self._replace(merged)
        return self._schema

    def calculate_totals(self, horizon: Optional[Sequence[str]] = None) -> SchemaTotals:
        """Sum min and max independently per category and period.

        Net bounds pair worst with worst and best with best:
        ``net.min = revenue.min - costs.max`` and
        ``net.max = revenue.max - costs.min``.
        """
        years = tuple(horizon or self._horizon)
        sums = {
            Category.COST: {year: [0.0, 0.0] for year in years},
            Category.REVENUE: {year: [0.0, 0.0] for year in years},
        }

        for item in self._schema.items.values():
            for year in years:
                year_range = item.year_data.get(year)
                if year_range is None:
                    continue
                bucket = sums[item.category][year]
                bucket[0] += year_range.min
                bucket[1] += year_range.max

        costs = {y: YearRange(min=lo, max=hi) for y, (lo, hi) in sums[Category.COST].items()}
        revenue = {y: YearRange(min=lo, max=hi) for y, (lo, hi) in sums[Category.REVENUE].items()}
        net = {
            y: YearRange(
                min=revenue[y].min - costs[y].max,  # worst case
                max=revenue[y].max - costs[y].min,  # best case
            )
            for y in years
        }
        return SchemaTotals(costs=costs, revenue=revenue, net=net)

    # -- internals ---------------------------------------------------------

    def _replace(self, schema: SchemaCollection) -> None:
        self._schema = schema.model_copy(update={"last_updated": now_iso()})
        self._warn_undeclared(self._schema)
        for listener in list(self._listeners):
            try:
                listener(self._schema)
            except Exception:
                logger.exception("Schema change listener failed")

    @staticmethod
    def _warn_undeclared(schema: SchemaCollection) -> None:
        undeclared = schema.undeclared_subcategories()
        if undeclared:
            logger.warning(
                "Schema items use undeclared subcategories: %s", ", ".join(undeclared)
            )
