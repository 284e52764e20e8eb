"""Tests for SchemaStore mutations, import/export and totals."""

import json
import logging

import pytest

from onecalc.errors import InvalidItemError, SchemaValidationError, UnknownItemError
from onecalc.models.schema import SchemaCollection
from onecalc.schema.store import SchemaStore

from tests.conftest import HORIZON, make_item, make_schema_blob


class TestReads:
    def test_snapshot_alias(self, store):
        assert store.get_schema_snapshot() is store.snapshot()

    def test_get_item_unknown_returns_none(self, store):
        assert store.get_item("nope") is None

    def test_require_item_raises(self, store):
        with pytest.raises(UnknownItemError):
            store.require_item("nope")

    def test_default_store_loads_bundled_dataset(self):
        store = SchemaStore()
        assert "cost.employee.executives" in store.snapshot().items
        assert len(store.snapshot().items) > 5


class TestUpdateItem:
    def test_shallow_merge_keeps_other_fields(self, store):
        store.update_item("cost.employee.executives", {"name": "C-Suite"})
        item = store.get_item("cost.employee.executives")
        assert item.name == "C-Suite"
        assert item.year_data["2026"].min == 90

    def test_camel_case_year_data_replaces_ranges(self, store):
        store.update_item(
            "cost.employee.executives",
            {"yearData": {"2026": {"min": 1, "max": 3}}},
        )
        item = store.get_item("cost.employee.executives")
        assert list(item.year_data) == ["2026"]
        assert item.year_data["2026"].midpoint == 2

    def test_unknown_id_is_noop(self, store, caplog):
        before = store.snapshot()
        with caplog.at_level(logging.WARNING):
            store.update_item("missing.item", {"name": "x"})
        assert store.snapshot() is before
        assert "missing.item" in caplog.text

    def test_id_change_rejected(self, store):
        before = store.snapshot()
        with pytest.raises(InvalidItemError):
            store.update_item("cost.employee.executives", {"id": "cost.other"})
        assert store.snapshot() is before

    def test_invalid_range_rejected_and_state_kept(self, store):
        before = store.snapshot()
        with pytest.raises(InvalidItemError):
            store.update_item(
                "cost.employee.executives",
                {"yearData": {"2026": {"min": 10, "max": 1}}},
            )
        assert store.snapshot() is before

    def test_previous_snapshot_is_not_mutated(self, store):
        before = store.snapshot()
        store.update_item("cost.employee.executives", {"name": "Changed"})
        assert before.items["cost.employee.executives"].name == "Executives"


class TestAddRemove:
    def test_add_item_from_mapping(self, store):
        store.add_item(make_item("cost.employee.interns", "cost", "employee", {"2026": (1, 2)}))
        assert store.get_item("cost.employee.interns") is not None

    def test_add_item_without_id_rejected(self, store):
        with pytest.raises(InvalidItemError):
            store.add_item({"name": "No id", "category": "cost", "subcategory": "employee"})

    def test_add_item_invalid_payload_rejected(self, store):
        with pytest.raises(InvalidItemError):
            store.add_item({"id": "cost.bad", "category": "nonsense", "subcategory": "x"})

    def test_add_existing_id_replaces(self, store):
        store.add_item(
            make_item("cost.employee.executives", "cost", "employee", {"2026": (0, 0)}, name="New")
        )
        assert store.get_item("cost.employee.executives").name == "New"
        assert len(store.snapshot().items) == 2

    def test_add_undeclared_subcategory_warns(self, store, caplog):
        with caplog.at_level(logging.WARNING):
            store.add_item(make_item("cost.marketing.ads", "cost", "marketing", {}))
        assert store.get_item("cost.marketing.ads") is not None
        assert "cost.marketing.ads" in caplog.text

    def test_remove_item(self, store):
        store.remove_item("revenue.fees.transaction")
        assert store.get_item("revenue.fees.transaction") is None

    def test_remove_unknown_is_noop(self, store, caplog):
        before = store.snapshot()
        with caplog.at_level(logging.WARNING):
            store.remove_item("ghost")
        assert store.snapshot() is before
        assert "ghost" in caplog.text


class TestChangeNotification:
    def test_listener_receives_new_snapshot(self, store):
        received = []
        store.on_change(received.append)
        store.update_item("cost.employee.executives", {"name": "X"})
        assert len(received) == 1
        assert received[0] is store.snapshot()

    def test_unsubscribe_stops_notifications(self, store):
        received = []
        unsubscribe = store.on_change(received.append)
        unsubscribe()
        store.remove_item("revenue.fees.transaction")
        assert received == []

    def test_failing_listener_does_not_block_others(self, store, caplog):
        def broken(_schema):
            raise RuntimeError("listener exploded")

        received = []
        store.on_change(broken)
        store.on_change(received.append)
        with caplog.at_level(logging.ERROR):
            store.remove_item("revenue.fees.transaction")
        assert len(received) == 1
        assert "listener failed" in caplog.text

    def test_noop_mutation_does_not_notify(self, store):
        received = []
        store.on_change(received.append)
        store.remove_item("ghost")
        store.update_item("ghost", {"name": "x"})
        assert received == []


class TestImportExport:
    def test_export_json_is_indented_camel_case(self, store):
        text = store.export_json()
        assert text.startswith("{\n  ")
        assert "yearData" in json.loads(text)["items"]["cost.employee.executives"]

    def test_import_round_trip(self, store, small_schema):
        other = SchemaStore(small_schema, horizon=HORIZON)
        other.remove_item("revenue.fees.transaction")
        store.import_snapshot(other.export_json())
        assert set(store.snapshot().items) == {"cost.employee.executives"}

    def test_import_stamps_last_updated(self, store):
        store.import_snapshot(make_schema_blob())
        assert store.snapshot().last_updated != "2025-01-01T00:00:00Z"

    def test_import_empty_items_allowed(self, store):
        store.import_snapshot(make_schema_blob())
        assert store.snapshot().items == {}

    @pytest.mark.parametrize("missing", ["version", "categories", "items"])
    def test_import_missing_key_rejected(self, store, missing):
        before = store.snapshot()
        blob = make_schema_blob()
        del blob[missing]
        with pytest.raises(SchemaValidationError):
            store.import_snapshot(blob)
        assert store.snapshot() is before

    def test_import_invalid_json_rejected(self, store):
        before = store.snapshot()
        with pytest.raises(SchemaValidationError):
            store.import_snapshot("{not json")
        assert store.snapshot() is before

    def test_import_invalid_item_rejected(self, store):
        blob = make_schema_blob(make_item("cost.a", "cost", "employee", {"2026": (5, 1)}))
        with pytest.raises(SchemaValidationError):
            store.import_snapshot(blob)

    @pytest.mark.parametrize("bound", [float("nan"), float("inf"), float("-inf")])
    def test_import_non_finite_range_rejected(self, store, bound):
        before = store.snapshot()
        blob = make_schema_blob(
            make_item("cost.a", "cost", "employee", {"2026": (bound, bound)}),
            make_item("cost.b", "cost", "employee", {"2026": (7, 7)}),
        )
        with pytest.raises(SchemaValidationError):
            store.import_snapshot(blob)
        assert store.snapshot() is before

    def test_import_nan_literal_in_json_rejected(self, store):
        before = store.snapshot()
        raw = json.dumps(
            make_schema_blob(make_item("cost.a", "cost", "employee", {"2026": (float("nan"), 1)}))
        )
        assert "NaN" in raw
        with pytest.raises(SchemaValidationError):
            store.import_snapshot(raw)
        assert store.snapshot() is before

    def test_non_finite_update_rejected(self, store):
        before = store.snapshot()
        with pytest.raises(InvalidItemError):
            store.update_item(
                "cost.employee.executives",
                {"yearData": {"2026": {"min": 0, "max": float("inf")}}},
            )
        assert store.snapshot() is before

    def test_import_none_resets_to_defaults(self, store):
        store.import_snapshot(None)
        assert "cost.employee.executives" in store.snapshot().items
        assert "revenue.fees.transaction" not in store.snapshot().items


class TestMergePreset:
    def test_existing_entries_win(self, store):
        preset = make_schema_blob(
            make_item("cost.employee.executives", "cost", "employee", {"2026": (0, 1)}, name="Preset Name"),
            make_item("revenue.fees.subscriptions", "revenue", "fees", {"2026": (5, 10)}),
        )
        merged = store.merge_preset(preset)
        assert merged.items["cost.employee.executives"].name == "Executives"
        assert "revenue.fees.subscriptions" in merged.items
        assert store.snapshot() is merged

    def test_categories_are_unioned(self, store):
        preset = make_schema_blob()
        preset["categories"] = {"cost": ["employee", "platform"], "revenue": ["licensing"]}
        merged = store.merge_preset(preset)
        assert merged.categories["cost"] == ["employee", "platform"]
        assert merged.categories["revenue"] == ["fees", "licensing"]

    def test_accepts_collection(self, store):
        preset = SchemaCollection.model_validate(
            make_schema_blob(make_item("cost.employee.new", "cost", "employee", {}))
        )
        merged = store.merge_preset(preset)
        assert "cost.employee.new" in merged.items


class TestCalculateTotals:
    def test_net_bounds_pair_worst_and_best_case(self):
        store = SchemaStore(
            SchemaCollection.model_validate(
                make_schema_blob(
                    make_item("cost.a", "cost", "employee", {"2026": (100, 200)}),
                    make_item("revenue.b", "revenue", "fees", {"2026": (300, 500)}),
                )
            ),
            horizon=HORIZON,
        )
        totals = store.calculate_totals()
        assert totals.net["2026"].min == 100
        assert totals.net["2026"].max == 400

    def test_min_and_max_summed_independently(self, store):
        store.add_item(make_item("cost.employee.more", "cost", "employee", {"2026": (10, 20)}))
        totals = store.calculate_totals()
        assert totals.costs["2026"].min == 100
        assert totals.costs["2026"].max == 130

    def test_years_without_data_contribute_nothing(self, store):
        totals = store.calculate_totals(("2026", "2027", "2028", "2035"))
        assert totals.costs["2035"].min == 0
        assert totals.revenue["2035"].max == 0

    def test_to_dict_layout(self, store):
        data = store.calculate_totals().to_dict()
        assert set(data) == {"costs", "revenue", "net"}
        assert data["revenue"]["2026"] == {"min": 40, "max": 60}
