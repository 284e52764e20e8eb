"""Tests for DashboardSession scheduling, publishing and scenarios."""

import asyncio
import logging
from unittest.mock import MagicMock

import pytest

from onecalc.models.enums import ModuleKind, SessionState
from onecalc.models.results import NOT_CALCULATED
from onecalc.session import DashboardSession, InMemoryScenarioStore
from onecalc.streaming.events import SessionEventType

from tests.conftest import make_item, make_result


def _provider(result):
    provider = MagicMock()
    provider.get_result.return_value = result
    return provider


@pytest.fixture
def session(store, settings):
    return DashboardSession(schema_store=store, settings=settings, session_id="test")


class TestInitialState:
    def test_placeholder_results_before_first_compile(self, session):
        assert session.state == SessionState.IDLE
        assert session.publish_count == 0
        assert session.compiled_results.summary_metrics.break_even_year == NOT_CALCULATED

    def test_first_compile_publishes(self, session):
        assert session.compile() is True
        assert session.publish_count == 1
        assert session.state == SessionState.COMPILED
        assert session.compiled_results.costs_by_year["2026"] == 100

    def test_session_without_schema(self, settings):
        session = DashboardSession(settings=settings)
        session.compile()
        assert session.compiled_results.using_schema_data is False
        assert session.compiled_results.costs_by_year == {"2026": 0, "2027": 0, "2028": 0}


class TestIdempotence:
    def test_second_compile_does_not_republish(self, session):
        session.compile()
        first = session.compiled_results
        assert session.compile() is False
        assert session.compiled_results is first
        assert session.publish_count == 1

    def test_listener_only_called_on_change(self, session):
        received = []
        session.subscribe(received.append)
        session.compile()
        session.compile()
        assert len(received) == 1


class TestSchedulingWithoutLoop:
    def test_registration_defers_compile(self, session):
        provider = _provider(make_result("payroll", costs={"2026": 5}))
        session.register_module("payroll", provider, ModuleKind.COSTS)
        assert session.state == SessionState.COMPILE_PENDING
        assert provider.get_result.call_count == 0
        assert session.publish_count == 0

    def test_flush_runs_pending_compile(self, session):
        session.register_module("payroll", _provider(make_result("payroll", costs={"2026": 5})), "costs")
        assert session.flush() is True
        assert session.compiled_results.costs_by_year["2026"] == 105
        assert session.flush() is False


class TestSchedulingWithLoop:
    @pytest.mark.asyncio
    async def test_registration_never_compiles_synchronously(self, session):
        provider = _provider(make_result("payroll", costs={"2026": 5}))
        session.register_module("payroll", provider, ModuleKind.COSTS)
        assert provider.get_result.call_count == 0
        await asyncio.sleep(0)
        assert provider.get_result.call_count == 1
        assert session.publish_count == 1

    @pytest.mark.asyncio
    async def test_burst_coalesces_into_one_compile(self, session):
        providers = [_provider(make_result(f"m{i}", costs={"2026": 1})) for i in range(3)]
        for i, provider in enumerate(providers):
            session.register_module(f"m{i}Costs", provider, ModuleKind.COSTS)
        await asyncio.sleep(0)
        assert [p.get_result.call_count for p in providers] == [1, 1, 1]
        assert session.publish_count == 1
        assert session.compiled_results.costs_by_year["2026"] == 103

    @pytest.mark.asyncio
    async def test_unregister_handle_schedules_compile(self, session):
        unregister = session.register_module(
            "payroll", _provider(make_result("payroll", costs={"2026": 5})), "costs"
        )
        await asyncio.sleep(0)
        unregister()
        await asyncio.sleep(0)
        assert session.compiled_results.costs_by_year["2026"] == 100
        assert session.publish_count == 2

    @pytest.mark.asyncio
    async def test_unregister_module(self, session):
        session.register_module("fees", _provider(make_result("fees", revenue={"2026": 10})), "revenue")
        await asyncio.sleep(0)
        session.unregister_module("fees")
        await asyncio.sleep(0)
        assert "fees" not in session.registry
        assert session.compiled_results.revenues_by_year["2026"] == 50

    @pytest.mark.asyncio
    async def test_explicit_compile_cancels_scheduled_one(self, session):
        provider = _provider(make_result("payroll", costs={"2026": 5}))
        session.register_module("payroll", provider, "costs")
        session.compile()
        await asyncio.sleep(0)
        assert provider.get_result.call_count == 1

    @pytest.mark.asyncio
    async def test_registration_replace_uses_second_provider(self, session):
        session.register_module("fees", _provider(make_result("fees", revenue={"2026": 1})), "revenue")
        session.register_module("fees", _provider(make_result("fees", revenue={"2026": 2})), "revenue")
        await asyncio.sleep(0)
        assert len(session.registry) == 1
        assert session.compiled_results.revenues_by_year["2026"] == 52


class TestSchemaChanges:
    def test_schema_change_compiles_immediately(self, session, store):
        session.compile()
        store.add_item(make_item("cost.employee.interns", "cost", "employee", {"2026": (10, 10)}))
        assert session.publish_count == 2
        assert session.compiled_results.costs_by_year["2026"] == 110

    def test_close_detaches_from_store(self, session, store):
        session.compile()
        session.close()
        store.remove_item("cost.employee.executives")
        assert session.publish_count == 1


class TestListeners:
    def test_failing_listener_is_logged(self, session, caplog):
        received = []

        def broken(_results):
            raise RuntimeError("render failed")

        session.subscribe(broken)
        session.subscribe(received.append)
        with caplog.at_level(logging.ERROR):
            assert session.compile() is True
        assert len(received) == 1
        assert "listener failed" in caplog.text

    def test_unsubscribe(self, session):
        received = []
        unsubscribe = session.subscribe(received.append)
        unsubscribe()
        session.compile()
        assert received == []

    def test_lifecycle_events(self, session, store):
        events = []
        session.on_event(lambda event_type, data: events.append(event_type))
        session.register_module("payroll", _provider(make_result("payroll")), "costs")
        session.flush()
        store.remove_item("revenue.fees.transaction")
        session.unregister_module("payroll")
        assert events == [
            SessionEventType.MODULE_REGISTERED,
            SessionEventType.RESULTS_PUBLISHED,
            SessionEventType.SCHEMA_CHANGED,
            SessionEventType.RESULTS_PUBLISHED,
            SessionEventType.MODULE_UNREGISTERED,
        ]

    def test_invalid_registration_emits_nothing(self, session):
        events = []
        session.on_event(lambda event_type, data: events.append(event_type))
        session.register_module("", _provider(None), "costs")
        assert events == []

    def test_rejected_replacement_of_registered_id_emits_nothing(self, session):
        events = []
        session.on_event(lambda event_type, data: events.append(event_type))
        session.register_module("payroll", _provider(make_result("payroll")), "costs")
        unregister = session.register_module("payroll", "not callable", "costs")
        assert events == [SessionEventType.MODULE_REGISTERED]
        unregister()
        assert "payroll" in session.registry

    def test_listener_changing_schema_keeps_publish_order(self, session, store):
        session.compile()
        published = []
        received = []
        session.on_event(
            lambda event_type, data: published.append(data)
            if event_type is SessionEventType.RESULTS_PUBLISHED
            else None
        )

        def add_item_once(results):
            if store.get_item("cost.extra") is None:
                store.add_item(make_item("cost.extra", "cost", "employee", {"2026": (10, 10)}))

        session.subscribe(add_item_once)
        session.subscribe(received.append)
        store.remove_item("revenue.fees.transaction")

        final = session.compiled_results
        assert final.costs_by_year["2026"] == 110
        assert received == [final]
        assert published[-1]["costsByYear"] == dict(final.costs_by_year)
        assert all(p["costsByYear"]["2026"] == 110 for p in published)


class TestScenarios:
    def test_save_scenario_is_pure(self, session):
        session.compile()
        scenario = session.save_scenario("Base case")
        assert scenario.name == "Base case"
        assert scenario.data is session.compiled_results
        assert scenario.id.startswith("scenario-")
        assert session.scenarios.list() == []

    def test_published_snapshot_cannot_be_edited(self, session):
        session.register_module("payroll", _provider(make_result("payroll", costs={"2026": 5})), "costs")
        session.flush()
        scenario = session.save_scenario()
        with pytest.raises(TypeError):
            session.compiled_results.costs_by_year["2026"] = 999.0
        assert session.compile() is False
        assert session.compiled_results.costs_by_year["2026"] == 105
        assert scenario.data.costs_by_year["2026"] == 105

    def test_default_name_includes_date(self, session):
        assert session.save_scenario().name.startswith("Scenario 20")

    def test_persist_and_load(self, session):
        scenario = session.persist_scenario("Optimistic")
        assert session.load_scenario(scenario.id) is True
        assert session.load_scenario("scenario-0") is False

    def test_load_delegates_to_store(self, store, settings):
        scenario_store = MagicMock(spec=InMemoryScenarioStore)
        scenario_store.load.return_value = None
        session = DashboardSession(schema_store=store, settings=settings, scenario_store=scenario_store)
        assert session.load_scenario("scenario-1") is False
        scenario_store.load.assert_called_once_with("scenario-1")
