"""DashboardSession -- wires schema, registry and engine into one publish cycle."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional
from uuid import uuid4

from onecalc.config.settings import Settings
from onecalc.engine.compiler import CompilationEngine
from onecalc.models.enums import ModuleKind, SessionState
from onecalc.models.results import CompiledResults, default_compiled_results
from onecalc.models.schema import SchemaCollection
from onecalc.registry.registry import ModuleRegistry, ProviderLike
from onecalc.schema.store import SchemaStore
from onecalc.streaming.events import SessionEventType

from .scenarios import InMemoryScenarioStore, Scenario, ScenarioStore, build_scenario

logger = logging.getLogger(__name__)

ResultsListener = Callable[[CompiledResults], None]
EventListener = Callable[[SessionEventType, dict[str, Any]], None]


class DashboardSession:
    """Owns the published CompiledResults for one dashboard.

    Registry changes schedule a compile on the running event loop; several
    changes in the same loop iteration coalesce into a single compile.
    Schema changes compile immediately. A new snapshot is published only
    when it differs from the previous one.
    """

    def __init__(
        self,
        schema_store: Optional[SchemaStore] = None,
        engine: Optional[CompilationEngine] = None,
        registry: Optional[ModuleRegistry] = None,
        scenario_store: Optional[ScenarioStore] = None,
        settings: Optional[Settings] = None,
        session_id: Optional[str] = None,
    ):
        self.settings = settings or Settings()
        self.session_id = session_id or str(uuid4())
        self.schema_store = schema_store
        self.engine = engine or CompilationEngine(
            horizon=self.settings.horizon,
            cache_enabled=self.settings.compile_cache_enabled,
        )
        self.registry = registry if registry is not None else ModuleRegistry()
        self.scenarios = scenario_store if scenario_store is not None else InMemoryScenarioStore()

        self._compiled = default_compiled_results(self.engine.horizon)
        self._publish_count = 0
        self._state = SessionState.IDLE
        self._scheduled: Optional[asyncio.Handle] = None
        self._listeners: list[ResultsListener] = []
        self._event_listeners: list[EventListener] = []

        self._detach_schema: Optional[Callable[[], None]] = None
        if schema_store is not None:
            self._detach_schema = schema_store.on_change(self._on_schema_change)

    # -- published state ---------------------------------------------------

    @property
    def compiled_results(self) -> CompiledResults:
        return self._compiled

    @property
    def publish_count(self) -> int:
        return self._publish_count

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener: ResultsListener) -> Callable[[], None]:
        """Receive every newly published snapshot. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_event(self, listener: EventListener) -> Callable[[], None]:
        """Receive lifecycle events (registrations, schema changes, publishes)."""
        self._event_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._event_listeners:
                self._event_listeners.remove(listener)

        return unsubscribe

    # -- module registration -----------------------------------------------

    def register_module(
        self,
        module_id: str,
        provider: ProviderLike,
        kind: ModuleKind | str | None = None,
    ) -> Callable[[], None]:
        resolved = self.registry.add(module_id, provider, kind)
        remove: Optional[Callable[[], None]] = None
        if resolved is not None:
            remove = self.registry.unregister_handle(module_id, resolved)
            self._emit(
                SessionEventType.MODULE_REGISTERED,
                {"module_id": module_id, "kind": resolved.value},
            )
        self._schedule_compile()

        def unregister() -> None:
            if remove is not None:
                remove()
            self._schedule_compile()

        return unregister

    def unregister_module(self, module_id: str, kind: ModuleKind | str | None = None) -> None:
        present = module_id in self.registry
        self.registry.unregister(module_id, kind)
        if present and module_id not in self.registry:
            self._emit(SessionEventType.MODULE_UNREGISTERED, {"module_id": module_id})
        self._schedule_compile()

    # -- compilation -------------------------------------------------------

    def _schedule_compile(self) -> None:
        self._state = SessionState.COMPILE_PENDING
        if self._scheduled is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; compile for session %s waits for flush()", self.session_id)
            return
        self._scheduled = loop.call_soon(self._run_scheduled_compile)

    def _run_scheduled_compile(self) -> None:
        self._scheduled = None
        if self._state is SessionState.COMPILE_PENDING:
            self.compile()

    def flush(self) -> bool:
        """Run a pending compile now. Returns True if a snapshot was published."""
        if self._state is not SessionState.COMPILE_PENDING:
            return False
        return self.compile()

    def compile(self) -> bool:
        """Compile now and publish if the result changed."""
        if self._scheduled is not None:
            self._scheduled.cancel()
            self._scheduled = None

        schema = self.schema_store.snapshot() if self.schema_store is not None else None
        results = self.engine.compile(self.registry, schema, previous=self._compiled)
        self._state = SessionState.COMPILED

        if results is self._compiled:
            logger.debug("Session %s: compiled results unchanged", self.session_id)
            return False

        self._compiled = results
        self._publish_count += 1
        logger.info(
            "Session %s: published compiled results #%d (%d modules, %d skipped)",
            self.session_id,
            self._publish_count,
            len(results.outcomes),
            len(results.skipped_modules),
        )

        for listener in list(self._listeners):
            if results is not self._compiled:
                break
            try:
                listener(results)
            except Exception:
                logger.exception("Compiled results listener failed")

        # A listener that changed the schema already published a newer snapshot.
        if results is not self._compiled:
            logger.debug("Session %s: snapshot superseded by a nested compile", self.session_id)
            return True
        self._emit(SessionEventType.RESULTS_PUBLISHED, results.to_dict())
        return True

    def _on_schema_change(self, schema: SchemaCollection) -> None:
        self._emit(
            SessionEventType.SCHEMA_CHANGED,
            {
                "version": schema.version,
                "last_updated": schema.last_updated,
                "item_count": len(schema.items),
            },
        )
        self.compile()

    # -- scenarios ---------------------------------------------------------

    def save_scenario(self, name: Optional[str] = None) -> Scenario:
        """Wrap the current snapshot in a named record. Nothing is stored."""
        return build_scenario(self._compiled, name)

    def persist_scenario(self, name: Optional[str] = None) -> Scenario:
        scenario = self.save_scenario(name)
        self.scenarios.save(scenario)
        logger.info("Saved scenario %s (%s)", scenario.id, scenario.name)
        self._emit(
            SessionEventType.SCENARIO_SAVED,
            {"id": scenario.id, "name": scenario.name, "scenario_timestamp": scenario.timestamp},
        )
        return scenario

    def load_scenario(self, scenario_id: str) -> bool:
        """Ask the scenario store for a saved record; report whether it exists."""
        scenario = self.scenarios.load(scenario_id)
        if scenario is None:
            logger.warning("Scenario %s not found", scenario_id)
            return False
        self._emit(
            SessionEventType.SCENARIO_LOADED,
            {"id": scenario.id, "name": scenario.name, "scenario_timestamp": scenario.timestamp},
        )
        return True

    # -- lifecycle ---------------------------------------------------------

    def close(self) -> None:
        if self._scheduled is not None:
            self._scheduled.cancel()
            self._scheduled = None
        if self._detach_schema is not None:
            self._detach_schema()
            self._detach_schema = None

    def _emit(self, event_type: SessionEventType, data: dict[str, Any]) -> None:
        for listener in list(self._event_listeners):
            try:
                listener(event_type, data)
            except Exception:
                logger.exception("Session event listener failed for %s", event_type.value)
