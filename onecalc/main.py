"""FastAPI application for OneCalc -- REST endpoints and SSE streaming."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, ValidationError

from onecalc import __version__
from onecalc.calculators import get_all_module_types, get_module_type
from onecalc.config.settings import Settings
from onecalc.errors import InvalidItemError, SchemaValidationError, UnknownItemError
from onecalc.schema import SchemaStore, get_default_schema, load_preset, load_schema
from onecalc.session import DashboardSession
from onecalc.streaming import SessionEventType, StreamManager

settings = Settings()

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="OneCalc API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Singleton stream manager
stream_manager = StreamManager(max_buffered_events=settings.max_buffered_events)

# Keeps forwarding tasks alive until they finish
_background_tasks: set[asyncio.Task] = set()


def _forward_events(session_id: str):
    """Session event listener that republishes events on the SSE stream."""

    def forward(event_type: SessionEventType, data: dict[str, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; %s event not streamed", event_type.value)
            return
        task = loop.create_task(stream_manager.publish(session_id, event_type, data))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    return forward


def create_session(app_settings: Settings, session_id: str = "default") -> DashboardSession:
    """Build the schema store and session for one dashboard and run the first compile."""
    if app_settings.schema_file:
        schema = load_schema(Path(app_settings.schema_file))
        logger.info("Loaded schema from %s", app_settings.schema_file)
    else:
        schema = get_default_schema(include_additional=app_settings.include_additional_items)

    store = SchemaStore(schema, horizon=app_settings.horizon)
    dashboard = DashboardSession(schema_store=store, settings=app_settings, session_id=session_id)
    dashboard.on_event(_forward_events(session_id))
    dashboard.compile()
    return dashboard


# In-process dashboard session (one per server)
session = create_session(settings)


class ConfigureModuleRequest(BaseModel):
    module_id: Optional[str] = None
    params: dict[str, Any] = Field(default_factory=dict)
    paused: bool = False
    use_schema_as_base: bool = False


class SaveScenarioRequest(BaseModel):
    name: Optional[str] = None


# -- schema ----------------------------------------------------------------


@app.get("/api/schema")
async def get_schema():
    return session.schema_store.export_snapshot()


@app.put("/api/schema")
async def import_schema(blob: dict[str, Any] = Body(...)):
    """Replace the schema with an exported snapshot."""
    try:
        session.schema_store.import_snapshot(blob)
    except SchemaValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return session.schema_store.export_snapshot()


@app.get("/api/schema/totals")
async def get_schema_totals():
    return session.schema_store.calculate_totals(session.engine.horizon).to_dict()


@app.post("/api/schema/items")
async def add_schema_item(item: dict[str, Any] = Body(...)):
    try:
        session.schema_store.add_item(item)
    except InvalidItemError as e:
        raise HTTPException(status_code=400, detail=str(e))
    added = session.schema_store.require_item(item["id"])
    return added.model_dump(mode="json", by_alias=True)


@app.patch("/api/schema/items/{item_id}")
async def update_schema_item(item_id: str, updates: dict[str, Any] = Body(...)):
    try:
        session.schema_store.require_item(item_id)
        session.schema_store.update_item(item_id, updates)
    except UnknownItemError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidItemError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return session.schema_store.require_item(item_id).model_dump(mode="json", by_alias=True)


@app.delete("/api/schema/items/{item_id}")
async def remove_schema_item(item_id: str):
    try:
        session.schema_store.require_item(item_id)
    except UnknownItemError as e:
        raise HTTPException(status_code=404, detail=str(e))
    session.schema_store.remove_item(item_id)
    return {"removed": item_id}


@app.post("/api/schema/presets/{name}")
async def apply_preset(name: str):
    """Merge a bundled preset into the current schema; existing entries win."""
    try:
        preset = load_preset(name)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Preset '{name}' not found")
    merged = session.schema_store.merge_preset(preset)
    return {"preset": name, "item_count": len(merged.items), "schema": merged.to_wire()}


# -- modules ---------------------------------------------------------------


@app.get("/api/modules")
async def list_modules():
    return {
        "registered": [
            {"module_id": module_id, "kind": kind.value}
            for kind, module_id, _ in session.registry.entries()
        ],
        "available": [
            {
                "name": d.name,
                "label": d.label,
                "description": d.description,
                "kind": d.kind.value,
                "default_module_id": d.default_module_id,
            }
            for d in get_all_module_types().values()
        ],
    }


@app.put("/api/modules/{type_name}")
async def configure_module(type_name: str, body: ConfigureModuleRequest):
    """Register (or replace) a built-in calculator module."""
    definition = get_module_type(type_name)
    if definition is None:
        raise HTTPException(status_code=404, detail=f"Module type '{type_name}' not found")

    module_id = body.module_id or definition.default_module_id
    try:
        module = definition.factory(
            module_id,
            horizon=session.engine.horizon,
            params=body.params or None,
            paused=body.paused,
            use_schema_as_base=body.use_schema_as_base,
            schema_store=session.schema_store,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    session.register_module(module_id, module, definition.kind)
    return {"module_id": module_id, "kind": definition.kind.value, "type": definition.name}


@app.delete("/api/modules/{module_id}")
async def remove_module(module_id: str):
    if module_id not in session.registry:
        raise HTTPException(status_code=404, detail=f"Module '{module_id}' not registered")
    session.unregister_module(module_id)
    return {"removed": module_id}


# -- results ---------------------------------------------------------------


@app.post("/api/compile")
async def compile_now():
    published = session.compile()
    return {"published": published, "results": session.compiled_results.to_dict()}


@app.get("/api/results")
async def get_results():
    """Return the latest compiled results, running any pending compile first."""
    session.flush()
    return session.compiled_results.to_dict()


# -- scenarios -------------------------------------------------------------


@app.post("/api/scenarios")
async def save_scenario(body: SaveScenarioRequest):
    session.flush()
    return session.persist_scenario(body.name).to_dict()


@app.get("/api/scenarios")
async def list_scenarios():
    return [
        {"id": s.id, "name": s.name, "timestamp": s.timestamp}
        for s in session.scenarios.list()
    ]


@app.post("/api/scenarios/{scenario_id}/load")
async def load_scenario(scenario_id: str):
    if not session.load_scenario(scenario_id):
        raise HTTPException(status_code=404, detail=f"Scenario '{scenario_id}' not found")
    return session.scenarios.load(scenario_id).to_dict()


# -- streaming -------------------------------------------------------------


@app.get("/api/stream")
async def stream_session(request: Request):
    """SSE endpoint -- streams session events."""
    last_event_id: int | None = None
    raw = request.headers.get("Last-Event-ID") or request.headers.get("last-event-id")
    if raw is not None:
        try:
            last_event_id = int(raw)
        except ValueError:
            pass

    generator = stream_manager.event_generator(session.session_id, last_event_id=last_event_id)
    return StreamingResponse(generator, media_type="text/event-stream")


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}
