"""SSE event types and serialization for dashboard session updates."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class SessionEventType(str, Enum):
    """All event types emitted by a dashboard session."""

    # Module registry
    MODULE_REGISTERED = "module_registered"
    MODULE_UNREGISTERED = "module_unregistered"

    # Schema
    SCHEMA_CHANGED = "schema_changed"

    # Compilation
    RESULTS_PUBLISHED = "results_published"

    # Scenarios
    SCENARIO_SAVED = "scenario_saved"
    SCENARIO_LOADED = "scenario_loaded"


@dataclass
class SSEEvent:
    """A single Server-Sent Event ready for wire serialization."""

    event_type: SessionEventType
    data: dict[str, Any]
    sequence_id: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def to_sse_string(self) -> str:
        """Serialize to SSE wire format.

        Format:
            event: <type>
            data: <json>
            id: <seq>

            (terminated by double newline)
        """
        payload = {
            **self.data,
            "timestamp": self.timestamp.isoformat(),
        }
        data_json = json.dumps(payload, default=str)
        return f"event: {self.event_type.value}\ndata: {data_json}\nid: {self.sequence_id}\n\n"
