"""Scenario records and the storage collaborator interface."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from onecalc.models.results import CompiledResults


@dataclass(frozen=True)
class Scenario:
    """Immutable named copy of a compiled snapshot."""

    id: str
    name: str
    timestamp: int  # epoch milliseconds
    data: CompiledResults

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "timestamp": self.timestamp,
            "data": self.data.to_dict(),
        }


def build_scenario(compiled: CompiledResults, name: Optional[str] = None) -> Scenario:
    timestamp = int(time.time() * 1000)
    if not name:
        today = datetime.now(tz=timezone.utc).date().isoformat()
        name = f"Scenario {today}"
    return Scenario(
        id=f"scenario-{timestamp}-{uuid4().hex[:6]}",
        name=name,
        timestamp=timestamp,
        data=compiled,
    )


class ScenarioStore(ABC):
    """Abstract persistence collaborator for saved scenarios."""

    @abstractmethod
    def save(self, scenario: Scenario) -> None:
        ...

    @abstractmethod
    def load(self, scenario_id: str) -> Optional[Scenario]:
        ...

    @abstractmethod
    def list(self) -> list[Scenario]:
        ...


class InMemoryScenarioStore(ScenarioStore):
    """Process-local store (replaced by a database-backed store later)."""

    def __init__(self) -> None:
        self._scenarios: dict[str, Scenario] = {}

    def save(self, scenario: Scenario) -> None:
        self._scenarios[scenario.id] = scenario

    def load(self, scenario_id: str) -> Optional[Scenario]:
        return self._scenarios.get(scenario_id)

    def list(self) -> list[Scenario]:
        return sorted(self._scenarios.values(), key=lambda s: s.timestamp)
