from .scenarios import InMemoryScenarioStore, Scenario, ScenarioStore, build_scenario
from .session import DashboardSession

__all__ = [
    "DashboardSession",
    "InMemoryScenarioStore",
    "Scenario",
    "ScenarioStore",
    "build_scenario",
]
