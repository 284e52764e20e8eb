"""Single-slot compilation cache keyed by structural equality of inputs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from onecalc.models.results import CompiledResults, ProviderOutcome
from onecalc.models.schema import SchemaCollection


@dataclass
class CompilationCache:
    outcomes: tuple[ProviderOutcome, ...] = ()
    schema: Optional[SchemaCollection] = None
    results: Optional[CompiledResults] = None

    def lookup(
        self,
        outcomes: tuple[ProviderOutcome, ...],
        schema: Optional[SchemaCollection],
    ) -> Optional[CompiledResults]:
        if self.results is None:
            return None
        if outcomes == self.outcomes and schema == self.schema:
            return self.results
        return None

    def store(
        self,
        outcomes: tuple[ProviderOutcome, ...],
        schema: Optional[SchemaCollection],
        results: CompiledResults,
    ) -> None:
        self.outcomes = outcomes
        self.schema = schema
        self.results = results

    def clear(self) -> None:
        self.outcomes = ()
        self.schema = None
        self.results = None
