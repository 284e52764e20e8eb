"""ModuleRegistry -- directory of result providers partitioned by module kind."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterator, Optional, Protocol, Union, runtime_checkable

from onecalc.errors import InvalidRegistrationError
from onecalc.models.enums import ModuleKind
from onecalc.models.results import ModuleResult

logger = logging.getLogger(__name__)

# Partition search order when unregistering without a kind.
_KIND_ORDER = (ModuleKind.COSTS, ModuleKind.REVENUE, ModuleKind.CALCULATOR)


@runtime_checkable
class ResultProvider(Protocol):
    """Anything that can report its current ModuleResult synchronously."""

    def get_result(self) -> ModuleResult | dict[str, Any]:
        ...


class FunctionProvider:
    """Adapts a zero-argument callable to the ResultProvider protocol."""

    def __init__(self, fn: Callable[[], Any]):
        self.fn = fn

    def get_result(self) -> Any:
        return self.fn()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, FunctionProvider) and other.fn is self.fn

    def __hash__(self) -> int:
        return hash(self.fn)

    def __repr__(self) -> str:
        return f"FunctionProvider({getattr(self.fn, '__name__', self.fn)!r})"


ProviderLike = Union[ResultProvider, Callable[[], Any]]


def infer_kind(module_id: str) -> ModuleKind:
    """Guess a partition from the module id when the caller gives none."""
    lowered = module_id.lower()
    if "cost" in lowered:
        return ModuleKind.COSTS
    if "revenue" in lowered or "fees" in lowered:
        return ModuleKind.REVENUE
    return ModuleKind.CALCULATOR


def _noop() -> None:
    return None


class ModuleRegistry:
    """Mutable mapping of ``kind -> module id -> provider``.

    Registering an id that already exists in the same partition replaces
    its provider; this is how a module refreshes its registration.
    """

    def __init__(self) -> None:
        self._modules: dict[ModuleKind, dict[str, ResultProvider]] = {
            kind: {} for kind in _KIND_ORDER
        }

    def add(
        self,
        module_id: str,
        provider: ProviderLike,
        kind: ModuleKind | str | None = None,
    ) -> Optional[ModuleKind]:
        """Store a provider and return its partition, or None if it was rejected."""
        try:
            resolved_kind, resolved = self._validate(module_id, provider, kind)
        except InvalidRegistrationError as e:
            logger.error("Invalid module registration: %s", e)
            return None

        logger.info("Registering module: %s of type %s", module_id, resolved_kind.value)
        self._modules[resolved_kind][module_id] = resolved
        return resolved_kind

    def register(
        self,
        module_id: str,
        provider: ProviderLike,
        kind: ModuleKind | str | None = None,
    ) -> Callable[[], None]:
        """Register a provider. Invalid registrations are logged and ignored.

        Returns a function that unregisters this exact registration.
        """
        resolved_kind = self.add(module_id, provider, kind)
        if resolved_kind is None:
            return _noop
        return self.unregister_handle(module_id, resolved_kind)

    def unregister_handle(self, module_id: str, resolved_kind: ModuleKind) -> Callable[[], None]:
        resolved = self._modules[resolved_kind][module_id]

        def unregister() -> None:
            if self._modules[resolved_kind].get(module_id) == resolved:
                self.unregister(module_id, resolved_kind)

        return unregister

    def unregister(self, module_id: str, kind: ModuleKind | str | None = None) -> None:
        """Remove a module. Without a kind, the first partition holding it wins."""
        try:
            kinds = (ModuleKind(kind),) if kind else _KIND_ORDER
        except ValueError:
            logger.warning("unregister ignored: unknown module kind '%s'", kind)
            return
        for k in kinds:
            if module_id in self._modules[k]:
                del self._modules[k][module_id]
                logger.info("Unregistered module: %s (%s)", module_id, k.value)
                return
        logger.warning("unregister ignored: module '%s' is not registered", module_id)

    def get(self, module_id: str, kind: ModuleKind | str) -> Optional[ResultProvider]:
        return self._modules[ModuleKind(kind)].get(module_id)

    def providers(self, kind: ModuleKind | str) -> dict[str, ResultProvider]:
        """Return one partition (read-only copy)."""
        return dict(self._modules[ModuleKind(kind)])

    def entries(self) -> Iterator[tuple[ModuleKind, str, ResultProvider]]:
        for kind in _KIND_ORDER:
            for module_id, provider in list(self._modules[kind].items()):
                yield kind, module_id, provider

    def snapshot(self) -> dict[ModuleKind, dict[str, ResultProvider]]:
        return {kind: dict(mods) for kind, mods in self._modules.items()}

    def __len__(self) -> int:
        return sum(len(mods) for mods in self._modules.values())

    def __contains__(self, module_id: object) -> bool:
        return any(module_id in mods for mods in self._modules.values())

    @staticmethod
    def _validate(
        module_id: str,
        provider: Any,
        kind: ModuleKind | str | None,
    ) -> tuple[ModuleKind, ResultProvider]:
        if not isinstance(module_id, str) or not module_id.strip():
            raise InvalidRegistrationError("id is required")

        if isinstance(provider, ResultProvider) and callable(provider.get_result):
            resolved: ResultProvider = provider
        elif callable(provider):
            resolved = FunctionProvider(provider)
        else:
            raise InvalidRegistrationError(
                f"provider for '{module_id}' must be callable or define get_result()"
            )

        if kind is None or kind == "":
            return infer_kind(module_id), resolved
        try:
            return ModuleKind(kind), resolved
        except ValueError:
            raise InvalidRegistrationError(
                f"unknown module kind '{kind}' for '{module_id}'"
            ) from None
