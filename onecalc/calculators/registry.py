from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from onecalc.models.enums import ModuleKind

# Global registry -- maps module type name -> ModuleTypeDefinition
_REGISTRY: dict[str, ModuleTypeDefinition] = {}


@dataclass(frozen=True)
class ModuleTypeDefinition:
    """A built-in calculator module that can be instantiated by name."""

    name: str
    label: str
    description: str
    kind: ModuleKind
    factory: Callable[..., object]
    default_module_id: str


def register_module_type(
    name: str,
    label: str,
    description: str,
    kind: ModuleKind,
    default_module_id: str,
) -> Callable:
    """Decorator to register a module class as a built-in calculator type."""

    def decorator(cls: type) -> type:
        definition = ModuleTypeDefinition(
            name=name,
            label=label,
            description=description,
            kind=kind,
            factory=cls,
            default_module_id=default_module_id,
        )
        _REGISTRY[name] = definition
        return cls

    return decorator


def get_module_type(name: str) -> Optional[ModuleTypeDefinition]:
    """Look up a module type definition by name."""
    return _REGISTRY.get(name)


def get_all_module_types() -> dict[str, ModuleTypeDefinition]:
    """Return the full registry (read-only copy)."""
    return dict(_REGISTRY)
