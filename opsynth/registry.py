"""Deterministic name -> capability factory registry."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Literal
import logging

from opsynth.groups import GROUP_FACTORIES
from opsynth.rules import FAMILY_FACTORIES, UNARY_FAMILIES

logger = logging.getLogger(__name__)

CapabilityKind = Literal["family", "group"]


@dataclass(frozen=True)
class CapabilityEntry:
    """Registered capability factory and its catalog metadata."""

    name: str
    kind: CapabilityKind
    factory: Callable[..., Any]
    description: str = ""
    unary: bool = False

    def build(self, other: Any = None) -> Any:
        if self.unary:
            if other is not None:
                raise ValueError(f"{self.name} takes a single type")
            return self.factory()
        return self.factory(other)


class CapabilityRegistry:
    """Registry of families and groups addressable by name."""

    def __init__(self) -> None:
        self._entries: OrderedDict[str, CapabilityEntry] = OrderedDict()

    def register(self, entry: CapabilityEntry) -> None:
        if not entry.name:
            raise ValueError("Capability name cannot be empty")
        if entry.kind not in ("family", "group"):
            raise ValueError(f"Invalid capability kind: {entry.kind}")
        if entry.name in self._entries:
            raise ValueError(f"Capability already registered: {entry.name}")
        self._entries[entry.name] = entry

    def resolve(self, name: str) -> CapabilityEntry:
        try:
            return self._entries[name]
        except KeyError:
            raise KeyError(f"Unknown capability: {name}") from None

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def names(self, kind: CapabilityKind | None = None) -> list[str]:
        return [
            name
            for name, entry in self._entries.items()
            if kind is None or entry.kind == kind
        ]

    def list_capabilities(self, kind: CapabilityKind | None = None) -> dict[str, str]:
        return {
            name: self._entries[name].description or self._entries[name].kind
            for name in self.names(kind)
        }


def _default_registry() -> CapabilityRegistry:
    registry = CapabilityRegistry()
    for name, factory in FAMILY_FACTORIES.items():
        unary = name in UNARY_FAMILIES
        sample = factory() if unary else factory(None)
        registry.register(
            CapabilityEntry(
                name=name,
                kind="family",
                factory=factory,
                description=sample.description,
                unary=unary,
            )
        )
    for name, factory in GROUP_FACTORIES.items():
        unary = name == "unit_steppable"
        sample = factory() if unary else factory(None)
        registry.register(
            CapabilityEntry(
                name=name,
                kind="group",
                factory=factory,
                description=sample.description,
                unary=unary,
            )
        )
    logger.debug("Registered %d capabilities", len(registry.names()))
    return registry


_REGISTRY: CapabilityRegistry | None = None


def get_registry() -> CapabilityRegistry:
    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = _default_registry()
    return _REGISTRY
