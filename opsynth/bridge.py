"""Conversion bridge used by ``_left`` families."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from opsynth.primitives import Effect, PrimitiveOperation, type_name


@dataclass(frozen=True)
class ConversionBridge:
    """Materializes a ``source`` value as a fresh ``host`` value."""

    host: Any
    source: Any
    operation: PrimitiveOperation

    @property
    def effect(self) -> Effect:
        return self.operation.effect

    @property
    def converter(self) -> Callable[[Any], Any]:
        impl = self.operation.impl
        if impl is None:
            raise ValueError(f"Bridge {self} has no bound converter")
        return impl

    def materialize(self, value: Any) -> Any:
        return self.converter(value)

    def __str__(self) -> str:
        return f"{type_name(self.host)}({type_name(self.source)})"
