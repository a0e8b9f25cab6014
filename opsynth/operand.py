"""Operand descriptors: access modes and the disposable call-site marker."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

AccessMode = Literal["persistent", "disposable"]
Ownership = Literal["reused", "fresh"]
Side = Literal["left", "right"]

PERSISTENT: AccessMode = "persistent"
DISPOSABLE: AccessMode = "disposable"

ACCESS_MODES: tuple[AccessMode, AccessMode] = (PERSISTENT, DISPOSABLE)

# Every binary dunder a Disposable marker must forward so that a wrapped
# operand reaches the synthesized dispatcher of its own type.
FORWARDED_DUNDERS = (
    "__add__", "__radd__", "__sub__", "__rsub__",
    "__mul__", "__rmul__", "__truediv__", "__rtruediv__",
    "__mod__", "__rmod__", "__and__", "__rand__",
    "__or__", "__ror__", "__xor__", "__rxor__",
    "__lshift__", "__rlshift__", "__rshift__", "__rrshift__",
    "__eq__", "__ne__", "__lt__", "__le__", "__gt__", "__ge__",
)


@dataclass(frozen=True)
class OperandDescriptor:
    """One participating operand at a call site."""

    value: Any
    mode: AccessMode

    @property
    def disposable(self) -> bool:
        return self.mode == DISPOSABLE


class Disposable:
    """Marks an operand whose storage may be consumed by a derived operator.

    ``disposable(a) + b`` lets a synthesized ``+`` mutate ``a`` in place
    through its compound primitive instead of copying it.
    """

    __slots__ = ("value",)
    __hash__ = None  # type: ignore[assignment]

    def __init__(self, value: Any) -> None:
        if isinstance(value, Disposable):
            value = value.value
        self.value = value

    def __repr__(self) -> str:
        return f"disposable({self.value!r})"


def _forward(name: str):
    def method(self: Disposable, other: Any) -> Any:
        impl = getattr(type(self.value), name, None)
        if impl is None:
            return NotImplemented
        if getattr(impl, "__opsynth_dispatch__", False):
            return impl(self, other)
        return impl(self.value, release(other))

    method.__name__ = name
    return method


for _name in FORWARDED_DUNDERS:
    setattr(Disposable, _name, _forward(_name))
del _name


def disposable(value: Any) -> Disposable:
    """Wrap ``value`` so derived operators may reuse it."""
    return Disposable(value)


def describe(value: Any) -> OperandDescriptor:
    if isinstance(value, Disposable):
        return OperandDescriptor(value.value, DISPOSABLE)
    return OperandDescriptor(value, PERSISTENT)


def release(value: Any) -> Any:
    """Strip a Disposable marker, if any."""
    if isinstance(value, Disposable):
        return value.value
    return value
