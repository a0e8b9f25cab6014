"""Primitive operation declarations supplied by type authors."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Iterator, Literal
import copy as copy_module
import logging

from opsynth.config import get_settings
from opsynth.errors import DefinitionDiagnostic, DefinitionError, fail

logger = logging.getLogger(__name__)

Effect = Literal["may_fail", "cannot_fail"]

MAY_FAIL: Effect = "may_fail"
CANNOT_FAIL: Effect = "cannot_fail"

PRIMITIVES_ATTR = "__opsynth_primitives__"

# Primitive symbol -> the attribute implementing it on the host.
SYMBOL_ATTRS: dict[str, str] = {
    "==": "__eq__",
    "<": "__lt__",
    ">": "__gt__",
    "+=": "__iadd__",
    "-=": "__isub__",
    "*=": "__imul__",
    "/=": "__itruediv__",
    "%=": "__imod__",
    "&=": "__iand__",
    "|=": "__ior__",
    "^=": "__ixor__",
    "<<=": "__ilshift__",
    ">>=": "__irshift__",
    "++": "increment",
    "--": "decrement",
    "copy": "__copy__",
    "convert": "__init__",
}
ATTR_SYMBOLS: dict[str, str] = {
    attr: symbol for symbol, attr in SYMBOL_ATTRS.items() if symbol != "convert"
}
UNARY_SYMBOLS = frozenset({"++", "--", "copy"})


@dataclass(frozen=True)
class PrimitiveOperation:
    """A base operation declared to exist on a host (or host/other pair)."""

    symbol: str
    other: Any = None
    effect: Effect = MAY_FAIL
    impl: Callable[..., Any] | None = None
    implicit: bool = False

    @property
    def cannot_fail(self) -> bool:
        return self.effect == CANNOT_FAIL

    def operand(self, host: Any) -> Any:
        return host if self.other is None else self.other

    def describe(self, host: Any) -> str:
        host_name = type_name(host)
        if self.symbol == "convert":
            return f"{host_name}({type_name(self.operand(host))})"
        if self.symbol == "copy":
            return f"{host_name}({host_name})"
        if self.symbol in UNARY_SYMBOLS:
            return f"{self.symbol}{host_name}"
        return f"{host_name}{self.symbol}{type_name(self.operand(host))}"


def type_name(ref: Any) -> str:
    return getattr(ref, "__name__", None) or str(ref)


def effect_of(cannot_fail: bool) -> Effect:
    return CANNOT_FAIL if cannot_fail else MAY_FAIL


def declare(symbol: str, other: Any = None, *, cannot_fail: bool = False) -> PrimitiveOperation:
    """Declare a primitive whose implementation is bound from the host by symbol."""
    _validate_symbol(symbol)
    if symbol == "copy" and other is not None:
        raise ValueError("The copy primitive takes no operand type")
    return PrimitiveOperation(symbol=symbol, other=other, effect=effect_of(cannot_fail))


def primitive(
    symbol: str | None = None,
    *,
    other: Any = None,
    cannot_fail: bool = False,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Mark a method as a declared primitive operation.

    The symbol defaults to the one implied by the method name (``__iadd__``
    declares ``+=``). ``other`` names the right operand type of a two-type
    primitive; it defaults to the host. Decorators may be stacked to declare
    one method for several operand types.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        resolved = symbol or ATTR_SYMBOLS.get(func.__name__)
        if resolved is None:
            raise ValueError(
                f"Cannot infer a primitive symbol for method '{func.__name__}'"
            )
        declaration = declare(resolved, other, cannot_fail=cannot_fail)
        existing = list(getattr(func, PRIMITIVES_ATTR, ()))
        existing.append(declaration)
        setattr(func, PRIMITIVES_ATTR, tuple(existing))
        return func

    return decorator


def converting(source: Any, *, cannot_fail: bool = False) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Mark ``__init__`` as a converting constructor ``T(source)``."""
    return primitive("convert", other=source, cannot_fail=cannot_fail)


def _validate_symbol(symbol: str) -> None:
    if symbol not in SYMBOL_ATTRS:
        fail("E_INVALID_DECLARATION", f"Unknown primitive symbol: {symbol!r}", symbol=symbol)


class PrimitiveSet:
    """The primitives declared for one host type, keyed by (symbol, operand type)."""

    def __init__(self, host: Any) -> None:
        self.host = host
        self._operations: dict[tuple[str, Any], PrimitiveOperation] = {}

    def __iter__(self) -> Iterator[PrimitiveOperation]:
        return iter(self._operations.values())

    def __len__(self) -> int:
        return len(self._operations)

    def add(self, operation: PrimitiveOperation) -> None:
        key = (operation.symbol, operation.operand(self.host))
        if key in self._operations:
            raise ValueError(f"Primitive already declared: {operation.describe(self.host)}")
        self._operations[key] = operation

    def get(self, symbol: str, other: Any = None) -> PrimitiveOperation | None:
        operand = self.host if other is None else other
        found = self._operations.get((symbol, operand))
        if found is None and symbol == "convert" and operand is self.host:
            return self.copy_operation()
        return found

    def copy_operation(self) -> PrimitiveOperation:
        declared = self._operations.get(("copy", self.host))
        if declared is not None:
            return declared
        return PrimitiveOperation(
            symbol="copy",
            effect=get_settings().implicit_copy_effect,
            impl=copy_module.copy,
            implicit=True,
        )

    def signatures(self) -> set[tuple[str, Any]]:
        return set(self._operations)


def _bind_impl(host: type, operation: PrimitiveOperation, func: Callable[..., Any] | None) -> PrimitiveOperation:
    if operation.symbol == "convert":
        return replace(operation, impl=host)
    if func is not None:
        return replace(operation, impl=func)
    attr = SYMBOL_ATTRS[operation.symbol]
    impl = getattr(host, attr, None)
    if impl is None or impl is getattr(object, attr, None):
        if operation.symbol == "copy":
            return replace(operation, impl=copy_module.copy)
        fail(
            "E_INVALID_DECLARATION",
            f"Primitive {operation.describe(host)} is declared but "
            f"{type_name(host)} does not implement {attr}",
            symbol=operation.symbol,
            location=type_name(host),
        )
    return replace(operation, impl=impl)


def collect_primitives(host: type, extra: Iterable[PrimitiveOperation] = ()) -> PrimitiveSet:
    """Collect the declared primitives of ``host``.

    Decorated methods are gathered along the MRO, subclasses overriding
    their bases; ``extra`` declarations are bound from the host by symbol.
    """
    collected: dict[tuple[str, Any], PrimitiveOperation] = {}
    for klass in reversed(host.__mro__):
        for func in vars(klass).values():
            for declaration in getattr(func, PRIMITIVES_ATTR, ()):
                bound = _bind_impl(host, declaration, func)
                collected[(bound.symbol, bound.operand(host))] = bound

    primitives = PrimitiveSet(host)
    for operation in collected.values():
        primitives.add(operation)
    for declaration in extra:
        bound = _bind_impl(host, declaration, declaration.impl)
        try:
            primitives.add(bound)
        except ValueError as exc:
            raise DefinitionError(
                [
                    DefinitionDiagnostic(
                        code="E_INVALID_DECLARATION",
                        message=str(exc),
                        symbol=bound.symbol,
                        location=type_name(host),
                    )
                ]
            ) from exc

    logger.debug("Collected %d primitives for %s", len(primitives), type_name(host))
    return primitives
