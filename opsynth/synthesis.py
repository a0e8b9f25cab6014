"""Operator synthesis engine.

Binds capability families to a host class, validates every requirement
against the declared primitives, and only then installs the derived
operators. Nothing is installed when any check fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator
import logging
import sys

from opsynth.bridge import ConversionBridge
from opsynth.config import VERBOSE_LEVEL
from opsynth.effects import explain_effect
from opsynth.errors import DefinitionDiagnostic, DefinitionError
from opsynth.operand import PERSISTENT, AccessMode, Ownership, describe, release
from opsynth.primitives import (
    Effect,
    PrimitiveOperation,
    PrimitiveSet,
    collect_primitives,
    type_name,
)
from opsynth.rules import CapabilityFamily, DerivedRule, Requirement, Signature
from opsynth.selection import Modes, Resolution, plan_variants, run_binary, run_post_step

logger = logging.getLogger(__name__)

TABLE_ATTR = "__opsynth_table__"
DISPATCH_FLAG = "__opsynth_dispatch__"

_COMPARISON_SYMBOLS = frozenset({"==", "<", ">"})


@dataclass(frozen=True)
class OverloadVariant:
    """One access-mode specific implementation of a derived operator."""

    modes: Modes
    resolution: Resolution
    effect: Effect

    @property
    def strategy(self) -> str:
        return self.resolution.strategy

    @property
    def ownership(self) -> Ownership:
        return self.resolution.ownership


@dataclass(frozen=True)
class _Available:
    call: Callable[..., Any]
    effect: Effect
    label: str


@dataclass
class DerivedOperator:
    """A synthesized operator bound to a host class."""

    signature: Signature
    family: str
    rule: DerivedRule
    effect: Effect
    invokes: tuple[str, ...]
    variants: dict[Modes, OverloadVariant]
    _call: Callable[..., Any] = field(repr=False)
    may_fail_via: tuple[str, ...] = ()

    @property
    def cannot_fail(self) -> bool:
        return self.effect == "cannot_fail"

    def variant(self, *modes: AccessMode) -> OverloadVariant:
        """Return the variant for the operands' modes (persistent when omitted)."""
        if len(self.variants) == 1:
            return next(iter(self.variants.values()))
        arity = len(next(iter(self.variants)))
        key = tuple(modes) + (PERSISTENT,) * (arity - len(modes))
        return self.variants[key]

    def __call__(self, *operands: Any) -> Any:
        return self._call(*operands)

    def __str__(self) -> str:
        return str(self.signature)


class OperatorTable:
    """Derived operators synthesized on one host class."""

    def __init__(self, host: type) -> None:
        self.host = host
        self.families: list[str] = []
        self._operators: dict[Signature, DerivedOperator] = {}

    def __iter__(self) -> Iterator[DerivedOperator]:
        return iter(self._operators.values())

    def __len__(self) -> int:
        return len(self._operators)

    def __contains__(self, signature: object) -> bool:
        return signature in self._operators

    def add(self, operator: DerivedOperator) -> None:
        if operator.signature in self._operators:
            raise ValueError(f"Operator already synthesized: {operator.signature}")
        self._operators[operator.signature] = operator

    def find(self, signature: Signature) -> DerivedOperator | None:
        return self._operators.get(signature)

    def get(self, symbol: str, left: Any = None, right: Any = None) -> DerivedOperator:
        left = self.host if left is None else left
        if symbol.startswith("post"):
            signature = Signature(symbol, left)
        else:
            signature = Signature(symbol, left, self.host if right is None else right)
        try:
            return self._operators[signature]
        except KeyError:
            raise KeyError(f"No derived operator {signature} on {type_name(self.host)}") from None

    def signatures(self) -> tuple[Signature, ...]:
        return tuple(self._operators)

    def describe(self) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        for operator in self:
            rows.append(
                {
                    "signature": str(operator.signature),
                    "family": operator.family,
                    "effect": operator.effect,
                    "invokes": list(operator.invokes),
                    "may_fail_via": list(operator.may_fail_via),
                    "installed_as": operator.rule.attr or operator.rule.served_by,
                    "variants": {
                        ",".join(modes): {
                            "strategy": variant.strategy,
                            "ownership": variant.ownership,
                        }
                        for modes, variant in operator.variants.items()
                    },
                }
            )
        return rows


# ----------------- Requirement resolution -----------------


class _Resolver:
    """Looks up requirements among declared primitives and derived operators."""

    def __init__(self, host: type, primitives: PrimitiveSet, table: OperatorTable) -> None:
        self.host = host
        self.primitives = primitives
        self.table = table
        self.pending: dict[Signature, DerivedOperator] = {}

    def derived(self, signature: Signature) -> DerivedOperator | None:
        return self.pending.get(signature) or self.table.find(signature)

    def resolve(self, requirement: Requirement) -> _Available | None:
        symbol, operand = requirement.symbol, requirement.operand
        if symbol == "copy":
            return self._from_primitive(self.primitives.copy_operation())
        if symbol == "convert":
            operation = self.primitives.get("convert", operand)
            if operation is None:
                return None
            bridge = ConversionBridge(self.host, operand, operation)
            return _Available(bridge.materialize, bridge.effect, str(bridge))

        operation = self.primitives.get(symbol, operand)
        if operation is not None:
            return self._from_primitive(operation)
        if symbol in _COMPARISON_SYMBOLS:
            derived = self.derived(Signature(symbol, self.host, operand))
            if derived is not None:
                return _Available(derived, derived.effect, str(derived.signature))
        return None

    def _from_primitive(self, operation: PrimitiveOperation) -> _Available:
        label = operation.describe(self.host)
        if operation.implicit:
            label = f"{label} (implicit copy)"
        return _Available(operation.impl, operation.effect, label)


def _resolve_requirements(
    resolver: _Resolver, rule: DerivedRule, host: type
) -> tuple[dict[Requirement, _Available], list[str]]:
    resolved: dict[Requirement, _Available] = {}
    missing: list[str] = []
    for requirement in rule.requires:
        bound = requirement.bind(host)
        available = resolver.resolve(bound)
        if available is None:
            missing.append(PrimitiveOperation(bound.symbol, bound.operand).describe(host))
        else:
            resolved[bound] = available
    return resolved, missing


def _build_operator(
    family: CapabilityFamily,
    rule: DerivedRule,
    signature: Signature,
    host: type,
    resolved: dict[Requirement, _Available],
) -> DerivedOperator:
    effect, may_fail_via = explain_effect(
        (available.label, available.effect) for available in resolved.values()
    )
    invokes = tuple(available.label for available in resolved.values())
    variants = {
        modes: OverloadVariant(modes, resolution, effect)
        for modes, resolution in plan_variants(
            rule.form,
            signature.left is host,
            signature.right is host,
        ).items()
    }

    if rule.form == "relational":
        comparisons = {
            requirement.symbol: available.call
            for requirement, available in resolved.items()
        }
        evaluate = rule.evaluate

        def call(lhs: Any, rhs: Any) -> bool:
            return evaluate(comparisons, release(lhs), release(rhs))

    elif rule.form == "step":
        step = resolved[rule.compound.bind(host)].call
        copy = resolved[Requirement("copy", host)].call

        def call(value: Any) -> Any:
            return run_post_step(release(value), step, copy)

    else:
        compound = resolved[rule.compound.bind(host)].call
        if rule.form == "left":
            materialize = resolved[Requirement("convert", signature.left)].call
        else:
            materialize = resolved[Requirement("copy", host)].call

        def call(lhs: Any, rhs: Any) -> Any:
            left, right = describe(lhs), describe(rhs)
            resolution = variants[(left.mode, right.mode)].resolution
            return run_binary(resolution, left.value, right.value, compound, materialize)

    return DerivedOperator(
        signature=signature,
        family=str(family),
        rule=rule,
        effect=effect,
        invokes=invokes,
        may_fail_via=may_fail_via,
        variants=variants,
        _call=call,
    )


# ----------------- Installation -----------------


def _inherited(cls: type, attr: str) -> Any:
    for klass in cls.__mro__[1:]:
        if attr in vars(klass):
            if klass is object:
                return None
            return vars(klass)[attr]
    return None


def _lookup(entries: dict[Any, DerivedOperator], value: Any) -> DerivedOperator | None:
    for klass in type(value).__mro__:
        operator = entries.get(klass)
        if operator is not None:
            return operator
    return None


def _make_dispatcher(attr: str, reflected: bool, fallback: Any) -> Callable[[Any, Any], Any]:
    entries: dict[Any, DerivedOperator] = {}

    def dispatcher(self: Any, other: Any) -> Any:
        operator = _lookup(entries, release(other))
        if operator is None:
            if fallback is None:
                return NotImplemented
            if getattr(fallback, DISPATCH_FLAG, False):
                return fallback(self, other)
            return fallback(release(self), release(other))
        if reflected:
            return operator(other, self)
        return operator(self, other)

    dispatcher.__name__ = attr
    dispatcher.__qualname__ = attr
    setattr(dispatcher, DISPATCH_FLAG, True)
    dispatcher.entries = entries  # type: ignore[attr-defined]
    return dispatcher


def _install(cls: type, operator: DerivedOperator) -> None:
    rule = operator.rule
    if rule.attr is None:
        return

    if rule.form == "step":
        def method(self: Any) -> Any:
            return operator(self)

        method.__name__ = rule.attr
        method.__qualname__ = f"{cls.__qualname__}.{rule.attr}"
        method.__doc__ = f"{operator.signature}: copy, step in place, return the copy."
        setattr(cls, rule.attr, method)
        return

    current = vars(cls).get(rule.attr)
    if current is None or not getattr(current, DISPATCH_FLAG, False):
        fallback = current if current is not None else _inherited(cls, rule.attr)
        current = _make_dispatcher(rule.attr, rule.reflected, fallback)
        setattr(cls, rule.attr, current)

    other = operator.signature.left if rule.reflected else operator.signature.right
    current.entries[other] = operator


# ----------------- Public API -----------------


def _expand(cls: type, capabilities: Iterable[Any]) -> list[CapabilityFamily]:
    from opsynth.parser import parse_capabilities

    families: list[CapabilityFamily] = []
    for capability in capabilities:
        if isinstance(capability, str):
            module = sys.modules.get(cls.__module__)
            namespace = dict(vars(module)) if module is not None else {}
            _, built = parse_capabilities(
                capability,
                host_name=cls.__name__,
                namespace=namespace,
            )
            for item in built:
                families.extend(item.families())
        else:
            families.extend(capability.families())
    return families


def operator_table(cls: type) -> OperatorTable:
    table = vars(cls).get(TABLE_ATTR)
    if table is None:
        raise KeyError(f"{type_name(cls)} has no synthesized operators")
    return table


def derived_operator(cls: type, symbol: str, left: Any = None, right: Any = None) -> DerivedOperator:
    return operator_table(cls).get(symbol, left, right)


def synthesize(
    cls: type,
    *capabilities: Any,
    primitives: Iterable[PrimitiveOperation] = (),
) -> OperatorTable:
    """Attach ``capabilities`` to ``cls`` and install the derived operators.

    Raises DefinitionError, installing nothing, when a requirement is
    missing or a signature would be provided twice.
    """
    families = _expand(cls, capabilities)
    declared = collect_primitives(cls, primitives)
    table = vars(cls).get(TABLE_ATTR) or OperatorTable(cls)
    resolver = _Resolver(cls, declared, table)
    diagnostics: list[DefinitionDiagnostic] = []
    location = type_name(cls)

    candidates: list[tuple[CapabilityFamily, DerivedRule, Signature]] = []
    planned: set[Signature] = set()
    for family in families:
        # A two-type family bound with other=host collapses onto one signature.
        seen: set[Signature] = set()
        for rule in family.rules:
            signature = rule.signature.bind(cls)
            if signature in seen:
                continue
            seen.add(signature)
            if signature in planned or signature in table:
                diagnostics.append(
                    DefinitionDiagnostic(
                        code="E_DUPLICATE_SIGNATURE",
                        message=f"{signature} is already synthesized on {location} ({family})",
                        symbol=signature.symbol,
                        location=location,
                    )
                )
                continue
            if (
                signature.symbol in _COMPARISON_SYMBOLS
                and signature.left is cls
                and declared.get(signature.symbol, signature.right) is not None
            ):
                diagnostics.append(
                    DefinitionDiagnostic(
                        code="E_DUPLICATE_SIGNATURE",
                        message=f"{signature} is already a declared primitive of {location} ({family})",
                        symbol=signature.symbol,
                        location=location,
                    )
                )
                continue
            if rule.form == "step" and rule.attr in vars(cls):
                diagnostics.append(
                    DefinitionDiagnostic(
                        code="E_ATTRIBUTE_CONFLICT",
                        message=f"{family} would overwrite {location}.{rule.attr}",
                        symbol=rule.attr,
                        location=location,
                    )
                )
                continue
            planned.add(signature)
            candidates.append((family, rule, signature))
        logger.debug("Bound %s to %s", family, location)

    # Rules may rely on comparisons derived in this same call, whatever the
    # family order, so resolve until no further rule becomes buildable.
    unresolved = candidates
    while unresolved:
        waiting = []
        for family, rule, signature in unresolved:
            resolved, missing = _resolve_requirements(resolver, rule, cls)
            if missing:
                waiting.append((family, rule, signature))
            else:
                resolver.pending[signature] = _build_operator(family, rule, signature, cls, resolved)
        if len(waiting) == len(unresolved):
            break
        unresolved = waiting

    for family, rule, signature in unresolved:
        _, missing = _resolve_requirements(resolver, rule, cls)
        diagnostics.append(
            DefinitionDiagnostic(
                code="E_MISSING_PRIMITIVE",
                message=(
                    f"{family} cannot derive {signature}: {location} lacks "
                    + ", ".join(missing)
                ),
                symbol=signature.symbol,
                location=location,
            )
        )

    if diagnostics:
        raise DefinitionError(diagnostics)

    operators = [resolver.pending[signature] for _, _, signature in candidates]
    for operator in operators:
        _install(cls, operator)
        table.add(operator)
    table.families.extend(str(family) for family in families)
    setattr(cls, TABLE_ATTR, table)
    logger.log(
        VERBOSE_LEVEL,
        "Synthesized %d operators on %s from %d families",
        len(operators),
        location,
        len(families),
    )
    return table


def attach(*capabilities: Any, primitives: Iterable[PrimitiveOperation] = ()) -> Callable[[type], type]:
    """Class decorator form of :func:`synthesize`."""

    def decorator(cls: type) -> type:
        synthesize(cls, *capabilities, primitives=primitives)
        return cls

    return decorator


# ----------------- Symbolic planning -----------------


@dataclass(frozen=True)
class PlannedOperator:
    """A derived operator planned for a symbolic host (no primitives bound)."""

    signature: Signature
    family: str
    requires: tuple[Requirement, ...]
    variants: dict[Modes, Resolution]
    installed_as: str | None


def plan_capabilities(host: Any, capabilities: Iterable[Any]) -> list[PlannedOperator]:
    """Bind capabilities to a (possibly placeholder) host without installing anything."""
    planned: list[PlannedOperator] = []
    for capability in capabilities:
        for family in capability.families():
            for rule in family.rules:
                signature = rule.signature.bind(host)
                planned.append(
                    PlannedOperator(
                        signature=signature,
                        family=str(family),
                        requires=tuple(requirement.bind(host) for requirement in rule.requires),
                        variants=plan_variants(
                            rule.form,
                            signature.left is host,
                            signature.right is host,
                        ),
                        installed_as=rule.attr or rule.served_by,
                    )
                )
    return planned
