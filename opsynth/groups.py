"""Composite groups: named unions of capability families."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Union

from opsynth.errors import DefinitionDiagnostic, DefinitionError
from opsynth.primitives import type_name
from opsynth.rules import (
    CapabilityFamily,
    Signature,
    andable,
    andable_left,
    commutative_addable,
    commutative_andable,
    commutative_multipliable,
    commutative_orable,
    commutative_xorable,
    decrementable,
    dividable,
    dividable_left,
    equality_comparable,
    incrementable,
    left_shiftable,
    less_than_comparable,
    multipliable,
    orable,
    orable_left,
    right_shiftable,
    subtractable,
    subtractable_left,
    xorable,
    xorable_left,
)

Capability = Union[CapabilityFamily, "CompositeGroup"]


def check_disjoint(owner: str, members: tuple[Capability, ...]) -> tuple[Signature, ...]:
    """Union member signatures, rejecting any signature provided twice."""
    providers: dict[Signature, str] = {}
    diagnostics: list[DefinitionDiagnostic] = []
    for member in members:
        for family in member.families():
            for signature in family.signatures:
                previous = providers.get(signature)
                if previous is not None:
                    diagnostics.append(
                        DefinitionDiagnostic(
                            code="E_DUPLICATE_SIGNATURE",
                            message=(
                                f"{owner}: {signature} is provided by both "
                                f"{previous} and {family}"
                            ),
                            symbol=signature.symbol,
                            location=owner,
                        )
                    )
                    continue
                providers[signature] = str(family)
    if diagnostics:
        raise DefinitionError(diagnostics)
    return tuple(providers)


@dataclass(frozen=True)
class CompositeGroup:
    """Ordered set of member families (or nested groups)."""

    name: str
    members: tuple[Capability, ...]
    other: Any = None
    description: str = ""

    def __post_init__(self) -> None:
        check_disjoint(str(self), self.members)

    def families(self) -> tuple[CapabilityFamily, ...]:
        flattened: list[CapabilityFamily] = []
        for member in self.members:
            flattened.extend(member.families())
        return tuple(flattened)

    @property
    def signatures(self) -> tuple[Signature, ...]:
        return tuple(
            signature for family in self.families() for signature in family.signatures
        )

    def __str__(self) -> str:
        if self.other is None:
            return f"{self.name}<T>"
        return f"{self.name}<T,{type_name(self.other)}>"


def compose(name: str, *members: Capability, other: Any = None, description: str = "") -> CompositeGroup:
    """Build a group; duplicate signatures raise DefinitionError immediately."""
    return CompositeGroup(name=name, members=tuple(members), other=other, description=description)


def totally_ordered(other: Any = None) -> CompositeGroup:
    return compose(
        "totally_ordered",
        equality_comparable(other),
        less_than_comparable(other),
        other=other,
        description="equality_comparable + less_than_comparable",
    )


def ring(other: Any = None) -> CompositeGroup:
    members: list[Capability] = [commutative_addable(other), subtractable(other)]
    if other is not None:
        members.append(subtractable_left(other))
    members.append(multipliable(other))
    return compose(
        "ring", *members, other=other,
        description="commutative_addable + subtractable + multipliable",
    )


def commutative_ring(other: Any = None) -> CompositeGroup:
    members: list[Capability] = [commutative_addable(other), subtractable(other)]
    if other is not None:
        members.append(subtractable_left(other))
    members.append(commutative_multipliable(other))
    return compose(
        "commutative_ring", *members, other=other,
        description="commutative_addable + subtractable + commutative_multipliable",
    )


def field(other: Any = None) -> CompositeGroup:
    members: list[Capability] = [commutative_ring(other), dividable(other)]
    if other is not None:
        members.append(dividable_left(other))
    return compose("field", *members, other=other, description="commutative_ring + dividable")


def ordered_ring(other: Any = None) -> CompositeGroup:
    return compose(
        "ordered_ring", ring(other), totally_ordered(other), other=other,
        description="ring + totally_ordered",
    )


def ordered_commutative_ring(other: Any = None) -> CompositeGroup:
    return compose(
        "ordered_commutative_ring", commutative_ring(other), totally_ordered(other),
        other=other, description="commutative_ring + totally_ordered",
    )


def ordered_field(other: Any = None) -> CompositeGroup:
    return compose(
        "ordered_field", field(other), totally_ordered(other), other=other,
        description="field + totally_ordered",
    )


def commutative_bitwise(other: Any = None) -> CompositeGroup:
    return compose(
        "commutative_bitwise",
        commutative_andable(other),
        commutative_orable(other),
        commutative_xorable(other),
        other=other,
        description="commutative &, |, ^",
    )


def bitwise(other: Any = None) -> CompositeGroup:
    members: list[Capability] = [andable(other), orable(other), xorable(other)]
    if other is not None:
        members += [andable_left(other), orable_left(other), xorable_left(other)]
    return compose("bitwise", *members, other=other, description="&, |, ^")


def bitwise_left(other: Any = None) -> CompositeGroup:
    return compose(
        "bitwise_left",
        andable_left(other),
        orable_left(other),
        xorable_left(other),
        other=other,
        description="reversed-operand &, |, ^",
    )


def shiftable(other: Any = None) -> CompositeGroup:
    return compose(
        "shiftable", left_shiftable(other), right_shiftable(other), other=other,
        description="<< and >>",
    )


def unit_steppable() -> CompositeGroup:
    return compose(
        "unit_steppable", incrementable(), decrementable(),
        description="post_increment and post_decrement",
    )


GROUP_FACTORIES: dict[str, Callable[..., CompositeGroup]] = {
    factory.__name__: factory
    for factory in (
        totally_ordered,
        ring,
        commutative_ring,
        field,
        ordered_ring,
        ordered_commutative_ring,
        ordered_field,
        commutative_bitwise,
        bitwise,
        bitwise_left,
        shiftable,
        unit_steppable,
    )
}
