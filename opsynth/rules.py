"""Capability family rules.

A family maps a set of required primitives to a set of derived operators.
All arithmetic families come from one generic table indexed by operator
symbol and form; the relational and step families are written out.

Signatures are templates: ``HOST`` stands for the type the family will be
attached to, and is replaced on binding.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Literal

from opsynth.primitives import type_name

Form = Literal["basic", "left", "commutative", "relational", "step"]


class _HostRef:
    __slots__ = ()

    def __repr__(self) -> str:
        return "T"

    __str__ = __repr__


HOST: Any = _HostRef()


@dataclass(frozen=True)
class Placeholder:
    """A symbolic type standing in for a real class (used by ``explain``)."""

    name: str

    def __str__(self) -> str:
        return self.name


def resolve_ref(ref: Any, host: Any) -> Any:
    return host if ref is HOST else ref


@dataclass(frozen=True)
class Signature:
    """Operator symbol plus operand types; ``right`` is None for unary operators."""

    symbol: str
    left: Any
    right: Any = None

    def bind(self, host: Any) -> "Signature":
        return Signature(
            self.symbol,
            resolve_ref(self.left, host),
            None if self.right is None else resolve_ref(self.right, host),
        )

    def __str__(self) -> str:
        if self.right is None:
            if self.symbol.startswith("post"):
                return f"{type_name(self.left)}{self.symbol[4:]}"
            return f"{self.symbol}{type_name(self.left)}"
        return f"{type_name(self.left)}{self.symbol}{type_name(self.right)}"


@dataclass(frozen=True)
class Requirement:
    """A primitive (or previously derived operator) a rule invokes."""

    symbol: str
    operand: Any = HOST

    def bind(self, host: Any) -> "Requirement":
        return Requirement(self.symbol, resolve_ref(self.operand, host))

    def render(self, host: str = "T") -> str:
        operand = type_name(self.operand)
        if self.symbol == "convert":
            return f"{host}({operand})"
        if self.symbol == "copy":
            return f"{host}({host})"
        if self.symbol in ("++", "--"):
            return f"{self.symbol}{host}"
        return f"{host}{self.symbol}{operand}"

    def __str__(self) -> str:
        return self.render()


# Relational evaluators receive a mapping symbol -> callable(host_value, other_value).
Evaluator = Callable[[dict[str, Callable[[Any, Any], Any]], Any, Any], bool]


@dataclass(frozen=True)
class DerivedRule:
    """How one derived operator is obtained from its requirements."""

    signature: Signature
    form: Form
    requires: tuple[Requirement, ...]
    attr: str | None = None
    reflected: bool = False
    compound: Requirement | None = None
    evaluate: Evaluator | None = field(default=None, compare=False)
    served_by: str | None = None


@dataclass(frozen=True)
class CapabilityFamily:
    """One named family of derived operators."""

    name: str
    form: Form
    rules: tuple[DerivedRule, ...]
    other: Any = None
    description: str = ""

    @property
    def commutative(self) -> bool:
        return self.form == "commutative"

    @property
    def signatures(self) -> tuple[Signature, ...]:
        return tuple(rule.signature for rule in self.rules)

    @property
    def requires(self) -> tuple[Requirement, ...]:
        seen: dict[Requirement, None] = {}
        for rule in self.rules:
            for requirement in rule.requires:
                seen.setdefault(requirement, None)
        return tuple(seen)

    def families(self) -> tuple["CapabilityFamily", ...]:
        return (self,)

    def __str__(self) -> str:
        if self.other is None:
            return f"{self.name}<T>"
        return f"{self.name}<T,{type_name(self.other)}>"


# ----------------- Arithmetic table -----------------

# symbol -> (compound symbol, dunder, reflected dunder, family stem)
ARITHMETIC_OPERATORS: dict[str, tuple[str, str, str, str]] = {
    "+": ("+=", "__add__", "__radd__", "addable"),
    "-": ("-=", "__sub__", "__rsub__", "subtractable"),
    "*": ("*=", "__mul__", "__rmul__", "multipliable"),
    "/": ("/=", "__truediv__", "__rtruediv__", "dividable"),
    "%": ("%=", "__mod__", "__rmod__", "modable"),
    "&": ("&=", "__and__", "__rand__", "andable"),
    "|": ("|=", "__or__", "__ror__", "orable"),
    "^": ("^=", "__xor__", "__rxor__", "xorable"),
    "<<": ("<<=", "__lshift__", "__rlshift__", "left_shiftable"),
    ">>": (">>=", "__rshift__", "__rrshift__", "right_shiftable"),
}

# Operators that have commutative and _left forms.
COMMUTATIVE_CAPABLE = frozenset({"+", "*", "&", "|", "^"})
LEFT_CAPABLE = frozenset({"+", "-", "*", "/", "%", "&", "|", "^"})


def _operand(other: Any) -> Any:
    return HOST if other is None else other


def arithmetic_family(symbol: str, form: Form, other: Any = None) -> CapabilityFamily:
    """Build the family for ``symbol`` in the given form from the generic table."""
    compound_symbol, dunder, reflected_dunder, stem = ARITHMETIC_OPERATORS[symbol]
    operand = _operand(other)

    if form == "basic":
        name = stem
        compound = Requirement(compound_symbol, operand)
        rules = (
            DerivedRule(
                signature=Signature(symbol, HOST, operand),
                form=form,
                requires=(compound, Requirement("copy")),
                attr=dunder,
                compound=compound,
            ),
        )
    elif form == "left":
        if symbol not in LEFT_CAPABLE:
            raise ValueError(f"Operator {symbol} has no _left form")
        name = f"{stem}_left"
        compound = Requirement(compound_symbol, HOST)
        rules = (
            DerivedRule(
                signature=Signature(symbol, operand, HOST),
                form=form,
                requires=(compound, Requirement("convert", operand)),
                attr=reflected_dunder,
                reflected=True,
                compound=compound,
            ),
        )
    elif form == "commutative":
        if symbol not in COMMUTATIVE_CAPABLE:
            raise ValueError(f"Operator {symbol} is not commutative")
        name = f"commutative_{stem}"
        compound = Requirement(compound_symbol, operand)
        requires = (compound, Requirement("copy"))
        forward = DerivedRule(
            signature=Signature(symbol, HOST, operand),
            form=form,
            requires=requires,
            attr=dunder,
            compound=compound,
        )
        if operand is HOST:
            rules = (forward,)
        else:
            rules = (
                forward,
                DerivedRule(
                    signature=Signature(symbol, operand, HOST),
                    form=form,
                    requires=requires,
                    attr=reflected_dunder,
                    reflected=True,
                    compound=compound,
                ),
            )
    else:
        raise ValueError(f"Form {form!r} is not an arithmetic form")

    return CapabilityFamily(
        name=name,
        form=form,
        rules=rules,
        other=other,
        description=f"Derives {symbol} from {compound_symbol}",
    )


def _arithmetic_factory(symbol: str, form: Form) -> Callable[..., CapabilityFamily]:
    def factory(other: Any = None) -> CapabilityFamily:
        return arithmetic_family(symbol, form, other)

    factory.__name__ = arithmetic_family(symbol, form).name
    factory.__doc__ = f"{factory.__name__}<T, U=T>"
    return factory


addable = _arithmetic_factory("+", "basic")
addable_left = _arithmetic_factory("+", "left")
commutative_addable = _arithmetic_factory("+", "commutative")
subtractable = _arithmetic_factory("-", "basic")
subtractable_left = _arithmetic_factory("-", "left")
multipliable = _arithmetic_factory("*", "basic")
multipliable_left = _arithmetic_factory("*", "left")
commutative_multipliable = _arithmetic_factory("*", "commutative")
dividable = _arithmetic_factory("/", "basic")
dividable_left = _arithmetic_factory("/", "left")
modable = _arithmetic_factory("%", "basic")
modable_left = _arithmetic_factory("%", "left")
andable = _arithmetic_factory("&", "basic")
andable_left = _arithmetic_factory("&", "left")
commutative_andable = _arithmetic_factory("&", "commutative")
orable = _arithmetic_factory("|", "basic")
orable_left = _arithmetic_factory("|", "left")
commutative_orable = _arithmetic_factory("|", "commutative")
xorable = _arithmetic_factory("^", "basic")
xorable_left = _arithmetic_factory("^", "left")
commutative_xorable = _arithmetic_factory("^", "commutative")
left_shiftable = _arithmetic_factory("<<", "basic")
right_shiftable = _arithmetic_factory(">>", "basic")


# ----------------- Relational families -----------------


def _relational(
    signature: Signature,
    requires: tuple[Requirement, ...],
    evaluate: Evaluator,
    attr: str | None = None,
    served_by: str | None = None,
) -> DerivedRule:
    return DerivedRule(
        signature=signature,
        form="relational",
        requires=requires,
        attr=attr,
        evaluate=evaluate,
        served_by=served_by,
    )


def equality_comparable(other: Any = None) -> CapabilityFamily:
    """``!=`` from ``==``."""
    operand = _operand(other)
    eq = Requirement("==", operand)
    rules = [
        _relational(
            Signature("!=", HOST, operand), (eq,),
            lambda p, l, r: not p["=="](l, r), attr="__ne__",
        )
    ]
    if operand is not HOST:
        rules += [
            _relational(
                Signature("==", operand, HOST), (eq,),
                lambda p, l, r: p["=="](r, l), served_by="__eq__",
            ),
            _relational(
                Signature("!=", operand, HOST), (eq,),
                lambda p, l, r: not p["=="](r, l), served_by="__ne__",
            ),
        ]
    return CapabilityFamily("equality_comparable", "relational", tuple(rules), other, "!= from ==")


def less_than_comparable(other: Any = None) -> CapabilityFamily:
    """``>``, ``<=``, ``>=`` from ``<`` (and ``>`` for two types)."""
    operand = _operand(other)
    lt = Requirement("<", operand)
    if operand is HOST:
        rules = (
            _relational(
                Signature(">", HOST, HOST), (lt,),
                lambda p, l, r: p["<"](r, l), attr="__gt__",
            ),
            _relational(
                Signature("<=", HOST, HOST), (lt,),
                lambda p, l, r: not p["<"](r, l), attr="__le__",
            ),
            _relational(
                Signature(">=", HOST, HOST), (lt,),
                lambda p, l, r: not p["<"](l, r), attr="__ge__",
            ),
        )
    else:
        gt = Requirement(">", operand)
        rules = (
            _relational(
                Signature("<=", HOST, operand), (gt,),
                lambda p, l, r: not p[">"](l, r), attr="__le__",
            ),
            _relational(
                Signature(">=", HOST, operand), (lt,),
                lambda p, l, r: not p["<"](l, r), attr="__ge__",
            ),
            _relational(
                Signature("<", operand, HOST), (gt,),
                lambda p, l, r: p[">"](r, l), served_by="__gt__",
            ),
            _relational(
                Signature(">", operand, HOST), (lt,),
                lambda p, l, r: p["<"](r, l), served_by="__lt__",
            ),
            _relational(
                Signature("<=", operand, HOST), (lt,),
                lambda p, l, r: not p["<"](r, l), served_by="__ge__",
            ),
            _relational(
                Signature(">=", operand, HOST), (gt,),
                lambda p, l, r: not p[">"](r, l), served_by="__le__",
            ),
        )
    return CapabilityFamily("less_than_comparable", "relational", rules, other, "ordering from <")


def equivalent(other: Any = None) -> CapabilityFamily:
    """``==`` from ``<`` (and ``>`` for two types)."""
    operand = _operand(other)
    lt = Requirement("<", operand)
    if operand is HOST:
        rule = _relational(
            Signature("==", HOST, HOST), (lt,),
            lambda p, l, r: not p["<"](l, r) and not p["<"](r, l), attr="__eq__",
        )
    else:
        gt = Requirement(">", operand)
        rule = _relational(
            Signature("==", HOST, operand), (lt, gt),
            lambda p, l, r: not p["<"](l, r) and not p[">"](l, r), attr="__eq__",
        )
    return CapabilityFamily("equivalent", "relational", (rule,), other, "== from <")


def partially_ordered(other: Any = None) -> CapabilityFamily:
    """``>``, ``<=``, ``>=`` from ``<`` and ``==`` (and ``>`` for two types)."""
    operand = _operand(other)
    lt = Requirement("<", operand)
    eq = Requirement("==", operand)
    if operand is HOST:
        rules = (
            _relational(
                Signature(">", HOST, HOST), (lt,),
                lambda p, l, r: p["<"](r, l), attr="__gt__",
            ),
            _relational(
                Signature("<=", HOST, HOST), (lt, eq),
                lambda p, l, r: p["<"](l, r) or p["=="](l, r), attr="__le__",
            ),
            _relational(
                Signature(">=", HOST, HOST), (lt, eq),
                lambda p, l, r: p["<"](r, l) or p["=="](l, r), attr="__ge__",
            ),
        )
    else:
        gt = Requirement(">", operand)
        rules = (
            _relational(
                Signature("<=", HOST, operand), (lt, eq),
                lambda p, l, r: p["<"](l, r) or p["=="](l, r), attr="__le__",
            ),
            _relational(
                Signature(">=", HOST, operand), (gt, eq),
                lambda p, l, r: p[">"](l, r) or p["=="](l, r), attr="__ge__",
            ),
            _relational(
                Signature("<", operand, HOST), (gt,),
                lambda p, l, r: p[">"](r, l), served_by="__gt__",
            ),
            _relational(
                Signature(">", operand, HOST), (lt,),
                lambda p, l, r: p["<"](r, l), served_by="__lt__",
            ),
            _relational(
                Signature("<=", operand, HOST), (gt, eq),
                lambda p, l, r: p[">"](r, l) or p["=="](r, l), served_by="__ge__",
            ),
            _relational(
                Signature(">=", operand, HOST), (lt, eq),
                lambda p, l, r: p["<"](r, l) or p["=="](r, l), served_by="__le__",
            ),
        )
    return CapabilityFamily("partially_ordered", "relational", rules, other, "ordering from < and ==")


# ----------------- Step families -----------------


def _step_family(name: str, symbol: str, method: str) -> CapabilityFamily:
    rule = DerivedRule(
        signature=Signature(f"post{symbol}", HOST),
        form="step",
        requires=(Requirement(symbol), Requirement("copy")),
        attr=method,
        compound=Requirement(symbol),
    )
    return CapabilityFamily(name, "step", (rule,), None, f"T{symbol} from {symbol}T")


def incrementable() -> CapabilityFamily:
    """``post_increment`` from ``increment``."""
    return _step_family("incrementable", "++", "post_increment")


def decrementable() -> CapabilityFamily:
    """``post_decrement`` from ``decrement``."""
    return _step_family("decrementable", "--", "post_decrement")


FAMILY_FACTORIES: dict[str, Callable[..., CapabilityFamily]] = {
    factory.__name__: factory
    for factory in (
        equality_comparable,
        less_than_comparable,
        equivalent,
        partially_ordered,
        addable,
        addable_left,
        commutative_addable,
        subtractable,
        subtractable_left,
        multipliable,
        multipliable_left,
        commutative_multipliable,
        dividable,
        dividable_left,
        modable,
        modable_left,
        andable,
        andable_left,
        commutative_andable,
        orable,
        orable_left,
        commutative_orable,
        xorable,
        xorable_left,
        commutative_xorable,
        left_shiftable,
        right_shiftable,
        incrementable,
        decrementable,
    )
}

UNARY_FAMILIES = frozenset({"incrementable", "decrementable"})
