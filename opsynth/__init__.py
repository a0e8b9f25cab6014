"""
opsynth - operator synthesis from declared primitives

A type declares its primitive operations (``__iadd__``, ``__eq__``,
``__lt__``, converting constructors, ...) and attaches capability families
or composite groups; the engine derives the rest of the operator family,
reusing disposable operands and propagating the cannot-fail guarantee.
"""

from opsynth.errors import DefinitionDiagnostic, DefinitionError
from opsynth.groups import (
    CompositeGroup,
    bitwise,
    bitwise_left,
    commutative_bitwise,
    commutative_ring,
    compose,
    field,
    ordered_commutative_ring,
    ordered_field,
    ordered_ring,
    ring,
    shiftable,
    totally_ordered,
    unit_steppable,
)
from opsynth.operand import DISPOSABLE, PERSISTENT, Disposable, disposable
from opsynth.parser import parse_capabilities
from opsynth.primitives import (
    CANNOT_FAIL,
    MAY_FAIL,
    PrimitiveOperation,
    converting,
    declare,
    primitive,
)
from opsynth.rules import (
    CapabilityFamily,
    Signature,
    addable,
    addable_left,
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
    equivalent,
    incrementable,
    left_shiftable,
    less_than_comparable,
    modable,
    modable_left,
    multipliable,
    multipliable_left,
    orable,
    orable_left,
    partially_ordered,
    right_shiftable,
    subtractable,
    subtractable_left,
    xorable,
    xorable_left,
)
from opsynth.synthesis import (
    DerivedOperator,
    OperatorTable,
    attach,
    derived_operator,
    operator_table,
    synthesize,
)
from opsynth.version import __version__
