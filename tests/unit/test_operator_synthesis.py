from __future__ import annotations

import pytest

from opsynth import (
    DefinitionError,
    Signature,
    addable,
    addable_left,
    attach,
    commutative_addable,
    commutative_ring,
    derived_operator,
    disposable,
    equivalent,
    multipliable,
    operator_table,
    primitive,
    ring,
    subtractable,
    synthesize,
    totally_ordered,
    unit_steppable,
)


@pytest.mark.unit
def test_meters_commutative_ring_and_total_order(meters_cls):
    table = synthesize(meters_cls, commutative_ring(), totally_ordered())
    assert {str(signature) for signature in table.signatures()} == {
        "Meters+Meters",
        "Meters-Meters",
        "Meters*Meters",
        "Meters!=Meters",
        "Meters>Meters",
        "Meters<=Meters",
        "Meters>=Meters",
    }
    assert all(operator.cannot_fail for operator in table)

    a, b = meters_cls(3), meters_cls(4)
    assert (a + b).value == 7
    assert (b - a).value == 1
    assert (a * b).value == 12
    assert a != b
    assert b > a
    assert a <= b and a <= meters_cls(3)
    assert b >= a
    assert not (a >= b)
    assert (a.value, b.value) == (3, 4)


@pytest.mark.unit
def test_disposable_operands_are_reused_without_construction(meters_cls):
    synthesize(meters_cls, commutative_ring())
    a, b = meters_cls(3), meters_cls(4)
    before = meters_cls.constructed

    result = disposable(a) + disposable(b)

    assert result is a
    assert a.value == 7
    assert meters_cls.constructed == before


@pytest.mark.unit
def test_persistent_operands_produce_a_fresh_value(meters_cls):
    synthesize(meters_cls, commutative_ring())
    a, b = meters_cls(3), meters_cls(4)
    before = meters_cls.constructed

    result = a + b

    assert result is not a and result is not b
    assert (a.value, b.value, result.value) == (3, 4, 7)
    assert meters_cls.constructed == before + 1


@pytest.mark.unit
def test_commutative_operator_reuses_disposable_right_operand(meters_cls):
    synthesize(meters_cls, commutative_ring())
    a, b = meters_cls(3), meters_cls(4)

    result = a + disposable(b)

    assert result is b
    assert (a.value, b.value) == (3, 7)


@pytest.mark.unit
def test_non_commutative_operator_never_reuses_right_operand(meters_cls):
    synthesize(meters_cls, commutative_ring())
    a, b = meters_cls(10), meters_cls(4)

    result = a - disposable(b)

    assert result is not b
    assert result.value == 6
    assert b.value == 4


@pytest.mark.unit
def test_variants_record_strategy_per_mode_pair(meters_cls):
    synthesize(meters_cls, commutative_ring())
    plus = derived_operator(meters_cls, "+")
    minus = derived_operator(meters_cls, "-")

    assert plus.variant("persistent", "persistent").strategy == "construct"
    assert plus.variant("disposable", "persistent").strategy == "reuse_left"
    assert plus.variant("persistent", "disposable").strategy == "reuse_right"
    assert plus.variant("disposable", "disposable").strategy == "reuse_left"
    assert minus.variant("persistent", "disposable").strategy == "construct"
    assert plus.variant("persistent", "persistent").ownership == "fresh"
    assert plus.variant("disposable", "persistent").ownership == "reused"


@pytest.mark.unit
def test_may_fail_primitives_make_derived_operators_may_fail():
    from operator_testinfra import make_meters

    Meters = make_meters(cannot_fail=False)
    table = synthesize(Meters, commutative_ring())
    assert {operator.effect for operator in table} == {"may_fail"}


@pytest.mark.unit
def test_dollars_left_addition_goes_through_conversion(dollars_cls):
    synthesize(dollars_cls, addable(), addable_left(int))
    d = dollars_cls(7)

    result = 5 + d

    assert result == dollars_cls(12)
    assert d.amount == 7
    operator = derived_operator(dollars_cls, "+", int, dollars_cls)
    assert operator.cannot_fail
    assert "Dollars(int)" in operator.invokes
    assert operator.variant("persistent", "disposable").strategy == "construct"


@pytest.mark.unit
def test_may_fail_conversion_makes_left_operator_may_fail():
    from operator_testinfra import make_dollars

    Dollars = make_dollars(converter_cannot_fail=False)
    synthesize(Dollars, addable_left(int))
    assert derived_operator(Dollars, "+", int, Dollars).effect == "may_fail"


@pytest.mark.unit
def test_implicit_copy_uses_configured_effect(monkeypatch, dollars_cls):
    monkeypatch.setenv("OPSYNTH_IMPLICIT_COPY_EFFECT", "may_fail")
    synthesize(dollars_cls, addable())
    operator = derived_operator(dollars_cls, "+")
    assert operator.effect == "may_fail"
    assert (dollars_cls(2) + dollars_cls(3)) == dollars_cls(5)


@pytest.mark.unit
def test_commutative_two_type_operator_serves_both_orders(vector_cls):
    synthesize(vector_cls, commutative_addable(int), commutative_addable())
    v = vector_cls(1, 2)

    assert (v + 3).items == [4, 5]
    assert (3 + v).items == [4, 5]
    assert (v + v).items == [2, 4]
    assert v.items == [1, 2]

    reused = 3 + disposable(v)
    assert reused is v
    assert v.items == [4, 5]


@pytest.mark.unit
def test_two_type_multiplication_is_may_fail(vector_cls):
    synthesize(vector_cls, multipliable(int))
    operator = derived_operator(vector_cls, "*", vector_cls, int)
    assert operator.effect == "may_fail"
    assert (vector_cls(1, 2) * 3).items == [3, 6]


@pytest.mark.unit
def test_unknown_operand_types_return_not_implemented(vector_cls):
    synthesize(vector_cls, commutative_addable(int))
    with pytest.raises(TypeError):
        vector_cls(1) + "text"


@pytest.mark.unit
def test_missing_primitive_installs_nothing():
    class Partial:
        @primitive(cannot_fail=True)
        def __iadd__(self, other):
            return self

    with pytest.raises(DefinitionError) as excinfo:
        synthesize(Partial, ring())

    assert set(excinfo.value.codes) == {"E_MISSING_PRIMITIVE"}
    messages = " ".join(diag.message for diag in excinfo.value.diagnostics)
    assert "Partial-=Partial" in messages
    assert "Partial*=Partial" in messages
    assert "__add__" not in vars(Partial)
    with pytest.raises(KeyError):
        operator_table(Partial)


@pytest.mark.unit
def test_attaching_a_family_twice_is_rejected(meters_cls):
    synthesize(meters_cls, ring())
    with pytest.raises(DefinitionError) as excinfo:
        synthesize(meters_cls, subtractable())
    assert excinfo.value.codes == ("E_DUPLICATE_SIGNATURE",)
    assert len(operator_table(meters_cls)) == 3


@pytest.mark.unit
def test_deriving_a_declared_comparison_is_rejected(meters_cls):
    with pytest.raises(DefinitionError) as excinfo:
        synthesize(meters_cls, equivalent())
    assert excinfo.value.codes == ("E_DUPLICATE_SIGNATURE",)


@pytest.mark.unit
def test_equivalent_derives_equality_from_less_than():
    @attach(equivalent(), "less_than_comparable<T>")
    class Version:
        def __init__(self, number):
            self.number = number

        @primitive(cannot_fail=True)
        def __lt__(self, other):
            return self.number < other.number

    assert Version(1) == Version(1)
    assert Version(2) >= Version(1)
    assert not (Version(2) == Version(1))
    assert operator_table(Version).families == ["equivalent<T>", "less_than_comparable<T>"]


@pytest.mark.unit
def test_string_expressions_resolve_types_from_the_host_module(vector_cls):
    synthesize(vector_cls, "commutative_addable<Vector, int>")
    assert Signature("+", int, vector_cls) in operator_table(vector_cls)


@pytest.mark.unit
def test_string_expression_naming_another_host_is_rejected(vector_cls):
    with pytest.raises(DefinitionError) as excinfo:
        synthesize(vector_cls, "addable<Matrix>")
    assert excinfo.value.codes == ("E_INVALID_DECLARATION",)


@pytest.mark.unit
def test_post_steps_return_the_previous_value(counter_cls):
    synthesize(counter_cls, unit_steppable())
    counter = counter_cls(1)

    before = counter.post_increment()
    assert (before.count, counter.count) == (1, 2)

    before = counter.post_decrement()
    assert (before.count, counter.count) == (2, 1)

    assert derived_operator(counter_cls, "post++").cannot_fail
    assert derived_operator(counter_cls, "post--").effect == "may_fail"


@pytest.mark.unit
def test_primitive_failures_propagate_unchanged(counter_cls):
    synthesize(counter_cls, unit_steppable())
    counter = counter_cls(0)
    with pytest.raises(ValueError, match="below zero"):
        counter.post_decrement()
    assert counter.count == 0


@pytest.mark.unit
def test_step_method_collision_is_rejected(counter_cls):
    counter_cls.post_increment = lambda self: self
    with pytest.raises(DefinitionError) as excinfo:
        synthesize(counter_cls, unit_steppable())
    assert excinfo.value.codes == ("E_ATTRIBUTE_CONFLICT",)
    assert "post_decrement" not in vars(counter_cls)


@pytest.mark.unit
def test_existing_user_dunder_handles_unregistered_types(meters_cls):
    def add_number(self, other):
        return meters_cls(self.value + other)

    meters_cls.__add__ = add_number
    synthesize(meters_cls, commutative_addable())

    assert (meters_cls(1) + meters_cls(2)).value == 3
    assert (meters_cls(1) + 5).value == 6


@pytest.mark.unit
def test_subclasses_reuse_the_base_dispatch(meters_cls):
    synthesize(meters_cls, commutative_ring())

    class Kilometers(meters_cls):
        pass

    result = Kilometers(1) + meters_cls(2)
    assert result.value == 3


@pytest.mark.unit
def test_explicit_primitive_declarations():
    from opsynth import declare

    class Money:
        def __init__(self, cents):
            self.cents = cents

        def __iadd__(self, other):
            self.cents += other.cents
            return self

    synthesize(Money, addable(), primitives=[declare("+=", cannot_fail=True)])
    result = Money(1) + Money(2)
    assert result.cents == 3
    assert derived_operator(Money, "+").cannot_fail


@pytest.mark.unit
def test_declaring_an_unimplemented_primitive_is_rejected():
    from opsynth import declare

    class Empty:
        pass

    with pytest.raises(DefinitionError) as excinfo:
        synthesize(Empty, addable(), primitives=[declare("+=")])
    assert excinfo.value.codes == ("E_INVALID_DECLARATION",)


@pytest.mark.unit
def test_partial_order_effect_follows_each_operator_requirements():
    from opsynth import partially_ordered

    @attach(partially_ordered())
    class Grade:
        def __init__(self, score):
            self.score = score

        @primitive(cannot_fail=True)
        def __eq__(self, other):
            return self.score == other.score

        @primitive()
        def __lt__(self, other):
            return self.score < other.score

    assert derived_operator(Grade, ">").effect == "may_fail"
    assert derived_operator(Grade, "<=").effect == "may_fail"
    assert Grade(2) > Grade(1)
    assert Grade(1) <= Grade(1)
    assert not (Grade(1) >= Grade(2))


@pytest.mark.unit
@pytest.mark.parametrize("left_disposable", [False, True])
@pytest.mark.parametrize("right_disposable", [False, True])
def test_every_mode_pair_matches_copy_then_compound(meters_cls, left_disposable, right_disposable):
    synthesize(meters_cls, commutative_ring())
    for symbol, expected in (("+", 9), ("-", 3), ("*", 18)):
        a, b = meters_cls(6), meters_cls(3)
        lhs = disposable(a) if left_disposable else a
        rhs = disposable(b) if right_disposable else b
        result = derived_operator(meters_cls, symbol)(lhs, rhs)
        assert result.value == expected
        if not left_disposable:
            assert a.value == 6
        if not right_disposable or symbol == "-":
            assert b.value == 3


@pytest.mark.unit
def test_post_step_variants_always_construct(counter_cls):
    synthesize(counter_cls, unit_steppable())
    operator = derived_operator(counter_cls, "post++")

    assert set(operator.variants) == {("persistent",), ("disposable",)}
    assert operator.variant("disposable").strategy == "construct"
    assert operator.variant().ownership == "fresh"
    assert operator_table(counter_cls).describe()[0]["variants"]["disposable"] == {
        "strategy": "construct",
        "ownership": "fresh",
    }


@pytest.mark.unit
def test_reflected_comparisons_only_depend_on_the_primitive_they_call():
    from opsynth import less_than_comparable

    @attach(less_than_comparable(int))
    class Score:
        def __init__(self, points):
            self.points = points

        @primitive(other=int)
        def __lt__(self, other):
            return self.points < other

        @primitive(other=int, cannot_fail=True)
        def __gt__(self, other):
            return self.points > other

    assert derived_operator(Score, "<", int, Score).effect == "cannot_fail"
    assert derived_operator(Score, ">=", int, Score).effect == "cannot_fail"
    assert derived_operator(Score, "<=", Score, int).effect == "cannot_fail"
    assert derived_operator(Score, ">", int, Score).effect == "may_fail"
    assert derived_operator(Score, "<=", int, Score).effect == "may_fail"
    assert derived_operator(Score, ">=", Score, int).effect == "may_fail"
    assert 3 < Score(5)
    assert Score(5) <= 5
    assert not (Score(5) >= 6)


def _make_keyed():
    class Key:
        def __init__(self, rank):
            self.rank = rank

        @primitive(cannot_fail=True)
        def __lt__(self, other):
            return self.rank < other.rank

    return Key


@pytest.mark.unit
@pytest.mark.parametrize("reverse", [False, True])
def test_derived_comparisons_resolve_regardless_of_family_order(reverse):
    from opsynth import equality_comparable

    Key = _make_keyed()
    families = [equivalent(), equality_comparable()]
    if reverse:
        families.reverse()

    synthesize(Key, *families)

    assert Key(1) != Key(2)
    assert not (Key(1) != Key(1))
    operator = derived_operator(Key, "!=")
    assert operator.invokes == ("Key==Key",)
    assert operator.cannot_fail


@pytest.mark.unit
def test_unsatisfiable_comparison_chain_is_reported():
    from opsynth import equality_comparable

    Key = _make_keyed()
    with pytest.raises(DefinitionError) as excinfo:
        synthesize(Key, equality_comparable())
    assert excinfo.value.codes == ("E_MISSING_PRIMITIVE",)
    assert "Key==Key" in str(excinfo.value)


@pytest.mark.unit
def test_may_fail_operators_name_the_operations_responsible():
    from operator_testinfra import make_dollars

    Dollars = make_dollars(converter_cannot_fail=False)
    synthesize(Dollars, addable_left(int))
    operator = derived_operator(Dollars, "+", int, Dollars)
    assert operator.may_fail_via == ("Dollars(int)",)
    (row,) = operator_table(Dollars).describe()
    assert row["may_fail_via"] == ["Dollars(int)"]
