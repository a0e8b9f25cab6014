from __future__ import annotations

import pytest

from opsynth.errors import DefinitionError
from opsynth.parser import CapabilityTerm, namespace_resolver, parse_capabilities, parse_expression
from opsynth.rules import HOST, Placeholder, Signature


@pytest.mark.unit
def test_parse_expression_terms():
    terms = parse_expression("ordered_field<Meters, int> + unit_steppable")
    assert terms == [
        CapabilityTerm("ordered_field", ("Meters", "int")),
        CapabilityTerm("unit_steppable"),
    ]
    assert terms[0].to_syntax() == "ordered_field<Meters, int>"


@pytest.mark.unit
def test_dotted_type_references():
    (term,) = parse_expression("addable<T, decimal.Decimal>")
    assert term.args == ("T", "decimal.Decimal")


@pytest.mark.unit
@pytest.mark.parametrize("content", ["", "ring<", "ring + ", "ring<A, B, C>", "ring<>"])
def test_invalid_syntax_reports_syntax_diagnostic(content):
    with pytest.raises(DefinitionError) as excinfo:
        parse_expression(content)
    assert excinfo.value.codes == ("E_SYNTAX",)


@pytest.mark.unit
def test_parse_capabilities_infers_host_and_resolves_builtins():
    host, capabilities = parse_capabilities("ring<Meters, int> + totally_ordered<Meters>")
    assert host == "Meters"
    assert [str(capability) for capability in capabilities] == ["ring<T,int>", "totally_ordered<T>"]
    assert Signature("+", int, HOST) in capabilities[0].signatures


@pytest.mark.unit
def test_unknown_types_become_placeholders():
    _, (family,) = parse_capabilities("addable<T, Money>")
    assert family.other == Placeholder("Money")


@pytest.mark.unit
def test_other_naming_the_host_is_single_type():
    _, (group,) = parse_capabilities("ring<Meters, Meters>")
    assert group.other is None


@pytest.mark.unit
def test_unknown_capability_is_reported():
    with pytest.raises(DefinitionError) as excinfo:
        parse_capabilities("ring + monoid")
    assert excinfo.value.codes == ("E_UNKNOWN_CAPABILITY",)
    assert excinfo.value.diagnostics[0].symbol == "monoid"


@pytest.mark.unit
def test_conflicting_hosts_are_rejected():
    with pytest.raises(DefinitionError) as excinfo:
        parse_capabilities("ring<Meters> + totally_ordered<Feet>")
    assert excinfo.value.codes == ("E_INVALID_DECLARATION",)


@pytest.mark.unit
def test_unary_capability_rejects_operand_type():
    with pytest.raises(DefinitionError) as excinfo:
        parse_capabilities("unit_steppable<T, int>")
    assert excinfo.value.codes == ("E_INVALID_DECLARATION",)


@pytest.mark.unit
def test_namespace_resolver_prefers_namespace():
    class Money:
        pass

    resolve = namespace_resolver({"Money": Money, "int": str})
    assert resolve("Money") is Money
    assert resolve("int") is str
    assert resolve("float") is float
    assert resolve("Money.missing") == Placeholder("Money.missing")
