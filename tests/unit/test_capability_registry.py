from __future__ import annotations

import pytest

from opsynth.registry import CapabilityEntry, CapabilityRegistry, get_registry
from opsynth.rules import addable


@pytest.mark.unit
def test_default_registry_lists_families_and_groups():
    registry = get_registry()
    assert "addable" in registry
    assert "ordered_field" in registry
    assert registry.resolve("ring").kind == "group"
    assert registry.resolve("addable_left").kind == "family"
    assert "bitwise_left" in registry.names("group")
    assert "ring" not in registry.names("family")


@pytest.mark.unit
def test_registry_is_a_singleton():
    assert get_registry() is get_registry()


@pytest.mark.unit
def test_resolve_unknown_name_raises_key_error():
    with pytest.raises(KeyError, match="Unknown capability"):
        get_registry().resolve("monoid")


@pytest.mark.unit
def test_register_rejects_duplicates_and_bad_kinds():
    registry = CapabilityRegistry()
    registry.register(CapabilityEntry("addable", "family", addable))
    with pytest.raises(ValueError):
        registry.register(CapabilityEntry("addable", "family", addable))
    with pytest.raises(ValueError):
        registry.register(CapabilityEntry("", "family", addable))
    with pytest.raises(ValueError):
        registry.register(CapabilityEntry("other", "monoid", addable))  # type: ignore[arg-type]


@pytest.mark.unit
def test_list_capabilities_uses_descriptions():
    listing = get_registry().list_capabilities("group")
    assert listing["totally_ordered"] == "equality_comparable + less_than_comparable"
    assert list(listing) == get_registry().names("group")


@pytest.mark.unit
def test_unary_entries_build_without_operand():
    entry = get_registry().resolve("incrementable")
    assert entry.unary
    assert entry.build().name == "incrementable"
    with pytest.raises(ValueError):
        entry.build(int)
