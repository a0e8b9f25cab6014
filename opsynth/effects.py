"""Effect propagation from primitives to derived operators."""

from __future__ import annotations

from typing import Iterable

from opsynth.primitives import CANNOT_FAIL, MAY_FAIL, Effect


def propagate(effects: Iterable[Effect]) -> Effect:
    """CannotFail iff every invoked operation is CannotFail."""
    for effect in effects:
        if effect != CANNOT_FAIL:
            return MAY_FAIL
    return CANNOT_FAIL


def explain_effect(named_effects: Iterable[tuple[str, Effect]]) -> tuple[Effect, tuple[str, ...]]:
    """Return the combined effect and the operations that make it MayFail."""
    named = tuple(named_effects)
    culprits = tuple(name for name, effect in named if effect != CANNOT_FAIL)
    return propagate(effect for _, effect in named), culprits
