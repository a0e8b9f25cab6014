"""Overload selection: pick the cheapest implementation per access-mode pair.

Four variants exist per binary arithmetic operator, one per
``(mode_left, mode_right)``. They are planned once when the operator is
derived and looked up by the operands' modes at call time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Literal, Tuple

from opsynth.operand import (
    ACCESS_MODES,
    DISPOSABLE,
    PERSISTENT,
    AccessMode,
    Ownership,
    Side,
)
from opsynth.rules import Form

Strategy = Literal["reuse_left", "reuse_right", "construct", "evaluate"]
# One mode per operand: pairs for binary operators, singletons for steps.
Modes = Tuple[AccessMode, ...]

MODE_PAIRS: tuple[Modes, ...] = tuple(
    (left, right) for left in ACCESS_MODES for right in ACCESS_MODES
)


@dataclass(frozen=True)
class Resolution:
    """The implementation strategy selected for one access-mode pair."""

    strategy: Strategy
    source: Side | None = None
    converts: bool = False

    @property
    def ownership(self) -> Ownership:
        if self.strategy in ("reuse_left", "reuse_right"):
            return "reused"
        return "fresh"


EVALUATE = Resolution("evaluate")
POST_STEP = Resolution("construct", source="left")


def select_strategy(
    form: Form,
    left_is_host: bool,
    right_is_host: bool,
    modes: Modes,
) -> Resolution:
    """Select reuse-left, reuse-right or construct for ``form`` under ``modes``."""
    mode_left, mode_right = modes
    if form == "relational":
        return EVALUATE

    if form == "left":
        # The left operand is foreign; it is always materialized as a host.
        return Resolution("construct", source="left", converts=True)

    left_reusable = mode_left == DISPOSABLE and left_is_host
    if left_reusable:
        return Resolution("reuse_left")

    if form == "commutative":
        if mode_right == DISPOSABLE and right_is_host:
            return Resolution("reuse_right")
        if not left_is_host:
            return Resolution("construct", source="right")
        return Resolution("construct", source="left")

    if form == "basic":
        return Resolution("construct", source="left")

    raise ValueError(f"No overload selection for form {form!r}")


def plan_variants(form: Form, left_is_host: bool, right_is_host: bool) -> dict[Modes, Resolution]:
    if form == "relational":
        return {(PERSISTENT, PERSISTENT): EVALUATE}
    if form == "step":
        # The post form hands back the prior value, so it always constructs.
        return {(mode,): POST_STEP for mode in ACCESS_MODES}
    return {
        modes: select_strategy(form, left_is_host, right_is_host, modes)
        for modes in MODE_PAIRS
    }


def run_binary(
    resolution: Resolution,
    lhs: Any,
    rhs: Any,
    compound: Callable[[Any, Any], Any],
    materialize: Callable[[Any], Any],
) -> Any:
    """Execute an arithmetic variant.

    ``compound`` is the host's in-place primitive; ``materialize`` builds a
    fresh host value (copy, or conversion through the bridge).
    """
    strategy = resolution.strategy
    if strategy == "reuse_left":
        return compound(lhs, rhs)
    if strategy == "reuse_right":
        return compound(rhs, lhs)
    if strategy == "construct":
        if resolution.source == "left":
            return compound(materialize(lhs), rhs)
        return compound(materialize(rhs), lhs)
    raise ValueError(f"Strategy {strategy!r} does not apply to arithmetic operators")


def run_post_step(value: Any, step: Callable[[Any], Any], copy: Callable[[Any], Any]) -> Any:
    """Post-form step: snapshot, mutate the operand, return the snapshot."""
    snapshot = copy(value)
    step(value)
    return snapshot
