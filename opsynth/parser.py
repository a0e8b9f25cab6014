"""
Capability expression parser using Lark

Parses expressions such as ``ordered_field<Meters, int> + unit_steppable``
into capability terms and builds the corresponding families and groups.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable
import builtins

from lark import Lark, Transformer, v_args
from lark.exceptions import LarkError

from opsynth.errors import DefinitionDiagnostic, DefinitionError
from opsynth.registry import CapabilityRegistry, get_registry
from opsynth.rules import Placeholder

HOST_ALIASES = ("T", "Self")


@dataclass(frozen=True)
class CapabilityTerm:
    """One ``name<T, U>`` term of a capability expression"""

    name: str
    args: tuple[str, ...] = ()

    def to_syntax(self) -> str:
        if not self.args:
            return self.name
        return f"{self.name}<{', '.join(self.args)}>"


grammar = r"""
    expression: term ("+" term)*
    term: NAME type_args?
    type_args: "<" type_ref ("," type_ref)? ">"
    type_ref: NAME ("." NAME)*

    %import common.CNAME -> NAME
    %import common.WS
    %ignore WS
"""


class CapabilityTransformer(Transformer):
    """Transform the parse tree into capability terms"""

    @v_args(inline=True)
    def expression(self, *terms):
        return list(terms)

    @v_args(inline=True)
    def term(self, name, args=None):
        return CapabilityTerm(str(name), tuple(args or ()))

    @v_args(inline=True)
    def type_args(self, *refs):
        return list(refs)

    @v_args(inline=True)
    def type_ref(self, *parts):
        return ".".join(str(part) for part in parts)


parser = Lark(
    grammar,
    start="expression",
    parser="lalr",
    transformer=CapabilityTransformer(),
)


def parse_expression(content: str) -> list[CapabilityTerm]:
    """Parse a capability expression into terms."""
    try:
        return parser.parse(content)
    except LarkError as exc:
        raise DefinitionError(
            [
                DefinitionDiagnostic(
                    code="E_SYNTAX",
                    message=f"Invalid capability expression {content!r}: {exc}",
                    location=content,
                )
            ]
        ) from exc


def namespace_resolver(namespace: dict[str, Any] | None) -> Callable[[str], Any]:
    """Resolve type names against ``namespace`` then builtins; unknown names become placeholders."""
    scope = dict(namespace or {})

    def resolve(name: str) -> Any:
        head, *rest = name.split(".")
        if head in scope:
            value = scope[head]
        elif hasattr(builtins, head):
            value = getattr(builtins, head)
        else:
            return Placeholder(name)
        for part in rest:
            value = getattr(value, part, None)
            if value is None:
                return Placeholder(name)
        return value

    return resolve


def build_capabilities(
    terms: list[CapabilityTerm],
    host_name: str | None = None,
    resolve: Callable[[str], Any] | None = None,
    registry: CapabilityRegistry | None = None,
) -> tuple[str, list[Any]]:
    """Instantiate the families/groups named by ``terms``.

    Returns the host name used by the expression and the capability
    objects. When ``host_name`` is given every term's first type argument
    must name it (or ``T``/``Self``).
    """
    registry = registry or get_registry()
    resolve = resolve or namespace_resolver(None)
    diagnostics: list[DefinitionDiagnostic] = []
    capabilities: list[Any] = []
    expected_host = host_name

    for term in terms:
        if term.name not in registry:
            diagnostics.append(
                DefinitionDiagnostic(
                    code="E_UNKNOWN_CAPABILITY",
                    message=f"Unknown capability: {term.name}",
                    symbol=term.name,
                    location=term.to_syntax(),
                )
            )
            continue
        entry = registry.resolve(term.name)

        host_arg = term.args[0] if term.args else None
        if host_arg is not None and host_arg not in HOST_ALIASES:
            if expected_host is None:
                expected_host = host_arg
            elif host_arg != expected_host:
                diagnostics.append(
                    DefinitionDiagnostic(
                        code="E_INVALID_DECLARATION",
                        message=(
                            f"{term.to_syntax()} names host {host_arg}, "
                            f"expected {expected_host}"
                        ),
                        symbol=term.name,
                        location=term.to_syntax(),
                    )
                )
                continue

        other = None
        if len(term.args) > 1:
            other_name = term.args[1]
            if other_name not in HOST_ALIASES and other_name != expected_host:
                other = resolve(other_name)

        try:
            capabilities.append(entry.build(other))
        except ValueError as exc:
            diagnostics.append(
                DefinitionDiagnostic(
                    code="E_INVALID_DECLARATION",
                    message=str(exc),
                    symbol=term.name,
                    location=term.to_syntax(),
                )
            )

    if diagnostics:
        raise DefinitionError(diagnostics)
    return expected_host or "T", capabilities


def parse_capabilities(
    content: str,
    host_name: str | None = None,
    namespace: dict[str, Any] | None = None,
    registry: CapabilityRegistry | None = None,
) -> tuple[str, list[Any]]:
    """Parse and instantiate a capability expression."""
    terms = parse_expression(content)
    return build_capabilities(
        terms,
        host_name=host_name,
        resolve=namespace_resolver(namespace),
        registry=registry,
    )
