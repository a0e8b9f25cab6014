"""Definition-time diagnostics and errors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, NoReturn


@dataclass(frozen=True)
class DefinitionDiagnostic:
    """Machine-friendly definition-time diagnostic."""

    code: str
    message: str
    symbol: str | None = None
    location: str | None = None


class DefinitionError(RuntimeError):
    """Raised when capabilities cannot be synthesized for a type."""

    def __init__(self, diagnostics: Iterable[DefinitionDiagnostic]):
        diagnostics_list = list(diagnostics)
        if not diagnostics_list:
            diagnostics_list = [
                DefinitionDiagnostic(
                    code="E_DEFINITION",
                    message="Operator synthesis failed.",
                )
            ]
        self.diagnostics = tuple(diagnostics_list)
        super().__init__(self.format_message())

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(diag.code for diag in self.diagnostics)

    def format_message(self) -> str:
        if len(self.diagnostics) == 1:
            return self.diagnostics[0].message
        lines = [f"{len(self.diagnostics)} definition errors:"]
        for diag in self.diagnostics:
            lines.append(f"  [{diag.code}] {diag.message}")
        return "\n".join(lines)


def fail(code: str, message: str, symbol: str | None = None, location: str | None = None) -> NoReturn:
    """Raise a single-diagnostic DefinitionError."""
    raise DefinitionError(
        [DefinitionDiagnostic(code=code, message=message, symbol=symbol, location=location)]
    )


def diagnostics_payload(diagnostics: Iterable[DefinitionDiagnostic]) -> list[dict[str, Any]]:
    """Serialize diagnostics for API payloads."""
    payload: list[dict[str, Any]] = []
    for diag in diagnostics:
        item: dict[str, Any] = {
            "code": str(diag.code),
            "message": str(diag.message),
        }
        if diag.symbol:
            item["symbol"] = str(diag.symbol)
        if diag.location:
            item["location"] = str(diag.location)
        payload.append(item)
    return payload


def diagnostics_from_exception(exc: Exception) -> list[dict[str, Any]]:
    """Return structured diagnostics from known definition exceptions."""
    if isinstance(exc, DefinitionError):
        return diagnostics_payload(exc.diagnostics)

    message = str(exc).strip() or exc.__class__.__name__
    return diagnostics_payload(
        [
            DefinitionDiagnostic(
                code="E_DEFINITION",
                message=message,
            )
        ]
    )
