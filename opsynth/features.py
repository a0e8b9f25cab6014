"""
This module defines the opsynth features shared by the CLI and the HTTP API.
"""

from typing import (
    Dict,
    Any,
    Callable,
    Optional,
    TypeVar,
    Generic,
    List,
)
from dataclasses import dataclass
import importlib
import logging

from opsynth.errors import DefinitionError, diagnostics_from_exception
from opsynth.parser import parse_capabilities
from opsynth.registry import get_registry
from opsynth.rules import Placeholder
from opsynth.synthesis import operator_table, plan_capabilities

logger = logging.getLogger("opsynth.features")

T = TypeVar("T")


class OperationResult(Generic[T]):
    """Wrapper for operation results with success/error handling"""

    def __init__(
        self,
        success: bool,
        data: Optional[T] = None,
        error: Optional[str] = None,
        diagnostics: Optional[List[Dict[str, Any]]] = None,
    ):
        self.success = success
        self.data = data
        self.error = error
        self.diagnostics = diagnostics or []

    @classmethod
    def ok(cls, data: Optional[T] = None) -> "OperationResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, diagnostics: Optional[List[Dict[str, Any]]] = None) -> "OperationResult[T]":
        return cls(success=False, error=error, diagnostics=diagnostics)


@dataclass
class Feature:
    """Base class for all opsynth features"""

    name: str
    description: str
    handler: Callable
    cli_options: Optional[Dict[str, Any]] = None
    api_endpoint: Optional[Dict[str, Any]] = None


class FeatureRegistry:
    """Registry for all opsynth features"""

    _features: Dict[str, Feature] = {}

    @classmethod
    def register(cls, feature: Feature) -> Feature:
        """Register a new feature"""
        cls._features[feature.name] = feature
        return feature

    @classmethod
    def get_feature(cls, name: str) -> Optional[Feature]:
        """Get a feature by name"""
        return cls._features.get(name)

    @classmethod
    def get_all_features(cls) -> Dict[str, Feature]:
        """Get all registered features"""
        return cls._features.copy()


# ----------------- Feature Handlers -----------------


def handle_version(**kwargs) -> OperationResult[Dict[str, str]]:
    """Handle version request"""
    from opsynth.version import get_version

    return OperationResult.ok({"version": get_version()})


def handle_list_families(kind: Optional[str] = None, **kwargs) -> OperationResult[Dict[str, str]]:
    """List registered families and groups"""
    if kind not in (None, "family", "group"):
        return OperationResult.fail(f"Unknown capability kind: {kind}")
    return OperationResult.ok(get_registry().list_capabilities(kind))


def handle_explain(expression: str, **kwargs) -> OperationResult[Dict[str, Any]]:
    """Plan a capability expression for symbolic types"""
    try:
        host_name, capabilities = parse_capabilities(expression)
    except DefinitionError as exc:
        logger.info("Rejected expression %r: %s", expression, exc)
        return OperationResult.fail(str(exc), diagnostics_from_exception(exc))

    host = Placeholder(host_name)
    operators = []
    requires: Dict[str, None] = {}
    for planned in plan_capabilities(host, capabilities):
        for requirement in planned.requires:
            requires.setdefault(requirement.render(host_name), None)
        operators.append(
            {
                "signature": str(planned.signature),
                "family": planned.family.replace("<T", f"<{host_name}", 1),
                "installed_as": planned.installed_as,
                "requires": [requirement.render(host_name) for requirement in planned.requires],
                "variants": {
                    ",".join(modes): resolution.strategy
                    + (f" from {resolution.source}" if resolution.source else "")
                    + (" via conversion" if resolution.converts else "")
                    for modes, resolution in planned.variants.items()
                },
            }
        )
    return OperationResult.ok(
        {
            "host": host_name,
            "expression": expression,
            "requires": list(requires),
            "operators": operators,
        }
    )


def handle_inspect(target: str, **kwargs) -> OperationResult[Dict[str, Any]]:
    """Import ``module:Class`` and report its synthesized operators"""
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        return OperationResult.fail("Target must be of the form module:Class")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        return OperationResult.fail(f"Cannot import {module_name}: {exc}")
    except DefinitionError as exc:
        return OperationResult.fail(str(exc), diagnostics_from_exception(exc))

    cls = getattr(module, attr, None)
    if cls is None:
        return OperationResult.fail(f"{module_name} has no attribute {attr}")
    try:
        table = operator_table(cls)
    except KeyError as exc:
        return OperationResult.fail(str(exc.args[0]))
    return OperationResult.ok(
        {
            "host": cls.__name__,
            "families": list(table.families),
            "operators": table.describe(),
        }
    )


# ----------------- Feature Definitions -----------------

FeatureRegistry.register(
    Feature(
        name="version",
        description="Get the opsynth version",
        handler=handle_version,
        cli_options={"command": "version"},
        api_endpoint={"path": "version", "methods": ["GET"]},
    )
)

FeatureRegistry.register(
    Feature(
        name="list-families",
        description="List capability families and composite groups",
        handler=handle_list_families,
        cli_options={"command": "list-families"},
        api_endpoint={"path": "families", "methods": ["GET"]},
    )
)

FeatureRegistry.register(
    Feature(
        name="explain",
        description="Show requirements, provided operators and overload strategies",
        handler=handle_explain,
        cli_options={"command": "explain"},
        api_endpoint={"path": "explain", "methods": ["POST"]},
    )
)

FeatureRegistry.register(
    Feature(
        name="inspect",
        description="Show the operators synthesized on an importable class",
        handler=handle_inspect,
        cli_options={"command": "inspect"},
    )
)
