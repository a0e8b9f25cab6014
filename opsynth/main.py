"""
opsynth Main module - CLI and HTTP API
"""

import json
import logging
import sys
import time
from typing import Any, Dict, List, Optional

import typer
import uvicorn
from fastapi import FastAPI, HTTPException, status
from fastapi.routing import APIRouter
from pydantic import BaseModel

from opsynth.config import VERBOSE_LEVEL, get_settings
from opsynth.features import FeatureRegistry, OperationResult
from opsynth.version import get_version

# Module-level logger
logger = logging.getLogger("opsynth.main")


class ErrorResponse(BaseModel):
    """Standard error response model"""

    detail: str
    diagnostics: List[Dict[str, Any]] = []


class ExplainRequest(BaseModel):
    expression: str


# Create CLI app with Typer
app = typer.Typer(
    name="opsynth",
    help="opsynth - derive operator families from declared primitives",
    add_completion=False,
)

# Create FastAPI app for API server
api_app = FastAPI(
    title="opsynth API",
    description="Catalog and planning API for operator capability families",
    version=get_version(),
)

# API router for versioned endpoints
api_router = APIRouter(prefix="/api/v1")


# ----------------- Helper Functions -----------------


class ElapsedMsFormatter(logging.Formatter):
    """Formatter that shows milliseconds since program start, right-aligned for up to 9999 seconds."""
    def __init__(self, fmt=None, datefmt=None, *args, **kwargs):
        super().__init__(fmt, datefmt, *args, **kwargs)
        self.start_time = time.monotonic()
        self.width = 8  # Enough for '9999000ms'

    def format(self, record):
        elapsed_ms = int((time.monotonic() - self.start_time) * 1000)
        # Right-align, pad with spaces, always show 'ms' suffix
        if elapsed_ms < 10**7:  # up to 9999.999s
            elapsed = f"[{elapsed_ms:>{self.width}}ms]"
        else:
            # If more than 9999.999s, don't pad
            elapsed = f"[{elapsed_ms}ms]"
        record.elapsed = elapsed
        # Use %(elapsed)s in format string
        return super().format(record)


def setup_logging(debug: bool = False, verbose: bool = False) -> None:
    """Set up logging configuration"""
    if debug:
        log_level = logging.DEBUG
    elif verbose:
        log_level = VERBOSE_LEVEL
    else:
        log_level = logging.getLevelName(get_settings().log_level)
    formatter = ElapsedMsFormatter('%(elapsed)s %(message)s')
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root = logging.getLogger()
    root.handlers = []  # Remove any existing handlers
    root.addHandler(handler)
    root.setLevel(log_level)

    # Keep the server stack quiet unless debugging
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi", "asyncio"):
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)


def _feature_or_exit(feature_name: str):
    feature = FeatureRegistry.get_feature(feature_name)
    if feature is None:
        logger.error("Unknown feature: %s", feature_name)
        raise typer.Exit(code=1)
    return feature


def _handle_cli_result(feature_name: str, result: OperationResult) -> Any:
    if not result.success:
        logger.error("%s failed: %s", feature_name, result.error)
        for diag in result.diagnostics:
            logger.error("  [%s] %s", diag.get("code"), diag.get("message"))
        raise typer.Exit(code=1)
    return result.data


def handle_cli_feature(feature_name: str, **kwargs: Any) -> Any:
    """Run a feature and return its data, exiting non-zero on failure"""
    feature = _feature_or_exit(feature_name)
    return _handle_cli_result(feature_name, feature.handler(**kwargs))


def _print_explain(data: Dict[str, Any]) -> None:
    print(f"Host: {data['host']}")
    print("Requires:")
    for requirement in data["requires"]:
        print(f"  {requirement}")
    print("Provides:")
    for operator in data["operators"]:
        installed = operator["installed_as"] or "-"
        print(f"  {operator['signature']:<16} {operator['family']:<36} {installed}")
        for modes, strategy in operator["variants"].items():
            print(f"      {modes:<24} {strategy}")


def _print_inspect(data: Dict[str, Any]) -> None:
    print(f"{data['host']}: {', '.join(data['families'])}")
    for operator in data["operators"]:
        print(f"  {operator['signature']:<16} {operator['effect']:<12} {', '.join(operator['invokes'])}")


# ----------------- CLI Commands -----------------


@app.command()
def version() -> None:
    """Show the opsynth version"""
    setup_logging(False)
    data = handle_cli_feature("version")
    print(f"opsynth version: {data['version']}")


@app.command("list-families")
def list_families(
    kind: Optional[str] = typer.Option(None, help="Filter by kind: family or group"),
) -> None:
    """List capability families and composite groups"""
    setup_logging(False)
    data = handle_cli_feature("list-families", kind=kind)
    if not data:
        print("  No capabilities found.")
        return
    for name, description in data.items():
        print(f"  {name:<30} {description}")


@app.command()
def explain(
    expression: str = typer.Argument(..., help="Capability expression, e.g. 'ordered_field<Meters, int>'"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug mode"),
) -> None:
    """Show what an expression requires and provides"""
    setup_logging(debug)
    data = handle_cli_feature("explain", expression=expression)
    if as_json:
        print(json.dumps(data, indent=2))
    else:
        _print_explain(data)


@app.command()
def inspect(
    target: str = typer.Argument(..., help="Importable module:Class"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug mode"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging (between info and debug)"),
) -> None:
    """Show the operators synthesized on a class"""
    setup_logging(debug, verbose)
    if "" not in sys.path:
        sys.path.insert(0, "")
    data = handle_cli_feature("inspect", target=target)
    if as_json:
        print(json.dumps(data, indent=2))
    else:
        _print_inspect(data)


# ----------------- API Endpoints -----------------


def _api_result(result: OperationResult) -> Any:
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": result.error, "diagnostics": result.diagnostics},
        )
    return result.data


@api_router.get("/version")
async def get_version_endpoint():
    """Get opsynth version"""
    return _api_result(_feature_or_api("version").handler())


@api_router.get("/families", responses={400: {"model": ErrorResponse}})
async def list_families_endpoint(kind: Optional[str] = None):
    """List capability families and groups"""
    return _api_result(_feature_or_api("list-families").handler(kind=kind))


@api_router.post("/explain", responses={400: {"model": ErrorResponse}})
async def explain_endpoint(request: ExplainRequest):
    """Plan a capability expression"""
    return _api_result(_feature_or_api("explain").handler(expression=request.expression))


def _feature_or_api(feature_name: str):
    feature = FeatureRegistry.get_feature(feature_name)
    if feature is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{feature_name} feature not found",
        )
    return feature


api_app.include_router(api_router)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind the API server"),
    port: Optional[int] = typer.Option(None, help="Port to bind the API server"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug mode"),
):
    """Start the opsynth API server"""
    setup_logging(debug)
    settings = get_settings()
    host = host or settings.serve_host
    port = port or settings.serve_port

    logger.info(f"Starting opsynth API server version {get_version()} on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")
    uvicorn.run(api_app, host=host, port=port)


if __name__ == "__main__":
    app()
