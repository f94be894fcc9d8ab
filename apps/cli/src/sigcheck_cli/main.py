from __future__ import annotations
import dataclasses
import importlib
import logging
from typing import List, Optional

import typer

from sigcheck import registry
from sigcheck.config import EngineConfig
from sigcheck.driver import TAMPER_MODES, Scenario
from sigcheck.errors import EngineError, ModuleError
from sigcheck.matrix import TestMatrix, enumerate_cases
from sigcheck.mechanisms import list_curves, list_mechanisms

from .report import export_json, format_case_lines, format_summary

app = typer.Typer(add_completion=False, help="Signing/verification conformance checks for cryptographic modules")

_BACKEND_PACKAGES = ("sigcheck_soft",)


def _load_modules() -> None:
    for mod in _BACKEND_PACKAGES:
        try:
            importlib.import_module(mod)
        except ImportError as e:
            typer.echo(f"[module backend unavailable] {mod}: {e}", err=True)


@app.command("list-mechanisms")
def list_mechanisms_cmd():
    """List signature mechanisms in the registry."""
    for desc in list_mechanisms():
        extra = " (pre-hashed SHA-512 input)" if desc.requires_pre_hash else ""
        typer.echo(f"- {desc.name}: {desc.algorithm_id.name}, max input {desc.max_input_length}{extra}")


@app.command("list-curves")
def list_curves_cmd():
    """List named curves used for EC mechanisms."""
    for curve in list_curves():
        typer.echo(f"- {curve.name}: {curve.encoded_parameters.hex()}")


@app.command("list-modules")
def list_modules_cmd():
    """List registered module backends."""
    _load_modules()
    for name in registry.list().keys():
        typer.echo(f"- {name}")


@app.command()
def run(
    module: str = typer.Option("soft", "--module", "-m", help="Registered module backend to test."),
    mechanism: Optional[List[str]] = typer.Option(None, "--mechanism", help="Restrict to these mechanisms (repeatable)."),
    curve: Optional[List[str]] = typer.Option(None, "--curve", help="Restrict EC cases to these curves (repeatable)."),
    scenario: Optional[List[Scenario]] = typer.Option(None, "--scenario", help="Restrict to these scenarios (repeatable)."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for reproducible test data."),
    tamper: Optional[str] = typer.Option(None, "--tamper", help=f"Signature corruption: {' or '.join(TAMPER_MODES)}."),
    export: str = typer.Option("", "--export", help="Write the results as JSON to this path."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Python logging level."),
):
    """Run the sign/verify conformance matrix against a module."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    overrides: dict = {}
    if seed is not None:
        overrides["seed"] = seed
    if tamper is not None:
        overrides["tamper"] = tamper.strip().lower()
    if mechanism:
        overrides["mechanisms"] = list(mechanism)
    if curve:
        overrides["curves"] = list(curve)
    try:
        config = dataclasses.replace(EngineConfig.from_env(), **overrides)
    except ValueError as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(code=2)

    _load_modules()
    try:
        factory = registry.get(module)
    except EngineError as e:
        typer.echo(f"Aborted: {e}", err=True)
        raise typer.Exit(code=2)
    try:
        backend = factory()
    except ValueError as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(code=2)

    try:
        cases = enumerate_cases(config.mechanisms or None, config.curves or None, scenario or None)
        result = TestMatrix(backend, config).run(cases)
    except (EngineError, ModuleError) as e:
        typer.echo(f"Aborted: {e}", err=True)
        raise typer.Exit(code=2)

    for line in format_case_lines(result):
        typer.echo(line)
    for line in format_summary(result):
        typer.echo(line)
    path = export_json(result, export)
    if path is not None:
        typer.echo(f"Results written to {path}")
    raise typer.Exit(result.exit_code)


def app_main():
    app()

if __name__ == "__main__":
    app_main()
