from __future__ import annotations

import asyncio
import importlib.util
from pathlib import Path
from types import ModuleType
from typing import Callable, List, Optional

import typer
import yaml

from .core import BuildContext, RuleSpec
from .errors import ConfigError, PhaseBuildError
from .files import LocalFiles
from .logging import configure, get_logger
from . import utils


app = typer.Typer(add_completion=False, help="Incremental phase-based build CLI")
log = get_logger("cli")


def load_config(path: str | Path) -> dict:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")
    with open(p, "r", encoding="utf-8") as f:
        try:
            params = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {p}: {e}") from e
    if not isinstance(params, dict):
        raise ConfigError(f"Expect a mapping at the top of {p}")
    return params


def load_buildfile(path: Path) -> ModuleType:
    if not path.exists():
        raise ConfigError(f"Buildfile not found: {path}")
    spec = importlib.util.spec_from_file_location(f"_phasebuild_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise ConfigError(f"Cannot import buildfile: {path}")
    mod = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(mod)
    except Exception as e:  # noqa: BLE001
        raise ConfigError(f"Failed to import buildfile {path}: {e}") from e
    return mod


def discover_rules(mod: ModuleType) -> List[Callable]:
    """Collect the functions of a buildfile decorated with @rule."""
    rules: List[Callable] = []
    for attr_name in dir(mod):
        obj = getattr(mod, attr_name)
        if isinstance(getattr(obj, "_rule_spec", None), RuleSpec):
            rules.append(obj)
    return rules


def create_context(config: str | Path) -> BuildContext:
    config_path = Path(config)
    params = load_config(config_path)
    level = utils.log_level(params)
    if level:
        configure(level=level)
    ctx = BuildContext(files=LocalFiles(root=config_path.parent))
    definition = utils.phases_definition(params)
    if definition is not None:
        ctx.define_phases(definition)
    rules = discover_rules(load_buildfile(utils.buildfile_path(params, config_path)))
    for fn in rules:
        ctx.register(fn)
    log.debug("Registered %d rules", len(rules))
    return ctx


def _context_or_exit(config: str) -> BuildContext:
    try:
        return create_context(config)
    except PhaseBuildError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


@app.command("phases")
def list_phases(
    config: str = typer.Option(utils.DEFAULT_CONFIG, help="Path to YAML config"),
):
    """List defined phases in execution order."""
    ctx = _context_or_exit(config)
    for step in ctx.registry.plan_steps():
        phase = step.phase
        marker = " (default)" if phase is ctx.default_phase else ""
        deps = ", ".join(p.name for p in phase.depends_on)
        typer.echo(f"- {phase.name or '<default>'}{marker}" + (f" <- {deps}" if deps else ""))


@app.command()
def steps(
    phase: Optional[str] = typer.Argument(None, help="Phase name, default phase if omitted"),
    config: str = typer.Option(utils.DEFAULT_CONFIG, help="Path to YAML config"),
):
    """Print the build steps of a phase without running any action."""
    ctx = _context_or_exit(config)
    try:
        plan = asyncio.run(ctx.build_steps(phase))
    except PhaseBuildError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    if not plan:
        typer.echo("No targets defined.")
        raise typer.Exit(code=0)
    for step in plan:
        typer.echo(str(step))


@app.command()
def build(
    phase: Optional[str] = typer.Argument(None, help="Phase name, default phase if omitted"),
    config: str = typer.Option(utils.DEFAULT_CONFIG, help="Path to YAML config"),
    log_file: Optional[Path] = typer.Option(None, help="Also write logs to this file"),
):
    """Build a phase: run the actions of all stale targets."""
    if log_file:
        configure(log_file=log_file)
    ctx = _context_or_exit(config)
    try:
        executed = asyncio.run(ctx.build(phase))
    except PhaseBuildError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{len(executed)} targets built.")


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
