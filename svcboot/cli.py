from __future__ import annotations

import asyncio
import logging
from contextlib import ExitStack
from pathlib import Path
from typing import Optional

import typer

from .config import resolve_config
from .errors import ServiceError
from .formulas import FORMULAS, get_formula, load_formula_file
from .models import Formula, ServiceOptions
from .paths import plan_paths
from .service import start_service
from .shutdown import ShutdownRegistry, install_signal_handlers

app = typer.Typer(no_args_is_help=True)


def setup_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )


@app.callback()
def main(debug: bool = typer.Option(False, "--debug", help="Enable debug logging")):
    setup_logging(debug)


def load_formula(value: str) -> Formula:
    if value in FORMULAS:
        return get_formula(value)
    path = Path(value)
    if not path.exists():
        raise typer.BadParameter(
            f"Unknown formula '{value}' (built-in: {', '.join(sorted(FORMULAS))})"
        )
    try:
        return load_formula_file(path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))


FormulaOpt = typer.Option("mongo", "--formula", "-f", help="Built-in formula name or YAML/JSON file")
NameOpt = typer.Option(None, "--name", help="Instance name")
PlatformOpt = typer.Option(None, "--platform", help="Platform entry to install")
DirOpt = typer.Option(None, "--dir", help="Base directory for data, logs and sources")
PortOpt = typer.Option(None, "--port", help="Port to listen on")


@app.command(context_settings={"allow_extra_args": True, "ignore_unknown_options": True})
def start(
    ctx: typer.Context,
    formula: str = FormulaOpt,
    name: Optional[str] = NameOpt,
    platform: Optional[str] = PlatformOpt,
    dir: Optional[Path] = DirOpt,
    port: Optional[int] = PortOpt,
):
    """Install if needed and run the service until interrupted.

    Arguments not recognized here are passed on to the service.
    """
    definition = load_formula(formula)
    options = ServiceOptions(
        name=name, platform=platform, dir=dir, port=port, args=list(ctx.args)
    )
    try:
        code = asyncio.run(_serve(definition, options))
    except ServiceError as exc:
        typer.echo(f"ERROR {exc}", err=True)
        raise typer.Exit(code=1)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    if code:
        raise typer.Exit(code=code)


async def _serve(formula: Formula, options: ServiceOptions) -> int:
    registry = ShutdownRegistry()
    install_signal_handlers(registry)

    with ExitStack() as stack:
        bars = []
        done = [0]

        def on_progress(percent: int) -> None:
            if not bars:
                bars.append(
                    stack.enter_context(
                        typer.progressbar(length=100, label=f"Downloading {formula.name}")
                    )
                )
            bars[0].update(percent - done[0])
            done[0] = percent

        handle = await start_service(
            formula, options, registry=registry, on_progress=on_progress
        )

    typer.echo(f"{formula.name} running with pid {handle.pid}")
    typer.echo(f"Logs: {handle.paths.log_file}")

    interrupted = False
    try:
        while handle.running and not registry.ran:
            await asyncio.sleep(0.5)
        interrupted = registry.ran
    finally:
        await registry.run()

    code = handle.process.poll()
    if code and not interrupted:
        typer.echo(f"{formula.name} exited with code {code}", err=True)
        return code
    return 0


@app.command()
def paths(
    formula: str = FormulaOpt,
    name: Optional[str] = NameOpt,
    platform: Optional[str] = PlatformOpt,
    dir: Optional[Path] = DirOpt,
    port: Optional[int] = PortOpt,
):
    """Show the resolved filesystem layout."""
    definition = load_formula(formula)
    try:
        config = resolve_config(
            definition, ServiceOptions(name=name, platform=platform, dir=dir, port=port)
        )
    except ServiceError as exc:
        typer.echo(f"ERROR {exc}", err=True)
        raise typer.Exit(code=1)
    layout = plan_paths(config)
    typer.echo(f"port: {config.port}")
    for key, value in vars(layout).items():
        typer.echo(f"{key}: {value}")


@app.command("formulas")
def formulas_list():
    """List built-in formulas."""
    for key in sorted(FORMULAS):
        definition = get_formula(key)
        typer.echo(f"{definition.name} {definition.version} -> {definition.exec}")


@app.command()
def platforms(formula: str = FormulaOpt):
    """List the platforms a formula can be installed on."""
    definition = load_formula(formula)
    for entry in definition.platforms:
        typer.echo(f"{entry.name}: {entry.source}")


if __name__ == "__main__":
    app()
