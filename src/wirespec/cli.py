from __future__ import annotations

import json
import tomllib
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from wirespec.core.config import get_settings
from wirespec.core.errors import DefinitionSyntaxError
from wirespec.core.logging import setup_logging
from wirespec.orchestrator.pipeline import CompileResult, compile_definitions, load_definitions, load_type_namespace


app = typer.Typer(no_args_is_help=True, add_completion=False)

console = Console()


def _compile(file: str, types: Optional[list[str]]) -> CompileResult:
    path = Path(file).expanduser().resolve()
    if not path.is_file():
        raise typer.BadParameter(f"Definitions file does not exist: {path}")

    try:
        namespace = load_type_namespace(types or [])
    except ImportError as exc:
        raise typer.BadParameter(f"Cannot import type module: {exc}") from exc

    try:
        definitions = load_definitions(path)
    except tomllib.TOMLDecodeError as exc:
        raise typer.BadParameter(f"Invalid TOML in {path}: {exc}") from exc
    except DefinitionSyntaxError as exc:
        raise typer.BadParameter(exc.message) from exc

    return compile_definitions(definitions, namespace)


@app.command()
def check(
    file: str = typer.Argument(..., help="TOML file with [[endpoint]] definitions"),
    types: Optional[list[str]] = typer.Option(None, "--types", help="Module whose names resolve type references"),
) -> None:
    """Compile every endpoint and report violations."""
    result = _compile(file, types)

    table = Table(show_header=True, header_style="bold")
    table.add_column("ENDPOINT")
    table.add_column("STATUS", no_wrap=True)
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")

    for name, codec in result.codecs.items():
        table.add_row(name, "[green]OK[/green]", codec.METADATA.method, codec.METADATA.path)
    for name, exc in result.failures.items():
        table.add_row(name, "[red]FAIL[/red]", "", f"{len(exc.violations)} violation(s)")

    console.print(table)

    for name, exc in result.failures.items():
        console.print("")
        console.print(f"[bold red]{name}[/bold red] ({exc.error_code.value})")
        for v in exc.violations:
            console.print(f"  - {v}", markup=False)

    console.print("")
    console.print(f"Compiled: {len(result.codecs)}, failed: {len(result.failures)}")
    if not result.ok:
        raise typer.Exit(code=1)


@app.command()
def show(
    file: str = typer.Argument(..., help="TOML file with [[endpoint]] definitions"),
    types: Optional[list[str]] = typer.Option(None, "--types", help="Module whose names resolve type references"),
    format: str = typer.Option("table", help="Output format: table|json"),
) -> None:
    """Print metadata and field placement of compiled endpoints."""
    fmt = format.lower().strip()
    if fmt not in ("table", "json"):
        raise typer.BadParameter("format must be one of: table, json")

    result = _compile(file, types)
    summaries = [codec.summary() for codec in result.codecs.values()]

    if fmt == "json":
        payload = [s.model_dump(mode="json") for s in summaries]
        typer.echo(json.dumps(payload, indent=2))
    else:
        for s in summaries:
            table = Table(title=f"{s.method} {s.path}  ({s.name})", show_header=True, header_style="bold")
            table.add_column("SIDE", no_wrap=True)
            table.add_column("FIELD")
            table.add_column("PLACEMENT")
            for field_name, placement in s.request_fields.items():
                table.add_row("request", field_name, placement)
            for field_name, placement in s.response_fields.items():
                table.add_row("response", field_name, placement)
            console.print(table)
            console.print(
                f"auth={s.authentication.value} rate_limited={s.rate_limited} error={s.error_type}",
                markup=False,
            )
            console.print("")

    if not result.ok:
        console.print(f"[yellow]{len(result.failures)} endpoint(s) failed to compile; run `wirespec check`[/yellow]")
        raise typer.Exit(code=1)


def main() -> None:
    setup_logging(get_settings())
    app()


if __name__ == "__main__":
    main()
