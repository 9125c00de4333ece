"""ScaffoldKit command-line interface."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path
from typing import Any

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from . import __version__
from .archive import zip_tree
from .exceptions import InvalidPropertyShapeError, ScaffoldKitError
from .logging_config import setup_logging
from .registry import GeneratorRegistry, build_registry
from .resources import ResourceTree
from .settings import EngineSettings

app = typer.Typer(
    name="scaffold",
    help="ScaffoldKit: composable project generators",
    add_completion=False,
)
console = Console()


def _get_version_string() -> str:
    try:
        return get_version("scaffoldkit")
    except PackageNotFoundError:
        return f"{__version__} (development)"


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"ScaffoldKit version {_get_version_string()}")
        raise typer.Exit


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Log level (overrides SCAFFOLDKIT_LOG_LEVEL)",
    ),
) -> None:
    """ScaffoldKit: composable project generators."""
    try:
        settings = EngineSettings.from_env()
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Invalid environment settings: {e}")
        raise typer.Exit(1) from e
    setup_logging(log_level or settings.log_level)


def _build_registry(catalog: Path | None) -> tuple[GeneratorRegistry, EngineSettings]:
    settings = EngineSettings.from_env()
    return build_registry(catalog or settings.catalog_dir, settings), settings


def _load_properties(path: Path | None) -> dict[str, Any]:
    if path is None:
        return {}
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        msg = f"Failed to read properties from {path}: {e}"
        raise ScaffoldKitError(msg) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidPropertyShapeError("<root>", "properties file must hold a mapping")
    return data


@app.command("list")
def list_generators(
    catalog: Path | None = typer.Option(
        None,
        "--catalog",
        "-c",
        help="Catalog directory (overrides SCAFFOLDKIT_CATALOG)",
    ),
) -> None:
    """List registered generators."""
    try:
        registry, _ = _build_registry(catalog)
    except ScaffoldKitError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    table = Table(title="Generators")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Category")
    table.add_column("Requires")
    table.add_column("Description")
    for name in registry.names():
        descriptor = registry.get(name).descriptor
        table.add_row(
            name,
            descriptor.category,
            ", ".join(descriptor.required_properties),
            descriptor.description,
        )
    console.print(table)


@app.command()
def apply(
    generator: str = typer.Argument(..., help="Generator to run"),
    props: Path | None = typer.Option(
        None,
        "--props",
        "-p",
        help="YAML file with generator properties",
    ),
    output: Path = typer.Option(
        Path("project.zip"),
        "--output",
        "-o",
        help="Zip archive to write",
    ),
    root: str | None = typer.Option(
        None,
        "--root",
        help="Top-level folder inside the archive",
    ),
    codebase: Path | None = typer.Option(
        None,
        "--codebase",
        help="Zip archive of an existing codebase to import",
    ),
    catalog: Path | None = typer.Option(
        None,
        "--catalog",
        "-c",
        help="Catalog directory (overrides SCAFFOLDKIT_CATALOG)",
    ),
) -> None:
    """Run a generator and write the resulting project as a zip archive."""
    try:
        registry, settings = _build_registry(catalog)
        properties = _load_properties(props)
        extra: dict[str, Any] = {}
        if codebase is not None:
            extra["codebase"] = codebase.read_bytes()

        tree = registry.apply(generator, ResourceTree(), properties, extra)
        output.write_bytes(zip_tree(root or settings.archive_root, tree))
    except (ScaffoldKitError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(f"[green]✓[/green] {len(tree.files())} files written to {output}")
    if extra.get("sourceMapping"):
        for key, location in sorted(extra["sourceMapping"].items()):
            console.print(f"  • {key}: {location}")


if __name__ == "__main__":
    app()
