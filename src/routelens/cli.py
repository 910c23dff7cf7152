"""CLI for routelens.

Provides commands: scan, prepare, review, run.

routelens/src/routelens/cli.py
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from routelens.config import (
    get_model_config,
    get_pipeline_config,
    load_config,
    load_env_files,
)
from routelens.exceptions import RouteLensError
from routelens.llm_client import ModelClient
from routelens.pipeline import Pipeline, RunReport
from routelens.scanner import scan_routes
from routelens.selection import PromptSelector, Selector, StaticSelector

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class RouteLensContext:
    """Shared context for CLI commands."""

    project_root: Path | None = None
    verbose: bool = False


def _build_pipeline(
    rl_ctx: RouteLensContext,
    selector: Selector | None = None,
    model: str | None = None,
    keep_existing: bool = False,
) -> Pipeline:
    config = load_config(rl_ctx.project_root or Path.cwd())
    pipeline_config = get_pipeline_config(config)
    if keep_existing:
        pipeline_config = replace(pipeline_config, clear_requests_before_run=False)

    client = ModelClient(get_model_config(config))
    if model:
        client = client.with_model(model)
    return Pipeline(pipeline_config, client=client, selector=selector)


def _selector_for(select_all: bool) -> Selector:
    return StaticSelector(select_all=True) if select_all else PromptSelector()


def _print_report(title: str, report: RunReport) -> None:
    table = Table(title=title)
    table.add_column("Category", style="cyan")
    table.add_column("Count", style="magenta")
    table.add_row("Processed", str(report.processed), style="green" if report.processed else "")
    table.add_row("Skipped", str(report.skipped), style="yellow" if report.skipped else "")
    table.add_row("Failed", str(report.failed), style="red" if report.failed else "")
    console.print(table)

    for path in report.payload_paths:
        console.print(f"[dim]payload[/dim]  {path}")
    for path in report.insight_paths:
        console.print(f"[green]insight[/green]  {path}")


def _fail(ctx: click.Context, error: Exception) -> None:
    console.print(f"[red]Error:[/red] {error}")
    logger.debug("Fatal error", exc_info=True)
    ctx.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option(
    "--project-root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Project to analyze (defaults to the nearest pyproject.toml)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, project_root: Path | None) -> None:
    """routelens: LLM review of Express endpoint handlers."""
    load_env_files()

    ctx.obj = RouteLensContext(project_root=project_root, verbose=verbose)

    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)


@cli.command("scan")
@click.argument("route_file", required=False)
@click.pass_context
def scan(ctx: click.Context, route_file: str | None) -> None:
    """List discovered endpoints."""
    rl_ctx: RouteLensContext = ctx.obj
    config = get_pipeline_config(load_config(rl_ctx.project_root or Path.cwd()))

    target = config.routes_dir / route_file if route_file else config.routes_dir
    endpoints = scan_routes(target, config.extensions, config.router_names)

    if not endpoints:
        console.print(f"[yellow]No endpoints found under {config.routes_dir}[/yellow]")
        return

    table = Table(title=f"Endpoints ({len(endpoints)})")
    table.add_column("Method", style="magenta")
    table.add_column("Path")
    table.add_column("Handler", style="green")
    table.add_column("Controller", style="cyan")
    table.add_column("Route file")
    for endpoint in endpoints:
        table.add_row(
            endpoint.method, endpoint.path, endpoint.handler, endpoint.controller, endpoint.route_file
        )
    console.print(table)


@cli.command("prepare")
@click.option("--route-file", help="Route file name inside the routes directory")
@click.option(
    "--endpoint", "endpoints", multiple=True, help="Endpoint identifier, e.g. 'GET /users → getUsers'"
)
@click.option("--all", "select_all", is_flag=True, help="Select every endpoint in the route file")
@click.pass_context
def prepare(
    ctx: click.Context, route_file: str | None, endpoints: tuple[str, ...], select_all: bool
) -> None:
    """Write request payloads for the selected endpoints."""
    try:
        pipeline = _build_pipeline(ctx.obj, selector=_selector_for(select_all))
        report = pipeline.prepare(route_file, list(endpoints) or None)
    except (RouteLensError, OSError) as e:
        _fail(ctx, e)
        return
    _print_report("routelens prepare", report)


@cli.command("review")
@click.option("--model", help="Model id overriding the configured one")
@click.pass_context
def review(ctx: click.Context, model: str | None) -> None:
    """Ask the model about every payload in the request directory."""
    try:
        pipeline = _build_pipeline(ctx.obj, model=model)
        report = pipeline.review()
    except (RouteLensError, OSError) as e:
        _fail(ctx, e)
        return
    _print_report("routelens review", report)


@cli.command("run")
@click.option("--route-file", help="Route file name inside the routes directory")
@click.option(
    "--endpoint", "endpoints", multiple=True, help="Endpoint identifier, e.g. 'GET /users → getUsers'"
)
@click.option("--all", "select_all", is_flag=True, help="Select every endpoint in the route file")
@click.option("--model", help="Model id overriding the configured one")
@click.option(
    "--keep-existing", is_flag=True, help="Do not clear the request directory before the run"
)
@click.pass_context
def run(
    ctx: click.Context,
    route_file: str | None,
    endpoints: tuple[str, ...],
    select_all: bool,
    model: str | None,
    keep_existing: bool,
) -> None:
    """Prepare payloads and review them in one go."""
    try:
        pipeline = _build_pipeline(
            ctx.obj,
            selector=_selector_for(select_all),
            model=model,
            keep_existing=keep_existing,
        )
        report = pipeline.run(route_file, list(endpoints) or None)
    except (RouteLensError, OSError) as e:
        _fail(ctx, e)
        return
    _print_report("routelens run", report)


def main() -> None:
    """Entry point for routelens CLI."""
    import sys

    try:
        cli(obj=RouteLensContext(), prog_name="routelens")
    except SystemExit as e:
        sys.exit(e.code)
    except Exception as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        logger.error("CLI error", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
