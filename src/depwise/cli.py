"""Command-line interface for depwise."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

# Load .env before modules that read their configuration at import time
from dotenv import load_dotenv
load_dotenv()

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from depwise import __version__
from depwise.alternatives import Recommendation
from depwise.db.session import init_db
from depwise.errors import DepwiseError
from depwise.licenses import TriState, default_resolver
from depwise.scoring import (
    AnalysisContext,
    Criticality,
    Dimension,
    RiskAssessmentEngine,
    RiskBreakdown,
    RiskLevel,
    Usage,
    WeightMode,
)
from depwise.services.analyzer import (
    AnalysisResult,
    SnapshotFetcher,
    analyze_package,
    assess_snapshot,
    load_snapshot,
)
from depwise.services.batch import BatchResult, ParsedPackage, batch_analyze, parse_dependency_file
from depwise.services.cache import SqlCache

DEFAULT_WEIGHT_MODE = os.getenv("DEPWISE_WEIGHT_MODE", WeightMode.ADAPTIVE.value)

app = typer.Typer(
    name="depwise",
    help="Dependency risk assessment and safer-alternative recommendations for PyPI packages",
    add_completion=False,
)
console = Console()

LEVEL_COLORS = {
    RiskLevel.CRITICAL: "red",
    RiskLevel.HIGH: "orange1",
    RiskLevel.MODERATE: "yellow",
    RiskLevel.LOW: "green",
    RiskLevel.MINIMAL: "green",
}

DIMENSION_LABELS = {
    Dimension.SECURITY: "Security",
    Dimension.OPERATIONAL: "Operational",
    Dimension.COMPLIANCE: "Compliance",
    Dimension.SUPPLY_CHAIN: "Supply chain",
}


def configure_logging(verbose: bool = False) -> None:
    """Route log records through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=verbose)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def version_callback(value: bool):
    if value:
        console.print(f"depwise version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
):
    """Depwise - dependency risk assessment."""
    configure_logging(verbose)


def _engine(fixed_weights: bool = False) -> RiskAssessmentEngine:
    mode = WeightMode.FIXED if fixed_weights else WeightMode(DEFAULT_WEIGHT_MODE)
    return RiskAssessmentEngine(weight_mode=mode)


def _fetcher() -> SnapshotFetcher:
    """Snapshot fetcher backed by the SQL cache."""
    init_db()
    return SnapshotFetcher(cache=SqlCache())


async def _analyze(package: str, **kwargs) -> AnalysisResult:
    fetcher = _fetcher()
    try:
        return await analyze_package(package, fetcher=fetcher, **kwargs)
    finally:
        await fetcher.close()


async def _scan(packages: list[ParsedPackage], **kwargs) -> BatchResult:
    fetcher = _fetcher()
    try:
        return await batch_analyze(packages, fetcher=fetcher, **kwargs)
    finally:
        await fetcher.close()


@app.command()
def init():
    """Initialize the cache database."""
    console.print("Initializing database...")
    init_db()
    console.print("[green]Database initialized successfully[/green]")


@app.command()
def assess(
    package: Optional[str] = typer.Argument(None, help="PyPI package name to assess"),
    usage: Optional[Usage] = typer.Option(None, "--usage", "-u", help="How the dependency is used"),
    criticality: Optional[Criticality] = typer.Option(None, "--criticality", "-c", help="How central it is"),
    fixed_weights: bool = typer.Option(False, "--fixed-weights", help="Use fixed 5/3/1/1 weights"),
    snapshot_file: Optional[Path] = typer.Option(
        None,
        "--snapshot",
        "-s",
        dir_okay=False,
        help="Assess a snapshot saved from --json output instead of collecting",
    ),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Assess the risk of a package."""
    context = None
    if usage or criticality:
        context = AnalysisContext(usage=usage, criticality=criticality)

    if snapshot_file:
        try:
            snapshot = load_snapshot(snapshot_file)
        except (OSError, ValueError) as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1)
        result = assess_snapshot(snapshot, context, _engine(fixed_weights))
    elif package:
        with console.status(f"[bold blue]Analyzing {package}...[/bold blue]"):
            result = asyncio.run(
                _analyze(package, context=context, engine=_engine(fixed_weights))
            )
    else:
        console.print("[red]Error: give a package name or --snapshot[/red]")
        raise typer.Exit(1)

    if not result.success:
        console.print(f"[red]Error: {result.error}[/red]")
        raise typer.Exit(1)

    if output_json:
        console.print_json(data={**result.breakdown.to_dict(), "snapshot": result.snapshot.to_dict()})
        return

    for warning in result.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")
    _display_breakdown(result.breakdown)


def _display_breakdown(breakdown: RiskBreakdown):
    """Display an assessment in a formatted way."""
    color = LEVEL_COLORS[breakdown.risk_level]
    level = breakdown.risk_level
    score_text = (
        f"[bold {color}]{level.semaphore} {breakdown.overall:.1f} - {level.value.upper()}[/bold {color}]\n"
        f"{level.description}"
    )
    console.print(Panel(score_text, title=f"[bold]{breakdown.package_name}[/bold]", border_style=color))

    table = Table(title="Risk Dimensions")
    table.add_column("Dimension", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Weight", justify="right")
    table.add_column("Concerns")

    for dim in Dimension:
        details = breakdown.details.get(dim)
        concerns = "; ".join(details.concerns) if details else ""
        table.add_row(
            DIMENSION_LABELS[dim],
            f"{breakdown.score_for(dim):.1f}",
            f"{breakdown.weights.get(dim, 0.0):.0%}",
            concerns,
        )
    table.add_section()
    table.add_row("[bold]Overall[/bold]", f"[bold]{breakdown.overall:.1f}[/bold]", "", "")
    console.print(table)

    primary = breakdown.primary_concern
    primary_label = DIMENSION_LABELS[primary] if isinstance(primary, Dimension) else primary
    console.print(f"\n[bold]Primary concern:[/bold] {primary_label}")
    console.print(f"[bold]Confidence:[/bold] {breakdown.confidence}%")
    console.print(f"[bold]Weights:[/bold] {breakdown.weight_mode} ({breakdown.weight_profile})")


@app.command()
def alternatives(
    package: str = typer.Argument(..., help="PyPI package to find alternatives for"),
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Maximum number of alternatives"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Recommend safer alternatives for a package."""
    with console.status(f"[bold blue]Searching alternatives for {package}...[/bold blue]"):
        result = asyncio.run(
            _analyze(package, recommend=True, limit=limit, engine=_engine())
        )

    if not result.success:
        console.print(f"[red]Error: {result.error}[/red]")
        raise typer.Exit(1)

    if output_json:
        console.print_json(data=result.to_dict())
        return

    _display_breakdown(result.breakdown)
    _display_recommendation(result.recommendation)


def _display_recommendation(recommendation: Recommendation):
    original = recommendation.original
    if original.domains or original.intent:
        console.print(
            f"\n[bold]Profile:[/bold] domains {', '.join(original.domains) or '-'}; "
            f"use cases {', '.join(original.intent) or '-'}"
        )

    if not recommendation.alternatives:
        console.print("\n[yellow]No alternatives found.[/yellow]")
        return

    table = Table(title="Alternatives")
    table.add_column("#", justify="right")
    table.add_column("Package", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Group")
    table.add_column("License")
    table.add_column("Why")

    for i, candidate in enumerate(recommendation.alternatives, 1):
        table.add_row(
            str(i),
            candidate.name,
            str(candidate.score),
            candidate.bucket.label,
            candidate.license or "-",
            candidate.justification,
        )
    console.print(table)


@app.command()
def scan(
    dependency_file: str = typer.Argument(..., help="requirements*.txt or pyproject.toml"),
    no_dev: bool = typer.Option(False, "--no-dev", help="Skip development dependencies"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Assess every dependency declared in a file."""
    try:
        packages = parse_dependency_file(dependency_file, include_dev=not no_dev)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not packages:
        console.print("No dependencies found.")
        return

    def progress(current: int, total: int, name: str, status: str):
        if not output_json:
            console.print(f"  [{current}/{total}] {name}: {status}")

    if not output_json:
        console.print(f"Scanning {len(packages)} packages from {dependency_file}...")
    result = asyncio.run(
        _scan(packages, engine=_engine(), progress_callback=progress)
    )

    if output_json:
        console.print_json(data=result.to_dict())
        return

    table = Table(title="Dependency Risk")
    table.add_column("Package", style="cyan")
    table.add_column("Overall", justify="right")
    table.add_column("Level")
    table.add_column("Primary concern")

    ranked = sorted(
        (r for r in result.results if r.success),
        key=lambda r: (-r.breakdown.overall, r.package),
    )
    for r in ranked:
        b = r.breakdown
        color = LEVEL_COLORS[b.risk_level]
        primary = b.primary_concern
        table.add_row(
            r.package,
            f"{b.overall:.1f}",
            f"[{color}]{b.risk_level.semaphore} {b.risk_level.value}[/{color}]",
            DIMENSION_LABELS[primary] if isinstance(primary, Dimension) else primary,
        )
    console.print(table)

    console.print(f"\nDone. {result.analyzed} analyzed, {result.errors} errors.")
    for detail in result.error_details:
        console.print(f"  [red]{detail}[/red]")


@app.command(name="license")
def license_info(
    text: str = typer.Argument(..., help="License name, SPDX id or alias"),
):
    """Explain what a license allows and requires."""
    resolver = default_resolver()
    try:
        record = resolver.resolve(text)
    except DepwiseError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    risk_color = {0: "green", 1: "yellow", 2: "orange1", 3: "red"}[record.risk_level.compatibility]
    console.print(
        Panel(
            f"[bold]{record.spdx}[/bold] ({record.category.value})\n"
            f"Commercial risk: [{risk_color}]{record.risk_level.value}[/{risk_color}]\n"
            f"{record.summary}",
            title=f"[bold]{text}[/bold]",
            border_style=risk_color,
        )
    )

    if record.is_unknown:
        matches = [r.spdx for r in resolver.search(text) if not r.is_unknown]
        if matches:
            console.print(f"Did you mean: {', '.join(matches)}?")

    table = Table(title="Capabilities")
    table.add_column("Action", style="cyan")
    table.add_column("Allowed")
    for action, value in record.capabilities.as_dict().items():
        table.add_row(action, f"{value.symbol} {value.value}")
    console.print(table)

    required = {k: v for k, v in record.obligations.as_dict().items() if v != TriState.FORBIDDEN}
    if required:
        table = Table(title="Obligations")
        table.add_column("Obligation", style="cyan")
        table.add_column("Applies")
        for obligation, value in required.items():
            table.add_row(obligation, f"{value.symbol} {value.value}")
        console.print(table)

    if record.notes:
        console.print(f"\n[bold]Notes:[/bold] {record.notes}")


if __name__ == "__main__":
    app()
