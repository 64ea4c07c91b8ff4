"""CLI for the visit-form engine."""

import logging
import shutil
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from visit_form import __version__
from visit_form.config import (
    GlobalConfig,
    get_registry_root,
    get_visit_form_home,
    get_visit_registry_path,
    load_global_config,
    resolve_visit_registry,
    save_global_config,
)
from visit_form.io import read_jsonl, write_jsonl
from visit_form.pipeline import Pipeline, PipelineConfig, ProcessingStatus
from visit_form.schema import (
    Severity,
    VisitNotFoundError,
    VisitValidationError,
    check_visit_spec,
    load_visit_spec,
)

app = typer.Typer(
    name="visit-form",
    help="Schema, validation and calculation engine for clinical visit forms.",
    no_args_is_help=True,
)
console = Console()

DEFAULT_SCHEMA_PATH = Path("schemas") / "visit_spec.schema.json"


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def version_callback(value: bool) -> None:
    if value:
        console.print(f"visit-form version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Log level (default: from config.yaml)"),
    ] = None,
) -> None:
    """visit-form: Schema, validation and calculation engine for clinical visit forms."""
    try:
        config = load_global_config()
    except ValueError as e:
        console.print(f"[red]Error:[/red] Invalid config: {e}")
        raise typer.Exit(1)
    setup_logging((log_level or config.log_level).upper())


@app.command()
def init(
    source: Annotated[
        Path | None,
        typer.Option("--from", "-f", help="Source directory containing visit-registry"),
    ] = None,
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite an existing registry",
    ),
) -> None:
    """Initialize visit-form global configuration and sync the visit registry.

    Creates:
      ~/.config/visit-form/config.yaml
      ~/.config/visit-form/registry/visit-registry/

    Examples:
        visit-form init --from /workspace/visit-form
        visit-form init  # Uses current directory
    """
    home = get_visit_form_home()
    registry_root = get_registry_root()
    registry_dest = get_visit_registry_path()

    if source is None:
        source = Path.cwd()
    source_registry = source / "visit-registry"

    if not source_registry.exists():
        console.print(f"[red]Error:[/red] visit-registry not found at {source_registry}")
        console.print("Use --from to specify source directory")
        raise typer.Exit(1)

    if registry_dest.exists() and not force:
        console.print(f"[yellow]Warning:[/yellow] Registry already exists at {registry_dest}")
        console.print("Use --force to overwrite")
        raise typer.Exit(1)

    console.print(f"[bold]Initializing visit-form at {home}[/bold]")
    registry_root.mkdir(parents=True, exist_ok=True)

    console.print(f"  Syncing visit-registry from {source_registry}...")
    if registry_dest.exists():
        shutil.rmtree(registry_dest)
    shutil.copytree(source_registry, registry_dest)
    visit_count = len(list(registry_dest.glob("visits/*")))
    console.print(f"    [green]✓[/green] {visit_count} visits synced")

    config_path = save_global_config(
        GlobalConfig(default_visit_registry_path=str(registry_dest))
    )
    console.print(f"  [green]✓[/green] Created config at {config_path}")

    console.print("\n[green]✓ Initialized visit-form[/green]")
    console.print(f"  Home: {home}")
    console.print(f"  Registry: {registry_dest}")


@app.command()
def run(
    input_path: Annotated[
        Path,
        typer.Option("--in", "-i", help="Input JSONL file of submissions"),
    ],
    output_path: Annotated[
        Path,
        typer.Option("--out", "-o", help="Output JSONL file of visit records"),
    ],
    visit: Annotated[
        str,
        typer.Option("--visit", "-V", help="Visit spec ID (required)"),
    ],
    visit_version: Annotated[
        str | None,
        typer.Option("--visit-version", help="Visit spec version (default: latest)"),
    ] = None,
    visit_registry: Annotated[
        Path | None,
        typer.Option(
            "--visit-registry",
            envvar="VISIT_FORM_REGISTRY",
            help="Path to visit registry",
        ),
    ] = None,
    diagnostics: Annotated[
        Path | None,
        typer.Option("--diagnostics", "-d", help="Diagnostics output JSONL path"),
    ] = None,
) -> None:
    """Validate submissions and emit visit records.

    Submissions with blocking findings produce no record; their findings
    are written to the diagnostics file when one is given.
    """
    visit_registry = resolve_visit_registry(visit_registry)

    if not input_path.exists():
        console.print(f"[red]Error:[/red] Input file not found: {input_path}")
        raise typer.Exit(1)

    if not visit_registry.exists():
        console.print(f"[red]Error:[/red] Visit registry not found: {visit_registry}")
        raise typer.Exit(1)

    console.print(f"[bold]visit-form[/bold] v{__version__}")
    console.print(f"  Input: {input_path}")
    console.print(f"  Output: {output_path}")
    console.print(f"  Visit: {visit}@{visit_version or 'latest'}")
    console.print(f"  Visit Registry: {visit_registry}")
    if diagnostics:
        console.print(f"  Diagnostics: {diagnostics}")

    try:
        config = PipelineConfig(
            visit_registry_path=visit_registry,
            visit_id=visit,
            visit_version=visit_version,
            schema_path=DEFAULT_SCHEMA_PATH if DEFAULT_SCHEMA_PATH.exists() else None,
        )
        pipeline = Pipeline(config)
    except (VisitNotFoundError, VisitValidationError, ValueError) as e:
        console.print(f"\n[red]Error initializing pipeline:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"\n[green]Loaded visit:[/green] {pipeline.spec.visit_id}@{pipeline.spec.version}")
    console.print(f"[green]Activities:[/green] {len(pipeline.catalog)}")

    results = []
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Processing submissions...", total=None)
        try:
            for count, submission in enumerate(read_jsonl(input_path), 1):
                results.append(pipeline.process(submission))
                progress.update(task, description=f"Processed {count} submissions...")
        except ValueError as e:
            console.print(f"\n[red]Error reading input:[/red] {e}")
            raise typer.Exit(1)

    records_written = write_jsonl(
        output_path,
        (r.record for r in results if r.record is not None),
    )
    if diagnostics:
        write_jsonl(diagnostics, (r.diagnostics() for r in results))

    counts = {status: 0 for status in ProcessingStatus}
    for result in results:
        counts[result.status] += 1

    console.print("\n[bold]Summary:[/bold]")
    console.print(f"  Submissions processed: {len(results)}")
    console.print(f"  [green]Success:[/green] {counts[ProcessingStatus.SUCCESS]}")
    if counts[ProcessingStatus.PARTIAL]:
        console.print(f"  [yellow]With warnings:[/yellow] {counts[ProcessingStatus.PARTIAL]}")
    if counts[ProcessingStatus.FAILED]:
        console.print(f"  [red]Blocked:[/red] {counts[ProcessingStatus.FAILED]}")
    console.print(f"  Records written: {records_written}")


@app.command()
def validate(
    spec_path: Annotated[
        Path,
        typer.Argument(help="Path to the visit spec file"),
    ],
    schema_path: Annotated[
        Path | None,
        typer.Option("--schema", "-s", help="Path to the schema file"),
    ] = None,
) -> None:
    """Validate a visit spec file against its JSON schema and models."""
    if not spec_path.exists():
        console.print(f"[red]Error:[/red] Spec file not found: {spec_path}")
        raise typer.Exit(1)

    schema_path = schema_path or DEFAULT_SCHEMA_PATH
    if not schema_path.exists():
        console.print(f"[red]Error:[/red] Schema file not found: {schema_path}")
        raise typer.Exit(1)

    try:
        load_visit_spec(spec_path, schema_path=schema_path)
    except (VisitValidationError, ValueError) as e:
        console.print(f"[red]Invalid:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]Valid:[/green] {spec_path}")


@app.command()
def check(
    spec_path: Annotated[
        Path,
        typer.Argument(help="Path to the visit spec file"),
    ],
) -> None:
    """Report authoring problems in a visit spec.

    Exits with status 1 when any error-severity issue is found.
    """
    if not spec_path.exists():
        console.print(f"[red]Error:[/red] Spec file not found: {spec_path}")
        raise typer.Exit(1)

    try:
        spec = load_visit_spec(spec_path)
        issues = check_visit_spec(spec)
    except (VisitValidationError, ValueError) as e:
        console.print(f"[red]Invalid:[/red] {e}")
        raise typer.Exit(1)

    if not issues:
        console.print(f"[green]No issues:[/green] {spec_path}")
        return

    table = Table(title=f"{spec.visit_id}@{spec.version}")
    table.add_column("Severity")
    table.add_column("Activity")
    table.add_column("Code")
    table.add_column("Message")
    for issue in issues:
        color = "red" if issue.severity == Severity.ERROR else "yellow"
        table.add_row(
            f"[{color}]{issue.severity.value}[/{color}]",
            issue.activity_id,
            issue.code,
            issue.message,
        )
    console.print(table)

    if any(issue.severity == Severity.ERROR for issue in issues):
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
