"""protogen generate command - Run the units of a manifest."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from protogen_cli.errors import EXIT_USER_ERROR, CLIError
from protogen_cli.output import print_json, print_table, success

if TYPE_CHECKING:
    from protogen_core import BatchResult


@click.command("generate")
@click.option(
    "-f",
    "--file",
    "file_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("protogen.yaml"),
    help="Path to the manifest [default: ./protogen.yaml]",
)
@click.option(
    "-o",
    "--output",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Output source tree [default: manifest 'output']",
)
@click.option(
    "--home",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Home directory [default: $PROTOGEN_HOME or ~/.protogen]",
)
@click.option(
    "--settings",
    "settings_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="User settings file layered over <home>/settings.yaml",
)
@click.option(
    "-j",
    "--jobs",
    type=click.IntRange(min=1),
    default=1,
    help="Units to run in parallel [default: 1]",
)
@click.option("-q", "--quiet", is_flag=True, default=False, help="Hide protoc output.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON results.")
def generate(
    file_path: Path,
    output_dir: Path | None,
    home: Path | None,
    settings_path: Path | None,
    jobs: int,
    quiet: bool,
    as_json: bool,
) -> None:
    """Generate sources for every unit in a manifest.

    A failing unit is reported and skipped; the remaining units still run.
    Exits with code 1 when any unit failed.

    Examples:

        protogen generate

        protogen generate --file protos/protogen.yaml --output build/generated -j 4
    """
    import yaml
    from pydantic import ValidationError as PydanticValidationError

    from protogen_cli.errors import (
        handle_file_not_found,
        handle_validation_error,
        handle_yaml_error,
    )
    from protogen_cli.manifest import GenerationManifest
    from protogen_cli.output import ConsoleReporter
    from protogen_core import (
        CompilationOrchestrator,
        DependencyResolver,
        ToolLocator,
        run_units,
    )

    if not file_path.exists():
        handle_file_not_found(str(file_path))

    try:
        manifest = GenerationManifest.from_yaml(file_path)
    except yaml.YAMLError as e:
        handle_yaml_error(e, str(file_path))
    except PydanticValidationError as e:
        handle_validation_error(e, str(file_path))

    units, _ = manifest.build_units(file_path.parent, output_dir)

    resolver = DependencyResolver(manifest.config, home=home, settings_path=settings_path)
    orchestrator = CompilationOrchestrator(
        ToolLocator(resolver, config=manifest.config),
        config=manifest.config,
        reporter=ConsoleReporter(quiet=quiet or as_json),
    )
    try:
        batch = run_units(orchestrator, units, max_workers=jobs)
    finally:
        resolver.close()

    if as_json:
        print_json(batch.model_dump(mode="json"))
    else:
        _print_summary(batch)

    if batch.failed_count:
        raise CLIError(
            f"{batch.failed_count} of {len(batch.units)} units failed",
            exit_code=EXIT_USER_ERROR,
        )
    if not as_json:
        success(f"Generated {sum(len(u.artifacts) for u in batch.units)} sources")


def _print_summary(batch: BatchResult) -> None:
    from rich.markup import escape
    from rich.table import Table

    table = Table(title="Generation results")
    table.add_column("Unit")
    table.add_column("Status")
    table.add_column("Sources", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Message")

    for unit in batch.units:
        status = "[green]succeeded[/green]" if unit.passed else "[red]failed[/red]"
        table.add_row(
            escape(unit.name),
            status,
            str(len(unit.artifacts)),
            f"{unit.duration_ms}ms",
            escape(unit.message),
        )

    print_table(table)
