"""protogen resolve command - Resolve a protoc version to an executable."""

from __future__ import annotations

from pathlib import Path

import click

from protogen_cli.errors import EXIT_SYSTEM_ERROR, CLIError
from protogen_cli.output import info, print_json


@click.command("resolve")
@click.argument("version")
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
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Gateway configuration YAML",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON output.")
def resolve(
    version: str,
    home: Path | None,
    settings_path: Path | None,
    config_path: Path | None,
    as_json: bool,
) -> None:
    """Resolve protoc VERSION and print the path of the executable.

    Downloads the binary for this platform into the local repository if it
    is not cached yet.

    Examples:

        protogen resolve 3.11.0

        protogen resolve 3.11.0 --settings ~/corp-settings.yaml
    """
    from pydantic import ValidationError as PydanticValidationError

    from protogen_cli.errors import handle_file_not_found, handle_validation_error
    from protogen_core import DependencyResolver, GatewayConfig, ProtogenError, ToolLocator

    config = GatewayConfig()
    if config_path is not None:
        try:
            config = GatewayConfig.from_yaml(config_path)
        except FileNotFoundError:
            handle_file_not_found(str(config_path))
        except PydanticValidationError as e:
            handle_validation_error(e, str(config_path))

    resolver = DependencyResolver(config, home=home, settings_path=settings_path)
    locator = ToolLocator(resolver, config=config)
    try:
        path = locator.locate(version)
    except ProtogenError as e:
        raise CLIError(str(e)) from None
    except OSError as e:
        raise CLIError(f"Could not resolve {version}: {e}", exit_code=EXIT_SYSTEM_ERROR) from None
    finally:
        resolver.close()

    if as_json:
        print_json(
            {
                "version": version,
                "coordinate": str(locator.coordinate_for(version)),
                "path": str(path),
            }
        )
    else:
        info(str(path), soft_wrap=True)
