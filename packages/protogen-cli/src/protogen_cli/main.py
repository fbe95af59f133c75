"""CLI entry point for protogen.

This module defines the main CLI group using the LazyGroup pattern, so
``protogen --help`` does not import the resolver stack.
"""

from __future__ import annotations

import importlib
from typing import Any

import click
import rich_click as rclick

from protogen_cli import __version__
from protogen_cli.output import set_no_color

rclick.rich_click.TEXT_MARKUP = "markdown"
rclick.rich_click.SHOW_ARGUMENTS = True
rclick.rich_click.GROUP_ARGUMENTS_OPTIONS = True


class LazyGroup(rclick.RichGroup):
    """Click group that loads commands lazily.

    Commands are only imported when actually invoked, not at import time.

    Attributes:
        lazy_subcommands: Mapping of command names to ``module.attribute`` paths.
    """

    def __init__(
        self,
        *args: Any,
        lazy_subcommands: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.lazy_subcommands: dict[str, str] = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        commands = set(super().list_commands(ctx))
        commands.update(self.lazy_subcommands.keys())
        return sorted(commands)

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        cmd = super().get_command(ctx, cmd_name)  # type: ignore[arg-type]
        if cmd is not None:
            return cmd

        if cmd_name not in self.lazy_subcommands:
            return None

        module_name, attr_name = self.lazy_subcommands[cmd_name].rsplit(".", 1)
        mod = importlib.import_module(module_name)
        return getattr(mod, attr_name)  # type: ignore[no-any-return]


LAZY_COMMANDS = {
    "generate": "protogen_cli.commands.generate.generate",
    "resolve": "protogen_cli.commands.resolve.resolve",
    "classifier": "protogen_cli.commands.classifier.classifier",
}


def _configure_logging(ctx: click.Context, param: click.Parameter, value: str | None) -> None:
    if value is None:
        return
    from protogen_core.observability import configure_logging

    configure_logging(value, json_format=False)


@click.command(cls=LazyGroup, lazy_subcommands=LAZY_COMMANDS)
@click.version_option(version=__version__, prog_name="protogen")
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable colored output.",
    is_eager=True,
    expose_value=False,
    callback=lambda ctx, param, value: set_no_color(value) if value else None,
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Enable structured logging at this level.",
    expose_value=False,
    callback=_configure_logging,
)
def cli() -> None:
    """protogen - resolve protoc and generate sources.

    **Commands:**

    - `protogen generate` - Run the units in a protogen.yaml manifest
    - `protogen resolve VERSION` - Print the protoc executable for a version
    - `protogen classifier` - Print this platform's classifier
    """
    pass


if __name__ == "__main__":
    cli()
