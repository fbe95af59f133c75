"""protogen classifier command - Print the platform classifier."""

from __future__ import annotations

import click

from protogen_cli.output import info


@click.command("classifier")
@click.option("--os", "os_name", default=None, help="Classify this OS name instead of the host's.")
@click.option("--arch", default=None, help="Classify this architecture instead of the host's.")
def classifier(os_name: str | None, arch: str | None) -> None:
    """Print the `{os}-{arch}` classifier used to pick protoc binaries.

    Examples:

        protogen classifier

        protogen classifier --os "Mac OS X" --arch aarch64
    """
    import platform

    from protogen_core import classify

    info(classify(os_name or platform.system(), arch or platform.machine()))
