"""Unit of work and the host collaborators it carries.

A host (build plugin, CLI, ...) builds one UnitOfWork per generation request
and supplies three collaborators:
- FileLookup: reads logical input files by relative path
- OutputSink: receives generated sources by fully qualified name
- Reporter: receives diagnostics (errors, and tool output as warnings)
"""

from __future__ import annotations

from collections.abc import Iterable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import BinaryIO, Protocol

import structlog

logger = structlog.get_logger(__name__)


class FileLookup(Protocol):
    """Reads logical files by relative path."""

    def lookup(self, relative_path: str) -> bytes:
        """Return the contents of ``relative_path``.

        Raises:
            FileLookupError: If the path is not found on the search path.
        """
        ...


class OutputSink(Protocol):
    """Destination for generated source files."""

    def create_source_artifact(self, qualified_name: str) -> AbstractContextManager[BinaryIO]:
        """Open a stream for the source of ``qualified_name``.

        The returned context manager closes the stream on exit.
        """
        ...


class Reporter(Protocol):
    """Diagnostic channel back to the host."""

    def error(self, message: str, *, unit: str | None = None) -> None: ...

    def warning(self, message: str, *, unit: str | None = None) -> None: ...


class LoggingReporter:
    """Reporter that forwards diagnostics to structlog."""

    def __init__(self) -> None:
        self._log = logger.bind(component="reporter")

    def error(self, message: str, *, unit: str | None = None) -> None:
        self._log.error("unit_diagnostic", unit=unit, message=message)

    def warning(self, message: str, *, unit: str | None = None) -> None:
        self._log.warning("unit_diagnostic", unit=unit, message=message)


def unique(paths: Iterable[str]) -> tuple[str, ...]:
    """Drop duplicate paths, keeping first-seen order."""
    return tuple(dict.fromkeys(paths))


@dataclass(frozen=True)
class UnitOfWork:
    """One generation request.

    Attributes:
        name: Display name used in diagnostics.
        version: Tool version to generate with.
        includes: Logical paths staged only for import resolution.
        inputs: Logical paths staged and passed to the tool for generation.
        target_package: Namespace every generated file must belong to.
        lookup: Reads include and input files.
        sink: Receives generated files.

    Example:
        >>> unit = UnitOfWork(
        ...     name="com.example.pkg",
        ...     version="3.11.0",
        ...     includes=("common/types.proto",),
        ...     inputs=("pkg/msg.proto",),
        ...     target_package="com.example.pkg",
        ...     lookup=SearchPathLookup([Path("src/main/proto")]),
        ...     sink=DirectoryOutputSink(Path("build/generated")),
        ... )
    """

    name: str
    version: str
    includes: tuple[str, ...]
    inputs: tuple[str, ...]
    target_package: str
    lookup: FileLookup
    sink: OutputSink

    def __post_init__(self) -> None:
        object.__setattr__(self, "includes", unique(self.includes))
        object.__setattr__(self, "inputs", unique(self.inputs))
