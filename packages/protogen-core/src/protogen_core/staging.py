"""Per-unit work directories and generated output discovery.

Each unit gets two fresh temporary directories: a staging directory holding
copies of its includes and inputs at their logical relative paths, and an
output directory the tool writes generated sources into. Neither is shared
with any other unit.
"""

from __future__ import annotations

import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path, PurePath
from types import TracebackType

import structlog

from protogen_core.errors import OutputCopyError, StagingError
from protogen_core.io import safe_relative_path

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GeneratedFile:
    """A source file emitted by the tool.

    Attributes:
        path: Absolute path under the output directory.
        qualified_name: Dotted name derived from the relative path.
        declared_package: Everything before the last dot ("" at the root).
    """

    path: Path
    qualified_name: str
    declared_package: str


def qualified_name_for(relative_path: PurePath, suffix: str) -> str:
    """Map a path relative to the output root to a dotted name.

    Example:
        >>> qualified_name_for(PurePosixPath("com/example/pkg/Msg.java"), ".java")
        'com.example.pkg.Msg'
    """
    text = relative_path.as_posix()
    if text.endswith(suffix):
        text = text[: -len(suffix)]
    return text.replace("/", ".")


def package_of(qualified_name: str) -> str:
    """Namespace prefix of a dotted name; empty when it has no dot."""
    return qualified_name.rpartition(".")[0]


def collect_generated(output_dir: Path, suffix: str) -> list[GeneratedFile]:
    """Walk ``output_dir`` for generated sources ending with ``suffix``.

    Raises:
        OutputCopyError: If the directory tree cannot be walked.
    """
    generated = []
    try:
        candidates = sorted(p for p in output_dir.rglob(f"*{suffix}") if p.is_file())
    except OSError as e:
        raise OutputCopyError(f"Could not copy files from {output_dir}") from e

    for path in candidates:
        qualified_name = qualified_name_for(path.relative_to(output_dir), suffix)
        generated.append(
            GeneratedFile(
                path=path,
                qualified_name=qualified_name,
                declared_package=package_of(qualified_name),
            )
        )
    return generated


class WorkDirectories:
    """Staging and output directories owned by one unit.

    Use as a context manager; both directories are removed on exit unless
    ``keep`` is set.

    Args:
        staging_prefix: Name prefix of the staging directory.
        output_prefix: Name prefix of the output directory.
        keep: Leave directories in place after exit.

    Example:
        >>> with WorkDirectories("protoc-staging-", "protoc-output-") as dirs:
        ...     dirs.stage("pkg/msg.proto", b"syntax = \\"proto3\\";")
    """

    def __init__(self, staging_prefix: str, output_prefix: str, *, keep: bool = False) -> None:
        self.staging_prefix = staging_prefix
        self.output_prefix = output_prefix
        self.keep = keep
        self._staging_dir: Path | None = None
        self._output_dir: Path | None = None

    @property
    def staging_dir(self) -> Path:
        if self._staging_dir is None:
            raise RuntimeError("Work directories have not been created")
        return self._staging_dir

    @property
    def output_dir(self) -> Path:
        if self._output_dir is None:
            raise RuntimeError("Work directories have not been created")
        return self._output_dir

    def __enter__(self) -> WorkDirectories:
        self.create()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.cleanup()

    def create(self) -> None:
        """Create both directories.

        Raises:
            StagingError: If a temporary directory cannot be created.
        """
        try:
            self._staging_dir = Path(tempfile.mkdtemp(prefix=self.staging_prefix))
            self._output_dir = Path(tempfile.mkdtemp(prefix=self.output_prefix))
        except OSError as e:
            if self._staging_dir is not None:
                shutil.rmtree(self._staging_dir, ignore_errors=True)
                self._staging_dir = None
            raise StagingError("Could not create temporary directory") from e

    def stage(self, relative_path: str, data: bytes) -> Path:
        """Write ``data`` to ``relative_path`` inside the staging directory.

        Returns:
            Absolute path of the staged file.

        Raises:
            StagingError: If the path is invalid or the file cannot be written.
        """
        try:
            relative = safe_relative_path(relative_path)
        except ValueError as e:
            raise StagingError(str(e)) from e

        destination = self.staging_dir.joinpath(*relative.parts)
        parent = destination.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StagingError(f"Could not create directory {parent}") from e

        try:
            destination.write_bytes(data)
        except OSError as e:
            raise StagingError(f"Could not create file {destination}") from e

        return destination

    def cleanup(self) -> None:
        if self.keep:
            logger.debug(
                "work_dirs_kept",
                staging_dir=str(self._staging_dir),
                output_dir=str(self._output_dir),
            )
            return
        for directory in (self._staging_dir, self._output_dir):
            if directory is not None:
                shutil.rmtree(directory, ignore_errors=True)
