"""Filesystem implementations of the file lookup and output sink.

- SearchPathLookup: reads logical paths from an ordered list of roots
- DirectoryOutputSink: writes generated sources under a directory tree
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import BinaryIO

import structlog

from protogen_core.errors import FileLookupError, StagingError

logger = structlog.get_logger(__name__)


def safe_relative_path(relative_path: str) -> PurePosixPath:
    """Validate a logical path and return it as a relative POSIX path.

    Args:
        relative_path: Logical path such as ``pkg/msg.proto``.

    Returns:
        The parsed relative path.

    Raises:
        ValueError: If the path is empty, absolute, or contains ``..``.
    """
    path = PurePosixPath(relative_path.replace("\\", "/"))
    if not relative_path or path.is_absolute() or Path(relative_path).is_absolute():
        raise ValueError(f"Invalid path: {relative_path!r} must be relative")
    if ".." in path.parts:
        raise ValueError(f"Invalid path: {relative_path!r} must not contain '..'")
    if path == PurePosixPath("."):
        raise ValueError(f"Invalid path: {relative_path!r} names no file")
    return path


class SearchPathLookup:
    """Looks up logical paths on an ordered list of root directories.

    Roots are tried in order, so a class-path style root listed first takes
    precedence over a build-output style root listed second.

    Args:
        roots: Directories to search.

    Example:
        >>> lookup = SearchPathLookup([Path("src/main/proto"), Path("build/proto")])
        >>> data = lookup.lookup("pkg/msg.proto")
    """

    def __init__(self, roots: Sequence[Path]) -> None:
        self.roots = [Path(root) for root in roots]

    def lookup(self, relative_path: str) -> bytes:
        try:
            relative = safe_relative_path(relative_path)
        except ValueError as e:
            raise FileLookupError(relative_path) from e

        for root in self.roots:
            candidate = root.joinpath(*relative.parts)
            if not candidate.is_file():
                continue
            try:
                return candidate.read_bytes()
            except OSError as e:
                raise StagingError(f"Could not open file {candidate}") from e

        raise FileLookupError(relative_path, searched=[str(root) for root in self.roots])


class DirectoryOutputSink:
    """Writes generated sources to ``<root>/<qualified/name><suffix>``.

    Attributes:
        root: Destination source tree.
        suffix: File extension for generated sources.
        created: Qualified names written so far, in order.
    """

    def __init__(self, root: Path, suffix: str = ".java") -> None:
        self.root = Path(root)
        self.suffix = suffix
        self.created: list[str] = []
        self._lock = threading.Lock()

    def path_for(self, qualified_name: str) -> Path:
        parts = [part for part in qualified_name.split(".") if part]
        if not parts:
            raise ValueError(f"Invalid qualified name: {qualified_name!r}")
        return self.root.joinpath(*parts[:-1], parts[-1] + self.suffix)

    @contextmanager
    def create_source_artifact(self, qualified_name: str) -> Iterator[BinaryIO]:
        """Open the destination file of ``qualified_name`` for writing.

        Example:
            >>> with sink.create_source_artifact("com.example.pkg.Msg") as out:
            ...     out.write(b"package com.example.pkg;")
        """
        path = self.path_for(qualified_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as stream:
            yield stream

        with self._lock:
            self.created.append(qualified_name)
        logger.debug("source_artifact_written", name=qualified_name, path=str(path))
