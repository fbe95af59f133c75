"""Local repository cache in the Maven2 ``default`` layout."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import structlog

from protogen_core.resolver.coordinates import Coordinate

logger = structlog.get_logger(__name__)


class LocalRepository:
    """Directory cache of downloaded artifacts and POMs.

    Files are written to a temporary sibling and renamed into place, so a
    concurrent reader never sees a partially written artifact.

    Args:
        root: Cache root, usually ``<home>/repository``.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def path_for(self, coordinate: Coordinate) -> Path:
        return self.root / coordinate.relative_path()

    def find(self, coordinate: Coordinate) -> Path | None:
        """Return the cached file for ``coordinate``, or None if absent."""
        path = self.path_for(coordinate)
        if path.is_file():
            return path
        return None

    def store(self, coordinate: Coordinate, data: bytes) -> Path:
        """Atomically write ``data`` as the cached file for ``coordinate``.

        Raises:
            OSError: If the cache directory or file cannot be written.
        """
        target = self.path_for(coordinate)
        target.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug("artifact_cached", coordinate=str(coordinate), path=str(target))
        return target
