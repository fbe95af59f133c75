"""Tool locator: maps a tool version to a local executable path.

Resolution composes the platform classifier and the dependency resolver,
and is memoized per version in a process-wide single-flight cache. Failed
lookups are not cached.
"""

from __future__ import annotations

import os
import stat
import threading
from collections.abc import Callable
from pathlib import Path
from typing import ClassVar, Protocol

import structlog

from protogen_core.cache import SingleFlightCache
from protogen_core.classifier import detect_classifier
from protogen_core.config import GatewayConfig
from protogen_core.errors import ToolNotExecutableError, ToolNotFoundError
from protogen_core.observability import span
from protogen_core.resolver import Coordinate, DependencyResolver, ResolvedFile

logger = structlog.get_logger(__name__)

_EXECUTE_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


class ArtifactResolver(Protocol):
    """Anything that resolves a coordinate under a scope to local files."""

    def resolve(self, coordinate: Coordinate, scope: str) -> list[ResolvedFile]: ...


def ensure_executable(path: Path) -> None:
    """Make sure ``path`` has the executable bit, setting it if missing.

    Raises:
        ToolNotExecutableError: If the bit is missing and cannot be set.
    """
    if os.access(path, os.X_OK):
        return
    try:
        path.chmod(path.stat().st_mode | _EXECUTE_BITS)
    except OSError as e:
        raise ToolNotExecutableError(str(path), str(e)) from e
    if not os.access(path, os.X_OK):
        raise ToolNotExecutableError(str(path))
    logger.debug("tool_marked_executable", path=str(path))


class ToolLocator:
    """Resolves tool versions to executable paths.

    Attributes:
        config: Gateway configuration providing the tool coordinate template.
        resolver: Resolver used to fetch the tool artifact.

    Example:
        >>> locator = ToolLocator.get_instance()
        >>> locator.locate("3.11.0")
        PosixPath('/home/me/.protogen/repository/.../protoc-3.11.0-linux-x86_64.exe')
    """

    _instance: ClassVar[ToolLocator | None] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(
        self,
        resolver: ArtifactResolver | None = None,
        *,
        config: GatewayConfig | None = None,
        classifier: Callable[[], str] = detect_classifier,
    ) -> None:
        """Initialize the locator.

        Args:
            resolver: Artifact resolver. Defaults to a DependencyResolver
                built from ``config``.
            config: Gateway configuration. Defaults to GatewayConfig().
            classifier: Returns the platform classifier of this host.
        """
        self.config = config or GatewayConfig()
        if resolver is None:
            resolver = DependencyResolver(self.config)
        self.resolver: ArtifactResolver = resolver
        self._classifier = classifier
        self._cache: SingleFlightCache[str, Path] = SingleFlightCache(self._find)
        self._log = logger.bind(component="tool_locator")

    @classmethod
    def get_instance(cls) -> ToolLocator:
        """Get the process-wide locator, creating it on first use."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Drop the process-wide locator (mainly for tests)."""
        with cls._instance_lock:
            cls._instance = None

    def coordinate_for(self, version: str) -> Coordinate:
        tool = self.config.tool
        return Coordinate(
            group_id=tool.group_id,
            artifact_id=tool.artifact_id,
            version=version,
            extension=tool.packaging,
            classifier=self._classifier(),
        )

    def locate(self, version: str) -> Path:
        """Return the absolute path of the executable for ``version``.

        Concurrent calls for the same version share one resolution.

        Raises:
            ArtifactResolutionError: If resolution fails (including
                ToolNotFoundError when not exactly one artifact matches).
            ToolNotExecutableError: If the file cannot be made executable.
        """
        return self._cache.get(version)

    def clear_cache(self) -> None:
        self._log.debug("tool_cache_cleared", versions=len(self._cache))
        self._cache.clear()

    def _find(self, version: str) -> Path:
        if not version:
            raise ToolNotFoundError("The tool version must not be empty")

        with span("locate_tool", attributes={"tool.version": version}):
            coordinate = self.coordinate_for(version)
            candidates = self.resolver.resolve(coordinate, self.config.tool.scope)
            if len(candidates) != 1:
                raise ToolNotFoundError(
                    f"Expected exactly one artifact for {coordinate}, "
                    f"found {len(candidates)}: {', '.join(str(c.coordinate) for c in candidates)}"
                )

            path = candidates[0].path.resolve()
            ensure_executable(path)

            self._log.info("tool_resolved", version=version, path=str(path))
            return path
