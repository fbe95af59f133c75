"""Two-phase artifact and dependency resolution.

This module provides the DependencyResolver:
1. Resolve the primary artifact alone; failure aborts with "not found"
2. Collect the dependency graph rooted at {coordinate, scope}
3. Resolve every node admitted by the classpath filter to a local file

Home directory, settings, proxies and repositories are computed once per
resolver instance and reused for every request.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import httpx
import structlog

from protogen_core.config import (
    REPOSITORY_DIR_NAME,
    SETTINGS_FILE_NAME,
    GatewayConfig,
    get_home,
)
from protogen_core.errors import (
    ArtifactNotFoundError,
    ArtifactResolutionError,
    ArtifactTransferError,
    DependencyCollectionError,
    DependencyResolutionError,
)
from protogen_core.observability import span
from protogen_core.resolver.coordinates import (
    CENTRAL,
    Coordinate,
    RepositoryDescriptor,
    ResolvedFile,
)
from protogen_core.resolver.graph import (
    COMPILE,
    SYSTEM,
    DependencyCollector,
    DependencyNode,
    GraphError,
    classpath_filter,
)
from protogen_core.resolver.local import LocalRepository
from protogen_core.resolver.pom import Dependency, EffectiveModel, Pom, parse_pom
from protogen_core.resolver.proxy import ProxySelector
from protogen_core.resolver.remote import MavenRepositoryClient
from protogen_core.resolver.settings import RepositorySettings, load_settings

logger = structlog.get_logger(__name__)

# Guard against cyclic or absurdly deep parent chains
MAX_PARENT_DEPTH = 20

T = TypeVar("T")


class DependencyResolver:
    """Resolves artifacts and their transitive dependencies to local files.

    Args:
        config: Gateway configuration (retry policy, checksum policy).
        home: Home directory override. Defaults to ``get_home()``.
        settings_path: Optional user settings file layered over the global one.
        transport: Optional httpx transport for the repository client.

    Example:
        >>> resolver = DependencyResolver()
        >>> files = resolver.resolve(
        ...     Coordinate.parse("com.google.protobuf:protoc:exe:linux-x86_64:3.11.0")
        ... )
        >>> files[0].path
        PosixPath('/home/me/.protogen/repository/com/google/protobuf/protoc/...')
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        *,
        home: Path | None = None,
        settings_path: Path | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config or GatewayConfig()
        self._home = home
        self._settings_path = settings_path
        self._transport = transport
        self._poms: dict[Coordinate, Pom | None] = {}
        self._poms_lock = threading.Lock()
        self._memo: dict[str, Any] = {}
        self._memo_lock = threading.RLock()
        self._log = logger.bind(component="dependency_resolver")

    def _once(self, name: str, factory: Callable[[], T]) -> T:
        """Compute a per-instance value at most once, even across threads."""
        with self._memo_lock:
            if name not in self._memo:
                self._memo[name] = factory()
            return self._memo[name]  # type: ignore[no-any-return]

    @property
    def home(self) -> Path:
        return self._once(
            "home", lambda: self._home if self._home is not None else get_home()
        )

    @property
    def local_repository(self) -> LocalRepository:
        return self._once(
            "local_repository", lambda: LocalRepository(self.home / REPOSITORY_DIR_NAME)
        )

    @property
    def settings(self) -> RepositorySettings:
        return self._once(
            "settings",
            lambda: load_settings(self.home / SETTINGS_FILE_NAME, self._settings_path),
        )

    @property
    def proxy_selector(self) -> ProxySelector:
        return self._once(
            "proxy_selector", lambda: ProxySelector.from_settings(self.settings.proxies)
        )

    @property
    def repositories(self) -> list[RepositoryDescriptor]:
        """Repositories of active profiles, else the built-in default."""
        return self._once("repositories", self._configure_repositories)

    def _configure_repositories(self) -> list[RepositoryDescriptor]:
        repositories = []
        for repository in self.settings.active_repositories():
            if repository.layout != "default":
                self._log.warning(
                    "repository_layout_unsupported",
                    repository=repository.id,
                    layout=repository.layout,
                )
                continue
            repositories.append(
                RepositoryDescriptor(
                    id=repository.id,
                    url=repository.url,
                    layout=repository.layout,
                    proxy=self.proxy_selector.select(repository.url),
                )
            )

        if not repositories:
            repositories = [
                RepositoryDescriptor(
                    id=CENTRAL.id,
                    url=CENTRAL.url,
                    proxy=self.proxy_selector.select(CENTRAL.url),
                )
            ]

        self._log.debug("repositories_configured", repositories=[r.id for r in repositories])
        return repositories

    @property
    def client(self) -> MavenRepositoryClient:
        return self._once("client", self._create_client)

    def _create_client(self) -> MavenRepositoryClient:
        return MavenRepositoryClient(
            retry=self.config.retry,
            timeout_seconds=self.config.http_timeout_seconds,
            verify_checksums=self.config.verify_checksums,
            transport=self._transport,
        )

    def close(self) -> None:
        with self._memo_lock:
            client = self._memo.pop("client", None)
        if client is not None:
            client.close()

    def resolve(self, coordinate: Coordinate, scope: str = COMPILE) -> list[ResolvedFile]:
        """Resolve an artifact and its runtime classpath.

        Args:
            coordinate: Artifact to resolve.
            scope: Scope of the root dependency.

        Returns:
            Resolved files in graph pre-order, primary artifact first.

        Raises:
            ArtifactNotFoundError: If the primary artifact cannot be resolved.
            DependencyCollectionError: If the dependency graph cannot be collected.
            DependencyResolutionError: If a dependency cannot be resolved.
        """
        with span(
            "resolve_dependencies",
            attributes={"artifact.coordinate": str(coordinate), "artifact.scope": scope},
        ):
            self.resolve_artifact(coordinate)

            collector = DependencyCollector(self._load_model)
            try:
                root = collector.collect(Dependency(coordinate=coordinate, scope=scope))
            except (GraphError, ArtifactResolutionError) as e:
                raise DependencyCollectionError(str(coordinate), str(e)) from e

            resolved: list[ResolvedFile] = []
            failures: list[str] = []
            for node in root.walk():
                if not classpath_filter(node):
                    continue
                try:
                    resolved.append(self._resolve_node(node))
                except ArtifactResolutionError as e:
                    failures.append(str(e))

            if failures:
                raise DependencyResolutionError(str(coordinate), "; ".join(failures))

            self._log.info(
                "dependencies_resolved",
                coordinate=str(coordinate),
                count=len(resolved),
            )
            return resolved

    def resolve_artifact(self, coordinate: Coordinate) -> ResolvedFile:
        """Resolve a single artifact, from the local cache or a repository.

        Raises:
            ArtifactNotFoundError: If no repository has the artifact.
        """
        path, errors = self._fetch(coordinate)
        if path is None:
            if errors:
                reason = "; ".join(errors)
            else:
                searched = ", ".join(f"{r.id} ({r.url})" for r in self.repositories)
                reason = f"not found in {searched}"
            raise ArtifactNotFoundError(str(coordinate), reason)
        return ResolvedFile(coordinate=coordinate, path=path.resolve())

    def _fetch(self, coordinate: Coordinate) -> tuple[Path | None, list[str]]:
        cached = self.local_repository.find(coordinate)
        if cached is not None:
            return cached, []

        errors: list[str] = []
        for repository in self.repositories:
            try:
                data = self.client.fetch(repository, coordinate.relative_path())
            except ArtifactTransferError as e:
                self._log.warning(
                    "repository_transfer_failed",
                    repository=repository.id,
                    coordinate=str(coordinate),
                    error=str(e),
                )
                errors.append(str(e))
                continue

            if data is None:
                continue

            try:
                path = self.local_repository.store(coordinate, data)
            except OSError as e:
                raise ArtifactNotFoundError(
                    str(coordinate), f"could not store in local repository: {e}"
                ) from e

            self._log.info(
                "artifact_downloaded",
                coordinate=str(coordinate),
                repository=repository.id,
                size=len(data),
            )
            return path, []

        return None, errors

    def _resolve_node(self, node: DependencyNode) -> ResolvedFile:
        if node.scope == SYSTEM:
            system_path = node.dependency.system_path
            if not system_path or not Path(system_path).is_file():
                raise ArtifactResolutionError(
                    f"System dependency {node.coordinate} not found at {system_path}"
                )
            return ResolvedFile(coordinate=node.coordinate, path=Path(system_path).resolve())
        return self.resolve_artifact(node.coordinate)

    def _load_pom(self, coordinate: Coordinate) -> Pom | None:
        with self._poms_lock:
            if coordinate in self._poms:
                return self._poms[coordinate]

        path, errors = self._fetch(coordinate)
        if path is None:
            if errors:
                raise ArtifactResolutionError(
                    f"Could not fetch POM {coordinate}: {'; '.join(errors)}"
                )
            self._log.debug("pom_missing", coordinate=str(coordinate))
            pom = None
        else:
            try:
                data = path.read_bytes()
            except OSError as e:
                raise ArtifactResolutionError(f"Could not read POM {path}: {e}") from e
            pom = parse_pom(data)

        with self._poms_lock:
            self._poms[coordinate] = pom
        return pom

    def _load_model(self, coordinate: Coordinate) -> EffectiveModel | None:
        """Effective POM model of an artifact, or None when it has no POM."""
        pom = self._load_pom(coordinate.pom())
        if pom is None:
            return None

        ancestry: list[Pom] = []
        parent_ref = pom.parent
        while parent_ref is not None:
            if len(ancestry) >= MAX_PARENT_DEPTH:
                raise ValueError(f"Parent chain of {coordinate} is too deep")
            parent = self._load_pom(parent_ref.pom_coordinate())
            if parent is None:
                raise ValueError(
                    f"Parent POM {parent_ref.group_id}:{parent_ref.artifact_id}:"
                    f"{parent_ref.version} not found"
                )
            ancestry.append(parent)
            parent_ref = parent.parent

        return EffectiveModel(pom, ancestry)
