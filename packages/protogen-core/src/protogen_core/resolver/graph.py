"""Dependency graph collection.

Builds the transitive dependency tree below a root dependency:
- Nearest declaration wins when the same artifact appears more than once
  (breadth-first, declaration order breaks ties)
- ``test`` and ``provided`` dependencies are not transitive
- Optional dependencies are only followed directly below the root
- Exclusions apply to the whole subtree below the declaring edge
- Child scopes are derived from the parent scope
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

import structlog

from protogen_core.resolver.coordinates import Coordinate
from protogen_core.resolver.pom import Dependency, EffectiveModel, Exclusion

logger = structlog.get_logger(__name__)

COMPILE = "compile"
PROVIDED = "provided"
RUNTIME = "runtime"
SYSTEM = "system"
TEST = "test"

# Scopes needed to run an artifact
CLASSPATH_SCOPES = frozenset({COMPILE, PROVIDED, SYSTEM, RUNTIME})

# Scopes that do not propagate below the root
_NON_TRANSITIVE_SCOPES = frozenset({TEST, PROVIDED})


class GraphError(Exception):
    """Raised when a graph cannot be collected; wrapped by the resolver."""

    pass


def derive_scope(parent_scope: str, child_scope: str) -> str:
    """Scope a dependency gets when reached through ``parent_scope``.

    Example:
        >>> derive_scope("runtime", "compile")
        'runtime'
    """
    if child_scope in (SYSTEM, TEST):
        return child_scope
    if not parent_scope or parent_scope == COMPILE:
        return child_scope
    if parent_scope in (TEST, RUNTIME):
        return parent_scope
    if parent_scope in (SYSTEM, PROVIDED):
        return PROVIDED
    return RUNTIME


def is_version_range(version: str) -> bool:
    return version[:1] in ("[", "(") or "," in version


@dataclass
class DependencyNode:
    """A node in the collected dependency tree."""

    dependency: Dependency
    children: list[DependencyNode] = field(default_factory=list)

    @property
    def coordinate(self) -> Coordinate:
        return self.dependency.coordinate

    @property
    def scope(self) -> str:
        return self.dependency.scope

    def walk(self) -> Iterator[DependencyNode]:
        """Yield this node and its descendants in pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


def classpath_filter(node: DependencyNode, scopes: frozenset[str] = CLASSPATH_SCOPES) -> bool:
    return node.scope in scopes


class DependencyCollector:
    """Collects the dependency tree of a root dependency.

    Args:
        load_model: Returns the effective POM model of a coordinate, or
            None when the artifact has no POM (meaning no dependencies).
    """

    def __init__(self, load_model: Callable[[Coordinate], EffectiveModel | None]) -> None:
        self._load_model = load_model

    def collect(self, root: Dependency) -> DependencyNode:
        """Collect the tree below ``root``.

        Raises:
            GraphError: If a POM is unusable or a version range is declared.
        """
        root_node = DependencyNode(root)
        seen = {root.coordinate.conflict_key}
        queue: deque[tuple[DependencyNode, tuple[Exclusion, ...], int]] = deque(
            [(root_node, root.exclusions, 1)]
        )

        while queue:
            parent, exclusions, depth = queue.popleft()
            if parent.scope == SYSTEM:
                continue

            for dependency in self._dependencies_of(parent.coordinate):
                coordinate = dependency.coordinate
                if dependency.scope in _NON_TRANSITIVE_SCOPES:
                    continue
                if dependency.optional and depth > 1:
                    continue
                if any(ex.matches(coordinate) for ex in exclusions):
                    logger.debug("dependency_excluded", coordinate=str(coordinate))
                    continue
                if coordinate.conflict_key in seen:
                    continue
                if is_version_range(coordinate.version):
                    raise GraphError(
                        f"Version range {coordinate.version} for "
                        f"{coordinate.group_id}:{coordinate.artifact_id} is not supported"
                    )

                seen.add(coordinate.conflict_key)
                child = DependencyNode(
                    Dependency(
                        coordinate=coordinate,
                        scope=derive_scope(parent.scope, dependency.scope),
                        optional=dependency.optional,
                        system_path=dependency.system_path,
                        exclusions=dependency.exclusions,
                    )
                )
                parent.children.append(child)
                queue.append((child, exclusions + dependency.exclusions, depth + 1))

        return root_node

    def _dependencies_of(self, coordinate: Coordinate) -> list[Dependency]:
        try:
            model = self._load_model(coordinate)
        except ValueError as e:
            raise GraphError(f"Invalid POM for {coordinate}: {e}") from e
        if model is None:
            return []
        try:
            return model.dependencies()
        except ValueError as e:
            raise GraphError(f"Invalid POM for {coordinate}: {e}") from e
