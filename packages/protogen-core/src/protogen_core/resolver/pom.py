"""Minimal POM model used to walk transitive dependencies.

Only the parts of a POM that affect the dependency graph are read:
coordinates, ``<parent>``, ``<properties>``, ``<dependencies>`` and
``<dependencyManagement>``. Profiles inside POMs and import-scoped BOMs are
not evaluated.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from protogen_core.resolver.coordinates import Coordinate

logger = structlog.get_logger(__name__)

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")

_MAX_INTERPOLATION_PASSES = 10

# Dependency type -> (extension, implied classifier)
_TYPE_HANDLERS: dict[str, tuple[str, str]] = {
    "jar": ("jar", ""),
    "test-jar": ("jar", "tests"),
    "maven-plugin": ("jar", ""),
    "ejb": ("jar", ""),
    "bundle": ("jar", ""),
    "java-source": ("jar", "sources"),
    "javadoc": ("jar", "javadoc"),
}


@dataclass(frozen=True)
class Exclusion:
    """A ``groupId:artifactId`` exclusion; ``*`` matches anything."""

    group_id: str
    artifact_id: str

    def matches(self, coordinate: Coordinate) -> bool:
        return self.group_id in ("*", coordinate.group_id) and self.artifact_id in (
            "*",
            coordinate.artifact_id,
        )


@dataclass(frozen=True)
class DependencyDecl:
    """A dependency as declared in a POM, before interpolation and management."""

    group_id: str
    artifact_id: str
    version: str | None = None
    type: str = "jar"
    classifier: str = ""
    scope: str | None = None
    optional: bool = False
    system_path: str | None = None
    exclusions: tuple[Exclusion, ...] = ()

    @property
    def management_key(self) -> str:
        extension, implied = _TYPE_HANDLERS.get(self.type, (self.type, ""))
        return f"{self.group_id}:{self.artifact_id}:{extension}:{self.classifier or implied}"


@dataclass(frozen=True)
class Dependency:
    """A fully-interpolated, managed dependency edge."""

    coordinate: Coordinate
    scope: str = "compile"
    optional: bool = False
    system_path: str | None = None
    exclusions: tuple[Exclusion, ...] = ()


@dataclass(frozen=True)
class ParentRef:
    group_id: str
    artifact_id: str
    version: str

    def pom_coordinate(self) -> Coordinate:
        return Coordinate(self.group_id, self.artifact_id, self.version, "pom")


@dataclass
class Pom:
    """Raw POM content."""

    group_id: str | None
    artifact_id: str
    version: str | None
    packaging: str = "jar"
    parent: ParentRef | None = None
    properties: dict[str, str] = field(default_factory=dict)
    dependencies: list[DependencyDecl] = field(default_factory=list)
    managed: list[DependencyDecl] = field(default_factory=list)


def _strip_namespaces(root: ET.Element) -> None:
    for element in root.iter():
        if isinstance(element.tag, str) and "}" in element.tag:
            element.tag = element.tag.split("}", 1)[1]


def _text(element: ET.Element | None, path: str, default: str | None = None) -> str | None:
    if element is None:
        return default
    child = element.find(path)
    if child is None or child.text is None:
        return default
    return child.text.strip()


def _parse_dependency(element: ET.Element) -> DependencyDecl:
    exclusions = tuple(
        Exclusion(
            group_id=_text(ex, "groupId", "*") or "*",
            artifact_id=_text(ex, "artifactId", "*") or "*",
        )
        for ex in element.findall("exclusions/exclusion")
    )
    return DependencyDecl(
        group_id=_text(element, "groupId", "") or "",
        artifact_id=_text(element, "artifactId", "") or "",
        version=_text(element, "version"),
        type=_text(element, "type", "jar") or "jar",
        classifier=_text(element, "classifier", "") or "",
        scope=_text(element, "scope"),
        optional=(_text(element, "optional", "false") or "false").lower() == "true",
        system_path=_text(element, "systemPath"),
        exclusions=exclusions,
    )


def parse_pom(data: bytes) -> Pom:
    """Parse POM XML.

    Args:
        data: Raw POM bytes.

    Returns:
        Parsed Pom.

    Raises:
        ValueError: If the document is not well-formed or lacks an artifactId.
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise ValueError(f"Malformed POM: {e}") from e

    _strip_namespaces(root)

    artifact_id = _text(root, "artifactId")
    if not artifact_id:
        raise ValueError("Malformed POM: missing artifactId")

    parent: ParentRef | None = None
    parent_element = root.find("parent")
    if parent_element is not None:
        parent = ParentRef(
            group_id=_text(parent_element, "groupId", "") or "",
            artifact_id=_text(parent_element, "artifactId", "") or "",
            version=_text(parent_element, "version", "") or "",
        )

    properties: dict[str, str] = {}
    properties_element = root.find("properties")
    if properties_element is not None:
        for prop in properties_element:
            properties[prop.tag] = (prop.text or "").strip()

    return Pom(
        group_id=_text(root, "groupId"),
        artifact_id=artifact_id,
        version=_text(root, "version"),
        packaging=_text(root, "packaging", "jar") or "jar",
        parent=parent,
        properties=properties,
        dependencies=[_parse_dependency(d) for d in root.findall("dependencies/dependency")],
        managed=[
            _parse_dependency(d)
            for d in root.findall("dependencyManagement/dependencies/dependency")
        ],
    )


class EffectiveModel:
    """A POM merged with its ancestry, with properties interpolated.

    Args:
        pom: The POM itself.
        ancestry: Parent POMs, nearest parent first.
    """

    def __init__(self, pom: Pom, ancestry: Sequence[Pom] = ()) -> None:
        self.pom = pom
        self.ancestry = list(ancestry)
        self.properties = self._collect_properties()

    def _collect_properties(self) -> dict[str, str]:
        properties: dict[str, str] = {}
        for pom in reversed(self.ancestry):
            properties.update(pom.properties)
        properties.update(self.pom.properties)

        parent = self.pom.parent
        group_id = self.pom.group_id or (parent.group_id if parent else "")
        version = self.pom.version or (parent.version if parent else "")
        builtins = {
            "project.groupId": group_id,
            "project.artifactId": self.pom.artifact_id,
            "project.version": version,
            "project.packaging": self.pom.packaging,
            "pom.groupId": group_id,
            "pom.artifactId": self.pom.artifact_id,
            "pom.version": version,
            "groupId": group_id,
            "artifactId": self.pom.artifact_id,
            "version": version,
        }
        if parent is not None:
            builtins.update(
                {
                    "project.parent.groupId": parent.group_id,
                    "project.parent.artifactId": parent.artifact_id,
                    "project.parent.version": parent.version,
                }
            )
        properties.update(builtins)
        return properties

    def interpolate(self, value: str | None) -> str | None:
        """Replace ``${name}`` placeholders; unknown names are left untouched."""
        if value is None:
            return None
        for _ in range(_MAX_INTERPOLATION_PASSES):
            replaced = _PLACEHOLDER.sub(
                lambda m: self.properties.get(m.group(1), m.group(0)), value
            )
            if replaced == value:
                break
            value = replaced
        return value

    def _interpolated(self, decl: DependencyDecl) -> DependencyDecl:
        return DependencyDecl(
            group_id=self.interpolate(decl.group_id) or "",
            artifact_id=self.interpolate(decl.artifact_id) or "",
            version=self.interpolate(decl.version),
            type=self.interpolate(decl.type) or "jar",
            classifier=self.interpolate(decl.classifier) or "",
            scope=self.interpolate(decl.scope),
            optional=decl.optional,
            system_path=self.interpolate(decl.system_path),
            exclusions=decl.exclusions,
        )

    def managed_dependencies(self) -> dict[str, DependencyDecl]:
        """dependencyManagement entries by key; nearer declarations win."""
        managed: dict[str, DependencyDecl] = {}
        for pom in [self.pom, *self.ancestry]:
            for decl in pom.managed:
                if decl.scope == "import":
                    logger.debug("pom_import_scope_ignored", artifact_id=decl.artifact_id)
                    continue
                decl = self._interpolated(decl)
                managed.setdefault(decl.management_key, decl)
        return managed

    def dependencies(self) -> list[Dependency]:
        """Declared dependencies (own and inherited) with management applied.

        Raises:
            ValueError: If a dependency has no version after management.
        """
        managed = self.managed_dependencies()
        declared: dict[str, DependencyDecl] = {}
        for pom in [self.pom, *self.ancestry]:
            for decl in pom.dependencies:
                decl = self._interpolated(decl)
                declared.setdefault(decl.management_key, decl)

        result = []
        for key, decl in declared.items():
            management = managed.get(key)
            version = decl.version or (management.version if management else None)
            scope = decl.scope or (management.scope if management else None) or "compile"
            exclusions = decl.exclusions
            if management is not None and not exclusions:
                exclusions = management.exclusions
            if not version:
                raise ValueError(
                    f"Dependency {decl.group_id}:{decl.artifact_id} has no version"
                )
            extension, implied = _TYPE_HANDLERS.get(decl.type, (decl.type, ""))
            result.append(
                Dependency(
                    coordinate=Coordinate(
                        group_id=decl.group_id,
                        artifact_id=decl.artifact_id,
                        version=version,
                        extension=extension,
                        classifier=decl.classifier or implied,
                    ),
                    scope=scope,
                    optional=decl.optional,
                    system_path=decl.system_path
                    or (management.system_path if management else None),
                    exclusions=exclusions,
                )
            )
        return result
