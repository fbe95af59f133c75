"""Artifact coordinates and repository descriptors.

Coordinates use the ``group:artifact[:extension[:classifier]]:version``
string form, and map onto the Maven2 ``default`` repository layout.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from urllib.parse import quote

DEFAULT_EXTENSION = "jar"

POM_EXTENSION = "pom"


@dataclass(frozen=True)
class Coordinate:
    """Immutable identity of a resolvable artifact.

    Attributes:
        group_id: Artifact group, e.g. ``com.google.protobuf``.
        artifact_id: Artifact name, e.g. ``protoc``.
        version: Artifact version.
        extension: Packaging/extension tag, e.g. ``jar`` or ``exe``.
        classifier: Optional classifier, e.g. ``linux-x86_64``.
    """

    group_id: str
    artifact_id: str
    version: str
    extension: str = DEFAULT_EXTENSION
    classifier: str = ""

    @classmethod
    def parse(cls, value: str) -> Coordinate:
        """Parse ``group:artifact[:extension[:classifier]]:version``.

        Args:
            value: Coordinate string.

        Returns:
            Parsed Coordinate.

        Raises:
            ValueError: If the string does not have 3 to 5 non-empty parts.

        Example:
            >>> Coordinate.parse("com.google.protobuf:protoc:exe:linux-x86_64:3.11.0")
            Coordinate(group_id='com.google.protobuf', artifact_id='protoc', ...)
        """
        parts = value.strip().split(":")
        if len(parts) == 3:
            group_id, artifact_id, version = parts
            extension, classifier = DEFAULT_EXTENSION, ""
        elif len(parts) == 4:
            group_id, artifact_id, extension, version = parts
            classifier = ""
        elif len(parts) == 5:
            group_id, artifact_id, extension, classifier, version = parts
        else:
            raise ValueError(
                f"Bad artifact coordinates {value!r}, expected format is "
                "<groupId>:<artifactId>[:<extension>[:<classifier>]]:<version>"
            )

        if not (group_id and artifact_id and version and extension):
            raise ValueError(f"Bad artifact coordinates {value!r}, empty component")

        return cls(
            group_id=group_id,
            artifact_id=artifact_id,
            version=version,
            extension=extension,
            classifier=classifier,
        )

    def __str__(self) -> str:
        if self.classifier:
            return (
                f"{self.group_id}:{self.artifact_id}:{self.extension}:"
                f"{self.classifier}:{self.version}"
            )
        return f"{self.group_id}:{self.artifact_id}:{self.extension}:{self.version}"

    @property
    def conflict_key(self) -> str:
        """Version-less identity used to pick one version per artifact."""
        return f"{self.group_id}:{self.artifact_id}:{self.extension}:{self.classifier}"

    def pom(self) -> Coordinate:
        """Coordinate of the POM describing this artifact."""
        return replace(self, extension=POM_EXTENSION, classifier="")

    def relative_path(self) -> str:
        """Path of the artifact in a Maven2 ``default`` layout repository.

        Example:
            >>> Coordinate("com.example", "lib", "1.0", "jar", "tests").relative_path()
            'com/example/lib/1.0/lib-1.0-tests.jar'
        """
        group_path = self.group_id.replace(".", "/")
        suffix = f"-{self.classifier}" if self.classifier else ""
        file_name = f"{self.artifact_id}-{self.version}{suffix}.{self.extension}"
        return f"{group_path}/{self.artifact_id}/{self.version}/{file_name}"


@dataclass(frozen=True)
class ResolvedFile:
    """An artifact resolved to a file in the local repository cache.

    The file belongs to the cache; callers only read it.

    Attributes:
        coordinate: The resolved coordinate.
        path: Absolute local path of the artifact file.
    """

    coordinate: Coordinate
    path: Path


@dataclass(frozen=True)
class ProxyDescriptor:
    """A proxy applied to one remote repository.

    Attributes:
        protocol: URL scheme the proxy serves (``http`` or ``https``).
        host: Proxy host name.
        port: Proxy port.
        username: Optional basic auth user name.
        password: Optional basic auth password.
    """

    protocol: str
    host: str
    port: int
    username: str | None = None
    password: str | None = field(default=None, repr=False)

    @property
    def url(self) -> str:
        """Proxy URL in the form httpx accepts, credentials included."""
        credentials = ""
        if self.username:
            credentials = quote(self.username, safe="")
            if self.password:
                credentials += ":" + quote(self.password, safe="")
            credentials += "@"
        return f"http://{credentials}{self.host}:{self.port}"


@dataclass(frozen=True)
class RepositoryDescriptor:
    """A remote repository artifacts can be fetched from.

    Attributes:
        id: Repository id from settings.
        url: Base URL; ``file:``, ``http:`` and ``https:`` are supported.
        layout: Repository layout kind; only ``default`` is supported.
        proxy: Proxy to route requests through, if any.
    """

    id: str
    url: str
    layout: str = "default"
    proxy: ProxyDescriptor | None = None

    def artifact_url(self, relative_path: str) -> str:
        return self.url.rstrip("/") + "/" + relative_path


CENTRAL = RepositoryDescriptor(
    id="central",
    url="https://repo.maven.apache.org/maven2/",
)
