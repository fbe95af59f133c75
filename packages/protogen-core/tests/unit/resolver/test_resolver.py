"""Unit tests for DependencyResolver against file-based repositories."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any

import pytest

from protogen_core.errors import (
    ArtifactNotFoundError,
    DependencyCollectionError,
    DependencyResolutionError,
)
from protogen_core.resolver import CENTRAL, Coordinate, DependencyResolver
from protogen_core.resolver.local import LocalRepository
from protogen_core.resolver.settings import load_settings

APP = Coordinate("com.example", "app", "1.0")
LIB = Coordinate("com.example", "lib", "2.0")
UTIL = Coordinate("com.example", "util", "3.0")


def pom_xml(
    artifact_id: str,
    version: str,
    dependencies: str = "",
    *,
    extra: str = "",
    group_id: str = "com.example",
) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<project xmlns="http://maven.apache.org/POM/4.0.0">\n'
        f"  <groupId>{group_id}</groupId>\n"
        f"  <artifactId>{artifact_id}</artifactId>\n"
        f"  <version>{version}</version>\n"
        f"{extra}"
        f"  <dependencies>{dependencies}</dependencies>\n"
        "</project>\n"
    )


def dependency_xml(artifact_id: str, version: str | None = None, extra: str = "") -> str:
    version_tag = f"<version>{version}</version>" if version else ""
    return (
        "<dependency><groupId>com.example</groupId>"
        f"<artifactId>{artifact_id}</artifactId>{version_tag}{extra}</dependency>"
    )


@pytest.fixture
def resolver(repo_settings: Path) -> DependencyResolver:
    return DependencyResolver()


class TestResolve:
    """Tests for DependencyResolver.resolve()."""

    def test_artifact_without_pom(
        self, maven_repo: Any, resolver: DependencyResolver, isolated_home: Path
    ) -> None:
        """Test an artifact without a POM resolves to just itself."""
        maven_repo.add(APP, b"app-jar")

        files = resolver.resolve(APP)

        assert [f.coordinate for f in files] == [APP]
        assert files[0].path.read_bytes() == b"app-jar"
        assert files[0].path.is_relative_to((isolated_home / "repository").resolve())

    def test_transitive_dependencies(
        self, maven_repo: Any, resolver: DependencyResolver
    ) -> None:
        """Test runtime dependencies are resolved; test scope is skipped."""
        maven_repo.add(
            APP,
            pom=pom_xml(
                "app",
                "1.0",
                dependency_xml("lib", "2.0")
                + dependency_xml("junit", "4.13", "<scope>test</scope>"),
            ),
        )
        maven_repo.add(LIB, pom=pom_xml("lib", "2.0", dependency_xml("util", "3.0")))
        maven_repo.add(UTIL)

        files = resolver.resolve(APP)

        assert [f.coordinate for f in files] == [APP, LIB, UTIL]

    def test_cached_artifacts_do_not_need_repository(
        self, maven_repo: Any, resolver: DependencyResolver
    ) -> None:
        """Test a second resolution is served from the local cache."""
        remote_file = maven_repo.add(APP)
        first = resolver.resolve(APP)

        remote_file.unlink()
        second = DependencyResolver().resolve(APP)

        assert first == second

    def test_parent_management(self, maven_repo: Any, resolver: DependencyResolver) -> None:
        """Test dependency versions managed in a parent POM."""
        parent = Coordinate("com.example", "parent", "1", "pom")
        maven_repo.add_pom(
            parent,
            pom_xml(
                "parent",
                "1",
                extra=(
                    "<dependencyManagement><dependencies>"
                    + dependency_xml("lib", "2.0")
                    + "</dependencies></dependencyManagement>"
                ),
            ),
        )
        maven_repo.add(
            APP,
            pom=pom_xml(
                "app",
                "1.0",
                dependency_xml("lib"),
                extra=(
                    "<parent><groupId>com.example</groupId>"
                    "<artifactId>parent</artifactId><version>1</version></parent>"
                ),
            ),
        )
        maven_repo.add(LIB)

        files = resolver.resolve(APP)

        assert [f.coordinate for f in files] == [APP, LIB]

    def test_system_dependency(
        self, tmp_path: Path, maven_repo: Any, resolver: DependencyResolver
    ) -> None:
        """Test system-scoped dependencies resolve to their systemPath."""
        system_jar = tmp_path / "tools.jar"
        system_jar.write_bytes(b"")
        maven_repo.add(
            APP,
            pom=pom_xml(
                "app",
                "1.0",
                dependency_xml(
                    "tools",
                    "1.8",
                    f"<scope>system</scope><systemPath>{system_jar}</systemPath>",
                ),
            ),
        )

        files = resolver.resolve(APP)

        assert files[1].path == system_jar.resolve()


class TestResolveFailures:
    """Tests for resolution failures."""

    def test_missing_primary(self, maven_repo: Any, resolver: DependencyResolver) -> None:
        """Test a missing primary artifact names the searched repositories."""
        with pytest.raises(ArtifactNotFoundError) as exc:
            resolver.resolve(APP)

        message = str(exc.value)
        assert message.startswith("Could not resolve artifact com.example:app:jar:1.0")
        assert f"files ({maven_repo.url})" in message

    def test_missing_dependency(self, maven_repo: Any, resolver: DependencyResolver) -> None:
        """Test a missing dependency fails the resolution phase."""
        maven_repo.add(APP, pom=pom_xml("app", "1.0", dependency_xml("lib", "2.0")))

        with pytest.raises(DependencyResolutionError, match="com.example:lib:jar:2.0"):
            resolver.resolve(APP)

    def test_bad_pom(self, maven_repo: Any, resolver: DependencyResolver) -> None:
        """Test an unusable POM fails the collection phase."""
        maven_repo.add(APP, pom="<project><broken></project>")

        with pytest.raises(DependencyCollectionError, match="Could not collect"):
            resolver.resolve(APP)

    def test_missing_parent(self, maven_repo: Any, resolver: DependencyResolver) -> None:
        """Test a missing parent POM fails the collection phase."""
        maven_repo.add(
            APP,
            pom=pom_xml(
                "app",
                "1.0",
                extra=(
                    "<parent><groupId>com.example</groupId>"
                    "<artifactId>gone</artifactId><version>1</version></parent>"
                ),
            ),
        )

        with pytest.raises(DependencyCollectionError, match="Parent POM"):
            resolver.resolve(APP)

    def test_checksum_failure_reported(
        self, maven_repo: Any, resolver: DependencyResolver
    ) -> None:
        """Test transfer errors become the not-found reason."""
        path = maven_repo.add(APP)
        path.with_name(path.name + ".sha1").write_text("0" * 40)

        with pytest.raises(ArtifactNotFoundError, match="checksum mismatch"):
            resolver.resolve(APP)

    def test_local_store_failure(
        self, maven_repo: Any, resolver: DependencyResolver, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test an unwritable local repository fails as not found."""
        maven_repo.add(APP, b"app-jar")

        def store(self: LocalRepository, coordinate: Coordinate, data: bytes) -> Path:
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(LocalRepository, "store", store)

        with pytest.raises(ArtifactNotFoundError, match="could not store in local repository"):
            resolver.resolve_artifact(APP)

    def test_unreadable_cached_pom(
        self,
        maven_repo: Any,
        resolver: DependencyResolver,
        isolated_home: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test a POM that cannot be read back fails the collection phase."""
        maven_repo.add(APP, b"app-jar", pom=pom_xml("app", "1.0"))
        local_root = (isolated_home / "repository").resolve()
        read_bytes = Path.read_bytes

        def failing_read_bytes(self: Path) -> bytes:
            if self.suffix == ".pom" and self.resolve().is_relative_to(local_root):
                raise PermissionError(13, "Permission denied", str(self))
            return read_bytes(self)

        monkeypatch.setattr(Path, "read_bytes", failing_read_bytes)

        with pytest.raises(DependencyCollectionError, match="Could not read POM"):
            resolver.resolve(APP)


class TestRepositories:
    """Tests for repository and proxy configuration."""

    def test_defaults_to_central(self, isolated_home: Path) -> None:
        """Test central is used when no profile is active."""
        resolver = DependencyResolver()

        assert [(r.id, r.url) for r in resolver.repositories] == [("central", CENTRAL.url)]
        assert resolver.repositories[0].proxy is None

    def test_proxy_applied_to_central(self, isolated_home: Path) -> None:
        """Test a matching proxy is attached to the default repository."""
        isolated_home.mkdir(parents=True)
        (isolated_home / "settings.yaml").write_text(
            "proxies:\n  - protocol: https\n    host: proxy.example.com\n    port: 3128\n"
        )

        proxy = DependencyResolver().repositories[0].proxy

        assert proxy is not None
        assert proxy.host == "proxy.example.com"

    def test_unsupported_layout_skipped(self, isolated_home: Path) -> None:
        """Test non-default layouts are ignored."""
        isolated_home.mkdir(parents=True)
        (isolated_home / "settings.yaml").write_text(
            "profiles:\n"
            "  - id: old\n"
            "    active_by_default: true\n"
            "    repositories:\n"
            "      - id: legacy\n"
            "        url: https://legacy.example.com/\n"
            "        layout: legacy\n"
        )

        assert [r.id for r in DependencyResolver().repositories] == ["central"]

    def test_explicit_home_and_user_settings(self, tmp_path: Path, maven_repo: Any) -> None:
        """Test the home and user settings file can be passed explicitly."""
        user_settings = tmp_path / "user.yaml"
        user_settings.write_text(
            "profiles:\n"
            "  - id: files\n"
            "    active_by_default: true\n"
            "    repositories:\n"
            "      - id: files\n"
            f"        url: {maven_repo.url}\n"
        )
        home = tmp_path / "explicit-home"
        maven_repo.add(APP)

        resolver = DependencyResolver(home=home, settings_path=user_settings)
        files = resolver.resolve(APP)

        assert resolver.local_repository.root == home / "repository"
        assert files[0].path.is_relative_to(home.resolve())


class TestConcurrentAccess:
    """Tests for lazily built resolver state shared across threads."""

    def test_settings_loaded_once(
        self, resolver: DependencyResolver, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test concurrent first access builds settings and client once."""
        calls: list[int] = []

        def slow_load_settings(*paths: Path | None) -> Any:
            calls.append(1)
            time.sleep(0.05)
            return load_settings(*paths)

        monkeypatch.setattr(
            "protogen_core.resolver.resolver.load_settings", slow_load_settings
        )
        workers = 8
        barrier = threading.Barrier(workers)
        clients: list[Any] = []
        repositories: list[Any] = []

        def worker() -> None:
            barrier.wait()
            clients.append(resolver.client)
            repositories.append(resolver.repositories)

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert len(calls) == 1
        assert len(clients) == workers
        assert len({id(client) for client in clients}) == 1
        assert all(r is repositories[0] for r in repositories)
