"""Shared pytest fixtures for protogen-core tests.

This module provides common fixtures used across unit and integration tests:
in-memory collaborators (lookup, sink, reporter), POSIX stub tools that
imitate protoc, and a file-based Maven repository builder.
"""

from __future__ import annotations

import hashlib
import io
import shlex
import sys
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO

import pytest
import structlog

from protogen_core.errors import FileLookupError
from protogen_core.resolver.coordinates import Coordinate


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Configure structlog to output to stdout for test capture."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,  # Important for test isolation
    )


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point PROTOGEN_HOME at a temp dir so tests never touch ~/.protogen."""
    home = tmp_path / "protogen-home"
    monkeypatch.setenv("PROTOGEN_HOME", str(home))
    monkeypatch.delenv("PROTOGEN_SETTINGS", raising=False)
    return home


class RecordingReporter:
    """Reporter collecting diagnostics in lists."""

    def __init__(self) -> None:
        self.errors: list[tuple[str | None, str]] = []
        self.warnings: list[tuple[str | None, str]] = []
        self._lock = threading.Lock()

    def error(self, message: str, *, unit: str | None = None) -> None:
        with self._lock:
            self.errors.append((unit, message))

    def warning(self, message: str, *, unit: str | None = None) -> None:
        with self._lock:
            self.warnings.append((unit, message))

    @property
    def error_messages(self) -> list[str]:
        return [message for _, message in self.errors]

    @property
    def warning_messages(self) -> list[str]:
        return [message for _, message in self.warnings]


class MemorySink:
    """Output sink keeping generated sources in memory."""

    def __init__(self) -> None:
        self.artifacts: dict[str, bytes] = {}

    @contextmanager
    def create_source_artifact(self, qualified_name: str) -> Iterator[BinaryIO]:
        buffer = io.BytesIO()
        yield buffer
        self.artifacts[qualified_name] = buffer.getvalue()


class DictLookup:
    """File lookup backed by a dict of relative path -> bytes."""

    def __init__(self, files: dict[str, bytes]) -> None:
        self.files = files
        self.requested: list[str] = []

    def lookup(self, relative_path: str) -> bytes:
        self.requested.append(relative_path)
        try:
            return self.files[relative_path]
        except KeyError:
            raise FileLookupError(relative_path) from None


class StaticLocator:
    """Tool source returning a fixed path, or raising a fixed error."""

    def __init__(self, path: Path | None = None, error: Exception | None = None) -> None:
        self.path = path
        self.error = error
        self.versions: list[str] = []

    def locate(self, version: str) -> Path:
        self.versions.append(version)
        if self.error is not None:
            raise self.error
        assert self.path is not None
        return self.path


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def dict_lookup() -> Callable[[dict[str, bytes]], DictLookup]:
    return DictLookup


@pytest.fixture
def static_locator() -> Callable[..., StaticLocator]:
    return StaticLocator


@pytest.fixture
def stub_tool(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a POSIX shell script that imitates protoc.

    The script parses ``--proto_path=`` and ``--java_out=``, copies each
    entry of ``emit`` (relative path -> content) under the output root,
    prints ``output_lines``, optionally records its arguments and the staged
    file listing, sleeps, and exits with ``exit_code``.
    """
    counter = iter(range(1_000_000))

    def _create(
        emit: dict[str, str] | None = None,
        *,
        exit_code: int = 0,
        output_lines: tuple[str, ...] = (),
        sleep_seconds: float | None = None,
        record_dir: Path | None = None,
        path: Path | None = None,
    ) -> Path:
        index = next(counter)
        templates = tmp_path / f"stub-templates-{index}"
        templates.mkdir()

        lines = [
            "#!/bin/sh",
            'staging=""',
            'out=""',
            'for arg in "$@"; do',
            '  case "$arg" in',
            '    --proto_path=*) staging="${arg#--proto_path=}" ;;',
            '    --java_out=*) out="${arg#--java_out=}" ;;',
            "  esac",
            "done",
        ]
        if record_dir is not None:
            record_dir.mkdir(parents=True, exist_ok=True)
            args_file = shlex.quote(str(record_dir / "args.txt"))
            listing_file = shlex.quote(str(record_dir / "staged.txt"))
            lines.append(f'printf "%s\\n" "$@" > {args_file}')
            lines.append(f'(cd "$staging" && find . -type f | sort) > {listing_file}')
        for line in output_lines:
            lines.append(f"echo {shlex.quote(line)}")
        for i, (relative, content) in enumerate((emit or {}).items()):
            template = templates / f"{i}.src"
            template.write_text(content)
            target = f'"$out"/{shlex.quote(relative)}'
            lines.append(f"mkdir -p \"$(dirname {target})\"")
            lines.append(f"cp {shlex.quote(str(template))} {target}")
        if sleep_seconds is not None:
            lines.append(f"sleep {sleep_seconds}")
        lines.append(f"exit {exit_code}")

        script = path or tmp_path / f"stub-protoc-{index}"
        script.parent.mkdir(parents=True, exist_ok=True)
        script.write_text("\n".join(lines) + "\n")
        script.chmod(0o755)
        return script

    return _create


class MavenRepoBuilder:
    """Builds a Maven2 layout repository on disk."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    @property
    def url(self) -> str:
        return self.root.as_uri() + "/"

    def add(
        self,
        coordinate: Coordinate,
        data: bytes = b"artifact",
        *,
        pom: str | None = None,
        sha1: bool = True,
    ) -> Path:
        path = self.root / coordinate.relative_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        if sha1:
            path.with_name(path.name + ".sha1").write_text(hashlib.sha1(data).hexdigest())
        if pom is not None:
            self.add_pom(coordinate, pom)
        return path

    def add_pom(self, coordinate: Coordinate, pom: str) -> Path:
        path = self.root / coordinate.pom().relative_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(pom)
        return path


@pytest.fixture
def maven_repo(tmp_path: Path) -> MavenRepoBuilder:
    return MavenRepoBuilder(tmp_path / "remote-repo")


@pytest.fixture
def repo_settings(isolated_home: Path, maven_repo: MavenRepoBuilder) -> Path:
    """Write <home>/settings.yaml activating a profile with the file repository."""
    isolated_home.mkdir(parents=True, exist_ok=True)
    settings = isolated_home / "settings.yaml"
    settings.write_text(
        "profiles:\n"
        "  - id: local-files\n"
        "    repositories:\n"
        "      - id: files\n"
        f"        url: {maven_repo.url}\n"
        "active_profiles: [local-files]\n"
    )
    return settings
