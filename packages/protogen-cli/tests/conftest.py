"""Shared test fixtures for protogen-cli tests.

Provides CliRunner fixtures, an isolated protogen home, and a file-based
Maven repository with a stub protoc published for this platform.
"""

from __future__ import annotations

import shlex
import sys
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
import structlog
from click.testing import CliRunner

from protogen_core import detect_classifier
from protogen_core.resolver import Coordinate

PROTOC_VERSION = "3.11.0"


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Send structlog output to stderr so it stays out of CLI output."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,  # Important for test isolation
    )


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click test runner.

    Returns:
        CliRunner instance for testing CLI commands.
    """
    return CliRunner()


@pytest.fixture
def isolated_runner(cli_runner: CliRunner) -> Generator[CliRunner, None, None]:
    """Create a Click test runner with an isolated filesystem.

    Yields:
        CliRunner instance with isolated filesystem.
    """
    with cli_runner.isolated_filesystem():
        yield cli_runner


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def protogen_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point PROTOGEN_HOME at a temp dir so tests never touch ~/.protogen."""
    home = tmp_path / "protogen-home"
    monkeypatch.setenv("PROTOGEN_HOME", str(home))
    monkeypatch.delenv("PROTOGEN_SETTINGS", raising=False)
    return home


@pytest.fixture
def file_repository(tmp_path: Path, protogen_home: Path) -> Path:
    """Create an empty file repository and activate it in <home>/settings.yaml."""
    repo = tmp_path / "remote-repo"
    repo.mkdir()
    protogen_home.mkdir(parents=True, exist_ok=True)
    (protogen_home / "settings.yaml").write_text(
        "profiles:\n"
        "  - id: local-files\n"
        "    active_by_default: true\n"
        "    repositories:\n"
        "      - id: files\n"
        f"        url: {repo.as_uri()}/\n"
    )
    return repo


@pytest.fixture
def publish_protoc(tmp_path: Path, file_repository: Path) -> Callable[..., Path]:
    """Publish a stub protoc that writes ``emit`` under its --java_out root."""

    def _publish(
        emit: dict[str, str],
        *,
        version: str = PROTOC_VERSION,
        exit_code: int = 0,
        output_lines: tuple[str, ...] = (),
    ) -> Path:
        lines = [
            "#!/bin/sh",
            'out=""',
            'for arg in "$@"; do',
            '  case "$arg" in',
            '    --java_out=*) out="${arg#--java_out=}" ;;',
            "  esac",
            "done",
        ]
        lines.extend(f"echo {shlex.quote(line)}" for line in output_lines)
        for relative, content in emit.items():
            target = f'"$out"/{shlex.quote(relative)}'
            lines.append(f'mkdir -p "$(dirname {target})"')
            lines.append(f"printf '%s\\n' {shlex.quote(content)} > {target}")
        lines.append(f"exit {exit_code}")

        coordinate = Coordinate(
            "com.google.protobuf", "protoc", version, "exe", detect_classifier()
        )
        path = file_repository / coordinate.relative_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(lines) + "\n")
        return path

    return _publish


@pytest.fixture
def project_dir(tmp_path: Path, fixtures_dir: Path) -> Path:
    """Copy the sample project (manifest and protos) into tmp_path."""
    project = tmp_path / "project"
    for source in (fixtures_dir / "project").rglob("*"):
        if source.is_file():
            target = project / source.relative_to(fixtures_dir / "project")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(source.read_bytes())
    return project

