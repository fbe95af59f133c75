"""Unit tests for work directories and generated output discovery."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path, PurePosixPath

import pytest

from protogen_core.errors import StagingError
from protogen_core.staging import (
    WorkDirectories,
    collect_generated,
    package_of,
    qualified_name_for,
)


class TestNames:
    """Tests for qualified name helpers."""

    def test_qualified_name_for(self) -> None:
        """Test path separators become dots and the suffix is dropped."""
        assert qualified_name_for(PurePosixPath("com/example/pkg/Msg.java"), ".java") == (
            "com.example.pkg.Msg"
        )

    def test_qualified_name_at_root(self) -> None:
        """Test a file at the output root has no package."""
        assert qualified_name_for(PurePosixPath("Msg.java"), ".java") == "Msg"

    def test_package_of(self) -> None:
        """Test the package is everything before the last dot."""
        assert package_of("com.example.pkg.Msg") == "com.example.pkg"
        assert package_of("Msg") == ""


class TestCollectGenerated:
    """Tests for collect_generated()."""

    def test_finds_suffix_files_sorted(self, tmp_path: Path) -> None:
        """Test only files with the suffix are collected, in path order."""
        (tmp_path / "com/example/pkg").mkdir(parents=True)
        (tmp_path / "com/example/pkg/B.java").write_text("b")
        (tmp_path / "com/example/pkg/A.java").write_text("a")
        (tmp_path / "com/example/pkg/notes.txt").write_text("ignored")

        generated = collect_generated(tmp_path, ".java")

        assert [g.qualified_name for g in generated] == [
            "com.example.pkg.A",
            "com.example.pkg.B",
        ]
        assert {g.declared_package for g in generated} == {"com.example.pkg"}

    def test_empty_directory(self, tmp_path: Path) -> None:
        """Test an empty output directory yields no files."""
        assert collect_generated(tmp_path, ".java") == []


class TestWorkDirectories:
    """Tests for WorkDirectories."""

    def test_creates_distinct_directories(self) -> None:
        """Test staging and output directories are created with their prefixes."""
        with WorkDirectories("test-staging-", "test-output-") as dirs:
            assert dirs.staging_dir.is_dir()
            assert dirs.output_dir.is_dir()
            assert dirs.staging_dir != dirs.output_dir
            assert dirs.staging_dir.name.startswith("test-staging-")
            assert dirs.output_dir.name.startswith("test-output-")

    def test_removed_on_exit(self) -> None:
        """Test both directories are removed when the block exits."""
        with WorkDirectories("s-", "o-") as dirs:
            dirs.stage("pkg/a.proto", b"data")
            staging, output = dirs.staging_dir, dirs.output_dir

        assert not staging.exists()
        assert not output.exists()

    def test_removed_on_error(self) -> None:
        """Test directories are removed when the block raises."""
        with pytest.raises(RuntimeError):
            with WorkDirectories("s-", "o-") as dirs:
                staging = dirs.staging_dir
                raise RuntimeError("boom")

        assert not staging.exists()

    def test_keep(self) -> None:
        """Test keep=True leaves the directories in place."""
        with WorkDirectories("s-", "o-", keep=True) as dirs:
            staging, output = dirs.staging_dir, dirs.output_dir
        try:
            assert staging.is_dir()
            assert output.is_dir()
        finally:
            shutil.rmtree(staging, ignore_errors=True)
            shutil.rmtree(output, ignore_errors=True)

    def test_stage_preserves_relative_path(self) -> None:
        """Test files are staged at their logical paths, overwriting duplicates."""
        with WorkDirectories("s-", "o-") as dirs:
            first = dirs.stage("pkg/sub/a.proto", b"one")
            second = dirs.stage("pkg/sub/a.proto", b"two")

            assert first == second == dirs.staging_dir / "pkg" / "sub" / "a.proto"
            assert first.read_bytes() == b"two"

    @pytest.mark.parametrize("bad", ["../escape.proto", "/abs.proto", ""])
    def test_stage_rejects_unsafe_paths(self, bad: str) -> None:
        """Test staging outside the staging directory is refused."""
        with WorkDirectories("s-", "o-") as dirs:
            with pytest.raises(StagingError, match="Invalid path"):
                dirs.stage(bad, b"x")

    def test_properties_require_create(self) -> None:
        """Test directories are unavailable before create()."""
        dirs = WorkDirectories("s-", "o-")

        with pytest.raises(RuntimeError):
            _ = dirs.staging_dir
        with pytest.raises(RuntimeError):
            _ = dirs.output_dir

    def test_create_failure(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a mkdtemp failure is reported as StagingError."""

        def fail(*args: object, **kwargs: object) -> str:
            raise OSError("no space left")

        monkeypatch.setattr("protogen_core.staging.tempfile.mkdtemp", fail)

        with pytest.raises(StagingError, match="Could not create temporary directory"):
            WorkDirectories("s-", "o-").create()

    def test_output_dir_failure_removes_staging_dir(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test the staging directory is removed when the output directory fails."""
        mkdtemp = tempfile.mkdtemp
        created: list[Path] = []

        def second_fails(*args: object, **kwargs: object) -> str:
            if created:
                raise OSError("no space left")
            path = mkdtemp(*args, **kwargs)  # type: ignore[call-overload]
            created.append(Path(path))
            return path

        monkeypatch.setattr("protogen_core.staging.tempfile.mkdtemp", second_fails)
        dirs = WorkDirectories("s-", "o-")

        with pytest.raises(StagingError):
            dirs.create()

        assert len(created) == 1
        assert not created[0].exists()
        with pytest.raises(RuntimeError):
            _ = dirs.staging_dir
