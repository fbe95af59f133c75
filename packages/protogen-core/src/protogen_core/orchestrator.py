"""Compilation orchestrator: runs one unit of work end to end.

For each unit the orchestrator:
1. Locates the tool executable for the unit's version
2. Stages includes and inputs into a fresh staging directory
3. Runs the tool with output drained on a separate thread, under a timeout
4. Walks the output directory for generated sources
5. Checks every generated file belongs to the target package
6. Copies the files into the unit's output sink

Any failure is reported through the Reporter and converted into SkipUnit,
so a driving loop can continue with the next unit.
"""

from __future__ import annotations

import shutil
import subprocess
import threading
from pathlib import Path
from typing import IO, Protocol

import structlog

from protogen_core.config import GatewayConfig
from protogen_core.errors import (
    OutputCopyError,
    PackageMismatchError,
    ProtogenError,
    SkipUnit,
    StagingError,
    ToolExitError,
    ToolNotFoundError,
    ToolStartError,
    ToolTimeoutError,
)
from protogen_core.locator import ToolLocator
from protogen_core.observability import span
from protogen_core.staging import GeneratedFile, WorkDirectories, collect_generated
from protogen_core.unit import LoggingReporter, Reporter, UnitOfWork

logger = structlog.get_logger(__name__)

# Bound on waiting for the drain thread once the process has exited
DRAIN_JOIN_SECONDS = 5.0


class ToolSource(Protocol):
    def locate(self, version: str) -> Path: ...


class CompilationOrchestrator:
    """Executes units of work against a located code generator.

    Args:
        locator: Source of tool executables. Defaults to the process-wide
            ToolLocator.
        config: Gateway configuration.
        reporter: Diagnostic channel. Defaults to a LoggingReporter.

    Example:
        >>> orchestrator = CompilationOrchestrator(reporter=ConsoleReporter())
        >>> try:
        ...     names = orchestrator.run(unit)
        ... except SkipUnit:
        ...     pass  # already reported
    """

    def __init__(
        self,
        locator: ToolSource | None = None,
        *,
        config: GatewayConfig | None = None,
        reporter: Reporter | None = None,
    ) -> None:
        self.config = config or GatewayConfig()
        self.locator: ToolSource = locator or ToolLocator.get_instance()
        self.reporter: Reporter = reporter or LoggingReporter()
        self._log = logger.bind(component="compilation_orchestrator")

    @property
    def tool_name(self) -> str:
        return self.config.tool.artifact_id

    def run(self, unit: UnitOfWork) -> list[str]:
        """Run one unit of work.

        Args:
            unit: The unit to generate.

        Returns:
            Qualified names of the generated sources written to the sink.

        Raises:
            SkipUnit: If the unit failed; the failure was already reported.
        """
        with span(
            "compile_unit",
            attributes={
                "unit.name": unit.name,
                "tool.version": unit.version,
                "unit.package": unit.target_package,
            },
        ):
            try:
                return self._run(unit)
            except ProtogenError as e:
                raise self._fail(unit, e) from e

    def build_command(
        self,
        tool: Path,
        staging_dir: Path,
        output_dir: Path,
        staged_inputs: list[Path],
    ) -> list[str]:
        """Build the tool invocation.

        Only inputs are generation targets; includes are reachable through
        the staging root flag.
        """
        return [
            str(tool),
            f"{self.config.include_flag}{staging_dir}",
            f"{self.config.output_flag}{output_dir}",
            *(str(path) for path in staged_inputs),
        ]

    def _run(self, unit: UnitOfWork) -> list[str]:
        tool = self._locate(unit)

        with WorkDirectories(
            self.config.staging_prefix,
            self.config.output_prefix,
            keep=self.config.keep_work_dirs,
        ) as dirs:
            for include in unit.includes:
                self._stage(unit, dirs, include)
            staged_inputs = [self._stage(unit, dirs, path) for path in unit.inputs]

            command = self.build_command(tool, dirs.staging_dir, dirs.output_dir, staged_inputs)
            self._invoke(unit, command)

            generated = collect_generated(dirs.output_dir, self.config.generated_suffix)
            self._validate(unit, generated)
            return self._emit(unit, generated, dirs.output_dir)

    def _locate(self, unit: UnitOfWork) -> Path:
        try:
            return self.locator.locate(unit.version)
        except ProtogenError as e:
            raise ToolNotFoundError(f"Could not find {self.tool_name} version {unit.version}") from e

    def _stage(self, unit: UnitOfWork, dirs: WorkDirectories, relative_path: str) -> Path:
        try:
            data = unit.lookup.lookup(relative_path)
        except OSError as e:
            raise StagingError(f"Could not open file {relative_path}") from e
        return dirs.stage(relative_path, data)

    def _invoke(self, unit: UnitOfWork, command: list[str]) -> None:
        self._log.debug("tool_invoked", unit=unit.name, command=command)
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            raise ToolStartError(f"Could not start {self.tool_name}") from e

        assert process.stdout is not None  # Type narrowing for mypy
        drain = threading.Thread(
            target=self._drain,
            args=(process.stdout, unit.name),
            name=f"{self.tool_name}-output-reporter",
            daemon=True,
        )
        drain.start()

        try:
            exit_code = process.wait(timeout=self.config.timeout_seconds)
        except subprocess.TimeoutExpired:
            # Abandon the process: kill it but do not wait on it or the drain thread.
            process.kill()
            raise ToolTimeoutError(self.config.timeout_seconds, self.tool_name) from None

        drain.join(DRAIN_JOIN_SECONDS)
        if exit_code != 0:
            raise ToolExitError(exit_code, self.tool_name)

    def _drain(self, stream: IO[bytes], unit_name: str) -> None:
        prefix = self.config.diagnostic_prefix
        try:
            with stream:
                for raw in iter(stream.readline, b""):
                    line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                    self.reporter.warning(prefix + line, unit=unit_name)
        except (OSError, ValueError) as e:
            self._log.debug("tool_output_closed", unit=unit_name, error=str(e))

    def _validate(self, unit: UnitOfWork, generated: list[GeneratedFile]) -> None:
        for file in generated:
            if file.declared_package != unit.target_package:
                raise PackageMismatchError(file.declared_package, unit.target_package)

    def _emit(
        self,
        unit: UnitOfWork,
        generated: list[GeneratedFile],
        output_dir: Path,
    ) -> list[str]:
        names = []
        for file in generated:
            try:
                with (
                    open(file.path, "rb") as source,
                    unit.sink.create_source_artifact(file.qualified_name) as target,
                ):
                    shutil.copyfileobj(source, target)
            except OSError as e:
                raise OutputCopyError(f"Could not copy files from {output_dir}") from e
            names.append(file.qualified_name)

        self._log.info("generated_files_copied", unit=unit.name, count=len(names))
        return names

    def _fail(self, unit: UnitOfWork, error: ProtogenError) -> SkipUnit:
        message = str(error)
        cause = error.__cause__
        if cause is not None and str(cause) and str(cause) not in message:
            message = f"{message}: {cause}"

        self._log.error(
            "unit_failed",
            unit=unit.name,
            error_type=type(error).__name__,
            error=message,
            exc_info=cause is not None,
        )
        self.reporter.error(message, unit=unit.name)
        return SkipUnit(unit.name, error)
