"""Exception hierarchy for protogen-core.

This module defines the exception classes used throughout protogen:
- ProtogenError: Base exception for every per-unit or per-resolution failure
- ArtifactResolutionError and subclasses: Repository and dependency failures
- Tool*/Staging/Output errors: Failures while running one unit of work
- SkipUnit: Control-flow signal raised once a unit failure has been reported

Design:
- User-facing messages are safe to display
- Technical details (paths, causes) are logged internally via structlog
- SkipUnit is intentionally outside the ProtogenError tree so a driving loop
  can tell "already reported, move on" apart from unexpected errors
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger(__name__)


class ProtogenError(Exception):
    """Base exception for protogen.

    All taxonomy errors inherit from this class. User-facing messages
    are safe to display; technical details are logged internally.

    Args:
        user_message: Safe message to display to the user.
        internal_details: Optional technical details for logging. This is
            logged internally but never part of the message.

    Example:
        >>> raise ProtogenError(
        ...     "Could not resolve protoc",
        ...     internal_details="GET https://repo/... returned 503",
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        """Initialize ProtogenError with user message and optional internal details.

        Args:
            user_message: Safe message to display to the user.
            internal_details: Technical details for internal logging only.
        """
        super().__init__(user_message)
        self.user_message = user_message

        if internal_details:
            logger.error(
                "protogen_error",
                error_type=self.__class__.__name__,
                user_message=user_message,
                internal_details=internal_details,
            )


class ConfigurationError(ProtogenError):
    """Raised when a settings or config file cannot be read or parsed.

    Settings errors are not fatal for resolution: the loader logs them as
    warnings and falls back to the built-in default repositories.

    Attributes:
        file_path: Path to the offending file (if known).
    """

    def __init__(
        self,
        user_message: str,
        *,
        file_path: str | None = None,
        internal_details: str | None = None,
    ) -> None:
        """Initialize ConfigurationError.

        Args:
            user_message: Safe message to display to the user.
            file_path: Path to the configuration file (optional).
            internal_details: Technical details for internal logging only.
        """
        full_message = f"{user_message} (in {file_path})" if file_path else user_message
        super().__init__(full_message, internal_details=internal_details)
        self.file_path = file_path


class ArtifactResolutionError(ProtogenError):
    """Base class for failures while resolving artifacts from repositories."""

    pass


class ArtifactNotFoundError(ArtifactResolutionError):
    """The primary artifact could not be located in any repository.

    Attributes:
        coordinate: String form of the requested coordinate.
    """

    def __init__(self, coordinate: str, reason: str = "") -> None:
        message = f"Could not resolve artifact {coordinate}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.coordinate = coordinate


class DependencyCollectionError(ArtifactResolutionError):
    """The dependency graph below an artifact could not be collected."""

    def __init__(self, coordinate: str, reason: str) -> None:
        super().__init__(f"Could not collect artifact dependencies for {coordinate}: {reason}")
        self.coordinate = coordinate


class DependencyResolutionError(ArtifactResolutionError):
    """One or more nodes of a collected graph could not be resolved to files."""

    def __init__(self, coordinate: str, reason: str) -> None:
        super().__init__(f"Could not resolve artifact dependencies for {coordinate}: {reason}")
        self.coordinate = coordinate


class ArtifactTransferError(ArtifactResolutionError):
    """A transport-level failure talking to one repository.

    Raised for connection problems, unexpected HTTP statuses and checksum
    mismatches. Transient variants are retried before surfacing.

    Attributes:
        url: The URL that failed.
        status_code: HTTP status code, when there was a response.
        transient: Whether another attempt may succeed.
    """

    def __init__(
        self,
        url: str,
        reason: str,
        *,
        status_code: int | None = None,
        transient: bool = False,
    ) -> None:
        super().__init__(f"Transfer of {url} failed: {reason}")
        self.url = url
        self.status_code = status_code
        self.transient = transient


class ToolNotFoundError(ArtifactResolutionError):
    """A tool version did not resolve to exactly one executable artifact."""

    pass


class ToolNotExecutableError(ProtogenError):
    """The resolved tool file could not be marked executable.

    Attributes:
        path: Local path of the tool binary.
    """

    def __init__(self, path: str, reason: str = "") -> None:
        message = f"Failed to make file executable: {path}"
        super().__init__(message, internal_details=reason or None)
        self.path = path


class StagingError(ProtogenError):
    """Creating the staging area or copying inputs into it failed."""

    pass


class FileLookupError(StagingError):
    """A logical input or include path was not found on any search root.

    Attributes:
        relative_path: The logical path that was requested.
    """

    def __init__(self, relative_path: str, searched: list[str] | None = None) -> None:
        message = f"Could not open file {relative_path}"
        if searched:
            message = f"{message} (searched: {', '.join(searched)})"
        super().__init__(message)
        self.relative_path = relative_path


class ToolStartError(ProtogenError):
    """The compiler subprocess could not be started."""

    pass


class ToolTimeoutError(ProtogenError):
    """The compiler subprocess did not exit within the configured bound.

    Attributes:
        timeout_seconds: The bound that elapsed.
    """

    def __init__(self, timeout_seconds: float, tool: str = "protoc") -> None:
        super().__init__(f"Timed out after {timeout_seconds:g}s while waiting for {tool}")
        self.timeout_seconds = timeout_seconds


class ToolExitError(ProtogenError):
    """The compiler subprocess exited with a nonzero code.

    Attributes:
        exit_code: The process exit code.
    """

    def __init__(self, exit_code: int, tool: str = "protoc") -> None:
        super().__init__(f"Failed to run {tool}, exit code {exit_code}")
        self.exit_code = exit_code


class OutputCopyError(ProtogenError):
    """Walking or copying generated output failed."""

    pass


class PackageMismatchError(ProtogenError):
    """A generated file declares a package other than the unit's target.

    Attributes:
        declared_package: Package derived from the generated file's path.
        target_package: Namespace the unit was asked to generate into.
    """

    def __init__(self, declared_package: str, target_package: str) -> None:
        super().__init__(
            "Generated class package does not match annotated package: "
            f"{declared_package} != {target_package}"
        )
        self.declared_package = declared_package
        self.target_package = target_package


class SkipUnit(Exception):
    """Signal that a unit of work failed and its failure was already reported.

    Not a ProtogenError: callers catch this to continue with the next unit,
    while anything else escaping a unit is treated as a defect.

    Attributes:
        unit_name: Name of the unit that was skipped.
        error: The typed error that caused the skip.
    """

    def __init__(self, unit_name: str, error: BaseException) -> None:
        super().__init__(f"Skipping unit '{unit_name}' due to errors")
        self.unit_name = unit_name
        self.error = error
