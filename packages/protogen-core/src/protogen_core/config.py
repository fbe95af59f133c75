"""Pydantic configuration models for protogen-core.

This module provides:
- ToolSpec: Coordinate template for the code generator binary
- RetryConfig: Retry policy for remote repository transfers
- GatewayConfig: Top-level gateway configuration, loadable from YAML
- Home directory resolution (PROTOGEN_HOME override)
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Environment variable overriding the local tool-cache home directory
HOME_ENV_VAR = "PROTOGEN_HOME"

# Environment variable pointing at an optional user settings file
SETTINGS_ENV_VAR = "PROTOGEN_SETTINGS"

# Home directory name relative to the user's home
DEFAULT_HOME_DIR_NAME = ".protogen"

# Local repository cache directory name under the home directory
REPOSITORY_DIR_NAME = "repository"

# Global settings file name under the home directory
SETTINGS_FILE_NAME = "settings.yaml"


def get_home() -> Path:
    """Get the protogen home directory.

    Returns:
        ``$PROTOGEN_HOME`` when set and non-empty, else ``~/.protogen``.
    """
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / DEFAULT_HOME_DIR_NAME


class ToolSpec(BaseModel):
    """Coordinate template for the code generator executable.

    The version and platform classifier are filled in per request; the
    remaining parts of the coordinate are fixed here.

    Attributes:
        group_id: Artifact group.
        artifact_id: Artifact name.
        packaging: Packaging/extension tag for executable artifacts.
        scope: Dependency scope used when resolving the tool.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    group_id: str = Field(
        default="com.google.protobuf",
        min_length=1,
        description="Artifact group of the generator binary",
    )
    artifact_id: str = Field(
        default="protoc",
        min_length=1,
        description="Artifact name of the generator binary",
    )
    packaging: str = Field(
        default="exe",
        min_length=1,
        description="Packaging tag of executable artifacts",
    )
    scope: str = Field(
        default="compile",
        min_length=1,
        description="Scope used when resolving the tool",
    )


class RetryConfig(BaseModel):
    """Retry policy for remote repository transfers.

    Implements exponential backoff with jitter for transient failures.

    Attributes:
        max_attempts: Maximum attempts per URL (1-10, default 3).
        initial_wait_seconds: Initial backoff wait (default 0.5).
        max_wait_seconds: Maximum backoff cap (default 10.0).
        jitter_seconds: Random jitter range (default 0.5).

    Example:
        >>> config = RetryConfig(max_attempts=5)
        >>> config.max_attempts
        5
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum number of attempts per URL",
    )
    initial_wait_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=30.0,
        description="Initial backoff wait time in seconds",
    )
    max_wait_seconds: float = Field(
        default=10.0,
        ge=0.0,
        le=300.0,
        description="Maximum backoff wait time in seconds",
    )
    jitter_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=10.0,
        description="Random jitter range in seconds",
    )

    @field_validator("max_wait_seconds")
    @classmethod
    def max_wait_must_exceed_initial(cls, v: float, info: object) -> float:
        """Validate that max_wait_seconds >= initial_wait_seconds."""
        data = getattr(info, "data", {})
        initial = data.get("initial_wait_seconds", 0.5)
        if v < initial:
            msg = f"max_wait_seconds ({v}) must be >= initial_wait_seconds ({initial})"
            raise ValueError(msg)
        return v


class GatewayConfig(BaseModel):
    """Top-level configuration for tool resolution and compilation.

    Attributes:
        tool: Coordinate template for the generator binary.
        timeout_seconds: Bound on waiting for the generator to exit.
        include_flag: Flag prefix joined with the staging directory.
        output_flag: Flag prefix joined with the output directory.
        generated_suffix: Extension of generated source files.
        diagnostic_prefix: Prefix prepended to every line of tool output.
        staging_prefix: Name prefix for staging directories.
        output_prefix: Name prefix for output directories.
        keep_work_dirs: Keep staging/output directories after a unit.
        verify_checksums: Verify downloaded files against .sha1 sidecars.
        http_timeout_seconds: Per-request timeout for remote repositories.
        retry: Retry policy for remote repository transfers.

    Example:
        >>> config = GatewayConfig(timeout_seconds=30)
        >>> config.tool.artifact_id
        'protoc'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    tool: ToolSpec = Field(
        default_factory=ToolSpec,
        description="Generator binary coordinate template",
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait for the generator process to exit",
    )
    include_flag: str = Field(
        default="--proto_path=",
        description="Flag prefix naming the staging root",
    )
    output_flag: str = Field(
        default="--java_out=",
        description="Flag prefix naming the output root",
    )
    generated_suffix: str = Field(
        default=".java",
        pattern=r"^\.[A-Za-z0-9_]+$",
        description="Extension of generated source files",
    )
    diagnostic_prefix: str = Field(
        default="protoc: ",
        description="Prefix for forwarded tool output lines",
    )
    staging_prefix: str = Field(
        default="protoc-staging-",
        description="Temporary staging directory name prefix",
    )
    output_prefix: str = Field(
        default="protoc-output-",
        description="Temporary output directory name prefix",
    )
    keep_work_dirs: bool = Field(
        default=False,
        description="Keep staging/output directories after each unit",
    )
    verify_checksums: bool = Field(
        default=True,
        description="Verify downloads against .sha1 sidecar files when present",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Per-request timeout for remote repositories",
    )
    retry: RetryConfig = Field(
        default_factory=RetryConfig,
        description="Retry policy for remote repository transfers",
    )

    @classmethod
    def from_yaml(cls, path: Path) -> GatewayConfig:
        """Load GatewayConfig from a YAML file.

        Args:
            path: Path to the YAML file.

        Returns:
            Parsed and validated GatewayConfig. An empty file yields defaults.

        Raises:
            FileNotFoundError: If file doesn't exist.
            pydantic.ValidationError: If validation fails.
        """
        if not path.exists():
            raise FileNotFoundError(f"Gateway config not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f)

        if data is None:
            data = {}

        return cls.model_validate(data)
