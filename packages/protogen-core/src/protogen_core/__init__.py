"""protogen-core: resolve, run and relocate output of a schema compiler.

This package provides:
- classify / detect_classifier: Platform classifier normalization
- DependencyResolver: Two-phase artifact and dependency resolution
- ToolLocator: Version -> executable path, memoized single-flight per version
- CompilationOrchestrator: Stage, run, validate and relocate one unit of work
- run_units: Batch driving loop with per-unit failure isolation
"""

from __future__ import annotations

__version__ = "0.1.0"

from protogen_core.cache import SingleFlightCache
from protogen_core.classifier import classify, detect_classifier
from protogen_core.config import GatewayConfig, RetryConfig, ToolSpec, get_home
from protogen_core.errors import (
    ArtifactNotFoundError,
    ArtifactResolutionError,
    ArtifactTransferError,
    ConfigurationError,
    DependencyCollectionError,
    DependencyResolutionError,
    FileLookupError,
    OutputCopyError,
    PackageMismatchError,
    ProtogenError,
    SkipUnit,
    StagingError,
    ToolExitError,
    ToolNotExecutableError,
    ToolNotFoundError,
    ToolStartError,
    ToolTimeoutError,
)
from protogen_core.io import DirectoryOutputSink, SearchPathLookup
from protogen_core.locator import ToolLocator
from protogen_core.orchestrator import CompilationOrchestrator
from protogen_core.resolver import Coordinate, DependencyResolver, ResolvedFile
from protogen_core.runner import BatchResult, UnitResult, UnitStatus, run_units
from protogen_core.unit import (
    FileLookup,
    LoggingReporter,
    OutputSink,
    Reporter,
    UnitOfWork,
)

__all__ = [
    "__version__",
    # Platform
    "classify",
    "detect_classifier",
    # Configuration
    "GatewayConfig",
    "RetryConfig",
    "ToolSpec",
    "get_home",
    # Resolution
    "Coordinate",
    "DependencyResolver",
    "ResolvedFile",
    "SingleFlightCache",
    "ToolLocator",
    # Units of work
    "CompilationOrchestrator",
    "DirectoryOutputSink",
    "FileLookup",
    "LoggingReporter",
    "OutputSink",
    "Reporter",
    "SearchPathLookup",
    "UnitOfWork",
    "BatchResult",
    "UnitResult",
    "UnitStatus",
    "run_units",
    # Errors
    "ArtifactNotFoundError",
    "ArtifactResolutionError",
    "ArtifactTransferError",
    "ConfigurationError",
    "DependencyCollectionError",
    "DependencyResolutionError",
    "FileLookupError",
    "OutputCopyError",
    "PackageMismatchError",
    "ProtogenError",
    "SkipUnit",
    "StagingError",
    "ToolExitError",
    "ToolNotExecutableError",
    "ToolNotFoundError",
    "ToolStartError",
    "ToolTimeoutError",
]
