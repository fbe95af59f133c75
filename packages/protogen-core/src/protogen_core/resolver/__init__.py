"""Artifact and dependency resolution against Maven2 repositories."""

from __future__ import annotations

from protogen_core.resolver.coordinates import (
    CENTRAL,
    Coordinate,
    ProxyDescriptor,
    RepositoryDescriptor,
    ResolvedFile,
)
from protogen_core.resolver.graph import CLASSPATH_SCOPES
from protogen_core.resolver.proxy import ProxySelector
from protogen_core.resolver.remote import MavenRepositoryClient
from protogen_core.resolver.resolver import DependencyResolver
from protogen_core.resolver.settings import (
    ProfileConfig,
    ProxyConfig,
    RepositoryConfig,
    RepositorySettings,
    load_settings,
)

__all__ = [
    "CENTRAL",
    "CLASSPATH_SCOPES",
    "Coordinate",
    "DependencyResolver",
    "MavenRepositoryClient",
    "ProfileConfig",
    "ProxyConfig",
    "ProxyDescriptor",
    "ProxySelector",
    "RepositoryConfig",
    "RepositoryDescriptor",
    "RepositorySettings",
    "ResolvedFile",
    "load_settings",
]
