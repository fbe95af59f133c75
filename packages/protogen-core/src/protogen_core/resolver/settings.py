"""Repository settings: profiles, active profiles and proxies.

Settings are layered: built-in defaults, then the global settings file in
the protogen home, then an optional user settings file. A missing file is
skipped; a file that cannot be read or validated is logged as a warning and
ignored, so resolution falls back to the default repositories.

Example settings.yaml:

    profiles:
      - id: corporate
        repositories:
          - id: nexus
            url: https://nexus.example.com/repository/maven-public/
    active_profiles: [corporate]
    proxies:
      - id: office
        protocol: https
        host: proxy.example.com
        port: 3128
        non_proxy_hosts: "localhost|*.example.com"
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic import ValidationError as PydanticValidationError

from protogen_core.config import SETTINGS_ENV_VAR
from protogen_core.errors import ConfigurationError

logger = structlog.get_logger(__name__)


class RepositoryConfig(BaseModel):
    """A remote repository declared in a profile."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1, description="Repository id")
    url: str = Field(..., min_length=1, description="Repository base URL")
    layout: str = Field(default="default", description="Repository layout kind")


class ProfileConfig(BaseModel):
    """A named group of repositories that can be switched on."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1, description="Profile id")
    active_by_default: bool = Field(
        default=False,
        description="Active when no profile is explicitly activated",
    )
    repositories: list[RepositoryConfig] = Field(
        default_factory=list,
        description="Repositories contributed when the profile is active",
    )


class ProxyConfig(BaseModel):
    """A proxy for one URL scheme.

    Attributes:
        id: Proxy id, used to merge settings layers.
        active: Inactive proxies are ignored.
        protocol: URL scheme routed through this proxy.
        host: Proxy host.
        port: Proxy port.
        username: Optional basic auth user name.
        password: Optional basic auth password.
        non_proxy_hosts: ``|``-separated host patterns (``*`` wildcard)
            that bypass the proxy.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default="default", min_length=1, description="Proxy id")
    active: bool = Field(default=True, description="Whether the proxy is used")
    protocol: str = Field(default="http", min_length=1, description="URL scheme served")
    host: str = Field(..., min_length=1, description="Proxy host")
    port: int = Field(default=8080, ge=1, le=65535, description="Proxy port")
    username: str | None = Field(default=None, description="Basic auth user name")
    password: SecretStr | None = Field(default=None, description="Basic auth password")
    non_proxy_hosts: str | None = Field(
        default=None,
        description="Hosts bypassing the proxy, e.g. 'localhost|*.internal'",
    )


class RepositorySettings(BaseModel):
    """Effective repository settings.

    Attributes:
        profiles: Declared profiles.
        active_profiles: Ids of explicitly activated profiles.
        proxies: Declared proxies, in priority order.

    Example:
        >>> settings = RepositorySettings.from_yaml(Path("~/.protogen/settings.yaml"))
        >>> [repo.id for repo in settings.active_repositories()]
        ['nexus']
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    profiles: list[ProfileConfig] = Field(default_factory=list)
    active_profiles: list[str] = Field(default_factory=list)
    proxies: list[ProxyConfig] = Field(default_factory=list)

    @classmethod
    def from_yaml(cls, path: Path) -> RepositorySettings:
        """Load settings from a YAML file.

        Args:
            path: Path to the settings file.

        Returns:
            Parsed settings. An empty file yields empty settings.

        Raises:
            ConfigurationError: If the file cannot be read, parsed or validated.
        """
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(
                "Could not read settings", file_path=str(path), internal_details=str(e)
            ) from e

        if data is None:
            data = {}

        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigurationError(
                "Invalid settings", file_path=str(path), internal_details=str(e)
            ) from e

    def merged_with(self, dominant: RepositorySettings) -> RepositorySettings:
        """Overlay a dominant settings layer on top of this one.

        Profiles and proxies are merged by id with the dominant entry winning;
        active profile ids are an ordered union.

        Args:
            dominant: The layer that takes precedence.

        Returns:
            New merged settings.
        """
        profiles = {p.id: p for p in self.profiles}
        for profile in dominant.profiles:
            profiles[profile.id] = profile

        proxies = {p.id: p for p in dominant.proxies}
        for proxy in self.proxies:
            proxies.setdefault(proxy.id, proxy)

        active = list(dominant.active_profiles)
        for profile_id in self.active_profiles:
            if profile_id not in active:
                active.append(profile_id)

        return RepositorySettings(
            profiles=list(profiles.values()),
            active_profiles=active,
            proxies=list(proxies.values()),
        )

    def active_profile_ids(self) -> list[str]:
        """Ids of the profiles in effect, in declaration order."""
        declared = [p.id for p in self.profiles]
        explicit = [pid for pid in declared if pid in self.active_profiles]
        if explicit:
            return explicit
        return [p.id for p in self.profiles if p.active_by_default]

    def active_repositories(self) -> list[RepositoryConfig]:
        """Repositories contributed by active profiles, first occurrence of an id wins."""
        active = set(self.active_profile_ids())
        repositories: list[RepositoryConfig] = []
        seen: set[str] = set()
        for profile in self.profiles:
            if profile.id not in active:
                continue
            for repository in profile.repositories:
                if repository.id not in seen:
                    seen.add(repository.id)
                    repositories.append(repository)
        return repositories


def _load_layer(path: Path | None) -> RepositorySettings | None:
    if path is None or not path.is_file():
        return None
    try:
        return RepositorySettings.from_yaml(path)
    except ConfigurationError as e:
        logger.warning("settings_file_ignored", path=str(path), error=str(e))
        return None


def load_settings(
    global_path: Path | None,
    user_path: Path | None = None,
) -> RepositorySettings:
    """Build effective settings from the global and user layers.

    Args:
        global_path: Global settings file, usually ``<home>/settings.yaml``.
        user_path: Optional user settings file. Defaults to the
            ``PROTOGEN_SETTINGS`` environment variable when unset.

    Returns:
        Effective settings. Never raises for unreadable files.
    """
    if user_path is None and os.environ.get(SETTINGS_ENV_VAR):
        user_path = Path(os.environ[SETTINGS_ENV_VAR]).expanduser()

    effective = RepositorySettings()
    for path in (global_path, user_path):
        layer = _load_layer(path)
        if layer is not None:
            effective = effective.merged_with(layer)
            logger.debug("settings_layer_loaded", path=str(path))

    return effective
