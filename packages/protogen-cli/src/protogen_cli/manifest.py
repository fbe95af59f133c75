"""Generation manifest: the YAML file the CLI turns into units of work.

Example protogen.yaml:

    version: "3.11.0"
    search_paths: [src/main/proto, build/proto]
    output: build/generated
    units:
      - package: com.example.pkg
        includes: [common/types.proto]
        inputs: [pkg/msg.proto]
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from protogen_core import (
    DirectoryOutputSink,
    GatewayConfig,
    SearchPathLookup,
    UnitOfWork,
)
from protogen_core.unit import unique

DEFAULT_MANIFEST = "protogen.yaml"


class UnitSpec(BaseModel):
    """One unit entry in the manifest.

    Attributes:
        name: Display name, defaults to the package.
        version: Tool version, defaults to the manifest version.
        includes: Logical paths staged for imports only.
        inputs: Logical paths to generate from.
        package: Target package of every generated source.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str | None = Field(default=None, description="Display name")
    version: str | None = Field(default=None, description="Tool version")
    includes: list[str] = Field(default_factory=list, description="Import-only paths")
    inputs: list[str] = Field(..., min_length=1, description="Generation inputs")
    package: str = Field(..., description="Target package ('' for the default package)")

    @field_validator("includes", "inputs")
    @classmethod
    def drop_duplicates(cls, v: list[str]) -> list[str]:
        """Collapse duplicate paths, keeping first-seen order."""
        return list(unique(v))

    @property
    def display_name(self) -> str:
        return self.name or self.package or "(default package)"


class GenerationManifest(BaseModel):
    """A batch of generation units plus where to read and write files.

    Attributes:
        version: Default tool version for units without one.
        search_paths: Roots searched for logical paths, relative to the manifest.
        output: Destination source tree, relative to the manifest.
        config: Gateway configuration overrides.
        units: Units to generate.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: str | None = Field(default=None, description="Default tool version")
    search_paths: list[str] = Field(
        default_factory=lambda: ["."],
        min_length=1,
        description="Roots searched for inputs and includes",
    )
    output: str = Field(default="generated", min_length=1, description="Output source tree")
    config: GatewayConfig = Field(
        default_factory=GatewayConfig,
        description="Gateway configuration",
    )
    units: list[UnitSpec] = Field(..., min_length=1, description="Units to generate")

    @model_validator(mode="after")
    def every_unit_has_a_version(self) -> GenerationManifest:
        if self.version is None:
            missing = [u.display_name for u in self.units if u.version is None]
            if missing:
                raise ValueError(
                    f"No version given for units: {', '.join(missing)} "
                    "(set 'version' on the unit or at the top level)"
                )
        return self

    @classmethod
    def from_yaml(cls, path: Path) -> GenerationManifest:
        """Load a manifest from YAML.

        Raises:
            FileNotFoundError: If file doesn't exist.
            yaml.YAMLError: If the YAML is malformed.
            pydantic.ValidationError: If validation fails.
        """
        if not path.exists():
            raise FileNotFoundError(f"Manifest not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f)

        if data is None:
            data = {}

        return cls.model_validate(data)

    def build_units(
        self,
        base_dir: Path,
        output_dir: Path | None = None,
    ) -> tuple[list[UnitOfWork], DirectoryOutputSink]:
        """Create units of work sharing one lookup and one output sink.

        Args:
            base_dir: Directory relative paths in the manifest resolve against.
            output_dir: Overrides the manifest output directory.

        Returns:
            The units and the sink they write to.
        """
        lookup = SearchPathLookup([base_dir / root for root in self.search_paths])
        sink = DirectoryOutputSink(
            output_dir if output_dir is not None else base_dir / self.output,
            suffix=self.config.generated_suffix,
        )
        units = [
            UnitOfWork(
                name=spec.display_name,
                version=spec.version or self.version or "",
                includes=tuple(spec.includes),
                inputs=tuple(spec.inputs),
                target_package=spec.package,
                lookup=lookup,
                sink=sink,
            )
            for spec in self.units
        ]
        return units, sink
