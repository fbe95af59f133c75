"""protogen-cli: command-line host for protogen-core."""

from __future__ import annotations

__version__ = "0.1.0"
