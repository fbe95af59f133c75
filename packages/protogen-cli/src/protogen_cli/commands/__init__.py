"""protogen CLI commands.

Commands are loaded lazily by protogen_cli.main.LazyGroup.
"""

from __future__ import annotations
