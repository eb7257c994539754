"""Base class for external tools run by the ToolRunner."""

from __future__ import annotations

from abc import ABC, abstractmethod

from scanstation.models import ScanTarget


class ExternalTool(ABC):
    """An opaque external process: argument list in, exit status + text out.

    Subclasses build a structured argument list; nothing is ever passed
    through a shell, so argument values cannot inject extra commands.
    """

    #: Executable name (looked up in the provisioned environment) or absolute path.
    executable: str = ""

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier, e.g. ``pip-audit``."""

    @property
    def display_name(self) -> str:
        """Human-readable name used in report lines."""
        return self.name.capitalize()

    @abstractmethod
    def build_args(self, target: ScanTarget) -> list[str]:
        """Arguments following the executable for *target*."""

    def command(self, target: ScanTarget) -> list[str]:
        args = self.build_args(target)
        for arg in args:
            if not isinstance(arg, str) or "\x00" in arg:
                raise ValueError(f"{self.name}: invalid argument {arg!r}")
        return [self.executable, *args]
