"""pip freeze — snapshot of the packages installed in the scan environment."""

from __future__ import annotations

from scanstation.models import ScanTarget
from scanstation.tools.base import ExternalTool


class PipFreeze(ExternalTool):
    executable = "pip"

    @property
    def name(self) -> str:
        return "pip-freeze"

    @property
    def display_name(self) -> str:
        return "Pip freeze"

    def build_args(self, target: ScanTarget) -> list[str]:
        return ["freeze"]
