"""pip-audit — PyPA dependency vulnerability scanner."""

from __future__ import annotations

from scanstation.models import ScanTarget
from scanstation.tools.base import ExternalTool


class PipAudit(ExternalTool):
    executable = "pip-audit"

    @property
    def name(self) -> str:
        return "pip-audit"

    @property
    def display_name(self) -> str:
        return "Pip-audit"

    def build_args(self, target: ScanTarget) -> list[str]:
        args: list[str] = []
        if target.requirements_file is not None:
            args += ["--requirement", str(target.requirements_file)]
        args += ["--format", "columns"]
        return args
