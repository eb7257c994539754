"""safety — dependency vulnerability scanner backed by the Safety DB."""

from __future__ import annotations

from scanstation.models import ScanTarget
from scanstation.tools.base import ExternalTool


class Safety(ExternalTool):
    executable = "safety"

    @property
    def name(self) -> str:
        return "safety"

    def build_args(self, target: ScanTarget) -> list[str]:
        args = ["check"]
        if target.requirements_file is not None:
            args += ["-r", str(target.requirements_file)]
        args += ["--output", "text"]
        return args
